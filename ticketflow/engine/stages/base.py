"""
Base class for workflow stages.

Stage Lifecycle:
    Stages are instantiated once by the orchestrator and reused for every
    work item. ``execute()`` performs the work of one workflow state on the
    work item and returns the next state. Failures are raised as
    ``TicketflowError`` subclasses; the orchestrator turns them into a
    ``Failed`` result, so stages never catch-and-continue.

Example:
    >>> class MyStage(WorkflowStage):
    ...     handles = WorkflowState.TESTING
    ...     async def execute(self, item: WorkItem) -> WorkflowState:
    ...         ...
    ...         return WorkflowState.REVIEW_PACKAGING
"""

from abc import ABC, abstractmethod

from ticketflow.engine.context import WorkflowServices
from ticketflow.enums import WorkflowState
from ticketflow.models.domain import Ticket, WorkItem


class WorkflowStage(ABC):
    """Abstract base class for all workflow stages.

    Attributes:
        handles: The workflow state this stage executes.
        services: Shared collaborators (tracker, repository, knowledge, ...).
    """

    handles: WorkflowState

    def __init__(self, services: WorkflowServices) -> None:
        self.services = services
        self.settings = services.settings

    @abstractmethod
    async def execute(self, item: WorkItem) -> WorkflowState:
        """Run this state for ``item`` and return the state to move to.

        Note:
            Stages are shared between work items. Keep per-ticket data on
            the work item, never on the stage.
        """
        pass

    @staticmethod
    def _ticket(item: WorkItem) -> Ticket:
        if item.ticket is None:
            raise RuntimeError(f"Work item has no ticket in state {item.state}")
        return item.ticket
