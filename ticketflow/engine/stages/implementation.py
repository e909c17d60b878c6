"""Implementing: apply every plan intent, strictly in plan order."""

import structlog

from ticketflow.engine.stages.base import WorkflowStage
from ticketflow.enums import WorkflowState
from ticketflow.exceptions import AgentError, ImplementationError
from ticketflow.models.domain import ChangeEntry, WorkItem

log = structlog.get_logger(__name__)


class ImplementationStage(WorkflowStage):
    """Builds the work item's change set.

    Any intent that fails aborts the work item; the orchestrator discards
    the workspace so no partial change set survives.
    """

    handles = WorkflowState.IMPLEMENTING

    async def execute(self, item: WorkItem) -> WorkflowState:
        ticket = self._ticket(item)
        context = {"ticket": ticket, "feedback": item.feedback}

        entries: list[ChangeEntry] = []
        for position, intent in enumerate(item.plan.intents, start=1):
            try:
                entry = await self.services.generator.propose(intent, context)
            except AgentError as e:
                raise ImplementationError(e.message, intent=intent.path) from e

            if not entry.ok:
                raise ImplementationError(
                    entry.detail or f"Could not apply intent {position}", intent=intent.path
                )
            entries.append(entry)

        item.change_set.entries = entries
        log.info(
            "change_set_applied",
            entries=len(entries),
            files=item.change_set.files,
            repair=bool(item.feedback),
        )
        return WorkflowState.TESTING
