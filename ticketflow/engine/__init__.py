"""Workflow orchestration engine.

Key Components:
    - WorkflowOrchestrator: Drives one work item through the state machine
    - WorkflowServices: Collaborators shared by all stages
    - StateManager: Per-ticket run state with atomic transactions
    - WorkflowStage: Base class for the per-state stages

Example:
    >>> from ticketflow.engine import WorkflowOrchestrator
    >>> result = await WorkflowOrchestrator(services).run(query)
"""

from ticketflow.engine.context import WorkflowServices
from ticketflow.engine.orchestrator import WorkflowOrchestrator
from ticketflow.engine.state_manager import StateManager
from ticketflow.engine.types import FailureRecord, StageRecord, TicketRunState

__all__ = [
    "FailureRecord",
    "StageRecord",
    "StateManager",
    "TicketRunState",
    "WorkflowOrchestrator",
    "WorkflowServices",
]
