"""Workflow stage implementations, one per non-terminal workflow state.

Available Stages:
    - SelectionStage: Pick one well-defined, unblocked ticket
    - ReadingStage: Fetch full ticket detail (retried once)
    - PlanningStage: Produce a non-empty file-level plan
    - ImplementationStage: Apply plan intents in order
    - TestingStage: Run tests; loop back for repair up to the budget
    - ReviewStage: Build and validate the review package
    - PullRequestStage: Push the branch and open or update the pull request
    - DocSyncStage: Commit knowledge document updates atomically
    - TicketUpdateStage: Comment with the PR link and transition the ticket
"""

from ticketflow.engine.stages.base import WorkflowStage
from ticketflow.engine.stages.doc_sync import DocSyncStage
from ticketflow.engine.stages.implementation import ImplementationStage
from ticketflow.engine.stages.planning import PlanningStage
from ticketflow.engine.stages.pull_request import PullRequestStage, build_descriptor
from ticketflow.engine.stages.reading import ReadingStage
from ticketflow.engine.stages.review import ReviewStage
from ticketflow.engine.stages.selection import SelectionStage, select_candidate
from ticketflow.engine.stages.testing import TestingStage
from ticketflow.engine.stages.ticket_update import TicketUpdateStage

__all__ = [
    "DocSyncStage",
    "ImplementationStage",
    "PlanningStage",
    "PullRequestStage",
    "ReadingStage",
    "ReviewStage",
    "SelectionStage",
    "TestingStage",
    "TicketUpdateStage",
    "WorkflowStage",
    "build_descriptor",
    "select_candidate",
]
