"""
Workflow orchestrator driving one ticket through the state machine.

States:
    selecting -> reading -> planning -> implementing -> testing
    -> review_packaging -> pull_request_open -> doc_syncing
    -> ticket_updating -> done

``testing`` may loop back to ``implementing`` within the repair budget.
``failed`` is reachable from every non-terminal state.

Every run ends in a ``WorkflowResult``. Domain errors become a failed result
naming the ticket, the stage and a remediation hint; cancellation discards
staged documentation and workspace changes, records the failure and is
re-raised. Only one work item is processed at a time.

Example:
    >>> orchestrator = WorkflowOrchestrator(services)
    >>> result = await orchestrator.run(TicketQuery(project="PROJ"))
    >>> print(result.describe())
"""

import asyncio

import structlog

from ticketflow.engine.context import WorkflowServices
from ticketflow.engine.stages import (
    DocSyncStage,
    ImplementationStage,
    PlanningStage,
    PullRequestStage,
    ReadingStage,
    ReviewStage,
    SelectionStage,
    TestingStage,
    TicketUpdateStage,
    WorkflowStage,
)
from ticketflow.enums import WorkflowState
from ticketflow.exceptions import TicketflowError, WorkflowCancelledError, WorkspaceError
from ticketflow.models.domain import StageFailure, TicketKey, WorkflowResult, WorkItem
from ticketflow.tracker.base import TicketQuery

log = structlog.get_logger(__name__)

# Allowed successors of every non-terminal state (FAILED is always allowed).
TRANSITIONS: dict[WorkflowState, frozenset[WorkflowState]] = {
    WorkflowState.SELECTING: frozenset({WorkflowState.READING}),
    WorkflowState.READING: frozenset({WorkflowState.PLANNING}),
    WorkflowState.PLANNING: frozenset({WorkflowState.IMPLEMENTING}),
    WorkflowState.IMPLEMENTING: frozenset({WorkflowState.TESTING}),
    WorkflowState.TESTING: frozenset({WorkflowState.REVIEW_PACKAGING, WorkflowState.IMPLEMENTING}),
    WorkflowState.REVIEW_PACKAGING: frozenset({WorkflowState.PULL_REQUEST_OPEN}),
    WorkflowState.PULL_REQUEST_OPEN: frozenset({WorkflowState.DOC_SYNCING}),
    WorkflowState.DOC_SYNCING: frozenset({WorkflowState.TICKET_UPDATING}),
    WorkflowState.TICKET_UPDATING: frozenset({WorkflowState.DONE}),
}

UNEXPECTED_REMEDIATION = "inspect the logs for details"


class WorkflowOrchestrator:
    """Runs work items through the stage registry.

    Attributes:
        services: Collaborators shared by all stages.
        stages: Registry mapping each non-terminal state to its stage.
    """

    def __init__(self, services: WorkflowServices) -> None:
        self.services = services
        stage_classes: list[type[WorkflowStage]] = [
            SelectionStage,
            ReadingStage,
            PlanningStage,
            ImplementationStage,
            TestingStage,
            ReviewStage,
            PullRequestStage,
            DocSyncStage,
            TicketUpdateStage,
        ]
        self.stages: dict[WorkflowState, WorkflowStage] = {
            cls.handles: cls(services) for cls in stage_classes
        }
        self._run_lock = asyncio.Lock()

    async def run(
        self,
        query: TicketQuery | None = None,
        ticket_key: TicketKey | None = None,
    ) -> WorkflowResult:
        """Process one ticket to completion or failure.

        Args:
            query: Selection filter, ignored when ``ticket_key`` is given
            ticket_key: Work this ticket instead of searching

        Raises:
            asyncio.CancelledError: After rolling back, when cancelled
        """
        async with self._run_lock:
            self.services.query = query or TicketQuery()
            item = WorkItem(ticket_key=ticket_key)
            if ticket_key is not None:
                await self.services.state.start_run(str(ticket_key))
            return await self._drive(item)

    async def run_queue(self, keys: list[TicketKey]) -> list[WorkflowResult]:
        """Process tickets one after another; a failure does not stop the queue."""
        results = []
        for key in keys:
            results.append(await self.run(ticket_key=key))
        return results

    async def _drive(self, item: WorkItem) -> WorkflowResult:
        try:
            while not item.state.is_terminal:
                await self._step(item)
        except asyncio.CancelledError:
            failure = StageFailure(
                state=item.state,
                reason=WorkflowCancelledError.__name__,
                message="Work item was cancelled",
                remediation=WorkflowCancelledError.remediation,
            )
            log.warning("workflow_cancelled", ticket=str(item.ticket_key), state=str(item.state))
            await self._finish_failed(item, failure)
            raise
        except TicketflowError as e:
            failure = StageFailure(
                state=item.state,
                reason=type(e).__name__,
                message=str(e),
                remediation=e.remediation,
            )
            return await self._finish_failed(item, failure)
        except Exception as e:
            log.error("workflow_unexpected_error", state=str(item.state), exc_info=True)
            failure = StageFailure(
                state=item.state,
                reason=type(e).__name__,
                message=str(e),
                remediation=UNEXPECTED_REMEDIATION,
            )
            return await self._finish_failed(item, failure)

        result = WorkflowResult(
            ticket_key=item.ticket_key,
            state=item.state,
            pull_request=item.pull_request,
            history=list(item.history),
        )
        log.info("workflow_done", ticket=str(item.ticket_key), url=item.pull_request.url if item.pull_request else None)
        await self._persist(result, item)
        return result

    async def _step(self, item: WorkItem) -> None:
        state = item.state
        stage = self.stages[state]
        key = str(item.ticket_key) if item.ticket_key else None

        with structlog.contextvars.bound_contextvars(ticket=key, state=state.value):
            if key:
                await self.services.state.mark_stage(key, state, "in_progress")
            log.debug("stage_started")

            next_state = await stage.execute(item)

            if next_state not in TRANSITIONS[state]:
                raise RuntimeError(f"Illegal transition {state} -> {next_state}")

            if key is None and item.ticket_key is not None:
                await self.services.state.start_run(str(item.ticket_key))
                key = str(item.ticket_key)
            if key:
                await self.services.state.mark_stage(key, state, "completed")

        item.advance(next_state)

    async def _finish_failed(self, item: WorkItem, failure: StageFailure) -> WorkflowResult:
        """Roll back uncommitted work and record the failure."""
        self.services.knowledge.discard()
        if item.branch is not None:
            try:
                await self.services.workspace.discard()
            except WorkspaceError as e:
                log.error("workspace_discard_failed", error=e.message)

        history = [*item.history, item.state]
        result = WorkflowResult(
            ticket_key=item.ticket_key,
            state=WorkflowState.FAILED,
            failure=failure,
            pull_request=item.pull_request,
            history=history,
        )
        log.error(
            "workflow_failed",
            ticket=str(item.ticket_key) if item.ticket_key else None,
            state=failure.state.value,
            reason=failure.reason,
            error=failure.message,
            remediation=failure.remediation,
        )
        item.advance(WorkflowState.FAILED)
        await self._persist(result, item)
        return result

    async def _persist(self, result: WorkflowResult, item: WorkItem) -> None:
        try:
            await self.services.state.record_result(
                result,
                branch=item.branch,
                iterations=item.test_iterations,
                documents=item.documents_written,
            )
        except OSError as e:
            log.error("state_persist_failed", error=str(e))
