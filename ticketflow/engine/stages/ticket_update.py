"""TicketUpdating: link the pull request on the ticket and move its status."""

import asyncio

import structlog

from ticketflow.engine.stages.base import WorkflowStage
from ticketflow.enums import TicketStatus, WorkflowState
from ticketflow.exceptions import InvalidTransitionError, TicketflowError
from ticketflow.models.domain import Ticket, WorkItem

log = structlog.get_logger(__name__)


def remaining_path(path: list[str], current: str) -> list[str]:
    """Statuses of ``path`` still ahead of ``current``."""
    normalized = [p.replace(" ", "").lower() for p in path]
    here = current.replace(" ", "").lower()
    if here in normalized:
        return path[normalized.index(here) + 1 :]
    return path


class TicketUpdateStage(WorkflowStage):
    """Adds one comment with the PR link, then walks the project's
    transition path toward the target status.

    Every hop is checked against the tracker's allowed transitions before
    it is requested. When a later hop is disallowed the ticket is moved back
    to the status it started from, so a rejected path never leaves it
    partway along. Each transition request is shielded from cancellation.
    """

    handles = WorkflowState.TICKET_UPDATING

    async def execute(self, item: WorkItem) -> WorkflowState:
        ticket = self._ticket(item)
        assert item.pull_request is not None
        tracker = self.services.tracker

        comment = self._comment(ticket, item)
        await tracker.comment(ticket.key, comment)
        log.info("ticket_commented", url=item.pull_request.url)

        original = ticket.status
        path = self.settings.workflow.transition_path(ticket.key.project)
        for status in remaining_path(path, ticket.status_name):
            try:
                await asyncio.shield(tracker.transition(ticket.key, status))
            except InvalidTransitionError:
                if ticket.status != original:
                    await self._restore_status(ticket, original)
                raise
            ticket.status = TicketStatus.from_name(status) or status
            log.info("ticket_transitioned", status=status)

        return WorkflowState.DONE

    async def _restore_status(self, ticket: Ticket, original: TicketStatus | str) -> None:
        target = str(original)
        try:
            await asyncio.shield(self.services.tracker.transition(ticket.key, target))
        except TicketflowError as e:
            log.error("ticket_status_restore_failed", status=ticket.status_name, target=target, error=e.message)
            return
        ticket.status = original
        log.info("ticket_status_restored", status=target)

    def _comment(self, ticket: Ticket, item: WorkItem) -> str:
        assert item.pull_request is not None
        result = item.change_set.test_result
        return self.services.templates.render(
            "ticket_comment.j2",
            {
                "pr_url": item.pull_request.url,
                "pr_title": f"#{item.pull_request.number} {ticket.key}: {ticket.summary}",
                "branch": item.branch or item.pull_request.head,
                "test_iteration": result.iteration if result else item.test_iterations,
                "files": item.change_set.files,
            },
        )
