"""Reading: fetch full ticket detail, retried once on remote errors."""

import structlog

from ticketflow.engine.stages.base import WorkflowStage
from ticketflow.enums import WorkflowState
from ticketflow.exceptions import RemoteError, TicketFetchError
from ticketflow.models.domain import WorkItem
from ticketflow.utils.retry import retry_call

log = structlog.get_logger(__name__)


class ReadingStage(WorkflowStage):
    """Loads description, comments, attachments and links.

    Only ``RemoteError`` is retried; an ``AuthError`` surfaces immediately.
    """

    handles = WorkflowState.READING

    async def execute(self, item: WorkItem) -> WorkflowState:
        assert item.ticket_key is not None
        workflow = self.settings.workflow

        try:
            ticket = await retry_call(
                self.services.tracker.fetch,
                item.ticket_key,
                max_attempts=workflow.fetch_attempts,
                backoff_factor=workflow.fetch_backoff,
                exceptions=(RemoteError,),
            )
        except RemoteError as e:
            raise TicketFetchError(f"Could not read {item.ticket_key}: {e}") from e

        item.ticket = ticket
        log.info(
            "ticket_read",
            ticket=str(ticket.key),
            comments=len(ticket.comments),
            attachments=len(ticket.attachments),
            links=len(ticket.links),
        )
        return WorkflowState.PLANNING
