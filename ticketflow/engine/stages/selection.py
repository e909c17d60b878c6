"""Selecting: pick at most one well-defined ticket to work."""

from dataclasses import replace

import structlog

from ticketflow.engine.stages.base import WorkflowStage
from ticketflow.enums import WorkflowState
from ticketflow.exceptions import NoCandidateFoundError
from ticketflow.models.domain import Ticket, WorkItem
from ticketflow.tracker.base import TicketClient, TicketQuery

log = structlog.get_logger(__name__)

DEFAULT_CANDIDATE_LIMIT = 50


async def select_candidate(tracker: TicketClient, query: TicketQuery) -> Ticket:
    """Best well-defined ticket matching ``query``.

    Candidates are ranked by priority descending, then last-updated
    descending; tickets without a description or with unresolved blocking
    links are never chosen.

    Raises:
        NoCandidateFoundError: If no ticket qualifies
    """
    if query.limit is None:
        query = replace(query, limit=DEFAULT_CANDIDATE_LIMIT)

    candidates: list[Ticket] = []
    async for ticket in tracker.search(query):
        if ticket.is_well_defined:
            candidates.append(ticket)
        else:
            log.debug("ticket_not_eligible", ticket=str(ticket.key), reason="empty description")

    if not candidates:
        raise NoCandidateFoundError(f"No eligible ticket for query: {query.to_jql()}")

    return min(candidates, key=lambda t: t.selection_key())


class SelectionStage(WorkflowStage):
    """Chooses the ticket, or validates the one named explicitly."""

    handles = WorkflowState.SELECTING

    async def execute(self, item: WorkItem) -> WorkflowState:
        tracker = self.services.tracker

        if item.ticket_key is not None:
            ticket = await tracker.fetch(item.ticket_key)
            blockers = ticket.unresolved_blockers
            if blockers:
                raise NoCandidateFoundError(
                    f"{ticket.key} is blocked by {', '.join(str(b) for b in blockers)}"
                )
            if not ticket.description.strip():
                raise NoCandidateFoundError(f"{ticket.key} has no description")
        else:
            ticket = await select_candidate(tracker, self.services.query)

        item.ticket_key = ticket.key
        item.ticket = ticket
        log.info(
            "ticket_selected",
            ticket=str(ticket.key),
            priority=ticket.priority,
            summary=ticket.summary,
        )
        return WorkflowState.READING
