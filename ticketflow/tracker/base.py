"""
Abstract Ticket Client interface.

Implementations normalize a tracker's API into the domain models defined in
``ticketflow.models.domain``. No operation retries automatically; retry
policy belongs to the orchestrator.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from ticketflow.enums import LinkType
from ticketflow.models.domain import Ticket, TicketKey


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


@dataclass
class TicketQuery:
    """Selection filter rendered to the tracker's query language."""

    project: str | None = None
    statuses: list[str] = field(default_factory=list)
    assignee: str | None = None
    labels: list[str] = field(default_factory=list)
    page_size: int = 50
    limit: int | None = None
    """Stop after this many tickets have been yielded."""

    def to_jql(self) -> str:
        clauses: list[str] = []
        if self.project:
            clauses.append(f"project = {_quote(self.project.upper())}")
        if self.statuses:
            clauses.append(f"status in ({', '.join(_quote(s) for s in self.statuses)})")
        if self.assignee:
            if self.assignee in ("me", "currentUser()"):
                clauses.append("assignee = currentUser()")
            elif self.assignee.lower() in ("none", "unassigned"):
                clauses.append("assignee is EMPTY")
            else:
                clauses.append(f"assignee = {_quote(self.assignee)}")
        for label in self.labels:
            clauses.append(f"labels = {_quote(label)}")

        where = " AND ".join(clauses)
        order = "ORDER BY priority DESC, updated DESC"
        return f"{where} {order}" if where else order


@dataclass
class Transition:
    """A workflow transition the tracker currently allows for a ticket."""

    id: str
    name: str
    to_status: str


class TicketClient(ABC):
    """Abstract base class for issue tracker clients.

    All operations raise ``AuthError`` when no token can be obtained or the
    tracker refuses it, and ``RemoteError`` for any other non-2xx answer.
    """

    @abstractmethod
    async def fetch(self, key: TicketKey) -> Ticket:
        """Read full ticket detail: description, comments, attachments, links."""
        pass

    @abstractmethod
    def search(self, query: TicketQuery) -> AsyncIterator[Ticket]:
        """Lazily iterate tickets matching ``query``.

        The iterator is finite and not restartable across process runs.
        Tickets with unresolved blocking links are never yielded.
        """
        pass

    @abstractmethod
    async def comment(self, key: TicketKey, body: str) -> None:
        """Add a comment in the tracker's wiki markup."""
        pass

    @abstractmethod
    async def link(self, source: TicketKey, target: TicketKey, link_type: LinkType) -> None:
        """Create a typed link ``source <link_type> target``."""
        pass

    @abstractmethod
    async def available_transitions(self, key: TicketKey) -> list[Transition]:
        """Transitions the project's workflow allows from the current status."""
        pass

    @abstractmethod
    async def transition(self, key: TicketKey, target_status: str) -> None:
        """Move the ticket to ``target_status``.

        Raises:
            InvalidTransitionError: If the workflow does not offer the target;
                no write is performed in that case.
        """
        pass
