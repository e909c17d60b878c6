"""Enumerations for ticket statuses, link types and workflow states."""

from enum import Enum


class TicketStatus(str, Enum):
    """Ticket statuses understood by the orchestrator.

    Values are the tracker display names. Trackers may define more statuses;
    those are kept as raw strings on the ticket and never produced here.
    """

    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    PATCH_AVAILABLE = "Patch Available"
    RESOLVED = "Resolved"
    CLOSED = "Closed"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name: str | None) -> "TicketStatus | None":
        """Match a tracker status name, ignoring case and spacing."""
        if not name:
            return None
        normalized = _normalize(name)
        for status in cls:
            if _normalize(status.value) == normalized:
                return status
        return None

    @property
    def is_resolved(self) -> bool:
        """Whether the ticket no longer blocks other work."""
        return self in (TicketStatus.RESOLVED, TicketStatus.CLOSED)


class LinkType(str, Enum):
    """Typed relation between two tickets, seen from the owning ticket."""

    BLOCKS = "Blocks"
    IS_BLOCKED_BY = "IsBlockedBy"
    RELATES = "Relates"
    DUPLICATES = "Duplicates"

    def __str__(self) -> str:
        return self.value

    @property
    def tracker_name(self) -> str:
        """Issue link type name used by the tracker API."""
        if self in (LinkType.BLOCKS, LinkType.IS_BLOCKED_BY):
            return "Blocker"
        if self == LinkType.RELATES:
            return "Relates"
        return "Duplicate"


class WorkflowState(str, Enum):
    """States of the ticket workflow state machine.

    The happy path visits every state in declaration order, ending in DONE.
    FAILED is reachable from any non-terminal state.
    """

    SELECTING = "selecting"
    READING = "reading"
    PLANNING = "planning"
    IMPLEMENTING = "implementing"
    TESTING = "testing"
    REVIEW_PACKAGING = "review_packaging"
    PULL_REQUEST_OPEN = "pull_request_open"
    DOC_SYNCING = "doc_syncing"
    TICKET_UPDATING = "ticket_updating"
    DONE = "done"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowState.DONE, WorkflowState.FAILED)


class ChangeAction(str, Enum):
    """File-level change kind for a plan intent."""

    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"

    def __str__(self) -> str:
        return self.value


def _normalize(name: str) -> str:
    return "".join(name.split()).lower()
