"""
Domain models for the ticket workflow.

This module contains the data classes representing the core entities the
orchestrator works with: tickets read from the issue tracker, the plan and
change set produced while working a ticket, the review package attached to
the pull request, and the documents of the knowledge tree.

Tickets and pull requests are owned by external systems. The orchestrator's
``WorkItem`` refers to them only by identifier (ticket key, PR number) and
exclusively owns its Plan, ChangeSet and ReviewPackage.

Example:
    Creating a ticket from tracker data::

        ticket = Ticket(
            key=TicketKey.parse("PROJ-101"),
            summary="Guard against missing config",
            description="Add a null check",
            status=TicketStatus.OPEN,
            priority="Major",
        )
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ticketflow.enums import ChangeAction, LinkType, TicketStatus, WorkflowState

TICKET_KEY_PATTERN = re.compile(r"^([A-Z][A-Z0-9_]+)-(\d+)$")

# Statuses outside TicketStatus that still count as finished work.
RESOLVED_STATUS_NAMES = frozenset({"done", "fixed", "won't fix"})

# Jira ships two priority schemes; both rank highest first.
PRIORITY_RANKS: dict[str, int] = {
    "blocker": 5,
    "highest": 5,
    "critical": 4,
    "high": 4,
    "major": 3,
    "medium": 3,
    "minor": 2,
    "low": 2,
    "trivial": 1,
    "lowest": 1,
}


@dataclass(frozen=True, order=True)
class TicketKey:
    """Ticket identifier in ``PROJECTKEY-NUMBER`` form."""

    project: str
    number: int

    @classmethod
    def parse(cls, value: str) -> TicketKey:
        """Parse a ``PROJ-123`` string.

        Raises:
            ValueError: If the value is not a valid ticket key
        """
        match = TICKET_KEY_PATTERN.match(value.strip().upper())
        if not match:
            raise ValueError(f"Invalid ticket key: {value!r}")
        return cls(project=match.group(1), number=int(match.group(2)))

    def __str__(self) -> str:
        return f"{self.project}-{self.number}"


@dataclass
class TicketComment:
    """A comment on a ticket."""

    author: str
    body: str
    created_at: datetime | None = None


@dataclass
class Attachment:
    """File attached to a ticket. Content is never downloaded."""

    filename: str
    url: str
    size: int = 0


@dataclass
class TicketLink:
    """Typed link from the owning ticket to another ticket.

    ``target_status`` is the linked ticket's status as reported alongside
    the link, so blocking checks need no extra lookups.
    """

    type: LinkType
    target: TicketKey
    target_status: str | None = None

    @property
    def is_unresolved_blocker(self) -> bool:
        """True when this link blocks the owning ticket and is still open."""
        if self.type != LinkType.IS_BLOCKED_BY:
            return False
        if self.target_status and self.target_status.strip().lower() in RESOLVED_STATUS_NAMES:
            return False
        status = TicketStatus.from_name(self.target_status)
        return not (status and status.is_resolved)


@dataclass
class Ticket:
    """Normalized ticket as read from the issue tracker.

    The orchestrator never creates or deletes tickets; it mutates them only
    through comments, links and status transitions.
    """

    key: TicketKey
    """Stable tracker identifier."""

    summary: str
    """One-line title."""

    description: str = ""
    """Full body in the tracker's wiki markup. May be empty."""

    status: TicketStatus | str = TicketStatus.OPEN
    """Known status, or the raw status name for tracker-specific states."""

    priority: str = ""
    """Priority name (e.g. "Major"). Unknown names rank lowest."""

    components: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    comments: list[TicketComment] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)
    links: list[TicketLink] = field(default_factory=list)

    updated_at: datetime | None = None
    """Last modification time, used as selection tie-break."""

    url: str = ""
    """Browse URL for humans."""

    @property
    def status_name(self) -> str:
        return str(self.status)

    @property
    def priority_rank(self) -> int:
        return PRIORITY_RANKS.get(self.priority.strip().lower(), 0)

    @property
    def unresolved_blockers(self) -> list[TicketKey]:
        return [link.target for link in self.links if link.is_unresolved_blocker]

    @property
    def is_well_defined(self) -> bool:
        """Non-empty description and nothing blocking it."""
        return bool(self.description.strip()) and not self.unresolved_blockers

    def selection_key(self) -> tuple[int, float]:
        """Sort key: priority descending, then last-updated descending."""
        updated = self.updated_at.timestamp() if self.updated_at else 0.0
        return (-self.priority_rank, -updated)


@dataclass
class PlanIntent:
    """A single file-level change the implementing capability should make."""

    path: str
    """Repository-relative path of the file to change."""

    summary: str
    """What to change, in one or two sentences."""

    action: ChangeAction = ChangeAction.MODIFY
    rationale: str = ""
    component: str | None = None
    """Architecture component the file belongs to, when known."""


@dataclass
class DocWriteIntent:
    """Request to create or update one knowledge document."""

    path: str
    """Store-relative path, e.g. ``components/parser.md``."""

    title: str
    category: str
    body: str
    links: list[str] = field(default_factory=list)
    """Store-relative paths this document must cross-reference."""

    reason: str = ""


@dataclass
class Plan:
    """Ordered list of file-level intents for one ticket.

    Intents execute strictly in order; later intents may depend on the file
    state left by earlier ones.
    """

    intents: list[PlanIntent] = field(default_factory=list)
    summary: str = ""
    documentation: list[DocWriteIntent] = field(default_factory=list)
    """Extra documentation updates proposed alongside the code changes."""

    @property
    def is_empty(self) -> bool:
        return not self.intents

    @property
    def affected_components(self) -> list[str]:
        seen: list[str] = []
        for intent in self.intents:
            if intent.component and intent.component not in seen:
                seen.append(intent.component)
        return seen


@dataclass
class TestResult:
    """Outcome of one run of the external test/build capability."""

    __test__ = False

    passed: bool
    output: str = ""
    duration: float = 0.0
    timed_out: bool = False
    iteration: int = 0


@dataclass
class ChangeEntry:
    """One applied (or failed) plan intent."""

    intent: PlanIntent
    ok: bool
    files: list[str] = field(default_factory=list)
    detail: str = ""


@dataclass
class ChangeSet:
    """Ordered edits applied for a plan, with the latest test result."""

    entries: list[ChangeEntry] = field(default_factory=list)
    test_result: TestResult | None = None

    @property
    def files(self) -> list[str]:
        ordered: list[str] = []
        for entry in self.entries:
            for path in entry.files or [entry.intent.path]:
                if path not in ordered:
                    ordered.append(path)
        return ordered

    @property
    def passed(self) -> bool:
        return self.test_result is not None and self.test_result.passed


@dataclass
class ReviewPackage:
    """Structured review-focus metadata embedded in the pull request body."""

    focus_areas: list[str] = field(default_factory=list)
    critical_files: list[str] = field(default_factory=list)
    testing_instructions: str = ""
    checklist: list[str] = field(default_factory=list)
    concerns: list[str] = field(default_factory=list)

    def missing_fields(self) -> list[str]:
        """Names of mandatory fields that are empty."""
        missing = []
        if not [item for item in self.focus_areas if item.strip()]:
            missing.append("focus_areas")
        if not [item for item in self.critical_files if item.strip()]:
            missing.append("critical_files")
        if not self.testing_instructions.strip():
            missing.append("testing_instructions")
        return missing


@dataclass
class PullRequestDescriptor:
    """Everything needed to open or update a pull request."""

    title: str
    body: str
    base: str
    head: str
    ticket: TicketKey


@dataclass
class PullRequestHandle:
    """Identity of a pull request on the source-control host.

    The number is immutable once the pull request exists.
    """

    number: int
    url: str
    head: str
    created: bool = True
    """False when an existing pull request for the head branch was updated."""


@dataclass
class KnowledgeDocument:
    """A node of the documentation tree."""

    path: str
    content: str
    updated_at: datetime | None = None
    links: set[str] = field(default_factory=set)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BrokenLink:
    """A cross-reference whose target document does not exist."""

    source: str
    target: str


@dataclass
class StageFailure:
    """Why and where a work item failed."""

    state: WorkflowState
    reason: str
    """Error class name, e.g. ``TestsExhaustedError``."""

    message: str
    remediation: str = ""

    def describe(self, ticket: TicketKey | None) -> str:
        subject = str(ticket) if ticket else "no ticket"
        text = f"{subject}: stage '{self.state}' failed: {self.message}"
        if self.remediation:
            text = f"{text} (remediation: {self.remediation})"
        return text


@dataclass
class WorkItem:
    """In-progress orchestration state for one ticket.

    Created when the orchestrator starts on a ticket and discarded when it
    reaches a terminal state.
    """

    ticket_key: TicketKey | None = None
    ticket: Ticket | None = None
    plan: Plan = field(default_factory=Plan)
    change_set: ChangeSet = field(default_factory=ChangeSet)
    review: ReviewPackage | None = None
    branch: str | None = None
    pull_request: PullRequestHandle | None = None
    state: WorkflowState = WorkflowState.SELECTING
    history: list[WorkflowState] = field(default_factory=list)
    test_iterations: int = 0
    feedback: str = ""
    """Test output handed back to the implementing capability on repair."""

    documents_written: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def advance(self, state: WorkflowState) -> None:
        self.history.append(self.state)
        self.state = state


@dataclass
class WorkflowResult:
    """Tagged result of one orchestration run."""

    ticket_key: TicketKey | None
    state: WorkflowState
    failure: StageFailure | None = None
    pull_request: PullRequestHandle | None = None
    history: list[WorkflowState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == WorkflowState.DONE

    def describe(self) -> str:
        if self.failure:
            return self.failure.describe(self.ticket_key)
        pr = f" ({self.pull_request.url})" if self.pull_request else ""
        return f"{self.ticket_key}: done{pr}"
