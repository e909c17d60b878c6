"""Type definitions for persisted work item state.

These TypedDicts describe the JSON files written under the state directory,
one per ticket, named ``{TICKET-KEY}.json``.

Example:
    A run that failed while testing::

        state: TicketRunState = {
            "ticket": "PROJ-101",
            "status": "failed",
            "created_at": "2024-01-15T10:30:00+00:00",
            "updated_at": "2024-01-15T10:41:12+00:00",
            "stages": {
                "reading": {"status": "completed"},
                "testing": {"status": "failed", "error": "Tests still failing after 3 iteration(s)"},
                ...
            },
            "branch": "PROJ-101-guard-against-missing-config",
            "pull_request": None,
            "test_iterations": 3,
            "documents": [],
            "failure": {"state": "testing", "reason": "TestsExhaustedError", ...},
            "history": ["selecting", "reading", "planning", "implementing", "testing", ...],
        }
"""

from typing import NotRequired, TypedDict


class StageRecord(TypedDict):
    """State for a single workflow state of one run."""

    status: str
    """One of "pending", "in_progress", "completed" or "failed"."""

    started_at: NotRequired[str]
    completed_at: NotRequired[str]
    error: NotRequired[str]


class FailureRecord(TypedDict):
    """Persisted form of a StageFailure."""

    state: str
    reason: str
    message: str
    remediation: str


class TicketRunState(TypedDict):
    """Complete persisted state of the latest run on a ticket."""

    ticket: str
    status: str
    created_at: str
    updated_at: str
    stages: dict[str, StageRecord]
    branch: str | None
    pull_request: str | None
    test_iterations: int
    documents: list[str]
    failure: FailureRecord | None
    history: list[str]
