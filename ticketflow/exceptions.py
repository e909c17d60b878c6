"""Custom exception hierarchy for ticketflow.

Every failure the orchestrator can report is a subclass of
``TicketflowError``. Each class carries a ``remediation`` hint that the
orchestrator and the CLI include in user-visible failure messages.

Exception Hierarchy:
    TicketflowError (base)
    ├── ConfigurationError
    ├── CredentialError
    │   ├── CredentialNotFoundError
    │   ├── CredentialFormatError
    │   └── BackendNotAvailableError
    ├── AuthError
    ├── RemoteError
    ├── ValidationError
    │   ├── EmptyPlanError
    │   ├── IncompleteReviewPackageError
    │   └── BrokenCrossReferenceError
    ├── InvalidTransitionError
    ├── WorkflowError
    │   ├── NoCandidateFoundError
    │   ├── TicketFetchError
    │   ├── ImplementationError
    │   ├── TestsExhaustedError
    │   ├── AgentError
    │   └── WorkflowCancelledError
    ├── DocumentNotFoundError
    └── WorkspaceError

Example Usage:
    >>> from ticketflow.exceptions import ConfigurationError
    >>> try:
    ...     load_config(path)
    ... except FileNotFoundError as e:
    ...     raise ConfigurationError(f"Config file not found: {path}") from e
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ticketflow.models.domain import BrokenLink


class TicketflowError(Exception):
    """Base exception for all ticketflow errors.

    Attributes:
        message: Human-readable error description
        remediation: Short operator-facing hint for resolving the failure
    """

    remediation: str = "inspect the logs for details"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(TicketflowError):
    """Configuration file missing, unreadable or invalid."""

    remediation = "fix the configuration file"


class CredentialError(TicketflowError):
    """Credential-related errors.

    Attributes:
        message: Human-readable error description
        reference: The credential reference that failed (e.g., "@pass:jira/token")
        suggestion: Optional suggestion for resolution
    """

    remediation = "configure credential store"

    def __init__(
        self,
        message: str,
        reference: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        self.reference = reference
        self.suggestion = suggestion

        full_message = message
        if reference:
            full_message = f"{message} (reference: {reference})"
        if suggestion:
            full_message = f"{full_message}\nSuggestion: {suggestion}"

        super().__init__(full_message)
        # Preserve original message (super sets self.message to full_message)
        self.message = message


class CredentialNotFoundError(CredentialError):
    """Credential reference resolves to nothing in its backend."""

    pass


class CredentialFormatError(CredentialError):
    """Credential reference has invalid format."""

    pass


class BackendNotAvailableError(CredentialError):
    """Requested backend is not available on this system."""

    pass


class AuthError(TicketflowError):
    """A client could not authenticate against an external service.

    Raised when the credential provider cannot resolve a token, or when the
    service rejects the token (HTTP 401/403). Never retried automatically.
    """

    remediation = "configure credential store"

    def __init__(self, message: str, service: str | None = None) -> None:
        self.service = service
        super().__init__(f"{message} (service: {service})" if service else message)
        self.message = message


class RemoteError(TicketflowError):
    """External service communication errors.

    Raised for any non-2xx response or transport failure. Read operations
    may be retried by the orchestrator; writes never are.
    """

    remediation = "check connectivity to the external service and retry"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.response_text = response_text

        full_message = message
        if status_code:
            full_message = f"{message} (HTTP {status_code})"

        super().__init__(full_message)
        self.message = message


class ValidationError(TicketflowError):
    """Workflow output failed a hard invariant. Never retried."""

    remediation = "review the generated output and rerun the ticket"


class EmptyPlanError(ValidationError):
    """Planning produced no file-level intents."""

    remediation = "clarify the ticket description so a plan can be produced"


class IncompleteReviewPackageError(ValidationError):
    """Review package is missing one or more mandatory sections."""

    remediation = "provide review focus areas, critical files and testing instructions"

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = sorted(missing)
        super().__init__(f"Review package is missing: {', '.join(self.missing)}")


class BrokenCrossReferenceError(ValidationError):
    """Documentation batch would leave cross-references dangling."""

    remediation = "fix or remove the broken documentation links"

    def __init__(self, broken_links: Iterable[BrokenLink]) -> None:
        self.broken_links = sorted(broken_links, key=lambda b: (b.source, b.target))
        listing = ", ".join(f"{b.source} -> {b.target}" for b in self.broken_links)
        super().__init__(f"Broken cross-references: {listing}")


class InvalidTransitionError(TicketflowError):
    """Requested ticket status change is not allowed by the tracker workflow."""

    remediation = "check the project's workflow for an allowed transition path"

    def __init__(
        self,
        ticket: str,
        target: str,
        available: Iterable[str] = (),
    ) -> None:
        self.ticket = ticket
        self.target = target
        self.available = list(available)
        offered = ", ".join(self.available) or "none"
        super().__init__(
            f"Transition of {ticket} to '{target}' is not allowed (available: {offered})"
        )


class WorkflowError(TicketflowError):
    """Workflow execution errors."""

    pass


class NoCandidateFoundError(WorkflowError):
    """The selection filter produced no eligible ticket."""

    remediation = "widen the ticket query or fix blocking links"


class TicketFetchError(WorkflowError):
    """Full ticket detail could not be read."""

    remediation = "check tracker availability and permissions for the ticket"


class ImplementationError(WorkflowError):
    """A plan intent could not be applied."""

    remediation = "inspect the agent output for the failed intent"

    def __init__(self, message: str, intent: str | None = None) -> None:
        self.intent = intent
        super().__init__(f"{message} (intent: {intent})" if intent else message)
        self.message = message


class TestsExhaustedError(WorkflowError):
    """Repair-iteration budget exceeded without a passing test run."""

    __test__ = False
    remediation = "fix the failing tests manually or raise the repair budget"

    def __init__(self, iterations: int, last_output: str = "") -> None:
        self.iterations = iterations
        self.last_output = last_output
        super().__init__(f"Tests still failing after {iterations} iteration(s)")


class AgentError(WorkflowError):
    """The external assistant CLI could not be run or returned unusable output."""

    remediation = "check the assistant CLI installation and login"


class WorkflowCancelledError(WorkflowError):
    """Work item was cancelled before reaching a terminal state."""

    remediation = "rerun the ticket when ready"


class DocumentNotFoundError(TicketflowError):
    """Documentation Store has no document at the given path."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Document not found: {path}")


class WorkspaceError(TicketflowError):
    """Local git working tree operation failed."""

    remediation = "check the local checkout and git remote configuration"
