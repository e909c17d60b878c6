"""Tests for ticketflow/exceptions.py."""

from ticketflow.exceptions import (
    AuthError,
    BrokenCrossReferenceError,
    CredentialError,
    CredentialNotFoundError,
    EmptyPlanError,
    ImplementationError,
    IncompleteReviewPackageError,
    InvalidTransitionError,
    RemoteError,
    TestsExhaustedError,
    TicketflowError,
    ValidationError,
    WorkflowError,
)
from ticketflow.models.domain import BrokenLink


def test_credential_error_keeps_short_message():
    error = CredentialNotFoundError(
        "Credential not found", reference="@pass:jira/token", suggestion="pass insert jira/token"
    )
    assert error.message == "Credential not found"
    assert "(reference: @pass:jira/token)" in str(error)
    assert "Suggestion: pass insert jira/token" in str(error)
    assert isinstance(error, CredentialError)


def test_auth_error_remediation():
    error = AuthError("no token", service="tracker")
    assert error.remediation == "configure credential store"
    assert str(error) == "no token (service: tracker)"
    assert error.message == "no token"


def test_remote_error_includes_status_code():
    error = RemoteError("search failed", status_code=502, response_text="Bad gateway")
    assert str(error) == "search failed (HTTP 502)"
    assert error.response_text == "Bad gateway"


def test_validation_errors_share_a_base():
    assert issubclass(EmptyPlanError, ValidationError)
    assert issubclass(IncompleteReviewPackageError, ValidationError)
    assert issubclass(BrokenCrossReferenceError, ValidationError)
    assert issubclass(TestsExhaustedError, WorkflowError)


def test_incomplete_review_package_lists_missing_fields():
    error = IncompleteReviewPackageError(["testing_instructions", "critical_files"])
    assert error.missing == ["critical_files", "testing_instructions"]
    assert "critical_files, testing_instructions" in error.message


def test_broken_cross_reference_lists_links_sorted():
    error = BrokenCrossReferenceError(
        {BrokenLink("components/b.md", "x.md"), BrokenLink("components/a.md", "y.md")}
    )
    assert [b.source for b in error.broken_links] == ["components/a.md", "components/b.md"]
    assert "components/a.md -> y.md" in error.message


def test_invalid_transition_names_available_targets():
    error = InvalidTransitionError("PROJ-1", "Patch Available", available=["In Progress"])
    assert "available: In Progress" in error.message
    assert InvalidTransitionError("PROJ-1", "Closed").available == []


def test_implementation_error_names_intent():
    error = ImplementationError("agent gave up", intent="src/config.py")
    assert error.intent == "src/config.py"
    assert str(error) == "agent gave up (intent: src/config.py)"


def test_every_error_has_a_remediation():
    for cls in (TicketflowError, TestsExhaustedError, EmptyPlanError, WorkflowError):
        assert cls.remediation
