"""End-to-end tests of the workflow state machine with in-memory collaborators."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from ticketflow.engine.orchestrator import UNEXPECTED_REMEDIATION, WorkflowOrchestrator
from ticketflow.enums import TicketStatus, WorkflowState
from ticketflow.models.domain import (
    ChangeEntry,
    DocWriteIntent,
    Plan,
    PlanIntent,
    ReviewPackage,
    TestResult,
    TicketKey,
)
from ticketflow.tracker.base import TicketQuery
from tests.conftest import FakeTracker, make_ticket

QUERY = TicketQuery(project="PROJ", statuses=["Open"])


@pytest.fixture
def orchestrator(services) -> WorkflowOrchestrator:
    return WorkflowOrchestrator(services)


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_ticket_to_pull_request(self, orchestrator, tracker, workspace, repository, tmp_path):
        result = await orchestrator.run(QUERY)

        assert result.succeeded
        assert result.state == WorkflowState.DONE
        assert result.pull_request.url == "https://github.com/acme/widgets/pull/7"
        assert result.history == [
            WorkflowState.SELECTING,
            WorkflowState.READING,
            WorkflowState.PLANNING,
            WorkflowState.IMPLEMENTING,
            WorkflowState.TESTING,
            WorkflowState.REVIEW_PACKAGING,
            WorkflowState.PULL_REQUEST_OPEN,
            WorkflowState.DOC_SYNCING,
            WorkflowState.TICKET_UPDATING,
        ]

        workspace.prepare_branch.assert_awaited_once_with("main", "PROJ-101-description")
        repository.create_branch.assert_awaited_once_with("main", "PROJ-101-description")
        descriptor = repository.open_pull_request.await_args.args[0]
        assert descriptor.title == "PROJ-101: Description"
        assert "## Review Focus Areas" in descriptor.body

        # Knowledge lives outside the checkout, so only the code push happens
        workspace.commit_and_push.assert_awaited_once()
        workspace.discard.assert_not_awaited()

        knowledge = tmp_path / "knowledge"
        assert (knowledge / "changelog" / "PROJ-101.md").is_file()
        assert (knowledge / "components" / "config.md").is_file()

        assert len(tracker.comments) == 1
        assert "https://github.com/acme/widgets/pull/7" in tracker.comments[0][1]
        assert tracker.transitions == [("PROJ-101", "Patch Available")]
        assert tracker.tickets["PROJ-101"].status == TicketStatus.PATCH_AVAILABLE

    @pytest.mark.asyncio
    async def test_state_is_persisted(self, orchestrator, state_manager):
        await orchestrator.run(QUERY)

        state = await state_manager.load_state("PROJ-101")
        assert state["status"] == "completed"
        assert state["branch"] == "PROJ-101-description"
        assert state["pull_request"] == "https://github.com/acme/widgets/pull/7"
        assert state["documents"] == ["changelog/PROJ-101.md", "components/config.md"]
        assert state["history"][-1] == "done"

    @pytest.mark.asyncio
    async def test_explicit_ticket(self, orchestrator, tracker):
        tracker.tickets["PROJ-102"] = make_ticket("PROJ-102", summary="Other", priority="Blocker")

        result = await orchestrator.run(ticket_key=TicketKey.parse("PROJ-101"))

        assert result.succeeded
        assert str(result.ticket_key) == "PROJ-101"


class TestSelectionFailures:
    @pytest.mark.asyncio
    async def test_blocked_ticket_is_never_selected(self, orchestrator, services, generator):
        services.tracker = FakeTracker([make_ticket("PROJ-205", blocked_by={"PROJ-200": "Open"})])

        result = await orchestrator.run(QUERY)

        assert result.state == WorkflowState.FAILED
        assert result.failure.state == WorkflowState.SELECTING
        assert result.failure.reason == "NoCandidateFoundError"
        assert result.ticket_key is None
        generator.plan.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_message_names_stage_and_remediation(self, orchestrator, services):
        services.tracker = FakeTracker([])

        result = await orchestrator.run(QUERY)

        assert "stage 'selecting' failed" in result.describe()
        assert "remediation: widen the ticket query" in result.describe()


class TestReading:
    @pytest.mark.asyncio
    async def test_single_retry_recovers(self, orchestrator, tracker):
        tracker.fetch_failures = 1
        with patch("ticketflow.utils.retry.asyncio.sleep", new=AsyncMock()):
            result = await orchestrator.run(QUERY)

        assert result.succeeded
        assert tracker.fetch_calls == 2

    @pytest.mark.asyncio
    async def test_second_failure_fails_the_run(self, orchestrator, tracker, workspace):
        tracker.fetch_failures = 2
        with patch("ticketflow.utils.retry.asyncio.sleep", new=AsyncMock()):
            result = await orchestrator.run(QUERY)

        assert result.failure.state == WorkflowState.READING
        assert result.failure.reason == "TicketFetchError"
        assert tracker.fetch_calls == 2
        workspace.discard.assert_not_awaited()


class TestPlanningAndImplementation:
    @pytest.mark.asyncio
    async def test_empty_plan(self, orchestrator, generator, workspace):
        generator.plan.return_value = Plan()

        result = await orchestrator.run(QUERY)

        assert result.failure.state == WorkflowState.PLANNING
        assert result.failure.reason == "EmptyPlanError"
        workspace.prepare_branch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_intents_applied_in_order(self, orchestrator, generator):
        generator.plan.return_value = Plan(
            intents=[PlanIntent("src/a.py", "first"), PlanIntent("src/b.py", "second")]
        )

        await orchestrator.run(QUERY)

        applied = [call.args[0].path for call in generator.propose.await_args_list]
        assert applied == ["src/a.py", "src/b.py"]

    @pytest.mark.asyncio
    async def test_failed_intent_discards_workspace(self, orchestrator, generator, workspace, repository):
        generator.propose.side_effect = lambda intent, context: ChangeEntry(
            intent=intent, ok=False, detail="could not parse file"
        )

        result = await orchestrator.run(QUERY)

        assert result.failure.state == WorkflowState.IMPLEMENTING
        assert result.failure.reason == "ImplementationError"
        assert "could not parse file" in result.failure.message
        workspace.discard.assert_awaited_once()
        repository.open_pull_request.assert_not_awaited()


class TestRepairLoop:
    @pytest.mark.asyncio
    async def test_budget_exhausted_after_three_runs(
        self, orchestrator, test_runner, generator, workspace, repository, tracker
    ):
        test_runner.run.return_value = TestResult(passed=False, output="1 failed")

        result = await orchestrator.run(QUERY)

        assert test_runner.run.await_count == 3
        assert generator.propose.await_count == 3
        assert result.failure.state == WorkflowState.TESTING
        assert result.failure.reason == "TestsExhaustedError"
        assert result.failure.remediation == "fix the failing tests manually or raise the repair budget"
        workspace.discard.assert_awaited_once()
        repository.open_pull_request.assert_not_awaited()
        assert tracker.comments == []

    @pytest.mark.asyncio
    async def test_repair_receives_failing_output(self, orchestrator, test_runner, generator):
        test_runner.run.side_effect = [
            TestResult(passed=False, output="AssertionError: expected 1"),
            TestResult(passed=True, output="1 passed"),
        ]

        result = await orchestrator.run(QUERY)

        assert result.succeeded
        contexts = [call.args[1] for call in generator.propose.await_args_list]
        assert contexts[0]["feedback"] == ""
        assert contexts[1]["feedback"] == "AssertionError: expected 1"


class TestReviewPackaging:
    @pytest.mark.asyncio
    async def test_incomplete_package_blocks_pull_request(self, orchestrator, generator, repository, workspace):
        generator.review.return_value = ReviewPackage(focus_areas=["Null handling"])

        result = await orchestrator.run(QUERY)

        assert result.failure.state == WorkflowState.REVIEW_PACKAGING
        assert result.failure.reason == "IncompleteReviewPackageError"
        assert "critical_files" in result.failure.message
        assert "testing_instructions" in result.failure.message
        repository.create_branch.assert_not_awaited()
        repository.open_pull_request.assert_not_awaited()
        workspace.commit_and_push.assert_not_awaited()


class TestDocSyncing:
    @pytest.mark.asyncio
    async def test_broken_cross_reference_writes_nothing(self, orchestrator, generator, tracker, tmp_path):
        generator.plan.return_value = Plan(
            intents=[PlanIntent("src/config.py", "Add a null check", component="Config")],
            documentation=[
                DocWriteIntent(
                    path="configuration/loading.md",
                    title="Loading",
                    category="configuration",
                    body="See the [parser](../components/parser.md).",
                )
            ],
        )

        result = await orchestrator.run(QUERY)

        assert result.failure.state == WorkflowState.DOC_SYNCING
        assert result.failure.reason == "BrokenCrossReferenceError"
        assert "configuration/loading.md -> components/parser.md" in result.failure.message
        assert not (tmp_path / "knowledge").exists()
        assert tracker.comments == []
        assert tracker.transitions == []

    @pytest.mark.asyncio
    async def test_documents_inside_checkout_are_pushed(self, services, workspace, tmp_path):
        services.knowledge.root = tmp_path / "checkout" / "docs" / "knowledge"

        result = await WorkflowOrchestrator(services).run(QUERY)

        assert result.succeeded
        assert workspace.commit_and_push.await_count == 2
        assert workspace.commit_and_push.await_args.args == (
            "PROJ-101-description",
            "PROJ-101: update knowledge documentation",
        )


class TestTicketUpdating:
    @pytest.mark.asyncio
    async def test_disallowed_transition_keeps_status(self, orchestrator, services):
        tracker = FakeTracker([make_ticket()], workflow={"Open": ["In Progress"]})
        services.tracker = tracker

        result = await orchestrator.run(QUERY)

        assert result.failure.state == WorkflowState.TICKET_UPDATING
        assert result.failure.reason == "InvalidTransitionError"
        assert tracker.tickets["PROJ-101"].status == TicketStatus.OPEN
        assert tracker.transitions == []
        assert len(tracker.comments) == 1


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_rolls_back_and_records(self, orchestrator, test_runner, workspace, state_manager):
        started = asyncio.Event()

        async def hang(change_set, timeout):
            started.set()
            await asyncio.Event().wait()

        test_runner.run.side_effect = hang
        task = asyncio.create_task(orchestrator.run(QUERY))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        workspace.discard.assert_awaited_once()
        state = await state_manager.load_state("PROJ-101")
        assert state["status"] == "failed"
        assert state["failure"]["reason"] == "WorkflowCancelledError"
        assert state["failure"]["state"] == "testing"


class TestUnexpectedErrors:
    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failed_result(self, orchestrator, generator):
        generator.review.side_effect = KeyError("focus_areas")

        result = await orchestrator.run(QUERY)

        assert result.state == WorkflowState.FAILED
        assert result.failure.state == WorkflowState.REVIEW_PACKAGING
        assert result.failure.reason == "KeyError"
        assert result.failure.remediation == UNEXPECTED_REMEDIATION


@pytest.mark.asyncio
async def test_run_queue_continues_after_failure(orchestrator, tracker):
    tracker.tickets["PROJ-102"] = make_ticket("PROJ-102", blocked_by={"PROJ-1": "Open"})

    results = await orchestrator.run_queue([TicketKey.parse("PROJ-102"), TicketKey.parse("PROJ-101")])

    assert [r.state for r in results] == [WorkflowState.FAILED, WorkflowState.DONE]
    assert results[0].failure.reason == "NoCandidateFoundError"
