"""Tests for ticketflow/engine/state_manager.py."""

import json

import pytest

from ticketflow.engine.state_manager import TRACKED_STATES, StateManager
from ticketflow.enums import WorkflowState
from ticketflow.models.domain import PullRequestHandle, StageFailure, TicketKey, WorkflowResult


@pytest.mark.asyncio
async def test_initial_state_is_pending(state_manager: StateManager):
    state = await state_manager.load_state("PROJ-1")

    assert state["status"] == "pending"
    assert list(state["stages"]) == [s.value for s in TRACKED_STATES]
    assert not state_manager.exists("PROJ-1")


@pytest.mark.asyncio
async def test_transaction_persists(state_manager: StateManager):
    async with state_manager.transaction("PROJ-1") as state:
        state["branch"] = "PROJ-1-fix"

    assert state_manager.exists("PROJ-1")
    on_disk = json.loads(state_manager._get_state_path("PROJ-1").read_text())
    assert on_disk["branch"] == "PROJ-1-fix"
    assert state_manager.list_tickets() == ["PROJ-1"]


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(state_manager: StateManager):
    with pytest.raises(RuntimeError):
        async with state_manager.transaction("PROJ-1") as state:
            state["branch"] = "PROJ-1-fix"
            raise RuntimeError("boom")

    assert not state_manager.exists("PROJ-1")


@pytest.mark.asyncio
async def test_mark_stage_updates_overall_status(state_manager: StateManager):
    await state_manager.mark_stage("PROJ-1", WorkflowState.SELECTING, "in_progress")
    state = await state_manager.load_state("PROJ-1")
    assert state["status"] == "in_progress"
    assert "started_at" in state["stages"]["selecting"]

    for stage in TRACKED_STATES:
        await state_manager.mark_stage("PROJ-1", stage, "completed")
    state = await state_manager.load_state("PROJ-1")
    assert state["status"] == "completed"


@pytest.mark.asyncio
async def test_record_failure(state_manager: StateManager):
    result = WorkflowResult(
        ticket_key=TicketKey.parse("PROJ-1"),
        state=WorkflowState.FAILED,
        failure=StageFailure(
            state=WorkflowState.TESTING,
            reason="TestsExhaustedError",
            message="Tests still failing after 3 iteration(s)",
            remediation="fix the failing tests manually or raise the repair budget",
        ),
        history=[WorkflowState.SELECTING, WorkflowState.READING, WorkflowState.TESTING],
    )

    await state_manager.record_result(result, branch="PROJ-1-fix", iterations=3, documents=[])

    state = await state_manager.load_state("PROJ-1")
    assert state["status"] == "failed"
    assert state["failure"]["reason"] == "TestsExhaustedError"
    assert state["stages"]["testing"]["status"] == "failed"
    assert state["test_iterations"] == 3
    assert state["history"][-1] == "failed"


@pytest.mark.asyncio
async def test_record_success(state_manager: StateManager):
    result = WorkflowResult(
        ticket_key=TicketKey.parse("PROJ-1"),
        state=WorkflowState.DONE,
        pull_request=PullRequestHandle(7, "https://github.com/acme/widgets/pull/7", head="PROJ-1-fix"),
    )

    await state_manager.record_result(result, branch="PROJ-1-fix", iterations=1, documents=["changelog/PROJ-1.md"])

    state = await state_manager.load_state("PROJ-1")
    assert state["pull_request"] == "https://github.com/acme/widgets/pull/7"
    assert state["documents"] == ["changelog/PROJ-1.md"]
    assert state["failure"] is None


@pytest.mark.asyncio
async def test_record_without_ticket_is_ignored(state_manager: StateManager):
    await state_manager.record_result(
        WorkflowResult(ticket_key=None, state=WorkflowState.FAILED), branch=None, iterations=0, documents=[]
    )
    assert state_manager.list_tickets() == []


@pytest.mark.asyncio
async def test_start_run_resets_but_keeps_created_at(state_manager: StateManager):
    await state_manager.mark_stage("PROJ-1", WorkflowState.SELECTING, "failed", error="boom")
    created = (await state_manager.load_state("PROJ-1"))["created_at"]

    await state_manager.start_run("PROJ-1")

    state = await state_manager.load_state("PROJ-1")
    assert state["status"] == "pending"
    assert state["created_at"] == created
    assert state["stages"]["selecting"] == {"status": "pending"}
