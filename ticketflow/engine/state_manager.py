"""
State persistence with atomic transactions for work items.

Each ticket gets its own JSON file recording the per-state progress of the
latest orchestration run, its branch, pull request and failure. Files are
written atomically (temporary file + rename) under a per-ticket lock.

Example:
    >>> state = StateManager(".ticketflow/state")
    >>> async with state.transaction("PROJ-101") as record:
    ...     record["branch"] = "PROJ-101-description"
"""

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import cast

import aiofiles
import structlog

from ticketflow.engine.types import StageRecord, TicketRunState
from ticketflow.enums import WorkflowState
from ticketflow.models.domain import WorkflowResult

log = structlog.get_logger(__name__)

TRACKED_STATES = [state for state in WorkflowState if not state.is_terminal]


class StateManager:
    """Manage per-ticket run state with atomic file operations.

    Thread Safety:
        Designed for single-threaded asyncio usage. Each ticket has its own
        lock; lock creation is guarded by a meta-lock.
    """

    def __init__(self, state_dir: str | Path) -> None:
        self.state_dir = Path(state_dir)
        self._locks: dict[str, asyncio.Lock] = {}
        self._locks_lock = asyncio.Lock()

    async def _get_lock(self, ticket: str) -> asyncio.Lock:
        async with self._locks_lock:
            if ticket not in self._locks:
                self._locks[ticket] = asyncio.Lock()
            return self._locks[ticket]

    def _get_state_path(self, ticket: str) -> Path:
        return self.state_dir / f"{ticket}.json"

    def exists(self, ticket: str) -> bool:
        return self._get_state_path(ticket).exists()

    def list_tickets(self) -> list[str]:
        if not self.state_dir.exists():
            return []
        return sorted(path.stem for path in self.state_dir.glob("*.json"))

    async def _load_state_internal(self, ticket: str) -> TicketRunState:
        """Load state without acquiring the ticket lock.

        Warning:
            Caller MUST hold the ticket lock.
        """
        state_path = self._get_state_path(ticket)
        if not state_path.exists():
            return self._create_initial_state(ticket)

        async with aiofiles.open(state_path) as f:
            content = await f.read()
            return cast(TicketRunState, json.loads(content))

    async def _save_state_internal(self, ticket: str, state: TicketRunState) -> None:
        state["updated_at"] = datetime.now(UTC).isoformat()
        state["status"] = self._calculate_overall_status(state)
        await self._write_state(self._get_state_path(ticket), state)

    async def load_state(self, ticket: str) -> TicketRunState:
        """Current state for a ticket; a fresh pending state if none exists."""
        lock = await self._get_lock(ticket)
        async with lock:
            return await self._load_state_internal(ticket)

    async def save_state(self, ticket: str, state: TicketRunState) -> None:
        lock = await self._get_lock(ticket)
        async with lock:
            await self._save_state_internal(ticket, state)

    async def _write_state(self, path: Path, state: TicketRunState) -> None:
        """Write state atomically: temporary file in the same directory, then rename."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")

        async with aiofiles.open(tmp_path, "w") as f:
            await f.write(json.dumps(state, indent=2))

        tmp_path.replace(path)

    @asynccontextmanager
    async def transaction(self, ticket: str) -> AsyncIterator[TicketRunState]:
        """Load, modify in place and save atomically on exit.

        If an exception occurs within the context the state is not saved.
        """
        lock = await self._get_lock(ticket)
        async with lock:
            state = await self._load_state_internal(ticket)
            try:
                yield state
                await self._save_state_internal(ticket, state)
            except Exception:
                log.error("state_transaction_failed", ticket=ticket)
                raise

    def _create_initial_state(self, ticket: str) -> TicketRunState:
        now = datetime.now(UTC).isoformat()
        return {
            "ticket": ticket,
            "status": "pending",
            "created_at": now,
            "updated_at": now,
            "stages": {state.value: {"status": "pending"} for state in TRACKED_STATES},
            "branch": None,
            "pull_request": None,
            "test_iterations": 0,
            "documents": [],
            "failure": None,
            "history": [],
        }

    def _calculate_overall_status(self, state: TicketRunState) -> str:
        """Overall status from stage statuses.

        1. A recorded failure or any failed stage -> "failed"
        2. All stages completed -> "completed"
        3. Any stage started -> "in_progress"
        4. Otherwise -> "pending"
        """
        stages = state.get("stages", {})

        if state.get("failure") or any(s.get("status") == "failed" for s in stages.values()):
            return "failed"
        if stages and all(s.get("status") == "completed" for s in stages.values()):
            return "completed"
        if any(s.get("status") in ("in_progress", "completed") for s in stages.values()):
            return "in_progress"
        return "pending"

    async def start_run(self, ticket: str) -> None:
        """Reset the ticket's record for a new run, keeping ``created_at``."""
        async with self.transaction(ticket) as state:
            fresh = self._create_initial_state(ticket)
            fresh["created_at"] = state["created_at"]
            state.clear()
            state.update(fresh)
        log.debug("run_started", ticket=ticket)

    async def mark_stage(
        self,
        ticket: str,
        stage: WorkflowState,
        status: str,
        error: str | None = None,
    ) -> None:
        """Record a status change of one workflow state."""
        async with self.transaction(ticket) as state:
            record: StageRecord = state["stages"].setdefault(stage.value, {"status": "pending"})
            record["status"] = status
            now = datetime.now(UTC).isoformat()
            if status == "in_progress":
                record["started_at"] = now
            else:
                record["completed_at"] = now
            if error:
                record["error"] = error

    async def record_result(self, result: WorkflowResult, branch: str | None, iterations: int, documents: list[str]) -> None:
        """Persist the outcome of a finished run."""
        if result.ticket_key is None:
            return
        async with self.transaction(str(result.ticket_key)) as state:
            state["branch"] = branch
            state["pull_request"] = result.pull_request.url if result.pull_request else None
            state["test_iterations"] = iterations
            state["documents"] = list(documents)
            state["history"] = [s.value for s in [*result.history, result.state]]
            if result.failure:
                state["failure"] = {
                    "state": result.failure.state.value,
                    "reason": result.failure.reason,
                    "message": result.failure.message,
                    "remediation": result.failure.remediation,
                }
                record = state["stages"].setdefault(result.failure.state.value, {"status": "pending"})
                record["status"] = "failed"
                record["error"] = result.failure.message
