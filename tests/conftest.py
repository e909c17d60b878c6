"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from ticketflow.capabilities.base import CodeGenerator, TestRunner
from ticketflow.config.settings import TicketflowSettings
from ticketflow.engine.context import WorkflowServices
from ticketflow.engine.state_manager import StateManager
from ticketflow.enums import LinkType, TicketStatus
from ticketflow.exceptions import InvalidTransitionError, RemoteError
from ticketflow.knowledge.store import KnowledgeStore
from ticketflow.models.domain import (
    ChangeEntry,
    Plan,
    PlanIntent,
    PullRequestHandle,
    ReviewPackage,
    TestResult,
    Ticket,
    TicketKey,
    TicketLink,
)
from ticketflow.repository.base import RepositoryClient
from ticketflow.repository.workspace import GitWorkspace
from ticketflow.tracker.base import TicketClient, TicketQuery, Transition

# Status -> statuses reachable in one transition
DEFAULT_WORKFLOW = {
    "Open": ["In Progress", "Patch Available"],
    "In Progress": ["Patch Available", "Open"],
    "Patch Available": ["Resolved", "Open"],
    "Resolved": ["Closed"],
}


def make_ticket(
    key: str = "PROJ-101",
    summary: str = "Description",
    description: str = "Add a null check",
    priority: str = "Major",
    status: TicketStatus | str = TicketStatus.OPEN,
    blocked_by: dict[str, str] | None = None,
    updated_at: datetime | None = None,
    components: list[str] | None = None,
) -> Ticket:
    """Build a ticket; ``blocked_by`` maps blocking keys to their status."""
    return Ticket(
        key=TicketKey.parse(key),
        summary=summary,
        description=description,
        status=status,
        priority=priority,
        components=components or [],
        links=[
            TicketLink(type=LinkType.IS_BLOCKED_BY, target=TicketKey.parse(k), target_status=s)
            for k, s in (blocked_by or {}).items()
        ],
        updated_at=updated_at or datetime(2024, 1, 15, 10, 30, tzinfo=UTC),
        url=f"https://issues.example.org/jira/browse/{key}",
    )


class FakeTracker(TicketClient):
    """In-memory tracker honoring a status workflow."""

    def __init__(self, tickets: list[Ticket], workflow: dict[str, list[str]] | None = None) -> None:
        self.tickets = {str(t.key): t for t in tickets}
        self.workflow = workflow or DEFAULT_WORKFLOW
        self.comments: list[tuple[str, str]] = []
        self.transitions: list[tuple[str, str]] = []
        self.links: list[tuple[str, str, LinkType]] = []
        self.fetch_calls = 0
        self.fetch_failures = 0

    async def fetch(self, key: TicketKey) -> Ticket:
        self.fetch_calls += 1
        if self.fetch_failures:
            self.fetch_failures -= 1
            raise RemoteError("tracker unavailable", status_code=503)
        return self.tickets[str(key)]

    async def search(self, query: TicketQuery) -> AsyncIterator[Ticket]:
        for ticket in self.tickets.values():
            if query.statuses and ticket.status_name not in query.statuses:
                continue
            if ticket.unresolved_blockers:
                continue
            yield ticket

    async def comment(self, key: TicketKey, body: str) -> None:
        self.comments.append((str(key), body))

    async def link(self, source: TicketKey, target: TicketKey, link_type: LinkType) -> None:
        self.links.append((str(source), str(target), link_type))

    async def available_transitions(self, key: TicketKey) -> list[Transition]:
        current = self.tickets[str(key)].status_name
        return [
            Transition(id=str(i), name=status, to_status=status)
            for i, status in enumerate(self.workflow.get(current, []), start=1)
        ]

    async def transition(self, key: TicketKey, target_status: str) -> None:
        allowed = [t.to_status for t in await self.available_transitions(key)]
        if target_status not in allowed:
            raise InvalidTransitionError(str(key), target_status, available=allowed)
        self.tickets[str(key)].status = TicketStatus.from_name(target_status) or target_status
        self.transitions.append((str(key), target_status))


@pytest.fixture
def settings(tmp_path: Path) -> TicketflowSettings:
    """Settings pointing every directory into tmp_path."""
    return TicketflowSettings(
        tracker={"base_url": "https://issues.example.org/jira", "project": "PROJ"},
        repository={"owner": "acme", "name": "widgets", "workspace": str(tmp_path / "checkout")},
        workflow={"state_directory": str(tmp_path / "state"), "fetch_backoff": 1.0},
        knowledge={"root": str(tmp_path / "knowledge")},
    )


@pytest.fixture
def state_manager(tmp_path: Path) -> StateManager:
    return StateManager(tmp_path / "state")


@pytest.fixture
def knowledge_store(tmp_path: Path) -> KnowledgeStore:
    return KnowledgeStore(tmp_path / "knowledge")


@pytest.fixture
def sample_ticket() -> Ticket:
    return make_ticket()


@pytest.fixture
def tracker(sample_ticket: Ticket) -> FakeTracker:
    return FakeTracker([sample_ticket])


@pytest.fixture
def review_package() -> ReviewPackage:
    return ReviewPackage(
        focus_areas=["Null handling in the config loader"],
        critical_files=["src/config.py"],
        testing_instructions="Run pytest tests/test_config.py",
    )


@pytest.fixture
def generator(review_package: ReviewPackage) -> MagicMock:
    """Code generator planning a single intent and applying it cleanly."""
    mock = MagicMock(spec=CodeGenerator)
    mock.plan.return_value = Plan(
        intents=[PlanIntent(path="src/config.py", summary="Add a null check", component="Config")],
        summary="Guard against a missing config value",
    )
    mock.propose.side_effect = lambda intent, context: ChangeEntry(
        intent=intent, ok=True, files=[intent.path]
    )
    mock.review.return_value = review_package
    return mock


@pytest.fixture
def test_runner() -> MagicMock:
    mock = MagicMock(spec=TestRunner)
    mock.run.return_value = TestResult(passed=True, output="1 passed")
    return mock


@pytest.fixture
def workspace(tmp_path: Path) -> MagicMock:
    mock = MagicMock(spec=GitWorkspace)
    mock.path = tmp_path / "checkout"
    mock.commit_and_push.return_value = "0123abc"
    return mock


@pytest.fixture
def repository() -> MagicMock:
    mock = MagicMock(spec=RepositoryClient)
    mock.open_pull_request.side_effect = lambda descriptor: PullRequestHandle(
        number=7,
        url="https://github.com/acme/widgets/pull/7",
        head=descriptor.head,
    )
    return mock


@pytest.fixture
def services(
    settings: TicketflowSettings,
    tracker: FakeTracker,
    repository: MagicMock,
    workspace: MagicMock,
    knowledge_store: KnowledgeStore,
    generator: MagicMock,
    test_runner: MagicMock,
    state_manager: StateManager,
) -> WorkflowServices:
    return WorkflowServices(
        settings=settings,
        tracker=tracker,
        repository=repository,
        workspace=workspace,
        knowledge=knowledge_store,
        generator=generator,
        test_runner=test_runner,
        state=state_manager,
        query=TicketQuery(project="PROJ", statuses=["Open"]),
    )
