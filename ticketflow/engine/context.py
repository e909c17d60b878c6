"""Collaborators shared by every workflow stage of one orchestrator."""

from dataclasses import dataclass, field

from ticketflow.capabilities.base import CodeGenerator, TestRunner
from ticketflow.config.settings import TicketflowSettings
from ticketflow.engine.state_manager import StateManager
from ticketflow.knowledge.store import KnowledgeStore
from ticketflow.rendering.engine import TemplateEngine
from ticketflow.repository.base import RepositoryClient
from ticketflow.repository.workspace import GitWorkspace
from ticketflow.tracker.base import TicketClient, TicketQuery


@dataclass
class WorkflowServices:
    """Everything a stage may talk to.

    ``query`` is replaced by the orchestrator at the start of each run; the
    run lock guarantees only one run reads it at a time.
    """

    settings: TicketflowSettings
    tracker: TicketClient
    repository: RepositoryClient
    workspace: GitWorkspace
    knowledge: KnowledgeStore
    generator: CodeGenerator
    test_runner: TestRunner
    state: StateManager
    templates: TemplateEngine = field(default_factory=TemplateEngine)
    query: TicketQuery = field(default_factory=TicketQuery)
