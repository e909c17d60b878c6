"""CLI entry point for ticketflow."""

import asyncio
import sys
from pathlib import Path

import click
import structlog

from ticketflow.capabilities.external_agent import ExternalAgentGenerator
from ticketflow.capabilities.test_runner import ShellTestRunner
from ticketflow.cli.agent import agent_command
from ticketflow.cli.credentials import credentials_group
from ticketflow.cli.docs import docs_group
from ticketflow.config.settings import TicketflowSettings
from ticketflow.credentials import CredentialProvider
from ticketflow.engine.context import WorkflowServices
from ticketflow.engine.orchestrator import WorkflowOrchestrator
from ticketflow.engine.stages import select_candidate
from ticketflow.engine.state_manager import StateManager
from ticketflow.exceptions import ConfigurationError, TicketflowError
from ticketflow.knowledge.store import KnowledgeStore
from ticketflow.models.domain import Ticket, TicketKey, WorkflowResult
from ticketflow.repository.github_rest import GitHubRepositoryClient
from ticketflow.repository.workspace import GitWorkspace
from ticketflow.tracker.base import TicketQuery
from ticketflow.tracker.jira_rest import JiraRestClient
from ticketflow.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)

DEFAULT_CONFIG = "ticketflow.yaml"


@click.group()
@click.option("--config", default=DEFAULT_CONFIG, help="Path to configuration file")
@click.option("--log-level", default="INFO", help="Logging level")
@click.pass_context
def cli(ctx: click.Context, config: str, log_level: str) -> None:
    """ticketflow: work tracker tickets through to a reviewed pull request."""
    configure_logging(log_level)

    # agent and credentials use the configuration only when it is present
    optional_config = ctx.invoked_subcommand in ("agent", "credentials")

    config_path = Path(config)
    if not config_path.exists():
        if optional_config:
            ctx.obj = {"settings": None}
            return
        click.echo(f"Error: Configuration file not found: {config}", err=True)
        sys.exit(1)

    try:
        settings = TicketflowSettings.from_yaml(str(config_path))
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("config_error", exc_info=True)
        sys.exit(1)

    ctx.obj = {"settings": settings}


def _build_query(
    settings: TicketflowSettings,
    project: str | None,
    statuses: tuple[str, ...],
    assignee: str | None,
    labels: tuple[str, ...],
) -> TicketQuery:
    return TicketQuery(
        project=project or settings.tracker.project,
        statuses=list(statuses) or list(settings.workflow.selection_statuses),
        assignee=assignee,
        labels=list(labels),
        page_size=settings.tracker.page_size,
    )


def _create_tracker(settings: TicketflowSettings, credentials: CredentialProvider) -> JiraRestClient:
    return JiraRestClient(
        base_url=str(settings.tracker.base_url),
        credentials=credentials,
        page_size=settings.tracker.page_size,
        timeout=settings.tracker.timeout,
        max_connections=settings.tracker.max_connections,
    )


def create_services(
    settings: TicketflowSettings,
    tracker: JiraRestClient,
    repository: GitHubRepositoryClient,
) -> WorkflowServices:
    """Wire every collaborator of one orchestrator from configuration."""
    workspace = GitWorkspace(settings.workspace_dir, remote=settings.repository.remote)
    generator = ExternalAgentGenerator(
        workspace=workspace,
        command=settings.agent.command,
        model=settings.agent.model,
        timeout=settings.agent.timeout,
        extra_args=settings.agent.extra_args,
    )
    return WorkflowServices(
        settings=settings,
        tracker=tracker,
        repository=repository,
        workspace=workspace,
        knowledge=KnowledgeStore(settings.knowledge_dir, settings.knowledge.categories),
        generator=generator,
        test_runner=ShellTestRunner(settings.tests.command, cwd=settings.workspace_dir),
        state=StateManager(settings.state_dir),
    )


async def _run_workflow(
    settings: TicketflowSettings,
    query: TicketQuery,
    ticket_keys: list[TicketKey],
) -> list[WorkflowResult]:
    credentials = CredentialProvider(settings.credentials.references())
    tracker = _create_tracker(settings, credentials)
    repository = GitHubRepositoryClient(
        owner=settings.repository.owner,
        repo=settings.repository.name,
        credentials=credentials,
        base_url=settings.repository.api_url,
    )

    # The repository client connects lazily on first use
    async with credentials, tracker:
        services = create_services(settings, tracker, repository)
        try:
            orchestrator = WorkflowOrchestrator(services)
            if ticket_keys:
                return await orchestrator.run_queue(ticket_keys)
            return [await orchestrator.run(query)]
        finally:
            await repository.disconnect()


async def _select(settings: TicketflowSettings, query: TicketQuery) -> Ticket:
    credentials = CredentialProvider(settings.credentials.references())
    async with credentials, _create_tracker(settings, credentials) as tracker:
        return await select_candidate(tracker, query)


def _parse_key(value: str) -> TicketKey:
    try:
        return TicketKey.parse(value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--ticket") from e


@cli.command()
@click.option(
    "--ticket",
    "tickets",
    multiple=True,
    help="Work this ticket instead of selecting one (e.g. PROJ-101); repeat to queue several",
)
@click.option("--project", help="Project key to select from (default: tracker.project)")
@click.option("--status", "statuses", multiple=True, help="Eligible status (repeatable)")
@click.option("--assignee", help="Assignee filter; 'me' or 'unassigned' are understood")
@click.option("--label", "labels", multiple=True, help="Required label (repeatable)")
@click.pass_context
def run(
    ctx: click.Context,
    tickets: tuple[str, ...],
    project: str | None,
    statuses: tuple[str, ...],
    assignee: str | None,
    labels: tuple[str, ...],
) -> None:
    """Work tickets from selection through to a pull request.

    Without --ticket one candidate is selected from the query. Queued
    tickets run one after another and a failure does not stop the queue.
    """
    settings = ctx.obj["settings"]
    ticket_keys = [_parse_key(ticket) for ticket in tickets]
    query = _build_query(settings, project, statuses, assignee, labels)

    try:
        results = asyncio.run(_run_workflow(settings, query, ticket_keys))
    except TicketflowError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("run_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)
    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        log.error("run_unexpected", exc_info=True)
        sys.exit(1)

    for result in results:
        if result.succeeded:
            click.echo(f"✅ {result.describe()}")
        else:
            click.echo(f"❌ {result.describe()}", err=True)
    if not all(result.succeeded for result in results):
        sys.exit(1)


@cli.command()
@click.option("--project", help="Project key to select from (default: tracker.project)")
@click.option("--status", "statuses", multiple=True, help="Eligible status (repeatable)")
@click.option("--assignee", help="Assignee filter")
@click.option("--label", "labels", multiple=True, help="Required label (repeatable)")
@click.pass_context
def select(
    ctx: click.Context,
    project: str | None,
    statuses: tuple[str, ...],
    assignee: str | None,
    labels: tuple[str, ...],
) -> None:
    """Show which ticket would be worked next, without changing anything."""
    settings = ctx.obj["settings"]
    query = _build_query(settings, project, statuses, assignee, labels)

    try:
        ticket = asyncio.run(_select(settings, query))
    except TicketflowError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        log.error("select_unexpected", exc_info=True)
        sys.exit(1)

    click.echo(f"{ticket.key} [{ticket.priority or 'no priority'}] {ticket.summary}")
    if ticket.url:
        click.echo(f"  {ticket.url}")


@cli.command()
@click.argument("ticket")
@click.pass_context
def status(ctx: click.Context, ticket: str) -> None:
    """Show the recorded state of the latest run on TICKET."""
    settings = ctx.obj["settings"]
    key = str(_parse_key(ticket))
    state_manager = StateManager(settings.state_dir)

    if not state_manager.exists(key):
        click.echo(f"No run recorded for {key}", err=True)
        sys.exit(1)

    state = asyncio.run(state_manager.load_state(key))
    click.echo(f"{key}: {state['status']} (updated {state['updated_at']})")
    for name, record in state["stages"].items():
        click.echo(f"  {name:<18} {record['status']}")
    if state["branch"]:
        click.echo(f"Branch: {state['branch']}")
    if state["pull_request"]:
        click.echo(f"Pull request: {state['pull_request']}")
    failure = state["failure"]
    if failure:
        click.echo(f"Failure: {failure['reason']} in {failure['state']}: {failure['message']}")
        click.echo(f"Remediation: {failure['remediation']}")


cli.add_command(agent_command)
cli.add_command(credentials_group)
cli.add_command(docs_group)


if __name__ == "__main__":
    cli()
