"""PullRequestOpen: push the work branch and open or update its pull request."""

import structlog

from ticketflow.engine.stages.base import WorkflowStage
from ticketflow.enums import WorkflowState
from ticketflow.models.domain import PullRequestDescriptor, WorkItem
from ticketflow.rendering.engine import TemplateEngine

log = structlog.get_logger(__name__)


def build_descriptor(item: WorkItem, base: str, templates: TemplateEngine) -> PullRequestDescriptor:
    """Pull request title and body with the review package embedded verbatim."""
    ticket = item.ticket
    assert ticket is not None and item.review is not None and item.branch is not None

    body = templates.render(
        "pull_request.md.j2",
        {
            "summary": item.plan.summary or ticket.summary,
            "ticket_key": str(ticket.key),
            "ticket_url": ticket.url,
            "changes": [
                {"path": e.intent.path, "action": str(e.intent.action), "summary": e.intent.summary}
                for e in item.change_set.entries
            ],
            "review": item.review,
        },
    )
    return PullRequestDescriptor(
        title=f"{ticket.key}: {ticket.summary}",
        body=body,
        base=base,
        head=item.branch,
        ticket=ticket.key,
    )


class PullRequestStage(WorkflowStage):
    """Idempotent on retry: the pull request is keyed by head branch."""

    handles = WorkflowState.PULL_REQUEST_OPEN

    async def execute(self, item: WorkItem) -> WorkflowState:
        ticket = self._ticket(item)
        base = self.settings.repository.default_branch
        descriptor = build_descriptor(item, base, self.services.templates)

        # The push creates the remote branch under its lease; create_branch only
        # confirms it exists on the host before the pull request refers to it.
        await self.services.workspace.commit_and_push(descriptor.head, descriptor.title)
        await self.services.repository.create_branch(base, descriptor.head)
        handle = await self.services.repository.open_pull_request(descriptor)

        item.pull_request = handle
        log.info(
            "pull_request_open",
            ticket=str(ticket.key),
            number=handle.number,
            url=handle.url,
            created=handle.created,
        )
        return WorkflowState.DOC_SYNCING
