"""DocSyncing: update the knowledge tree for the ticket, all or nothing."""

import structlog

from ticketflow.engine.stages.base import WorkflowStage
from ticketflow.enums import WorkflowState
from ticketflow.knowledge.planner import plan_document_updates, render_document
from ticketflow.models.domain import WorkItem

log = structlog.get_logger(__name__)


class DocSyncStage(WorkflowStage):
    """Stages one write per planned document, then commits the batch.

    A broken cross-reference anywhere in the resulting tree raises
    ``BrokenCrossReferenceError`` from ``commit()`` and nothing is written.
    Committed documents inside the workspace are pushed to the PR branch.
    """

    handles = WorkflowState.DOC_SYNCING

    async def execute(self, item: WorkItem) -> WorkflowState:
        ticket = self._ticket(item)
        knowledge = self.services.knowledge

        components = list(dict.fromkeys([*ticket.components, *item.plan.affected_components]))
        intents = plan_document_updates(
            ticket, item.plan, components, existing=knowledge.committed_paths()
        )

        for intent in intents:
            existing = await knowledge.read(intent.path) if await knowledge.exists(intent.path) else None
            content = render_document(intent, existing, self.services.templates)
            await knowledge.write(intent.path, content)

        item.documents_written = await knowledge.commit()
        log.info("documentation_synced", documents=item.documents_written)

        workspace = self.services.workspace
        inside_workspace = knowledge.root.resolve().is_relative_to(workspace.path.resolve())
        if item.documents_written and inside_workspace and item.branch:
            await workspace.commit_and_push(item.branch, f"{ticket.key}: update knowledge documentation")

        return WorkflowState.TICKET_UPDATING
