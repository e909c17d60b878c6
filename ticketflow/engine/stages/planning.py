"""Planning: ordered file-level intents from ticket text and knowledge."""

import structlog

from ticketflow.engine.stages.base import WorkflowStage
from ticketflow.enums import WorkflowState
from ticketflow.exceptions import EmptyPlanError
from ticketflow.models.domain import WorkItem
from ticketflow.utils.text import slugify

log = structlog.get_logger(__name__)


def branch_name(key: str, summary: str, max_length: int = 40) -> str:
    """Work branch ``{KEY}-{slug of summary}``."""
    slug = slugify(summary, max_length=max_length)
    return f"{key}-{slug}" if slug else key


class PlanningStage(WorkflowStage):
    """Asks the code generator for a plan and prepares the work branch."""

    handles = WorkflowState.PLANNING

    async def execute(self, item: WorkItem) -> WorkflowState:
        ticket = self._ticket(item)

        context = await self.services.knowledge.gather_context(ticket.components)
        plan = await self.services.generator.plan(ticket, context)
        if plan.is_empty:
            raise EmptyPlanError(f"No file-level changes planned for {ticket.key}")

        item.plan = plan
        log.info(
            "plan_ready",
            intents=len(plan.intents),
            files=[intent.path for intent in plan.intents],
        )

        branch = branch_name(
            str(ticket.key), ticket.summary, self.settings.workflow.branch_slug_length
        )
        await self.services.workspace.prepare_branch(self.settings.repository.default_branch, branch)
        item.branch = branch
        return WorkflowState.IMPLEMENTING
