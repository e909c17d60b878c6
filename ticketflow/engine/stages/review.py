"""ReviewPackaging: mandatory review metadata, checked before any PR exists."""

import structlog

from ticketflow.engine.stages.base import WorkflowStage
from ticketflow.enums import WorkflowState
from ticketflow.exceptions import IncompleteReviewPackageError
from ticketflow.models.domain import WorkItem

log = structlog.get_logger(__name__)


class ReviewStage(WorkflowStage):
    handles = WorkflowState.REVIEW_PACKAGING

    async def execute(self, item: WorkItem) -> WorkflowState:
        package = await self.services.generator.review(item)

        missing = package.missing_fields()
        if missing:
            raise IncompleteReviewPackageError(missing)

        item.review = package
        log.info(
            "review_package_ready",
            focus_areas=len(package.focus_areas),
            critical_files=package.critical_files,
        )
        return WorkflowState.PULL_REQUEST_OPEN
