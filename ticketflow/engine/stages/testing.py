"""Testing: run the test capability with a bounded repair loop."""

import structlog

from ticketflow.engine.stages.base import WorkflowStage
from ticketflow.enums import WorkflowState
from ticketflow.exceptions import TestsExhaustedError
from ticketflow.models.domain import WorkItem

log = structlog.get_logger(__name__)


class TestingStage(WorkflowStage):
    """Moves on when tests pass, loops back to Implementing otherwise.

    After ``workflow.max_repair_iterations`` failed runs the work item fails
    with ``TestsExhaustedError``.
    """

    __test__ = False
    handles = WorkflowState.TESTING

    async def execute(self, item: WorkItem) -> WorkflowState:
        budget = self.settings.workflow.max_repair_iterations
        item.test_iterations += 1

        result = await self.services.test_runner.run(item.change_set, self.settings.tests.timeout)
        result.iteration = item.test_iterations
        item.change_set.test_result = result

        if result.passed:
            log.info("tests_passed", iteration=item.test_iterations)
            item.feedback = ""
            return WorkflowState.REVIEW_PACKAGING

        log.warning(
            "tests_failed",
            iteration=item.test_iterations,
            budget=budget,
            timed_out=result.timed_out,
        )
        if item.test_iterations >= budget:
            raise TestsExhaustedError(item.test_iterations, result.output)

        item.feedback = result.output
        return WorkflowState.IMPLEMENTING
