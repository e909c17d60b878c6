"""
Abstract capability interfaces.

These isolate the workflow state machine from any specific automation
technology: the orchestrator only sees plans, change entries, review
packages and test results.
"""

from abc import ABC, abstractmethod
from typing import Any

from ticketflow.models.domain import (
    ChangeEntry,
    ChangeSet,
    Plan,
    PlanIntent,
    ReviewPackage,
    TestResult,
    Ticket,
    WorkItem,
)


class CodeGenerator(ABC):
    """Produces plans, applies intents and describes the result for review."""

    @abstractmethod
    async def plan(self, ticket: Ticket, context: dict[str, str]) -> Plan:
        """Ordered file-level plan for ``ticket``.

        Args:
            ticket: Full ticket detail
            context: Knowledge documents by store path
        """
        pass

    @abstractmethod
    async def propose(self, intent: PlanIntent, context: dict[str, Any]) -> ChangeEntry:
        """Apply one intent to the workspace.

        Args:
            intent: The intent to apply
            context: ``ticket`` plus, on repair iterations, ``feedback``
                holding the failing test output

        Returns:
            Entry with ``ok`` False when the intent could not be applied
        """
        pass

    @abstractmethod
    async def review(self, work_item: WorkItem) -> ReviewPackage:
        """Review-focus metadata for the applied, tested change set."""
        pass


class TestRunner(ABC):
    """Runs the project's build/test step."""

    __test__ = False

    @abstractmethod
    async def run(self, change_set: ChangeSet, timeout: float) -> TestResult:
        """Run tests against the workspace.

        A run exceeding ``timeout`` seconds is a failed result with
        ``timed_out`` set, never an exception.
        """
        pass
