"""Tests for ticketflow/capabilities."""

import asyncio
import subprocess
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ticketflow.capabilities.external_agent import ExternalAgentGenerator, extract_json
from ticketflow.capabilities.test_runner import ShellTestRunner
from ticketflow.enums import ChangeAction
from ticketflow.exceptions import AgentError
from ticketflow.models.domain import ChangeSet, PlanIntent, TestResult, WorkItem
from ticketflow.repository.workspace import GitWorkspace
from tests.conftest import make_ticket

PLAN_REPLY = """Here is the plan:

```json
{"summary": "Guard config",
 "intents": [
   {"path": "src/config.py", "action": "modify", "summary": "Add a null check", "component": "Config"},
   {"path": "tests/test_config.py", "action": "CREATE", "summary": "Cover it"},
   {"path": "", "summary": "ignored"},
   {"path": "docs/x.py", "action": "rewrite", "summary": "unknown action"}
 ],
 "documentation": [{"path": "configuration/loading.md", "title": "Loading", "body": "Nulls rejected",
                    "links": "architecture/overview.md"}]}
```
"""


class TestExtractJson:
    def test_fenced_block(self):
        assert extract_json('text\n```json\n{"ok": true}\n```\n') == {"ok": True}

    def test_bare_object(self):
        assert extract_json('Done! {"ok": false, "detail": "x"} bye') == {"ok": False, "detail": "x"}

    def test_no_json(self):
        with pytest.raises(AgentError):
            extract_json("I could not do it")

    def test_invalid_json(self):
        with pytest.raises(AgentError):
            extract_json("{not: json}")


@pytest.fixture
def workspace(tmp_path) -> MagicMock:
    mock = MagicMock(spec=GitWorkspace)
    mock.path = tmp_path
    return mock


class TestExternalAgentGenerator:
    def test_argv_copilot(self, workspace):
        generator = ExternalAgentGenerator(workspace, command="copilot", model="gpt-5")
        argv, stdin = generator._argv("do it")
        assert argv == ["copilot", "-p", "do it", "--allow-all-tools", "--model", "gpt-5"]
        assert stdin is None

    def test_argv_claude_uses_stdin(self, workspace):
        generator = ExternalAgentGenerator(workspace, command="claude")
        argv, stdin = generator._argv("do it")
        assert argv[:3] == ["claude", "--print", "--dangerously-skip-permissions"]
        assert stdin == "do it"

    @pytest.mark.asyncio
    async def test_plan_parses_reply(self, workspace):
        generator = ExternalAgentGenerator(workspace)
        with patch(
            "ticketflow.capabilities.external_agent.run_command",
            new=AsyncMock(return_value=(PLAN_REPLY, "", 0)),
        ) as run:
            plan = await generator.plan(make_ticket(), {"architecture/overview.md": "Overview text"})

        prompt = run.await_args.args[2]
        assert "PROJ-101" in prompt
        assert "Overview text" in prompt
        assert run.await_args.kwargs["cwd"] == workspace.path

        assert [i.path for i in plan.intents] == ["src/config.py", "tests/test_config.py", "docs/x.py"]
        assert plan.intents[1].action == ChangeAction.CREATE
        assert plan.intents[2].action == ChangeAction.MODIFY
        assert plan.intents[0].component == "Config"
        assert plan.summary == "Guard config"
        assert plan.documentation[0].category == "configuration"
        assert plan.documentation[0].links == ["architecture/overview.md"]

    @pytest.mark.asyncio
    async def test_propose_reports_changed_files(self, workspace):
        workspace.changed_files = AsyncMock(side_effect=[[], ["src/config.py"]])
        generator = ExternalAgentGenerator(workspace)
        intent = PlanIntent("src/config.py", "Add a null check")

        with patch(
            "ticketflow.capabilities.external_agent.run_command",
            new=AsyncMock(return_value=('{"ok": true, "detail": "added"}', "", 0)),
        ):
            entry = await generator.propose(intent, {"ticket": make_ticket(), "feedback": ""})

        assert entry.ok
        assert entry.files == ["src/config.py"]
        assert entry.detail == "added"

    @pytest.mark.asyncio
    async def test_propose_without_changes_fails(self, workspace):
        workspace.changed_files = AsyncMock(return_value=[])
        generator = ExternalAgentGenerator(workspace)

        with patch(
            "ticketflow.capabilities.external_agent.run_command",
            new=AsyncMock(return_value=("nothing to do", "", 0)),
        ):
            entry = await generator.propose(PlanIntent("a.py", "x"), {"ticket": make_ticket()})

        assert not entry.ok

    @pytest.mark.asyncio
    async def test_propose_includes_test_feedback(self, workspace):
        workspace.changed_files = AsyncMock(return_value=["src/config.py"])
        generator = ExternalAgentGenerator(workspace)

        with patch(
            "ticketflow.capabilities.external_agent.run_command",
            new=AsyncMock(return_value=('{"ok": true}', "", 0)),
        ) as run:
            entry = await generator.propose(
                PlanIntent("src/config.py", "x"), {"ticket": make_ticket(), "feedback": "AssertionError: boom"}
            )

        assert "AssertionError: boom" in run.await_args.args[2]
        assert entry.ok

    @pytest.mark.asyncio
    async def test_review(self, workspace):
        item = WorkItem(ticket_key=make_ticket().key, ticket=make_ticket())
        item.change_set.test_result = TestResult(passed=True, output="1 passed")
        reply = (
            '{"focus_areas": ["Null handling"], "critical_files": ["src/config.py"],'
            ' "testing_instructions": "Run pytest", "concerns": []}'
        )
        with patch(
            "ticketflow.capabilities.external_agent.run_command",
            new=AsyncMock(return_value=(reply, "", 0)),
        ):
            package = await ExternalAgentGenerator(workspace).review(item)

        assert package.focus_areas == ["Null handling"]
        assert package.critical_files == ["src/config.py"]
        assert package.testing_instructions == "Run pytest"
        assert package.missing_fields() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,match",
        [
            (FileNotFoundError(), "not found in PATH"),
            (TimeoutError(), "did not finish"),
            (subprocess.CalledProcessError(2, ["copilot"], "", "not logged in"), "not logged in"),
        ],
    )
    async def test_invocation_errors(self, workspace, error, match):
        with patch(
            "ticketflow.capabilities.external_agent.run_command",
            new=AsyncMock(side_effect=error),
        ):
            with pytest.raises(AgentError, match=match):
                await ExternalAgentGenerator(workspace).plan(make_ticket(), {})


class TestShellTestRunner:
    @pytest.mark.asyncio
    async def test_passing_command(self, tmp_path):
        result = await ShellTestRunner("echo 3 passed", cwd=tmp_path).run(ChangeSet(), timeout=30)
        assert result.passed
        assert "3 passed" in result.output
        assert not result.timed_out

    @pytest.mark.asyncio
    async def test_failing_command(self, tmp_path):
        result = await ShellTestRunner("echo 1 failed >&2; exit 1", cwd=tmp_path).run(ChangeSet(), timeout=30)
        assert not result.passed
        assert "1 failed" in result.output

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, tmp_path):
        with patch(
            "ticketflow.capabilities.test_runner.run_shell_command",
            new=AsyncMock(side_effect=TimeoutError()),
        ):
            result = await ShellTestRunner("pytest -q", cwd=tmp_path).run(ChangeSet(), timeout=5)

        assert not result.passed
        assert result.timed_out
        assert "timed out after 5s" in result.output

    @pytest.mark.asyncio
    async def test_timeout_stops_processes_the_command_started(self, tmp_path):
        runner = ShellTestRunner("(sleep 1; touch marker); true", cwd=tmp_path)

        result = await runner.run(ChangeSet(), timeout=0.2)
        await asyncio.sleep(1.5)

        assert result.timed_out
        assert not (tmp_path / "marker").exists()
