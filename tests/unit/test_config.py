"""Tests for ticketflow/config/settings.py."""

from pathlib import Path

import pytest

from ticketflow.config.settings import (
    DEFAULT_INSTRUCTIONS,
    LauncherConfig,
    TicketflowSettings,
    WorkflowConfig,
)
from ticketflow.exceptions import ConfigurationError

MINIMAL_CONFIG = """
tracker:
  base_url: https://issues.example.org/jira
  project: proj
repository:
  owner: acme
  name: widgets
"""


def write_config(tmp_path: Path, content: str) -> str:
    path = tmp_path / "ticketflow.yaml"
    path.write_text(content)
    return str(path)


class TestFromYaml:
    def test_minimal_config_uses_defaults(self, tmp_path):
        settings = TicketflowSettings.from_yaml(write_config(tmp_path, MINIMAL_CONFIG))

        assert str(settings.tracker.base_url) == "https://issues.example.org/jira"
        assert settings.tracker.project == "PROJ"
        assert settings.repository.full_name == "acme/widgets"
        assert settings.repository.default_branch == "main"
        assert settings.workflow.max_repair_iterations == 3
        assert settings.workflow.fetch_attempts == 2
        assert settings.tests.command == "pytest -q"
        assert settings.agent.command == "copilot"
        assert settings.credentials.references() == {
            "tracker": "@pass:jira/token",
            "repository": "${GITHUB_TOKEN}",
        }
        assert settings.state_dir == Path(".ticketflow/state")
        assert settings.knowledge_dir == Path("docs/knowledge")

    def test_env_interpolation_outside_credentials(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_JIRA_URL", "https://jira.internal")
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.delenv("TEST_COMMAND", raising=False)
        content = (
            MINIMAL_CONFIG.replace("https://issues.example.org/jira", "${TEST_JIRA_URL}")
            + "tests:\n  command: ${TEST_COMMAND:-make test}\n"
            + "credentials:\n  repository: ${GITHUB_TOKEN}\n  extra: '@keyring:other/token'\n"
        )
        settings = TicketflowSettings.from_yaml(write_config(tmp_path, content))

        assert str(settings.tracker.base_url).startswith("https://jira.internal")
        assert settings.tests.command == "make test"
        # Credential references are resolved per run, not at load time
        assert settings.credentials.repository == "${GITHUB_TOKEN}"
        assert settings.credentials.references()["extra"] == "@keyring:other/token"

    def test_missing_env_variable(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TEST_UNSET_VAR", raising=False)
        content = MINIMAL_CONFIG + "tests:\n  command: ${TEST_UNSET_VAR}\n"
        with pytest.raises(ConfigurationError, match="TEST_UNSET_VAR"):
            TicketflowSettings.from_yaml(write_config(tmp_path, content))

    def test_comments_are_not_interpolated(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TEST_UNSET_VAR", raising=False)
        content = "# uses ${TEST_UNSET_VAR} somewhere\n" + MINIMAL_CONFIG
        settings = TicketflowSettings.from_yaml(write_config(tmp_path, content))
        assert settings.repository.name == "widgets"

    def test_file_not_found(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            TicketflowSettings.from_yaml(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            TicketflowSettings.from_yaml(write_config(tmp_path, "tracker: [unclosed"))

    def test_scalar_document(self, tmp_path):
        with pytest.raises(ConfigurationError, match="YAML object"):
            TicketflowSettings.from_yaml(write_config(tmp_path, "just a string"))

    def test_missing_required_section(self, tmp_path):
        with pytest.raises(ConfigurationError):
            TicketflowSettings.from_yaml(write_config(tmp_path, "tracker:\n  base_url: https://x.org\n"))

    def test_invalid_value(self, tmp_path):
        content = MINIMAL_CONFIG + "workflow:\n  max_repair_iterations: 0\n"
        with pytest.raises(ConfigurationError):
            TicketflowSettings.from_yaml(write_config(tmp_path, content))


class TestWorkflowConfig:
    def test_default_path_is_target_status(self):
        assert WorkflowConfig().transition_path("PROJ") == ["Patch Available"]

    def test_project_specific_path(self):
        config = WorkflowConfig(
            transition_paths={
                "PROJ": ["In Progress", "Patch Available"],
                "default": ["Resolved"],
            }
        )
        assert config.transition_path("proj") == ["In Progress", "Patch Available"]
        assert config.transition_path("OTHER") == ["Resolved"]


def test_launcher_defaults():
    launcher = LauncherConfig()
    assert launcher.executable == "copilot"
    assert launcher.instruction_flag == "-i"
    assert launcher.instructions == DEFAULT_INSTRUCTIONS
    assert "pass jira/token" in launcher.instructions
