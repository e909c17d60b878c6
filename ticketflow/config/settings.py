"""
Configuration system using Pydantic for type-safe settings management.

This module provides configuration classes for every collaborator of the
orchestrator: the issue tracker, the repository host, the external agent,
the test command, the workflow itself and the knowledge tree.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ticketflow.enums import TicketStatus
from ticketflow.exceptions import ConfigurationError

DEFAULT_INSTRUCTIONS = """You are the ticketflow Development Agent.

Read these instruction files in this directory to understand your role:
- README.md
- docs/knowledge/architecture/overview.md

Prerequisites:
1. Tracker token: pass jira/token
2. GitHub CLI: gh auth status
3. ticketflow installed (ticketflow --help)

Capabilities: Work tickets, manage pull requests, build knowledge graphs, automate workflows.

Read the instruction files, then ask what task to perform."""

KNOWLEDGE_CATEGORIES = (
    "architecture",
    "components",
    "data",
    "apis",
    "dependencies",
    "configuration",
    "changelog",
)


class TrackerConfig(BaseModel):
    """Issue tracker (Jira REST API) configuration."""

    base_url: HttpUrl = Field(..., description="Base URL of the tracker, e.g. https://issues.apache.org/jira")
    project: str | None = Field(default=None, description="Default project key for selection")
    page_size: int = Field(default=50, ge=1, le=100, description="Search results per page")
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")
    max_connections: int = Field(default=10, ge=1, description="Connection pool size")

    @field_validator("project")
    @classmethod
    def upper_project(cls, value: str | None) -> str | None:
        return value.upper() if value else value


class RepositoryConfig(BaseModel):
    """Repository configuration."""

    owner: str = Field(..., description="Repository owner/organization")
    name: str = Field(..., description="Repository name")
    default_branch: str = Field(default="main", description="Base branch for pull requests")
    api_url: str = Field(default="https://api.github.com", description="GitHub API base URL")
    remote: str = Field(default="origin", description="Git remote to push work branches to")
    workspace: str = Field(default=".", description="Path of the local checkout")

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class AgentConfig(BaseModel):
    """External code-generation assistant run non-interactively."""

    command: Literal["copilot", "claude"] = Field(default="copilot", description="Assistant CLI")
    model: str | None = Field(default=None, description="Model identifier passed to the CLI")
    timeout: float = Field(default=600.0, gt=0, description="Seconds allowed per agent invocation")
    extra_args: list[str] = Field(default_factory=list, description="Additional CLI arguments")


class TestsConfig(BaseModel):
    """Build/test command configuration."""

    __test__ = False

    command: str = Field(default="pytest -q", description="Shell command running the test suite")
    timeout: float = Field(default=900.0, gt=0, description="Wall-clock timeout per test iteration")


class WorkflowConfig(BaseModel):
    """Workflow behavior configuration."""

    max_repair_iterations: int = Field(default=3, ge=1, le=20, description="Failed test runs before giving up")
    fetch_attempts: int = Field(default=2, ge=1, description="Attempts for reading full ticket detail")
    fetch_backoff: float = Field(default=2.0, ge=1.0, description="Exponential backoff base for reads")
    state_directory: str = Field(default=".ticketflow/state", description="Directory for state files")
    selection_statuses: list[str] = Field(
        default_factory=lambda: [TicketStatus.OPEN.value],
        description="Statuses eligible for selection when none is given",
    )
    branch_slug_length: int = Field(default=40, ge=8, description="Maximum length of the branch slug")
    target_status: str = Field(
        default=TicketStatus.PATCH_AVAILABLE.value, description="Status a finished ticket moves to"
    )
    transition_paths: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Per-project ordered statuses to walk, ending at the target status",
    )

    def transition_path(self, project: str) -> list[str]:
        """Ordered statuses to walk for ``project``.

        Projects without an explicit path go straight to the target status.
        """
        path = self.transition_paths.get(project.upper()) or self.transition_paths.get("default")
        return list(path) if path else [self.target_status]


class KnowledgeConfig(BaseModel):
    """Documentation Store (knowledge graph) configuration."""

    root: str = Field(default="docs/knowledge", description="Root directory of the knowledge tree")
    categories: list[str] = Field(default_factory=lambda: list(KNOWLEDGE_CATEGORIES))


class CredentialsConfig(BaseModel):
    """Symbolic credential references.

    Supports credential references:
    - tracker: "@pass:jira/token"
    - repository: "${GITHUB_TOKEN}"
    - repository: "@keyring:github/token"

    Additional names may be declared and checked with
    ``ticketflow credentials check``.
    """

    model_config = ConfigDict(extra="allow")

    tracker: str = Field(default="@pass:jira/token", description="Tracker API token reference")
    repository: str = Field(default="${GITHUB_TOKEN}", description="Repository host token reference")

    def references(self) -> dict[str, str]:
        return {name: str(value) for name, value in self.model_dump().items()}


class LauncherConfig(BaseModel):
    """Interactive assistant launcher (``ticketflow agent``)."""

    executable: str = Field(default="copilot", description="Assistant executable to exec")
    instruction_flag: str = Field(default="-i", description="Flag introducing the initial prompt")
    title: str = Field(default="ticketflow Development Agent", description="Banner title")
    instructions: str = Field(default=DEFAULT_INSTRUCTIONS, description="Fixed initial instructions")


class TicketflowSettings(BaseSettings):
    """Main ticketflow settings.

    This class combines all configuration sections and provides methods
    for loading from YAML files with environment variable interpolation.
    """

    model_config = SettingsConfigDict(
        env_prefix="TICKETFLOW_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    tracker: TrackerConfig
    repository: RepositoryConfig
    agent: AgentConfig = Field(default_factory=AgentConfig)
    tests: TestsConfig = Field(default_factory=TestsConfig)
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)
    knowledge: KnowledgeConfig = Field(default_factory=KnowledgeConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
    launcher: LauncherConfig = Field(default_factory=LauncherConfig)

    @property
    def state_dir(self) -> Path:
        """Get state directory as Path object."""
        return Path(self.workflow.state_directory)

    @property
    def knowledge_dir(self) -> Path:
        return Path(self.knowledge.root)

    @property
    def workspace_dir(self) -> Path:
        return Path(self.repository.workspace)

    @classmethod
    def from_yaml(cls, config_path: str) -> TicketflowSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} syntax for environment variable substitution.
        References inside the ``credentials`` section are left untouched so
        they are resolved per run by the credential provider.

        Raises:
            ConfigurationError: If config file is invalid or missing required fields
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file) as f:
                yaml_content = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content)
            if not isinstance(config_dict, dict):
                raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

        try:
            return cls(**config_dict)
        except TypeError as e:
            raise ConfigurationError(f"Missing or invalid configuration fields: {e}") from e
        except Exception as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        Supports two syntaxes:
        - ${VAR_NAME} - Required environment variable (raises if not set)
        - ${VAR_NAME:-default} - Optional with default value

        YAML comment lines and the top-level ``credentials:`` block are
        preserved unchanged.

        Raises:
            ValueError: If a required environment variable is not set
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        output: list[str] = []
        in_credentials = False
        for line in content.split("\n"):
            stripped = line.lstrip()
            if line and not line[0].isspace() and not stripped.startswith("#"):
                in_credentials = stripped.startswith("credentials:")
            if in_credentials or stripped.startswith("#"):
                output.append(line)
            else:
                output.append(pattern.sub(replace_var, line))
        return "\n".join(output)
