"""Configuration system for ticketflow.

This package provides type-safe configuration management using Pydantic,
including settings for the ticket tracker, the source-control host, the
external agent, test execution, the workflow and the knowledge tree.

Key Components:
    - TicketflowSettings: Main configuration container with YAML loading support
    - TrackerConfig: Issue tracker connection
    - RepositoryConfig: Repository and local checkout settings
    - AgentConfig: External code-generation assistant
    - TestsConfig: Build/test command
    - WorkflowConfig: Repair budget, retries, branch naming, transition paths
    - KnowledgeConfig: Documentation Store location
    - CredentialsConfig: Symbolic credential references
    - LauncherConfig: Interactive assistant launcher

Example:
    >>> from ticketflow.config import TicketflowSettings
    >>> settings = TicketflowSettings.from_yaml("ticketflow.yaml")
    >>> settings.tracker.base_url
"""

from ticketflow.config.settings import (
    AgentConfig,
    CredentialsConfig,
    KnowledgeConfig,
    LauncherConfig,
    RepositoryConfig,
    TestsConfig,
    TicketflowSettings,
    TrackerConfig,
    WorkflowConfig,
)

__all__ = [
    "AgentConfig",
    "CredentialsConfig",
    "KnowledgeConfig",
    "LauncherConfig",
    "RepositoryConfig",
    "TestsConfig",
    "TicketflowSettings",
    "TrackerConfig",
    "WorkflowConfig",
]
