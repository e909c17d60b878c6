"""Repository Client and local git workspace."""

from ticketflow.repository.base import RepositoryClient
from ticketflow.repository.github_rest import GitHubRepositoryClient
from ticketflow.repository.workspace import GitWorkspace

__all__ = ["GitHubRepositoryClient", "GitWorkspace", "RepositoryClient"]
