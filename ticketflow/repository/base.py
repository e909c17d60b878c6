"""
Abstract Repository Client interface.

Normalizes a source-control host's branch, pull-request and comment
operations. Errors surface as ``AuthError`` (missing or refused token) and
``RemoteError`` (everything else); nothing is retried here.
"""

from abc import ABC, abstractmethod

from ticketflow.models.domain import PullRequestDescriptor, PullRequestHandle


class RepositoryClient(ABC):
    """Abstract base class for source-control host clients."""

    @abstractmethod
    async def create_branch(self, base: str, name: str) -> None:
        """Create branch ``name`` from ``base``. An existing branch is not an error."""
        pass

    @abstractmethod
    async def open_pull_request(self, descriptor: PullRequestDescriptor) -> PullRequestHandle:
        """Open a pull request, or update the open one for the same head branch.

        Idempotent keyed by ``descriptor.head``: repeated calls never create
        a second pull request.
        """
        pass

    @abstractmethod
    async def update_pull_request(
        self, handle: PullRequestHandle, descriptor: PullRequestDescriptor
    ) -> None:
        """Replace title, body and base of an existing pull request."""
        pass

    @abstractmethod
    async def comment(self, handle: PullRequestHandle, body: str) -> None:
        """Add a conversation comment to the pull request."""
        pass
