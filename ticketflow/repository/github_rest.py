"""GitHub Repository Client using PyGithub."""

import asyncio
from collections.abc import Callable
from typing import Any, NoReturn, TypeVar

import structlog
from github import Auth, Github, GithubException
from github.PullRequest import PullRequest as GHPullRequest
from github.Repository import Repository as GHRepository

from ticketflow.credentials import CredentialProvider
from ticketflow.exceptions import AuthError, CredentialError, RemoteError
from ticketflow.models.domain import PullRequestDescriptor, PullRequestHandle
from ticketflow.repository.base import RepositoryClient

log = structlog.get_logger(__name__)

T = TypeVar("T")


async def _run_sync(func: Callable[[], T]) -> T:
    """Run a synchronous function in a thread pool.

    This prevents blocking the event loop when calling synchronous
    PyGithub methods.
    """
    return await asyncio.to_thread(func)


def _raise_mapped(error: GithubException, action: str) -> NoReturn:
    if error.status in (401, 403):
        raise AuthError(
            f"GitHub rejected credentials while trying to {action} (HTTP {error.status})",
            service="repository",
        ) from error
    raise RemoteError(
        f"GitHub request failed while trying to {action}",
        status_code=error.status,
        response_text=str(error.data),
    ) from error


class GitHubRepositoryClient(RepositoryClient):
    """GitHub implementation using the PyGithub library."""

    def __init__(
        self,
        owner: str,
        repo: str,
        credentials: CredentialProvider,
        credential_name: str = "repository",
        base_url: str = "https://api.github.com",
    ):
        """Initialize GitHub client.

        Args:
            owner: Repository owner (user or organization)
            repo: Repository name
            credentials: Run-scoped credential provider
            credential_name: Symbolic name of the GitHub token
            base_url: GitHub API base URL (for GitHub Enterprise)
        """
        self.owner = owner
        self.repo = repo
        self.credentials = credentials
        self.credential_name = credential_name
        self.base_url = base_url.rstrip("/")
        self._client: Github | None = None
        self._repo: GHRepository | None = None

    async def connect(self) -> None:
        """Resolve the token and bind the repository."""
        try:
            token = await self.credentials.get_secret(self.credential_name)
        except CredentialError as e:
            raise AuthError(
                f"Cannot resolve repository token: {e.message}", service="repository"
            ) from e

        def _connect() -> tuple[Github, GHRepository]:
            client = Github(auth=Auth.Token(token.strip()), base_url=self.base_url)
            return client, client.get_repo(f"{self.owner}/{self.repo}")

        try:
            self._client, self._repo = await _run_sync(_connect)
        except GithubException as e:
            _raise_mapped(e, "open the repository")

        log.info("github_connected", base_url=self.base_url, owner=self.owner, repo=self.repo)

    async def disconnect(self) -> None:
        """Close GitHub client."""
        if self._client:
            await _run_sync(self._client.close)
            self._client = None
            self._repo = None

    async def __aenter__(self) -> "GitHubRepositoryClient":
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()

    async def _repository(self) -> GHRepository:
        if self._repo is None:
            await self.connect()
        assert self._repo is not None
        return self._repo

    async def create_branch(self, base: str, name: str) -> None:
        """Create a new branch from ``base``."""
        log.info("create_branch", branch=name, from_branch=base)
        repo = await self._repository()

        def _create_branch() -> None:
            source_sha = repo.get_git_ref(f"heads/{base}").object.sha
            repo.create_git_ref(ref=f"refs/heads/{name}", sha=source_sha)

        try:
            await _run_sync(_create_branch)
        except GithubException as e:
            if e.status == 422 and "already exists" in str(e.data):
                log.info("branch_exists", branch=name)
                return
            log.error("github_create_branch_failed", branch=name, from_branch=base, error=str(e))
            _raise_mapped(e, f"create branch {name}")

    async def open_pull_request(self, descriptor: PullRequestDescriptor) -> PullRequestHandle:
        """Open or update the pull request for ``descriptor.head``."""
        log.info("open_pull_request", head=descriptor.head, base=descriptor.base)
        repo = await self._repository()

        def _open() -> tuple[GHPullRequest, bool]:
            existing = list(repo.get_pulls(state="open", head=f"{self.owner}:{descriptor.head}"))
            if existing:
                pr = existing[0]
                pr.edit(title=descriptor.title, body=descriptor.body, base=descriptor.base)
                return pr, False
            pr = repo.create_pull(
                title=descriptor.title,
                body=descriptor.body,
                base=descriptor.base,
                head=descriptor.head,
            )
            return pr, True

        try:
            pr, created = await _run_sync(_open)
        except GithubException as e:
            log.error("github_open_pr_failed", head=descriptor.head, error=str(e))
            _raise_mapped(e, f"open a pull request for {descriptor.head}")

        log.info(
            "pull_request_created" if created else "pull_request_updated",
            number=pr.number,
            url=pr.html_url,
        )
        return PullRequestHandle(
            number=pr.number, url=pr.html_url, head=descriptor.head, created=created
        )

    async def update_pull_request(
        self, handle: PullRequestHandle, descriptor: PullRequestDescriptor
    ) -> None:
        log.info("update_pull_request", number=handle.number)
        repo = await self._repository()

        def _update() -> None:
            repo.get_pull(handle.number).edit(
                title=descriptor.title, body=descriptor.body, base=descriptor.base
            )

        try:
            await _run_sync(_update)
        except GithubException as e:
            _raise_mapped(e, f"update pull request #{handle.number}")

    async def comment(self, handle: PullRequestHandle, body: str) -> None:
        log.info("comment_pull_request", number=handle.number)
        repo = await self._repository()

        try:
            await _run_sync(lambda: repo.get_pull(handle.number).create_issue_comment(body))
        except GithubException as e:
            _raise_mapped(e, f"comment on pull request #{handle.number}")
