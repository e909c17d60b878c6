"""Local git working tree used by the implementing capability.

Every operation shells out to ``git`` through the async subprocess helper.
``discard()`` restores the checkout to its last commit so partial changes
never survive a failed work item.

Work branches belong to ticketflow: each run rebuilds the branch from the
freshly fetched base and pushes it with a lease on the remote head seen
when the branch was prepared, so a retried ticket replaces its earlier
attempt while a push made by someone else in between is still rejected.
"""

import subprocess
from pathlib import Path

import structlog

from ticketflow.exceptions import WorkspaceError
from ticketflow.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)


class GitWorkspace:
    """Git checkout the orchestrator works in."""

    def __init__(self, path: Path | str, remote: str = "origin", timeout: float = 120.0) -> None:
        self.path = Path(path)
        self.remote = remote
        self.timeout = timeout
        # branch -> remote head expected at push time ("" when absent)
        self._leases: dict[str, str] = {}

    async def _git(self, *args: str) -> str:
        try:
            stdout, _, _ = await run_command("git", *args, cwd=self.path, timeout=self.timeout)
        except subprocess.CalledProcessError as e:
            raise WorkspaceError(f"git {' '.join(args)} failed: {(e.stderr or '').strip()}") from e
        except FileNotFoundError as e:
            raise WorkspaceError("git executable not found") from e
        except TimeoutError as e:
            raise WorkspaceError(f"git {' '.join(args)} timed out") from e
        return stdout

    async def _remote_head(self, branch: str) -> str:
        output = await self._git("ls-remote", "--heads", self.remote, f"refs/heads/{branch}")
        return output.split()[0] if output.strip() else ""

    async def prepare_branch(self, base: str, name: str) -> None:
        """Check out a fresh work branch ``name`` starting at the remote ``base``."""
        log.info("prepare_branch", base=base, branch=name)
        await self._git("fetch", self.remote, base)
        await self._git("checkout", "-B", name, f"{self.remote}/{base}")
        self._leases[name] = await self._remote_head(name)

    async def changed_files(self) -> list[str]:
        """Paths with uncommitted changes, including untracked files."""
        output = await self._git("status", "--porcelain", "--untracked-files=all")
        files: list[str] = []
        for line in output.splitlines():
            if len(line) < 4:
                continue
            path = line[3:]
            if " -> " in path:
                path = path.split(" -> ", 1)[1]
            files.append(path.strip('"'))
        return files

    async def commit_and_push(self, branch: str, message: str) -> str:
        """Commit everything and push ``branch``. Returns the head commit SHA."""
        await self._git("add", "--all")
        if await self.changed_files():
            await self._git("commit", "-m", message)
        else:
            log.info("nothing_to_commit", branch=branch)

        if branch not in self._leases:
            self._leases[branch] = await self._remote_head(branch)
        lease = f"--force-with-lease=refs/heads/{branch}:{self._leases[branch]}"
        await self._git("push", lease, "--set-upstream", self.remote, f"{branch}:{branch}")

        sha = (await self._git("rev-parse", "HEAD")).strip()
        self._leases[branch] = sha
        log.info("branch_pushed", branch=branch, sha=sha)
        return sha

    async def discard(self) -> None:
        """Drop all uncommitted changes and untracked files."""
        log.info("workspace_discarded", path=str(self.path))
        await self._git("reset", "--hard")
        await self._git("clean", "-fd")
