"""Async subprocess utilities.

Provides non-blocking subprocess execution for use in async contexts. Used
for git operations on the local workspace, the external assistant CLI and
the test/build command.

Every child starts in a new session. On timeout or cancellation the whole
process group is killed, so nothing a compound shell command spawned keeps
running afterwards.

This module offers two main functions:
    - run_command: Execute commands with list arguments (safer, no shell)
    - run_shell_command: Execute shell command strings (supports pipes, etc.)

Example:
    >>> from ticketflow.utils.async_subprocess import run_command
    >>> stdout, stderr, code = await run_command("git", "status", cwd="/repo")
    >>> if code == 0:
    ...     print(stdout)
"""

import asyncio
import os
import signal
import subprocess
from pathlib import Path


def _kill_group(process: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


async def _communicate(
    process: asyncio.subprocess.Process,
    input_text: str | None,
    timeout: float | None,
) -> tuple[str, str]:
    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(input_text.encode("utf-8") if input_text is not None else None),
            timeout=timeout,
        )
    except (TimeoutError, asyncio.CancelledError):
        # Never leave an orphaned child behind, including its own children
        _kill_group(process)
        await process.wait()
        raise

    stdout = (stdout_bytes or b"").decode("utf-8", errors="replace")
    stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")
    return stdout, stderr


async def run_command(
    *args: str,
    cwd: Path | str | None = None,
    check: bool = True,
    timeout: float | None = None,
    capture_output: bool = True,
    input_text: str | None = None,
) -> tuple[str, str, int]:
    """Run a command asynchronously without shell interpolation.

    Args:
        *args: Command and arguments as separate strings.
        cwd: Working directory for command execution.
        check: If True, raise CalledProcessError on a non-zero exit code.
        timeout: Maximum seconds to wait. The process group is killed
            and TimeoutError raised if exceeded. None means wait indefinitely.
        capture_output: Capture stdout and stderr as strings.
        input_text: Text written to the process's stdin.

    Returns:
        Tuple of (stdout, stderr, return_code).

    Raises:
        subprocess.CalledProcessError: If check=True and command returns non-zero.
        TimeoutError: If timeout is exceeded.
        FileNotFoundError: If the command executable is not found.
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        stdin=asyncio.subprocess.PIPE if input_text is not None else None,
        stdout=asyncio.subprocess.PIPE if capture_output else None,
        stderr=asyncio.subprocess.PIPE if capture_output else None,
        start_new_session=True,
    )

    stdout, stderr = await _communicate(process, input_text, timeout)

    if check and process.returncode != 0:
        raise subprocess.CalledProcessError(
            process.returncode or 1,
            args,
            stdout,
            stderr,
        )

    return stdout, stderr, process.returncode or 0


async def run_shell_command(
    command: str,
    *,
    cwd: Path | str | None = None,
    check: bool = True,
    timeout: float | None = None,
    capture_output: bool = True,
) -> tuple[str, str, int]:
    """Run a shell command asynchronously.

    Similar to run_command but uses shell semantics, allowing pipes,
    redirects and variable expansion. The configured test command runs
    through here.

    Warning:
        Only pass trusted, configured command strings.
    """
    process = await asyncio.create_subprocess_shell(
        command,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE if capture_output else None,
        stderr=asyncio.subprocess.PIPE if capture_output else None,
        start_new_session=True,
    )

    stdout, stderr = await _communicate(process, None, timeout)

    if check and process.returncode != 0:
        raise subprocess.CalledProcessError(
            process.returncode or 1,
            command,
            stdout,
            stderr,
        )

    return stdout, stderr, process.returncode or 0
