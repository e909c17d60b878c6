"""``ticketflow agent``: launch the interactive assistant with fixed instructions.

Prints a banner, then replaces the current process with the configured
assistant CLI (``copilot -i "<instructions>"`` by default). The exit code is
therefore the assistant's own.
"""

import os
import shutil
import sys

import click

from ticketflow.config.settings import LauncherConfig

EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126


def banner(title: str, executable: str) -> str:
    heading = f"🤖 {title}"
    return "\n".join(
        [
            heading,
            "=" * len(heading),
            "",
            f"Loading instructions and launching {executable}...",
            "",
        ]
    )


@click.command(name="agent")
@click.pass_context
def agent_command(ctx: click.Context) -> None:
    """Start an interactive assistant session preloaded with instructions."""
    settings = (ctx.obj or {}).get("settings")
    launcher: LauncherConfig = settings.launcher if settings else LauncherConfig()

    if shutil.which(launcher.executable) is None:
        click.echo(f"Error: {launcher.executable} not found in PATH", err=True)
        sys.exit(EXIT_NOT_FOUND)

    click.echo(banner(launcher.title, launcher.executable))
    sys.stdout.flush()

    argv = [launcher.executable, launcher.instruction_flag, launcher.instructions]
    try:
        os.execvp(launcher.executable, argv)
    except OSError as e:
        click.echo(f"Error: cannot execute {launcher.executable}: {e}", err=True)
        sys.exit(EXIT_NOT_EXECUTABLE)
