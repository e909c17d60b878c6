"""CLI commands for checking credential resolution.

ticketflow never stores secrets; these commands only verify that the
configured references resolve.

Credential References:
    - @keyring:service/key - Resolve from OS keyring
    - @pass:path/to/entry - Resolve from the pass password store
    - ${VARIABLE_NAME} - Resolve from environment variable

Example:
    $ ticketflow credentials check tracker
    $ ticketflow credentials check @pass:jira/token
    $ ticketflow credentials backends
"""

import asyncio
import sys

import click

from ticketflow.credentials import (
    CredentialError,
    CredentialProvider,
    CredentialResolver,
    EnvironmentBackend,
    KeyringBackend,
    PassBackend,
)


def mask(value: str) -> str:
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"


@click.group(name="credentials")
def credentials_group() -> None:
    """Verify credential references."""


@credentials_group.command(name="check")
@click.argument("name_or_reference")
@click.option("--show-value", is_flag=True, help="Show full credential value (default: masked)")
@click.pass_context
def check_credential(ctx: click.Context, name_or_reference: str, show_value: bool) -> None:
    """Resolve a configured credential NAME (e.g. tracker) or a raw REFERENCE."""
    settings = (ctx.obj or {}).get("settings")
    references = settings.credentials.references() if settings else {}

    try:
        if name_or_reference in references:
            value = asyncio.run(_resolve_named(references, name_or_reference))
            source = references[name_or_reference]
        else:
            value = CredentialResolver().resolve(name_or_reference, cache=False)
            source = name_or_reference
    except CredentialError as e:
        click.echo(f"Error: {e.message}", err=True)
        if e.suggestion:
            click.echo(f"Suggestion: {e.suggestion}", err=True)
        sys.exit(1)

    click.echo(f"Reference: {source}")
    click.echo(f"Value: {value if show_value else mask(value)}")


async def _resolve_named(references: dict[str, str], name: str) -> str:
    async with CredentialProvider(references) as provider:
        return await provider.get_secret(name)


@credentials_group.command(name="backends")
def list_backends() -> None:
    """Show which credential backends are available on this system."""
    for backend in (EnvironmentBackend(), KeyringBackend(), PassBackend()):
        status = "available" if backend.available else "not available"
        click.echo(f"  {backend.name}: {status}")
