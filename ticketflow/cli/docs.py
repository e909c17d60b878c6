"""``ticketflow docs``: knowledge tree maintenance."""

import asyncio
import sys

import click

from ticketflow.exceptions import TicketflowError
from ticketflow.knowledge.store import KnowledgeStore


@click.group(name="docs")
def docs_group() -> None:
    """Inspect the knowledge documentation tree."""


@docs_group.command(name="validate")
@click.pass_context
def validate_docs(ctx: click.Context) -> None:
    """Report broken cross-references in the knowledge tree."""
    settings = ctx.obj["settings"]
    store = KnowledgeStore(settings.knowledge_dir, settings.knowledge.categories)

    try:
        broken = asyncio.run(store.validate_links())
    except TicketflowError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    documents = len(store.committed_paths())

    if not broken:
        click.echo(f"✅ {documents} documents, no broken cross-references")
        return

    click.echo(f"❌ {len(broken)} broken cross-reference(s) in {documents} documents:", err=True)
    for link in sorted(broken, key=lambda b: (b.source, b.target)):
        click.echo(f"  {link.source} -> {link.target}", err=True)
    sys.exit(1)
