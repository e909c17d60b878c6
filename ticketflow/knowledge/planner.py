"""Deciding and rendering knowledge document updates for a ticket.

``plan_document_updates`` is a pure function of the ticket, its plan and the
affected components, so what gets documented is auditable and testable
without running any agent.
"""

import posixpath
from collections.abc import Collection
from datetime import UTC, datetime

import yaml

from ticketflow.knowledge.links import relative_link, split_front_matter
from ticketflow.models.domain import DocWriteIntent, KnowledgeDocument, Plan, Ticket
from ticketflow.rendering.engine import TemplateEngine
from ticketflow.utils.text import slugify

OVERVIEW_PATH = "architecture/overview.md"
RELATED_HEADING = "\n## Related\n"


def component_path(name: str) -> str:
    return f"components/{slugify(name, max_length=60)}.md"


def changelog_path(ticket: Ticket) -> str:
    return f"changelog/{ticket.key}.md"


def _first_paragraph(text: str) -> str:
    for block in text.strip().split("\n\n"):
        if block.strip():
            return block.strip()
    return ""


def plan_document_updates(
    ticket: Ticket,
    plan: Plan,
    components: list[str],
    existing: Collection[str] = (),
) -> list[DocWriteIntent]:
    """Documentation writes implied by working ``ticket``.

    One changelog entry for the ticket, then one update per affected
    component page, all cross-linked, followed by any documentation intents
    the plan itself proposed. ``existing`` lists store paths already present
    so pages can link the architecture overview only when it exists.
    """
    changelog = changelog_path(ticket)
    pages = {name: component_path(name) for name in components}
    overview = [OVERVIEW_PATH] if OVERVIEW_PATH in existing else []

    change_lines = [f"- `{intent.path}` ({intent.action}): {intent.summary}" for intent in plan.intents]
    changelog_body = "\n".join(
        part
        for part in (
            f"Ticket: {ticket.key}" + (f" ({ticket.url})" if ticket.url else ""),
            "",
            _first_paragraph(ticket.description) or ticket.summary,
            "",
            "### Changes",
            "",
            *change_lines,
        )
    )
    intents = [
        DocWriteIntent(
            path=changelog,
            title=f"{ticket.key}: {ticket.summary}",
            category="changelog",
            body=changelog_body,
            links=[*pages.values(), *overview],
            reason=f"{ticket.key} changelog",
        )
    ]

    for name, path in pages.items():
        files = [i for i in plan.intents if i.component == name] or [
            i for i in plan.intents if i.component is None
        ]
        lines = [f"- `{i.path}`: {i.summary}" for i in files]
        intents.append(
            DocWriteIntent(
                path=path,
                title=name,
                category="components",
                body="\n".join([f"{ticket.key}: {ticket.summary}", "", *lines]).rstrip(),
                links=[changelog, *overview],
                reason=f"Changes from {ticket.key}",
            )
        )

    planned = {intent.path for intent in intents}
    intents.extend(doc for doc in plan.documentation if doc.path not in planned)
    return intents


def _title_for(path: str) -> str:
    return posixpath.splitext(posixpath.basename(path))[0].replace("-", " ").replace("_", " ")


def render_document(
    intent: DocWriteIntent,
    existing: KnowledgeDocument | None,
    engine: TemplateEngine,
    now: datetime | None = None,
) -> str:
    """Full document text for ``intent``, merged into ``existing`` if present.

    Existing pages keep their body and metadata; the intent's body is
    appended as a new section unless it is already there.
    """
    now = now or datetime.now(UTC)

    metadata: dict[str, object] = {}
    body = intent.body.strip()
    related: list[str] = list(intent.links)

    if existing is not None:
        metadata, old_body = split_front_matter(existing.content)
        metadata = dict(metadata)
        old_related = metadata.get("related") or []
        related = [*[str(p) for p in old_related], *related]

        cut = old_body.rfind(RELATED_HEADING)
        old_body = (old_body[:cut] if cut != -1 else old_body).strip()
        heading = f"# {metadata.get('title', intent.title)}"
        if old_body.startswith(heading):
            old_body = old_body[len(heading) :].strip()

        if body in old_body:
            body = old_body
        else:
            body = f"{old_body}\n\n## {intent.reason or 'Update'}\n\n{body}".strip()

    related = sorted(dict.fromkeys(p for p in related if p != intent.path))
    metadata.update(
        {
            "title": metadata.get("title", intent.title),
            "category": intent.category,
            "updated": now.date().isoformat(),
            "related": related,
        }
    )

    return engine.render(
        "knowledge_document.md.j2",
        {
            "front_matter": yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True),
            "title": metadata["title"],
            "body": body,
            "related": [
                {"title": _title_for(path), "href": relative_link(intent.path, path)} for path in related
            ],
        },
    )
