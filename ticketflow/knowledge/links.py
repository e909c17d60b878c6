"""Cross-reference parsing for knowledge documents.

A document references another through a relative markdown link to a
``.md`` file, resolved against the document's own directory, or through
the ``related:`` list of its YAML front matter, which holds store-relative
paths. External URLs and in-page anchors are not cross-references.
"""

import posixpath
import re
from collections.abc import Mapping
from typing import Any

import structlog
import yaml

from ticketflow.models.domain import BrokenLink

log = structlog.get_logger(__name__)

MARKDOWN_LINK = re.compile(r"(?<!!)\[[^\]]*\]\(\s*<?([^)\s>]+)>?(?:\s+\"[^\"]*\")?\s*\)")
FRONT_MATTER_DELIMITER = "---"


def split_front_matter(content: str) -> tuple[dict[str, Any], str]:
    """Split ``content`` into (front matter mapping, body).

    Documents without a header, or with a header that is not a YAML
    mapping, yield an empty mapping and the content unchanged.
    """
    if not content.startswith(FRONT_MATTER_DELIMITER + "\n"):
        return {}, content

    end = content.find("\n" + FRONT_MATTER_DELIMITER, len(FRONT_MATTER_DELIMITER))
    if end == -1:
        return {}, content

    header = content[len(FRONT_MATTER_DELIMITER) + 1 : end]
    body = content[end + len(FRONT_MATTER_DELIMITER) + 1 :].lstrip("\n")
    try:
        metadata = yaml.safe_load(header)
    except yaml.YAMLError as e:
        log.warning("front_matter_invalid", error=str(e))
        return {}, content

    if not isinstance(metadata, dict):
        return {}, content
    return metadata, body


def normalize_path(path: str) -> str:
    """Store-relative POSIX path without leading ``./`` or ``/``."""
    return posixpath.normpath(path.replace("\\", "/")).lstrip("/")


def resolve_link(source: str, target: str) -> str | None:
    """Store-relative path a markdown link in ``source`` points at.

    Returns None when the link is not a cross-reference.
    """
    if "://" in target or target.startswith(("mailto:", "#")):
        return None
    target = target.split("#", 1)[0]
    if not target.endswith(".md"):
        return None
    if target.startswith("/"):
        return normalize_path(target)
    return posixpath.normpath(posixpath.join(posixpath.dirname(source), target))


def relative_link(source: str, target: str) -> str:
    """Relative markdown href from ``source`` to ``target``."""
    return posixpath.relpath(target, posixpath.dirname(source) or ".")


def extract_links(source: str, content: str) -> set[str]:
    """All store-relative paths ``source`` cross-references."""
    metadata, body = split_front_matter(content)
    links: set[str] = set()

    related = metadata.get("related") or []
    if isinstance(related, str):
        related = [related]
    for entry in related:
        links.add(normalize_path(str(entry)))

    for match in MARKDOWN_LINK.finditer(body):
        resolved = resolve_link(source, match.group(1))
        if resolved is not None:
            links.add(resolved)

    links.discard(source)
    return links


def find_broken_links(documents: Mapping[str, str]) -> set[BrokenLink]:
    """Cross-references in ``documents`` whose target is not in the mapping."""
    broken: set[BrokenLink] = set()
    for source, content in documents.items():
        for target in extract_links(source, content):
            if target not in documents:
                broken.add(BrokenLink(source=source, target=target))
    return broken
