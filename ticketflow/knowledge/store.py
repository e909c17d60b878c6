"""
Versioned store for the knowledge tree.

Documents are markdown files with a YAML front-matter header, grouped in
category directories under a root. Writes are staged in memory and only
reach disk through ``commit()``, which validates cross-references over the
resulting tree first and persists nothing when any link is broken.

Concurrency Model:
    Reads may run concurrently. ``commit()`` holds a single-writer lock for
    the whole validate-then-write batch, so two committers can never
    interleave their files.

Example:
    >>> store = KnowledgeStore("docs/knowledge")
    >>> await store.write("components/parser.md", content)
    >>> await store.commit()
"""

import asyncio
import os
from datetime import UTC, datetime
from pathlib import Path

import aiofiles
import structlog

from ticketflow.config.settings import KNOWLEDGE_CATEGORIES
from ticketflow.exceptions import (
    BrokenCrossReferenceError,
    DocumentNotFoundError,
    ValidationError,
)
from ticketflow.knowledge.links import extract_links, find_broken_links, normalize_path, split_front_matter
from ticketflow.knowledge.planner import OVERVIEW_PATH, component_path
from ticketflow.models.domain import BrokenLink, KnowledgeDocument

log = structlog.get_logger(__name__)

ROOT_DOCUMENTS = ("index.md", "README.md")


class KnowledgeStore:
    """Documentation Store backed by a directory tree.

    Attributes:
        root: Directory holding the category folders.
        categories: Allowed top-level category directories.
    """

    def __init__(self, root: str | Path, categories: list[str] | tuple[str, ...] = KNOWLEDGE_CATEGORIES) -> None:
        self.root = Path(root)
        self.categories = tuple(categories)
        self._staged: dict[str, str] = {}
        self._lock = asyncio.Lock()

    @property
    def staged(self) -> list[str]:
        """Paths written since the last commit or discard."""
        return sorted(self._staged)

    def _check_path(self, path: str) -> str:
        normalized = normalize_path(path)
        if normalized.startswith("..") or not normalized.endswith(".md"):
            raise ValidationError(f"Invalid document path: {path}")

        category, _, rest = normalized.partition("/")
        if not rest:
            if normalized not in ROOT_DOCUMENTS:
                raise ValidationError(f"Document must live in a category directory: {path}")
        elif category not in self.categories:
            raise ValidationError(
                f"Unknown documentation category '{category}' (expected one of: {', '.join(self.categories)})"
            )
        return normalized

    def committed_paths(self) -> list[str]:
        """Store-relative paths of every document on disk."""
        if not self.root.exists():
            return []
        return sorted(p.relative_to(self.root).as_posix() for p in self.root.rglob("*.md") if p.is_file())

    async def _read_file(self, path: str) -> str:
        try:
            async with aiofiles.open(self.root / path, encoding="utf-8") as f:
                return await f.read()
        except UnicodeDecodeError as e:
            raise ValidationError(f"Document is not valid UTF-8: {path} (byte {e.start})") from e

    async def read(self, path: str) -> KnowledgeDocument:
        """Read a document. Staged content wins over the committed file.

        Raises:
            DocumentNotFoundError: If the document exists neither staged nor on disk
        """
        normalized = normalize_path(path)

        if normalized in self._staged:
            content = self._staged[normalized]
            updated_at = None
        else:
            file_path = self.root / normalized
            if not file_path.is_file():
                raise DocumentNotFoundError(normalized)
            content = await self._read_file(normalized)
            updated_at = datetime.fromtimestamp(file_path.stat().st_mtime, tz=UTC)

        metadata, _ = split_front_matter(content)
        return KnowledgeDocument(
            path=normalized,
            content=content,
            updated_at=updated_at,
            links=extract_links(normalized, content),
            metadata=metadata,
        )

    async def exists(self, path: str) -> bool:
        normalized = normalize_path(path)
        return normalized in self._staged or (self.root / normalized).is_file()

    async def write(self, path: str, content: str) -> None:
        """Stage ``content`` for ``path``. Nothing touches disk until commit."""
        normalized = self._check_path(path)
        self._staged[normalized] = content
        log.debug("document_staged", path=normalized)

    async def _tree(self) -> dict[str, str]:
        tree = {path: await self._read_file(path) for path in self.committed_paths()}
        tree.update(self._staged)
        return tree

    async def validate_links(self) -> set[BrokenLink]:
        """Broken cross-references in the committed tree plus staged writes."""
        return find_broken_links(await self._tree())

    async def commit(self) -> list[str]:
        """Persist the staged batch all-or-nothing.

        Returns:
            Paths written, sorted.

        Raises:
            BrokenCrossReferenceError: If the resulting tree has broken links;
                the staged batch is discarded and no file changes.
        """
        async with self._lock:
            if not self._staged:
                return []

            broken = await self.validate_links()
            if broken:
                dropped = self.discard()
                log.warning(
                    "documentation_commit_rejected",
                    broken=len(broken),
                    discarded=dropped,
                )
                raise BrokenCrossReferenceError(broken)

            batch = dict(self._staged)
            await self._write_batch(batch)
            self._staged.clear()
            log.info("documentation_committed", documents=sorted(batch))
            return sorted(batch)

    async def _write_batch(self, batch: dict[str, str]) -> None:
        backups: dict[str, str | None] = {}
        try:
            for path, content in batch.items():
                target = self.root / path
                backups[path] = await self._read_file(path) if target.is_file() else None
                await self._write_atomic(target, content)
        except (OSError, asyncio.CancelledError) as e:
            log.error("documentation_write_failed", error=type(e).__name__, restoring=sorted(backups))
            for path, previous in backups.items():
                target = self.root / path
                target.with_suffix(".md.tmp").unlink(missing_ok=True)
                if previous is None:
                    target.unlink(missing_ok=True)
                else:
                    await self._write_atomic(target, previous)
            raise

    async def _write_atomic(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".md.tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(content)
        os.replace(tmp_path, path)

    def discard(self) -> int:
        """Drop the staged batch. Returns the number of discarded documents."""
        count = len(self._staged)
        self._staged.clear()
        if count:
            log.info("documentation_discarded", documents=count)
        return count

    async def gather_context(self, components: list[str]) -> dict[str, str]:
        """Documents relevant to planning: root and architecture overviews
        plus the page of every named component that exists."""
        candidates = [*ROOT_DOCUMENTS, OVERVIEW_PATH]
        candidates.extend(component_path(name) for name in components)

        context: dict[str, str] = {}
        for path in candidates:
            if await self.exists(path):
                context[path] = (await self.read(path)).content
        return context
