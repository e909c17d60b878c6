"""Documentation Store: the cross-referenced knowledge tree of a codebase."""

from ticketflow.knowledge.links import extract_links, find_broken_links, split_front_matter
from ticketflow.knowledge.planner import plan_document_updates, render_document
from ticketflow.knowledge.store import KnowledgeStore

__all__ = [
    "KnowledgeStore",
    "extract_links",
    "find_broken_links",
    "plan_document_updates",
    "render_document",
    "split_front_matter",
]
