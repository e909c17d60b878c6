"""Sandboxed Jinja2 rendering for pull request bodies, ticket comments and
knowledge documents."""

from ticketflow.rendering.engine import TemplateEngine

__all__ = ["TemplateEngine"]
