"""Secure Jinja2 template rendering engine.

All text ticketflow publishes (pull request bodies, ticket comments,
knowledge documents) is rendered here from the package's ``templates``
directory.

Security Features:
    - Sandboxed environment prevents arbitrary code execution
    - StrictUndefined catches missing variables early (fail-fast)
    - Template path validation prevents directory traversal attacks

Example:
    >>> from ticketflow.rendering import TemplateEngine
    >>> engine = TemplateEngine()
    >>> body = engine.render("pull_request.md.j2", context)
"""

import re
from pathlib import Path
from typing import Any, cast

from jinja2 import FileSystemLoader, StrictUndefined, TemplateNotFound
from jinja2.sandbox import SandboxedEnvironment

_WIKI_SPECIAL = re.compile(r"([\[\]|{}])")


def wiki_escape(value: Any) -> str:
    """Escape characters that carry meaning in the tracker's wiki markup."""
    return _WIKI_SPECIAL.sub(r"\\\1", str(value))


def wiki_link(url: str, text: str | None = None) -> str:
    """Tracker wiki-markup link: ``[text|url]``."""
    return f"[{wiki_escape(text)}|{url}]" if text else f"[{url}]"


class TemplateEngine:
    """Jinja2 rendering with a hardened configuration.

    Attributes:
        template_dir: Resolved path to the template directory.
        env: The SandboxedEnvironment instance.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        """Initialize template engine.

        Args:
            template_dir: Root directory for templates. If None, uses the
                package's built-in templates directory.

        Raises:
            ValueError: If template_dir doesn't exist or isn't a directory.
        """
        if template_dir is None:
            template_dir = Path(__file__).parent.parent / "templates"

        self.template_dir = template_dir.resolve()

        if not self.template_dir.is_dir():
            raise ValueError(f"Template directory does not exist: {self.template_dir}")

        self.env = SandboxedEnvironment(
            loader=FileSystemLoader(str(self.template_dir)),
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.env.filters.update({"wiki_escape": wiki_escape, "wiki_link": wiki_link})

    def validate_template_path(self, template_path: str) -> Path:
        """Validate template path to prevent directory traversal attacks.

        Raises:
            ValueError: If path escapes template directory.
            TemplateNotFound: If the template file doesn't exist.
        """
        requested_path = (self.template_dir / template_path).resolve()

        try:
            requested_path.relative_to(self.template_dir)
        except ValueError as e:
            raise ValueError(f"Template path escapes template directory: {template_path}") from e

        if not requested_path.exists():
            raise TemplateNotFound(template_path)

        return requested_path

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a template with the given context.

        Raises:
            TemplateNotFound: If template doesn't exist.
            jinja2.UndefinedError: If template uses undefined variables.
        """
        self.validate_template_path(template_path)
        template = self.env.get_template(template_path)
        return cast(str, template.render(**context))
