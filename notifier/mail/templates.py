"""HTML templating for digest emails (Jinja2, packaged templates by default)."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


class TemplateRenderer:
    """Render named templates from a directory.

    Raises ``jinja2.TemplateNotFound`` for a missing template and other
    ``jinja2.TemplateError`` subclasses for broken ones.
    """

    def __init__(self, template_dir: Optional[str] = None) -> None:
        self.template_dir = str(template_dir or DEFAULT_TEMPLATE_DIR)
        self.env = Environment(
            loader=FileSystemLoader(self.template_dir),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_name: str, variables: Mapping[str, Any]) -> str:
        template = self.env.get_template(template_name)
        return template.render(**variables)
