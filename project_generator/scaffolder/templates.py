"""Jinja2 rendering for the generator's own text output.

Provides the ``TemplateRenderer`` class which loads Jinja2 templates from the
``project_generator/scaffolder/templates/`` directory.  Project templates are
not Jinja2 templates; this renderer only produces files the generator writes
itself, such as starter run configurations.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


class TemplateRenderer:
    """Renders ``.j2`` templates with a context dictionary."""

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self.env.filters["yaml_value"] = _yaml_value_filter

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"run-config.yaml.j2"``).
            context: Variables available inside the template.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)

    def list_templates(self) -> list[str]:
        """Sorted ``.j2`` template paths relative to the template root."""
        if not self.template_dir.is_dir():
            return []
        return sorted(str(p.relative_to(self.template_dir)) for p in self.template_dir.rglob("*.j2"))


def _yaml_value_filter(value: Any) -> str:
    """Render a scalar or list as an inline YAML value.

    JSON scalars and arrays are valid YAML flow values, and quoting every
    string keeps values like ``1.0.0`` or ``no`` from changing type.
    """
    if isinstance(value, tuple):
        value = list(value)
    return json.dumps(value, ensure_ascii=False)
