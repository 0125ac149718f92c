"""Starter run configurations.

Writes a ready-to-edit YAML configuration for a template: every system field
with its computed default (optional ones commented out) followed by every
template variable the manifest declares.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from project_generator.config import DefaultsConfig
from project_generator.resolver.resolver import compute_defaults, derive_urls
from project_generator.resolver.schema import EnumField, SystemSchema, default_schema
from project_generator.scaffolder.catalog import TemplateRef
from project_generator.scaffolder.manifest import TemplateManifest
from project_generator.scaffolder.templates import TemplateRenderer


def render_run_config(
    template: TemplateRef,
    manifest: TemplateManifest,
    *,
    schema: SystemSchema | None = None,
    timestamp: datetime | None = None,
    defaults: DefaultsConfig | None = None,
    renderer: TemplateRenderer | None = None,
) -> str:
    """Render the starter configuration for *template* as YAML text."""
    schema = schema or default_schema()
    timestamp = timestamp or datetime.now()
    renderer = renderer or TemplateRenderer()

    values = compute_defaults(template, timestamp, defaults, schema)
    values.update(derive_urls(values["project_name"], defaults))

    system_fields = [
        {
            "name": spec.name,
            "kind": spec.kind,
            "required": spec.required,
            "value": values.get(spec.name),
            "choices": list(spec.choices) if isinstance(spec, EnumField) else [],
        }
        for spec in schema.fields
    ]

    variables = []
    for placeholder in manifest.placeholders:
        if placeholder.name in schema:
            continue
        variables.append(
            {
                "name": placeholder.name,
                "is_list": placeholder.is_list,
                "value": _example_value(placeholder.name, placeholder.is_list, placeholder.default, template),
                "description": placeholder.description,
            }
        )

    context: dict[str, Any] = {
        "template": template,
        "generated_at": timestamp.isoformat(timespec="seconds"),
        "manifest_source": manifest.source or "template declaration",
        "system_fields": system_fields,
        "variables": variables,
    }
    return renderer.render("run-config.yaml.j2", context)


def write_run_config(content: str, path: str | Path) -> Path:
    """Write a rendered configuration, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target


def _example_value(name: str, is_list: bool, default: Any, template: TemplateRef) -> Any:
    if default is not None:
        return list(default) if isinstance(default, tuple) else default
    if is_list:
        return [template.name]
    return f"{name}_value"
