"""Configuration resolution.

Merges the raw value sources of a run into one ``GenerationContext``.
Sources, from highest to lowest precedence:

1. the run configuration file,
2. interactive answers,
3. CLI flags,
4. computed defaults (derived from the template identity and a timestamp).

Each source is a flat mapping.  Keys the system schema knows are system
fields; every other key is a template variable.  A ``variables`` mapping
declares template variables explicitly; naming a system field there is a
collision.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from project_generator.config import DefaultsConfig
from project_generator.errors import (
    InvalidEnumValueError,
    InvalidValueError,
    KeyCollisionError,
    ListTypeError,
    MissingFieldError,
)
from project_generator.resolver.context import ExtensionValue, GenerationContext
from project_generator.resolver.schema import EnumField, FlagField, SystemSchema, default_schema
from project_generator.scaffolder.catalog import TemplateRef
from project_generator.scaffolder.manifest import Placeholder, TemplateManifest
from project_generator.utils import parse_bool, print_debug, slugify

VARIABLES_KEY = "variables"

# Keys a run configuration may carry that are consumed before resolution.
RUN_KEYS = frozenset({"template"})


# ---------------------------------------------------------------------------
# Computed defaults
# ---------------------------------------------------------------------------


def compute_defaults(
    template: TemplateRef,
    timestamp: datetime,
    defaults: DefaultsConfig | None = None,
    schema: SystemSchema | None = None,
) -> dict[str, Any]:
    """Defaults that depend only on the template identity and the timestamp."""
    defaults = defaults or DefaultsConfig()
    schema = schema or default_schema()
    stamp = timestamp.strftime(defaults.timestamp_format)

    values: dict[str, Any] = {
        "project_name": f"{template.name}-{stamp}",
        "description": f"Project generated from the {template.name} template",
        "template_category": template.category,
        "template_name": template.name,
        "version": "1.0.0",
        "license": "MIT",
        "branch": "main",
        "visibility": "private",
        "create_develop_branch": False,
    }
    category = schema.get("category")
    if isinstance(category, EnumField) and template.category in category.choices:
        values["category"] = template.category
    return {key: value for key, value in values.items() if key in schema}


def derive_urls(
    project_name: str, defaults: DefaultsConfig | None = None
) -> dict[str, str]:
    """URL defaults sharing the slug of the resolved project name."""
    defaults = defaults or DefaultsConfig()
    slug = slugify(project_name)
    return {
        "repository_url": f"{defaults.repository_base_url.rstrip('/')}/{slug}",
        "website_url": f"https://{slug}.{defaults.website_domain}",
    }


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def resolve(
    config_file: Mapping[str, Any] | None,
    cli_flags: Mapping[str, Any],
    answers: Mapping[str, Any],
    manifest: TemplateManifest,
    *,
    template: TemplateRef,
    schema: SystemSchema | None = None,
    timestamp: datetime | None = None,
    defaults: DefaultsConfig | None = None,
) -> GenerationContext:
    """Merge the raw sources of a run and validate the result.

    Validation runs in a fixed order: required system fields, enumerated
    values, key collisions, then the manifest's placeholders.

    Raises:
        ConfigError: Any validation failure; nothing has touched the
            filesystem at that point.
    """
    schema = schema or default_schema()
    timestamp = timestamp or datetime.now()

    layers: list[tuple[str, Mapping[str, Any]]] = [
        ("defaults", compute_defaults(template, timestamp, defaults, schema)),
        ("cli flags", cli_flags),
        ("interactive answers", answers),
        ("config file", config_file or {}),
    ]

    system: dict[str, Any] = {}
    extension: dict[str, Any] = {}
    collisions: list[str] = []
    for source, layer in layers:
        layer_system, layer_extension, layer_collisions = _split(layer, schema)
        collisions.extend(layer_collisions)
        for key, value in layer_system.items():
            print_debug(f"{key} <- {source}")
            system[key] = value
        for key, value in layer_extension.items():
            print_debug(f"{key} <- {source} (template variable)")
            extension[key] = value

    if _present(system.get("project_name")):
        for key, value in derive_urls(str(system["project_name"]), defaults).items():
            if key in schema and not _present(system.get(key)):
                system[key] = value

    # (a) required system fields
    for spec in schema.fields:
        if spec.required and not _present(system.get(spec.name)):
            raise MissingFieldError(spec.name)

    # (b) enumerated values, plus type normalisation of the rest
    system_fields = _normalise_system(system, schema)

    # (c) collisions between the two key spaces
    if collisions:
        raise KeyCollisionError(collisions[0])

    extension_fields = {
        key: _normalise_extension(key, value) for key, value in extension.items()
    }

    # (d) every placeholder the template declares is satisfied
    for placeholder in manifest.placeholders:
        if placeholder.name in schema:
            _check_system_placeholder(placeholder, system_fields, schema)
        else:
            extension_fields[placeholder.name] = _satisfy(
                placeholder, extension_fields.get(placeholder.name)
            )

    return GenerationContext(
        template=template,
        timestamp=timestamp,
        system_fields=system_fields,
        extension_fields=extension_fields,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _split(
    layer: Mapping[str, Any], schema: SystemSchema
) -> tuple[dict[str, Any], dict[str, Any], list[str]]:
    system: dict[str, Any] = {}
    extension: dict[str, Any] = {}
    collisions: list[str] = []

    for key, value in layer.items():
        if key in RUN_KEYS or value is None:
            continue
        if key == VARIABLES_KEY:
            if not isinstance(value, Mapping):
                raise InvalidValueError(
                    f"'{VARIABLES_KEY}' must be a mapping of template variables",
                    field=VARIABLES_KEY,
                )
            for var_key, var_value in value.items():
                if var_key in schema:
                    collisions.append(var_key)
                elif var_value is not None:
                    extension[var_key] = var_value
        elif key in schema:
            system[key] = value
        else:
            extension[key] = value
    return system, extension, collisions


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _normalise_system(values: dict[str, Any], schema: SystemSchema) -> dict[str, str | bool]:
    result: dict[str, str | bool] = {}
    for spec in schema.fields:
        if spec.name not in values:
            continue
        value = values[spec.name]
        if isinstance(spec, FlagField):
            result[spec.name] = _to_flag(spec.name, value)
            continue
        text = _to_text(spec.name, value)
        if isinstance(spec, EnumField) and text not in spec.choices:
            raise InvalidEnumValueError(spec.name, value, spec.choices)
        result[spec.name] = text
    return result


def _to_flag(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        parsed = parse_bool(value)
        if parsed is not None:
            return parsed
    raise InvalidValueError(f"Field '{name}' expects true or false, got {value!r}", field=name)


def _to_text(name: str, value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise InvalidValueError(f"Field '{name}' expects text, got {value!r}", field=name)


def _normalise_extension(name: str, value: Any) -> ExtensionValue:
    if isinstance(value, (str, bool)):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if isinstance(item, bool):
                items.append("true" if item else "false")
            elif isinstance(item, (str, int, float)):
                items.append(str(item))
            else:
                raise InvalidValueError(
                    f"Variable '{name}' may only hold a list of scalars, got {item!r}",
                    field=name,
                )
        return tuple(items)
    raise InvalidValueError(
        f"Variable '{name}' must be text, a boolean or a list, got {type(value).__name__}",
        field=name,
    )


def _check_system_placeholder(
    placeholder: Placeholder, system: dict[str, str | bool], schema: SystemSchema
) -> None:
    if placeholder.is_list:
        raise ListTypeError(
            f"Placeholder '{placeholder.name}' is a system field and cannot be a list",
            field=placeholder.name,
        )
    if placeholder.name in system:
        return
    if placeholder.default is not None:
        # Manifest defaults obey the field type and enum choices like any other source.
        system.update(_normalise_system({placeholder.name: placeholder.default}, schema))
        return
    if placeholder.required:
        raise MissingFieldError(placeholder.name)
    system[placeholder.name] = False if isinstance(schema.get(placeholder.name), FlagField) else ""


def _satisfy(placeholder: Placeholder, value: ExtensionValue | None) -> ExtensionValue:
    if value is None:
        if placeholder.default is not None:
            value = placeholder.default
        elif placeholder.required:
            raise MissingFieldError(placeholder.name)
        else:
            value = () if placeholder.is_list else ""

    if placeholder.is_list:
        if not isinstance(value, tuple):
            raise ListTypeError(
                f"Placeholder '{placeholder.name}' expects a list, got {value!r}",
                field=placeholder.name,
            )
        if placeholder.required and not value:
            raise ListTypeError(
                f"Placeholder '{placeholder.name}' requires at least one element",
                field=placeholder.name,
            )
    elif isinstance(value, tuple):
        raise ListTypeError(
            f"Placeholder '{placeholder.name}' expects a single value, got a list",
            field=placeholder.name,
        )
    return value
