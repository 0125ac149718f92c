"""Template manifest model and loader.

A template declares its placeholders in a ``template_config.json`` (or YAML)
file at its root.  The declaration is an ordered list of replacement rules;
each rule binds one placeholder name to the files it governs.  Two layouts
are accepted::

    # 1. a bare list of file entries
    [
      {"path": "package.json",
       "replacements": [{"name": "project_name", "attribute": "name"}]},
      {"path": "README.md",
       "replacements": [{"name": "project_name"},
                        {"name": "keywords", "type": "array"}]}
    ]

    # 2. a mapping with explicit placeholder declarations
    version: 1
    delimiters: ["{{", "}}"]
    placeholders:
      keywords: {type: list, required: true}
    files:
      - path: "*.md"
        replacements: [{name: keywords}]

File patterns are ``fnmatch`` patterns matched against the full relative
POSIX path of the source file, so ``*`` also crosses directory separators.
"""

from __future__ import annotations

import json
import re
from enum import Enum
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from project_generator.errors import MalformedManifestError, ManifestNotFoundError
from project_generator.utils import print_debug

DEFAULT_DELIMITERS: tuple[str, str] = ("{{", "}}")

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_TYPE_ALIASES: dict[str, str] = {
    "string": "scalar",
    "scalar": "scalar",
    "text": "scalar",
    "array": "list",
    "list": "list",
}


class PlaceholderType(str, Enum):
    SCALAR = "scalar"
    LIST = "list"


# ---------------------------------------------------------------------------
# Public model
# ---------------------------------------------------------------------------


class Placeholder(BaseModel):
    """One named value the template expects."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: PlaceholderType = PlaceholderType.SCALAR
    required: bool = True
    default: str | bool | tuple[str, ...] | None = None
    description: str = ""

    @property
    def is_list(self) -> bool:
        return self.type is PlaceholderType.LIST


class ReplacementRule(BaseModel):
    """Binds a placeholder to the files it rewrites.

    ``token`` overrides the literal text that is replaced (by default the
    delimited placeholder name); ``attribute`` turns the rule into a
    structured update of a top-level key of a JSON document.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    type: PlaceholderType = PlaceholderType.SCALAR
    patterns: tuple[str, ...]
    token: str | None = None
    attribute: str | None = None

    def applies_to(self, path: str) -> bool:
        return any(fnmatchcase(path, pattern) for pattern in self.patterns)


class TemplateManifest(BaseModel):
    """Parsed, read-only template declaration."""

    model_config = ConfigDict(frozen=True)

    version: int = 1
    delimiters: tuple[str, str] = DEFAULT_DELIMITERS
    placeholders: tuple[Placeholder, ...] = ()
    rules: tuple[ReplacementRule, ...] = ()
    source: str = ""

    @property
    def placeholder_names(self) -> frozenset[str]:
        return frozenset(p.name for p in self.placeholders)

    def placeholder(self, name: str) -> Placeholder | None:
        for placeholder in self.placeholders:
            if placeholder.name == name:
                return placeholder
        return None

    def rules_for(self, path: str) -> list[ReplacementRule]:
        """Rules that govern *path*, in declaration order."""
        return [rule for rule in self.rules if rule.applies_to(path)]

    def token_for(self, rule: ReplacementRule) -> str:
        if rule.token is not None:
            return rule.token
        opening, closing = self.delimiters
        return f"{opening}{rule.name}{closing}"

    def token_pattern(self) -> re.Pattern[str]:
        """Regex matching any delimited identifier token; group 1 is the name."""
        opening, closing = self.delimiters
        return re.compile(
            re.escape(opening) + r"\s*([A-Za-z_][A-Za-z0-9_]*)\s*" + re.escape(closing)
        )


# ---------------------------------------------------------------------------
# Raw declaration shapes
# ---------------------------------------------------------------------------


class _RawReplacement(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    type: str = "string"
    token: str | None = None
    attribute: str | None = None
    key: str | None = None


class _RawFileEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str | None = None
    file: str | None = None
    files: list[str] | None = None
    replacements: list[_RawReplacement] = Field(default_factory=list)

    def patterns(self) -> tuple[str, ...]:
        found = [p for p in (self.path, self.file) if p]
        found.extend(self.files or [])
        return tuple(found)


class _RawPlaceholder(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = "string"
    required: bool = True
    default: str | bool | list[str] | None = None
    description: str = ""


class _RawManifest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: int = 1
    delimiters: tuple[str, str] = DEFAULT_DELIMITERS
    placeholders: dict[str, _RawPlaceholder] = Field(default_factory=dict)
    files: list[_RawFileEntry] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_manifest(path: str | Path) -> TemplateManifest:
    """Load and validate a template declaration file.

    Raises:
        ManifestNotFoundError: If the declaration file does not exist.
        MalformedManifestError: If it cannot be parsed or is structurally invalid.
    """
    manifest_path = Path(path)
    if not manifest_path.is_file():
        raise ManifestNotFoundError(f"Template declaration not found: {manifest_path}")

    try:
        raw = manifest_path.read_text(encoding="utf-8")
        if manifest_path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise MalformedManifestError(
            f"Cannot parse template declaration {manifest_path}: {exc}"
        ) from exc

    manifest = parse_manifest(data, source=str(manifest_path))
    print_debug(
        f"Loaded {len(manifest.rules)} replacement rule(s) and "
        f"{len(manifest.placeholders)} placeholder(s) from {manifest_path}"
    )
    return manifest


def parse_manifest(data: Any, source: str = "<memory>") -> TemplateManifest:
    """Build a ``TemplateManifest`` from already-decoded JSON/YAML data."""
    if isinstance(data, list):
        data = {"files": data}
    if not isinstance(data, dict):
        raise MalformedManifestError(
            f"{source}: expected a list of file entries or a mapping, got {type(data).__name__}"
        )

    try:
        raw = _RawManifest.model_validate(data)
    except ValidationError as exc:
        raise MalformedManifestError(f"{source}: {exc}") from exc

    if not all(raw.delimiters):
        raise MalformedManifestError(f"{source}: delimiters must be non-empty strings")

    declared: dict[str, Placeholder] = {}
    for name, spec in raw.placeholders.items():
        _check_name(name, source)
        default = tuple(spec.default) if isinstance(spec.default, list) else spec.default
        declared[name] = Placeholder(
            name=name,
            type=_parse_type(spec.type, name, source),
            required=spec.required,
            default=default,
            description=spec.description,
        )

    # First pass: settle one type per placeholder.  A rule without an explicit
    # type inherits whatever the declaration or another rule says.
    types: dict[str, PlaceholderType] = {n: p.type for n, p in declared.items()}
    pending: list[tuple[_RawReplacement, tuple[str, ...]]] = []
    for index, entry in enumerate(raw.files):
        patterns = entry.patterns()
        if not patterns:
            raise MalformedManifestError(f"{source}: file entry #{index} names no path")
        for replacement in entry.replacements:
            _check_name(replacement.name, source)
            if replacement.token is not None and not replacement.token:
                raise MalformedManifestError(
                    f"{source}: empty token for placeholder '{replacement.name}'"
                )
            pending.append((replacement, patterns))
            if "type" not in replacement.model_fields_set:
                continue
            rule_type = _parse_type(replacement.type, replacement.name, source)
            known = types.setdefault(replacement.name, rule_type)
            if known is not rule_type:
                raise MalformedManifestError(
                    f"{source}: placeholder '{replacement.name}' is declared both as "
                    f"{known.value} and {rule_type.value}"
                )

    rules: list[ReplacementRule] = []
    order: dict[str, Placeholder] = {}
    for replacement, patterns in pending:
        name = replacement.name
        placeholder_type = types.get(name, PlaceholderType.SCALAR)
        if name not in order:
            order[name] = (
                declared[name]
                if name in declared
                else Placeholder(name=name, type=placeholder_type)
            )
        rules.append(
            ReplacementRule(
                name=name,
                type=placeholder_type,
                patterns=patterns,
                token=replacement.token,
                attribute=replacement.attribute or replacement.key,
            )
        )

    # Declared-only placeholders (used in paths, for instance) follow rule order.
    for name, placeholder in declared.items():
        order.setdefault(name, placeholder)

    return TemplateManifest(
        version=raw.version,
        delimiters=raw.delimiters,
        placeholders=tuple(order.values()),
        rules=tuple(rules),
        source=source,
    )


def _parse_type(value: str, name: str, source: str) -> PlaceholderType:
    normalised = _TYPE_ALIASES.get(value.strip().lower())
    if normalised is None:
        raise MalformedManifestError(
            f"{source}: unknown type '{value}' for placeholder '{name}'"
        )
    return PlaceholderType(normalised)


def _check_name(name: str, source: str) -> None:
    if not _NAME_RE.match(name):
        raise MalformedManifestError(f"{source}: invalid placeholder name '{name}'")
