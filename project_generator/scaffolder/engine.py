"""Substitution engine.

Rewrites a ``SourceTree`` against a ``GenerationContext`` and returns a new
``ResolvedTree``; neither input is modified.

* Path segments: every delimited token is replaced by the scalar form of its
  value.  List placeholders are not allowed in paths.
* Text files: only the rules whose patterns match the file apply.  When two
  rules target the same token the one declared later wins.  Whitespace inside
  the delimiters is tolerated.  A line holding a list token is repeated once
  per element, in order.
* JSON attribute rules update (or insert) top-level keys of ``.json`` files
  and are ignored for other files.
* Binary files are copied untouched.

After rewriting, any ``{{identifier}}`` token left in a path or in text
content is an error: a silently unresolved token would corrupt the generated
project.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from project_generator.errors import (
    ListExpansionError,
    PathCollisionError,
    SubstitutionError,
    UnresolvedPlaceholderError,
)
from project_generator.scaffolder.manifest import PlaceholderType, ReplacementRule, TemplateManifest
from project_generator.scaffolder.tree import ResolvedTree, SourceTree, TreeEntry
from project_generator.utils import print_debug

if TYPE_CHECKING:
    from project_generator.resolver.context import GenerationContext

_BINARY_SNIFF_BYTES = 8192


def apply(
    context: GenerationContext, manifest: TemplateManifest, source: SourceTree
) -> ResolvedTree:
    """Produce the fully substituted tree.

    Raises:
        SubstitutionError: On an unresolved token, an impossible list
            expansion, a path collision, or an attribute rule on a file that
            is not a JSON object.
    """
    values = context.as_dict()
    token_re = manifest.token_pattern()
    entries: list[TreeEntry] = []
    origins: dict[str, str] = {}

    for entry in source:
        new_path = _substitute_path(entry.path, values, manifest, token_re)
        if new_path in origins:
            raise PathCollisionError(
                f"resolves to '{new_path}', already produced by '{origins[new_path]}'",
                entry.path,
            )
        origins[new_path] = entry.path

        if entry.is_dir:
            entries.append(TreeEntry(path=new_path, is_dir=True, mode=entry.mode))
            continue

        content = _substitute_file(entry, values, manifest, token_re)
        entries.append(TreeEntry(path=new_path, content=content, mode=entry.mode))

    print_debug(f"Resolved {len(entries)} entries from {len(source)} source entries")
    return ResolvedTree(entries)


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def _substitute_path(
    path: str,
    values: dict[str, Any],
    manifest: TemplateManifest,
    token_re: re.Pattern[str],
) -> str:
    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        placeholder = manifest.placeholder(name)
        if placeholder is None or name not in values:
            raise UnresolvedPlaceholderError(name, path)
        if placeholder.type is PlaceholderType.LIST:
            raise ListExpansionError(name, path, "lists are not allowed in paths")
        return _scalar(values[name], name, path)

    segments = []
    for segment in path.split("/"):
        resolved = token_re.sub(_replace, segment)
        if resolved != segment and (not resolved or "/" in resolved or resolved in (".", "..")):
            raise SubstitutionError(f"path segment '{segment}' resolves to '{resolved}'", path)
        segments.append(resolved)

    new_path = "/".join(segments)
    leftover = token_re.search(new_path)
    if leftover:
        raise UnresolvedPlaceholderError(leftover.group(1), path)
    return new_path


# ---------------------------------------------------------------------------
# File contents
# ---------------------------------------------------------------------------


def _substitute_file(
    entry: TreeEntry,
    values: dict[str, Any],
    manifest: TemplateManifest,
    token_re: re.Pattern[str],
) -> bytes:
    data = entry.content or b""
    text = _decode(data)
    if text is None:
        print_debug(f"{entry.path}: binary, copied as-is")
        return data

    rules = manifest.rules_for(entry.path)
    text_rules = [rule for rule in rules if rule.attribute is None]
    attribute_rules = [rule for rule in rules if rule.attribute is not None]
    if attribute_rules and not entry.path.endswith(".json"):
        print_debug(f"{entry.path}: not a JSON file, attribute rules skipped")
        attribute_rules = []

    if text_rules:
        text = _replace_tokens(text, text_rules, values, manifest, token_re, entry.path)
    if attribute_rules:
        text = _apply_attributes(text, attribute_rules, values, entry.path)

    leftover = token_re.search(text)
    if leftover:
        raise UnresolvedPlaceholderError(leftover.group(1), entry.path)
    return text.encode("utf-8")


def _replace_tokens(
    text: str,
    rules: list[ReplacementRule],
    values: dict[str, Any],
    manifest: TemplateManifest,
    token_re: re.Pattern[str],
    path: str,
) -> str:
    # Delimited tokens are matched by name so inner whitespace is tolerated;
    # other override tokens are matched literally.  Later rules win either way.
    named: dict[str, ReplacementRule] = {}
    literal: dict[str, ReplacementRule] = {}
    for rule in rules:
        token = manifest.token_for(rule)
        delimited = token_re.fullmatch(token)
        if delimited:
            named[delimited.group(1)] = rule
        else:
            literal[token] = rule
    for rule in [*named.values(), *literal.values()]:
        if rule.name not in values:
            raise UnresolvedPlaceholderError(rule.name, path)

    alternatives = [re.escape(token) for token in sorted(literal, key=len, reverse=True)]
    alternatives.append(token_re.pattern)
    pattern = re.compile("|".join(alternatives))

    def _rule_for(match: re.Match[str]) -> ReplacementRule | None:
        if match.group(0) in literal:
            return literal[match.group(0)]
        return named.get(match.group(1))

    def _scalar_for(match: re.Match[str]) -> str:
        rule = _rule_for(match)
        if rule is None:
            return match.group(0)
        if rule.type is PlaceholderType.LIST:
            raise ListExpansionError(rule.name, path, "list token outside a line expansion")
        return _scalar(values[rule.name], rule.name, path)

    output: list[str] = []
    for line in text.splitlines(keepends=True):
        matched = [rule for rule in map(_rule_for, pattern.finditer(line)) if rule is not None]
        list_names = sorted({rule.name for rule in matched if rule.type is PlaceholderType.LIST})
        if not list_names:
            output.append(pattern.sub(_scalar_for, line))
            continue
        if len(list_names) > 1:
            raise ListExpansionError(
                list_names[1], path, f"shares a line with list placeholder '{list_names[0]}'"
            )

        name = list_names[0]
        items = values[name]
        if not isinstance(items, tuple):
            raise ListExpansionError(name, path, "context value is not a list")
        for item in items:

            def _expand(match: re.Match[str], item: str = item) -> str:
                rule = _rule_for(match)
                if rule is not None and rule.name == name:
                    return item
                return _scalar_for(match)

            output.append(pattern.sub(_expand, line))
    return "".join(output)


def _apply_attributes(
    text: str, rules: list[ReplacementRule], values: dict[str, Any], path: str
) -> str:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SubstitutionError(f"attribute rules need valid JSON: {exc}", path) from exc
    if not isinstance(document, dict):
        raise SubstitutionError("attribute rules need a JSON object at the top level", path)

    anchor = "name" if "name" in document else None
    for rule in rules:
        if rule.name not in values:
            raise UnresolvedPlaceholderError(rule.name, path)
        value = values[rule.name]
        json_value = list(value) if isinstance(value, tuple) else value
        key = rule.attribute
        if key in document:
            print_debug(f"{path}: updated key '{key}' from '{rule.name}'")
            document[key] = json_value
        elif anchor is None:
            print_debug(f"{path}: appended key '{key}' from '{rule.name}'")
            document[key] = json_value
        else:
            print_debug(f"{path}: inserted key '{key}' after '{anchor}'")
            document = _insert_after(document, anchor, key, json_value)
            anchor = key

    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def _insert_after(document: dict[str, Any], anchor: str, key: str, value: Any) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for existing_key, existing_value in document.items():
        result[existing_key] = existing_value
        if existing_key == anchor:
            result[key] = value
    return result


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _decode(data: bytes) -> str | None:
    """Text content of *data*, or ``None`` when it looks binary."""
    if b"\x00" in data[:_BINARY_SNIFF_BYTES]:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _scalar(value: Any, name: str, path: str) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, tuple):
        raise ListExpansionError(name, path, "a list cannot be used as a single value")
    return str(value)
