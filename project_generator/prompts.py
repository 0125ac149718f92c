"""Interactive answers for template placeholders.

Only placeholders that no other source supplies are asked for.  List
placeholders take a comma-separated answer.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from rich.markup import escape
from rich.prompt import Confirm, Prompt

from project_generator.scaffolder.manifest import Placeholder, TemplateManifest
from project_generator.utils import console

AnswerProvider = Callable[[TemplateManifest, Mapping[str, Any]], dict[str, Any]]


def split_list(raw: str) -> list[str]:
    """``"a, b,,c"`` -> ``["a", "b", "c"]``."""
    return [item.strip() for item in raw.split(",") if item.strip()]


def ask_missing(manifest: TemplateManifest, known: Mapping[str, Any]) -> dict[str, Any]:
    """Prompt for every declared placeholder absent from *known*.

    Args:
        manifest: The template declaration.
        known: Flat mapping of values already supplied (system fields and
            template variables from the config file, flags and defaults).

    Returns:
        Answers keyed by placeholder name.  Skipped optional answers are
        omitted so the resolver's fallbacks still apply.
    """
    missing = [p for p in manifest.placeholders if known.get(p.name) in (None, "", [], ())]
    if not missing:
        return {}

    console.print(f"[bold]{len(missing)} template value(s) needed[/bold]")
    answers: dict[str, Any] = {}
    for placeholder in missing:
        value = _ask(placeholder)
        if value not in (None, "", []):
            answers[placeholder.name] = value
    return answers


def _ask(placeholder: Placeholder) -> Any:
    label = placeholder.name
    if placeholder.description:
        label = f"{label} [dim]({escape(placeholder.description)})[/dim]"

    default = placeholder.default
    if isinstance(default, bool):
        return Confirm.ask(label, default=default, console=console)

    if placeholder.is_list:
        shown = ", ".join(default) if isinstance(default, tuple) else None
        raw = Prompt.ask(f"{label} [dim]comma-separated[/dim]", default=shown, console=console)
        return split_list(raw or "")

    return Prompt.ask(label, default=default, console=console)
