"""Shared utility functions for the project generator.

Provides name helpers and Rich-based console reporting.  Everything that
prints goes through the module-level ``console`` so tests can capture or
silence output in one place.
"""

from __future__ import annotations

import re

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

console = Console()

_debug_enabled = False

# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def slugify(name: str) -> str:
    """Convert an arbitrary project name to a URL/repository-safe slug.

    * Lowercases the input.
    * Replaces anything that is not alphanumeric, ``-`` or ``_`` with hyphens.
    * Collapses consecutive hyphens and strips leading/trailing hyphens.

    Examples::

        slugify("My Library") -> "my-library"
        slugify("@scope/pkg") -> "scope-pkg"
    """
    result = re.sub(r"[^a-zA-Z0-9_-]", "-", name.strip().lower())
    result = re.sub(r"-+", "-", result)
    return result.strip("-")


def parse_bool(value: str) -> bool | None:
    """Interpret a textual flag value; ``None`` when it is not recognisable."""
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "on", "1"):
        return True
    if lowered in ("false", "no", "off", "0"):
        return False
    return None


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
    """
    if seconds < 0:
        return "0.0s"

    minutes = int(seconds // 60)
    secs = seconds % 60
    if minutes > 0:
        return f"{minutes}m {int(secs)}s"
    return f"{secs:.1f}s"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


STAGE_COLORS: dict[str, str] = {
    "configuring": "bright_cyan",
    "substituting": "bright_green",
    "writing": "bright_yellow",
}


def set_debug(enabled: bool) -> None:
    """Turn debug output on or off for the rest of the process."""
    global _debug_enabled
    _debug_enabled = enabled


def debug_enabled() -> bool:
    return _debug_enabled


def print_debug(message: str) -> None:
    """Print a dim debug line when debug output is enabled."""
    if _debug_enabled:
        console.print(f"[dim]debug: {escape(message)}[/dim]", highlight=False)


def print_stage_header(stage: str) -> None:
    """Print a full-width rule announcing a generation stage."""
    color = STAGE_COLORS.get(stage.lower(), "white")
    console.print()
    console.print(Rule(f"[bold {color}] {stage.upper()} [/bold {color}]", style=color))


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table.  Values are shown literally."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(escape(key), escape(str(value)))

    console.print(table)


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]")
