"""Command-line entry point.

Usage::

    project-generator generate --template packages/library --output ./out
    project-generator generate --config run.yaml --remote
    project-generator list
    project-generator init-config packages/library --output run.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from rich.markup import escape
from rich.table import Table

from project_generator.config import Settings
from project_generator.dispatcher import Dispatcher, GenerationMode, GenerationRequest
from project_generator.errors import GeneratorError
from project_generator.prompts import ask_missing, split_list
from project_generator.scaffolder.catalog import TemplateCatalog, TemplateRef
from project_generator.scaffolder.manifest import load_manifest
from project_generator.starter import render_run_config, write_run_config
from project_generator.utils import console, print_error, print_success, set_debug


def _assignment(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got '{raw}'")
    return key.strip(), value


def _template_ref(raw: str) -> TemplateRef:
    try:
        return TemplateRef.parse(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="project-generator",
        description="Project generator -- create projects from declared templates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  project-generator generate --template packages/library\n"
            "  project-generator generate --config run.yaml --remote\n"
            "  project-generator init-config packages/library -o run.yaml\n"
        ),
    )
    parser.add_argument(
        "--templates-dir",
        default=None,
        help="Templates root (default: $PROJGEN_TEMPLATES_DIR or ./templates)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a project from a template")
    gen.add_argument("--config", "-c", default=None, help="Run configuration file (YAML or JSON)")
    gen.add_argument(
        "--template", "-t",
        type=_template_ref,
        default=None,
        help="Template as <category>/<name> (overrides the configuration file)",
    )
    gen.add_argument(
        "--output", "-o",
        default=".",
        help="Parent directory for the generated project (default: .)",
    )
    gen.add_argument(
        "--remote",
        action="store_true",
        help="Publish to a new GitHub repository instead of writing locally",
    )
    gen.add_argument(
        "--set",
        dest="values",
        action="append",
        type=_assignment,
        default=[],
        metavar="KEY=VALUE",
        help="Set a field or template variable (repeatable)",
    )
    gen.add_argument(
        "--set-list",
        dest="list_values",
        action="append",
        type=_assignment,
        default=[],
        metavar="KEY=A,B",
        help="Set a list template variable from comma-separated items (repeatable)",
    )
    gen.add_argument(
        "--interactive", "-i",
        action="store_true",
        help="Prompt for template values that no other source supplies",
    )
    gen.add_argument("--force", action="store_true", help="Replace an existing destination")
    gen.add_argument("--debug", action="store_true", help="Show resolution and substitution details")

    sub.add_parser("list", help="List available templates")

    init = sub.add_parser("init-config", help="Write a starter run configuration for a template")
    init.add_argument("template", type=_template_ref, help="Template as <category>/<name>")
    init.add_argument("--output", "-o", default=None, help="Output file (default: stdout)")

    return parser


def collect_flags(values: list[tuple[str, str]], list_values: list[tuple[str, str]]) -> dict[str, Any]:
    """Merge ``--set`` and ``--set-list`` pairs; later pairs win."""
    flags: dict[str, Any] = {}
    for key, value in values:
        flags[key] = value
    for key, value in list_values:
        flags[key] = split_list(value)
    return flags


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_generate(args: argparse.Namespace, settings: Settings) -> int:
    request = GenerationRequest(
        template=args.template,
        config_path=Path(args.config) if args.config else None,
        cli_flags=collect_flags(args.values, args.list_values),
        output_dir=Path(args.output),
        mode=GenerationMode.REMOTE if args.remote else GenerationMode.LOCAL,
        force=args.force,
    )
    dispatcher = Dispatcher(settings, answer_provider=ask_missing if args.interactive else None)
    result = asyncio.run(dispatcher.run(request))
    return result.exit_code


def _cmd_list(settings: Settings) -> int:
    catalog = TemplateCatalog(settings.templates_dir, settings.manifest_filename)
    templates = catalog.list_templates()
    if not templates:
        console.print(f"No templates found under {settings.templates_dir}")
        return 0

    table = Table(title="Templates", show_header=True, header_style="bold cyan")
    table.add_column("Template", no_wrap=True)
    table.add_column("Placeholders")
    table.add_column("Rules", justify="right")
    for template in templates:
        try:
            manifest = load_manifest(catalog.manifest_path(template))
        except GeneratorError as exc:
            table.add_row(str(template), f"[red]{escape(str(exc))}[/red]", "-")
            continue
        names = ", ".join(sorted(manifest.placeholder_names)) or "-"
        table.add_row(str(template), names, str(len(manifest.rules)))
    console.print(table)
    return 0


def _cmd_init_config(args: argparse.Namespace, settings: Settings) -> int:
    catalog = TemplateCatalog(settings.templates_dir, settings.manifest_filename)
    catalog.locate(args.template)
    manifest = load_manifest(catalog.manifest_path(args.template))
    content = render_run_config(args.template, manifest, defaults=settings.defaults)
    if args.output is None:
        sys.stdout.write(content)
        return 0
    target = write_run_config(content, args.output)
    print_success(f"Wrote {target}")
    return 0


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``project-generator``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.templates_dir:
        settings.templates_dir = Path(args.templates_dir)
    set_debug(settings.debug or getattr(args, "debug", False))

    try:
        if args.command == "generate":
            code = _cmd_generate(args, settings)
        elif args.command == "list":
            code = _cmd_list(settings)
        else:
            code = _cmd_init_config(args, settings)
    except GeneratorError as exc:
        print_error(f"Error: {exc}")
        code = exc.exit_code
    except OSError as exc:
        print_error(f"Error: {exc}")
        code = 1

    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
