"""Generation run orchestrator.

Drives one run through its stages:

CONFIGURING  -- Read the run configuration, load the template declaration,
                collect answers and resolve the ``GenerationContext``.
SUBSTITUTING -- Snapshot the template tree and rewrite it.
WRITING      -- Commit the resolved tree to a local directory, or stage it in
                a scratch workspace and hand it to the repository publisher.

A run ends in ``DONE`` or ``FAILED``.  No state is entered twice and nothing
touches the output location before ``WRITING``.
"""

from __future__ import annotations

import shutil
import tempfile
import time
import traceback
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from rich.markup import escape
from rich.panel import Panel

from project_generator.config import Settings, load_run_config
from project_generator.errors import (
    ConfigError,
    GeneratorError,
    InvalidValueError,
    MissingTokenError,
    PublishError,
)
from project_generator.prompts import AnswerProvider
from project_generator.publisher.base import PublishRequest, RepositoryPublisher
from project_generator.publisher.github import GitHubPublisher
from project_generator.resolver.context import GenerationContext
from project_generator.resolver.resolver import VARIABLES_KEY, compute_defaults, resolve
from project_generator.resolver.schema import SystemSchema, default_schema
from project_generator.scaffolder.catalog import TemplateCatalog, TemplateRef
from project_generator.scaffolder.engine import apply
from project_generator.scaffolder.manifest import TemplateManifest, load_manifest
from project_generator.scaffolder.tree import DEFAULT_EXCLUDES, ResolvedTree, SourceTree
from project_generator.scaffolder.writer import commit_atomically
from project_generator.utils import (
    console,
    debug_enabled,
    format_duration,
    parse_bool,
    print_error,
    print_stage_header,
    print_success,
    print_summary_table,
    print_warning,
)

TOKEN_VARIABLE = "GITHUB_TOKEN"


class RunState(str, Enum):
    CONFIGURING = "configuring"
    SUBSTITUTING = "substituting"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


class GenerationMode(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


_TRANSITIONS: dict[RunState | None, frozenset[RunState]] = {
    None: frozenset({RunState.CONFIGURING}),
    RunState.CONFIGURING: frozenset({RunState.SUBSTITUTING, RunState.FAILED}),
    RunState.SUBSTITUTING: frozenset({RunState.WRITING, RunState.FAILED}),
    RunState.WRITING: frozenset({RunState.DONE, RunState.FAILED}),
    RunState.DONE: frozenset(),
    RunState.FAILED: frozenset(),
}


@dataclass
class GenerationRequest:
    """Inputs of one generation run.

    ``template`` wins over any template named in the configuration file.
    ``token`` overrides the token from the settings (remote mode only).
    """

    template: TemplateRef | None = None
    config_path: Path | None = None
    cli_flags: dict[str, Any] = field(default_factory=dict)
    answers: dict[str, Any] = field(default_factory=dict)
    output_dir: Path = Path(".")
    mode: GenerationMode = GenerationMode.LOCAL
    force: bool = False
    token: str | None = field(default=None, repr=False)
    timestamp: datetime | None = None


@dataclass
class GenerationResult:
    """Outcome of a run; ``error`` is set exactly when ``state`` is FAILED."""

    state: RunState
    history: list[RunState]
    context: GenerationContext | None = None
    destination: Path | None = None
    repository_url: str | None = None
    error: Exception | None = None
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.state is RunState.DONE

    @property
    def exit_code(self) -> int:
        if self.error is None:
            return 0
        return getattr(self.error, "exit_code", 1)


class _StateTracker:
    """Records the states of one run and refuses illegal transitions."""

    def __init__(self) -> None:
        self.state: RunState | None = None
        self.history: list[RunState] = []

    def advance(self, target: RunState) -> None:
        if target in self.history or target not in _TRANSITIONS[self.state]:
            current = self.state.value if self.state else "start"
            raise RuntimeError(f"Illegal state transition: {current} -> {target.value}")
        self.state = target
        self.history.append(target)


@dataclass
class _Configured:
    template: TemplateRef
    template_dir: Path
    manifest: TemplateManifest
    context: GenerationContext
    token: str | None


class Dispatcher:
    """Runs generation requests end to end.

    Attributes:
        settings: Global generator settings.
        publisher: Repository publisher for remote mode.  Built from
            ``settings.github`` on first use when not supplied.
        answer_provider: Called during CONFIGURING with the manifest and the
            values known so far; its answers become a resolution source.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        publisher: RepositoryPublisher | None = None,
        answer_provider: AnswerProvider | None = None,
        schema: SystemSchema | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.publisher = publisher
        self.answer_provider = answer_provider
        self.schema = schema or default_schema()
        self.catalog = TemplateCatalog(self.settings.templates_dir, self.settings.manifest_filename)

    async def run(self, request: GenerationRequest) -> GenerationResult:
        """Execute every stage of *request*.

        Returns:
            A ``GenerationResult``.  Generation failures are reported in the
            result, never raised.
        """
        started = time.monotonic()
        tracker = _StateTracker()
        result = GenerationResult(state=RunState.CONFIGURING, history=tracker.history)

        try:
            tracker.advance(RunState.CONFIGURING)
            print_stage_header(RunState.CONFIGURING.value)
            configured = self._configure(request)
            result.context = configured.context
            console.print(
                f"  Resolved [bold]{escape(configured.context.project_name)}[/bold] "
                f"from template {configured.template}"
            )

            tracker.advance(RunState.SUBSTITUTING)
            print_stage_header(RunState.SUBSTITUTING.value)
            tree = self._substitute(configured)
            console.print(f"  {len(tree.files())} file(s), {len(tree)} entries resolved")

            tracker.advance(RunState.WRITING)
            print_stage_header(RunState.WRITING.value)
            if request.mode is GenerationMode.REMOTE:
                result.repository_url = await self._publish(tree, configured)
            else:
                result.destination = self._write_local(tree, configured, request)

            tracker.advance(RunState.DONE)

        except GeneratorError as exc:
            tracker.advance(RunState.FAILED)
            result.error = exc
            print_error(f"Generation failed: {exc}")
            if isinstance(exc, PublishError) and exc.workspace is not None:
                print_warning(f"  Workspace kept for inspection: {exc.workspace}")

        except Exception as exc:
            tracker.advance(RunState.FAILED)
            result.error = exc
            print_error(f"Generation failed unexpectedly: {exc}")
            if debug_enabled():
                console.print(f"[dim]{traceback.format_exc()}[/dim]")

        result.state = tracker.state or RunState.FAILED
        result.duration = time.monotonic() - started
        self._print_final_summary(result, request)
        return result

    # ------------------------------------------------------------------
    # CONFIGURING
    # ------------------------------------------------------------------

    def _configure(self, request: GenerationRequest) -> _Configured:
        config = load_run_config(request.config_path) if request.config_path else {}
        template = request.template or template_from_config(config)
        if template is None:
            raise ConfigError(
                "No template given; pass --template or set 'template' in the configuration file",
                field="template",
            )

        token: str | None = None
        if request.mode is GenerationMode.REMOTE:
            token = request.token or self.settings.github.token
            if not token:
                raise MissingTokenError(TOKEN_VARIABLE)

        template_dir = self.catalog.locate(template)
        manifest = load_manifest(self.catalog.manifest_path(template))
        timestamp = request.timestamp or datetime.now()

        answers = dict(request.answers)
        if self.answer_provider is not None:
            known: dict[str, Any] = compute_defaults(
                template, timestamp, self.settings.defaults, self.schema
            )
            known.update(request.cli_flags)
            known.update(answers)
            known.update(_flatten(config))
            answers.update(self.answer_provider(manifest, known))

        context = resolve(
            config,
            request.cli_flags,
            answers,
            manifest,
            template=template,
            schema=self.schema,
            timestamp=timestamp,
            defaults=self.settings.defaults,
        )
        _check_project_name(context.project_name)
        return _Configured(template, template_dir, manifest, context, token)

    # ------------------------------------------------------------------
    # SUBSTITUTING
    # ------------------------------------------------------------------

    def _substitute(self, configured: _Configured) -> ResolvedTree:
        exclude = DEFAULT_EXCLUDES | {self.settings.manifest_filename}
        source = SourceTree.from_directory(configured.template_dir, exclude=exclude)
        return apply(configured.context, configured.manifest, source)

    # ------------------------------------------------------------------
    # WRITING
    # ------------------------------------------------------------------

    def _write_local(
        self, tree: ResolvedTree, configured: _Configured, request: GenerationRequest
    ) -> Path:
        destination = Path(request.output_dir) / configured.context.project_name
        commit_atomically(tree, destination, force=request.force)
        console.print(f"  [green]+[/green] Wrote {escape(str(destination))}")
        return destination

    async def _publish(self, tree: ResolvedTree, configured: _Configured) -> str:
        context = configured.context
        scratch_root = self.settings.scratch_dir
        if scratch_root is not None:
            scratch_root.mkdir(parents=True, exist_ok=True)
        workspace = Path(
            tempfile.mkdtemp(prefix="project-generator-", dir=str(scratch_root) if scratch_root else None)
        )
        console.print(f"  Workspace: {escape(str(workspace))}")

        publisher = self.publisher or self._default_publisher()
        try:
            tree_dir = commit_atomically(tree, workspace / context.project_name)
            url = await publisher.publish(
                PublishRequest(
                    path=tree_dir,
                    token=configured.token or "",
                    name=context.project_name,
                    description=str(context.get("description", "")),
                    private=context.get("visibility", "private") != "public",
                    topic=context.get("category"),
                    branch=str(context.get("branch") or "main"),
                    create_develop_branch=bool(context.get("create_develop_branch", False)),
                    no_deploy=_truthy(context.get("no_deploy")),
                )
            )
        except PublishError as exc:
            if exc.workspace is None:
                exc.workspace = workspace
            raise
        except Exception as exc:
            raise PublishError(
                f"Publishing failed: {type(exc).__name__}: {exc}", workspace=workspace
            ) from exc

        shutil.rmtree(workspace, ignore_errors=True)
        console.print(f"  [green]+[/green] Published {url}")
        return url

    def _default_publisher(self) -> RepositoryPublisher:
        self.publisher = GitHubPublisher(self.settings.github)
        return self.publisher

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _print_final_summary(self, result: GenerationResult, request: GenerationRequest) -> None:
        """Print the run summary table and the final status panel."""
        summary: dict[str, str] = {
            "Mode": request.mode.value,
            "States": " -> ".join(state.value for state in result.history),
            "Duration": format_duration(result.duration),
        }
        if result.context is not None:
            summary["Template"] = str(result.context.template)
            summary["Project"] = result.context.project_name
        if result.destination is not None:
            summary["Destination"] = str(result.destination)
        if result.repository_url is not None:
            summary["Repository"] = result.repository_url

        console.print()
        print_summary_table(summary, title="Generation Summary")

        if result.success:
            print_success("Project generated successfully")
            return
        console.print(
            Panel(
                f"[bold red]GENERATION FAILED[/bold red]\n\n{escape(str(result.error))}",
                title="[bold]Generation Complete[/bold]",
                border_style="bold red",
            )
        )


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def template_from_config(config: Mapping[str, Any]) -> TemplateRef | None:
    """Template identity named by a run configuration, if any.

    Accepts ``template: category/name`` or the ``template_category`` and
    ``template_name`` pair.
    """
    raw = config.get("template")
    if raw:
        try:
            return TemplateRef.parse(str(raw))
        except ValueError as exc:
            raise ConfigError(str(exc), field="template") from exc

    category = config.get("template_category")
    name = config.get("template_name")
    if category and name:
        return TemplateRef(category=str(category), name=str(name))
    return None


def _flatten(config: Mapping[str, Any]) -> dict[str, Any]:
    flat = {k: v for k, v in config.items() if k != VARIABLES_KEY}
    variables = config.get(VARIABLES_KEY)
    if isinstance(variables, Mapping):
        flat.update(variables)
    return flat


def _check_project_name(name: str) -> None:
    if not name.strip() or name in (".", "..") or "/" in name or "\\" in name:
        raise InvalidValueError(
            f"Project name '{name}' cannot be used as a directory name", field="project_name"
        )


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return bool(parse_bool(value))
    return False
