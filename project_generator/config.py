"""Project generator configuration.

Typed settings for the generator itself (where templates live, how GitHub is
reached, how default identifiers are derived) plus the loader for a run
configuration file.  All settings use Pydantic v2 models so they are validated
at construction time and can be built from environment variables.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from project_generator.errors import ConfigFileError
from project_generator.utils import parse_bool


class DefaultsConfig(BaseModel):
    """Inputs for the computed defaults of a generation run."""

    repository_base_url: str = Field(
        default="https://github.com/NextNodeSolutions",
        description="Base URL under which generated repositories live",
    )
    website_domain: str = Field(default="fly.dev")
    timestamp_format: str = Field(default="%Y%m%d-%H%M%S")

    @property
    def organization(self) -> str:
        """Owner segment of ``repository_base_url``."""
        return self.repository_base_url.rstrip("/").rsplit("/", 1)[-1]


class GitHubConfig(BaseModel):
    """Connection settings for the GitHub publisher."""

    api_url: str = Field(default="https://api.github.com")
    organization: str | None = Field(
        default=None,
        description="Organisation that owns new repositories; the token's user when unset",
    )
    token: str | None = Field(default=None, repr=False)
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    author_name: str = Field(default="Project Generator")
    author_email: str = Field(default="generator@nextnode.dev")
    trigger_workflows: bool = Field(default=True)
    workflow_dispatch_delay: float = Field(
        default=10.0, ge=0, description="Seconds to wait for GitHub to index workflows"
    )
    branch_setup_delay: float = Field(default=5.0, ge=0)


class Settings(BaseModel):
    """Global generator settings.

    Instances are created once by the CLI entry point (usually through
    :meth:`from_env`) and passed to the dispatcher.
    """

    templates_dir: Path = Field(default=Path("./templates"))
    manifest_filename: str = Field(default="template_config.json")
    scratch_dir: Path | None = Field(
        default=None, description="Parent for remote-mode workspaces; system temp when unset"
    )
    debug: bool = Field(default=False)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build ``Settings`` from environment variables.

        Recognised variables (all optional):
            PROJGEN_TEMPLATES_DIR, PROJGEN_MANIFEST_FILENAME, PROJGEN_SCRATCH_DIR,
            PROJGEN_DEBUG, PROJGEN_REPOSITORY_BASE_URL, PROJGEN_WEBSITE_DOMAIN,
            PROJGEN_GITHUB_API_URL, PROJGEN_GITHUB_ORG, PROJGEN_TRIGGER_WORKFLOWS,
            GITHUB_TOKEN.
        """
        defaults_kwargs: dict[str, Any] = {}
        if os.environ.get("PROJGEN_REPOSITORY_BASE_URL"):
            defaults_kwargs["repository_base_url"] = os.environ["PROJGEN_REPOSITORY_BASE_URL"]
        if os.environ.get("PROJGEN_WEBSITE_DOMAIN"):
            defaults_kwargs["website_domain"] = os.environ["PROJGEN_WEBSITE_DOMAIN"]

        github_kwargs: dict[str, Any] = {}
        if os.environ.get("PROJGEN_GITHUB_API_URL"):
            github_kwargs["api_url"] = os.environ["PROJGEN_GITHUB_API_URL"]
        if os.environ.get("PROJGEN_GITHUB_ORG"):
            github_kwargs["organization"] = os.environ["PROJGEN_GITHUB_ORG"]
        if os.environ.get("GITHUB_TOKEN"):
            github_kwargs["token"] = os.environ["GITHUB_TOKEN"]
        if os.environ.get("PROJGEN_TRIGGER_WORKFLOWS"):
            github_kwargs["trigger_workflows"] = bool(
                parse_bool(os.environ["PROJGEN_TRIGGER_WORKFLOWS"])
            )

        kwargs: dict[str, Any] = {
            "defaults": DefaultsConfig(**defaults_kwargs),
            "github": GitHubConfig(**github_kwargs),
            "debug": bool(parse_bool(os.environ.get("PROJGEN_DEBUG", "false"))),
        }
        if os.environ.get("PROJGEN_TEMPLATES_DIR"):
            kwargs["templates_dir"] = Path(os.environ["PROJGEN_TEMPLATES_DIR"])
        if os.environ.get("PROJGEN_MANIFEST_FILENAME"):
            kwargs["manifest_filename"] = os.environ["PROJGEN_MANIFEST_FILENAME"]
        if os.environ.get("PROJGEN_SCRATCH_DIR"):
            kwargs["scratch_dir"] = Path(os.environ["PROJGEN_SCRATCH_DIR"])

        return cls(**kwargs)


# ---------------------------------------------------------------------------
# Run configuration files
# ---------------------------------------------------------------------------


def load_run_config(path: str | Path) -> dict[str, Any]:
    """Load a run configuration file (YAML or JSON) into a plain mapping.

    Raises:
        ConfigFileError: If the file is missing, unparsable, or not a mapping.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise ConfigFileError(f"Configuration file not found: {file_path}")

    try:
        raw = file_path.read_text(encoding="utf-8")
        if file_path.suffix == ".json":
            data = json.loads(raw)
        else:
            data = yaml.safe_load(raw)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigFileError(f"Cannot read configuration file {file_path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFileError(
            f"Configuration file {file_path} must contain a mapping, got {type(data).__name__}"
        )
    return data
