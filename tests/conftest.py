"""Shared pytest fixtures for the project generator test suite.

Provides reusable fixtures for:
- A templates root holding a ``packages/library`` template on disk
- A fixed generation timestamp
- Run configuration files
- Settings pointing at the temporary templates root
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest
import yaml

from project_generator.config import Settings
from project_generator.scaffolder.catalog import TemplateRef
from project_generator.utils import set_debug

FIXED_TIMESTAMP = datetime(2025, 1, 1, 12, 0, 0)
FIXED_STAMP = "20250101-120000"

LIBRARY_MANIFEST: list[dict[str, Any]] = [
    {
        "path": "package.json",
        "replacements": [
            {"name": "project_name", "attribute": "name"},
            {"name": "description", "attribute": "description"},
            {"name": "keywords", "type": "array", "attribute": "keywords"},
        ],
    },
    {
        "path": "README.md",
        "replacements": [
            {"name": "project_name"},
            {"name": "description"},
            {"name": "keywords", "type": "array"},
        ],
    },
    {
        "path": "src/*",
        "replacements": [{"name": "project_name"}],
    },
]

README_TEMPLATE = "# {{project_name}}\n\n{{description}}\n\n## Keywords\n- {{keywords}}\n"
PACKAGE_JSON_TEMPLATE = {"name": "template-library", "version": "0.0.0", "license": "MIT"}
INDEX_TEMPLATE = 'export const name = "{{project_name}}";\n'
LOGO_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00{{project_name}}\x00"


@pytest.fixture(autouse=True)
def _reset_debug():
    """Keep debug output off between tests."""
    set_debug(False)
    yield
    set_debug(False)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


def write_template(root: Path, category: str, name: str, manifest: Any, files: dict[str, str | bytes]) -> Path:
    """Write a template directory with its declaration and files."""
    template_dir = root / category / name
    template_dir.mkdir(parents=True)
    (template_dir / "template_config.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    for rel, content in files.items():
        target = template_dir / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
    return template_dir


@pytest.fixture
def templates_root(tmp_path: Path) -> Path:
    """Templates root with a ``packages/library`` template."""
    root = tmp_path / "templates"
    write_template(
        root,
        "packages",
        "library",
        LIBRARY_MANIFEST,
        {
            "README.md": README_TEMPLATE,
            "package.json": json.dumps(PACKAGE_JSON_TEMPLATE, indent=2) + "\n",
            "src/{{project_name}}.ts": INDEX_TEMPLATE,
            "assets/logo.png": LOGO_BYTES,
        },
    )
    return root


@pytest.fixture
def library_ref() -> TemplateRef:
    return TemplateRef(category="packages", name="library")


@pytest.fixture
def fixed_timestamp() -> datetime:
    return FIXED_TIMESTAMP


@pytest.fixture
def settings(templates_root: Path, tmp_path: Path) -> Settings:
    """Settings bound to the temporary templates root and scratch directory."""
    return Settings(templates_dir=templates_root, scratch_dir=tmp_path / "scratch")


# ---------------------------------------------------------------------------
# Run configurations
# ---------------------------------------------------------------------------


@pytest.fixture
def write_config(tmp_path: Path):
    """Factory writing a YAML run configuration and returning its path."""

    def _write(data: dict[str, Any], name: str = "run.yaml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def library_config() -> dict[str, Any]:
    """Minimal valid run configuration for the library template."""
    return {
        "template": "packages/library",
        "keywords": ["web", "cli"],
    }
