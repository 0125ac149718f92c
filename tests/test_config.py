"""Unit tests for settings models and run configuration loading (project_generator.config).

Tests cover:
- DefaultsConfig defaults and organization
- GitHubConfig defaults, token hidden from repr, validation
- Settings defaults and from_env
- load_run_config (YAML, JSON, empty, missing, malformed, non-mapping)
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from project_generator.config import DefaultsConfig, GitHubConfig, Settings, load_run_config
from project_generator.errors import ConfigError, ConfigFileError


# ---------------------------------------------------------------------------
# DefaultsConfig
# ---------------------------------------------------------------------------


class TestDefaultsConfig:
    @pytest.mark.unit
    def test_defaults(self):
        defaults = DefaultsConfig()
        assert defaults.repository_base_url == "https://github.com/NextNodeSolutions"
        assert defaults.website_domain == "fly.dev"
        assert defaults.timestamp_format == "%Y%m%d-%H%M%S"

    @pytest.mark.unit
    def test_organization_is_last_url_segment(self):
        defaults = DefaultsConfig(repository_base_url="https://github.com/acme-corp/")
        assert defaults.organization == "acme-corp"


# ---------------------------------------------------------------------------
# GitHubConfig
# ---------------------------------------------------------------------------


class TestGitHubConfig:
    @pytest.mark.unit
    def test_defaults(self):
        config = GitHubConfig()
        assert config.api_url == "https://api.github.com"
        assert config.organization is None
        assert config.token is None
        assert config.trigger_workflows is True

    @pytest.mark.unit
    def test_token_not_in_repr(self):
        config = GitHubConfig(token="ghp_secret")
        assert "ghp_secret" not in repr(config)

    @pytest.mark.unit
    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            GitHubConfig(timeout=0)

    @pytest.mark.unit
    def test_negative_delay_rejected(self):
        with pytest.raises(ValidationError):
            GitHubConfig(workflow_dispatch_delay=-1)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class TestSettings:
    @pytest.mark.unit
    def test_defaults(self):
        settings = Settings()
        assert settings.templates_dir == Path("./templates")
        assert settings.manifest_filename == "template_config.json"
        assert settings.scratch_dir is None
        assert settings.debug is False

    @pytest.mark.unit
    def test_from_env_reads_variables(self, tmp_path):
        env = {
            "PROJGEN_TEMPLATES_DIR": str(tmp_path / "tpl"),
            "PROJGEN_SCRATCH_DIR": str(tmp_path / "scratch"),
            "PROJGEN_REPOSITORY_BASE_URL": "https://github.com/acme",
            "PROJGEN_WEBSITE_DOMAIN": "example.org",
            "PROJGEN_GITHUB_API_URL": "https://ghe.example.org/api/v3",
            "PROJGEN_GITHUB_ORG": "acme",
            "PROJGEN_TRIGGER_WORKFLOWS": "no",
            "PROJGEN_DEBUG": "1",
            "GITHUB_TOKEN": "ghp_env",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()

        assert settings.templates_dir == tmp_path / "tpl"
        assert settings.scratch_dir == tmp_path / "scratch"
        assert settings.defaults.repository_base_url == "https://github.com/acme"
        assert settings.defaults.website_domain == "example.org"
        assert settings.github.api_url == "https://ghe.example.org/api/v3"
        assert settings.github.organization == "acme"
        assert settings.github.trigger_workflows is False
        assert settings.github.token == "ghp_env"
        assert settings.debug is True

    @pytest.mark.unit
    def test_from_env_without_variables_uses_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()
        assert settings.github.token is None
        assert settings.templates_dir == Path("./templates")
        assert settings.debug is False


# ---------------------------------------------------------------------------
# load_run_config
# ---------------------------------------------------------------------------


class TestLoadRunConfig:
    @pytest.mark.unit
    def test_yaml(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text("project_name: demo\nkeywords:\n  - a\n  - b\n", encoding="utf-8")
        assert load_run_config(path) == {"project_name": "demo", "keywords": ["a", "b"]}

    @pytest.mark.unit
    def test_json(self, tmp_path):
        path = tmp_path / "run.json"
        path.write_text('{"project_name": "demo"}', encoding="utf-8")
        assert load_run_config(path) == {"project_name": "demo"}

    @pytest.mark.unit
    def test_empty_file_is_empty_mapping(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text("", encoding="utf-8")
        assert load_run_config(path) == {}

    @pytest.mark.unit
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigFileError, match="not found"):
            load_run_config(tmp_path / "absent.yaml")

    @pytest.mark.unit
    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text("project_name: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigFileError):
            load_run_config(path)

    @pytest.mark.unit
    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigFileError, match="mapping"):
            load_run_config(path)

    @pytest.mark.unit
    def test_config_file_error_is_config_error(self, tmp_path):
        with pytest.raises(ConfigError) as exc_info:
            load_run_config(tmp_path / "absent.yaml")
        assert exc_info.value.exit_code == 2
