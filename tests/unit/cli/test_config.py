"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from amicleaner.cli.config import Config, ConfigError, build_retention, build_selector, parse_policy
from amicleaner.models.policy import IdentifierSelector, KeepDays, KeepReleases, TagSelector

CONFIG_YAML = """
aws_profile: prod
log_level: debug
policies:
  - name: web
    identifier: web-server
    keep_releases: 3
    regions: [us-east-1, eu-west-1]
    resolve_aliases: true
  - name: batch
    tags:
      Team: data
      Role: batch
    keep_days: 14
    dry_run: true
    check_usage: false
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("AMICLEANER_CONFIG", raising=False)
    monkeypatch.delenv("AWS_PROFILE", raising=False)


class TestConfigLoad:
    """Test suite for Config.load."""

    def test_load_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML)

        config = Config.load(str(path))

        assert config.source == path
        assert config.aws_profile == "prod"
        assert config.log_level == "DEBUG"
        web, batch = config.policies
        assert web.selector == IdentifierSelector("web-server")
        assert web.retention == KeepReleases(3)
        assert web.regions == ["us-east-1", "eu-west-1"]
        assert web.resolve_aliases is True
        assert web.dry_run is False
        assert batch.selector == TagSelector({"Team": "data", "Role": "batch"})
        assert batch.retention == KeepDays(14)
        assert batch.dry_run is True
        assert batch.check_usage is False

    def test_load_from_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(CONFIG_YAML)
        monkeypatch.setenv("AMICLEANER_CONFIG", str(path))

        assert len(Config.load().policies) == 2

    def test_missing_default_file_yields_empty_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("amicleaner.cli.config.DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
        monkeypatch.setenv("AWS_PROFILE", "dev")

        config = Config.load()

        assert config.policies == []
        assert config.aws_profile == "dev"
        assert config.source is None

    def test_missing_explicit_file_is_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            Config.load(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("policies: [unclosed")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            Config.load(str(path))

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert Config.load(str(path)).policies == []


class TestConfigFromDict:
    def test_policies_must_be_list(self) -> None:
        with pytest.raises(ConfigError, match="must be a list"):
            Config.from_dict({"policies": {"name": "web"}})

    def test_duplicate_names(self) -> None:
        entry = {"name": "web", "identifier": "web", "keep_releases": 1}

        with pytest.raises(ConfigError, match="Duplicate policy names: web"):
            Config.from_dict({"policies": [entry, dict(entry)]})


class TestParsePolicy:
    """Test suite for policy validation."""

    def test_name_defaults_to_identifier(self) -> None:
        assert parse_policy({"identifier": "web", "keep_days": 5}).name == "web"

    def test_both_retention_rules_rejected(self) -> None:
        with pytest.raises(ConfigError, match="cannot be set at the same time"):
            parse_policy({"name": "web", "identifier": "web", "keep_releases": 2, "keep_days": 10})

    def test_zero_keep_releases_means_unset(self) -> None:
        policy = parse_policy({"name": "web", "identifier": "web", "keep_releases": 0, "keep_days": 10})

        assert policy.retention == KeepDays(10)

    def test_missing_retention_rejected(self) -> None:
        with pytest.raises(ConfigError, match="Policy 'web': keep_releases or keep_days must be greater than 0"):
            parse_policy({"name": "web", "identifier": "web"})

    def test_both_selectors_rejected(self) -> None:
        with pytest.raises(ConfigError, match="identifier and tags"):
            parse_policy({"name": "web", "identifier": "web", "tags": {"Team": "web"}, "keep_days": 1})

    def test_missing_selector_rejected(self) -> None:
        with pytest.raises(ConfigError, match="identifier or tags must be set"):
            parse_policy({"name": "web", "keep_days": 1})

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ConfigError, match="unknown keys keep_weeks"):
            parse_policy({"name": "web", "identifier": "web", "keep_weeks": 1})

    def test_non_integer_retention_rejected(self) -> None:
        with pytest.raises(ConfigError, match="Expected an integer"):
            parse_policy({"name": "web", "identifier": "web", "keep_days": "soon"})

    def test_quoted_boolean_flag_rejected(self) -> None:
        with pytest.raises(ConfigError, match="Expected a boolean"):
            parse_policy({"name": "web", "identifier": "web", "keep_days": 1, "dry_run": "false"})

    def test_boolean_flags_default_when_absent(self) -> None:
        policy = parse_policy({"name": "web", "identifier": "web", "keep_days": 1, "check_usage": False})

        assert policy.dry_run is False
        assert policy.resolve_aliases is False
        assert policy.check_usage is False

    def test_single_region_string(self) -> None:
        policy = parse_policy({"name": "web", "identifier": "web", "keep_days": 1, "regions": "us-west-2"})

        assert policy.regions == ["us-west-2"]


class TestBuilders:
    def test_build_selector_prefers_tags_type(self) -> None:
        assert build_selector(None, {"Team": 1}) == TagSelector({"Team": "1"})

    def test_build_retention_negative(self) -> None:
        with pytest.raises(ConfigError, match="negative"):
            build_retention(-1, None)
