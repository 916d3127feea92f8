"""
Tests for rollgate.config.loader module.

Tests configuration loading and merging including:
- Built-in defaults
- YAML overlay with deep merge
- Typed settings and their validation
- Webhook token from the environment
- Error handling
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from rollgate.config import (
    DEFAULT_CONFIG,
    GateSettings,
    load_effective_config,
    settings_from_config,
)
from rollgate.config.loader import _deep_merge_dicts
from rollgate.exceptions import ConfigError


class TestConfigLoading:
    """Tests for load_effective_config."""

    def test_defaults_without_file(self):
        config = load_effective_config()

        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_overlay_file(self, config_file):
        """Test that file values override defaults and the rest survive."""
        config = load_effective_config(config_file)

        assert config["approvals"]["deadline_hours"] == 48
        assert config["approvals"]["expiry_interval_minutes"] == 60
        assert config["webhook"]["timeout"] == 10
        assert config["annotations"]["schedule"] == "rollgate.io/update-schedule"

    def test_defaults_are_not_mutated(self, config_file):
        load_effective_config(config_file)

        assert DEFAULT_CONFIG["approvals"]["deadline_hours"] == 24

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_effective_config(tmp_path / "nonexistent.yaml")

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("approvals: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="parsing YAML"):
            load_effective_config(path)

    def test_empty_yaml_raises(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        with pytest.raises(ConfigError, match="empty"):
            load_effective_config(path)

    def test_non_dict_yaml_raises(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="mapping"):
            load_effective_config(path)


class TestConfigMerging:
    """Tests for deep merge semantics."""

    def test_dict_deep_merge(self):
        merged = _deep_merge_dicts({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}})

        assert merged == {"a": {"x": 1, "y": 3}}

    def test_list_replacement(self):
        merged = _deep_merge_dicts({"a": [1, 2]}, {"a": [3]})

        assert merged == {"a": [3]}

    def test_scalar_overwrite(self):
        base = {"a": 1, "b": {"c": 2}}
        merged = _deep_merge_dicts(base, {"b": "flat"})

        assert merged == {"a": 1, "b": "flat"}
        assert base == {"a": 1, "b": {"c": 2}}


class TestSettings:
    """Tests for settings_from_config."""

    def test_default_settings_match_dataclass(self, monkeypatch):
        monkeypatch.delenv("ROLLGATE_WEBHOOK_TOKEN", raising=False)

        settings = settings_from_config(load_effective_config())

        assert settings == GateSettings(webhook_token=settings.webhook_token)
        assert settings.state_file == Path("state/approvals.json")

    def test_file_settings(self, config_file):
        settings = settings_from_config(load_effective_config(config_file))

        assert settings.approval_deadline == timedelta(hours=48)
        assert settings.webhook_url == "https://rollgate.example.com/v1/webhooks/native"
        assert settings.webhook_timeout == 10

    def test_token_from_environment(self, monkeypatch):
        monkeypatch.setenv("ROLLGATE_WEBHOOK_TOKEN", "s3cret")

        settings = settings_from_config(load_effective_config())

        assert settings.webhook_token == "s3cret"

    def test_custom_token_variable(self, monkeypatch):
        monkeypatch.setenv("MY_GATE_TOKEN", "other")
        config = load_effective_config()
        config["webhook"]["token_env"] = "MY_GATE_TOKEN"

        assert settings_from_config(config).webhook_token == "other"

    def test_custom_annotation_keys(self):
        config = load_effective_config()
        config["annotations"]["schedule"] = "example.com/windows"

        assert settings_from_config(config).schedule_key == "example.com/windows"

    @pytest.mark.parametrize(
        "section,key,value",
        [
            ("approvals", "deadline_hours", 0),
            ("approvals", "deadline_hours", "24"),
            ("approvals", "expiry_interval_minutes", -5),
            ("webhook", "timeout", True),
            ("annotations", "approvals", ""),
            ("webhook", "url", 42),
        ],
    )
    def test_invalid_values(self, section, key, value):
        """Test that invalid values raise ConfigError."""
        config = load_effective_config()
        config[section][key] = value

        with pytest.raises(ConfigError):
            settings_from_config(config)
