"""Tests for timepilot.core.config."""

from pathlib import Path
from unittest.mock import patch

from timepilot.core.config import DEFAULT_MODEL, DEFAULTS, _deep_merge, load_config


class TestDeepMerge:
    def test_simple_override(self):
        base = {"a": 1, "b": 2}
        override = {"b": 3}
        result = _deep_merge(base, override)
        assert result == {"a": 1, "b": 3}

    def test_nested_merge(self):
        base = {"gateway": {"temperature": 0.2, "history_limit": 12}}
        override = {"gateway": {"temperature": 0.5}}
        result = _deep_merge(base, override)
        assert result["gateway"]["temperature"] == 0.5
        assert result["gateway"]["history_limit"] == 12

    def test_new_keys(self):
        base = {"a": 1}
        override = {"b": 2}
        result = _deep_merge(base, override)
        assert result == {"a": 1, "b": 2}

    def test_does_not_mutate_base(self):
        base = {"a": {"b": 1}}
        override = {"a": {"b": 2}}
        _deep_merge(base, override)
        assert base["a"]["b"] == 1


class TestLoadConfig:
    def test_returns_defaults_when_no_file(self, tmp_path: Path):
        config = load_config(tmp_path / "nonexistent.yaml")
        assert config["gateway"]["model"] == DEFAULT_MODEL
        assert config["gateway"]["temperature"] == 0.2
        assert config["gateway"]["history_limit"] == 12
        assert config["sync"]["debounce_seconds"] == 1.0
        assert config["gateway"]["api_key"] is None

    def test_loads_and_merges(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("gateway:\n  model: gpt-4o-mini\n")

        config = load_config(config_file)
        assert config["gateway"]["model"] == "gpt-4o-mini"
        # Defaults preserved for unset keys
        assert config["gateway"]["temperature"] == 0.2

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("gateway:\n  api_key: from-file\n  base_url: http://file\n")
        monkeypatch.setenv("AI_API_KEY", "from-env")
        monkeypatch.setenv("AI_MODEL", "env-model")

        config = load_config(config_file)
        assert config["gateway"]["api_key"] == "from-env"
        assert config["gateway"]["base_url"] == "http://file"
        assert config["gateway"]["model"] == "env-model"

    def test_keyring_api_key(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("gateway:\n  api_key: keyring\n")

        with patch("timepilot.core.config._get_api_key", return_value="sk-ring") as mock_get:
            config = load_config(config_file)

        assert config["gateway"]["api_key"] == "sk-ring"
        mock_get.assert_called_once_with("ai_api_key")

    def test_home_env_override(self, tmp_path: Path, monkeypatch):
        custom_home = tmp_path / "custom"
        monkeypatch.setenv("TIMEPILOT_HOME", str(custom_home))

        config = load_config(tmp_path / "nonexistent.yaml")
        assert config["home"] == str(custom_home.resolve())
        assert config["store"]["path"] == str(custom_home.resolve() / "state.db")

    def test_explicit_home_wins(self, tmp_path: Path):
        home = tmp_path / "explicit"
        config = load_config(home=home)
        assert config["home"] == str(home.resolve())
        assert config["store"]["path"].endswith("state.db")

    def test_explicit_store_path_kept(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(f"store:\n  path: {tmp_path / 'other.db'}\n")

        config = load_config(config_file)
        assert config["store"]["path"] == str(tmp_path / "other.db")

    def test_defaults_not_mutated(self, tmp_path: Path):
        load_config(tmp_path / "nonexistent.yaml")
        assert DEFAULTS["store"]["path"] is None

    def test_handles_empty_file(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")

        config = load_config(config_file)
        assert config["gateway"]["model"] == DEFAULT_MODEL

    def test_handles_corrupt_yaml(self, tmp_path: Path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(": : : invalid yaml [[[")

        # Should fall back to defaults without crashing
        config = load_config(config_file)
        assert "gateway" in config
