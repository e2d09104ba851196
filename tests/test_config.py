"""Tests for configuration resolution."""

import json

import pytest

from pymxbai.config import DEFAULT_BASE_URL, Config
from pymxbai.exceptions import MxbaiConfigError


def _config(tmp_path, data) -> Config:
    (tmp_path / "config.json").write_text(json.dumps(data))
    return Config(tmp_path)


class TestConfig:
    """Tests for the Config class."""

    def test_defaults_without_file(self, tmp_path):
        config = Config(tmp_path)

        assert config.api_key is None
        assert config.base_url == DEFAULT_BASE_URL
        assert config.aliases == {}
        assert config.default_strategy == "fast"
        assert config.default_parallel == 100
        assert not config.is_configured()

    def test_values_from_file(self, tmp_path):
        config = _config(
            tmp_path,
            {
                "api_key": "file_key",
                "base_url": "https://file.api",
                "aliases": {"docs": "store_123"},
                "defaults": {"upload": {"strategy": "high_quality", "parallel": 20}},
            },
        )

        assert config.api_key == "file_key"
        assert config.base_url == "https://file.api"
        assert config.resolve_store_name("docs") == "store_123"
        assert config.resolve_store_name("other") == "other"
        assert config.default_strategy == "high_quality"
        assert config.default_parallel == 20

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        config = _config(tmp_path, {"api_key": "file_key", "base_url": "https://f"})
        monkeypatch.setenv("MXBAI_API_KEY", "env_key")
        monkeypatch.setenv("MXBAI_BASE_URL", "https://env")

        assert config.api_key == "env_key"
        assert config.base_url == "https://env"

    def test_config_dir_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MXBAI_CONFIG_PATH", str(tmp_path))

        assert Config().get_config_path() == tmp_path / "config.json"

    def test_malformed_file_falls_back(self, tmp_path):
        (tmp_path / "config.json").write_text("{not json")

        assert Config(tmp_path).base_url == DEFAULT_BASE_URL

    def test_invalid_defaults_are_ignored(self, tmp_path):
        config = _config(
            tmp_path, {"defaults": {"upload": {"strategy": "slow", "parallel": 500}}}
        )

        assert config.default_strategy == "fast"
        assert config.default_parallel == 100

    def test_reload(self, tmp_path):
        config = _config(tmp_path, {"api_key": "one"})
        assert config.api_key == "one"

        (tmp_path / "config.json").write_text(json.dumps({"api_key": "two"}))
        assert config.api_key == "one"
        config.reload()
        assert config.api_key == "two"

    def test_require_api_key(self, tmp_path):
        config = Config(tmp_path)

        assert config.require_api_key("explicit") == "explicit"
        with pytest.raises(MxbaiConfigError, match="API key not configured"):
            config.require_api_key()
