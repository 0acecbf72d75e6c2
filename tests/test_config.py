"""
Tests for configuration loading.
"""

import json
from datetime import timedelta
from pathlib import Path

import pytest

from policymesh.core.config import Config
from policymesh.errors import ConfigError
from policymesh.util.config import load_config_file, parse_duration_string


class TestDurations:
    """Test duration parsing"""

    @pytest.mark.parametrize("text,expected", [
        ("30s", timedelta(seconds=30)),
        ("2m", timedelta(minutes=2)),
        ("1h", timedelta(hours=1)),
        ("1d", timedelta(days=1)),
        ("1.5", timedelta(seconds=1.5)),
    ])
    def test_parse(self, text, expected):
        assert parse_duration_string(text) == expected

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_duration_string("soon")


class TestConfig:
    """Test configuration sources"""

    def test_defaults(self):
        config = Config()
        assert config.timeout == 30.0
        assert config.default_node is None
        assert config.state_dir == Path("~/.policymesh").expanduser()

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("POLICYMESH_STATE_DIR", str(tmp_path))
        monkeypatch.setenv("POLICYMESH_DEFAULT_NODE", "alpha")
        monkeypatch.setenv("POLICYMESH_TIMEOUT", "2m")
        monkeypatch.setenv("POLICYMESH_LOG_LEVEL", "debug")

        config = Config.from_env()
        assert config.state_dir == tmp_path
        assert config.default_node == "alpha"
        assert config.timeout == 120.0
        assert config.log_level == "DEBUG"

    def test_from_yaml_file(self, tmp_path):
        path = tmp_path / "policymesh.yaml"
        path.write_text("default-node: beta\ntimeout: 5s\n")
        config = Config.from_file(str(path))
        assert config.default_node == "beta"
        assert config.timeout == 5.0

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "policymesh.json"
        path.write_text(json.dumps({"state_dir": str(tmp_path), "log_level": "WARNING"}))
        config = Config.from_file(str(path))
        assert config.state_dir == tmp_path
        assert config.log_level == "WARNING"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            Config.from_file(str(tmp_path / "missing.yaml"))

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("[x]")
        with pytest.raises(ValueError):
            load_config_file(str(path))

    def test_invalid_timeout(self):
        with pytest.raises(ConfigError):
            Config(timeout="never")
        with pytest.raises(ConfigError):
            Config(timeout=0).validate()

    def test_invalid_log_level(self):
        with pytest.raises(ConfigError):
            Config(log_level="LOUD").validate()
