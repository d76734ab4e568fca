"""
Unit tests for ServerConfig and the command-line overrides.
"""

import pytest

from webviewer.config import ServerConfig, DEFAULT_PORT
from webviewer.__main__ import build_parser, config_from_args


class TestServerConfig:
    """Tests for defaults and validation."""

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == DEFAULT_PORT == 9090
        assert config.asset_dir is None
        config.validate()

    def test_port_zero_is_valid(self):
        ServerConfig(port=0).validate()

    @pytest.mark.parametrize("overrides", [
        {"port": -1},
        {"port": 65536},
        {"min_workers": 0},
        {"min_workers": 8, "max_workers": 4},
        {"buffer_size": 10},
        {"timeout": 0},
        {"shutdown_grace_period": -1},
        {"accept_poll_interval": 0},
        {"log_format": "xml"},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()


class TestFromEnv:
    """Tests for ServerConfig.from_env()."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("WEB_VIEWER_HOST", "0.0.0.0")
        monkeypatch.setenv("WEB_VIEWER_PORT", "0")
        monkeypatch.setenv("WEB_VIEWER_ASSET_DIR", "/srv/viewer")
        monkeypatch.setenv("WEB_VIEWER_WORKERS", "2")
        monkeypatch.setenv("WEB_VIEWER_TIMEOUT", "12.5")
        monkeypatch.setenv("WEB_VIEWER_GRACE_PERIOD", "0.5")
        monkeypatch.setenv("WEB_VIEWER_LOG_LEVEL", "DEBUG")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 0
        assert config.asset_dir == "/srv/viewer"
        assert config.max_workers == 2
        assert config.min_workers <= 2
        assert config.timeout == 12.5
        assert config.shutdown_grace_period == 0.5
        assert config.log_level == "DEBUG"
        config.validate()

    def test_defaults_without_environment(self, monkeypatch):
        for name in ("HOST", "PORT", "ASSET_DIR", "WORKERS", "TIMEOUT", "GRACE_PERIOD", "LOG_LEVEL"):
            monkeypatch.delenv(f"WEB_VIEWER_{name}", raising=False)

        assert ServerConfig.from_env() == ServerConfig()


class TestCommandLine:
    """Tests for turning CLI arguments into a config."""

    def test_arguments_override_environment(self, monkeypatch):
        monkeypatch.setenv("WEB_VIEWER_PORT", "7000")
        monkeypatch.setenv("WEB_VIEWER_HOST", "0.0.0.0")

        args = build_parser().parse_args(["--port", "0", "-a", "/tmp/build", "-w", "2", "--grace-period", "1"])
        config = config_from_args(args)

        assert config.port == 0
        assert config.host == "0.0.0.0"   # not given on the command line
        assert config.asset_dir == "/tmp/build"
        assert config.max_workers == 2
        assert config.min_workers == 2
        assert config.shutdown_grace_period == 1.0
        config.validate()

    def test_no_arguments_keeps_environment(self, monkeypatch):
        monkeypatch.setenv("WEB_VIEWER_PORT", "7000")

        config = config_from_args(build_parser().parse_args([]))

        assert config.port == 7000

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert "web-viewer-server" in capsys.readouterr().out
