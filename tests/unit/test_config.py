"""Unit tests for environment-driven configuration."""

from __future__ import annotations

import pytest

from stateline.config import load_config


class TestLoadConfig:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for key in ("STATELINE_MAX_RECORDS", "STATELINE_LOG_LEVEL", "STATELINE_LOG_FORMAT", "STATELINE_COMPANION_PATH"):
            monkeypatch.delenv(key, raising=False)
        config = load_config()
        assert config.timeline.max_records == 200
        assert config.companion.port == 8787
        assert config.companion.path == "/timeline"
        assert config.sinks.websocket_url == ""
        assert config.log.level == "info"
        assert config.log.format == "json"

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STATELINE_MAX_RECORDS", "50")
        monkeypatch.setenv("STATELINE_COMPANION_HOST", "0.0.0.0")
        monkeypatch.setenv("STATELINE_SINK_WEBHOOK_URL", "https://hooks.example/timeline")
        monkeypatch.setenv("STATELINE_SINK_CONNECT_TIMEOUT", "1.5")
        monkeypatch.setenv("STATELINE_LOG_LEVEL", "DEBUG")
        config = load_config()
        assert config.timeline.max_records == 50
        assert config.companion.host == "0.0.0.0"
        assert config.sinks.webhook_url == "https://hooks.example/timeline"
        assert config.sinks.connect_timeout == 1.5
        assert config.log.level == "debug"

    def test_max_records_clamped_to_one(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STATELINE_MAX_RECORDS", "0")
        assert load_config().timeline.max_records == 1

    def test_port_clamped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STATELINE_COMPANION_PORT", "99999")
        assert load_config().companion.port == 65535

    def test_invalid_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STATELINE_LOG_LEVEL", "verbose")
        with pytest.raises(ValueError, match="Invalid log level"):
            load_config()

    def test_companion_path_must_be_absolute(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STATELINE_COMPANION_PATH", "timeline")
        with pytest.raises(ValueError, match="must start with"):
            load_config()

    def test_non_numeric_integer_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STATELINE_MAX_DEPTH", "deep")
        with pytest.raises(ValueError):
            load_config()

    def test_log_format(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STATELINE_LOG_FORMAT", "Console")
        assert load_config().log.format == "console"

    def test_invalid_log_format(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STATELINE_LOG_FORMAT", "xml")
        with pytest.raises(ValueError, match="Invalid log format"):
            load_config()
