"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from stateline.models.config import (
    CompanionConfig,
    LogConfig,
    SinkConfig,
    StatelineConfig,
    TimelineConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"STATELINE_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float) -> float:
    return float(_env(key, str(default)))


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_format(value: str) -> str:
    valid = {"json", "console"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log format: {value}. Must be one of {valid}")
    return value.lower()


def _validate_path(value: str) -> str:
    if not value.startswith("/"):
        raise ValueError(f"Companion path must start with '/': {value}")
    return value


def load_config() -> StatelineConfig:
    """Load configuration from STATELINE_* environment variables."""
    return StatelineConfig(
        timeline=TimelineConfig(
            max_records=_env_int("MAX_RECORDS", 200, min_val=1),
            max_depth=_env_int("MAX_DEPTH", 6, min_val=1, max_val=64),
            max_diff_entries=_env_int("MAX_DIFF_ENTRIES", 200, min_val=1),
            summary_chars=_env_int("SUMMARY_CHARS", 200, min_val=16),
        ),
        companion=CompanionConfig(
            host=_env("COMPANION_HOST", "127.0.0.1"),
            port=_env_int("COMPANION_PORT", 8787, min_val=1, max_val=65535),
            path=_validate_path(_env("COMPANION_PATH", "/timeline")),
        ),
        sinks=SinkConfig(
            websocket_url=_env("SINK_WEBSOCKET_URL", ""),
            webhook_url=_env("SINK_WEBHOOK_URL", ""),
            connect_timeout=_env_float("SINK_CONNECT_TIMEOUT", 5.0),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )
