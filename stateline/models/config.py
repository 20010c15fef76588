"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class TimelineConfig:
    """Timeline store and capture limits."""

    max_records: int = 200
    max_depth: int = 6
    max_diff_entries: int = 200
    summary_chars: int = 200


@dataclass
class CompanionConfig:
    """Companion listener configuration."""

    host: str = "127.0.0.1"
    port: int = 8787
    path: str = "/timeline"


@dataclass
class SinkConfig:
    """Outbound sink configuration; empty URLs disable the sink."""

    websocket_url: str = ""
    webhook_url: str = ""
    connect_timeout: float = 5.0


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass
class StatelineConfig:
    """Top-level stateline configuration."""

    timeline: TimelineConfig = field(default_factory=TimelineConfig)
    companion: CompanionConfig = field(default_factory=CompanionConfig)
    sinks: SinkConfig = field(default_factory=SinkConfig)
    log: LogConfig = field(default_factory=LogConfig)
