"""Derived timeline analytics data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from stateline.models.events import EventKind


def _zero_kind_counts() -> dict[EventKind, int]:
    return {kind: 0 for kind in EventKind}


def _seconds(value: timedelta | None) -> float | None:
    return value.total_seconds() if value is not None else None


@dataclass(frozen=True)
class OriginStats:
    """Per-origin counts and inter-event intervals within that origin's own sequence."""

    origin: str
    count: int
    first_timestamp: datetime
    last_timestamp: datetime
    kind_counts: dict[EventKind, int] = field(default_factory=dict)
    average_interval: timedelta | None = None
    longest_interval: timedelta | None = None
    total_elapsed: timedelta = timedelta(0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "origin": self.origin,
            "count": self.count,
            "firstTimestamp": self.first_timestamp.isoformat(),
            "lastTimestamp": self.last_timestamp.isoformat(),
            "kindCounts": {kind.value: n for kind, n in self.kind_counts.items()},
            "averageIntervalSeconds": _seconds(self.average_interval),
            "longestIntervalSeconds": _seconds(self.longest_interval),
            "totalElapsedSeconds": self.total_elapsed.total_seconds(),
        }


@dataclass(frozen=True)
class AnalyticsSnapshot:
    """Summary statistics recomputed from scratch over the current timeline."""

    total_records: int = 0
    kind_counts: dict[EventKind, int] = field(default_factory=_zero_kind_counts)
    origin_stats: dict[str, OriginStats] = field(default_factory=dict)
    average_gap: timedelta | None = None
    longest_gap: timedelta | None = None

    @property
    def is_empty(self) -> bool:
        return self.total_records == 0

    def top_origins_by_count(self, limit: int = 5) -> list[OriginStats]:
        """Origins ordered by descending event count; ties keep first-seen order."""
        ranked = sorted(self.origin_stats.values(), key=lambda stats: -stats.count)
        return ranked[: max(limit, 0)]

    def slowest_origins(self, limit: int = 5) -> list[OriginStats]:
        """Origins ordered by descending longest interval; origins without one are excluded."""
        candidates = [stats for stats in self.origin_stats.values() if stats.longest_interval is not None]
        ranked = sorted(candidates, key=lambda stats: stats.longest_interval, reverse=True)  # type: ignore[arg-type,return-value]
        return ranked[: max(limit, 0)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRecords": self.total_records,
            "kindCounts": {kind.value: n for kind, n in self.kind_counts.items()},
            "averageGapSeconds": _seconds(self.average_gap),
            "longestGapSeconds": _seconds(self.longest_gap),
            "origins": [stats.to_dict() for stats in self.origin_stats.values()],
        }
