"""Analytics aggregator: derives summary statistics from a timeline.

``compute_analytics`` is a pure function; it carries no state between calls
and the store recomputes it from scratch on every mutation.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from stateline.models.analytics import AnalyticsSnapshot, OriginStats
from stateline.models.events import EventKind
from stateline.models.records import Record


@dataclass
class _OriginAccumulator:
    first_timestamp: datetime
    last_timestamp: datetime | None = None
    count: int = 0
    kind_counts: dict[EventKind, int] = field(default_factory=dict)
    intervals: list[timedelta] = field(default_factory=list)

    def add(self, record: Record) -> None:
        self.count += 1
        self.kind_counts[record.kind] = self.kind_counts.get(record.kind, 0) + 1
        if self.last_timestamp is not None:
            delta = record.timestamp - self.last_timestamp
            if delta >= timedelta(0):
                self.intervals.append(delta)
        self.last_timestamp = record.timestamp

    def build(self, origin: str) -> OriginStats:
        last = self.last_timestamp or self.first_timestamp
        average = sum(self.intervals, timedelta(0)) / len(self.intervals) if self.intervals else None
        return OriginStats(
            origin=origin,
            count=self.count,
            first_timestamp=self.first_timestamp,
            last_timestamp=last,
            kind_counts=dict(self.kind_counts),
            average_interval=average,
            longest_interval=max(self.intervals) if self.intervals else None,
            total_elapsed=max(last - self.first_timestamp, timedelta(0)),
        )


def compute_analytics(records: Iterable[Record]) -> AnalyticsSnapshot:
    """Compute an AnalyticsSnapshot over *records* (any order)."""
    ordered = sorted(records, key=lambda record: record.timestamp)
    if not ordered:
        return AnalyticsSnapshot()

    kind_counts = {kind: 0 for kind in EventKind}
    origins: dict[str, _OriginAccumulator] = {}
    gaps: list[timedelta] = []
    previous: datetime | None = None

    for record in ordered:
        kind_counts[record.kind] += 1
        if previous is not None:
            gaps.append(max(record.timestamp - previous, timedelta(0)))
        previous = record.timestamp

        accumulator = origins.get(record.origin)
        if accumulator is None:
            accumulator = origins[record.origin] = _OriginAccumulator(first_timestamp=record.timestamp)
        accumulator.add(record)

    return AnalyticsSnapshot(
        total_records=len(ordered),
        kind_counts=kind_counts,
        origin_stats={origin: acc.build(origin) for origin, acc in origins.items()},
        average_gap=sum(gaps, timedelta(0)) / len(gaps) if gaps else None,
        longest_gap=max(gaps) if gaps else None,
    )
