"""Shared fixtures for stateline tests.

Provides a deterministic clock and record factories so timeline, analytics
and sink tests can build realistic timelines without sleeping.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from stateline.models.events import EventKind
from stateline.models.records import Record
from stateline.models.snapshot import Snapshot
from stateline.timeline.store import TimelineStore

# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------

BASE_TIME = datetime(2024, 1, 15, 10, 30, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock that advances by a fixed step on every call."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current

    def advance(self, delta: timedelta) -> None:
        self.now += delta


# ---------------------------------------------------------------------------
# Record factory helpers
# ---------------------------------------------------------------------------


def make_record(
    record_id: int,
    origin: str = "CounterCubit",
    kind: EventKind = EventKind.UPDATE,
    seconds: float = 0.0,
    summary: str | None = None,
    structured: object = None,
    tags: tuple[str, ...] = (),
) -> Record:
    """Create a Record with sensible defaults for testing."""
    return Record(
        id=record_id,
        origin=origin,
        kind=kind,
        timestamp=BASE_TIME + timedelta(seconds=seconds),
        summary=summary if summary is not None else f"record {record_id}",
        snapshot=Snapshot(raw=structured, structured=structured, summary=str(structured)),
        tags=tags,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> TimelineStore:
    """Store with capacity 5 driven by the fake clock."""
    return TimelineStore(max_records=5, clock=clock)
