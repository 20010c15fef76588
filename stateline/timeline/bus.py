"""Typed timeline events and the synchronous publish/subscribe bus.

UI-refresh listeners and transport sinks are both plain subscribers of the
same bus; they differ only in their handler.  Delivery is synchronous, in
subscription order, and iterates a snapshot of the subscriber list, so an
unsubscribe takes effect for every publish that starts after it returns.
Handler exceptions propagate to the publisher.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from stateline.models.analytics import AnalyticsSnapshot
from stateline.models.records import Record

if TYPE_CHECKING:
    from stateline.sinks.base import TimelineSink


@dataclass(frozen=True)
class RecordAdded:
    record: Record

    def deliver(self, sink: TimelineSink) -> None:
        sink.on_record_added(self.record)


@dataclass(frozen=True)
class RecordMutated:
    record: Record

    def deliver(self, sink: TimelineSink) -> None:
        sink.on_record_mutated(self.record)


@dataclass(frozen=True)
class RecordsCleared:
    def deliver(self, sink: TimelineSink) -> None:
        sink.on_records_cleared()


@dataclass(frozen=True)
class BulkImported:
    records: tuple[Record, ...]

    def deliver(self, sink: TimelineSink) -> None:
        sink.on_bulk_import(self.records)


@dataclass(frozen=True)
class PauseChanged:
    paused: bool

    def deliver(self, sink: TimelineSink) -> None:
        return None


@dataclass(frozen=True)
class PinChanged:
    record_id: int
    pinned: bool

    def deliver(self, sink: TimelineSink) -> None:
        return None


@dataclass(frozen=True)
class AnalyticsUpdated:
    analytics: AnalyticsSnapshot

    def deliver(self, sink: TimelineSink) -> None:
        return None


TimelineEvent = (
    RecordAdded | RecordMutated | RecordsCleared | BulkImported | PauseChanged | PinChanged | AnalyticsUpdated
)

Handler = Callable[[TimelineEvent], None]


class TimelineBus:
    """Ordered, synchronous fan-out of TimelineEvents to subscribers."""

    def __init__(self) -> None:
        self._handlers: list[Handler] = []

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        """Register *handler*; returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            self.unsubscribe(handler)

        return _unsubscribe

    def unsubscribe(self, handler: Handler) -> bool:
        try:
            self._handlers.remove(handler)
        except ValueError:
            return False
        return True

    def publish(self, event: TimelineEvent) -> None:
        for handler in tuple(self._handlers):
            handler(event)

    def __len__(self) -> int:
        return len(self._handlers)
