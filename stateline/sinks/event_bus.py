"""Timeline event bus: one uniformly typed broadcast stream per store.

The bus attaches itself to a TimelineStore as a sink and re-publishes every
mutation, together with the analytics snapshot recomputed after it, as a
BroadcastEvent on its own Channel.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from stateline.models.analytics import AnalyticsSnapshot
from stateline.models.records import Record
from stateline.sinks.base import TimelineSink
from stateline.sinks.stream import Channel, Subscription
from stateline.timeline.bus import AnalyticsUpdated

if TYPE_CHECKING:
    from stateline.timeline.bus import TimelineEvent
    from stateline.timeline.store import TimelineStore


class BroadcastType(StrEnum):
    RECORD = "record"
    UPDATE = "update"
    CLEAR = "clear"
    BULK_IMPORT = "bulkImport"
    ANALYTICS = "analytics"


@dataclass(frozen=True)
class BroadcastEvent:
    type: BroadcastType
    record: Record | None = None
    records: tuple[Record, ...] = ()
    analytics: AnalyticsSnapshot | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.type in (BroadcastType.RECORD, BroadcastType.UPDATE):
            return {"type": self.type.value, "payload": self.record.to_dict() if self.record else None}
        if self.type == BroadcastType.BULK_IMPORT:
            return {"type": self.type.value, "payload": [record.to_dict() for record in self.records]}
        if self.type == BroadcastType.ANALYTICS:
            return {"type": self.type.value, "payload": self.analytics.to_dict() if self.analytics else None}
        return {"type": self.type.value}


class TimelineEventBus(TimelineSink):
    """Multiplexes a store's mutations and analytics to many listeners.

    Registers itself on *store* at construction; call :meth:`dispose` to
    detach and end every subscription.
    """

    def __init__(self, store: TimelineStore, channel: Channel[BroadcastEvent] | None = None) -> None:
        self._store = store
        self._events: Channel[BroadcastEvent] = channel if channel is not None else Channel()
        store.add_sink(self)

    @property
    def sink_name(self) -> str:
        return "event_bus"

    @property
    def events(self) -> Channel[BroadcastEvent]:
        return self._events

    def subscribe(self) -> Subscription[BroadcastEvent]:
        return self._events.subscribe()

    def handle(self, event: TimelineEvent) -> None:
        if isinstance(event, AnalyticsUpdated):
            self._events.publish(BroadcastEvent(BroadcastType.ANALYTICS, analytics=event.analytics))
            return
        super().handle(event)

    def on_record_added(self, record: Record) -> None:
        self._events.publish(BroadcastEvent(BroadcastType.RECORD, record=record))

    def on_record_mutated(self, record: Record) -> None:
        self._events.publish(BroadcastEvent(BroadcastType.UPDATE, record=record))

    def on_records_cleared(self) -> None:
        self._events.publish(BroadcastEvent(BroadcastType.CLEAR))

    def on_bulk_import(self, records: tuple[Record, ...]) -> None:
        self._events.publish(BroadcastEvent(BroadcastType.BULK_IMPORT, records=tuple(records)))

    def dispose(self) -> None:
        self._store.remove_sink(self)
        self._events.close()
