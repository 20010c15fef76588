"""Unit tests for the TimelineBus and sink dispatch."""

from __future__ import annotations

import pytest

from stateline.models.analytics import AnalyticsSnapshot
from stateline.models.events import EventKind
from stateline.models.records import Record
from stateline.sinks.base import TimelineSink
from stateline.timeline.bus import (
    AnalyticsUpdated,
    BulkImported,
    PauseChanged,
    RecordAdded,
    RecordMutated,
    RecordsCleared,
    TimelineBus,
    TimelineEvent,
)
from stateline.timeline.store import TimelineStore

from ..conftest import make_record


class RecordingSink(TimelineSink):
    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []

    def on_record_added(self, record: Record) -> None:
        self.calls.append(("added", record.id))

    def on_record_mutated(self, record: Record) -> None:
        self.calls.append(("mutated", record.id))

    def on_records_cleared(self) -> None:
        self.calls.append(("cleared", None))

    def on_bulk_import(self, records: tuple[Record, ...]) -> None:
        self.calls.append(("bulk", [record.id for record in records]))


class ExplodingSink(TimelineSink):
    def on_record_added(self, record: Record) -> None:
        raise RuntimeError("sink failure")


class TestTimelineBus:
    def test_delivers_in_subscription_order(self) -> None:
        bus = TimelineBus()
        seen: list[str] = []
        bus.subscribe(lambda event: seen.append("first"))
        bus.subscribe(lambda event: seen.append("second"))
        bus.publish(RecordsCleared())
        assert seen == ["first", "second"]

    def test_unsubscribe_callable(self) -> None:
        bus = TimelineBus()
        seen: list[TimelineEvent] = []
        unsubscribe = bus.subscribe(seen.append)
        unsubscribe()
        bus.publish(RecordsCleared())
        assert seen == []
        assert len(bus) == 0

    def test_unsubscribe_unknown_handler(self) -> None:
        assert not TimelineBus().unsubscribe(lambda event: None)

    def test_unsubscribe_during_publish_applies_to_next_publish(self) -> None:
        bus = TimelineBus()
        seen: list[str] = []

        def first(event: TimelineEvent) -> None:
            seen.append("first")
            bus.unsubscribe(second)

        def second(event: TimelineEvent) -> None:
            seen.append("second")

        bus.subscribe(first)
        bus.subscribe(second)
        bus.publish(RecordsCleared())
        bus.publish(RecordsCleared())
        assert seen == ["first", "second", "first"]


class TestSinkDispatch:
    def test_events_route_to_hooks(self) -> None:
        sink = RecordingSink()
        sink.handle(RecordAdded(make_record(1)))
        sink.handle(RecordMutated(make_record(1)))
        sink.handle(RecordsCleared())
        sink.handle(BulkImported((make_record(2), make_record(3))))
        sink.handle(PauseChanged(True))
        sink.handle(AnalyticsUpdated(AnalyticsSnapshot()))
        assert sink.calls == [("added", 1), ("mutated", 1), ("cleared", None), ("bulk", [2, 3])]

    def test_default_hooks_are_noops(self) -> None:
        sink = TimelineSink()
        sink.handle(RecordAdded(make_record(1)))
        assert sink.sink_name == "TimelineSink"

    def test_store_notifies_sinks_in_order(self) -> None:
        store = TimelineStore(max_records=3)
        order: list[str] = []

        class Named(TimelineSink):
            def __init__(self, name: str) -> None:
                self.name = name

            def on_record_added(self, record: Record) -> None:
                order.append(self.name)

        store.add_sink(Named("a"))
        store.add_sink(Named("b"))
        store.capture("o", EventKind.UPDATE, "x")
        assert order == ["a", "b"]

    def test_removed_sink_receives_nothing(self) -> None:
        store = TimelineStore(max_records=3)
        sink = RecordingSink()
        store.add_sink(sink)
        store.add_sink(sink)
        assert store.sinks == (sink,)
        assert store.remove_sink(sink)
        store.capture("o", EventKind.UPDATE, "x")
        assert sink.calls == []
        assert not store.remove_sink(sink)

    def test_sink_errors_propagate_to_caller(self) -> None:
        store = TimelineStore(max_records=3)
        store.add_sink(ExplodingSink())
        with pytest.raises(RuntimeError, match="sink failure"):
            store.capture("o", EventKind.UPDATE, "x")
