"""Timeline store: the bounded, ordered, single mutation authority.

The store owns the record sequence, the pin set, the sequence counter and the
paused flag.  Every mutating call runs to completion synchronously: it
updates state, recomputes analytics from scratch, and publishes typed events
on the store's bus before returning.

Eviction always removes the oldest record (index 0) once the store exceeds
``max_records``, and drops its id from the pin set.  Pinning does not protect
a record from eviction.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from stateline.capture.diff import DEFAULT_MAX_ENTRIES, build_diff
from stateline.capture.snapshot import DEFAULT_MAX_DEPTH, DEFAULT_SUMMARY_CHARS, build_snapshot
from stateline.models.analytics import AnalyticsSnapshot
from stateline.models.config import TimelineConfig
from stateline.models.events import EventKind
from stateline.models.records import Annotation, Attachment, Record, is_record_id
from stateline.models.snapshot import DiffEntry, Snapshot
from stateline.observability.logging import get_logger
from stateline.observability.metrics import (
    records_captured_total,
    records_dropped_total,
    records_evicted_total,
    timeline_records,
)
from stateline.sinks.base import TimelineSink
from stateline.timeline.analytics import compute_analytics
from stateline.timeline.bus import (
    AnalyticsUpdated,
    BulkImported,
    Handler,
    PauseChanged,
    PinChanged,
    RecordAdded,
    RecordMutated,
    RecordsCleared,
    TimelineBus,
    TimelineEvent,
)
from stateline.timeline.report import render_markdown

_log = get_logger("timeline.store")

SESSION_VERSION = 1

_MISSING: Any = object()


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class TimelineStore:
    """Bounded timeline of captured records with pinning and broadcast.

    Args:
        max_records:      Capacity; must be positive.
        max_depth:        Snapshot normalization depth cap.
        max_diff_entries: Maximum diff entries stored per record.
        summary_chars:    Character budget for snapshot summaries.
        clock:            Source of capture timestamps (UTC now by default).
    """

    def __init__(
        self,
        max_records: int = 200,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_diff_entries: int = DEFAULT_MAX_ENTRIES,
        summary_chars: int = DEFAULT_SUMMARY_CHARS,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if max_records <= 0:
            raise ValueError(f"max_records must be positive, got {max_records}")
        self._max_records = max_records
        self._max_depth = max_depth
        self._max_diff_entries = max_diff_entries
        self._summary_chars = summary_chars
        self._clock = clock

        self._records: list[Record] = []
        self._pinned: set[int] = set()
        self._sequence = 0
        self._paused = False
        self._bus = TimelineBus()
        self._sinks: list[TimelineSink] = []
        self._analytics = AnalyticsSnapshot()

    @classmethod
    def from_config(cls, config: TimelineConfig, **kwargs: Any) -> TimelineStore:
        return cls(
            max_records=config.max_records,
            max_depth=config.max_depth,
            max_diff_entries=config.max_diff_entries,
            summary_chars=config.summary_chars,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Read accessors (defensive copies)
    # ------------------------------------------------------------------

    @property
    def records(self) -> tuple[Record, ...]:
        return tuple(self._records)

    @property
    def pinned(self) -> frozenset[int]:
        return frozenset(self._pinned)

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def max_records(self) -> int:
        return self._max_records

    @property
    def analytics(self) -> AnalyticsSnapshot:
        return self._analytics

    @property
    def sinks(self) -> tuple[TimelineSink, ...]:
        return tuple(self._sinks)

    def __len__(self) -> int:
        return len(self._records)

    def get(self, record_id: int) -> Record | None:
        index = self._index_of(record_id)
        return self._records[index] if index is not None else None

    def is_pinned(self, record_id: int) -> bool:
        return record_id in self._pinned

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def add_sink(self, sink: TimelineSink) -> None:
        """Attach *sink*; it receives every mutation published after this call."""
        if sink in self._sinks:
            return
        self._sinks.append(sink)
        self._bus.subscribe(sink.handle)
        _log.debug("sink_attached", sink=sink.sink_name)

    def remove_sink(self, sink: TimelineSink) -> bool:
        if sink not in self._sinks:
            return False
        self._sinks.remove(sink)
        self._bus.unsubscribe(sink.handle)
        _log.debug("sink_detached", sink=sink.sink_name)
        return True

    def add_listener(self, listener: Handler) -> Callable[[], None]:
        """Subscribe a plain callable to every TimelineEvent; returns an unsubscribe callable."""
        return self._bus.subscribe(listener)

    def remove_listener(self, listener: Handler) -> bool:
        return self._bus.unsubscribe(listener)

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def capture(
        self,
        origin: str,
        kind: EventKind,
        summary: str,
        *,
        state: Any = None,
        previous_state: Any = _MISSING,
        previous_summary: str | None = None,
        runtime_type: str | None = None,
        details: Mapping[str, Any] | None = None,
        snapshot: Snapshot | None = None,
        previous_snapshot: Snapshot | None = None,
        diffs: Sequence[DiffEntry] | None = None,
        tags: Iterable[str] = (),
        metrics: Mapping[str, int | float] | None = None,
    ) -> Record | None:
        """Build snapshots and diffs for a state change and append it.

        ``previous_state`` is only snapshotted when passed explicitly (an
        explicit None means "there was no value before").  Returns the new
        Record, or None when the store is paused.
        """
        if self._paused:
            records_dropped_total.labels(reason="paused").inc()
            return None

        current = snapshot if snapshot is not None else build_snapshot(state, self._max_depth, self._summary_chars)
        previous = previous_snapshot
        if previous is None and previous_state is not _MISSING:
            previous = build_snapshot(previous_state, self._max_depth, self._summary_chars)
        if diffs is None:
            resolved_diffs = build_diff(previous, current, self._max_diff_entries)
        else:
            resolved_diffs = tuple(diffs)[: self._max_diff_entries]

        self._sequence += 1
        record = Record(
            id=self._sequence,
            origin=origin,
            kind=kind,
            timestamp=self._clock(),
            summary=summary,
            previous_summary=previous_summary,
            runtime_type=runtime_type,
            state=state,
            details=dict(details or {}),
            snapshot=current,
            previous_snapshot=previous,
            diffs=resolved_diffs,
            tags=tuple(tags),
            metrics=dict(metrics or {}),
        )
        self.append(record)
        return record

    def append(self, record: Record) -> bool:
        """Append *record*, evicting the oldest entry when over capacity.

        Returns False (and drops the record) while paused.
        """
        if self._paused:
            records_dropped_total.labels(reason="paused").inc()
            return False

        self._records.append(record)
        self._sequence = max(self._sequence, record.id)
        if len(self._records) > self._max_records:
            evicted = self._records.pop(0)
            self._pinned.discard(evicted.id)
            records_evicted_total.inc()
            _log.debug("record_evicted", record_id=evicted.id, origin=evicted.origin)

        records_captured_total.labels(kind=record.kind.value).inc()
        self._changed(RecordAdded(record))
        return True

    def replace(self, record: Record) -> bool:
        """Substitute the stored record with the same id by *record*."""
        index = self._index_of(record.id)
        if index is None:
            return False
        self._records[index] = record
        self._changed(RecordMutated(record))
        return True

    def clear(self) -> None:
        """Remove every record and pin; a no-op when already empty."""
        if not self._records:
            return
        self._records.clear()
        self._pinned.clear()
        self._changed(RecordsCleared())

    # ------------------------------------------------------------------
    # Pause / pin
    # ------------------------------------------------------------------

    def toggle_pause(self, value: bool | None = None) -> None:
        paused = (not self._paused) if value is None else value
        if paused == self._paused:
            return
        self._paused = paused
        _log.info("capture_paused" if paused else "capture_resumed")
        self._bus.publish(PauseChanged(paused))

    def pause(self) -> None:
        self.toggle_pause(True)

    def resume(self) -> None:
        self.toggle_pause(False)

    def pin(self, record_id: int) -> None:
        if record_id in self._pinned:
            return
        self._pinned.add(record_id)
        self._bus.publish(PinChanged(record_id, True))

    def unpin(self, record_id: int) -> None:
        if record_id not in self._pinned:
            return
        self._pinned.discard(record_id)
        self._bus.publish(PinChanged(record_id, False))

    def toggle_pin(self, record_id: int) -> None:
        pinned = record_id not in self._pinned
        if pinned:
            self._pinned.add(record_id)
        else:
            self._pinned.discard(record_id)
        self._bus.publish(PinChanged(record_id, pinned))

    # ------------------------------------------------------------------
    # Copy-on-write mutations
    # ------------------------------------------------------------------

    def add_annotation(self, record_id: int, annotation: Annotation) -> Record | None:
        return self._mutate(record_id, lambda record: record.with_annotation(annotation))

    def remove_annotation(self, record_id: int, annotation_id: str) -> Record | None:
        def _remove(record: Record) -> Record:
            if not any(a.id == annotation_id for a in record.annotations):
                return record
            return record.without_annotation(annotation_id)

        return self._mutate(record_id, _remove)

    def add_tags(self, record_id: int, tags: Iterable[str]) -> Record | None:
        return self._mutate(record_id, lambda record: record.with_tags(tags))

    def set_tags(self, record_id: int, tags: Iterable[str]) -> Record | None:
        return self._mutate(record_id, lambda record: record.replace_tags(tags))

    def add_attachment(self, record_id: int, attachment: Attachment) -> Record | None:
        return self._mutate(record_id, lambda record: record.with_attachment(attachment))

    def remove_attachment(self, record_id: int, attachment_id: str) -> Record | None:
        def _remove(record: Record) -> Record:
            if not any(a.id == attachment_id for a in record.attachments):
                return record
            return record.without_attachment(attachment_id)

        return self._mutate(record_id, _remove)

    def merge_metrics(self, record_id: int, metrics: Mapping[str, int | float]) -> Record | None:
        return self._mutate(record_id, lambda record: record.with_metrics(metrics))

    def _mutate(self, record_id: int, apply: Callable[[Record], Record]) -> Record | None:
        index = self._index_of(record_id)
        if index is None:
            _log.debug("record_not_found", record_id=record_id)
            return None
        current = self._records[index]
        updated = apply(current)
        if updated is current:
            return current
        self._records[index] = updated
        self._changed(RecordMutated(updated))
        return updated

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_records(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self._records]

    def export_json(self, pretty: bool = False) -> str:
        return _dumps(self.export_records(), pretty)

    def export_session(self, label: str | None = None) -> dict[str, Any]:
        """Export records, pin state and metadata as a session object."""
        pinned_ids = [record.id for record in self._records if record.id in self._pinned]
        session: dict[str, Any] = {"version": SESSION_VERSION}
        if label is not None:
            session["label"] = label
        session["generatedAt"] = self._clock().isoformat()
        session["records"] = self.export_records()
        if pinned_ids:
            session["pinnedRecordIds"] = pinned_ids
        session["maxRecords"] = self._max_records
        return session

    def export_session_json(self, pretty: bool = False, label: str | None = None) -> str:
        return _dumps(self.export_session(label=label), pretty)

    def export_markdown(self, limit: int = 20) -> str:
        return render_markdown(self._records, self._pinned, self._analytics, limit=limit)

    def import_session(self, data: Mapping[str, Any] | list[Any]) -> bool:
        """Replace the store contents with a session object or a bare records list.

        Malformed payloads leave the store unchanged and return False;
        malformed entries inside a valid records list are skipped.
        """
        if isinstance(data, list):
            data = {"records": data}
        if not isinstance(data, Mapping):
            _log.warning("import_payload_ignored", reason="payload is not an object or list")
            return False
        raw_records = data.get("records")
        if not isinstance(raw_records, list):
            _log.warning("import_payload_ignored", reason="records field missing or not a list")
            return False

        parsed: list[Record] = []
        skipped = 0
        for entry in raw_records:
            if not isinstance(entry, Mapping):
                skipped += 1
                continue
            try:
                parsed.append(Record.from_dict(entry))
            except (TypeError, ValueError) as exc:
                skipped += 1
                _log.debug("import_record_skipped", error=str(exc))
        parsed.sort(key=lambda record: record.id)
        if len(parsed) > self._max_records:
            parsed = parsed[-self._max_records :]

        present = {record.id for record in parsed}
        pinned: set[int] = set()
        raw_pinned = data.get("pinnedRecordIds")
        if isinstance(raw_pinned, list):
            for entry in raw_pinned:
                if is_record_id(entry) and int(entry) in present:
                    pinned.add(int(entry))

        self._records = parsed
        self._pinned = pinned
        self._sequence = max(present, default=0)
        _log.info("session_imported", records=len(parsed), skipped=skipped, pinned=len(pinned))
        self._changed(BulkImported(tuple(parsed)))
        return True

    def import_session_json(self, text: str) -> bool:
        try:
            decoded = json.loads(text)
        except ValueError as exc:
            _log.warning("import_payload_ignored", reason="invalid json", error=str(exc))
            return False
        if not isinstance(decoded, dict | list):
            _log.warning("import_payload_ignored", reason="payload is not an object or list")
            return False
        return self.import_session(decoded)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _index_of(self, record_id: int) -> int | None:
        # Recent records are mutated most often; scan from the tail.
        for index in range(len(self._records) - 1, -1, -1):
            if self._records[index].id == record_id:
                return index
        return None

    def _changed(self, event: TimelineEvent) -> None:
        self._analytics = compute_analytics(self._records)
        timeline_records.set(len(self._records))
        self._bus.publish(event)
        self._bus.publish(AnalyticsUpdated(self._analytics))


def _dumps(payload: Any, pretty: bool) -> str:
    return json.dumps(payload, indent=2 if pretty else None, ensure_ascii=False, default=str)
