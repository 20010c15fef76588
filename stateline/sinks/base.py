"""Sink base class and the wire message envelope.

TimelineSink -- Base for every consumer mirroring timeline mutations.  The
                four hooks default to no-ops so a sink implements only the
                capabilities it needs.
MessageType  -- ``type`` values of the one-object-per-event JSON envelope.
SinkConnectError -- Raised when an outbound transport cannot be established.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from stateline.models.records import Record

if TYPE_CHECKING:
    from stateline.timeline.bus import TimelineEvent


StatusCallback = Callable[[str], None]
"""Receives human-readable transport lifecycle updates (connecting, errors, ...)."""


class SinkConnectError(ConnectionError):
    """An outbound sink could not connect (timeout, refused, or bad handshake)."""


class MessageType(StrEnum):
    RECORD = "record"
    RECORD_UPDATE = "record:update"
    CLEAR = "clear"
    BULK_IMPORT = "bulkImport"


def record_message(record: Record) -> dict[str, Any]:
    return {"type": MessageType.RECORD.value, "payload": record.to_dict()}


def record_update_message(record: Record) -> dict[str, Any]:
    return {"type": MessageType.RECORD_UPDATE.value, "payload": record.to_dict()}


def clear_message() -> dict[str, Any]:
    return {"type": MessageType.CLEAR.value}


def bulk_import_message(records: Iterable[Record]) -> dict[str, Any]:
    return {"type": MessageType.BULK_IMPORT.value, "payload": [record.to_dict() for record in records]}


def encode_message(message: dict[str, Any]) -> str:
    """Encode an envelope as a single JSON text frame."""
    return json.dumps(message, ensure_ascii=False, default=str)


class TimelineSink:
    """Consumer of timeline mutations, attached with ``TimelineStore.add_sink``.

    Hooks run synchronously inside the mutating call, in attachment order.
    Exceptions raised by a hook propagate to the caller; transports that must
    not fail the caller report errors through their own status channel.
    """

    @property
    def sink_name(self) -> str:
        """Identifier used in metrics and logs."""
        return type(self).__name__

    def handle(self, event: TimelineEvent) -> None:
        event.deliver(self)

    def on_record_added(self, record: Record) -> None:
        return None

    def on_record_mutated(self, record: Record) -> None:
        return None

    def on_records_cleared(self) -> None:
        return None

    def on_bulk_import(self, records: tuple[Record, ...]) -> None:
        return None
