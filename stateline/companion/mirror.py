"""Apply inbound envelope messages to a local mirror TimelineStore."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from stateline.models.records import Record
from stateline.observability.logging import get_logger
from stateline.sinks.base import MessageType
from stateline.timeline.store import TimelineStore

_log = get_logger("companion.mirror")


def apply_message(store: TimelineStore, message: Mapping[str, Any]) -> bool:
    """Apply one envelope message to *store*; returns False when it was ignored.

    ``record`` appends (or replaces a record already mirrored under the same
    id), ``record:update`` replaces (or appends when the mirror joined late),
    ``clear`` clears and ``bulkImport`` replaces the whole timeline.
    """
    kind = message.get("type")
    payload = message.get("payload")

    if kind == MessageType.CLEAR:
        store.clear()
        return True

    if kind == MessageType.BULK_IMPORT:
        if not isinstance(payload, list):
            _log.warning("mirror_message_ignored", type=kind, reason="payload is not a list")
            return False
        return store.import_session(payload)

    if kind in (MessageType.RECORD, MessageType.RECORD_UPDATE):
        if not isinstance(payload, Mapping):
            _log.warning("mirror_message_ignored", type=kind, reason="payload is not an object")
            return False
        try:
            record = Record.from_dict(payload)
        except (TypeError, ValueError) as exc:
            _log.warning("mirror_message_ignored", type=kind, reason=str(exc))
            return False
        if store.get(record.id) is not None:
            return store.replace(record)
        return store.append(record)

    _log.warning("mirror_message_ignored", type=kind, reason="unknown message type")
    return False


def apply_frame(store: TimelineStore, text: str) -> bool:
    """Decode one JSON text frame and apply it; undecodable frames are skipped."""
    try:
        message = json.loads(text)
    except ValueError as exc:
        _log.warning("mirror_frame_undecodable", error=str(exc))
        return False
    if not isinstance(message, dict):
        _log.warning("mirror_frame_undecodable", error="frame is not a JSON object")
        return False
    return apply_message(store, message)
