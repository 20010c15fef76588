"""Snapshot builder: normalizes arbitrary values into JSON-safe trees.

This module is the only place that inspects the runtime type of captured
values.  Every value resolves to one of a closed set of variants:

    primitive   None, bool, int, float, str   -> passed through
    temporal    datetime, date, time          -> ISO-8601 string
    enumerated  Enum members                  -> member name
    mapping     Mapping                       -> dict with str keys
    sequence    list, tuple, other Sequence   -> list
    set         set, frozenset                -> list (order not stable)
    opaque      anything else                 -> JSON round trip

A mapping or sequence revisited while still on the active recursion path is
replaced with ``"<cycle>"``; recursion at ``max_depth`` yields
``"<max-depth>"``.  If an opaque value cannot round-trip, the whole snapshot
degrades to summary-only (``structured`` is None).
"""

from __future__ import annotations

import dataclasses
import json
import traceback
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time
from enum import Enum
from typing import Any

from stateline.models.snapshot import Snapshot

CYCLE_MARKER = "<cycle>"
MAX_DEPTH_MARKER = "<max-depth>"

DEFAULT_MAX_DEPTH = 6
DEFAULT_SUMMARY_CHARS = 200

_BINARY = (bytes, bytearray, memoryview)


class _UnserializableError(Exception):
    """An opaque value could not round-trip through JSON."""


def build_snapshot(
    value: Any,
    max_depth: int = DEFAULT_MAX_DEPTH,
    summary_chars: int = DEFAULT_SUMMARY_CHARS,
) -> Snapshot:
    """Build an immutable Snapshot of *value*.

    The summary is always populated, independently of whether structural
    normalization succeeded.
    """
    try:
        structured = _normalize(value, 0, max_depth, set())
    except _UnserializableError:
        structured = None
    pretty = json.dumps(structured, indent=2, ensure_ascii=False) if structured is not None else None
    return Snapshot(
        raw=value,
        structured=structured,
        pretty_text=pretty,
        summary=describe_value(value, max_chars=summary_chars),
    )


def _normalize(value: Any, depth: int, max_depth: int, visiting: set[int]) -> Any:
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.name

    if depth >= max_depth:
        return MAX_DEPTH_MARKER

    if isinstance(value, Mapping):
        identity = id(value)
        if identity in visiting:
            return CYCLE_MARKER
        visiting.add(identity)
        try:
            return {_key(key): _normalize(entry, depth + 1, max_depth, visiting) for key, entry in value.items()}
        finally:
            visiting.discard(identity)

    if isinstance(value, set | frozenset):
        return [_normalize(entry, depth + 1, max_depth, visiting) for entry in value]

    if isinstance(value, Sequence) and not isinstance(value, _BINARY):
        identity = id(value)
        if identity in visiting:
            return CYCLE_MARKER
        visiting.add(identity)
        try:
            return [_normalize(entry, depth + 1, max_depth, visiting) for entry in value]
        finally:
            visiting.discard(identity)

    return _round_trip(value)


def _key(key: object) -> str:
    if isinstance(key, Enum):
        return key.name
    return str(key)


def _round_trip(value: Any) -> Any:
    try:
        return json.loads(json.dumps(value, default=_encode_opaque))
    except (TypeError, ValueError, RecursionError) as exc:
        raise _UnserializableError(str(exc)) from exc


def _encode_opaque(value: Any) -> Any:
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, set | frozenset):
        return list(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {field.name: getattr(value, field.name) for field in dataclasses.fields(value)}
    for method in ("model_dump", "to_dict", "to_json"):
        fn = getattr(value, method, None)
        if callable(fn):
            return fn()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def describe_value(value: Any, max_chars: int = 120) -> str:
    """Best-effort one-line description of *value*, capped at *max_chars*."""
    if value is None:
        return "null"
    try:
        if isinstance(value, Mapping | list | tuple):
            text = json.dumps(value, ensure_ascii=False, default=str)
        elif isinstance(value, datetime | date | time):
            text = value.isoformat()
        elif isinstance(value, Enum):
            text = value.name
        else:
            text = str(value)
    except Exception as exc:  # noqa: BLE001
        return f"<format error: {exc}>"
    if len(text) > max_chars:
        text = f"{text[:max_chars]}…"
    return text


def describe_error(error: BaseException, max_chars: int = 200) -> str:
    """Describe an exception with its traceback, capped at *max_chars*."""
    text = "".join(traceback.format_exception(error)).rstrip()
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}…"
