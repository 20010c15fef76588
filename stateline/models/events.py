"""Enumerations shared by the timeline data model."""

from __future__ import annotations

from enum import StrEnum
from typing import TypeVar

_E = TypeVar("_E", bound=StrEnum)


class EventKind(StrEnum):
    """Kind of lifecycle or runtime event a record describes."""

    UPDATE = "update"
    TRANSITION = "transition"
    ADD = "add"
    DISPOSE = "dispose"
    ERROR = "error"


class DiffKind(StrEnum):
    """Kind of structural change found between two snapshots."""

    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


class AnnotationSeverity(StrEnum):
    """Severity indicator for developer annotations."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AttachmentType(StrEnum):
    """Type of external artifact linked to a record."""

    SCREENSHOT = "screenshot"
    SCREEN_RECORDING = "screenRecording"
    LOG = "log"
    CUSTOM = "custom"


def parse_enum(enum_cls: type[_E], value: object, default: _E) -> _E:
    """Decode *value* into *enum_cls*, falling back to *default* when unknown."""
    if isinstance(value, str):
        try:
            return enum_cls(value)
        except ValueError:
            return default
    return default
