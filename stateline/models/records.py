"""Timeline record data structures.

A Record is immutable: annotation, tag, metric, and attachment changes build a
new Record through the ``with_*`` / ``without_*`` helpers, and the timeline
store substitutes the replacement at the same position.
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from stateline.models.events import AnnotationSeverity, AttachmentType, EventKind, parse_enum
from stateline.models.snapshot import DiffEntry, Snapshot


def normalize_tags(tags: Iterable[object]) -> tuple[str, ...]:
    """Trim tags, drop empty ones, and de-duplicate while keeping first-seen order."""
    seen: dict[str, None] = {}
    for tag in tags:
        text = str(tag).strip()
        if text:
            seen.setdefault(text, None)
    return tuple(seen)


def parse_timestamp(value: object) -> datetime:
    """Parse an ISO-8601 string; anything unparseable becomes "now" (UTC)."""
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return datetime.now(tz=UTC)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed
    return datetime.now(tz=UTC)


def _parse_number(value: object) -> int | float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int | float):
        return value
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return 0
        return int(number) if number.is_integer() else number
    return 0


def is_record_id(value: object) -> bool:
    """True for JSON numbers usable as a record id (finite, not bool)."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return not isinstance(value, float) or math.isfinite(value)


def _parse_id(value: object) -> int:
    if not is_record_id(value):
        raise ValueError(f"record id must be a finite number, got {value!r}")
    return int(value)  # type: ignore[arg-type]


def _str_or_none(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _string_map(value: object) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return {str(key): entry for key, entry in value.items()}
    return {}


def _mappings(value: object) -> list[Mapping[str, Any]]:
    if isinstance(value, list):
        return [entry for entry in value if isinstance(entry, Mapping)]
    return []


@dataclass(frozen=True)
class Annotation:
    """Developer-authored note attached to a record."""

    record_id: int
    message: str
    severity: AnnotationSeverity = AnnotationSeverity.INFO
    author: str | None = None
    tags: tuple[str, ...] = ()
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"annotation_{uuid4().hex}")

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", normalize_tags(self.tags))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "recordId": self.record_id,
            "message": self.message,
        }
        if self.author is not None:
            out["author"] = self.author
        out["severity"] = self.severity.value
        if self.tags:
            out["tags"] = list(self.tags)
        out["createdAt"] = self.created_at.isoformat()
        if self.metadata:
            out["metadata"] = dict(self.metadata)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Annotation:
        raw_tags = data.get("tags")
        kwargs: dict[str, Any] = {}
        if isinstance(data.get("id"), str):
            kwargs["id"] = data["id"]
        record_id = data.get("recordId")
        return cls(
            record_id=_parse_id(record_id) if record_id is not None else 0,
            message=str(data.get("message") or ""),
            severity=parse_enum(AnnotationSeverity, data.get("severity"), AnnotationSeverity.INFO),
            author=_str_or_none(data.get("author")),
            tags=tuple(raw_tags) if isinstance(raw_tags, list) else (),
            created_at=parse_timestamp(data.get("createdAt")),
            metadata=_string_map(data.get("metadata")),
            **kwargs,
        )


@dataclass(frozen=True)
class Attachment:
    """External artifact (screenshot, recording, log) linked to a record."""

    record_id: int
    uri: str
    type: AttachmentType = AttachmentType.CUSTOM
    description: str | None = None
    thumbnail_uri: str | None = None
    captured_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"attachment_{uuid4().hex}")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "recordId": self.record_id,
            "uri": self.uri,
            "type": self.type.value,
        }
        if self.thumbnail_uri is not None:
            out["thumbnailUri"] = self.thumbnail_uri
        if self.description is not None:
            out["description"] = self.description
        out["capturedAt"] = self.captured_at.isoformat()
        if self.metadata:
            out["metadata"] = dict(self.metadata)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Attachment:
        kwargs: dict[str, Any] = {}
        if isinstance(data.get("id"), str):
            kwargs["id"] = data["id"]
        record_id = data.get("recordId")
        return cls(
            record_id=_parse_id(record_id) if record_id is not None else 0,
            uri=str(data.get("uri") or ""),
            type=parse_enum(AttachmentType, data.get("type"), AttachmentType.CUSTOM),
            description=_str_or_none(data.get("description")),
            thumbnail_uri=_str_or_none(data.get("thumbnailUri")),
            captured_at=parse_timestamp(data.get("capturedAt")),
            metadata=_string_map(data.get("metadata")),
            **kwargs,
        )


@dataclass(frozen=True)
class Record:
    """One captured state change: the atomic timeline unit.

    ``id`` is assigned by the timeline store at capture time and is strictly
    increasing in insertion order.  ``state`` holds the raw captured value for
    programmatic inspection and is never serialized.
    """

    id: int
    origin: str
    kind: EventKind
    timestamp: datetime
    summary: str
    previous_summary: str | None = None
    runtime_type: str | None = None
    state: Any = None
    details: dict[str, Any] = field(default_factory=dict)
    snapshot: Snapshot = field(default_factory=Snapshot)
    previous_snapshot: Snapshot | None = None
    diffs: tuple[DiffEntry, ...] = ()
    tags: tuple[str, ...] = ()
    metrics: dict[str, int | float] = field(default_factory=dict)
    annotations: tuple[Annotation, ...] = ()
    attachments: tuple[Attachment, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", normalize_tags(self.tags))
        object.__setattr__(self, "diffs", tuple(self.diffs))
        object.__setattr__(self, "annotations", tuple(self.annotations))
        object.__setattr__(self, "attachments", tuple(self.attachments))

    # ------------------------------------------------------------------
    # Copy-on-write helpers
    # ------------------------------------------------------------------

    def with_annotation(self, annotation: Annotation) -> Record:
        if annotation.record_id != self.id:
            annotation = dataclasses.replace(annotation, record_id=self.id)
        return dataclasses.replace(self, annotations=(*self.annotations, annotation))

    def without_annotation(self, annotation_id: str) -> Record:
        kept = tuple(a for a in self.annotations if a.id != annotation_id)
        return dataclasses.replace(self, annotations=kept)

    def with_tags(self, tags: Iterable[str]) -> Record:
        return dataclasses.replace(self, tags=(*self.tags, *tags))

    def replace_tags(self, tags: Iterable[str]) -> Record:
        return dataclasses.replace(self, tags=tuple(tags))

    def with_attachment(self, attachment: Attachment) -> Record:
        if attachment.record_id != self.id:
            attachment = dataclasses.replace(attachment, record_id=self.id)
        return dataclasses.replace(self, attachments=(*self.attachments, attachment))

    def without_attachment(self, attachment_id: str) -> Record:
        kept = tuple(a for a in self.attachments if a.id != attachment_id)
        return dataclasses.replace(self, attachments=kept)

    def with_metrics(self, metrics: Mapping[str, int | float]) -> Record:
        return dataclasses.replace(self, metrics={**self.metrics, **metrics})

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire form; empty or absent fields are omitted."""
        out: dict[str, Any] = {
            "id": self.id,
            "origin": self.origin,
            "kind": self.kind.value,
            "timestamp": self.timestamp.isoformat(),
            "summary": self.summary,
        }
        if self.previous_summary is not None:
            out["previousSummary"] = self.previous_summary
        if self.runtime_type is not None:
            out["runtimeType"] = self.runtime_type
        if self.details:
            out["details"] = dict(self.details)
        if self.snapshot.has_structured or self.snapshot.summary is not None:
            out["snapshot"] = self.snapshot.to_dict()
        previous = self.previous_snapshot
        if previous is not None and (previous.has_structured or previous.summary is not None):
            out["previousSnapshot"] = previous.to_dict()
        if self.diffs:
            out["diffs"] = [entry.to_dict() for entry in self.diffs]
        if self.tags:
            out["tags"] = list(self.tags)
        if self.metrics:
            out["metrics"] = dict(self.metrics)
        if self.annotations:
            out["annotations"] = [a.to_dict() for a in self.annotations]
        if self.attachments:
            out["attachments"] = [a.to_dict() for a in self.attachments]
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Record:
        """Decode a serialized record.

        Missing optional fields fall back to defaults and an unknown kind
        decodes as ``update``.  Raises ValueError when ``id`` is not numeric.
        """
        snapshot_data = data.get("snapshot")
        previous_data = data.get("previousSnapshot")
        raw_tags = data.get("tags")
        raw_metrics = data.get("metrics")
        origin = data.get("origin")
        summary = data.get("summary")
        return cls(
            id=_parse_id(data.get("id", 0)),
            origin=origin if isinstance(origin, str) else "unknown",
            kind=parse_enum(EventKind, data.get("kind"), EventKind.UPDATE),
            timestamp=parse_timestamp(data.get("timestamp")),
            summary=summary if isinstance(summary, str) else "",
            previous_summary=_str_or_none(data.get("previousSummary")),
            runtime_type=_str_or_none(data.get("runtimeType")),
            details=_string_map(data.get("details")),
            snapshot=Snapshot.from_dict(dict(snapshot_data)) if isinstance(snapshot_data, Mapping) else Snapshot(),
            previous_snapshot=(Snapshot.from_dict(dict(previous_data)) if isinstance(previous_data, Mapping) else None),
            diffs=tuple(DiffEntry.from_dict(dict(entry)) for entry in _mappings(data.get("diffs"))),
            tags=tuple(raw_tags) if isinstance(raw_tags, list) else (),
            metrics=(
                {str(key): _parse_number(value) for key, value in raw_metrics.items()}
                if isinstance(raw_metrics, Mapping)
                else {}
            ),
            annotations=tuple(Annotation.from_dict(entry) for entry in _mappings(data.get("annotations"))),
            attachments=tuple(Attachment.from_dict(entry) for entry in _mappings(data.get("attachments"))),
        )
