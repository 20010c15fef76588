"""Snapshot and diff value objects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from stateline.models.events import DiffKind, parse_enum

PathSegment = str | int


@dataclass(frozen=True)
class Snapshot:
    """Captured view of a state value at one instant.

    ``structured`` is the JSON-safe tree (maps, lists, primitives) or None when
    normalization failed or the raw value carries no structure.
    """

    raw: Any = None
    structured: Any = None
    pretty_text: str | None = None
    summary: str | None = None

    @property
    def has_structured(self) -> bool:
        return self.structured is not None

    @property
    def is_null(self) -> bool:
        """True when the snapshot was built from an explicit null value."""
        return self.raw is None and self.structured is None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.structured is not None:
            out["structured"] = self.structured
        if self.pretty_text is not None:
            out["pretty"] = self.pretty_text
        if self.summary is not None:
            out["summary"] = self.summary
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        structured = data.get("structured")
        summary = data.get("summary")
        pretty = data.get("pretty")
        return cls(
            raw=structured if structured is not None else summary,
            structured=structured,
            pretty_text=pretty if isinstance(pretty, str) else None,
            summary=summary if isinstance(summary, str) else None,
        )


@dataclass(frozen=True)
class DiffEntry:
    """One structural difference between two snapshots, located by *path*."""

    path: tuple[PathSegment, ...]
    kind: DiffKind
    before: Any = None
    after: Any = None

    @property
    def path_as_string(self) -> str:
        """Render the path as ``user.profile[0].name`` (``<root>`` when empty)."""
        if not self.path:
            return "<root>"
        parts: list[str] = []
        for segment in self.path:
            if isinstance(segment, int):
                parts.append(f"[{segment}]")
            else:
                if parts:
                    parts.append(".")
                parts.append(str(segment))
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"path": list(self.path), "kind": self.kind.value}
        if self.before is not None:
            out["before"] = self.before
        if self.after is not None:
            out["after"] = self.after
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DiffEntry:
        raw_path = data.get("path")
        path: tuple[PathSegment, ...] = ()
        if isinstance(raw_path, list):
            path = tuple(_coerce_segment(segment) for segment in raw_path)
        return cls(
            path=path,
            kind=parse_enum(DiffKind, data.get("kind"), DiffKind.CHANGED),
            before=data.get("before"),
            after=data.get("after"),
        )


def _coerce_segment(segment: object) -> PathSegment:
    # bool is an int subclass but never a list index
    if isinstance(segment, int | float) and not isinstance(segment, bool):
        return int(segment)
    return str(segment)
