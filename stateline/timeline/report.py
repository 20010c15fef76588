"""Markdown summary of a timeline, for sharing in issues and chat."""

from __future__ import annotations

import json
from collections.abc import Collection, Sequence
from typing import Any

from stateline.models.analytics import AnalyticsSnapshot
from stateline.models.records import Record
from stateline.models.snapshot import DiffEntry

_MAX_DIFFS_PER_RECORD = 5


def _inline(value: Any) -> str:
    text = json.dumps(value, ensure_ascii=False, default=str)
    return text if len(text) <= 60 else f"{text[:60]}…"


def _diff_line(entry: DiffEntry) -> str:
    path = f"`{entry.path_as_string}`"
    if entry.kind == "added":
        return f"  - {path}: added {_inline(entry.after)}"
    if entry.kind == "removed":
        return f"  - {path}: removed {_inline(entry.before)}"
    return f"  - {path}: {_inline(entry.before)} → {_inline(entry.after)}"


def render_markdown(
    records: Sequence[Record],
    pinned: Collection[int],
    analytics: AnalyticsSnapshot,
    limit: int = 20,
) -> str:
    """Render the most recent *limit* records (newest first) plus headline analytics."""
    recent = list(records[-limit:]) if limit > 0 else []
    recent.reverse()

    lines = ["# State timeline", ""]
    lines.append(f"- Records: {len(records)} (showing {len(recent)})")
    lines.append(f"- Pinned: {len(pinned)}")
    kinds = ", ".join(f"{kind.value}={count}" for kind, count in analytics.kind_counts.items())
    lines.append(f"- Kinds: {kinds}")
    top = analytics.top_origins_by_count(3)
    if top:
        lines.append("- Busiest origins: " + ", ".join(f"{stats.origin} ({stats.count})" for stats in top))
    lines.append("")

    if not recent:
        lines.append("_No records captured._")
        return "\n".join(lines) + "\n"

    lines.append("## Recent events")
    for record in recent:
        marker = " 📌" if record.id in pinned else ""
        lines.append("")
        lines.append(f"### #{record.id} {record.origin} · {record.kind.value}{marker}")
        lines.append(f"- Time: {record.timestamp.isoformat()}")
        lines.append(f"- Summary: {record.summary}")
        if record.tags:
            lines.append(f"- Tags: {', '.join(record.tags)}")
        if record.metrics:
            lines.append("- Metrics: " + ", ".join(f"{key}={value}" for key, value in record.metrics.items()))
        if record.diffs:
            lines.append("- Diffs:")
            lines.extend(_diff_line(entry) for entry in record.diffs[:_MAX_DIFFS_PER_RECORD])
            hidden = len(record.diffs) - _MAX_DIFFS_PER_RECORD
            if hidden > 0:
                lines.append(f"  - … {hidden} more")
        if record.annotations:
            lines.append("- Annotations:")
            for annotation in record.annotations:
                author = f" ({annotation.author})" if annotation.author else ""
                lines.append(f"  - [{annotation.severity.value}] {annotation.message}{author}")
        if record.attachments:
            lines.append("- Attachments:")
            for attachment in record.attachments:
                lines.append(f"  - {attachment.type.value}: {attachment.uri}")
    return "\n".join(lines) + "\n"
