"""Recursive structural diff between two snapshots.

Produces an ordered list of DiffEntry.  Traversal is deterministic: mapping
keys are visited in insertion order (previous keys first, then keys only
present in the current mapping) and list indices ascend, so repeated diffs
of equal inputs yield identical entries.  Diffing stops once ``max_entries``
entries have been collected.
"""

from __future__ import annotations

from typing import Any

from stateline.models.events import DiffKind
from stateline.models.snapshot import DiffEntry, PathSegment, Snapshot

DEFAULT_MAX_ENTRIES = 200


def build_diff(
    previous: Snapshot | None,
    current: Snapshot,
    max_entries: int = DEFAULT_MAX_ENTRIES,
) -> tuple[DiffEntry, ...]:
    """Diff *previous* against *current*.

    Returns an empty tuple when either side lacks a structured tree.  A
    previous snapshot built from an explicit null counts as a null tree, so a
    value appearing from nothing yields a single ``added`` entry at the root.
    """
    if previous is None or current.structured is None:
        return ()
    if previous.structured is None and not previous.is_null:
        return ()
    results: list[DiffEntry] = []
    _diff(previous.structured, current.structured, (), results, max_entries)
    return tuple(results)


def _diff(
    previous: Any,
    current: Any,
    path: tuple[PathSegment, ...],
    results: list[DiffEntry],
    max_entries: int,
) -> None:
    if len(results) >= max_entries:
        return
    if deep_equals(previous, current):
        return

    if previous is None:
        results.append(DiffEntry(path=path, kind=DiffKind.ADDED, after=current))
        return
    if current is None:
        results.append(DiffEntry(path=path, kind=DiffKind.REMOVED, before=previous))
        return

    if isinstance(previous, dict) and isinstance(current, dict):
        keys = dict.fromkeys([*previous, *current])
        for key in keys:
            if len(results) >= max_entries:
                return
            _diff(previous.get(key), current.get(key), (*path, key), results, max_entries)
        return

    if isinstance(previous, list) and isinstance(current, list):
        for index in range(max(len(previous), len(current))):
            if len(results) >= max_entries:
                return
            before = previous[index] if index < len(previous) else None
            after = current[index] if index < len(current) else None
            _diff(before, after, (*path, index), results, max_entries)
        return

    results.append(DiffEntry(path=path, kind=DiffKind.CHANGED, before=previous, after=current))


def deep_equals(a: Any, b: Any) -> bool:
    """Structural equality over JSON trees; distinct containers with equal content are equal."""
    if a is b:
        return True
    if a is None or b is None:
        return False
    if isinstance(a, dict) and isinstance(b, dict):
        if len(a) != len(b):
            return False
        return all(key in b and deep_equals(value, b[key]) for key, value in a.items())
    if isinstance(a, list) and isinstance(b, list):
        if len(a) != len(b):
            return False
        return all(deep_equals(x, y) for x, y in zip(a, b, strict=True))
    # True == 1 in Python, but a boolean leaf flipping to a number is a change
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    return bool(a == b)
