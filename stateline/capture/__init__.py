"""Capture layer: snapshot normalization and structural diffing.

Submodules:
    snapshot -- Normalizes arbitrary values into JSON-safe Snapshot trees.
    diff     -- Ordered, truncating structural diff between two snapshots.
"""

from stateline.capture.diff import build_diff, deep_equals
from stateline.capture.snapshot import (
    CYCLE_MARKER,
    MAX_DEPTH_MARKER,
    build_snapshot,
    describe_error,
    describe_value,
)

__all__ = [
    "CYCLE_MARKER",
    "MAX_DEPTH_MARKER",
    "build_diff",
    "build_snapshot",
    "deep_equals",
    "describe_error",
    "describe_value",
]
