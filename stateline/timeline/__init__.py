"""Timeline layer for stateline.

Submodules:
    store     -- TimelineStore: bounded record sequence, pins, pause, export/import.
    bus       -- Typed TimelineEvents and the synchronous TimelineBus.
    analytics -- Pure aggregation of kind counts, gaps, and per-origin stats.
    report    -- Markdown rendering of recent records.
"""

from stateline.timeline.analytics import compute_analytics
from stateline.timeline.bus import (
    AnalyticsUpdated,
    BulkImported,
    PauseChanged,
    PinChanged,
    RecordAdded,
    RecordMutated,
    RecordsCleared,
    TimelineBus,
    TimelineEvent,
)
from stateline.timeline.store import SESSION_VERSION, TimelineStore

__all__ = [
    "SESSION_VERSION",
    "AnalyticsUpdated",
    "BulkImported",
    "PauseChanged",
    "PinChanged",
    "RecordAdded",
    "RecordMutated",
    "RecordsCleared",
    "TimelineBus",
    "TimelineEvent",
    "TimelineStore",
    "compute_analytics",
]
