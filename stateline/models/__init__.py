"""Core data structures for stateline."""

from stateline.models.analytics import AnalyticsSnapshot, OriginStats
from stateline.models.config import StatelineConfig
from stateline.models.events import AnnotationSeverity, AttachmentType, DiffKind, EventKind
from stateline.models.records import Annotation, Attachment, Record
from stateline.models.snapshot import DiffEntry, Snapshot

__all__ = [
    "AnalyticsSnapshot",
    "Annotation",
    "AnnotationSeverity",
    "Attachment",
    "AttachmentType",
    "DiffEntry",
    "DiffKind",
    "EventKind",
    "OriginStats",
    "Record",
    "Snapshot",
    "StatelineConfig",
]
