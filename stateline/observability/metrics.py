"""Prometheus metrics for the timeline and its sinks."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

records_captured_total = Counter(
    "stateline_records_captured_total",
    "Records appended to a timeline store.",
    ["kind"],
)

records_evicted_total = Counter(
    "stateline_records_evicted_total",
    "Records evicted from the head of a full timeline store.",
)

records_dropped_total = Counter(
    "stateline_records_dropped_total",
    "Capture attempts that did not produce a record.",
    ["reason"],
)

sink_messages_total = Counter(
    "stateline_sink_messages_total",
    "Envelope messages handed to an outbound transport.",
    ["sink", "success"],
)

timeline_records = Gauge(
    "stateline_timeline_records",
    "Records currently held by the most recently mutated timeline store.",
)
