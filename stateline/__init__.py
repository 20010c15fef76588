"""Stateline: runtime state-change timeline with structural diffs.

Captures state-change events from application components, normalizes their
payloads into JSON-safe snapshots, diffs consecutive snapshots, and keeps a
bounded timeline that mirrors every mutation to registered sinks.
"""

__version__ = "0.1.0"
