"""Companion service for stateline.

Exposes:
    create_app    -- FastAPI application factory (WebSocket mirror + REST).
    apply_message -- Apply one envelope message to a mirror store.
    discover_urls -- WebSocket URLs for a bind address.
"""

from stateline.companion.app import create_app, discover_urls
from stateline.companion.mirror import apply_frame, apply_message

__all__ = ["apply_frame", "apply_message", "create_app", "discover_urls"]
