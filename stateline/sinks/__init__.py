"""Broadcast layer for stateline.

Mirrors timeline mutations to external or in-process consumers.

Exports:
    TimelineSink     -- Base class; override any of the four mutation hooks.
    StreamSink       -- Envelope messages on an in-process Channel.
    WebSocketSink    -- One outbound WebSocket connection per sink.
    WebhookSink      -- JSON POST per envelope message.
    TimelineEventBus -- Re-publishes mutations and analytics as BroadcastEvents.
    build_sinks      -- Factory used by the application bootstrap.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stateline.observability.logging import get_logger
from stateline.sinks.base import (
    MessageType,
    SinkConnectError,
    StatusCallback,
    TimelineSink,
    bulk_import_message,
    clear_message,
    encode_message,
    record_message,
    record_update_message,
)
from stateline.sinks.event_bus import BroadcastEvent, BroadcastType, TimelineEventBus
from stateline.sinks.stream import Channel, StreamSink, Subscription
from stateline.sinks.webhook import WebhookSink
from stateline.sinks.websocket import WebSocketSink

if TYPE_CHECKING:
    from stateline.models.config import SinkConfig

_log = get_logger("sinks")

__all__ = [
    "BroadcastEvent",
    "BroadcastType",
    "Channel",
    "MessageType",
    "SinkConnectError",
    "StatusCallback",
    "StreamSink",
    "Subscription",
    "TimelineEventBus",
    "TimelineSink",
    "WebSocketSink",
    "WebhookSink",
    "build_sinks",
    "bulk_import_message",
    "clear_message",
    "encode_message",
    "record_message",
    "record_update_message",
]


def _log_status(sink: str) -> StatusCallback:
    def _callback(message: str) -> None:
        _log.info("sink_status", sink=sink, status=message)

    return _callback


async def build_sinks(config: SinkConfig) -> list[TimelineSink]:
    """Create the outbound sinks enabled in *config*.

    A sink is enabled when its URL is non-empty.  A websocket endpoint that
    refuses the connection is logged and skipped so startup can continue
    without it.
    """
    sinks: list[TimelineSink] = []

    # --- WebSocket ---
    if config.websocket_url:
        try:
            sinks.append(
                await WebSocketSink.connect(
                    config.websocket_url,
                    on_status=_log_status("websocket"),
                    timeout=config.connect_timeout,
                )
            )
            _log.info("websocket_sink_enabled", uri=config.websocket_url)
        except SinkConnectError as exc:
            _log.warning("websocket_sink_disabled", reason=str(exc))
    else:
        _log.debug("websocket_sink_skipped", reason="no url configured")

    # --- Webhook ---
    if config.webhook_url:
        sinks.append(WebhookSink(url=config.webhook_url, on_status=_log_status("webhook")))
        _log.info("webhook_sink_enabled")
    else:
        _log.debug("webhook_sink_skipped", reason="no url configured")

    if not sinks:
        _log.info("no_sinks_configured")

    return sinks
