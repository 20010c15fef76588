"""Remote socket sink: mirrors timeline mutations over one WebSocket connection.

``WebSocketSink.connect`` is the only awaitable step; it raises
SinkConnectError when the connection cannot be opened within the timeout.
After that, hooks enqueue encoded messages without blocking and a single
writer task sends them in order.  Write failures and disconnects are reported
through the status callback and never raised; there is no automatic
reconnection.
"""

from __future__ import annotations

import asyncio
from typing import Any

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import WebSocketException

from stateline.models.records import Record
from stateline.observability.logging import get_logger
from stateline.observability.metrics import sink_messages_total
from stateline.sinks.base import (
    SinkConnectError,
    StatusCallback,
    TimelineSink,
    bulk_import_message,
    clear_message,
    encode_message,
    record_message,
    record_update_message,
)

_log = get_logger("sinks.websocket")

DEFAULT_CONNECT_TIMEOUT = 5.0


class WebSocketSink(TimelineSink):
    """Sink writing one JSON text frame per envelope message.

    Use :meth:`connect` rather than the constructor; the instance must be
    created on the event loop that will run its writer task.
    """

    def __init__(
        self,
        uri: str,
        connection: ClientConnection,
        on_status: StatusCallback | None = None,
    ) -> None:
        self._uri = uri
        self._connection = connection
        self._on_status = on_status
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._closed = False
        self._writer = asyncio.get_running_loop().create_task(self._write_loop())
        self._watcher = asyncio.get_running_loop().create_task(self._watch_close())
        self._status(f"connected to {uri}")

    @classmethod
    async def connect(
        cls,
        uri: str,
        *,
        on_status: StatusCallback | None = None,
        timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> WebSocketSink:
        """Open a connection to *uri* and return a sink bound to it.

        Raises:
            SinkConnectError: on timeout, refused connection, invalid URI or
                a failed handshake.
        """
        if on_status is not None:
            on_status(f"connecting to {uri}")
        try:
            connection = await asyncio.wait_for(connect(uri, open_timeout=None), timeout=timeout)
        except TimeoutError as exc:
            _log.warning("sink_connect_failed", uri=uri, error="timeout", timeout=timeout)
            if on_status is not None:
                on_status(f"connection failed: timed out after {timeout}s")
            raise SinkConnectError(f"Connection to {uri} timed out after {timeout}s") from exc
        except (OSError, WebSocketException) as exc:
            _log.warning("sink_connect_failed", uri=uri, error=str(exc))
            if on_status is not None:
                on_status(f"connection failed: {exc}")
            raise SinkConnectError(f"Connection to {uri} failed: {exc}") from exc
        _log.info("sink_connected", sink="websocket", uri=uri)
        return cls(uri, connection, on_status)

    @property
    def sink_name(self) -> str:
        return "websocket"

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Messages queued but not yet handed to the connection."""
        return self._outbox.qsize()

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def on_record_added(self, record: Record) -> None:
        self._send(record_message(record))

    def on_record_mutated(self, record: Record) -> None:
        self._send(record_update_message(record))

    def on_records_cleared(self) -> None:
        self._send(clear_message())

    def on_bulk_import(self, records: tuple[Record, ...]) -> None:
        self._send(bulk_import_message(records))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def flush(self) -> None:
        """Wait until every queued message has been written or failed."""
        if not self._closed:
            await self._outbox.join()

    async def dispose(self) -> None:
        """Close the connection; later hook calls are silently ignored."""
        if self._closed:
            return
        self._closed = True
        self._status("disconnecting")
        self._writer.cancel()
        self._watcher.cancel()
        try:
            await self._connection.close()
        except (OSError, WebSocketException) as exc:
            _log.debug("sink_close_error", uri=self._uri, error=str(exc))
        _log.info("sink_disposed", sink="websocket", uri=self._uri)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _send(self, message: dict[str, Any]) -> None:
        if self._closed:
            return
        self._outbox.put_nowait(encode_message(message))

    async def _write_loop(self) -> None:
        while True:
            text = await self._outbox.get()
            try:
                await self._connection.send(text)
            except (OSError, WebSocketException) as exc:
                sink_messages_total.labels(sink="websocket", success="false").inc()
                _log.warning("sink_write_failed", uri=self._uri, error=str(exc))
                self._status(f"stream error: {exc}")
            else:
                sink_messages_total.labels(sink="websocket", success="true").inc()
            finally:
                self._outbox.task_done()

    async def _watch_close(self) -> None:
        await self._connection.wait_closed()
        if self._closed:
            return
        _log.warning("sink_disconnected", uri=self._uri)
        self._status(f"disconnected from {self._uri}")

    def _status(self, message: str) -> None:
        if self._on_status is not None:
            self._on_status(message)
