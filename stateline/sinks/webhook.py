"""Generic JSON webhook sink.

POSTs each envelope message as a JSON body to a configured HTTP endpoint.
Requests run as background tasks on the running event loop so the mutating
caller never waits on the network.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from stateline.models.records import Record
from stateline.observability.logging import get_logger
from stateline.observability.metrics import sink_messages_total
from stateline.sinks.base import (
    StatusCallback,
    TimelineSink,
    bulk_import_message,
    clear_message,
    record_message,
    record_update_message,
)

_log = get_logger("sinks.webhook")


class WebhookSink(TimelineSink):
    """Delivers envelope messages by POSTing them to a configurable URL.

    Args:
        url:       Full endpoint URL.
        headers:   Optional extra headers (e.g. Authorization).
        timeout:   HTTP request timeout in seconds. Defaults to 10.
        on_status: Receives a message for every failed delivery.
        client:    Pre-built AsyncClient; one is created lazily otherwise.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        on_status: StatusCallback | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not url:
            raise ValueError("Webhook url must not be empty")
        self._url = url
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._timeout = timeout
        self._on_status = on_status
        self._client = client
        self._owns_client = client is None
        self._pending: set[asyncio.Task[bool]] = set()
        self._closed = False

    @property
    def sink_name(self) -> str:
        return "webhook"

    @property
    def url(self) -> str:
        return self._url

    def on_record_added(self, record: Record) -> None:
        self._dispatch(record_message(record))

    def on_record_mutated(self, record: Record) -> None:
        self._dispatch(record_update_message(record))

    def on_records_cleared(self) -> None:
        self._dispatch(clear_message())

    def on_bulk_import(self, records: tuple[Record, ...]) -> None:
        self._dispatch(bulk_import_message(records))

    async def send(self, message: dict[str, Any]) -> bool:
        """POST *message* as JSON to the configured endpoint.

        Returns True on a 2xx response, False otherwise.
        """
        client = self._get_client()
        try:
            response = await client.post(self._url, json=message, headers=self._headers)
            if response.is_success:
                return True
            _log.warning(
                "webhook_non_2xx_response",
                status_code=response.status_code,
                body=response.text[:200],
                message_type=message.get("type"),
            )
            self._status(f"webhook responded {response.status_code}")
            return False
        except httpx.TimeoutException:
            _log.warning("webhook_request_timeout", url=self._url, message_type=message.get("type"))
            self._status("webhook request timed out")
            return False
        except httpx.HTTPError as exc:
            _log.warning("webhook_http_error", error=str(exc), message_type=message.get("type"))
            self._status(f"webhook error: {exc}")
            return False

    async def flush(self) -> None:
        """Wait for every in-flight delivery to finish."""
        if self._pending:
            await asyncio.gather(*tuple(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        self._closed = True
        await self.flush()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _dispatch(self, message: dict[str, Any]) -> None:
        if self._closed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            sink_messages_total.labels(sink="webhook", success="false").inc()
            _log.warning("webhook_no_event_loop", message_type=message.get("type"))
            return
        task = loop.create_task(self._deliver(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, message: dict[str, Any]) -> bool:
        success = await self.send(message)
        label = "true" if success else "false"
        sink_messages_total.labels(sink="webhook", success=label).inc()
        return success

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def _status(self, message: str) -> None:
        if self._on_status is not None:
            self._on_status(message)
