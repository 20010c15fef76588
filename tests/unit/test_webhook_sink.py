"""Unit tests for WebhookSink using httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from stateline.models.events import EventKind
from stateline.sinks.base import record_message
from stateline.sinks.webhook import WebhookSink
from stateline.timeline.store import TimelineStore

from ..conftest import make_record

_URL = "https://hooks.example/timeline"


class _Recorder:
    def __init__(self, status_code: int = 200, error: Exception | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text="nope" if self.status_code >= 400 else "ok")

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


class TestSend:
    async def test_posts_envelope_as_json(self) -> None:
        recorder = _Recorder()
        sink = WebhookSink(_URL, headers={"Authorization": "Bearer t"}, client=recorder.client())
        message = record_message(make_record(1))

        assert await sink.send(message) is True
        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == _URL
        assert request.headers["Authorization"] == "Bearer t"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == message

    async def test_non_2xx_is_reported(self) -> None:
        statuses: list[str] = []
        recorder = _Recorder(status_code=500)
        sink = WebhookSink(_URL, on_status=statuses.append, client=recorder.client())
        assert await sink.send(record_message(make_record(1))) is False
        assert statuses == ["webhook responded 500"]

    async def test_timeout_is_reported(self) -> None:
        statuses: list[str] = []
        recorder = _Recorder(error=httpx.ReadTimeout("slow"))
        sink = WebhookSink(_URL, on_status=statuses.append, client=recorder.client())
        assert await sink.send(record_message(make_record(1))) is False
        assert statuses == ["webhook request timed out"]

    async def test_transport_error_is_reported(self) -> None:
        statuses: list[str] = []
        recorder = _Recorder(error=httpx.ConnectError("refused"))
        sink = WebhookSink(_URL, on_status=statuses.append, client=recorder.client())
        assert await sink.send(record_message(make_record(1))) is False
        assert statuses == ["webhook error: refused"]

    def test_empty_url_rejected(self) -> None:
        with pytest.raises(ValueError):
            WebhookSink("")


class TestHooks:
    async def test_store_mutations_are_delivered_in_background(self) -> None:
        recorder = _Recorder()
        sink = WebhookSink(_URL, client=recorder.client())
        store = TimelineStore(max_records=5)
        store.add_sink(sink)

        store.capture("o", EventKind.ADD, "created")
        store.clear()
        await sink.flush()

        types = sorted(json.loads(request.content)["type"] for request in recorder.requests)
        assert types == ["clear", "record"]

    def test_without_running_loop_message_is_dropped(self) -> None:
        recorder = _Recorder()
        sink = WebhookSink(_URL, client=recorder.client())
        sink.on_record_added(make_record(1))
        assert recorder.requests == []

    async def test_aclose_stops_delivery_and_keeps_borrowed_client(self) -> None:
        recorder = _Recorder()
        client = recorder.client()
        sink = WebhookSink(_URL, client=client)
        await sink.aclose()
        sink.on_records_cleared()
        await sink.flush()
        assert recorder.requests == []
        assert not client.is_closed
        await client.aclose()
