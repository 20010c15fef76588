"""Unit tests for WebSocketSink with a fake client connection."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest
from websockets.exceptions import ConnectionClosedError

from stateline.models.events import EventKind
from stateline.sinks.base import SinkConnectError
from stateline.sinks.websocket import WebSocketSink
from stateline.timeline.store import TimelineStore

from ..conftest import make_record

_URI = "ws://127.0.0.1:8787/timeline"


class _FakeConnection:
    def __init__(self, fail_sends: bool = False) -> None:
        self.sent: list[str] = []
        self.fail_sends = fail_sends
        self.close_calls = 0
        self._closed = asyncio.Event()

    async def send(self, text: str) -> None:
        if self.fail_sends:
            raise ConnectionClosedError(None, None)
        self.sent.append(text)

    async def close(self) -> None:
        self.close_calls += 1
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def drop(self) -> None:
        self._closed.set()


async def _connect(connection: _FakeConnection, statuses: list[str]) -> WebSocketSink:
    with patch("stateline.sinks.websocket.connect", AsyncMock(return_value=connection)):
        return await WebSocketSink.connect(_URI, on_status=statuses.append, timeout=1.0)


# ---------------------------------------------------------------------------
# Connect
# ---------------------------------------------------------------------------


class TestConnect:
    async def test_connect_reports_status(self) -> None:
        statuses: list[str] = []
        sink = await _connect(_FakeConnection(), statuses)
        assert statuses == [f"connecting to {_URI}", f"connected to {_URI}"]
        assert sink.sink_name == "websocket"
        assert sink.uri == _URI
        await sink.dispose()

    async def test_refused_connection_raises(self) -> None:
        statuses: list[str] = []
        with patch("stateline.sinks.websocket.connect", AsyncMock(side_effect=OSError("refused"))):
            with pytest.raises(SinkConnectError, match="refused"):
                await WebSocketSink.connect(_URI, on_status=statuses.append)
        assert statuses[-1] == "connection failed: refused"

    async def test_timeout_raises(self) -> None:
        async def _never(*_args: object, **_kwargs: object) -> None:
            await asyncio.sleep(10)

        with patch("stateline.sinks.websocket.connect", _never):
            with pytest.raises(SinkConnectError, match="timed out") as excinfo:
                await WebSocketSink.connect(_URI, timeout=0.01)
        assert isinstance(excinfo.value.__cause__, TimeoutError)
        assert isinstance(excinfo.value, ConnectionError)


# ---------------------------------------------------------------------------
# Steady state
# ---------------------------------------------------------------------------


class TestWrites:
    async def test_mutations_are_written_in_order(self) -> None:
        connection = _FakeConnection()
        sink = await _connect(connection, [])
        store = TimelineStore(max_records=5)
        store.add_sink(sink)

        record = store.capture("o", EventKind.UPDATE, "x")
        assert record is not None
        store.merge_metrics(record.id, {"ms": 3})
        store.clear()
        store.import_session([make_record(4).to_dict()])
        await sink.flush()

        messages = [json.loads(text) for text in connection.sent]
        assert [message["type"] for message in messages] == ["record", "record:update", "clear", "bulkImport"]
        assert messages[1]["payload"]["metrics"] == {"ms": 3}
        assert messages[2] == {"type": "clear"}
        await sink.dispose()

    async def test_write_failure_is_reported_not_raised(self) -> None:
        statuses: list[str] = []
        sink = await _connect(_FakeConnection(fail_sends=True), statuses)
        sink.on_record_added(make_record(1))
        await sink.flush()
        assert any(status.startswith("stream error:") for status in statuses)
        assert not sink.closed
        await sink.dispose()

    async def test_remote_close_is_reported(self) -> None:
        statuses: list[str] = []
        connection = _FakeConnection()
        sink = await _connect(connection, statuses)
        connection.drop()
        for _ in range(3):
            await asyncio.sleep(0)
        assert statuses[-1] == f"disconnected from {_URI}"
        await sink.dispose()


# ---------------------------------------------------------------------------
# Dispose
# ---------------------------------------------------------------------------


class TestDispose:
    async def test_dispose_closes_and_silences_hooks(self) -> None:
        statuses: list[str] = []
        connection = _FakeConnection()
        sink = await _connect(connection, statuses)
        await sink.dispose()
        await sink.dispose()

        sink.on_record_added(make_record(1))
        sink.on_records_cleared()
        assert sink.closed
        assert sink.pending == 0
        assert connection.close_calls == 1
        assert statuses[-1] == "disconnecting"
        assert connection.sent == []
