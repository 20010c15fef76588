"""Integration tests for the companion: WebSocket mirror plus REST API.

Frames are produced by a real source store through a StreamSink, sent over
the companion socket with the FastAPI TestClient, and read back through the
REST endpoints.
"""

from __future__ import annotations

import json
import time

from fastapi.testclient import TestClient
from hypothesis import given, settings
from hypothesis import strategies as st

from stateline.companion.app import create_app, discover_urls
from stateline.sinks.base import encode_message
from stateline.sinks.stream import StreamSink
from stateline.timeline.store import TimelineStore

from .conftest import SOCKET_PATH, populate

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _stream_frames(store: TimelineStore) -> list[str]:
    sink = StreamSink()
    subscription = sink.subscribe()
    store.add_sink(sink)
    populate(store)
    return [encode_message(message) for message in subscription.drain()]


def _wait_for_frames(client: TestClient, expected: int, attempts: int = 200) -> dict[str, object]:
    """Poll /health until the companion has handled *expected* frames."""
    for _ in range(attempts):
        health = client.get("/api/v1/health").json()
        if health["frames"] >= expected:
            return health
        time.sleep(0.01)
    raise AssertionError(f"companion handled {health['frames']} of {expected} frames")


def _assert_error_envelope(response_json: dict[str, object], error: str) -> None:
    assert response_json["error"] == error
    assert isinstance(response_json["detail"], str)


# ---------------------------------------------------------------------------
# WebSocket mirror
# ---------------------------------------------------------------------------


class TestSocketMirror:
    def test_frames_are_mirrored(
        self, client: TestClient, source_store: TimelineStore, mirror_store: TimelineStore
    ) -> None:
        frames = _stream_frames(source_store)
        with client.websocket_connect(SOCKET_PATH) as websocket:
            for frame in frames:
                websocket.send_text(frame)
            health = _wait_for_frames(client, len(frames))
            assert health["clients"] == 1

        assert mirror_store.export_records() == source_store.export_records()

    def test_bad_frames_do_not_close_the_socket(
        self, client: TestClient, source_store: TimelineStore, mirror_store: TimelineStore
    ) -> None:
        frames = _stream_frames(source_store)
        with client.websocket_connect(SOCKET_PATH) as websocket:
            websocket.send_text("{not json")
            websocket.send_bytes(b"\x00\x01")
            websocket.send_text(json.dumps({"type": "telemetry"}))
            websocket.send_text('{"type": "record", "payload": {"id": 1e400}}')
            websocket.send_text(frames[0])
            _wait_for_frames(client, 5)

        assert [record.id for record in mirror_store.records] == [1]

    def test_clear_frame_empties_mirror(
        self, client: TestClient, source_store: TimelineStore, mirror_store: TimelineStore
    ) -> None:
        frames = _stream_frames(source_store)
        with client.websocket_connect(SOCKET_PATH) as websocket:
            for frame in frames:
                websocket.send_text(frame)
            websocket.send_text(json.dumps({"type": "clear"}))
            _wait_for_frames(client, len(frames) + 1)

        assert len(mirror_store) == 0


# ---------------------------------------------------------------------------
# REST API
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health_reports_store_state(self, client: TestClient, mirror_store: TimelineStore) -> None:
        populate(mirror_store)
        mirror_store.pause()
        body = client.get("/api/v1/health").json()
        assert body["status"] == "ok"
        assert body["records"] == 4
        assert body["pinned"] == 1
        assert body["paused"] is True
        assert body["clients"] == 0
        assert body["frames"] == 0


class TestRecords:
    def test_lists_all_records_oldest_first(self, client: TestClient, mirror_store: TimelineStore) -> None:
        populate(mirror_store)
        body = client.get("/api/v1/records").json()
        assert body["total"] == 4
        assert [record["id"] for record in body["records"]] == [1, 2, 3, 4]

    def test_filters_and_limit(self, client: TestClient, mirror_store: TimelineStore) -> None:
        populate(mirror_store)
        body = client.get("/api/v1/records", params={"origin": "CounterCubit", "limit": 2}).json()
        assert body["total"] == 3
        assert [record["id"] for record in body["records"]] == [2, 4]

        body = client.get("/api/v1/records", params={"kind": "transition"}).json()
        assert [record["origin"] for record in body["records"]] == ["AuthBloc"]

    def test_unknown_kind(self, client: TestClient) -> None:
        response = client.get("/api/v1/records", params={"kind": "teleport"})
        assert response.status_code == 400
        _assert_error_envelope(response.json(), "INVALID_KIND")

    def test_limit_out_of_range(self, client: TestClient) -> None:
        response = client.get("/api/v1/records", params={"limit": 0})
        assert response.status_code == 400
        _assert_error_envelope(response.json(), "INVALID_QUERY")


class TestAnalytics:
    def test_analytics_snapshot(self, client: TestClient, mirror_store: TimelineStore) -> None:
        populate(mirror_store)
        body = client.get("/api/v1/analytics").json()
        assert body["totalRecords"] == 4
        assert body["kindCounts"]["update"] == 1
        assert [origin["origin"] for origin in body["origins"]] == ["CounterCubit", "AuthBloc"]


class TestSession:
    def test_export_with_label(self, client: TestClient, mirror_store: TimelineStore) -> None:
        populate(mirror_store)
        body = client.get("/api/v1/session", params={"label": "bug-123"}).json()
        assert body["version"] == 1
        assert body["label"] == "bug-123"
        assert body["pinnedRecordIds"] == [2]
        assert len(body["records"]) == 4

    def test_upload_replaces_mirror(
        self, client: TestClient, source_store: TimelineStore, mirror_store: TimelineStore
    ) -> None:
        populate(source_store)
        response = client.post("/api/v1/session", content=source_store.export_session_json())
        assert response.status_code == 200
        assert response.json() == {"imported": 4, "pinned": 1}
        assert mirror_store.export_records() == source_store.export_records()

    def test_upload_rejects_invalid_json(self, client: TestClient) -> None:
        response = client.post("/api/v1/session", content=b"{nope", headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        _assert_error_envelope(response.json(), "INVALID_SESSION")

    def test_upload_rejects_non_session(self, client: TestClient, mirror_store: TimelineStore) -> None:
        populate(mirror_store)
        response = client.post("/api/v1/session", json={"records": "none"})
        assert response.status_code == 400
        _assert_error_envelope(response.json(), "INVALID_SESSION")
        assert len(mirror_store) == 4


class TestMetricsEndpoint:
    def test_prometheus_exposition(self, client: TestClient, mirror_store: TimelineStore) -> None:
        populate(mirror_store)
        response = client.get("/metrics/")
        assert response.status_code == 200
        assert "stateline_records_captured_total" in response.text


# ---------------------------------------------------------------------------
# Query fuzzing
# ---------------------------------------------------------------------------


@settings(max_examples=40, deadline=None)
@given(
    origin=st.one_of(st.none(), st.text(max_size=20)),
    kind=st.one_of(st.none(), st.text(max_size=12)),
    limit=st.one_of(st.none(), st.integers(min_value=-5, max_value=2000)),
)
def test_records_query_never_500s(origin: str | None, kind: str | None, limit: int | None) -> None:
    store = TimelineStore(max_records=10)
    populate(store)
    params = {key: value for key, value in {"origin": origin, "kind": kind, "limit": limit}.items() if value is not None}
    with TestClient(create_app(store), raise_server_exceptions=False) as client:
        response = client.get("/api/v1/records", params=params)
    assert response.status_code in (200, 400)
    body = response.json()
    if response.status_code == 400:
        assert set(body) == {"error", "detail"}
    else:
        assert body["total"] >= len(body["records"])


# ---------------------------------------------------------------------------
# Address discovery
# ---------------------------------------------------------------------------


class TestDiscoverUrls:
    def test_explicit_host(self) -> None:
        assert discover_urls("192.168.1.20", 8787, "/timeline") == ["ws://192.168.1.20:8787/timeline"]

    def test_wildcard_lists_loopback_first(self) -> None:
        urls = discover_urls("0.0.0.0", 8787, "/timeline")
        assert urls[0] == "ws://127.0.0.1:8787/timeline"
        assert all(url.endswith(":8787/timeline") for url in urls)
        assert len(urls) == len(set(urls))
