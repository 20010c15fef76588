"""Shared fixtures for stateline integration tests.

Wires a source TimelineStore, the in-process broadcast sinks and a companion
application around a mirror store so tests can exercise full capture →
broadcast → mirror pipelines without opening real sockets.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from stateline.companion.app import create_app
from stateline.models.config import CompanionConfig, StatelineConfig
from stateline.models.events import EventKind
from stateline.timeline.store import TimelineStore

from ..conftest import FakeClock

SOCKET_PATH = "/timeline"


def populate(store: TimelineStore) -> None:
    """Capture a small two-origin timeline with diffs, tags and a pin."""
    store.capture("CounterCubit", EventKind.ADD, "created", state={"count": 0})
    store.capture(
        "CounterCubit",
        EventKind.UPDATE,
        "count 1",
        state={"count": 1},
        previous_state={"count": 0},
        tags=["counter"],
    )
    store.capture("AuthBloc", EventKind.TRANSITION, "signed in", state={"user": "ada"}, details={"event": "Login"})
    store.capture("CounterCubit", EventKind.ERROR, "overflow", metrics={"ms": 4})
    store.pin(2)


@pytest.fixture()
def source_store() -> TimelineStore:
    return TimelineStore(max_records=50, clock=FakeClock())


@pytest.fixture()
def mirror_store() -> TimelineStore:
    return TimelineStore(max_records=50, clock=FakeClock())


@pytest.fixture()
def companion_app(mirror_store: TimelineStore) -> FastAPI:
    config = StatelineConfig(companion=CompanionConfig(path=SOCKET_PATH))
    return create_app(store=mirror_store, config=config)


@pytest.fixture()
def client(companion_app: FastAPI) -> Iterator[TestClient]:
    with TestClient(companion_app, raise_server_exceptions=False) as test_client:
        yield test_client
