"""REST routes over the companion's mirror store.

Handlers read their dependencies from ``request.app.state`` (see
``create_app``).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from stateline.companion.schemas import (
    ErrorResponse,
    HealthResponse,
    ImportResponse,
    RecordListResponse,
)
from stateline.models.events import EventKind
from stateline.observability.logging import get_logger
from stateline.timeline.store import TimelineStore

_log = get_logger("companion.routes")

router = APIRouter()


def _store(request: Request) -> TimelineStore:
    store: TimelineStore = request.app.state.store
    return store


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, detail=detail).model_dump())


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    from stateline import __version__

    store = _store(request)
    return HealthResponse(
        status="ok",
        version=__version__,
        records=len(store),
        pinned=len(store.pinned),
        paused=store.is_paused,
        clients=request.app.state.clients,
        frames=request.app.state.frames,
    )


@router.get("/records", response_model=RecordListResponse)
async def list_records(
    request: Request,
    origin: str | None = None,
    kind: str | None = None,
    limit: int = Query(100, ge=1, le=1000),
) -> Any:
    """Most recent records, oldest first, optionally filtered by origin and kind."""
    records = _store(request).records
    if kind is not None:
        if kind not in {member.value for member in EventKind}:
            return _error(400, "INVALID_KIND", f"Unknown kind {kind!r}")
        records = tuple(record for record in records if record.kind == kind)
    if origin is not None:
        records = tuple(record for record in records if record.origin == origin)
    selected = records[-limit:]
    return RecordListResponse(total=len(records), records=[record.to_dict() for record in selected])


@router.get("/analytics")
async def analytics(request: Request) -> dict[str, Any]:
    return _store(request).analytics.to_dict()


@router.get("/session")
async def export_session(request: Request, label: str | None = None) -> dict[str, Any]:
    return _store(request).export_session(label=label)


@router.post("/session", response_model=ImportResponse)
async def import_session(request: Request) -> Any:
    """Replace the mirror contents with a session export or a bare records array."""
    try:
        payload = await request.json()
    except ValueError as exc:
        return _error(400, "INVALID_SESSION", f"Body is not valid JSON: {exc}")
    store = _store(request)
    if not isinstance(payload, dict | list) or not store.import_session(payload):
        return _error(400, "INVALID_SESSION", "Expected a session object or a records array")
    _log.info("session_uploaded", records=len(store))
    return ImportResponse(imported=len(store), pinned=len(store.pinned))
