"""FastAPI application factory for the stateline companion.

Usage::

    from stateline.companion.app import create_app

    app = create_app(store=TimelineStore(), config=config)

The companion accepts timeline envelope messages on a WebSocket endpoint
(``config.companion.path``), mirrors them into *store*, and serves the
mirror over a small REST API.  It performs no authentication and is meant
for trusted local networks only.

The factory is used by both the production bootstrap (``stateline.app``)
and tests.
"""

from __future__ import annotations

import socket
from itertools import count

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from stateline.companion.mirror import apply_frame
from stateline.companion.routes import router
from stateline.companion.schemas import ErrorResponse
from stateline.models.config import StatelineConfig
from stateline.observability.logging import get_logger
from stateline.timeline.store import TimelineStore

_log = get_logger("companion.app")

_API_PREFIX = "/api/v1"


def create_app(store: TimelineStore, config: StatelineConfig | None = None) -> FastAPI:
    """Create and configure the companion FastAPI application.

    Args:
        store:  Mirror TimelineStore that inbound messages are applied to.
        config: StatelineConfig; only the companion section is used.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from stateline import __version__

    config = config or StatelineConfig()
    socket_path = config.companion.path

    app = FastAPI(
        title="stateline companion",
        summary="State timeline mirror",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
    )

    app.state.store = store
    app.state.config = config
    app.state.clients = 0
    app.state.frames = 0

    app.include_router(router, prefix=_API_PREFIX)
    app.mount("/metrics", make_asgi_app())

    client_ids = count(1)

    @app.websocket(socket_path)
    async def timeline_socket(websocket: WebSocket) -> None:
        """Mirror one JSON text frame per envelope message into the store."""
        client_id = next(client_ids)
        app.state.clients += 1
        applied = 0
        try:
            await websocket.accept()
            _log.info("companion_client_connected", client=client_id)
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    break
                text = frame.get("text")
                if text is None:
                    _log.warning("companion_non_text_frame", client=client_id)
                elif apply_frame(store, text):
                    applied += 1
                # Every received frame counts, applied or ignored.
                app.state.frames += 1
        except WebSocketDisconnect:
            pass
        finally:
            app.state.clients -= 1
            _log.info("companion_client_disconnected", client=client_id, applied=applied)

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = exc.errors()
        first_msg = str(errors[0].get("msg", "")) if errors else ""
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_QUERY", detail=first_msg).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app


def discover_urls(host: str, port: int, path: str) -> list[str]:
    """WebSocket URLs clients can use to reach a companion bound to *host*.

    A wildcard bind also lists every non-loopback IPv4 address of this host
    so devices on the same network can connect.
    """
    urls = [f"ws://{host}:{port}{path}"]
    if host not in ("0.0.0.0", ""):
        return urls
    urls = [f"ws://127.0.0.1:{port}{path}"]
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, family=socket.AF_INET)
    except OSError as exc:
        _log.debug("address_discovery_failed", error=str(exc))
        return urls
    seen: set[str] = set()
    for info in infos:
        address = str(info[4][0])
        if address.startswith("127.") or address in seen:
            continue
        seen.add(address)
        urls.append(f"ws://{address}:{port}{path}")
    return urls
