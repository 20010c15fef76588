"""Application bootstrap for the stateline companion.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → mirror store → relay sinks → REST/WS server

Shutdown is fully graceful: components are stopped in reverse startup order.
Each component's stop error is caught and logged independently so that a
single failure does not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from stateline.config import load_config
from stateline.models.config import StatelineConfig
from stateline.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog
    import uvicorn

    from stateline.sinks.base import TimelineSink
    from stateline.timeline.store import TimelineStore

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class StatelineApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe on an app that was never started or already stopped.

    Args:
        config: Pre-built configuration; loaded from the environment when None.
    """

    def __init__(self, config: StatelineConfig | None = None) -> None:
        self.config: StatelineConfig | None = config

        self._store: TimelineStore | None = None
        self._sinks: list[TimelineSink] = []
        self._rest_server: uvicorn.Server | None = None

        # Background tasks that must be cancelled on shutdown
        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def serving(self) -> bool:
        """True while started and no background task (the server) has exited."""
        return self._running and all(not task.done() for task in self._background_tasks)

    @property
    def store(self) -> TimelineStore | None:
        return self._store

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        The caller (main()) turns this into a non-zero exit.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            try:
                self.config = load_config()
            except ValueError as exc:
                raise _ComponentError("config", exc) from exc

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level, self.config.log.format)
        self._log = get_logger("app")
        self._log.info("stateline starting", version=_stateline_version())

        # --- 3. Mirror store --------------------------------------------
        await self._start_store()

        # --- 4. Relay sinks ---------------------------------------------
        await self._start_sinks()

        # --- 5. REST / WebSocket server ---------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("stateline started", port=self.config.companion.port)

    # ------------------------------------------------------------------
    # Component startup helpers
    # ------------------------------------------------------------------

    async def _start_store(self) -> None:
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting mirror store")
        try:
            from stateline.timeline.store import TimelineStore

            self._store = TimelineStore.from_config(self.config.timeline)
            self._log.info("mirror store started", max_records=self._store.max_records)
        except ValueError as exc:
            raise _ComponentError("store", exc) from exc

    async def _start_sinks(self) -> None:
        """Connect the configured relay sinks; failures here are non-fatal."""
        assert self._log is not None
        assert self.config is not None
        assert self._store is not None
        self._log.debug("starting relay sinks")
        from stateline.sinks import build_sinks

        self._sinks = await build_sinks(self.config.sinks)
        for sink in self._sinks:
            self._store.add_sink(sink)
        self._log.info("relay sinks started", count=len(self._sinks))

    async def _start_rest(self) -> None:
        """Start the uvicorn server hosting the companion app."""
        assert self._log is not None
        assert self.config is not None
        assert self._store is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from stateline.companion import create_app, discover_urls

            fastapi_app = create_app(store=self._store, config=self.config)
            companion = self.config.companion
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host=companion.host,
                port=companion.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            for url in discover_urls(companion.host, companion.port, companion.path):
                self._log.info("companion listening", url=url)
        except (ImportError, OSError, ValueError) as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            # Never started
            return

        log = self._log or get_logger("app")
        log.info("stateline shutting down")

        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True

        for task in reversed(self._background_tasks):
            if not task.done():
                try:
                    await asyncio.wait_for(asyncio.shield(task), timeout=_SHUTDOWN_GRACE_SECONDS)
                except TimeoutError:
                    log.warning("component stop timed out", component=task.get_name())
                    task.cancel()
                except Exception as exc:  # noqa: BLE001
                    log.error("component stop raised an error", component=task.get_name(), error=str(exc))
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        for sink in reversed(self._sinks):
            await self._stop_sink(sink)
            if self._store is not None:
                self._store.remove_sink(sink)
        self._sinks.clear()

        log.info("stateline stopped")

    async def _stop_sink(self, sink: TimelineSink) -> None:
        """Close a sink's transport if it has one, catching all errors."""
        log = self._log or get_logger("app")
        close_fn = getattr(sink, "dispose", None) or getattr(sink, "aclose", None)
        if close_fn is None:
            return
        try:
            result = close_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=sink.sink_name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:  # noqa: BLE001
            log.error("component stop raised an error", component=sink.sink_name, error=str(exc))


def _stateline_version() -> str:
    from stateline import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: StatelineConfig | None = None) -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = StatelineApp(config)
    loop = asyncio.get_running_loop()

    shutdown_task: asyncio.Task[None] | None = None

    def _request_shutdown() -> None:
        nonlocal shutdown_task
        if shutdown_task is not None:
            return
        shutdown_task = asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        # Block until shutdown is triggered (the server runs concurrently)
        while app.serving:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if shutdown_task is not None:
            await shutdown_task
        elif app.running:
            await app.stop()
