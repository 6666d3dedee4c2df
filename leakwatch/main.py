"""leakwatch: pipeline burst and leak monitoring service.

This is the application entry point.  create_app() wires the ReadingStore,
HistoryAggregator, AlertController, the polling task and the REST routers
together.  Every collaborator is constructed here and passed down
explicitly; tests hand in their own.

Run locally:
    uvicorn leakwatch.main:app --port 5000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from leakwatch.api.alerts import create_alert_router
from leakwatch.api.telemetry import create_telemetry_router
from leakwatch.config import Settings, settings as default_settings
from leakwatch.core.alert_controller import AlertController
from leakwatch.core.history import HistoryAggregator
from leakwatch.core.scheduler import PeriodicTask
from leakwatch.store.reading_store import ReadingStore

# ── Logging ──────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=default_settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    store: ReadingStore | None = None,
    controller: AlertController | None = None,
) -> FastAPI:
    """Build the FastAPI app for one monitored asset."""
    settings = settings or default_settings

    # ── State ────────────────────────────────────────────────────────────

    store = store or ReadingStore(settings.database_path)
    controller = controller or AlertController(store, asset_id=settings.asset_id)
    history = HistoryAggregator(store)
    poller = PeriodicTask(
        controller.tick,
        interval=settings.poll_interval_seconds,
        name=f"alert-poller[{controller.asset_id}]",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Raises SchemaMismatchUnrecoverable before any traffic is served.
        store.open()
        if settings.alert_polling_enabled:
            await poller.start()
        try:
            yield
        finally:
            await poller.stop()
            store.close()

    # ── App ──────────────────────────────────────────────────────────────

    app = FastAPI(
        title=settings.app_name,
        description="Pipeline telemetry, status derivation and burst alert lifecycle",
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.store = store
    app.state.controller = controller
    app.state.poller = poller

    # ── Routes ───────────────────────────────────────────────────────────

    app.include_router(create_telemetry_router(
        store,
        history,
        recent_limit=settings.recent_limit,
        history_limit=settings.history_limit,
        sensors_limit=settings.sensors_limit,
        analytics_limit=settings.analytics_limit,
    ))
    app.include_router(create_alert_router(controller))

    # ── Health ───────────────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict:
        alert = await controller.state()
        return {
            "status": "ok",
            "asset_id": controller.asset_id,
            "observations": await store.count(),
            "alert_phase": alert.phase.value,
            "polling": poller.running,
            "poll_runs": poller.runs,
        }

    return app


app = create_app()


def run() -> None:
    """Serve the default app with uvicorn."""
    uvicorn.run(
        "leakwatch.main:app",
        host=default_settings.host,
        port=default_settings.port,
        log_level=default_settings.log_level.lower(),
    )
