"""REST endpoints for sensor telemetry.

Paths (under /api):
    POST /data, POST /update   append one reading from the uplink
    GET  /data                 last few full readings
    GET  /status               latest derived status bundle
    GET  /history              recent readings for the trend chart
    GET  /sensors              raw sensor triples for the sensor chart
    GET  /analytics            window statistics for the analytics view

Payloads are validated at the boundary.  Malformed readings get a 400 with
an ``error`` message; store failures get a 500.  No alert decisions here.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from leakwatch.core.history import HistoryAggregator
from leakwatch.core.status_deriver import build_status_report
from leakwatch.domain.errors import InvalidInput, StorageFailure
from leakwatch.store.reading_store import ReadingStore

logger = logging.getLogger(__name__)

DATABASE_ERROR = {"error": "Database error"}


def create_telemetry_router(
    store: ReadingStore,
    history: HistoryAggregator,
    recent_limit: int = 10,
    history_limit: int = 20,
    sensors_limit: int = 50,
    analytics_limit: int = 20,
) -> APIRouter:
    """Factory that wires the telemetry endpoints to a concrete store."""

    router = APIRouter(prefix="/api", tags=["telemetry"])

    @router.post("/data")
    @router.post("/update")
    async def ingest_reading(request: Request) -> JSONResponse:
        try:
            raw = await request.json()
        except ValueError:
            return JSONResponse(status_code=400, content={"error": "Request body must be JSON"})
        if not isinstance(raw, dict):
            return JSONResponse(status_code=400, content={"error": "Request body must be a JSON object"})

        try:
            row_id = await store.append(raw)
        except InvalidInput as exc:
            logger.info("Rejected reading: %s", exc)
            return JSONResponse(status_code=400, content={"error": f"Invalid sensor values: {exc}"})
        except StorageFailure:
            return JSONResponse(status_code=500, content=DATABASE_ERROR)

        return JSONResponse(content={"success": True, "id": row_id})

    @router.get("/data")
    async def recent_readings() -> Any:
        try:
            window = await history.window(recent_limit)
        except StorageFailure:
            return JSONResponse(status_code=500, content=DATABASE_ERROR)
        return [obs.to_payload() for obs in window]

    @router.get("/status")
    async def latest_status() -> Any:
        try:
            latest = await store.latest()
        except StorageFailure:
            return JSONResponse(status_code=500, content=DATABASE_ERROR)
        return build_status_report(latest).model_dump(mode="json")

    @router.get("/history")
    async def reading_history() -> Any:
        try:
            window = await history.window(history_limit)
        except StorageFailure:
            return JSONResponse(status_code=500, content=DATABASE_ERROR)
        return [obs.to_payload() for obs in window]

    @router.get("/sensors")
    async def sensor_trace() -> Any:
        try:
            return await history.sensor_trace(sensors_limit)
        except StorageFailure:
            return JSONResponse(status_code=500, content=DATABASE_ERROR)

    @router.get("/analytics")
    async def window_analytics() -> Any:
        try:
            summary = await history.summarize(analytics_limit)
        except StorageFailure:
            return JSONResponse(status_code=500, content=DATABASE_ERROR)
        return summary.to_dict()

    return router
