"""REST endpoints for the burst alert lifecycle.

Paths (under /api):
    GET  /alert     current alert state (phase + frozen snapshot)
    POST /dismiss   operator dismissal of the active alert

Dismissal is idempotent: dismissing while idle still answers 200.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from leakwatch.core.alert_controller import AlertController
from leakwatch.domain.errors import StorageFailure

logger = logging.getLogger(__name__)


def create_alert_router(controller: AlertController) -> APIRouter:
    """Factory that wires the alert endpoints to one asset's controller."""

    router = APIRouter(prefix="/api", tags=["alerts"])

    @router.get("/alert")
    async def alert_state() -> dict[str, Any]:
        state = await controller.state()
        return state.model_dump(mode="json")

    @router.post("/dismiss")
    async def dismiss_alert() -> Any:
        try:
            was_active = await controller.dismiss()
        except StorageFailure:
            return JSONResponse(status_code=500, content={"error": "Database error"})
        if was_active:
            logger.info("Burst alert dismissed by operator")
        return {"success": True, "dismissed": True}

    return router
