"""StatusReport: the latest-status bundle served to dashboards.

A flat, JSON-ready view of the most recent observation plus the derived
status and display flags.  When the store is empty every field carries its
documented "No Data" value instead of raising.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from leakwatch.domain.enums import BurstType, PipelineStatus
from leakwatch.foundation.clock import to_iso_utc


class StatusReport(BaseModel):
    """Immutable status bundle for one point in time."""

    status: PipelineStatus
    sensor_values: Optional[list[int | float]] = None
    leak_confirmed: bool = False
    burst_confirmed: bool = False
    leak_location: Optional[str] = None
    confidence: float = 0.0
    correlation_score: float = 0.0
    stability_score: float = 0.0
    environmental_noise: bool = False
    active_sensors: int = 0
    burst_type: BurstType = BurstType.NORMAL_FLOW
    burst_intensity: float = 0.0
    burst_dismissed: bool = False
    timestamp: Optional[datetime] = None
    signal_quality_good: bool = Field(False, description="correlation_score above the quality threshold")
    environmental_clean: bool = Field(True, description="No environmental noise flagged")

    model_config = {"frozen": True}

    @field_serializer("timestamp", when_used="json")
    def serialize_timestamp(self, v: datetime | None) -> str | None:
        return to_iso_utc(v)
