"""Observation models: the contract between the sensor uplink and the store.

ObservationInput is what the uplink sends, validated at the boundary so the
store never has to re-check field constraints.  Observation is what the store
hands back: the same fields plus the store-assigned id, timestamp and the
mutable dismissal flag.  Both are immutable after creation.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from leakwatch.domain.enums import BurstType
from leakwatch.foundation.clock import ensure_utc, to_iso_utc

logger = logging.getLogger(__name__)

SENSOR_COUNT = 3

# Older uplink firmware posts one key per sensor instead of a list.
LEGACY_SENSOR_KEYS = ("sensor1", "sensor2", "sensor3")

SensorValue = int | float


# ── Uplink payload ───────────────────────────────────────────────────────────

class ObservationInput(BaseModel):
    """A single reading as posted by the sensor uplink.

    Only ``sensor_values`` is required.  Optional fields sent as ``null``
    fall back to their defaults; unknown keys are ignored.  A ``burst_type``
    label outside BurstType is recorded as NORMAL FLOW rather than rejected,
    so only bad sensor values cause a reading to be refused.
    """

    sensor_values: tuple[SensorValue, SensorValue, SensorValue] = Field(
        ..., description="Raw readings of the three physical sensors, in sensor order",
    )
    leak_confirmed: bool = False
    burst_confirmed: bool = False
    leak_location: Optional[str] = Field(
        default=None,
        max_length=256,
        description="Free-text location label; None means unknown",
    )
    confidence: float = 0.0
    correlation_score: float = 0.0
    stability_score: float = 0.0
    environmental_noise: bool = False
    active_sensors: int = Field(default=0, ge=0, le=SENSOR_COUNT)
    burst_type: BurstType = BurstType.NORMAL_FLOW
    burst_intensity: float = Field(default=0.0, ge=0.0)

    model_config = {"frozen": True, "extra": "ignore"}

    # ── Validators ───────────────────────────────────────────────────────

    @model_validator(mode="before")
    @classmethod
    def fold_legacy_payload(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        folded = {
            key: value
            for key, value in data.items()
            if key in LEGACY_SENSOR_KEYS or key == "sensor_values" or value not in (None, "")
        }
        if "sensor_values" not in folded and any(k in folded for k in LEGACY_SENSOR_KEYS):
            folded["sensor_values"] = [folded.pop(k, None) for k in LEGACY_SENSOR_KEYS]
        return folded

    @field_validator("sensor_values", mode="before")
    @classmethod
    def sensor_values_must_be_numeric(cls, v: Any) -> tuple:
        if not isinstance(v, (list, tuple)):
            raise ValueError(f"expected a list of {SENSOR_COUNT} sensor values")
        if len(v) != SENSOR_COUNT:
            raise ValueError(f"expected {SENSOR_COUNT} sensor values, got {len(v)}")
        for item in v:
            # bool is an int subclass but never a reading
            if isinstance(item, bool) or not isinstance(item, (int, float)):
                raise ValueError(f"sensor value {item!r} is not numeric")
            if isinstance(item, float) and not math.isfinite(item):
                raise ValueError(f"sensor value {item!r} is not finite")
        return tuple(v)

    @field_validator("burst_type", mode="before")
    @classmethod
    def unrecognised_burst_label_is_normal_flow(cls, v: Any) -> BurstType:
        # Detector firmware also emits non-burst labels such as "PIPELINE LEAK".
        label = BurstType.from_label(v)
        if label is None:
            logger.warning("Unrecognised burst_type %r, recording it as NORMAL FLOW", v)
            return BurstType.NORMAL_FLOW
        return label

    @field_validator("leak_location")
    @classmethod
    def blank_location_is_unknown(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def has_actual_burst(self) -> bool:
        return self.burst_confirmed and self.burst_type != BurstType.NORMAL_FLOW


# ── Stored observation ───────────────────────────────────────────────────────

class Observation(ObservationInput):
    """An appended reading.  ``id`` order is arrival order."""

    id: int = Field(..., ge=1, description="Store-assigned sequence number")
    timestamp: datetime = Field(..., description="Store-assigned creation time (UTC)")
    burst_dismissed: bool = False

    @field_validator("timestamp")
    @classmethod
    def timestamp_must_be_aware(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_serializer("timestamp", when_used="json")
    def serialize_timestamp(self, v: datetime) -> str | None:
        return to_iso_utc(v)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with the timestamp normalised to ISO-8601 UTC."""
        return self.model_dump(mode="json")

    def sensor_payload(self) -> dict[str, Any]:
        return {
            "sensor_values": list(self.sensor_values),
            "timestamp": to_iso_utc(self.timestamp),
        }
