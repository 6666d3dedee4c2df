"""Alert models: the frozen burst snapshot and the controller's public state.

An AlertSnapshot is captured when an alert triggers and replaced only when
the alert escalates.  Later, calmer readings never touch it, so what the
operator sees stays stable while the underlying stream is noisy.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from leakwatch.domain.enums import AlertPhase, BurstType
from leakwatch.domain.observation import Observation
from leakwatch.foundation.clock import to_iso_utc


class AlertSnapshot(BaseModel):
    """Burst fields frozen at trigger or escalation time."""

    burst_type: BurstType
    leak_location: Optional[str] = None
    confidence: float = 0.0
    burst_intensity: float = 0.0
    observation_id: int = Field(..., description="Observation the snapshot was taken from")
    frozen_at: datetime

    model_config = {"frozen": True}

    @classmethod
    def capture(cls, observation: Observation, frozen_at: datetime) -> AlertSnapshot:
        return cls(
            burst_type=observation.burst_type,
            leak_location=observation.leak_location,
            confidence=observation.confidence,
            burst_intensity=observation.burst_intensity,
            observation_id=observation.id,
            frozen_at=frozen_at,
        )

    @field_serializer("frozen_at", when_used="json")
    def serialize_frozen_at(self, v: datetime) -> str | None:
        return to_iso_utc(v)


class AlertState(BaseModel):
    """Point-in-time copy of one asset's alert lifecycle."""

    asset_id: str
    phase: AlertPhase = AlertPhase.IDLE
    snapshot: Optional[AlertSnapshot] = None
    prev_burst_flag: bool = False
    triggered_at: Optional[datetime] = None
    last_transition_at: Optional[datetime] = None
    escalation_count: int = 0

    model_config = {"frozen": True}

    @field_serializer("triggered_at", "last_transition_at", when_used="json")
    def serialize_times(self, v: datetime | None) -> str | None:
        return to_iso_utc(v)
