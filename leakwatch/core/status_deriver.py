"""Status derivation: a pure function of the latest observation.

Design principles:
    1. Pure function: accepts an Observation (or None), returns a status.
    2. No side effects, no state mutation, no I/O.
    3. Thresholds are fixed constants, not configuration.

Status table:
    No Data: no observation exists
    Burst: leak_confirmed AND burst_confirmed
    Leak: leak_confirmed AND NOT burst_confirmed
    Normal: everything else (burst_confirmed alone stays Normal)
"""

from __future__ import annotations

from leakwatch.domain.enums import PipelineStatus
from leakwatch.domain.observation import Observation
from leakwatch.domain.status import StatusReport

SIGNAL_QUALITY_THRESHOLD = 70


def derive_status(observation: Observation | None) -> PipelineStatus:
    if observation is None:
        return PipelineStatus.NO_DATA
    if observation.leak_confirmed:
        if observation.burst_confirmed:
            return PipelineStatus.BURST
        return PipelineStatus.LEAK
    return PipelineStatus.NORMAL


def signal_quality_good(observation: Observation) -> bool:
    return observation.correlation_score > SIGNAL_QUALITY_THRESHOLD


def environmental_clean(observation: Observation) -> bool:
    return not observation.environmental_noise


def build_status_report(observation: Observation | None) -> StatusReport:
    """Build the dashboard status bundle for *observation*."""
    if observation is None:
        return StatusReport(status=PipelineStatus.NO_DATA)

    return StatusReport(
        status=derive_status(observation),
        sensor_values=list(observation.sensor_values),
        leak_confirmed=observation.leak_confirmed,
        burst_confirmed=observation.burst_confirmed,
        leak_location=observation.leak_location,
        confidence=observation.confidence,
        correlation_score=observation.correlation_score,
        stability_score=observation.stability_score,
        environmental_noise=observation.environmental_noise,
        active_sensors=observation.active_sensors,
        burst_type=observation.burst_type,
        burst_intensity=observation.burst_intensity,
        burst_dismissed=observation.burst_dismissed,
        timestamp=observation.timestamp,
        signal_quality_good=signal_quality_good(observation),
        environmental_clean=environmental_clean(observation),
    )
