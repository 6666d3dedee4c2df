from leakwatch.domain.alert import AlertSnapshot, AlertState
from leakwatch.domain.enums import AlertPhase, AlertTransition, BurstType, PipelineStatus
from leakwatch.domain.observation import Observation, ObservationInput
from leakwatch.domain.status import StatusReport

__all__ = [
    "AlertPhase",
    "AlertSnapshot",
    "AlertState",
    "AlertTransition",
    "BurstType",
    "Observation",
    "ObservationInput",
    "PipelineStatus",
    "StatusReport",
]
