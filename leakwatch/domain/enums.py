"""Controlled enumerations for the leakwatch domain.

Every categorical field in the domain MUST reference an enum defined here.
Free-form strings are not acceptable for classification fields.
"""

from __future__ import annotations

from enum import Enum


class BurstType(str, Enum):
    """Burst classification emitted by the upstream detector.

    Members are declared in ascending severity; ``severity`` exposes the
    rank used for escalation comparisons.
    """

    NORMAL_FLOW = "NORMAL FLOW"
    PIPELINE_BURST = "PIPELINE BURST"
    CATASTROPHIC_BURST = "CATASTROPHIC BURST"

    @classmethod
    def from_label(cls, raw: object) -> BurstType | None:
        """Member whose value is *raw*, or None for an unrecognised label."""
        try:
            return cls(raw)
        except ValueError:
            return None

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def outranks(self, other: BurstType) -> bool:
        return self.severity > other.severity


_SEVERITY = {member: rank for rank, member in enumerate(BurstType)}


class PipelineStatus(str, Enum):
    """Categorical operating status derived from the latest observation."""

    NO_DATA = "No Data"
    NORMAL = "Normal"
    LEAK = "Leak"
    BURST = "Burst"


class AlertPhase(str, Enum):
    """Phases of the operator-visible burst alert."""

    IDLE = "Idle"
    ACTIVE = "Active"


class AlertTransition(str, Enum):
    """Outcome of a single controller tick."""

    TRIGGERED = "triggered"
    ESCALATED = "escalated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
