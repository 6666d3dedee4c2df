"""History aggregation: bounded, chronological read paths for trend display.

All windows are snapshot reads taken from ReadingStore.recent(), which
returns rows oldest-first under the store lock, so an append that lands
mid-request is either fully in the window or not at all.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from leakwatch.domain.observation import Observation
from leakwatch.foundation.clock import to_iso_utc
from leakwatch.store.reading_store import ReadingStore

logger = logging.getLogger(__name__)

RECENT_ALERT_COUNT = 5


class WindowSummary:
    """Aggregate statistics over a window of observations.

    This is an observability object, not a control mechanism.
    """

    __slots__ = (
        "total",
        "average",
        "peak",
        "alert_rate",
        "distribution",
        "hourly_averages",
        "recent_alerts",
    )

    def __init__(
        self,
        total: int = 0,
        average: float = 0.0,
        peak: float = 0.0,
        alert_rate: float = 0.0,
        distribution: dict[str, int] | None = None,
        hourly_averages: list[dict[str, Any]] | None = None,
        recent_alerts: list[dict[str, Any]] | None = None,
    ) -> None:
        self.total = total
        self.average = average
        self.peak = peak
        self.alert_rate = alert_rate
        self.distribution = distribution or {"normal": 0, "leak": 0, "burst": 0}
        self.hourly_averages = hourly_averages or []
        self.recent_alerts = recent_alerts or []

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "average": round(self.average, 1),
            "peak": self.peak,
            "alert_rate": round(self.alert_rate, 1),
            "distribution": dict(self.distribution),
            "hourly_averages": list(self.hourly_averages),
            "recent_alerts": list(self.recent_alerts),
        }


class HistoryAggregator:
    """Windowed read paths over a ReadingStore."""

    def __init__(self, store: ReadingStore) -> None:
        self._store = store

    async def window(self, limit: int) -> list[Observation]:
        """The *limit* most recent observations in ascending id order."""
        return await self._store.recent(limit)

    async def sensor_trace(self, limit: int) -> list[dict[str, Any]]:
        """Raw sensor triples with timestamps, oldest first."""
        return [obs.sensor_payload() for obs in await self._store.recent(limit)]

    async def summarize(self, limit: int) -> WindowSummary:
        return summarize_window(await self._store.recent(limit))


# ── Pure helpers ─────────────────────────────────────────────────────────────

def _valid_values(observation: Observation) -> list[float]:
    # Negative readings mark a disconnected sensor.
    return [v for v in observation.sensor_values if v >= 0]


def summarize_window(window: list[Observation]) -> WindowSummary:
    """Compute a WindowSummary over *window* (assumed chronological)."""
    if not window:
        return WindowSummary()

    values = [v for obs in window for v in _valid_values(obs)]
    alerts = [obs for obs in window if obs.leak_confirmed or obs.burst_confirmed]

    distribution = {
        "normal": sum(1 for o in window if not o.leak_confirmed and not o.burst_confirmed),
        "leak": sum(1 for o in window if o.leak_confirmed and not o.burst_confirmed),
        "burst": sum(1 for o in window if o.burst_confirmed),
    }

    by_hour: dict[int, list[float]] = defaultdict(list)
    for obs in window:
        by_hour[obs.timestamp.hour].extend(_valid_values(obs))
    hourly = [
        {
            "hour": hour,
            "average": round(sum(vals) / len(vals), 1) if vals else 0.0,
        }
        for hour, vals in sorted(by_hour.items())
    ]

    recent_alerts = [
        {
            "observation_id": obs.id,
            "type": "Major Burst" if obs.burst_confirmed else "Leak Detected",
            "level": "HIGH" if obs.burst_confirmed else "MEDIUM",
            "value": max(obs.sensor_values),
            "timestamp": to_iso_utc(obs.timestamp),
        }
        for obs in alerts[-RECENT_ALERT_COUNT:]
    ]

    return WindowSummary(
        total=len(window),
        average=sum(values) / len(values) if values else 0.0,
        peak=max(values) if values else 0.0,
        alert_rate=100.0 * len(alerts) / len(window),
        distribution=distribution,
        hourly_averages=hourly,
        recent_alerts=recent_alerts,
    )
