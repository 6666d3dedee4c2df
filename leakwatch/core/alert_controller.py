"""AlertController: the burst alert lifecycle for one monitored asset.

State machine (evaluated once per tick):

    Idle   + rising edge of has_actual_burst      → freeze snapshot, Active
    Idle   + anything else                        → Idle
    Active + burst of strictly higher severity    → re-freeze snapshot (escalate)
    Active + burst of same or lower severity      → unchanged
    Active + no burst                             → unchanged (stays visible)
    Active + dismiss()                            → clear, persist dismissal, Idle

    has_actual_burst = burst_confirmed AND burst_type != NORMAL FLOW

The previous tick's flag starts False, so a burst already in progress on the
very first tick counts as a rising edge.  The flag is refreshed after every
successful tick regardless of phase; dismiss() leaves it alone, so a burst
that is still in progress does not immediately reopen the alert.

Design principles:
    1. One explicitly constructed instance per asset, handed to whoever needs
       it.  No module-level state.
    2. A single asyncio.Lock guards phase, snapshot and flag; tick() and
       dismiss() never interleave.
    3. tick() never raises on a failed store read: the tick is skipped and
       nothing changes until the next one.
    4. State lives in memory only.  A restart always begins Idle.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from leakwatch.domain.alert import AlertSnapshot, AlertState
from leakwatch.domain.enums import AlertPhase, AlertTransition
from leakwatch.domain.errors import StorageFailure
from leakwatch.domain.observation import Observation
from leakwatch.foundation.clock import utc_now
from leakwatch.store.reading_store import ReadingStore

logger = logging.getLogger(__name__)


class AlertController:
    """Serialized alert state machine driven by periodic ticks.

    Args:
        store: Source of the latest observation and sink for dismissals.
        asset_id: Label of the monitored asset, used in logs and state.
        clock: Source of transition timestamps; injectable for tests.
    """

    def __init__(
        self,
        store: ReadingStore,
        asset_id: str = "pipeline",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._asset_id = asset_id
        self._clock = clock
        self._lock = asyncio.Lock()
        self._phase = AlertPhase.IDLE
        self._snapshot: AlertSnapshot | None = None
        self._prev_burst = False
        self._triggered_at: datetime | None = None
        self._last_transition_at: datetime | None = None
        self._escalations = 0

    @property
    def asset_id(self) -> str:
        return self._asset_id

    # ── Public API ───────────────────────────────────────────────────────

    async def tick(self) -> AlertTransition:
        """Evaluate the latest observation once and update the alert."""
        async with self._lock:
            try:
                latest = await self._store.latest()
            except StorageFailure as exc:
                logger.warning("[%s] Alert tick skipped, store read failed: %s", self._asset_id, exc)
                return AlertTransition.SKIPPED

            transition = self._evaluate(latest)
            self._prev_burst = latest is not None and latest.has_actual_burst
            return transition

    async def dismiss(self) -> bool:
        """Clear an active alert and persist the dismissal.

        Idempotent: returns False without touching the store when Idle.
        """
        async with self._lock:
            if self._phase == AlertPhase.IDLE:
                logger.debug("[%s] Dismiss while idle, nothing to do", self._asset_id)
                return False

            await self._store.mark_latest_dismissed()
            dismissed_type = self._snapshot.burst_type.value if self._snapshot else None
            self._phase = AlertPhase.IDLE
            self._snapshot = None
            self._triggered_at = None
            self._escalations = 0
            self._last_transition_at = self._clock()
            logger.info("[%s] Alert dismissed (%s)", self._asset_id, dismissed_type)
            return True

    async def state(self) -> AlertState:
        """Consistent copy of the current alert state."""
        async with self._lock:
            return AlertState(
                asset_id=self._asset_id,
                phase=self._phase,
                snapshot=self._snapshot,
                prev_burst_flag=self._prev_burst,
                triggered_at=self._triggered_at,
                last_transition_at=self._last_transition_at,
                escalation_count=self._escalations,
            )

    # ── Internals ────────────────────────────────────────────────────────

    def _evaluate(self, latest: Observation | None) -> AlertTransition:
        """Must be called while holding self._lock."""
        if latest is None or not latest.has_actual_burst:
            return AlertTransition.UNCHANGED

        if self._phase == AlertPhase.IDLE:
            if self._prev_burst:
                # Still the burst that was dismissed; wait for a fresh edge.
                return AlertTransition.UNCHANGED
            now = self._clock()
            self._snapshot = AlertSnapshot.capture(latest, frozen_at=now)
            self._phase = AlertPhase.ACTIVE
            self._triggered_at = now
            self._last_transition_at = now
            logger.info(
                "[%s] Alert triggered: %s at %s (observation %d)",
                self._asset_id,
                latest.burst_type.value,
                latest.leak_location or "unknown location",
                latest.id,
            )
            return AlertTransition.TRIGGERED

        assert self._snapshot is not None
        if latest.burst_type.outranks(self._snapshot.burst_type):
            previous = self._snapshot.burst_type
            now = self._clock()
            self._snapshot = AlertSnapshot.capture(latest, frozen_at=now)
            self._last_transition_at = now
            self._escalations += 1
            logger.info(
                "[%s] Alert escalated: %s -> %s (observation %d)",
                self._asset_id,
                previous.value,
                latest.burst_type.value,
                latest.id,
            )
            return AlertTransition.ESCALATED

        return AlertTransition.UNCHANGED
