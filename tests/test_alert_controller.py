"""Tests for the alert lifecycle state machine.

Ticks are driven directly; no timer is involved.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from leakwatch.core.alert_controller import AlertController
from leakwatch.domain.enums import AlertPhase, AlertTransition, BurstType
from leakwatch.domain.errors import StorageFailure
from leakwatch.store.reading_store import ReadingStore

from tests.test_observation import _burst_reading, _valid_reading
from tests.test_store import _seed_raw_row

_FROZEN_NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class _FlakyStore(ReadingStore):
    """ReadingStore whose reads can be switched to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_reads = False

    async def latest(self):
        if self.fail_reads:
            raise StorageFailure("simulated outage")
        return await super().latest()


@pytest.fixture
def store():
    s = _FlakyStore()
    s.open()
    yield s
    s.close()


@pytest.fixture
def controller(store) -> AlertController:
    return AlertController(store, asset_id="test-pipe", clock=lambda: _FROZEN_NOW)


async def _feed(store: ReadingStore, controller: AlertController, payload: dict) -> AlertTransition:
    await store.append(payload)
    return await controller.tick()


class TestTriggering:
    @pytest.mark.asyncio
    async def test_starts_idle(self, controller: AlertController) -> None:
        state = await controller.state()
        assert state.phase == AlertPhase.IDLE
        assert state.snapshot is None
        assert state.prev_burst_flag is False

    @pytest.mark.asyncio
    async def test_empty_store_tick_is_unchanged(self, controller: AlertController) -> None:
        assert await controller.tick() == AlertTransition.UNCHANGED
        assert (await controller.state()).phase == AlertPhase.IDLE

    @pytest.mark.asyncio
    async def test_burst_on_first_tick_triggers(self, store, controller) -> None:
        assert await _feed(store, controller, _burst_reading()) == AlertTransition.TRIGGERED
        state = await controller.state()
        assert state.phase == AlertPhase.ACTIVE
        assert state.snapshot.burst_type == BurstType.PIPELINE_BURST
        assert state.snapshot.leak_location == "Between sensor 1 and 2"
        assert state.triggered_at == _FROZEN_NOW

    @pytest.mark.asyncio
    async def test_single_trigger_per_rising_edge(self, store, controller) -> None:
        transitions = [
            await _feed(store, controller, _valid_reading()),
            await _feed(store, controller, _valid_reading()),
            await _feed(store, controller, _burst_reading()),
            await _feed(store, controller, _burst_reading()),
            await _feed(store, controller, _burst_reading()),
        ]
        assert transitions.count(AlertTransition.TRIGGERED) == 1
        assert transitions[2] == AlertTransition.TRIGGERED

    @pytest.mark.asyncio
    async def test_confirmed_normal_flow_does_not_trigger(self, store, controller) -> None:
        assert await _feed(store, controller, _burst_reading("NORMAL FLOW")) == AlertTransition.UNCHANGED
        assert (await controller.state()).phase == AlertPhase.IDLE

    @pytest.mark.asyncio
    async def test_unconfirmed_burst_type_does_not_trigger(self, store, controller) -> None:
        payload = _valid_reading(burst_type="CATASTROPHIC BURST", burst_confirmed=False)
        assert await _feed(store, controller, payload) == AlertTransition.UNCHANGED


class TestEscalation:
    @pytest.mark.asyncio
    async def test_documented_trace(self, store, controller) -> None:
        sequence = [
            _valid_reading(burst_confirmed=False),
            _burst_reading("PIPELINE BURST"),
            _burst_reading("CATASTROPHIC BURST", burst_intensity=95.0),
            _burst_reading("PIPELINE BURST", burst_intensity=10.0),
        ]
        trace = []
        for payload in sequence:
            await _feed(store, controller, payload)
            state = await controller.state()
            trace.append((state.phase, state.snapshot.burst_type if state.snapshot else None))

        assert trace == [
            (AlertPhase.IDLE, None),
            (AlertPhase.ACTIVE, BurstType.PIPELINE_BURST),
            (AlertPhase.ACTIVE, BurstType.CATASTROPHIC_BURST),
            (AlertPhase.ACTIVE, BurstType.CATASTROPHIC_BURST),
        ]
        final = await controller.state()
        assert final.snapshot.burst_intensity == 95.0
        assert final.escalation_count == 1

    @pytest.mark.asyncio
    async def test_same_severity_update_is_suppressed(self, store, controller) -> None:
        await _feed(store, controller, _burst_reading(confidence=60.0))
        assert await _feed(store, controller, _burst_reading(confidence=99.0)) == AlertTransition.UNCHANGED
        assert (await controller.state()).snapshot.confidence == 60.0

    @pytest.mark.asyncio
    async def test_catastrophic_never_lowered(self, store, controller) -> None:
        await _feed(store, controller, _burst_reading("CATASTROPHIC BURST"))
        for payload in (_burst_reading("PIPELINE BURST"), _valid_reading(), _burst_reading("PIPELINE BURST")):
            await _feed(store, controller, payload)
            state = await controller.state()
            assert state.phase == AlertPhase.ACTIVE
            assert state.snapshot.burst_type == BurstType.CATASTROPHIC_BURST

    @pytest.mark.asyncio
    async def test_escalates_after_a_calm_tick(self, store, controller) -> None:
        await _feed(store, controller, _burst_reading("PIPELINE BURST"))
        await _feed(store, controller, _valid_reading())
        assert await _feed(store, controller, _burst_reading("CATASTROPHIC BURST")) == AlertTransition.ESCALATED

    @pytest.mark.asyncio
    async def test_alert_stays_visible_when_burst_clears(self, store, controller) -> None:
        await _feed(store, controller, _burst_reading())
        for _ in range(3):
            await _feed(store, controller, _valid_reading())
        state = await controller.state()
        assert state.phase == AlertPhase.ACTIVE
        assert state.snapshot.burst_type == BurstType.PIPELINE_BURST
        assert state.prev_burst_flag is False


class TestDismissal:
    @pytest.mark.asyncio
    async def test_dismiss_while_idle_is_noop(self, store, controller) -> None:
        await store.append(_valid_reading())
        assert await controller.dismiss() is False
        assert (await controller.state()).phase == AlertPhase.IDLE
        assert (await store.latest()).burst_dismissed is False

    @pytest.mark.asyncio
    async def test_dismiss_clears_and_persists(self, store, controller) -> None:
        await _feed(store, controller, _burst_reading())
        assert await controller.dismiss() is True

        state = await controller.state()
        assert state.phase == AlertPhase.IDLE
        assert state.snapshot is None
        assert (await store.latest()).burst_dismissed is True

    @pytest.mark.asyncio
    async def test_ongoing_burst_does_not_reopen_after_dismiss(self, store, controller) -> None:
        await _feed(store, controller, _burst_reading())
        await controller.dismiss()
        assert await _feed(store, controller, _burst_reading("CATASTROPHIC BURST")) == AlertTransition.UNCHANGED
        assert (await controller.state()).phase == AlertPhase.IDLE

    @pytest.mark.asyncio
    async def test_new_edge_after_dismiss_triggers_again(self, store, controller) -> None:
        await _feed(store, controller, _burst_reading())
        await controller.dismiss()
        await _feed(store, controller, _valid_reading())
        assert await _feed(store, controller, _burst_reading()) == AlertTransition.TRIGGERED

    @pytest.mark.asyncio
    async def test_dismiss_and_tick_are_serialized(self, store, controller) -> None:
        await _feed(store, controller, _burst_reading())
        await store.append(_burst_reading())
        results = await asyncio.gather(controller.dismiss(), controller.tick(), controller.dismiss())
        assert results[0] is True
        assert results[1] == AlertTransition.UNCHANGED
        assert results[2] is False
        assert (await controller.state()).phase == AlertPhase.IDLE


class TestFailedReads:
    @pytest.mark.asyncio
    async def test_failed_read_skips_tick(self, store, controller) -> None:
        await store.append(_burst_reading())
        store.fail_reads = True
        assert await controller.tick() == AlertTransition.SKIPPED
        state = await controller.state()
        assert state.phase == AlertPhase.IDLE
        assert state.prev_burst_flag is False

    @pytest.mark.asyncio
    async def test_recovers_on_next_tick(self, store, controller) -> None:
        await store.append(_burst_reading())
        store.fail_reads = True
        await controller.tick()
        store.fail_reads = False
        assert await controller.tick() == AlertTransition.TRIGGERED

    @pytest.mark.asyncio
    async def test_undecodable_row_skips_tick(self, tmp_path) -> None:
        path = tmp_path / "corrupt.db"
        _seed_raw_row(
            path,
            leak_confirmed=1,
            burst_confirmed=1,
            burst_type="PIPELINE BURST",
            timestamp="not a timestamp",
        )
        store = ReadingStore(path)
        store.open()
        controller = AlertController(store, clock=lambda: _FROZEN_NOW)
        try:
            assert await controller.tick() == AlertTransition.SKIPPED
            state = await controller.state()
            assert state.phase == AlertPhase.IDLE
            assert state.prev_burst_flag is False

            await store.append(_burst_reading())
            assert await controller.tick() == AlertTransition.TRIGGERED
        finally:
            store.close()


class TestRestart:
    @pytest.mark.asyncio
    async def test_new_controller_starts_idle_regardless_of_store(self, store, controller) -> None:
        await _feed(store, controller, _burst_reading())
        fresh = AlertController(store)
        assert (await fresh.state()).phase == AlertPhase.IDLE
        # A burst still in progress counts as a rising edge for the fresh controller.
        assert await fresh.tick() == AlertTransition.TRIGGERED
