"""Tests for the uplink payload and stored observation models."""

from datetime import datetime, timezone

import pytest

from leakwatch.domain.enums import BurstType
from leakwatch.domain.observation import Observation, ObservationInput


def _valid_reading(**overrides) -> dict:
    """Return a valid uplink payload dict, with optional overrides."""
    base = {
        "sensor_values": [150, 180, 120],
        "leak_confirmed": False,
        "burst_confirmed": False,
        "leak_location": "No leak detected",
        "confidence": 85.5,
        "correlation_score": 92,
        "stability_score": 88,
        "environmental_noise": False,
        "active_sensors": 0,
        "burst_type": "NORMAL FLOW",
        "burst_intensity": 0,
    }
    base.update(overrides)
    return base


def _burst_reading(burst_type: str = "PIPELINE BURST", **overrides) -> dict:
    """A confirmed burst reading of the given type."""
    fields = {
        "leak_confirmed": True,
        "burst_confirmed": True,
        "burst_type": burst_type,
        "leak_location": "Between sensor 1 and 2",
        "burst_intensity": 40.0,
        "active_sensors": 2,
    }
    fields.update(overrides)
    return _valid_reading(**fields)


class TestObservationInputValidation:
    def test_valid_reading_parses(self) -> None:
        reading = ObservationInput.model_validate(_valid_reading())
        assert reading.sensor_values == (150, 180, 120)
        assert reading.burst_type == BurstType.NORMAL_FLOW

    def test_only_sensor_values_required(self) -> None:
        reading = ObservationInput.model_validate({"sensor_values": [1, 2, 3]})
        assert reading.leak_confirmed is False
        assert reading.burst_confirmed is False
        assert reading.leak_location is None
        assert reading.confidence == 0.0
        assert reading.active_sensors == 0
        assert reading.burst_type == BurstType.NORMAL_FLOW
        assert reading.burst_intensity == 0.0

    def test_non_numeric_sensor_value_rejected(self) -> None:
        with pytest.raises(Exception):
            ObservationInput.model_validate(_valid_reading(sensor_values=[150, "x", 120]))

    def test_numeric_string_sensor_value_rejected(self) -> None:
        with pytest.raises(Exception):
            ObservationInput.model_validate(_valid_reading(sensor_values=[150, "180", 120]))

    def test_boolean_sensor_value_rejected(self) -> None:
        with pytest.raises(Exception):
            ObservationInput.model_validate(_valid_reading(sensor_values=[150, True, 120]))

    def test_fewer_than_three_sensor_values_rejected(self) -> None:
        with pytest.raises(Exception):
            ObservationInput.model_validate(_valid_reading(sensor_values=[150, 180]))

    def test_more_than_three_sensor_values_rejected(self) -> None:
        with pytest.raises(Exception):
            ObservationInput.model_validate(_valid_reading(sensor_values=[1, 2, 3, 4]))

    def test_missing_sensor_values_rejected(self) -> None:
        payload = _valid_reading()
        del payload["sensor_values"]
        with pytest.raises(Exception):
            ObservationInput.model_validate(payload)

    def test_float_sensor_values_accepted(self) -> None:
        reading = ObservationInput.model_validate(_valid_reading(sensor_values=[1.5, 2, 3.25]))
        assert reading.sensor_values == (1.5, 2, 3.25)

    @pytest.mark.parametrize("label", ["PIPELINE LEAK", "NORMAL", "MINOR DRIP"])
    def test_unrecognised_burst_type_recorded_as_normal_flow(self, label: str) -> None:
        reading = ObservationInput.model_validate(
            _valid_reading(leak_confirmed=True, burst_confirmed=True, burst_type=label)
        )
        assert reading.burst_type == BurstType.NORMAL_FLOW
        assert reading.leak_confirmed is True
        assert not reading.has_actual_burst

    def test_negative_burst_intensity_rejected(self) -> None:
        with pytest.raises(Exception):
            ObservationInput.model_validate(_valid_reading(burst_intensity=-1))

    def test_active_sensors_out_of_range_rejected(self) -> None:
        with pytest.raises(Exception):
            ObservationInput.model_validate(_valid_reading(active_sensors=4))

    def test_scores_are_not_clamped(self) -> None:
        reading = ObservationInput.model_validate(_valid_reading(confidence=130, correlation_score=-5))
        assert reading.confidence == 130
        assert reading.correlation_score == -5


class TestLegacyPayload:
    def test_per_sensor_keys_fold_into_sensor_values(self) -> None:
        reading = ObservationInput.model_validate(
            {"sensor1": 150, "sensor2": 180, "sensor3": 120}
        )
        assert reading.sensor_values == (150, 180, 120)

    def test_missing_legacy_sensor_rejected(self) -> None:
        with pytest.raises(Exception):
            ObservationInput.model_validate({"sensor1": 150, "sensor2": 180})

    def test_integer_flags_accepted(self) -> None:
        reading = ObservationInput.model_validate(
            _valid_reading(leak_confirmed=1, burst_confirmed=0, environmental_noise=1)
        )
        assert reading.leak_confirmed is True
        assert reading.burst_confirmed is False
        assert reading.environmental_noise is True

    def test_null_optionals_take_defaults(self) -> None:
        reading = ObservationInput.model_validate(
            _valid_reading(confidence=None, burst_type=None, burst_intensity=None)
        )
        assert reading.confidence == 0.0
        assert reading.burst_type == BurstType.NORMAL_FLOW
        assert reading.burst_intensity == 0.0

    def test_blank_location_is_unknown(self) -> None:
        reading = ObservationInput.model_validate(_valid_reading(leak_location="   "))
        assert reading.leak_location is None

    def test_device_timestamp_ignored(self) -> None:
        reading = ObservationInput.model_validate(_valid_reading(timestamp=123456))
        assert not hasattr(reading, "timestamp")


class TestActualBurst:
    def test_confirmed_pipeline_burst_is_actual(self) -> None:
        assert ObservationInput.model_validate(_burst_reading()).has_actual_burst

    def test_confirmed_normal_flow_is_not_actual(self) -> None:
        reading = ObservationInput.model_validate(_burst_reading("NORMAL FLOW"))
        assert not reading.has_actual_burst

    def test_unconfirmed_catastrophic_is_not_actual(self) -> None:
        reading = ObservationInput.model_validate(
            _valid_reading(burst_type="CATASTROPHIC BURST", burst_confirmed=False)
        )
        assert not reading.has_actual_burst


class TestBurstSeverity:
    def test_severity_order_is_total(self) -> None:
        assert BurstType.NORMAL_FLOW.severity < BurstType.PIPELINE_BURST.severity
        assert BurstType.PIPELINE_BURST.severity < BurstType.CATASTROPHIC_BURST.severity

    def test_outranks(self) -> None:
        assert BurstType.CATASTROPHIC_BURST.outranks(BurstType.PIPELINE_BURST)
        assert not BurstType.PIPELINE_BURST.outranks(BurstType.CATASTROPHIC_BURST)
        assert not BurstType.PIPELINE_BURST.outranks(BurstType.PIPELINE_BURST)


class TestObservationSerialization:
    def test_payload_timestamp_is_iso_utc(self) -> None:
        obs = Observation.model_validate({
            **_valid_reading(),
            "id": 1,
            "timestamp": datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
        })
        payload = obs.to_payload()
        assert payload["timestamp"] == "2026-01-01T12:00:00.000Z"
        assert payload["sensor_values"] == [150, 180, 120]
        assert payload["burst_type"] == "NORMAL FLOW"
        assert payload["burst_dismissed"] is False

    def test_naive_timestamp_treated_as_utc(self) -> None:
        obs = Observation.model_validate({
            **_valid_reading(),
            "id": 1,
            "timestamp": datetime(2026, 1, 1, 12, 0, 0),
        })
        assert obs.timestamp.tzinfo is not None
        assert obs.sensor_payload()["timestamp"] == "2026-01-01T12:00:00.000Z"
