"""Tests for the anomaly recording and alerting sink."""

from datetime import datetime, timezone

import pytest

from sensor_anomaly.config import Settings
from sensor_anomaly.engine import SignalAnomalyEngine
from sensor_anomaly.observability import AnomalyMetrics
from sensor_anomaly.profiles import load_profiles
from sensor_anomaly.schemas import AnomalyVerdict
from sensor_anomaly.sink import AnomalySink, deserialize_verdict, serialize_verdict
from sensor_anomaly.store import InMemoryAnomalyStore

DETECTED_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def metrics() -> AnomalyMetrics:
    return AnomalyMetrics()


@pytest.fixture()
def sink(metrics: AnomalyMetrics) -> AnomalySink:
    return AnomalySink(
        settings=Settings(notification_base_url=None),
        store=InMemoryAnomalyStore(),
        metrics=metrics,
    )


def _verdict(parameter: str, values: list[float]) -> AnomalyVerdict:
    return SignalAnomalyEngine(load_profiles()).evaluate(parameter, values)


def _publish(sink: AnomalySink, verdict: AnomalyVerdict, parameter: str = "oil_pressure"):
    return sink.publish(
        yacht_id="yacht_01",
        parameter=parameter,
        values=[400, 390, 380, 140],
        verdict=verdict,
        detected_at=DETECTED_AT,
        trace_id="trace-sink-001",
        device_id="dev_engine_port",
    )


def test_critical_verdict_is_recorded_alerted_and_scheduled(sink: AnomalySink, metrics: AnomalyMetrics) -> None:
    verdict = _verdict("oil_pressure", [400, 390, 380, 140])

    result = _publish(sink, verdict)

    assert result.recorded is True
    assert result.alerted is True
    assert result.detection_id.startswith("det_")

    stored = sink.store.get_detection(result.detection_id)
    assert deserialize_verdict(stored.verdict) == verdict
    assert stored.detected_at == DETECTED_AT

    alerts = sink.store.list_alerts()
    assert len(alerts) == 1
    assert alerts[0].message == "Anomaly detected in oil_pressure: low_oil_pressure (confidence: 90.0%)"
    assert alerts[0].command["command_type"] == "notification.dispatch"

    maintenance = sink.store.list_maintenance(yacht_id="yacht_01")
    assert len(maintenance) == 1
    assert maintenance[0].urgency == "immediate"
    assert maintenance[0].anomaly_type == "low_oil_pressure"
    assert metrics.alerts_total == 1


def test_clean_verdict_is_not_recorded(sink: AnomalySink) -> None:
    result = _publish(sink, _verdict("engine_speed", [1800, 1820, 1795, 1810]), parameter="engine_speed")

    assert result.recorded is False
    assert result.alerted is False
    assert sink.store.list_detections() == []
    assert sink.store.list_maintenance() == []


def test_medium_verdict_is_recorded_without_alert(sink: AnomalySink) -> None:
    verdict = AnomalyVerdict(
        anomaly_detected=True,
        anomaly_type="high_variance",
        confidence_score=0.65,
        severity="medium",
        predicted_failure_risk=0.5,
        recommended_actions=["Excessive fuel_level fluctuation detected"],
    )

    result = _publish(sink, verdict, parameter="fuel_level")

    assert result.recorded is True
    assert result.alerted is False
    assert sink.store.list_alerts() == []


def test_confidence_at_threshold_is_not_recorded(sink: AnomalySink) -> None:
    verdict = AnomalyVerdict(
        anomaly_detected=True,
        anomaly_type="high_variance",
        confidence_score=0.6,
        severity="high",
        predicted_failure_risk=0.7,
        recommended_actions=["Excessive fuel_level fluctuation detected"],
    )

    result = _publish(sink, verdict, parameter="fuel_level")

    assert result.recorded is False
    assert result.alerted is False


def test_alert_failure_is_contained(sink: AnomalySink, metrics: AnomalyMetrics) -> None:
    sink.set_alert_dispatcher_for_tests(lambda command, timeout: (False, "notification service unavailable"))
    verdict = _verdict("oil_pressure", [400, 390, 380, 140])

    result = _publish(sink, verdict)

    assert result.recorded is True
    assert result.alerted is False
    assert metrics.sink_failures_total == 1
    assert metrics.alerts_total == 0
    alerts = sink.store.list_alerts()
    assert alerts[0].delivered is False
    assert alerts[0].error == "notification service unavailable"


def test_record_failure_is_contained(sink: AnomalySink, metrics: AnomalyMetrics, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_put(record):
        raise RuntimeError("store offline")

    monkeypatch.setattr(sink.store, "put_detection", broken_put)

    result = _publish(sink, _verdict("oil_pressure", [400, 390, 380, 140]))

    assert result.recorded is False
    assert result.alerted is True
    assert metrics.sink_failures_total == 1


def test_maintenance_prediction_is_upserted_per_device(sink: AnomalySink) -> None:
    _publish(sink, _verdict("oil_pressure", [400, 390, 380, 140]))
    _publish(sink, _verdict("oil_pressure", [300, 300, 300, 100]))

    assert len(sink.store.list_maintenance(yacht_id="yacht_01")) == 1


def test_reset_clears_records(sink: AnomalySink) -> None:
    _publish(sink, _verdict("oil_pressure", [400, 390, 380, 140]))

    sink.reset_state_for_tests()

    assert sink.store.list_detections() == []
    assert sink.store.list_alerts() == []


@pytest.mark.parametrize(
    ("parameter", "values"),
    [
        ("oil_pressure", [400, 390, 380, 140]),
        ("alternator_voltage", [13.8, 13.7, 13.6, 12.8]),
        ("fuel_level", [90, 20, 90, 20]),
    ],
)
def test_record_format_preserves_verdict(parameter: str, values: list[float]) -> None:
    verdict = _verdict(parameter, values)

    restored = deserialize_verdict(serialize_verdict(verdict))

    assert restored.anomaly_type == verdict.anomaly_type
    assert restored.severity == verdict.severity
    assert restored.confidence_score == verdict.confidence_score
    assert restored.predicted_failure_risk == verdict.predicted_failure_risk
    assert restored == verdict
