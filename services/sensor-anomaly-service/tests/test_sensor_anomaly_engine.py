"""Tests for the signal anomaly engine and parameter profiles."""

import json

import pytest

from sensor_anomaly.engine import (
    InvalidEvaluationInput,
    SEVERITY_ORDER,
    SignalAnomalyEngine,
    severity_from_risk,
)
from sensor_anomaly.profiles import (
    DEFAULT_PROFILE_DATA,
    ProfileConfigurationError,
    load_profiles,
    parse_profile,
)
from sensor_anomaly.schemas import DeviceContext
from sensor_anomaly.stats import HistoricalBaseline, fit_trend


@pytest.fixture()
def engine() -> SignalAnomalyEngine:
    return SignalAnomalyEngine(load_profiles())


def test_oil_pressure_crash_is_critical_low_oil_pressure(engine: SignalAnomalyEngine) -> None:
    verdict = engine.evaluate("oil_pressure", [400, 390, 380, 140])

    assert verdict.anomaly_detected is True
    assert verdict.anomaly_type == "low_oil_pressure"
    assert verdict.confidence_score == pytest.approx(0.9)
    assert verdict.severity == "critical"
    assert verdict.predicted_failure_risk == pytest.approx(0.9)
    assert verdict.maintenance_suggestion is not None
    assert verdict.maintenance_suggestion.urgency == "immediate"
    assert verdict.maintenance_suggestion.estimated_cost == 200
    assert "CRITICAL: Low oil pressure - stop engine immediately" in verdict.recommended_actions
    assert "Dropping pressure trend - immediate inspection required" in verdict.recommended_actions


def test_healthy_engine_speed_keeps_monitoring(engine: SignalAnomalyEngine) -> None:
    verdict = engine.evaluate("engine_speed", [1800, 1820, 1795, 1810])

    assert verdict.anomaly_detected is False
    assert verdict.anomaly_type == "none"
    assert verdict.confidence_score == 0.0
    assert verdict.severity == "low"
    assert verdict.recommended_actions == ["Continue monitoring"]
    assert verdict.maintenance_suggestion is None


def test_unknown_parameter_returns_monitoring_verdict(engine: SignalAnomalyEngine) -> None:
    verdict = engine.evaluate("bilge_level", [1.0, 2.0])

    assert verdict.anomaly_detected is False
    assert verdict.anomaly_type == "unknown_parameter"
    assert verdict.confidence_score == 0.0
    assert verdict.severity == "low"
    assert verdict.recommended_actions == ["Monitor parameter trends"]


def test_coolant_overheating_pattern(engine: SignalAnomalyEngine) -> None:
    verdict = engine.evaluate("coolant_temperature", [90, 92, 95, 104])

    assert verdict.anomaly_type == "engine_overheating"
    assert verdict.confidence_score == pytest.approx(0.95)
    assert verdict.severity == "critical"
    assert "Rising temperature trend - check cooling system" in verdict.recommended_actions
    assert verdict.maintenance_suggestion.parts_needed == ["coolant", "thermostat", "water pump"]


def test_alternator_undercharging_pattern(engine: SignalAnomalyEngine) -> None:
    verdict = engine.evaluate("alternator_voltage", [13.8, 13.7, 13.6, 12.8])

    assert verdict.anomaly_type == "charging_system_failure"
    assert verdict.confidence_score == pytest.approx(0.8)
    assert verdict.severity == "high"
    assert verdict.maintenance_suggestion.urgency == "within_24h"
    assert "Falling alternator_voltage trend detected" in verdict.recommended_actions


def test_sudden_rpm_drop_uses_table_threshold(engine: SignalAnomalyEngine) -> None:
    verdict = engine.evaluate("engine_speed", [2000, 2000, 2000, 1200])

    assert verdict.anomaly_type == "sudden_rpm_drop"
    assert verdict.confidence_score == pytest.approx(0.8)
    assert verdict.severity == "high"
    assert verdict.maintenance_suggestion.estimated_cost == 500


def test_drop_below_table_threshold_is_not_a_sudden_drop(engine: SignalAnomalyEngine) -> None:
    verdict = engine.evaluate("engine_speed", [2000, 2000, 2000, 1500])

    assert verdict.anomaly_type != "sudden_rpm_drop"
    assert verdict.maintenance_suggestion is None


def test_out_of_range_flags_at_least_high(engine: SignalAnomalyEngine) -> None:
    verdict = engine.evaluate("fuel_level", [5.0])

    assert verdict.anomaly_detected is True
    assert verdict.anomaly_type == "out_of_range"
    assert verdict.confidence_score >= 0.8
    assert SEVERITY_ORDER.index(verdict.severity) >= SEVERITY_ORDER.index("high")
    assert "fuel_level is outside normal operating range" in verdict.recommended_actions


def test_variance_override_replaces_window_variance(engine: SignalAnomalyEngine) -> None:
    verdict = engine.evaluate("fuel_level", [50, 50, 50], variance=25.0)

    assert verdict.anomaly_type == "high_variance"
    assert verdict.confidence_score == pytest.approx(0.6)
    assert verdict.severity == "medium"


def test_single_sample_window_is_accepted(engine: SignalAnomalyEngine) -> None:
    verdict = engine.evaluate("oil_pressure", [140.0])

    assert verdict.anomaly_type == "low_oil_pressure"
    assert verdict.severity == "critical"


def test_historical_deviation_sets_confidence_from_z_score(engine: SignalAnomalyEngine) -> None:
    baseline = HistoricalBaseline(mean=80.0, std_dev=5.0, sample_count=48)
    verdict = engine.evaluate("fuel_level", [50, 50, 50], baseline=baseline)

    assert verdict.anomaly_detected is True
    assert verdict.anomaly_type == "historical_deviation"
    assert verdict.confidence_score == 1.0
    assert "Current values are 6.0 standard deviations from historical average" in verdict.recommended_actions


def test_historical_check_ignores_flat_baseline(engine: SignalAnomalyEngine) -> None:
    baseline = HistoricalBaseline(mean=80.0, std_dev=0.0, sample_count=48)
    verdict = engine.evaluate("fuel_level", [50, 50, 50], baseline=baseline)

    assert verdict.anomaly_detected is False


def test_mean_override_is_used_for_historical_comparison(engine: SignalAnomalyEngine) -> None:
    baseline = HistoricalBaseline(mean=50.0, std_dev=2.0, sample_count=48)
    verdict = engine.evaluate("fuel_level", [50, 50, 50], baseline=baseline, mean=58.0)

    assert verdict.anomaly_type == "historical_deviation"
    assert verdict.confidence_score == pytest.approx(0.8)


def test_rough_weather_lowers_confidence_and_adds_note(engine: SignalAnomalyEngine) -> None:
    verdict = engine.evaluate(
        "oil_pressure",
        [400, 390, 380, 140],
        context=DeviceContext(weather_conditions="Storm warning in effect"),
    )

    assert verdict.confidence_score == pytest.approx(0.72)
    assert verdict.recommended_actions[-1] == "Consider weather conditions in analysis"


def test_performance_mode_discounts_temperature_only(engine: SignalAnomalyEngine) -> None:
    window = [90, 92, 95, 104]
    temperature = engine.evaluate("coolant_temperature", window, context={"operating_mode": "high_performance"})
    pressure = engine.evaluate("oil_pressure", [400, 390, 380, 140], context={"operating_mode": "high_performance"})

    assert temperature.confidence_score == pytest.approx(0.855)
    assert "Higher values expected in performance mode" in temperature.recommended_actions
    assert pressure.confidence_score == pytest.approx(0.9)


def test_context_notes_are_not_added_to_clean_windows(engine: SignalAnomalyEngine) -> None:
    verdict = engine.evaluate(
        "engine_speed",
        [1800, 1820, 1795, 1810],
        context={"weather_conditions": "rough"},
    )

    assert verdict.recommended_actions == ["Continue monitoring"]


def test_evaluation_is_idempotent(engine: SignalAnomalyEngine) -> None:
    first = engine.evaluate("coolant_temperature", [90, 92, 95, 104])
    second = engine.evaluate("coolant_temperature", [90, 92, 95, 104])

    assert first == second


@pytest.mark.parametrize(
    ("parameter", "values"),
    [
        ("oil_pressure", [400, 390, 380, 140]),
        ("engine_speed", [2000, 2000, 2000, 1200]),
        ("fuel_level", [90, 20, 90, 20]),
        ("alternator_voltage", [14.0, 14.1, 14.0]),
        ("coolant_temperature", [70, 75, 80, 85, 90]),
    ],
)
def test_verdict_bounds_and_severity_floor(engine: SignalAnomalyEngine, parameter: str, values: list[float]) -> None:
    verdict = engine.evaluate(parameter, values)

    assert 0.0 <= verdict.confidence_score <= 1.0
    assert 0.0 <= verdict.predicted_failure_risk <= 1.0
    assert verdict.recommended_actions
    band = severity_from_risk(verdict.predicted_failure_risk)
    assert SEVERITY_ORDER.index(verdict.severity) >= SEVERITY_ORDER.index(band)
    if not verdict.anomaly_detected:
        assert verdict.recommended_actions == ["Continue monitoring"]


def test_moving_further_out_of_range_never_lowers_severity(engine: SignalAnomalyEngine) -> None:
    mild = engine.evaluate("oil_pressure", [300, 300, 300, 190])
    severe = engine.evaluate("oil_pressure", [300, 300, 300, 120])

    assert SEVERITY_ORDER.index(severe.severity) >= SEVERITY_ORDER.index(mild.severity)


def test_severity_bands() -> None:
    assert severity_from_risk(0.95) == "critical"
    assert severity_from_risk(0.9) == "critical"
    assert severity_from_risk(0.7) == "high"
    assert severity_from_risk(0.4) == "medium"
    assert severity_from_risk(0.39) == "low"


@pytest.mark.parametrize(
    ("parameter", "values"),
    [("", [1.0]), ("   ", [1.0]), ("oil_pressure", [])],
)
def test_invalid_input_is_rejected(engine: SignalAnomalyEngine, parameter: str, values: list[float]) -> None:
    with pytest.raises(InvalidEvaluationInput):
        engine.evaluate(parameter, values)


def test_trend_fit_needs_three_points() -> None:
    assert fit_trend([1.0, 5.0]).slope == 0.0
    assert fit_trend([1.0, 2.0, 3.0]).slope == pytest.approx(1.0)
    assert fit_trend([1.0, 2.0, 3.0]).r_squared == pytest.approx(1.0)


def test_profiles_are_read_only() -> None:
    profiles = load_profiles()

    assert set(profiles) == set(DEFAULT_PROFILE_DATA)
    with pytest.raises(TypeError):
        profiles["bilge_level"] = profiles["fuel_level"]  # type: ignore[index]


def test_profile_rejects_inverted_range() -> None:
    with pytest.raises(ProfileConfigurationError):
        parse_profile("oil_pressure", {"normal_range": [600, 200], "critical_variance_threshold": 50})


def test_profile_rejects_pattern_without_threshold() -> None:
    raw = {
        "normal_range": [200, 600],
        "critical_variance_threshold": 50,
        "failure_indicators": {"pressure_drop": {"rate": 0.2, "risk": 0.8}},
        "pattern": {
            "indicator": "pressure_drop",
            "comparison": "below",
            "anomaly_type": "low_oil_pressure",
            "confidence": 0.9,
            "action": "check oil",
            "urgency": "immediate",
        },
    }
    with pytest.raises(ProfileConfigurationError):
        parse_profile("oil_pressure", raw)


def test_profiles_load_from_json_file(tmp_path) -> None:
    path = tmp_path / "profiles.json"
    path.write_text(
        json.dumps(
            {
                "bilge_level": {
                    "normal_range": [0, 20],
                    "critical_variance_threshold": 4,
                    "failure_indicators": {"flooding": {"threshold": 30, "risk": 0.9}},
                }
            }
        )
    )

    engine = SignalAnomalyEngine(load_profiles(str(path)))
    verdict = engine.evaluate("bilge_level", [5, 6, 40])

    assert set(engine.profiles) == {"bilge_level"}
    assert verdict.anomaly_detected is True
    assert engine.evaluate("oil_pressure", [140]).anomaly_type == "unknown_parameter"


def test_profiles_load_reports_missing_file(tmp_path) -> None:
    with pytest.raises(ProfileConfigurationError):
        load_profiles(str(tmp_path / "missing.json"))
