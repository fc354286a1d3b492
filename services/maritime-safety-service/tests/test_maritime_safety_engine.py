"""Tests for safety scoring and the safety risk engine."""

from datetime import datetime, timedelta, timezone

import pytest

from maritime_safety.engine import (
    InvalidEvaluationInput,
    SafetyRiskEngine,
    rank_recommendations,
    score_equipment,
    score_location,
    score_route,
)
from maritime_safety.lookups import LookupFanOut
from maritime_safety.repositories import EquipmentRecord, ReferenceStoreError
from maritime_safety.schemas import (
    EmergencyContactItem,
    Position,
    SafetyProtocolItem,
    SafetyRecommendation,
    SafetyZoneItem,
    WeatherSnapshot,
)
from maritime_safety.weather import WeatherProviderError

NOW = datetime(2026, 6, 1, 9, 0, tzinfo=timezone.utc)
MONACO = Position(lat=43.73, lng=7.42)


def _weather(risk_level: str) -> WeatherSnapshot:
    return WeatherSnapshot(
        temperature=18.0,
        wind_speed_knots={"low": 8.0, "moderate": 18.0, "high": 28.0, "extreme": 40.0}[risk_level],
        visibility_km=10.0,
        safety_score={"low": 100.0, "moderate": 85.0, "high": 70.0, "extreme": 70.0}[risk_level],
        risk_level=risk_level,
    )


def _zone(name: str, zone_type: str, distance_km: float | None = None) -> SafetyZoneItem:
    return SafetyZoneItem(
        zone_id=f"zone_{name}",
        name=name,
        zone_type=zone_type,
        lat=43.7,
        lng=7.4,
        radius_km=1.0,
        distance_km=distance_km,
    )


def _equipment(status: str, due: datetime | None = None) -> EquipmentRecord:
    return EquipmentRecord(
        equipment_id=f"eq_{status}",
        name=f"{status} item",
        equipment_type="life_raft",
        operational_status=status,
        next_inspection_due=due,
    )


class FakeReference:
    def __init__(
        self,
        *,
        baseline: float | None = None,
        nearby: list[SafetyZoneItem] | None = None,
        hazards: list[SafetyZoneItem] | None = None,
        equipment: list[EquipmentRecord] | None = None,
        protocols: list[SafetyProtocolItem] | None = None,
        contacts: list[EmergencyContactItem] | None = None,
        failing: frozenset[str] = frozenset(),
    ) -> None:
        self.baseline = baseline
        self.nearby = nearby or []
        self.hazards = hazards or []
        self.equipment = equipment or []
        self.protocols = protocols or []
        self.contacts = contacts or []
        self.failing = failing
        self.calls: list[str] = []

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise ReferenceStoreError(f"{name} failed: OperationalError")

    def vessel_baseline(self, vessel_id):
        self._enter("vessel_baseline")
        return self.baseline

    def nearest_zones(self, position, zone_types, max_distance_km):
        self._enter("nearest_zones")
        return [zone for zone in self.nearby if zone.zone_type in zone_types]

    def active_zones_by_type(self, zone_types):
        self._enter("active_zones_by_type")
        return list(self.hazards)

    def equipment_for(self, vessel_id):
        self._enter("equipment_for")
        return list(self.equipment)

    def protocols_for(self, emergency_type):
        self._enter("protocols_for")
        return [protocol for protocol in self.protocols if protocol.protocol_type == emergency_type]

    def emergency_contacts(self, *, contact_types=None, country=None):
        self._enter("emergency_contacts")
        return list(self.contacts)

    def active_recommendations(self, vessel_id, now):
        self._enter("active_recommendations")
        return []


class FakeWeather:
    def __init__(self, snapshot: WeatherSnapshot | None = None, error: Exception | None = None) -> None:
        self.snapshot = snapshot
        self.error = error
        self.positions: list[Position] = []

    def current_weather(self, position: Position) -> WeatherSnapshot | None:
        self.positions.append(position)
        if self.error is not None:
            raise self.error
        return self.snapshot


class FakeSink:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.recommendations = []
        self.weather = []

    def record_recommendation(self, item, *, trace_id=None) -> bool:
        self.recommendations.append(item)
        return self.ok

    def record_weather(self, position, snapshot, observed_at, *, trace_id=None) -> bool:
        self.weather.append((position, snapshot, observed_at))
        return self.ok


def _engine(reference: FakeReference, weather: FakeWeather, sink: FakeSink | None = None) -> SafetyRiskEngine:
    return SafetyRiskEngine(
        reference=reference,
        weather=weather,
        lookups=LookupFanOut(timeout_seconds=2.0, max_workers=4),
        sink=sink,
        clock=lambda: NOW,
    )


def test_location_near_hazard_in_extreme_weather_is_critical() -> None:
    result = score_location(
        baseline_score=60.0,
        weather=_weather("extreme"),
        nearby_zones=[],
        hazards=[_zone("Banc de la Ferrière", "reef_area")],
    )

    assert result.score == 25.0
    assert result.risk_level == "critical"
    assert [(item.title, item.priority) for item in result.recommendations] == [
        ("Weather Advisory", "urgent"),
        ("Navigation Hazards", "caution"),
    ]
    assert result.recommendations[0].description == "Seek immediate shelter"


def test_harbor_bonus_applies_once_and_counts_harbors() -> None:
    result = score_location(
        baseline_score=None,
        weather=None,
        nearby_zones=[
            _zone("Port Hercule", "safe_harbor"),
            _zone("Port de Fontvieille", "marina"),
            _zone("Anse de Cap d'Ail", "anchorage"),
        ],
        hazards=[],
    )

    assert result.score == 60.0
    assert result.risk_level == "moderate"
    assert len(result.recommendations) == 1
    assert result.recommendations[0].priority == "info"
    assert result.recommendations[0].description == "2 safe harbors within range"


def test_high_weather_advises_monitoring() -> None:
    result = score_location(baseline_score=75.0, weather=_weather("high"), nearby_zones=[], hazards=[])

    assert result.score == 60.0
    assert result.risk_level == "moderate"
    assert result.recommendations[0].priority == "warning"
    assert result.recommendations[0].description == "Monitor weather conditions closely"


@pytest.mark.parametrize("baseline", [0.0, 5.0, 50.0, 95.0, 100.0])
@pytest.mark.parametrize("hazard_count", [0, 1, 30])
@pytest.mark.parametrize("risk_level", ["low", "high", "extreme"])
def test_location_score_is_clamped(baseline: float, hazard_count: int, risk_level: str) -> None:
    result = score_location(
        baseline_score=baseline,
        weather=_weather(risk_level),
        nearby_zones=[_zone("Port Hercule", "safe_harbor")],
        hazards=[_zone(f"hazard_{i}", "shallow_water") for i in range(hazard_count)],
    )

    assert 0.0 <= result.score <= 100.0


@pytest.mark.parametrize(
    ("score", "expected"),
    [(100.0, "low"), (80.0, "low"), (79.99, "moderate"), (60.0, "moderate"), (40.0, "high"), (39.9, "critical"), (0.0, "critical")],
)
def test_location_tier_bands(score: float, expected: str) -> None:
    result = score_location(baseline_score=score, weather=None, nearby_zones=[], hazards=[])
    assert result.risk_level == expected


def test_rank_recommendations_is_stable_within_priority() -> None:
    ranked = rank_recommendations(
        [
            SafetyRecommendation(type="a", priority="info", title="first info", description=""),
            SafetyRecommendation(type="b", priority="caution", title="first caution", description=""),
            SafetyRecommendation(type="c", priority="info", title="second info", description=""),
            SafetyRecommendation(type="d", priority="urgent", title="urgent", description=""),
        ]
    )

    assert [item.title for item in ranked] == ["urgent", "first caution", "first info", "second info"]


def test_route_distance_bearing_and_time() -> None:
    analysis, recommendations = score_route(
        start=Position(lat=0.0, lng=0.0),
        destination=Position(lat=0.0, lng=1.0),
        weather=None,
        hazards_count=0,
    )

    assert analysis.distance_nm == pytest.approx(60.04, abs=0.01)
    assert analysis.bearing_deg == pytest.approx(90.0)
    assert analysis.estimated_time_hours == pytest.approx(7.505, abs=0.001)
    assert analysis.safety_score == 85.0
    assert analysis.risk_level == "low"
    assert analysis.weather_sample_point == Position(lat=0.0, lng=0.5)
    assert recommendations == []


def test_route_in_extreme_weather_with_hazards() -> None:
    analysis, recommendations = score_route(
        start=MONACO,
        destination=Position(lat=43.55, lng=7.02),
        weather=_weather("extreme"),
        hazards_count=2,
    )

    assert analysis.safety_score == 35.0
    assert analysis.risk_level == "high"
    assert [(item.priority, item.description) for item in recommendations] == [
        ("warning", "Consider alternative route or delay departure"),
        ("caution", "2 hazards along route"),
    ]


def test_route_in_high_weather_is_moderate_with_concern() -> None:
    analysis, recommendations = score_route(
        start=MONACO,
        destination=Position(lat=43.55, lng=7.02),
        weather=_weather("high"),
        hazards_count=0,
    )

    assert analysis.safety_score == 65.0
    assert analysis.risk_level == "moderate"
    assert [item.title for item in recommendations] == ["Route Safety Concern"]


def test_equipment_with_failed_and_expired_items() -> None:
    equipment = [
        _equipment("failed"),
        _equipment("failed"),
        _equipment("expired"),
        _equipment("operational", NOW + timedelta(days=30)),
        _equipment("operational"),
    ]

    score, summary, recommendations = score_equipment(equipment, NOW)

    assert score == 50.0
    assert summary.total == 5
    assert summary.failed == 2
    assert summary.expired == 1
    assert summary.inspection_overdue == 0
    assert [(item.priority, item.description) for item in recommendations] == [
        ("urgent", "2 safety equipment items have failed"),
        ("warning", "1 items need renewal"),
    ]


def test_equipment_overdue_inspections_are_penalised() -> None:
    equipment = [
        _equipment("operational", NOW - timedelta(days=1)),
        _equipment("operational", NOW - timedelta(days=90)),
        _equipment("operational", None),
    ]

    score, summary, recommendations = score_equipment(equipment, NOW)

    assert score == 90.0
    assert summary.inspection_overdue == 2
    assert recommendations == []


def test_equipment_score_floors_at_zero() -> None:
    score, _, _ = score_equipment([_equipment("failed") for _ in range(8)], NOW)
    assert score == 0.0


def test_engine_assess_location_combines_lookups() -> None:
    reference = FakeReference(baseline=60.0, hazards=[_zone("Banc de la Ferrière", "reef_area")])
    engine = _engine(reference, FakeWeather(_weather("extreme")))

    assessment = engine.assess_location(MONACO, "yacht_riviera_01")

    assert assessment.safety_score == 25.0
    assert assessment.risk_level == "critical"
    assert assessment.nearest_harbors == []
    assert assessment.weather_data.risk_level == "extreme"
    assert assessment.skipped_checks == []
    assert "vessel_baseline" in reference.calls


def test_engine_assess_location_without_vessel_uses_default_baseline() -> None:
    reference = FakeReference(baseline=90.0)
    engine = _engine(reference, FakeWeather(_weather("low")))

    assessment = engine.assess_location({"lat": 43.73, "lng": 7.42})

    assert assessment.safety_score == 50.0
    assert "vessel_baseline" not in reference.calls
    assert assessment.skipped_checks == []


def test_engine_assess_location_degrades_failed_lookups() -> None:
    reference = FakeReference(baseline=70.0, failing=frozenset({"active_zones_by_type"}))
    engine = _engine(reference, FakeWeather(error=WeatherProviderError("weather provider unavailable")))

    assessment = engine.assess_location(MONACO, "yacht_riviera_01")

    assert assessment.safety_score == 70.0
    assert assessment.risk_level == "moderate"
    assert set(assessment.skipped_checks) == {"weather", "hazard_zones"}
    assert assessment.weather_data is None


def test_engine_marks_unconfigured_weather_as_skipped() -> None:
    engine = _engine(FakeReference(), FakeWeather(snapshot=None))

    assessment = engine.assess_location(MONACO)

    assert assessment.skipped_checks == ["weather"]


@pytest.mark.parametrize(
    ("position", "vessel_id"),
    [(None, "yacht_riviera_01"), ({"lat": 95.0, "lng": 7.0}, None), (MONACO, "   ")],
)
def test_engine_assess_location_rejects_invalid_input(position, vessel_id) -> None:
    engine = _engine(FakeReference(), FakeWeather())

    with pytest.raises(InvalidEvaluationInput):
        engine.assess_location(position, vessel_id)


def test_engine_route_samples_weather_at_midpoint() -> None:
    weather = FakeWeather(_weather("high"))
    engine = _engine(FakeReference(hazards=[_zone("Zone militaire", "restricted_area")]), weather)

    assessment = engine.analyze_route(Position(lat=43.0, lng=7.0), Position(lat=44.0, lng=8.0))

    assert weather.positions == [Position(lat=43.5, lng=7.5)]
    assert assessment.safety_score == 60.0
    assert assessment.risk_level == "moderate"
    assert assessment.route_analysis.hazards_count == 1
    assert assessment.route_analysis.weather_conditions.risk_level == "high"


def test_engine_route_requires_destination() -> None:
    engine = _engine(FakeReference(), FakeWeather())

    with pytest.raises(InvalidEvaluationInput, match="destination"):
        engine.analyze_route(MONACO, None)


def test_engine_equipment_check_scenario() -> None:
    equipment = [_equipment("failed"), _equipment("failed"), _equipment("expired")] + [
        _equipment("operational") for _ in range(2)
    ]
    engine = _engine(FakeReference(equipment=equipment), FakeWeather())

    assessment = engine.check_equipment("yacht_riviera_01")

    assert assessment.safety_score == 50.0
    assert assessment.risk_level == "high"
    assert assessment.equipment_summary.total == 5
    assert [item.priority for item in assessment.recommendations] == ["urgent", "warning"]


def test_engine_equipment_lookup_failure_is_unsafe() -> None:
    engine = _engine(FakeReference(failing=frozenset({"equipment_for"})), FakeWeather())

    assessment = engine.check_equipment("yacht_riviera_01")

    assert assessment.safety_score == 0.0
    assert assessment.risk_level == "critical"
    assert assessment.skipped_checks == ["equipment"]
    assert assessment.recommendations[0].title == "Equipment Status Unavailable"


def test_engine_handle_emergency_records_urgent_recommendation() -> None:
    reference = FakeReference(
        nearby=[_zone("CROSS Méditerranée", "coast_guard", 12.0), _zone("Port Hercule", "safe_harbor", 1.0)],
        protocols=[
            SafetyProtocolItem(protocol_id="p1", protocol_type="fire", title="Engine room fire", severity_level=5),
            SafetyProtocolItem(protocol_id="p2", protocol_type="man_overboard", title="MOB", severity_level=5),
        ],
        contacts=[EmergencyContactItem(contact_id="c1", name="MRCC La Garde", contact_type="coast_guard", country="France")],
    )
    sink = FakeSink()
    engine = _engine(reference, FakeWeather(), sink)

    response = engine.handle_emergency("yacht_riviera_01", MONACO, "fire")

    assert [protocol.title for protocol in response.protocols] == ["Engine room fire"]
    assert [zone.name for zone in response.nearest_services] == ["CROSS Méditerranée"]
    assert response.emergency_contacts[0].name == "MRCC La Garde"
    assert response.recorded is True
    assert response.skipped_checks == []

    recommendation = response.recommendation
    assert recommendation.priority == "urgent"
    assert recommendation.title == "Emergency Response: fire"
    assert recommendation.time_sensitivity_hours == 1
    assert recommendation.expires_at - recommendation.created_at == timedelta(hours=24)
    assert recommendation.immediate_actions == [
        "Follow emergency protocols",
        "Contact emergency services",
        "Prepare for assistance",
    ]
    assert sink.recommendations == [recommendation]


def test_engine_handle_emergency_survives_sink_and_lookup_failures() -> None:
    engine = _engine(FakeReference(failing=frozenset({"emergency_contacts"})), FakeWeather(), FakeSink(ok=False))

    response = engine.handle_emergency("yacht_riviera_01", MONACO, "flooding")

    assert response.recorded is False
    assert response.skipped_checks == ["emergency_contacts"]
    assert response.emergency_contacts == []


def test_engine_handle_emergency_rejects_blank_type() -> None:
    engine = _engine(FakeReference(), FakeWeather(), FakeSink())

    with pytest.raises(InvalidEvaluationInput, match="emergency_type"):
        engine.handle_emergency("yacht_riviera_01", MONACO, " ")


def test_engine_update_weather_records_observation() -> None:
    sink = FakeSink()
    engine = _engine(FakeReference(), FakeWeather(_weather("moderate")), sink)

    result = engine.update_weather(MONACO)

    assert result.recorded is True
    assert result.weather_data.risk_level == "moderate"
    assert sink.weather == [(MONACO, _weather("moderate"), NOW)]


def test_engine_update_weather_without_provider_records_nothing() -> None:
    sink = FakeSink()
    engine = _engine(FakeReference(), FakeWeather(snapshot=None), sink)

    result = engine.update_weather(MONACO)

    assert result.recorded is False
    assert result.skipped_checks == ["weather"]
    assert sink.weather == []


@pytest.mark.parametrize(("risk_level", "advisories"), [("low", 0), ("moderate", 0), ("high", 1), ("extreme", 1)])
def test_engine_recommendations_issue_advisory_in_severe_weather(risk_level: str, advisories: int) -> None:
    sink = FakeSink()
    engine = _engine(FakeReference(), FakeWeather(_weather(risk_level)), sink)

    result = engine.get_recommendations("yacht_riviera_01", MONACO)

    assert result.country == "France"
    assert len(sink.recommendations) == advisories
    if advisories:
        advisory = sink.recommendations[0]
        assert advisory.recommendation_type == "weather_routing"
        assert advisory.priority == "warning"
        assert advisory.time_sensitivity_hours == 6
        assert advisory.expires_at == NOW + timedelta(hours=12)
