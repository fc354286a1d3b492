"""Safety risk engine: fuses baseline, weather, zones and equipment into graded risk.

Reference reads for one evaluation are independent, so they are issued together
through :class:`LookupFanOut`. A read that fails or times out is listed in
``skipped_checks`` and the evaluation continues without it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Sequence
from uuid import uuid4

from pydantic import ValidationError

from .geo import country_for_position, distance_nm, initial_bearing_deg, midpoint
from .lookups import LookupFanOut, LookupResults
from .repositories import EquipmentRecord, SafetyReferenceStore
from .schemas import (
    PRIORITY_ORDER,
    EmergencyResponse,
    EquipmentSummary,
    LocationRecommendationItem,
    Position,
    RecommendationsResult,
    RiskLevel,
    RouteAnalysis,
    SafetyAssessment,
    SafetyRecommendation,
    SafetyZoneItem,
    WeatherSnapshot,
    WeatherUpdateResult,
)
from .sink import SafetySink
from .weather import WeatherProvider
from .weights import (
    DEFAULT_WEIGHTS,
    EMERGENCY_CONTACT_TYPES,
    EMERGENCY_SERVICE_ZONE_TYPES,
    HARBOR_BONUS_ZONE_TYPES,
    HARBOR_ZONE_TYPES,
    HAZARD_ZONE_TYPES,
    SafetyWeights,
)

SEVERE_WEATHER_LEVELS = frozenset({"high", "extreme"})
SCORE_PRECISION = 2

EMERGENCY_ACTIONS = ("Follow emergency protocols", "Contact emergency services", "Prepare for assistance")
WEATHER_ADVISORY_ACTIONS = ("Monitor weather updates", "Consider alternative route", "Prepare heavy weather gear")


class InvalidEvaluationInput(ValueError):
    """Raised when a caller violates the evaluation contract."""


def rank_recommendations(recommendations: Iterable[SafetyRecommendation]) -> list[SafetyRecommendation]:
    """Order by priority, keeping generation order within a priority."""

    return sorted(recommendations, key=lambda item: PRIORITY_ORDER.index(item.priority))


def _clamp_score(score: float) -> float:
    return round(max(0.0, min(100.0, score)), SCORE_PRECISION)


@dataclass(frozen=True)
class LocationScore:
    score: float
    risk_level: RiskLevel
    recommendations: list[SafetyRecommendation]


def score_location(
    *,
    baseline_score: float | None,
    weather: WeatherSnapshot | None,
    nearby_zones: Sequence[SafetyZoneItem],
    hazards: Sequence[SafetyZoneItem],
    weights: SafetyWeights = DEFAULT_WEIGHTS,
) -> LocationScore:
    """Combine the location inputs; absent inputs contribute nothing."""

    score = weights.default_baseline_score if baseline_score is None else baseline_score
    recommendations: list[SafetyRecommendation] = []

    risk = weather.risk_level if weather is not None else None
    if risk == "high":
        score -= weights.weather_high_penalty
        recommendations.append(
            SafetyRecommendation(
                type="weather_monitoring",
                priority="warning",
                title="Weather Advisory",
                description="Monitor weather conditions closely",
            )
        )
    elif risk == "extreme":
        score -= weights.weather_extreme_penalty
        recommendations.append(
            SafetyRecommendation(
                type="weather_shelter",
                priority="urgent",
                title="Weather Advisory",
                description="Seek immediate shelter",
            )
        )

    harbors = [zone for zone in nearby_zones if zone.zone_type in HARBOR_BONUS_ZONE_TYPES]
    if harbors:
        score += weights.harbor_bonus
        recommendations.append(
            SafetyRecommendation(
                type="safe_harbor",
                priority="info",
                title="Safe Harbors Nearby",
                description=f"{len(harbors)} safe harbors within range",
            )
        )

    if hazards:
        score -= weights.hazard_penalty_per_zone * len(hazards)
        recommendations.append(
            SafetyRecommendation(
                type="navigation_safety",
                priority="caution",
                title="Navigation Hazards",
                description="Navigate carefully - hazards in area",
            )
        )

    final = _clamp_score(score)
    return LocationScore(
        score=final,
        risk_level=weights.location_tier(final),
        recommendations=rank_recommendations(recommendations),
    )


def score_route(
    *,
    start: Position,
    destination: Position,
    weather: WeatherSnapshot | None,
    hazards_count: int,
    weights: SafetyWeights = DEFAULT_WEIGHTS,
) -> tuple[RouteAnalysis, list[SafetyRecommendation]]:
    distance = distance_nm(start, destination)
    score = weights.route_baseline_score
    if weather is not None and weather.risk_level == "high":
        score -= weights.route_weather_high_penalty
    elif weather is not None and weather.risk_level == "extreme":
        score -= weights.route_weather_extreme_penalty
    score -= weights.route_hazard_penalty_per_zone * hazards_count
    final = _clamp_score(score)

    analysis = RouteAnalysis(
        distance_nm=round(distance, 3),
        bearing_deg=round(initial_bearing_deg(start, destination), 3) % 360.0,
        estimated_time_hours=round(distance / weights.route_average_speed_knots, 3),
        safety_score=final,
        risk_level=weights.route_tier(final),
        hazards_count=hazards_count,
        weather_sample_point=midpoint(start, destination),
        weather_conditions=weather,
    )

    recommendations: list[SafetyRecommendation] = []
    if final < weights.route_concern_below:
        recommendations.append(
            SafetyRecommendation(
                type="route_planning",
                priority="warning",
                title="Route Safety Concern",
                description="Consider alternative route or delay departure",
            )
        )
    if hazards_count > 0:
        recommendations.append(
            SafetyRecommendation(
                type="navigation_safety",
                priority="caution",
                title="Navigation Hazards",
                description=f"{hazards_count} hazards along route",
            )
        )
    return analysis, rank_recommendations(recommendations)


def score_equipment(
    equipment: Sequence[EquipmentRecord],
    now: datetime,
    weights: SafetyWeights = DEFAULT_WEIGHTS,
) -> tuple[float, EquipmentSummary, list[SafetyRecommendation]]:
    failed = sum(1 for item in equipment if item.operational_status == "failed")
    expired = sum(1 for item in equipment if item.operational_status == "expired")
    overdue = sum(
        1 for item in equipment if item.next_inspection_due is not None and item.next_inspection_due < now
    )

    score = (
        weights.equipment_baseline_score
        - failed * weights.failed_equipment_penalty
        - expired * weights.expired_equipment_penalty
        - overdue * weights.overdue_inspection_penalty
    )

    recommendations: list[SafetyRecommendation] = []
    if failed:
        recommendations.append(
            SafetyRecommendation(
                type="equipment_replacement",
                priority="urgent",
                title="Failed Equipment",
                description=f"{failed} safety equipment items have failed",
            )
        )
    if expired:
        recommendations.append(
            SafetyRecommendation(
                type="equipment_renewal",
                priority="warning",
                title="Expired Equipment",
                description=f"{expired} items need renewal",
            )
        )

    summary = EquipmentSummary(total=len(equipment), failed=failed, expired=expired, inspection_overdue=overdue)
    return _clamp_score(score), summary, recommendations


class SafetyRiskEngine:
    """Evaluates vessel safety at a position, along a route and for onboard equipment."""

    def __init__(
        self,
        *,
        reference: SafetyReferenceStore,
        weather: WeatherProvider,
        lookups: LookupFanOut,
        sink: SafetySink | None = None,
        weights: SafetyWeights = DEFAULT_WEIGHTS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._reference = reference
        self._weather = weather
        self._lookups = lookups
        self._sink = sink
        self._weights = weights
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    @property
    def weights(self) -> SafetyWeights:
        return self._weights

    def assess_location(
        self,
        position: Position | dict | None,
        vessel_id: str | None = None,
        *,
        trace_id: str | None = None,
    ) -> SafetyAssessment:
        position = _require_position(position, "location")
        if vessel_id is not None:
            vessel_id = _require_text(vessel_id, "yacht_id")
        weights = self._weights

        calls: dict[str, Callable[[], Any]] = {}
        if vessel_id:
            calls["vessel_baseline"] = lambda: self._reference.vessel_baseline(vessel_id)
        calls["nearby_zones"] = lambda: self._reference.nearest_zones(
            position, HARBOR_ZONE_TYPES, weights.harbor_search_radius_km
        )
        calls["weather"] = lambda: self._weather.current_weather(position)
        calls["hazard_zones"] = lambda: self._reference.active_zones_by_type(HAZARD_ZONE_TYPES)

        results = self._lookups.run(calls, trace_id=trace_id)
        weather = results.get("weather")
        skipped = _with_missing_weather(results)

        nearby_zones = results.get("nearby_zones")
        combined = score_location(
            baseline_score=results.get("vessel_baseline"),
            weather=weather,
            nearby_zones=nearby_zones or [],
            hazards=results.get("hazard_zones") or [],
            weights=weights,
        )
        return SafetyAssessment(
            safety_score=combined.score,
            risk_level=combined.risk_level,
            recommendations=combined.recommendations,
            nearest_harbors=nearby_zones,
            weather_data=weather,
            skipped_checks=skipped,
        )

    def analyze_route(
        self,
        position: Position | dict | None,
        destination: Position | dict | None,
        *,
        trace_id: str | None = None,
    ) -> SafetyAssessment:
        """Score a direct passage. Weather is sampled once, at the coordinate mid-point."""

        start = _require_position(position, "location")
        end = _require_position(destination, "destination")
        sample_point = midpoint(start, end)

        results = self._lookups.run(
            {
                "weather": lambda: self._weather.current_weather(sample_point),
                "hazard_zones": lambda: self._reference.active_zones_by_type(HAZARD_ZONE_TYPES),
            },
            trace_id=trace_id,
        )
        weather = results.get("weather")
        analysis, recommendations = score_route(
            start=start,
            destination=end,
            weather=weather,
            hazards_count=len(results.get("hazard_zones") or []),
            weights=self._weights,
        )
        return SafetyAssessment(
            safety_score=analysis.safety_score,
            risk_level=analysis.risk_level,
            recommendations=recommendations,
            weather_data=weather,
            route_analysis=analysis,
            skipped_checks=_with_missing_weather(results),
        )

    def check_equipment(self, vessel_id: str | None, *, trace_id: str | None = None) -> SafetyAssessment:
        vessel_id = _require_text(vessel_id, "yacht_id")
        results = self._lookups.run({"equipment": lambda: self._reference.equipment_for(vessel_id)}, trace_id=trace_id)

        if "equipment" in results.skipped:
            # Unknown equipment state is scored as unsafe.
            return SafetyAssessment(
                safety_score=0.0,
                risk_level=self._weights.location_tier(0.0),
                recommendations=[
                    SafetyRecommendation(
                        type="equipment_inspection",
                        priority="warning",
                        title="Equipment Status Unavailable",
                        description="Safety equipment records could not be read; verify equipment manually",
                    )
                ],
                skipped_checks=["equipment"],
            )

        score, summary, recommendations = score_equipment(results.get("equipment") or [], self._clock(), self._weights)
        return SafetyAssessment(
            safety_score=score,
            risk_level=self._weights.location_tier(score),
            recommendations=recommendations,
            equipment_summary=summary,
        )

    def handle_emergency(
        self,
        vessel_id: str | None,
        position: Position | dict | None,
        emergency_type: str | None,
        *,
        trace_id: str | None = None,
    ) -> EmergencyResponse:
        vessel_id = _require_text(vessel_id, "yacht_id")
        position = _require_position(position, "location")
        emergency_type = _require_text(emergency_type, "emergency_type")
        weights = self._weights

        results = self._lookups.run(
            {
                "protocols": lambda: self._reference.protocols_for(emergency_type),
                "emergency_services": lambda: self._reference.nearest_zones(
                    position, EMERGENCY_SERVICE_ZONE_TYPES, weights.emergency_search_radius_km
                ),
                "emergency_contacts": lambda: self._reference.emergency_contacts(
                    contact_types=EMERGENCY_CONTACT_TYPES
                ),
            },
            trace_id=trace_id,
        )
        services = results.get("emergency_services") or []

        now = self._clock()
        recommendation = LocationRecommendationItem(
            recommendation_id=str(uuid4()),
            yacht_id=vessel_id,
            recommendation_type="emergency_shelter",
            priority="urgent",
            title=f"Emergency Response: {emergency_type}",
            description="Immediate emergency response activated",
            immediate_actions=list(EMERGENCY_ACTIONS),
            recommended_locations=services,
            location=position,
            time_sensitivity_hours=weights.emergency_time_sensitivity_hours,
            created_at=now,
            expires_at=now + timedelta(hours=weights.emergency_expiry_hours),
        )
        recorded = self._sink.record_recommendation(recommendation, trace_id=trace_id) if self._sink else False

        return EmergencyResponse(
            yacht_id=vessel_id,
            emergency_type=emergency_type,
            protocols=results.get("protocols") or [],
            emergency_contacts=results.get("emergency_contacts") or [],
            nearest_services=services,
            recommendation=recommendation,
            recorded=recorded,
            skipped_checks=results.skipped,
        )

    def update_weather(self, position: Position | dict | None, *, trace_id: str | None = None) -> WeatherUpdateResult:
        position = _require_position(position, "location")
        results = self._lookups.run({"weather": lambda: self._weather.current_weather(position)}, trace_id=trace_id)
        weather = results.get("weather")

        recorded = False
        if weather is not None and self._sink is not None:
            recorded = self._sink.record_weather(position, weather, self._clock(), trace_id=trace_id)

        return WeatherUpdateResult(
            location=position,
            weather_data=weather,
            recorded=recorded,
            skipped_checks=_with_missing_weather(results),
        )

    def get_recommendations(
        self,
        vessel_id: str | None,
        position: Position | dict | None,
        *,
        trace_id: str | None = None,
    ) -> RecommendationsResult:
        """Issue a weather advisory when conditions are severe, then list active recommendations."""

        vessel_id = _require_text(vessel_id, "yacht_id")
        position = _require_position(position, "location")
        country = country_for_position(position)
        weights = self._weights

        weather_results = self._lookups.run(
            {"weather": lambda: self._weather.current_weather(position)},
            trace_id=trace_id,
        )
        weather = weather_results.get("weather")
        if weather is not None and weather.risk_level in SEVERE_WEATHER_LEVELS and self._sink is not None:
            now = self._clock()
            self._sink.record_recommendation(
                LocationRecommendationItem(
                    recommendation_id=str(uuid4()),
                    yacht_id=vessel_id,
                    recommendation_type="weather_routing",
                    priority="warning",
                    title="Weather Advisory",
                    description="Severe weather conditions ahead",
                    immediate_actions=list(WEATHER_ADVISORY_ACTIONS),
                    location=position,
                    time_sensitivity_hours=weights.weather_advisory_time_sensitivity_hours,
                    created_at=now,
                    expires_at=now + timedelta(hours=weights.weather_advisory_expiry_hours),
                ),
                trace_id=trace_id,
            )

        results = self._lookups.run(
            {
                "active_recommendations": lambda: self._reference.active_recommendations(vessel_id, self._clock()),
                "emergency_contacts": lambda: self._reference.emergency_contacts(country=country),
            },
            trace_id=trace_id,
        )
        active = sorted(
            results.get("active_recommendations") or [],
            key=lambda item: PRIORITY_ORDER.index(item.priority),
        )
        return RecommendationsResult(
            yacht_id=vessel_id,
            country=country,
            recommendations=active,
            emergency_contacts=results.get("emergency_contacts") or [],
            weather_data=weather,
            skipped_checks=_with_missing_weather(weather_results) + results.skipped,
        )


def _with_missing_weather(results: LookupResults) -> list[str]:
    """Skipped lookups, counting an unconfigured weather provider as a skipped weather check."""

    skipped = list(results.skipped)
    if "weather" in results.values and results.values["weather"] is None:
        skipped.append("weather")
    return skipped


def _require_position(value: Position | dict | None, field_name: str) -> Position:
    if value is None:
        raise InvalidEvaluationInput(f"{field_name} is required")
    if isinstance(value, Position):
        return value
    try:
        return Position.model_validate(value)
    except ValidationError as exc:
        raise InvalidEvaluationInput(f"{field_name} is not a valid position") from exc


def _require_text(value: str | None, field_name: str) -> str:
    if value is None or not value.strip():
        raise InvalidEvaluationInput(f"{field_name} must be non-empty")
    return value
