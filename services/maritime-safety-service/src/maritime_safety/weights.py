"""Safety weight table: score adjustments, search radii and risk-tier bands."""

from __future__ import annotations

from dataclasses import dataclass

from .schemas import RiskLevel, ZoneType


HARBOR_ZONE_TYPES: tuple[ZoneType, ...] = ("safe_harbor", "marina", "anchorage", "emergency_services")
HARBOR_BONUS_ZONE_TYPES: frozenset[str] = frozenset({"safe_harbor", "marina"})
HAZARD_ZONE_TYPES: tuple[ZoneType, ...] = ("restricted_area", "shallow_water", "reef_area", "piracy_risk")
EMERGENCY_SERVICE_ZONE_TYPES: tuple[ZoneType, ...] = ("emergency_services", "coast_guard", "medical")
EMERGENCY_CONTACT_TYPES: tuple[str, ...] = ("coast_guard", "marine_rescue", "medical")


@dataclass(frozen=True)
class SafetyWeights:
    """Immutable numeric rules for the safety risk engine."""

    default_baseline_score: float = 50.0
    weather_high_penalty: float = 15.0
    weather_extreme_penalty: float = 30.0
    harbor_bonus: float = 10.0
    hazard_penalty_per_zone: float = 5.0
    harbor_search_radius_km: float = 100.0
    emergency_search_radius_km: float = 200.0

    route_baseline_score: float = 85.0
    route_weather_high_penalty: float = 20.0
    route_weather_extreme_penalty: float = 40.0
    route_hazard_penalty_per_zone: float = 5.0
    route_average_speed_knots: float = 8.0
    route_concern_below: float = 70.0

    equipment_baseline_score: float = 100.0
    failed_equipment_penalty: float = 20.0
    expired_equipment_penalty: float = 10.0
    overdue_inspection_penalty: float = 5.0

    # (floor, tier), highest floor first; anything below the last floor is the fallback tier.
    location_tiers: tuple[tuple[float, RiskLevel], ...] = (
        (80.0, "low"),
        (60.0, "moderate"),
        (40.0, "high"),
    )
    location_fallback_tier: RiskLevel = "critical"
    route_tiers: tuple[tuple[float, RiskLevel], ...] = ((70.0, "low"), (50.0, "moderate"))
    route_fallback_tier: RiskLevel = "high"

    emergency_time_sensitivity_hours: int = 1
    emergency_expiry_hours: int = 24
    weather_advisory_time_sensitivity_hours: int = 6
    weather_advisory_expiry_hours: int = 12

    def location_tier(self, score: float) -> RiskLevel:
        return _tier(score, self.location_tiers, self.location_fallback_tier)

    def route_tier(self, score: float) -> RiskLevel:
        return _tier(score, self.route_tiers, self.route_fallback_tier)


def _tier(score: float, bands: tuple[tuple[float, RiskLevel], ...], fallback: RiskLevel) -> RiskLevel:
    for floor, tier in bands:
        if score >= floor:
            return tier
    return fallback


DEFAULT_WEIGHTS = SafetyWeights()
