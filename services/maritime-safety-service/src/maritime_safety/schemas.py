"""Pydantic schemas for maritime safety API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


RiskLevel = Literal["low", "moderate", "high", "critical"]
WeatherRiskLevel = Literal["low", "moderate", "high", "extreme"]
Priority = Literal["urgent", "warning", "caution", "info"]
ZoneType = Literal[
    "safe_harbor",
    "marina",
    "anchorage",
    "emergency_services",
    "coast_guard",
    "medical",
    "restricted_area",
    "shallow_water",
    "reef_area",
    "piracy_risk",
]
SkippedCheck = Literal[
    "vessel_baseline",
    "nearby_zones",
    "weather",
    "hazard_zones",
    "equipment",
    "protocols",
    "emergency_services",
    "emergency_contacts",
    "active_recommendations",
]

PRIORITY_ORDER: tuple[Priority, ...] = ("urgent", "warning", "caution", "info")


class Position(BaseModel):
    """Latitude/longitude pair in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class SafetyRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    priority: Priority
    title: str
    description: str


class WeatherSnapshot(BaseModel):
    """Current conditions at one position, scored for small-craft safety."""

    model_config = ConfigDict(frozen=True)

    temperature: float | None = None
    wind_speed_knots: float = Field(ge=0)
    wind_direction_deg: float | None = None
    visibility_km: float = Field(ge=0)
    wave_height_m: float | None = None
    safety_score: float = Field(ge=0, le=100)
    risk_level: WeatherRiskLevel
    warnings: list[str] = Field(default_factory=list)


class SafetyZoneItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    zone_id: str
    name: str
    zone_type: ZoneType
    lat: float
    lng: float
    radius_km: float
    country: str | None = None
    distance_km: float | None = None


class RouteAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    distance_nm: float = Field(ge=0)
    bearing_deg: float = Field(ge=0, lt=360)
    estimated_time_hours: float = Field(ge=0)
    safety_score: float = Field(ge=0, le=100)
    risk_level: Literal["low", "moderate", "high"]
    hazards_count: int = Field(ge=0)
    weather_sample_point: Position
    weather_conditions: WeatherSnapshot | None = None


class EquipmentSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int = Field(ge=0)
    failed: int = Field(ge=0)
    expired: int = Field(ge=0)
    inspection_overdue: int = Field(ge=0)


class SafetyAssessment(BaseModel):
    """Outcome of one safety evaluation. Field names are the downstream contract."""

    model_config = ConfigDict(frozen=True)

    safety_score: float = Field(ge=0, le=100)
    risk_level: RiskLevel
    recommendations: list[SafetyRecommendation] = Field(default_factory=list)
    nearest_harbors: list[SafetyZoneItem] | None = None
    weather_data: WeatherSnapshot | None = None
    route_analysis: RouteAnalysis | None = None
    equipment_summary: EquipmentSummary | None = None
    skipped_checks: list[SkippedCheck] = Field(default_factory=list)


class SafetyProtocolItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    protocol_id: str
    protocol_type: str
    title: str
    severity_level: int
    steps: list[str] = Field(default_factory=list)


class EmergencyContactItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    contact_id: str
    name: str
    contact_type: str
    country: str
    phone: str | None = None
    vhf_channel: str | None = None
    priority_level: int = 0


class LocationRecommendationItem(BaseModel):
    """Recommendation record persisted for a vessel at a position."""

    model_config = ConfigDict(frozen=True)

    recommendation_id: str
    yacht_id: str
    recommendation_type: str
    priority: Priority
    title: str
    description: str
    immediate_actions: list[str] = Field(default_factory=list)
    recommended_locations: list[SafetyZoneItem] = Field(default_factory=list)
    location: Position
    time_sensitivity_hours: int = Field(ge=0)
    status: Literal["active", "dismissed", "completed"] = "active"
    created_at: datetime
    expires_at: datetime


class EmergencyResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    yacht_id: str
    emergency_type: str
    protocols: list[SafetyProtocolItem] = Field(default_factory=list)
    emergency_contacts: list[EmergencyContactItem] = Field(default_factory=list)
    nearest_services: list[SafetyZoneItem] = Field(default_factory=list)
    recommendation: LocationRecommendationItem
    recorded: bool
    skipped_checks: list[SkippedCheck] = Field(default_factory=list)


class WeatherUpdateResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    location: Position
    weather_data: WeatherSnapshot | None = None
    recorded: bool
    skipped_checks: list[SkippedCheck] = Field(default_factory=list)


class RecommendationsResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    yacht_id: str
    country: str
    recommendations: list[LocationRecommendationItem] = Field(default_factory=list)
    emergency_contacts: list[EmergencyContactItem] = Field(default_factory=list)
    weather_data: WeatherSnapshot | None = None
    skipped_checks: list[SkippedCheck] = Field(default_factory=list)


class AssessLocationRequest(BaseModel):
    yacht_id: str | None = Field(default=None, min_length=1)
    location: Position


class AnalyzeRouteRequest(BaseModel):
    yacht_id: str | None = Field(default=None, min_length=1)
    location: Position
    destination: Position


class EquipmentCheckRequest(BaseModel):
    yacht_id: str = Field(min_length=1)


class EmergencyRequest(BaseModel):
    yacht_id: str = Field(min_length=1)
    location: Position
    emergency_type: str = Field(min_length=1, max_length=64)


class WeatherUpdateRequest(BaseModel):
    location: Position


class RecommendationsRequest(BaseModel):
    yacht_id: str = Field(min_length=1)
    location: Position


class AssessmentResponse(BaseModel):
    """Envelope for location, route and equipment assessments."""

    data: SafetyAssessment
    yacht_id: str | None = None
    evaluated_at: datetime


class EmergencyResponseEnvelope(BaseModel):
    data: EmergencyResponse
    evaluated_at: datetime
    alerted: bool


class WeatherUpdateResponse(BaseModel):
    data: WeatherUpdateResult


class RecommendationsResponse(BaseModel):
    data: RecommendationsResult


class HealthResponse(BaseModel):
    """Health endpoint response."""

    status: Literal["ok"] = "ok"
    service: str
    version: str
    timestamp: datetime
