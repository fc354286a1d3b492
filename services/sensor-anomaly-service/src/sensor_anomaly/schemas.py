"""Pydantic schemas for sensor anomaly detection API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat


AnomalyType = Literal[
    "none",
    "unknown_parameter",
    "out_of_range",
    "high_variance",
    "trend_anomaly",
    "multiple_anomalies",
    "historical_deviation",
    "sudden_rpm_drop",
    "low_oil_pressure",
    "engine_overheating",
    "charging_system_failure",
]
Severity = Literal["low", "medium", "high", "critical"]
Urgency = Literal["immediate", "within_24h", "within_week", "routine"]
SkippedCheck = Literal["historical_comparison"]


class MaintenanceSuggestion(BaseModel):
    """Maintenance action attached to a failure pattern."""

    model_config = ConfigDict(frozen=True)

    urgency: Urgency
    estimated_cost: float = Field(ge=0)
    parts_needed: list[str] | None = None


class AnomalyVerdict(BaseModel):
    """Outcome of one anomaly evaluation. Field names are the downstream contract."""

    model_config = ConfigDict(frozen=True)

    anomaly_detected: bool
    anomaly_type: AnomalyType
    confidence_score: float = Field(ge=0, le=1)
    severity: Severity
    predicted_failure_risk: float = Field(ge=0, le=1)
    recommended_actions: list[str] = Field(min_length=1)
    maintenance_suggestion: MaintenanceSuggestion | None = None


class GeoPoint(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class DeviceContext(BaseModel):
    """Optional operating context reported alongside a sample window."""

    weather_conditions: str | None = None
    operating_mode: str | None = None
    location: GeoPoint | None = None


class AnomalyDetectRequest(BaseModel):
    """Request payload for anomaly detection."""

    yacht_id: str = Field(min_length=1)
    parameter: str = Field(min_length=1)
    values: list[FiniteFloat] = Field(min_length=1)
    variance: FiniteFloat | None = Field(default=None, ge=0)
    mean: FiniteFloat | None = None
    detection_time: datetime | None = None
    device_id: str | None = Field(default=None, min_length=1)
    context: DeviceContext | None = None


class AnomalyDetectData(BaseModel):
    """Anomaly detection response payload."""

    yacht_id: str
    parameter: str
    device_id: str | None = None
    verdict: AnomalyVerdict
    skipped_checks: list[SkippedCheck] = Field(default_factory=list)
    recorded: bool
    alerted: bool
    evaluated_at: datetime


class AnomalyDetectResponse(BaseModel):
    """Envelope for anomaly detection response."""

    data: AnomalyDetectData


class FailureIndicatorItem(BaseModel):
    threshold: float | None = None
    rate: float | None = None
    variance_threshold: float | None = None
    duration_minutes: int | None = None
    impossible_values: bool | None = None
    risk: float = Field(ge=0, le=1)


class ParameterProfileItem(BaseModel):
    parameter: str
    normal_range: tuple[float, float]
    critical_variance_threshold: float
    trend_slope_threshold: float
    failure_indicators: dict[str, FailureIndicatorItem]


class ProfilesResponse(BaseModel):
    items: list[ParameterProfileItem]


class DetectionItem(BaseModel):
    """Recorded anomaly detection as persisted by the recording sink."""

    detection_id: str
    yacht_id: str
    device_id: str | None
    parameter: str
    verdict: AnomalyVerdict
    values: list[float]
    detected_at: datetime
    recorded_at: datetime


class DetectionListResponse(BaseModel):
    items: list[DetectionItem]


class MaintenancePredictionItem(BaseModel):
    yacht_id: str
    device_id: str | None
    parameter: str
    urgency: Urgency
    estimated_cost: float
    parts_needed: list[str] | None
    confidence_score: float
    anomaly_type: AnomalyType
    failure_risk: float
    updated_at: datetime


class MaintenanceListResponse(BaseModel):
    items: list[MaintenancePredictionItem]


class HealthResponse(BaseModel):
    """Health endpoint response."""

    status: Literal["ok"] = "ok"
    service: str
    version: str
    timestamp: datetime
