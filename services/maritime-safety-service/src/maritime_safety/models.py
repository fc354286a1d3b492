"""SQLAlchemy models for safety reference data and safety records."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Float, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class SafetyZone(Base):
    """Named circular region used for proximity queries."""

    __tablename__ = "safety_zones"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    zone_type: Mapped[str] = mapped_column(String(32), nullable=False)
    center_lat: Mapped[float] = mapped_column(Float, nullable=False)
    center_lng: Mapped[float] = mapped_column(Float, nullable=False)
    radius_km: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    country: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_safety_zones_type_active", "zone_type", "is_active"),
        CheckConstraint(
            "zone_type IN ('safe_harbor', 'marina', 'anchorage', 'emergency_services', 'coast_guard', "
            "'medical', 'restricted_area', 'shallow_water', 'reef_area', 'piracy_risk')",
            name="ck_safety_zones_zone_type",
        ),
        CheckConstraint("center_lat BETWEEN -90 AND 90", name="ck_safety_zones_lat"),
        CheckConstraint("center_lng BETWEEN -180 AND 180", name="ck_safety_zones_lng"),
        CheckConstraint("radius_km >= 0", name="ck_safety_zones_radius"),
    )


class SafetyEquipment(Base):
    """Safety equipment carried aboard a vessel."""

    __tablename__ = "safety_equipment"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    yacht_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    equipment_type: Mapped[str] = mapped_column(String(64), nullable=False)
    operational_status: Mapped[str] = mapped_column(String(32), nullable=False, default="operational")
    next_inspection_due: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class SafetyProtocol(Base):
    """Step-by-step response procedure for one emergency type."""

    __tablename__ = "safety_protocols"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    protocol_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    severity_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    steps: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class EmergencyContact(Base):
    __tablename__ = "emergency_contacts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    contact_type: Mapped[str] = mapped_column(String(64), nullable=False)
    country: Mapped[str] = mapped_column(String(64), nullable=False, default="International")
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    vhf_channel: Mapped[str | None] = mapped_column(String(16), nullable=True)
    priority_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class VesselSafetyBaseline(Base):
    """Stored baseline safety score per vessel."""

    __tablename__ = "vessel_safety_baselines"

    yacht_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    overall_score: Mapped[float] = mapped_column(Float, nullable=False)
    assessed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("overall_score BETWEEN 0 AND 100", name="ck_vessel_safety_baselines_score"),
    )


class LocationRecommendation(Base):
    """Recommendation issued to a vessel at a position."""

    __tablename__ = "location_recommendations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    yacht_id: Mapped[str] = mapped_column(String(128), nullable=False)
    current_lat: Mapped[float] = mapped_column(Float, nullable=False)
    current_lng: Mapped[float] = mapped_column(Float, nullable=False)
    recommendation_type: Mapped[str] = mapped_column(String(64), nullable=False)
    priority_level: Mapped[str] = mapped_column(String(16), nullable=False)
    recommendation_title: Mapped[str] = mapped_column(String(200), nullable=False)
    recommendation_description: Mapped[str] = mapped_column(Text, nullable=False)
    immediate_actions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    recommended_locations: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    time_sensitivity: Mapped[int] = mapped_column(Integer, nullable=False)
    recommendation_status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_location_recommendations_active", "yacht_id", "recommendation_status", "expires_at"),
        CheckConstraint(
            "priority_level IN ('urgent', 'warning', 'caution', 'info')",
            name="ck_location_recommendations_priority",
        ),
        CheckConstraint(
            "recommendation_status IN ('active', 'dismissed', 'completed')",
            name="ck_location_recommendations_status",
        ),
    )


class WeatherCondition(Base):
    """Recorded weather observation."""

    __tablename__ = "weather_conditions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)
    observation_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    data_source: Mapped[str] = mapped_column(String(32), nullable=False, default="openweather")
    temperature_c: Mapped[float | None] = mapped_column(Float, nullable=True)
    wind_speed_kts: Mapped[float] = mapped_column(Float, nullable=False)
    wind_direction_deg: Mapped[float | None] = mapped_column(Float, nullable=True)
    wave_height_m: Mapped[float | None] = mapped_column(Float, nullable=True)
    visibility_km: Mapped[float] = mapped_column(Float, nullable=False)
    safety_score: Mapped[float] = mapped_column(Float, nullable=False)
    risk_level: Mapped[str] = mapped_column(String(16), nullable=False)
    weather_warnings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
