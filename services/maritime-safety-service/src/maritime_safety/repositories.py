"""Persistence operations for safety reference data and safety records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .geo import distance_km
from .models import (
    EmergencyContact,
    LocationRecommendation,
    SafetyEquipment,
    SafetyProtocol,
    SafetyZone,
    VesselSafetyBaseline,
    WeatherCondition,
)
from .schemas import (
    EmergencyContactItem,
    LocationRecommendationItem,
    Position,
    SafetyProtocolItem,
    SafetyZoneItem,
    WeatherSnapshot,
)

T = TypeVar("T")


class ReferenceStoreError(RuntimeError):
    """Raised when safety reference data cannot be read or written."""


@dataclass(frozen=True)
class EquipmentRecord:
    equipment_id: str
    name: str
    equipment_type: str
    operational_status: str
    next_inspection_due: datetime | None


def _aware(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _zone_item(zone: SafetyZone, distance: float | None = None) -> SafetyZoneItem:
    return SafetyZoneItem(
        zone_id=zone.id,
        name=zone.name,
        zone_type=zone.zone_type,
        lat=zone.center_lat,
        lng=zone.center_lng,
        radius_km=zone.radius_km,
        country=zone.country,
        distance_km=None if distance is None else round(distance, 3),
    )


def _recommendation_item(row: LocationRecommendation) -> LocationRecommendationItem:
    return LocationRecommendationItem(
        recommendation_id=row.id,
        yacht_id=row.yacht_id,
        recommendation_type=row.recommendation_type,
        priority=row.priority_level,
        title=row.recommendation_title,
        description=row.recommendation_description,
        immediate_actions=list(row.immediate_actions or []),
        recommended_locations=list(row.recommended_locations or []),
        location=Position(lat=row.current_lat, lng=row.current_lng),
        time_sensitivity_hours=row.time_sensitivity,
        status=row.recommendation_status,
        created_at=_aware(row.created_at),
        expires_at=_aware(row.expires_at),
    )


class SafetyReferenceStore:
    """Read-only lookups against zones, equipment, protocols, contacts and baselines.

    Every call opens its own session so lookups can run concurrently on worker threads.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def _run(self, operation: str, work: Callable[[Session], T]) -> T:
        try:
            with self._session_factory() as session:
                return work(session)
        except SQLAlchemyError as exc:
            raise ReferenceStoreError(f"{operation} failed: {exc.__class__.__name__}") from exc

    def vessel_baseline(self, vessel_id: str) -> float | None:
        def work(session: Session) -> float | None:
            row = session.get(VesselSafetyBaseline, vessel_id)
            return None if row is None else float(row.overall_score)

        return self._run("vessel_baseline", work)

    def nearest_zones(
        self,
        position: Position,
        zone_types: Iterable[str],
        max_distance_km: float,
    ) -> list[SafetyZoneItem]:
        """Active zones of the given types whose edge lies within ``max_distance_km``, nearest first."""

        types = list(zone_types)

        def work(session: Session) -> list[SafetyZoneItem]:
            stmt = select(SafetyZone).where(SafetyZone.is_active.is_(True)).where(SafetyZone.zone_type.in_(types))
            found: list[tuple[float, SafetyZoneItem]] = []
            for zone in session.scalars(stmt):
                centre = Position(lat=zone.center_lat, lng=zone.center_lng)
                edge_distance = max(distance_km(position, centre) - zone.radius_km, 0.0)
                if edge_distance <= max_distance_km:
                    found.append((edge_distance, _zone_item(zone, edge_distance)))
            found.sort(key=lambda pair: (pair[0], pair[1].name))
            return [item for _, item in found]

        return self._run("nearest_zones", work)

    def active_zones_by_type(self, zone_types: Iterable[str]) -> list[SafetyZoneItem]:
        types = list(zone_types)

        def work(session: Session) -> list[SafetyZoneItem]:
            stmt = (
                select(SafetyZone)
                .where(SafetyZone.is_active.is_(True))
                .where(SafetyZone.zone_type.in_(types))
                .order_by(SafetyZone.name)
            )
            return [_zone_item(zone) for zone in session.scalars(stmt)]

        return self._run("active_zones_by_type", work)

    def equipment_for(self, vessel_id: str) -> list[EquipmentRecord]:
        def work(session: Session) -> list[EquipmentRecord]:
            stmt = select(SafetyEquipment).where(SafetyEquipment.yacht_id == vessel_id).order_by(SafetyEquipment.name)
            return [
                EquipmentRecord(
                    equipment_id=row.id,
                    name=row.name,
                    equipment_type=row.equipment_type,
                    operational_status=row.operational_status,
                    next_inspection_due=_aware(row.next_inspection_due),
                )
                for row in session.scalars(stmt)
            ]

        return self._run("equipment_for", work)

    def protocols_for(self, emergency_type: str) -> list[SafetyProtocolItem]:
        def work(session: Session) -> list[SafetyProtocolItem]:
            stmt = (
                select(SafetyProtocol)
                .where(SafetyProtocol.protocol_type == emergency_type)
                .where(SafetyProtocol.is_active.is_(True))
                .order_by(SafetyProtocol.severity_level.desc(), SafetyProtocol.title)
            )
            return [
                SafetyProtocolItem(
                    protocol_id=row.id,
                    protocol_type=row.protocol_type,
                    title=row.title,
                    severity_level=row.severity_level,
                    steps=list(row.steps or []),
                )
                for row in session.scalars(stmt)
            ]

        return self._run("protocols_for", work)

    def emergency_contacts(
        self,
        *,
        contact_types: Iterable[str] | None = None,
        country: str | None = None,
    ) -> list[EmergencyContactItem]:
        types = None if contact_types is None else list(contact_types)

        def work(session: Session) -> list[EmergencyContactItem]:
            stmt = select(EmergencyContact).where(EmergencyContact.is_active.is_(True))
            if types is not None:
                stmt = stmt.where(EmergencyContact.contact_type.in_(types))
            if country is not None:
                stmt = stmt.where(EmergencyContact.country == country)
            stmt = stmt.order_by(EmergencyContact.priority_level.desc(), EmergencyContact.name)
            return [
                EmergencyContactItem(
                    contact_id=row.id,
                    name=row.name,
                    contact_type=row.contact_type,
                    country=row.country,
                    phone=row.phone,
                    vhf_channel=row.vhf_channel,
                    priority_level=row.priority_level,
                )
                for row in session.scalars(stmt)
            ]

        return self._run("emergency_contacts", work)

    def active_recommendations(self, vessel_id: str, now: datetime) -> list[LocationRecommendationItem]:
        def work(session: Session) -> list[LocationRecommendationItem]:
            stmt = (
                select(LocationRecommendation)
                .where(LocationRecommendation.yacht_id == vessel_id)
                .where(LocationRecommendation.recommendation_status == "active")
                .where(LocationRecommendation.expires_at > now)
                .order_by(LocationRecommendation.created_at.desc())
            )
            return [_recommendation_item(row) for row in session.scalars(stmt)]

        return self._run("active_recommendations", work)


class SafetyRecordRepository:
    """Writes recommendation records and weather observations."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def add_recommendation(self, item: LocationRecommendationItem) -> LocationRecommendationItem:
        row = LocationRecommendation(
            id=item.recommendation_id,
            yacht_id=item.yacht_id,
            current_lat=item.location.lat,
            current_lng=item.location.lng,
            recommendation_type=item.recommendation_type,
            priority_level=item.priority,
            recommendation_title=item.title,
            recommendation_description=item.description,
            immediate_actions=list(item.immediate_actions),
            recommended_locations=[zone.model_dump(mode="json") for zone in item.recommended_locations],
            time_sensitivity=item.time_sensitivity_hours,
            recommendation_status=item.status,
            created_at=item.created_at,
            expires_at=item.expires_at,
        )
        self._commit("add_recommendation", row)
        return item

    def record_weather(self, position: Position, snapshot: WeatherSnapshot, observed_at: datetime) -> str:
        row = WeatherCondition(
            lat=position.lat,
            lng=position.lng,
            observation_time=observed_at,
            data_source="openweather",
            temperature_c=snapshot.temperature,
            wind_speed_kts=snapshot.wind_speed_knots,
            wind_direction_deg=snapshot.wind_direction_deg,
            wave_height_m=snapshot.wave_height_m,
            visibility_km=snapshot.visibility_km,
            safety_score=snapshot.safety_score,
            risk_level=snapshot.risk_level,
            weather_warnings=list(snapshot.warnings),
        )
        self._commit("record_weather", row)
        return row.id

    def _commit(self, operation: str, row: object) -> None:
        try:
            with self._session_factory() as session:
                session.add(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise ReferenceStoreError(f"{operation} failed: {exc.__class__.__name__}") from exc
