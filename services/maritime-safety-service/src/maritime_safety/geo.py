"""Great-circle helpers."""

from __future__ import annotations

import math

from .schemas import Position

EARTH_RADIUS_NM = 3440.065
EARTH_RADIUS_KM = 6371.0


def _haversine_central_angle(start: Position, end: Position) -> float:
    d_lat = math.radians(end.lat - start.lat)
    d_lng = math.radians(end.lng - start.lng)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(start.lat)) * math.cos(math.radians(end.lat)) * math.sin(d_lng / 2) ** 2
    )
    return 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_nm(start: Position, end: Position) -> float:
    return EARTH_RADIUS_NM * _haversine_central_angle(start, end)


def distance_km(start: Position, end: Position) -> float:
    return EARTH_RADIUS_KM * _haversine_central_angle(start, end)


def initial_bearing_deg(start: Position, end: Position) -> float:
    """Initial true bearing from ``start`` to ``end`` in [0, 360)."""

    lat1 = math.radians(start.lat)
    lat2 = math.radians(end.lat)
    d_lng = math.radians(end.lng - start.lng)
    y = math.sin(d_lng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lng)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def midpoint(start: Position, end: Position) -> Position:
    """Arithmetic mid-point of the two coordinates, used as the single route weather sample."""

    return Position(lat=(start.lat + end.lat) / 2, lng=(start.lng + end.lng) / 2)


def country_for_position(position: Position) -> str:
    """Coarse country lookup used to pick regional emergency contacts."""

    if 30 < position.lat < 50 and -10 < position.lng < 30:
        return "France"
    return "International"
