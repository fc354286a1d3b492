"""Weather provider client and small-craft weather scoring."""

from __future__ import annotations

import json
import socket
from typing import Any, Mapping, Protocol
from urllib import error as url_error
from urllib import parse as url_parse
from urllib import request as url_request

from .schemas import Position, WeatherRiskLevel, WeatherSnapshot


MS_TO_KNOTS = 1.944
# OpenWeather omits visibility above its 10 km reporting ceiling.
DEFAULT_VISIBILITY_M = 10_000.0

STRONG_WIND_KNOTS = 25.0
FRESH_WIND_KNOTS = 15.0
STORM_WIND_KNOTS = 35.0
FOG_VISIBILITY_KM = 1.0
POOR_VISIBILITY_KM = 2.0
HAZY_VISIBILITY_KM = 5.0


class WeatherProviderError(RuntimeError):
    """Raised when current conditions cannot be fetched or parsed."""


class WeatherProvider(Protocol):
    def current_weather(self, position: Position) -> WeatherSnapshot | None:
        """Return current conditions, or None when the provider is not configured."""


def weather_safety_score(wind_knots: float, visibility_km: float, *, rain: bool, snow: bool) -> float:
    score = 100.0
    if wind_knots > STRONG_WIND_KNOTS:
        score -= 30
    elif wind_knots > FRESH_WIND_KNOTS:
        score -= 15

    if visibility_km < FOG_VISIBILITY_KM:
        score -= 40
    elif visibility_km < HAZY_VISIBILITY_KM:
        score -= 20

    if rain:
        score -= 10
    if snow:
        score -= 20
    return max(score, 0.0)


def weather_risk_level(wind_knots: float, visibility_km: float) -> WeatherRiskLevel:
    if wind_knots > STORM_WIND_KNOTS or visibility_km < FOG_VISIBILITY_KM:
        return "extreme"
    if wind_knots > STRONG_WIND_KNOTS or visibility_km < POOR_VISIBILITY_KM:
        return "high"
    if wind_knots > FRESH_WIND_KNOTS or visibility_km < HAZY_VISIBILITY_KM:
        return "moderate"
    return "low"


def weather_warnings(wind_knots: float, visibility_km: float, *, rain: bool) -> list[str]:
    warnings: list[str] = []
    if wind_knots > STRONG_WIND_KNOTS:
        warnings.append("Strong winds")
    if visibility_km < POOR_VISIBILITY_KM:
        warnings.append("Poor visibility")
    if rain:
        warnings.append("Rain conditions")
    return warnings


def snapshot_from_observation(raw: Mapping[str, Any]) -> WeatherSnapshot:
    """Convert an OpenWeather current-weather document into a scored snapshot."""

    try:
        wind = raw.get("wind") or {}
        wind_knots = float(wind.get("speed") or 0.0) * MS_TO_KNOTS
        visibility_raw = raw.get("visibility")
        visibility_km = float(DEFAULT_VISIBILITY_M if visibility_raw is None else visibility_raw) / 1000.0
        main = raw.get("main") or {}
        temperature = main.get("temp")
        wind_direction = wind.get("deg")
    except (AttributeError, TypeError, ValueError) as exc:
        raise WeatherProviderError(f"malformed weather observation: {exc}") from exc

    rain = bool(raw.get("rain"))
    snow = bool(raw.get("snow"))
    return WeatherSnapshot(
        temperature=None if temperature is None else float(temperature),
        wind_speed_knots=round(wind_knots, 4),
        wind_direction_deg=None if wind_direction is None else float(wind_direction),
        visibility_km=round(visibility_km, 4),
        wave_height_m=None,
        safety_score=weather_safety_score(wind_knots, visibility_km, rain=rain, snow=snow),
        risk_level=weather_risk_level(wind_knots, visibility_km),
        warnings=weather_warnings(wind_knots, visibility_km, rain=rain),
    )


class OpenWeatherClient:
    """Current-weather client for the OpenWeather REST API."""

    def __init__(self, *, api_key: str | None, base_url: str, timeout_seconds: float) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = max(timeout_seconds, 0.1)

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def current_weather(self, position: Position) -> WeatherSnapshot | None:
        if not self._api_key:
            return None

        query = url_parse.urlencode(
            {"lat": position.lat, "lon": position.lng, "appid": self._api_key, "units": "metric"}
        )
        request = url_request.Request(
            url=f"{self._base_url}/weather?{query}",
            method="GET",
            headers={"Accept": "application/json"},
        )

        try:
            with url_request.urlopen(request, timeout=self._timeout_seconds) as response:
                response_body = response.read().decode("utf-8")
        except url_error.HTTPError as exc:
            details = exc.read().decode("utf-8", errors="ignore")
            raise WeatherProviderError(f"weather_http_error status={exc.code} body={details[:200]}") from exc
        except url_error.URLError as exc:
            raise WeatherProviderError(f"weather_unreachable reason={exc.reason}") from exc
        except (TimeoutError, socket.timeout) as exc:
            raise WeatherProviderError(f"weather_timeout after {self._timeout_seconds:.1f}s") from exc
        except OSError as exc:
            raise WeatherProviderError(f"weather_io_error {exc}") from exc

        try:
            body = json.loads(response_body)
        except json.JSONDecodeError as exc:
            raise WeatherProviderError("weather_invalid_json_response") from exc
        if not isinstance(body, dict):
            raise WeatherProviderError("weather_invalid_response_shape")

        return snapshot_from_observation(body)
