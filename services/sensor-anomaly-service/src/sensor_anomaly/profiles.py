"""Parameter profiles: operating ranges and failure-pattern rules per telemetry parameter.

Profiles are parsed once at process start into a read-only mapping. The built-in
table can be replaced by a JSON file with the same shape (``profiles_path``).
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal, Mapping


PatternComparison = Literal["drop_ratio_above", "below", "above"]

DEFAULT_TREND_SLOPE_THRESHOLD = 0.1


class ProfileConfigurationError(ValueError):
    """Raised when a profile table violates its invariants."""


@dataclass(frozen=True)
class FailureIndicator:
    """One named failure indicator with its thresholds and risk weight."""

    risk: float
    threshold: float | None = None
    rate: float | None = None
    variance_threshold: float | None = None
    duration_minutes: int | None = None
    impossible_values: bool | None = None


@dataclass(frozen=True)
class PatternRule:
    """Parameter-specific failure pattern evaluated against the latest sample."""

    indicator: str
    comparison: PatternComparison
    anomaly_type: str
    confidence: float
    action: str
    urgency: str
    estimated_cost: float
    parts_needed: tuple[str, ...]


@dataclass(frozen=True)
class ParameterProfile:
    """Static configuration record for one telemetry parameter."""

    name: str
    low: float
    high: float
    critical_variance_threshold: float
    failure_indicators: Mapping[str, FailureIndicator]
    trend_slope_threshold: float = DEFAULT_TREND_SLOPE_THRESHOLD
    pattern: PatternRule | None = None

    @property
    def span(self) -> float:
        return self.high - self.low

    def pattern_indicator(self) -> FailureIndicator | None:
        if self.pattern is None:
            return None
        return self.failure_indicators[self.pattern.indicator]


DEFAULT_PROFILE_DATA: dict[str, dict[str, Any]] = {
    "engine_speed": {
        "normal_range": [600, 4000],
        "critical_variance_threshold": 500,
        "failure_indicators": {
            "sudden_drop": {"threshold": 0.3, "risk": 0.8},
            "excessive_variance": {"threshold": 200, "risk": 0.6},
            "prolonged_high": {"threshold": 3500, "duration_minutes": 30, "risk": 0.7},
        },
        "pattern": {
            "indicator": "sudden_drop",
            "comparison": "drop_ratio_above",
            "anomaly_type": "sudden_rpm_drop",
            "confidence": 0.8,
            "action": "Engine RPM dropped suddenly - check fuel supply and ignition",
            "urgency": "immediate",
            "estimated_cost": 500,
            "parts_needed": ["fuel filter", "spark plugs"],
        },
    },
    "oil_pressure": {
        "normal_range": [200, 600],
        "critical_variance_threshold": 50,
        "failure_indicators": {
            "low_pressure": {"threshold": 150, "risk": 0.9},
            "pressure_drop": {"rate": 0.2, "risk": 0.8},
            "fluctuation": {"variance_threshold": 100, "risk": 0.6},
        },
        "pattern": {
            "indicator": "low_pressure",
            "comparison": "below",
            "anomaly_type": "low_oil_pressure",
            "confidence": 0.9,
            "action": "CRITICAL: Low oil pressure - stop engine immediately",
            "urgency": "immediate",
            "estimated_cost": 200,
            "parts_needed": ["oil", "oil filter", "pressure sensor"],
        },
    },
    "coolant_temperature": {
        "normal_range": [60, 95],
        "critical_variance_threshold": 10,
        "failure_indicators": {
            "overheating": {"threshold": 100, "risk": 0.95},
            "rapid_increase": {"rate": 0.5, "risk": 0.8},
            "temperature_instability": {"variance_threshold": 15, "risk": 0.7},
        },
        "pattern": {
            "indicator": "overheating",
            "comparison": "above",
            "anomaly_type": "engine_overheating",
            "confidence": 0.95,
            "action": "ENGINE OVERHEATING - reduce load and check cooling system",
            "urgency": "immediate",
            "estimated_cost": 800,
            "parts_needed": ["coolant", "thermostat", "water pump"],
        },
    },
    "fuel_level": {
        "normal_range": [10, 100],
        "critical_variance_threshold": 5,
        "failure_indicators": {
            "rapid_consumption": {"rate": 0.1, "risk": 0.6},
            "sensor_malfunction": {"impossible_values": True, "risk": 0.4},
        },
    },
    "alternator_voltage": {
        "normal_range": [13.5, 14.5],
        "critical_variance_threshold": 0.5,
        "failure_indicators": {
            "undercharging": {"threshold": 13.0, "risk": 0.7},
            "overcharging": {"threshold": 15.0, "risk": 0.8},
            "voltage_instability": {"variance_threshold": 1.0, "risk": 0.6},
        },
        "pattern": {
            "indicator": "undercharging",
            "comparison": "below",
            "anomaly_type": "charging_system_failure",
            "confidence": 0.7,
            "action": "Charging system underperforming - check alternator and battery",
            "urgency": "within_24h",
            "estimated_cost": 400,
            "parts_needed": ["alternator belt", "voltage regulator"],
        },
    },
}

_PATTERN_ANOMALY_TYPES = {
    "sudden_rpm_drop",
    "low_oil_pressure",
    "engine_overheating",
    "charging_system_failure",
}
_URGENCIES = {"immediate", "within_24h", "within_week", "routine"}
_COMPARISONS = {"drop_ratio_above", "below", "above"}


def _unit_interval(value: float, what: str) -> float:
    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise ProfileConfigurationError(f"{what} must lie in [0, 1], got {value}")
    return value


def _parse_indicator(parameter: str, name: str, raw: dict[str, Any]) -> FailureIndicator:
    if "risk" not in raw:
        raise ProfileConfigurationError(f"{parameter}.{name}: missing risk weight")
    return FailureIndicator(
        risk=_unit_interval(raw["risk"], f"{parameter}.{name}.risk"),
        threshold=None if raw.get("threshold") is None else float(raw["threshold"]),
        rate=None if raw.get("rate") is None else float(raw["rate"]),
        variance_threshold=None if raw.get("variance_threshold") is None else float(raw["variance_threshold"]),
        duration_minutes=raw.get("duration_minutes"),
        impossible_values=raw.get("impossible_values"),
    )


def _parse_pattern(parameter: str, raw: dict[str, Any], indicators: dict[str, FailureIndicator]) -> PatternRule:
    indicator_name = raw["indicator"]
    indicator = indicators.get(indicator_name)
    if indicator is None or indicator.threshold is None:
        raise ProfileConfigurationError(f"{parameter}: pattern needs indicator '{indicator_name}' with a threshold")
    if raw["comparison"] not in _COMPARISONS:
        raise ProfileConfigurationError(f"{parameter}: unsupported comparison '{raw['comparison']}'")
    if raw["anomaly_type"] not in _PATTERN_ANOMALY_TYPES:
        raise ProfileConfigurationError(f"{parameter}: unsupported anomaly type '{raw['anomaly_type']}'")
    if raw["urgency"] not in _URGENCIES:
        raise ProfileConfigurationError(f"{parameter}: unsupported urgency '{raw['urgency']}'")
    estimated_cost = float(raw.get("estimated_cost", 0))
    if estimated_cost < 0:
        raise ProfileConfigurationError(f"{parameter}: estimated_cost must be non-negative")

    return PatternRule(
        indicator=indicator_name,
        comparison=raw["comparison"],
        anomaly_type=raw["anomaly_type"],
        confidence=_unit_interval(raw["confidence"], f"{parameter}.pattern.confidence"),
        action=str(raw["action"]),
        urgency=raw["urgency"],
        estimated_cost=estimated_cost,
        parts_needed=tuple(raw.get("parts_needed") or ()),
    )


def parse_profile(name: str, raw: dict[str, Any]) -> ParameterProfile:
    """Validate and freeze one raw profile entry."""

    try:
        low, high = (float(bound) for bound in raw["normal_range"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ProfileConfigurationError(f"{name}: normal_range must be a [low, high] pair") from exc
    if not low < high:
        raise ProfileConfigurationError(f"{name}: normal_range low must be below high")

    variance_threshold = float(raw["critical_variance_threshold"])
    if variance_threshold < 0:
        raise ProfileConfigurationError(f"{name}: critical_variance_threshold must be non-negative")

    indicators = {
        indicator_name: _parse_indicator(name, indicator_name, indicator_raw)
        for indicator_name, indicator_raw in (raw.get("failure_indicators") or {}).items()
    }
    pattern = _parse_pattern(name, raw["pattern"], indicators) if raw.get("pattern") else None

    return ParameterProfile(
        name=name,
        low=low,
        high=high,
        critical_variance_threshold=variance_threshold,
        failure_indicators=MappingProxyType(indicators),
        trend_slope_threshold=float(raw.get("trend_slope_threshold", DEFAULT_TREND_SLOPE_THRESHOLD)),
        pattern=pattern,
    )


def parse_profiles(raw: dict[str, dict[str, Any]]) -> Mapping[str, ParameterProfile]:
    """Build the read-only parameter-name -> profile mapping."""

    if not isinstance(raw, dict) or not raw:
        raise ProfileConfigurationError("profile table must be a non-empty object")
    return MappingProxyType({name: parse_profile(name, entry) for name, entry in raw.items()})


def load_profiles(path: str | None = None) -> Mapping[str, ParameterProfile]:
    """Load the profile table from ``path`` or fall back to the built-in defaults."""

    if not path:
        return parse_profiles(DEFAULT_PROFILE_DATA)

    try:
        raw = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise ProfileConfigurationError(f"cannot read profile table from {path}: {exc}") from exc
    return parse_profiles(raw)
