"""Rule-based anomaly engine for scalar vessel telemetry.

The engine runs independent rule passes over a sample window: operating range,
variance, trend, the parameter-specific failure pattern, divergence from the
historical baseline, and finally a contextual confidence adjustment. Each pass can
only strengthen the verdict: confidence and failure risk take the maximum across
passes and severity is only ever tightened.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence

from .history import TimedHistoryLookup
from .profiles import ParameterProfile
from .schemas import AnomalyVerdict, DeviceContext, MaintenanceSuggestion, Severity, SkippedCheck
from .stats import HistoricalBaseline, fit_trend, population_variance, window_mean, z_score


SEVERITY_ORDER: tuple[Severity, ...] = ("low", "medium", "high", "critical")
RISK_SEVERITY_BANDS: tuple[tuple[float, Severity], ...] = (
    (0.9, "critical"),
    (0.7, "high"),
    (0.4, "medium"),
)

RANGE_CONFIDENCE = 0.8
RANGE_RISK = 0.7
VARIANCE_CONFIDENCE = 0.6
VARIANCE_RISK = 0.5
TREND_CONFIDENCE = 0.5
RISING_TEMPERATURE_RISK = 0.8
FALLING_PRESSURE_RISK = 0.9
HISTORICAL_Z_THRESHOLD = 3.0
HISTORICAL_Z_SCALE = 5.0
ROUGH_WEATHER_CONFIDENCE_FACTOR = 0.8
PERFORMANCE_MODE_CONFIDENCE_FACTOR = 0.9
ROUGH_WEATHER_MARKERS = ("storm", "rough")
OUTPUT_PRECISION = 4

CONTINUE_MONITORING = "Continue monitoring"
MONITOR_PARAMETER_TRENDS = "Monitor parameter trends"


class InvalidEvaluationInput(ValueError):
    """Raised when a caller violates the evaluation contract."""


def severity_from_risk(risk: float) -> Severity:
    """Map a failure risk in [0, 1] onto the fixed severity bands."""

    for floor, severity in RISK_SEVERITY_BANDS:
        if risk >= floor:
            return severity
    return "low"


def stricter_severity(left: Severity, right: Severity) -> Severity:
    return left if SEVERITY_ORDER.index(left) >= SEVERITY_ORDER.index(right) else right


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class EvaluationOutcome:
    """Verdict plus the checks that had to be skipped."""

    verdict: AnomalyVerdict
    skipped_checks: tuple[SkippedCheck, ...] = ()


@dataclass
class _VerdictDraft:
    anomaly_detected: bool = False
    anomaly_type: str = "none"
    confidence: float = 0.0
    failure_risk: float = 0.0
    severity_override: Severity = "low"
    actions: list[str] = field(default_factory=list)
    maintenance: MaintenanceSuggestion | None = None

    def flag(self, anomaly_type: str) -> None:
        self.anomaly_detected = True
        self.anomaly_type = anomaly_type if self.anomaly_type == "none" else "multiple_anomalies"

    def raise_confidence(self, confidence: float) -> None:
        self.confidence = max(self.confidence, confidence)

    def raise_risk(self, risk: float) -> None:
        self.failure_risk = max(self.failure_risk, risk)

    def tighten(self, severity: Severity) -> None:
        self.severity_override = stricter_severity(self.severity_override, severity)

    def finish(self) -> AnomalyVerdict:
        risk = round(_clamp(self.failure_risk), OUTPUT_PRECISION)
        return AnomalyVerdict(
            anomaly_detected=self.anomaly_detected,
            anomaly_type=self.anomaly_type,
            confidence_score=round(_clamp(self.confidence), OUTPUT_PRECISION),
            severity=stricter_severity(severity_from_risk(risk), self.severity_override),
            predicted_failure_risk=risk,
            recommended_actions=self.actions or [CONTINUE_MONITORING],
            maintenance_suggestion=self.maintenance,
        )


class SignalAnomalyEngine:
    """Classifies a telemetry sample window into failure modes."""

    def __init__(
        self,
        profiles: Mapping[str, ParameterProfile],
        history: TimedHistoryLookup | None = None,
    ) -> None:
        self._profiles = profiles
        self._history = history

    @property
    def profiles(self) -> Mapping[str, ParameterProfile]:
        return self._profiles

    def set_history_for_tests(self, history: TimedHistoryLookup | None) -> None:
        """Swap the historical lookup so tests control baseline availability."""

        self._history = history

    def detect(
        self,
        *,
        vessel_id: str,
        parameter: str,
        values: Sequence[float],
        context: DeviceContext | dict | None = None,
        variance: float | None = None,
        mean: float | None = None,
    ) -> EvaluationOutcome:
        """Fetch the historical baseline (bounded, best effort) and evaluate."""

        self._validate(parameter, values)
        baseline: HistoricalBaseline | None = None
        skipped: tuple[SkippedCheck, ...] = ()

        if parameter in self._profiles and self._history is not None:
            baseline, available = self._history.fetch(vessel_id, parameter)
            if not available:
                skipped = ("historical_comparison",)

        verdict = self.evaluate(
            parameter,
            values,
            context,
            baseline=baseline,
            variance=variance,
            mean=mean,
        )
        return EvaluationOutcome(verdict=verdict, skipped_checks=skipped)

    def evaluate(
        self,
        parameter: str,
        values: Sequence[float],
        context: DeviceContext | dict | None = None,
        *,
        baseline: HistoricalBaseline | None = None,
        variance: float | None = None,
        mean: float | None = None,
    ) -> AnomalyVerdict:
        """Pure evaluation of one sample window."""

        self._validate(parameter, values)
        profile = self._profiles.get(parameter)
        if profile is None:
            return AnomalyVerdict(
                anomaly_detected=False,
                anomaly_type="unknown_parameter",
                confidence_score=0.0,
                severity="low",
                predicted_failure_risk=0.0,
                recommended_actions=[MONITOR_PARAMETER_TRENDS],
            )

        window = [float(value) for value in values]
        draft = _VerdictDraft()

        self._check_range(draft, profile, window)
        self._check_variance(draft, profile, window, variance)
        self._check_trend(draft, profile, window)
        self._check_pattern(draft, profile, window)
        if baseline is not None:
            self._check_historical(draft, window, baseline, mean)
        if context is not None:
            device_context = context if isinstance(context, DeviceContext) else DeviceContext.model_validate(context)
            self._adjust_for_context(draft, profile, device_context)

        return draft.finish()

    @staticmethod
    def _validate(parameter: str, values: Sequence[float]) -> None:
        if not parameter or not parameter.strip():
            raise InvalidEvaluationInput("parameter name must be non-empty")
        if values is None or len(values) == 0:
            raise InvalidEvaluationInput("sample window must contain at least one value")

    @staticmethod
    def _check_range(draft: _VerdictDraft, profile: ParameterProfile, window: list[float]) -> None:
        latest = window[-1]
        if profile.low <= latest <= profile.high:
            return
        draft.flag("out_of_range")
        draft.raise_confidence(RANGE_CONFIDENCE)
        draft.tighten("high")
        draft.raise_risk(RANGE_RISK)
        draft.actions.append(f"{profile.name} is outside normal operating range")

    @staticmethod
    def _check_variance(
        draft: _VerdictDraft,
        profile: ParameterProfile,
        window: list[float],
        variance: float | None,
    ) -> None:
        observed = population_variance(window) if variance is None else variance
        if observed <= profile.critical_variance_threshold:
            return
        draft.flag("high_variance")
        draft.raise_confidence(VARIANCE_CONFIDENCE)
        draft.tighten("medium")
        draft.raise_risk(VARIANCE_RISK)
        draft.actions.append(f"Excessive {profile.name} fluctuation detected")

    @staticmethod
    def _check_trend(draft: _VerdictDraft, profile: ParameterProfile, window: list[float]) -> None:
        # Slope is measured in operating spans per sample.
        normalized = [(value - profile.low) / profile.span for value in window]
        slope = fit_trend(normalized).slope
        if abs(slope) <= profile.trend_slope_threshold:
            return

        draft.flag("trend_anomaly")
        draft.raise_confidence(TREND_CONFIDENCE)
        if slope > 0 and "temperature" in profile.name:
            draft.tighten("high")
            draft.raise_risk(RISING_TEMPERATURE_RISK)
            draft.actions.append("Rising temperature trend - check cooling system")
        elif slope < 0 and "pressure" in profile.name:
            draft.tighten("critical")
            draft.raise_risk(FALLING_PRESSURE_RISK)
            draft.actions.append("Dropping pressure trend - immediate inspection required")
        else:
            direction = "Rising" if slope > 0 else "Falling"
            draft.actions.append(f"{direction} {profile.name} trend detected")

    @staticmethod
    def _pattern_fires(profile: ParameterProfile, window: list[float]) -> bool:
        rule = profile.pattern
        indicator = profile.pattern_indicator()
        if rule is None or indicator is None or indicator.threshold is None:
            return False

        latest = window[-1]
        if rule.comparison == "below":
            return latest < indicator.threshold
        if rule.comparison == "above":
            return latest > indicator.threshold

        if len(window) < 2:
            return False
        previous = window[-2]
        if previous <= 0:
            return False
        return (previous - latest) / previous > indicator.threshold

    def _check_pattern(self, draft: _VerdictDraft, profile: ParameterProfile, window: list[float]) -> None:
        if not self._pattern_fires(profile, window):
            return

        rule = profile.pattern
        indicator = profile.pattern_indicator()
        draft.anomaly_detected = True
        draft.anomaly_type = rule.anomaly_type
        draft.raise_confidence(rule.confidence)
        draft.raise_risk(indicator.risk)
        draft.actions.append(rule.action)
        draft.maintenance = MaintenanceSuggestion(
            urgency=rule.urgency,
            estimated_cost=rule.estimated_cost,
            parts_needed=list(rule.parts_needed) or None,
        )

    @staticmethod
    def _check_historical(
        draft: _VerdictDraft,
        window: list[float],
        baseline: HistoricalBaseline,
        mean: float | None,
    ) -> None:
        current_mean = window_mean(window) if mean is None else mean
        z = z_score(current_mean, baseline)
        if z is None or z <= HISTORICAL_Z_THRESHOLD:
            return

        draft.anomaly_detected = True
        if draft.anomaly_type == "none":
            draft.anomaly_type = "historical_deviation"
        draft.raise_confidence(min(z / HISTORICAL_Z_SCALE, 1.0))
        draft.actions.append(f"Current values are {z:.1f} standard deviations from historical average")

    @staticmethod
    def _adjust_for_context(draft: _VerdictDraft, profile: ParameterProfile, context: DeviceContext) -> None:
        notes: list[str] = []

        weather = (context.weather_conditions or "").lower()
        if any(marker in weather for marker in ROUGH_WEATHER_MARKERS):
            draft.confidence *= ROUGH_WEATHER_CONFIDENCE_FACTOR
            notes.append("Consider weather conditions in analysis")

        if context.operating_mode == "high_performance" and "temperature" in profile.name:
            draft.confidence *= PERFORMANCE_MODE_CONFIDENCE_FACTOR
            notes.append("Higher values expected in performance mode")

        # Notes qualify a finding; a clean window keeps the plain fallback action.
        if draft.anomaly_detected:
            draft.actions.extend(notes)
