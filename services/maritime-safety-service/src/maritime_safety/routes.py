"""HTTP routes for maritime safety service."""

from datetime import datetime, timezone
import logging
from time import perf_counter
from typing import Any, Callable, TypeVar
from uuid import uuid4

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse

from .config import get_settings
from .db import SessionLocal
from .engine import InvalidEvaluationInput, SafetyRiskEngine
from .errors import ApiError
from .events import (
    AssessmentKind,
    build_emergency_alert_command,
    build_vessel_emergency_declared_event,
    build_vessel_safety_assessed_event,
)
from .lookups import LookupFanOut
from .observability import get_metrics, log_event
from .repositories import SafetyRecordRepository, SafetyReferenceStore
from .schemas import (
    AnalyzeRouteRequest,
    AssessLocationRequest,
    AssessmentResponse,
    EmergencyRequest,
    EmergencyResponseEnvelope,
    EquipmentCheckRequest,
    HealthResponse,
    Position,
    RecommendationsRequest,
    RecommendationsResponse,
    SafetyAssessment,
    WeatherUpdateRequest,
    WeatherUpdateResponse,
)
from .sink import SafetySink
from .weather import OpenWeatherClient

router = APIRouter()
logger = logging.getLogger("maritime_safety")

T = TypeVar("T")

_settings = get_settings()
_metrics = get_metrics()
_reference = SafetyReferenceStore(SessionLocal)
_records = SafetyRecordRepository(SessionLocal)
_sink = SafetySink(settings=_settings, records=_records, metrics=_metrics)
_engine = SafetyRiskEngine(
    reference=_reference,
    weather=OpenWeatherClient(
        api_key=_settings.openweather_api_key,
        base_url=_settings.openweather_base_url,
        timeout_seconds=_settings.weather_timeout_seconds,
    ),
    lookups=LookupFanOut(
        timeout_seconds=_settings.lookup_timeout_seconds,
        max_workers=_settings.lookup_workers,
    ),
    sink=_sink,
)


def _trace_id(request: Request) -> str:
    return request.headers.get("x-trace-id", "").strip() or uuid4().hex


def _evaluate(operation: str, trace_id: str, evaluate: Callable[[], T], **fields: Any) -> tuple[T, float]:
    """Run one engine operation with request metrics, logging and error mapping."""

    started = perf_counter()
    if _settings.metrics_enabled:
        _metrics.record_request(operation)
    log_event(logger, "safety_request", operation=operation, trace_id=trace_id, **fields)

    try:
        result = evaluate()
    except InvalidEvaluationInput as exc:
        latency_ms = (perf_counter() - started) * 1000.0
        if _settings.metrics_enabled:
            _metrics.record_error(latency_ms)
        log_event(logger, "safety_request_rejected", operation=operation, trace_id=trace_id, error=str(exc))
        raise ApiError(status_code=400, code="INVALID_INPUT", message=str(exc), trace_id=trace_id) from exc
    except Exception as exc:  # pragma: no cover
        latency_ms = (perf_counter() - started) * 1000.0
        if _settings.metrics_enabled:
            _metrics.record_error(latency_ms)
        log_event(
            logger,
            "safety_request_error",
            operation=operation,
            trace_id=trace_id,
            latency_ms=round(latency_ms, 3),
            error=str(exc),
        )
        raise

    skipped = getattr(result, "skipped_checks", [])
    if skipped and _settings.metrics_enabled:
        _metrics.record_lookup_skipped(len(skipped))
    return result, started


def _complete_assessment(
    *,
    kind: AssessmentKind,
    assessment: SafetyAssessment,
    started: float,
    trace_id: str,
    yacht_id: str | None,
    location: Position | None = None,
) -> AssessmentResponse:
    evaluated_at = datetime.now(tz=timezone.utc)
    event = build_vessel_safety_assessed_event(
        assessment_kind=kind,
        assessment=assessment,
        evaluated_at=evaluated_at,
        trace_id=trace_id,
        produced_by=_settings.event_produced_by,
        yacht_id=yacht_id,
        location=location,
    )

    latency_ms = (perf_counter() - started) * 1000.0
    if _settings.metrics_enabled:
        _metrics.record_success(latency_ms, assessment.safety_score)
    log_event(
        logger,
        "vessel_safety_assessed_event",
        event_id=event["event_id"],
        assessment_kind=kind,
        yacht_id=yacht_id,
        trace_id=trace_id,
        safety_score=assessment.safety_score,
        risk_level=assessment.risk_level,
        skipped_checks=list(assessment.skipped_checks),
        latency_ms=round(latency_ms, 3),
    )
    return AssessmentResponse(data=assessment, yacht_id=yacht_id, evaluated_at=evaluated_at)


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(
        service=_settings.service_name,
        version=_settings.service_version,
        timestamp=datetime.now(tz=timezone.utc),
    )


@router.get("/metrics", response_class=PlainTextResponse)
def metrics() -> str:
    if not _settings.metrics_enabled:
        raise HTTPException(status_code=404, detail="metrics endpoint disabled")
    return _metrics.render_prometheus()


@router.post("/assess-location", response_model=AssessmentResponse)
def assess_location(payload: AssessLocationRequest, request: Request) -> AssessmentResponse:
    trace_id = _trace_id(request)
    assessment, started = _evaluate(
        "assess_location",
        trace_id,
        lambda: _engine.assess_location(payload.location, payload.yacht_id, trace_id=trace_id),
        yacht_id=payload.yacht_id,
    )
    return _complete_assessment(
        kind="location",
        assessment=assessment,
        started=started,
        trace_id=trace_id,
        yacht_id=payload.yacht_id,
        location=payload.location,
    )


@router.post("/analyze-route", response_model=AssessmentResponse)
def analyze_route(payload: AnalyzeRouteRequest, request: Request) -> AssessmentResponse:
    trace_id = _trace_id(request)
    assessment, started = _evaluate(
        "analyze_route",
        trace_id,
        lambda: _engine.analyze_route(payload.location, payload.destination, trace_id=trace_id),
        yacht_id=payload.yacht_id,
    )
    return _complete_assessment(
        kind="route",
        assessment=assessment,
        started=started,
        trace_id=trace_id,
        yacht_id=payload.yacht_id,
        location=payload.location,
    )


@router.post("/equipment-check", response_model=AssessmentResponse)
def equipment_check(payload: EquipmentCheckRequest, request: Request) -> AssessmentResponse:
    trace_id = _trace_id(request)
    assessment, started = _evaluate(
        "check_equipment",
        trace_id,
        lambda: _engine.check_equipment(payload.yacht_id, trace_id=trace_id),
        yacht_id=payload.yacht_id,
    )
    return _complete_assessment(
        kind="equipment",
        assessment=assessment,
        started=started,
        trace_id=trace_id,
        yacht_id=payload.yacht_id,
    )


@router.post("/emergency", response_model=EmergencyResponseEnvelope)
def emergency(payload: EmergencyRequest, request: Request) -> EmergencyResponseEnvelope:
    trace_id = _trace_id(request)
    response, started = _evaluate(
        "handle_emergency",
        trace_id,
        lambda: _engine.handle_emergency(
            payload.yacht_id,
            payload.location,
            payload.emergency_type,
            trace_id=trace_id,
        ),
        yacht_id=payload.yacht_id,
        emergency_type=payload.emergency_type,
    )

    declared_at = datetime.now(tz=timezone.utc)
    alerted = _sink.alert(
        build_emergency_alert_command(
            response=response,
            location=payload.location,
            requested_at=declared_at,
            trace_id=trace_id,
            requested_by=_settings.event_produced_by,
        ),
        trace_id=trace_id,
    )
    event = build_vessel_emergency_declared_event(
        response=response,
        location=payload.location,
        declared_at=declared_at,
        trace_id=trace_id,
        produced_by=_settings.event_produced_by,
    )

    latency_ms = (perf_counter() - started) * 1000.0
    if _settings.metrics_enabled:
        _metrics.record_emergency()
        _metrics.record_success(latency_ms)
    log_event(
        logger,
        "vessel_emergency_declared_event",
        event_id=event["event_id"],
        yacht_id=payload.yacht_id,
        emergency_type=payload.emergency_type,
        trace_id=trace_id,
        recorded=response.recorded,
        alerted=alerted,
        skipped_checks=list(response.skipped_checks),
        latency_ms=round(latency_ms, 3),
    )
    return EmergencyResponseEnvelope(data=response, evaluated_at=declared_at, alerted=alerted)


@router.post("/weather/update", response_model=WeatherUpdateResponse)
def weather_update(payload: WeatherUpdateRequest, request: Request) -> WeatherUpdateResponse:
    trace_id = _trace_id(request)
    result, started = _evaluate(
        "update_weather",
        trace_id,
        lambda: _engine.update_weather(payload.location, trace_id=trace_id),
    )

    latency_ms = (perf_counter() - started) * 1000.0
    if _settings.metrics_enabled:
        _metrics.record_success(latency_ms)
    log_event(
        logger,
        "weather_update_completed",
        trace_id=trace_id,
        risk_level=result.weather_data.risk_level if result.weather_data else None,
        recorded=result.recorded,
        skipped_checks=list(result.skipped_checks),
        latency_ms=round(latency_ms, 3),
    )
    return WeatherUpdateResponse(data=result)


@router.post("/recommendations", response_model=RecommendationsResponse)
def recommendations(payload: RecommendationsRequest, request: Request) -> RecommendationsResponse:
    trace_id = _trace_id(request)
    result, started = _evaluate(
        "get_recommendations",
        trace_id,
        lambda: _engine.get_recommendations(payload.yacht_id, payload.location, trace_id=trace_id),
        yacht_id=payload.yacht_id,
    )

    latency_ms = (perf_counter() - started) * 1000.0
    if _settings.metrics_enabled:
        _metrics.record_success(latency_ms)
    log_event(
        logger,
        "safety_recommendations_listed",
        yacht_id=payload.yacht_id,
        trace_id=trace_id,
        country=result.country,
        recommendation_count=len(result.recommendations),
        skipped_checks=list(result.skipped_checks),
        latency_ms=round(latency_ms, 3),
    )
    return RecommendationsResponse(data=result)
