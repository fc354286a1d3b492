"""HTTP routes for sensor anomaly service."""

from dataclasses import asdict
from datetime import datetime, timezone
import logging
from time import perf_counter
from uuid import uuid4

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse

from .config import get_settings
from .db import SessionLocal
from .engine import InvalidEvaluationInput, SignalAnomalyEngine
from .errors import ApiError
from .events import build_vessel_anomaly_detected_event
from .history import SqlHistoricalContextProvider, TimedHistoryLookup
from .observability import get_metrics, log_event
from .profiles import load_profiles
from .schemas import (
    AnomalyDetectRequest,
    AnomalyDetectResponse,
    DetectionItem,
    DetectionListResponse,
    HealthResponse,
    MaintenanceListResponse,
    MaintenancePredictionItem,
    ParameterProfileItem,
    ProfilesResponse,
)
from .sink import AnomalySink, deserialize_verdict
from .store import DetectionRecord, InMemoryAnomalyStore

router = APIRouter()
logger = logging.getLogger("sensor_anomaly")

_settings = get_settings()
_metrics = get_metrics()
_sink = AnomalySink(settings=_settings, store=InMemoryAnomalyStore(), metrics=_metrics)
_history = TimedHistoryLookup(
    SqlHistoricalContextProvider(
        session_factory=SessionLocal,
        max_rows=_settings.history_max_rows,
        min_samples=_settings.history_min_samples,
    ),
    window_days=_settings.history_window_days,
    timeout_seconds=_settings.lookup_timeout_seconds,
)
_engine = SignalAnomalyEngine(load_profiles(_settings.profiles_path), history=_history)


def _to_detection_item(record: DetectionRecord) -> DetectionItem:
    return DetectionItem(
        detection_id=record.detection_id,
        yacht_id=record.yacht_id,
        device_id=record.device_id,
        parameter=record.parameter,
        verdict=deserialize_verdict(record.verdict),
        values=record.values,
        detected_at=record.detected_at,
        recorded_at=record.recorded_at,
    )


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


@router.get("/profiles", response_model=ProfilesResponse)
def profiles() -> ProfilesResponse:
    items = [
        ParameterProfileItem(
            parameter=profile.name,
            normal_range=(profile.low, profile.high),
            critical_variance_threshold=profile.critical_variance_threshold,
            trend_slope_threshold=profile.trend_slope_threshold,
            failure_indicators={
                name: asdict(indicator) for name, indicator in profile.failure_indicators.items()
            },
        )
        for profile in _engine.profiles.values()
    ]
    return ProfilesResponse(items=items)


@router.post("/detect", response_model=AnomalyDetectResponse)
def detect(payload: AnomalyDetectRequest, request: Request) -> AnomalyDetectResponse:
    started = perf_counter()
    trace_id = request.headers.get("x-trace-id", "").strip() or uuid4().hex
    if _settings.metrics_enabled:
        _metrics.record_request()

    log_event(
        logger,
        "anomaly_detect_request",
        yacht_id=payload.yacht_id,
        parameter=payload.parameter,
        trace_id=trace_id,
        window_size=len(payload.values),
    )

    try:
        outcome = _engine.detect(
            vessel_id=payload.yacht_id,
            parameter=payload.parameter,
            values=payload.values,
            context=payload.context,
            variance=payload.variance,
            mean=payload.mean,
        )
    except InvalidEvaluationInput as exc:
        latency_ms = (perf_counter() - started) * 1000.0
        if _settings.metrics_enabled:
            _metrics.record_error(latency_ms)
        log_event(
            logger,
            "anomaly_detect_rejected",
            yacht_id=payload.yacht_id,
            trace_id=trace_id,
            error=str(exc),
        )
        raise ApiError(status_code=400, code="INVALID_INPUT", message=str(exc), trace_id=trace_id) from exc
    except Exception as exc:  # pragma: no cover
        latency_ms = (perf_counter() - started) * 1000.0
        if _settings.metrics_enabled:
            _metrics.record_error(latency_ms)
        log_event(
            logger,
            "anomaly_detect_error",
            yacht_id=payload.yacht_id,
            trace_id=trace_id,
            latency_ms=round(latency_ms, 3),
            error=str(exc),
        )
        raise

    verdict = outcome.verdict
    evaluated_at = datetime.now(tz=timezone.utc)
    if outcome.skipped_checks and _settings.metrics_enabled:
        _metrics.record_lookup_skipped(len(outcome.skipped_checks))

    published = _sink.publish(
        yacht_id=payload.yacht_id,
        parameter=payload.parameter,
        values=payload.values,
        verdict=verdict,
        detected_at=payload.detection_time or evaluated_at,
        trace_id=trace_id,
        device_id=payload.device_id,
    )
    event = build_vessel_anomaly_detected_event(
        yacht_id=payload.yacht_id,
        parameter=payload.parameter,
        evaluated_at=evaluated_at,
        verdict=verdict,
        trace_id=trace_id,
        produced_by=_settings.event_produced_by,
        device_id=payload.device_id,
    )

    latency_ms = (perf_counter() - started) * 1000.0
    if _settings.metrics_enabled:
        _metrics.record_success(latency_ms, verdict.confidence_score, anomaly_detected=verdict.anomaly_detected)
    log_event(
        logger,
        "vessel_anomaly_detected_event",
        event_id=event["event_id"],
        yacht_id=payload.yacht_id,
        parameter=payload.parameter,
        trace_id=trace_id,
        anomaly_type=verdict.anomaly_type,
        severity=verdict.severity,
        confidence_score=verdict.confidence_score,
        skipped_checks=list(outcome.skipped_checks),
        recorded=published.recorded,
        alerted=published.alerted,
        latency_ms=round(latency_ms, 3),
    )

    return AnomalyDetectResponse(
        data={
            "yacht_id": payload.yacht_id,
            "parameter": payload.parameter,
            "device_id": payload.device_id,
            "verdict": verdict,
            "skipped_checks": list(outcome.skipped_checks),
            "recorded": published.recorded,
            "alerted": published.alerted,
            "evaluated_at": evaluated_at,
        }
    )


@router.get("/detections", response_model=DetectionListResponse)
def list_detections(yacht_id: str | None = None, parameter: str | None = None) -> DetectionListResponse:
    records = _sink.store.list_detections(yacht_id=yacht_id, parameter=parameter)
    return DetectionListResponse(items=[_to_detection_item(record) for record in records])


@router.get("/detections/{detection_id}", response_model=DetectionItem)
def get_detection(detection_id: str) -> DetectionItem:
    record = _sink.store.get_detection(detection_id)
    if record is None:
        raise HTTPException(status_code=404, detail="detection not found")
    return _to_detection_item(record)


@router.get("/maintenance", response_model=MaintenanceListResponse)
def list_maintenance(yacht_id: str | None = None) -> MaintenanceListResponse:
    items = [
        MaintenancePredictionItem(**asdict(prediction))
        for prediction in _sink.store.list_maintenance(yacht_id=yacht_id)
    ]
    return MaintenanceListResponse(items=items)
