"""Event and command payload builders for anomaly detection output."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from .schemas import AnomalyVerdict


def build_vessel_anomaly_detected_event(
    *,
    yacht_id: str,
    parameter: str,
    evaluated_at: datetime,
    verdict: AnomalyVerdict,
    trace_id: str,
    produced_by: str,
    device_id: str | None = None,
) -> dict[str, Any]:
    """Build `vessel.anomaly.detected` event envelope."""

    data: dict[str, Any] = {
        "yacht_id": yacht_id,
        "parameter": parameter,
        "evaluated_at": evaluated_at.isoformat(),
        "anomaly_detected": verdict.anomaly_detected,
        "anomaly_type": verdict.anomaly_type,
        "confidence_score": verdict.confidence_score,
        "severity": verdict.severity,
        "predicted_failure_risk": verdict.predicted_failure_risk,
    }
    if device_id:
        data["device_id"] = device_id

    return {
        "event_id": str(uuid4()),
        "event_type": "vessel.anomaly.detected",
        "event_version": "v1",
        "occurred_at": evaluated_at.isoformat(),
        "produced_by": produced_by,
        "trace_id": trace_id,
        "data": data,
    }


def build_anomaly_alert_command(
    *,
    yacht_id: str,
    parameter: str,
    requested_at: datetime,
    verdict: AnomalyVerdict,
    trace_id: str,
    requested_by: str,
    device_id: str | None = None,
) -> dict[str, Any]:
    """Build the `notification.dispatch` command sent for a high-severity anomaly."""

    confidence_pct = verdict.confidence_score * 100.0
    return {
        "command_id": str(uuid4()),
        "command_type": "notification.dispatch",
        "command_version": "v1",
        "requested_at": requested_at.isoformat(),
        "requested_by": requested_by,
        "trace_id": trace_id,
        "payload": {
            "yacht_id": yacht_id,
            "type": "anomaly_alert",
            "severity": verdict.severity,
            "message": (
                f"Anomaly detected in {parameter}: {verdict.anomaly_type} "
                f"(confidence: {confidence_pct:.1f}%)"
            ),
            "context": {
                "device_id": device_id,
                "parameter": parameter,
                "anomaly_type": verdict.anomaly_type,
                "confidence_score": verdict.confidence_score,
                "failure_risk": verdict.predicted_failure_risk,
            },
            "data": verdict.model_dump(mode="json"),
        },
    }
