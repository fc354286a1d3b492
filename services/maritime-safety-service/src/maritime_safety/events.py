"""Event and command payload builders for safety evaluations."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import uuid4

from .schemas import EmergencyResponse, Position, SafetyAssessment

AssessmentKind = Literal["location", "route", "equipment"]


def _envelope(*, event_type: str, occurred_at: datetime, produced_by: str, trace_id: str, data: dict[str, Any]) -> dict[str, Any]:
    return {
        "event_id": str(uuid4()),
        "event_type": event_type,
        "event_version": "v1",
        "occurred_at": occurred_at.isoformat(),
        "produced_by": produced_by,
        "trace_id": trace_id,
        "data": data,
    }


def build_vessel_safety_assessed_event(
    *,
    assessment_kind: AssessmentKind,
    assessment: SafetyAssessment,
    evaluated_at: datetime,
    trace_id: str,
    produced_by: str,
    yacht_id: str | None = None,
    location: Position | None = None,
) -> dict[str, Any]:
    """Build `vessel.safety.assessed` event envelope."""

    data: dict[str, Any] = {
        "assessment_kind": assessment_kind,
        "evaluated_at": evaluated_at.isoformat(),
        "safety_score": assessment.safety_score,
        "risk_level": assessment.risk_level,
        "recommendation_count": len(assessment.recommendations),
        "skipped_checks": list(assessment.skipped_checks),
    }
    if yacht_id:
        data["yacht_id"] = yacht_id
    if location is not None:
        data["location"] = location.model_dump()

    return _envelope(
        event_type="vessel.safety.assessed",
        occurred_at=evaluated_at,
        produced_by=produced_by,
        trace_id=trace_id,
        data=data,
    )


def build_vessel_emergency_declared_event(
    *,
    response: EmergencyResponse,
    location: Position,
    declared_at: datetime,
    trace_id: str,
    produced_by: str,
) -> dict[str, Any]:
    """Build `vessel.emergency.declared` event envelope."""

    return _envelope(
        event_type="vessel.emergency.declared",
        occurred_at=declared_at,
        produced_by=produced_by,
        trace_id=trace_id,
        data={
            "yacht_id": response.yacht_id,
            "emergency_type": response.emergency_type,
            "declared_at": declared_at.isoformat(),
            "location": location.model_dump(),
            "recommendation_id": response.recommendation.recommendation_id,
            "protocol_count": len(response.protocols),
            "nearest_service_count": len(response.nearest_services),
        },
    )


def build_emergency_alert_command(
    *,
    response: EmergencyResponse,
    location: Position,
    requested_at: datetime,
    trace_id: str,
    requested_by: str,
) -> dict[str, Any]:
    """Build the `notification.dispatch` command sent when an emergency is declared."""

    return {
        "command_id": str(uuid4()),
        "command_type": "notification.dispatch",
        "command_version": "v1",
        "requested_at": requested_at.isoformat(),
        "requested_by": requested_by,
        "trace_id": trace_id,
        "payload": {
            "yacht_id": response.yacht_id,
            "type": "emergency_alert",
            "severity": "critical",
            "message": f"Emergency response activated: {response.emergency_type}",
            "context": {
                "location": location.model_dump(),
                "recommendation_id": response.recommendation.recommendation_id,
                "contacts": [contact.name for contact in response.emergency_contacts],
            },
            "data": {
                "immediate_actions": list(response.recommendation.immediate_actions),
                "nearest_services": [zone.model_dump(mode="json") for zone in response.nearest_services],
            },
        },
    }
