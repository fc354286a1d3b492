"""Recording and alerting sink for anomaly verdicts.

Sink writes happen after the verdict is computed. A failing write is logged and
counted but never changes the verdict handed back to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
import socket
from typing import Any, Callable, Sequence
from urllib import error as url_error
from urllib import request as url_request

from .config import Settings
from .events import build_anomaly_alert_command
from .observability import AnomalyMetrics, log_event
from .schemas import AnomalyVerdict
from .store import AlertRecord, DetectionRecord, InMemoryAnomalyStore, MaintenancePrediction

logger = logging.getLogger("sensor_anomaly")

AlertDispatcher = Callable[[dict[str, Any], float], tuple[bool, str | None]]

ALERT_SEVERITIES = frozenset({"high", "critical"})


class SinkError(RuntimeError):
    """Raised when a record or alert write cannot be completed."""


def serialize_verdict(verdict: AnomalyVerdict) -> str:
    """Encode a verdict in the sink record format (canonical JSON)."""

    return json.dumps(verdict.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))


def deserialize_verdict(raw: str) -> AnomalyVerdict:
    """Decode a verdict previously written with :func:`serialize_verdict`."""

    return AnomalyVerdict.model_validate(json.loads(raw))


@dataclass(frozen=True)
class PublishResult:
    """What the sink did with one verdict."""

    recorded: bool
    alerted: bool
    detection_id: str | None = None


class AnomalySink:
    """Applies the record/alert policy and writes to the backing store."""

    def __init__(
        self,
        *,
        settings: Settings,
        store: InMemoryAnomalyStore,
        metrics: AnomalyMetrics,
    ) -> None:
        self._settings = settings
        self._store = store
        self._metrics = metrics
        self._alert_dispatcher: AlertDispatcher = self._default_alert_dispatcher

    @property
    def store(self) -> InMemoryAnomalyStore:
        return self._store

    def reset_state_for_tests(self) -> None:
        """Reset store and dispatcher for deterministic tests."""

        self._store.reset()
        self._alert_dispatcher = self._default_alert_dispatcher

    def set_alert_dispatcher_for_tests(self, dispatcher: AlertDispatcher) -> None:
        """Inject test dispatcher to exercise alert delivery behavior."""

        self._alert_dispatcher = dispatcher

    def should_record(self, verdict: AnomalyVerdict) -> bool:
        return verdict.anomaly_detected and verdict.confidence_score > self._settings.record_confidence_threshold

    def should_alert(self, verdict: AnomalyVerdict) -> bool:
        return (
            verdict.severity in ALERT_SEVERITIES
            and verdict.confidence_score > self._settings.alert_confidence_threshold
        )

    def publish(
        self,
        *,
        yacht_id: str,
        parameter: str,
        values: Sequence[float],
        verdict: AnomalyVerdict,
        detected_at: datetime,
        trace_id: str,
        device_id: str | None = None,
    ) -> PublishResult:
        """Record, alert and update maintenance predictions as the policy requires."""

        recorded = False
        alerted = False
        detection_id: str | None = None

        if self.should_record(verdict):
            detection_id = self._guard(
                "record",
                trace_id,
                lambda: self.record(
                    yacht_id=yacht_id,
                    parameter=parameter,
                    values=values,
                    verdict=verdict,
                    detected_at=detected_at,
                    device_id=device_id,
                ),
            )
            recorded = detection_id is not None

            if self.should_alert(verdict):
                alerted = bool(
                    self._guard(
                        "alert",
                        trace_id,
                        lambda: self.alert(
                            yacht_id=yacht_id,
                            parameter=parameter,
                            verdict=verdict,
                            trace_id=trace_id,
                            device_id=device_id,
                        ),
                    )
                )

        if verdict.maintenance_suggestion is not None:
            self._guard(
                "maintenance",
                trace_id,
                lambda: self.upsert_maintenance(
                    yacht_id=yacht_id,
                    parameter=parameter,
                    verdict=verdict,
                    device_id=device_id,
                ),
            )

        return PublishResult(recorded=recorded, alerted=alerted, detection_id=detection_id)

    def record(
        self,
        *,
        yacht_id: str,
        parameter: str,
        values: Sequence[float],
        verdict: AnomalyVerdict,
        detected_at: datetime,
        device_id: str | None = None,
    ) -> str:
        now = datetime.now(tz=timezone.utc)
        detection_id = self._store.next_id("det", now)
        self._store.put_detection(
            DetectionRecord(
                detection_id=detection_id,
                yacht_id=yacht_id,
                device_id=device_id,
                parameter=parameter,
                verdict=serialize_verdict(verdict),
                values=[float(value) for value in values],
                detected_at=detected_at,
                recorded_at=now,
            )
        )
        return detection_id

    def alert(
        self,
        *,
        yacht_id: str,
        parameter: str,
        verdict: AnomalyVerdict,
        trace_id: str,
        device_id: str | None = None,
    ) -> bool:
        now = datetime.now(tz=timezone.utc)
        command = build_anomaly_alert_command(
            yacht_id=yacht_id,
            parameter=parameter,
            requested_at=now,
            verdict=verdict,
            trace_id=trace_id,
            requested_by=self._settings.event_produced_by,
            device_id=device_id,
        )
        timeout_seconds = max(self._settings.notification_timeout_seconds, 0.1)
        delivered, error = self._alert_dispatcher(command, timeout_seconds)

        self._store.add_alert(
            AlertRecord(
                alert_id=self._store.next_id("alr", now),
                yacht_id=yacht_id,
                parameter=parameter,
                severity=verdict.severity,
                message=command["payload"]["message"],
                command=command,
                delivered=delivered,
                created_at=now,
                error=error,
            )
        )
        if not delivered:
            raise SinkError(f"alert dispatch failed: {error or 'unknown error'}")

        self._metrics.record_alert()
        return True

    def upsert_maintenance(
        self,
        *,
        yacht_id: str,
        parameter: str,
        verdict: AnomalyVerdict,
        device_id: str | None = None,
    ) -> None:
        suggestion = verdict.maintenance_suggestion
        if suggestion is None:
            return
        self._store.upsert_maintenance(
            MaintenancePrediction(
                yacht_id=yacht_id,
                device_id=device_id,
                parameter=parameter,
                urgency=suggestion.urgency,
                estimated_cost=suggestion.estimated_cost,
                parts_needed=suggestion.parts_needed,
                confidence_score=verdict.confidence_score,
                anomaly_type=verdict.anomaly_type,
                failure_risk=verdict.predicted_failure_risk,
                updated_at=datetime.now(tz=timezone.utc),
            )
        )

    def _guard(self, operation: str, trace_id: str, write: Callable[[], Any]) -> Any:
        try:
            return write()
        except Exception as exc:
            self._metrics.record_sink_failure()
            log_event(
                logger,
                "anomaly_sink_error",
                operation=operation,
                trace_id=trace_id,
                error=str(exc),
            )
            return None

    def _default_alert_dispatcher(self, command: dict[str, Any], timeout_seconds: float) -> tuple[bool, str | None]:
        base_url = self._settings.notification_base_url
        if not base_url:
            return True, None

        request = url_request.Request(
            url=f"{base_url.rstrip('/')}/dispatch",
            data=json.dumps(command).encode("utf-8"),
            method="POST",
            headers={
                "content-type": "application/json",
                "accept": "application/json",
                "x-trace-id": command["trace_id"],
            },
        )
        try:
            with url_request.urlopen(request, timeout=timeout_seconds) as response:
                response.read()
        except url_error.HTTPError as exc:
            details = exc.read().decode("utf-8", errors="ignore")
            return False, f"notification dispatch failed with HTTP {exc.code}: {details[:180]}"
        except url_error.URLError as exc:
            return False, f"notification service unavailable: {exc.reason}"
        except (TimeoutError, socket.timeout):
            return False, f"notification dispatch timed out after {timeout_seconds:.1f}s"
        except OSError as exc:
            return False, f"notification dispatch network error: {exc}"
        return True, None
