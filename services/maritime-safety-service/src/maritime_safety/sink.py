"""Recording and alerting sink for safety results.

Writes are best effort: failures are logged and counted, and the already computed
result is still returned to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import json
import logging
import socket
from threading import Lock
from typing import Any, Callable
from urllib import error as url_error
from urllib import request as url_request

from .config import Settings
from .observability import SafetyMetrics, log_event
from .repositories import SafetyRecordRepository
from .schemas import LocationRecommendationItem, Position, WeatherSnapshot

logger = logging.getLogger("maritime_safety")

AlertDispatcher = Callable[[dict[str, Any], float], tuple[bool, str | None]]


class SinkError(RuntimeError):
    """Raised when a record or alert write cannot be completed."""


@dataclass(frozen=True)
class AlertRecord:
    command: dict[str, Any]
    delivered: bool
    created_at: datetime
    error: str | None = None


class SafetySink:
    """Persists recommendation records and weather observations, and raises alerts."""

    def __init__(
        self,
        *,
        settings: Settings,
        records: SafetyRecordRepository,
        metrics: SafetyMetrics,
    ) -> None:
        self._settings = settings
        self._records = records
        self._metrics = metrics
        self._lock = Lock()
        self._alerts: list[AlertRecord] = []
        self._alert_dispatcher: AlertDispatcher = self._default_alert_dispatcher

    def reset_state_for_tests(self) -> None:
        """Reset alert log and dispatcher for deterministic tests."""

        with self._lock:
            self._alerts = []
        self._alert_dispatcher = self._default_alert_dispatcher

    def set_alert_dispatcher_for_tests(self, dispatcher: AlertDispatcher) -> None:
        """Inject test dispatcher to exercise alert delivery behavior."""

        self._alert_dispatcher = dispatcher

    def list_alerts(self) -> list[AlertRecord]:
        with self._lock:
            return list(self._alerts)

    def record_recommendation(self, item: LocationRecommendationItem, *, trace_id: str | None = None) -> bool:
        return self._guard("record_recommendation", trace_id, lambda: self._records.add_recommendation(item))

    def record_weather(
        self,
        position: Position,
        snapshot: WeatherSnapshot,
        observed_at: datetime,
        *,
        trace_id: str | None = None,
    ) -> bool:
        return self._guard(
            "record_weather",
            trace_id,
            lambda: self._records.record_weather(position, snapshot, observed_at),
        )

    def alert(self, command: dict[str, Any], *, trace_id: str | None = None) -> bool:
        return self._guard("alert", trace_id, lambda: self._dispatch(command))

    def _dispatch(self, command: dict[str, Any]) -> None:
        timeout_seconds = max(self._settings.notification_timeout_seconds, 0.1)
        delivered, error = self._alert_dispatcher(command, timeout_seconds)
        with self._lock:
            self._alerts.append(
                AlertRecord(
                    command=command,
                    delivered=delivered,
                    created_at=datetime.fromisoformat(command["requested_at"]),
                    error=error,
                )
            )
        if not delivered:
            raise SinkError(f"alert dispatch failed: {error or 'unknown error'}")
        self._metrics.record_alert()

    def _guard(self, operation: str, trace_id: str | None, write: Callable[[], Any]) -> bool:
        try:
            write()
        except Exception as exc:
            self._metrics.record_sink_failure()
            log_event(
                logger,
                "safety_sink_error",
                operation=operation,
                trace_id=trace_id,
                error=str(exc),
            )
            return False
        return True

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
