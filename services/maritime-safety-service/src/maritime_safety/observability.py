"""Structured logging and in-memory metrics for maritime safety service."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from threading import Lock
from typing import Any


def configure_logging(level: str) -> None:
    """Configure service logging format once."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
    )


def log_event(logger: logging.Logger, event: str, **fields: Any) -> None:
    """Emit one structured JSON log line."""

    payload = {
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        "event": event,
        **fields,
    }
    logger.info(json.dumps(payload, default=str, separators=(",", ":")))


class SafetyMetrics:
    """Thread-safe in-memory metrics for safety evaluations."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.requests_by_operation: dict[str, int] = {}
            self.success_total = 0
            self.errors_total = 0
            self.emergencies_total = 0
            self.alerts_total = 0
            self.lookups_skipped_total = 0
            self.sink_failures_total = 0
            self.latency_ms_sum = 0.0
            self.latency_ms_count = 0
            self.last_safety_score = 0.0

    def record_request(self, operation: str) -> None:
        with self._lock:
            self.requests_by_operation[operation] = self.requests_by_operation.get(operation, 0) + 1

    def record_success(self, latency_ms: float, safety_score: float | None = None) -> None:
        with self._lock:
            self.success_total += 1
            self.latency_ms_sum += max(latency_ms, 0.0)
            self.latency_ms_count += 1
            if safety_score is not None:
                self.last_safety_score = max(0.0, min(100.0, safety_score))

    def record_error(self, latency_ms: float) -> None:
        with self._lock:
            self.errors_total += 1
            self.latency_ms_sum += max(latency_ms, 0.0)
            self.latency_ms_count += 1

    def record_emergency(self) -> None:
        with self._lock:
            self.emergencies_total += 1

    def record_alert(self) -> None:
        with self._lock:
            self.alerts_total += 1

    def record_lookup_skipped(self, count: int = 1) -> None:
        with self._lock:
            self.lookups_skipped_total += count

    def record_sink_failure(self) -> None:
        with self._lock:
            self.sink_failures_total += 1

    def render_prometheus(self) -> str:
        with self._lock:
            lines = [
                "# HELP seaguard_safety_requests_total Total safety requests received by operation.",
                "# TYPE seaguard_safety_requests_total counter",
            ]
            lines.extend(
                f'seaguard_safety_requests_total{{operation="{operation}"}} {count}'
                for operation, count in sorted(self.requests_by_operation.items())
            )
            lines.extend(
                [
                    "# HELP seaguard_safety_success_total Total successful safety responses.",
                    "# TYPE seaguard_safety_success_total counter",
                    f"seaguard_safety_success_total {self.success_total}",
                    "# HELP seaguard_safety_errors_total Total rejected or failed safety requests.",
                    "# TYPE seaguard_safety_errors_total counter",
                    f"seaguard_safety_errors_total {self.errors_total}",
                    "# HELP seaguard_safety_emergencies_total Emergencies handled.",
                    "# TYPE seaguard_safety_emergencies_total counter",
                    f"seaguard_safety_emergencies_total {self.emergencies_total}",
                    "# HELP seaguard_safety_alerts_total Alerts raised through the safety sink.",
                    "# TYPE seaguard_safety_alerts_total counter",
                    f"seaguard_safety_alerts_total {self.alerts_total}",
                    "# HELP seaguard_safety_lookups_skipped_total Reference lookups skipped after timeout or error.",
                    "# TYPE seaguard_safety_lookups_skipped_total counter",
                    f"seaguard_safety_lookups_skipped_total {self.lookups_skipped_total}",
                    "# HELP seaguard_safety_sink_failures_total Recording or alert writes that failed.",
                    "# TYPE seaguard_safety_sink_failures_total counter",
                    f"seaguard_safety_sink_failures_total {self.sink_failures_total}",
                    "# HELP seaguard_safety_latency_ms_sum Sum of safety request latency in milliseconds.",
                    "# TYPE seaguard_safety_latency_ms_sum counter",
                    f"seaguard_safety_latency_ms_sum {self.latency_ms_sum:.3f}",
                    "# HELP seaguard_safety_latency_ms_count Number of latency observations.",
                    "# TYPE seaguard_safety_latency_ms_count counter",
                    f"seaguard_safety_latency_ms_count {self.latency_ms_count}",
                    "# HELP seaguard_safety_last_score Last computed safety score.",
                    "# TYPE seaguard_safety_last_score gauge",
                    f"seaguard_safety_last_score {self.last_safety_score:.2f}",
                ]
            )
        return "\n".join(lines) + "\n"


_metrics = SafetyMetrics()


def get_metrics() -> SafetyMetrics:
    """Return singleton metrics collector."""

    return _metrics
