"""Structured logging and in-memory metrics for sensor anomaly service."""

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


class AnomalyMetrics:
    """Thread-safe in-memory metrics for /detect calls."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.requests_total = 0
            self.success_total = 0
            self.errors_total = 0
            self.anomalies_total = 0
            self.alerts_total = 0
            self.lookups_skipped_total = 0
            self.sink_failures_total = 0
            self.latency_ms_sum = 0.0
            self.latency_ms_count = 0
            self.last_confidence = 0.0

    def record_request(self) -> None:
        with self._lock:
            self.requests_total += 1

    def record_success(self, latency_ms: float, confidence: float, *, anomaly_detected: bool) -> None:
        with self._lock:
            self.success_total += 1
            if anomaly_detected:
                self.anomalies_total += 1
            self.latency_ms_sum += max(latency_ms, 0.0)
            self.latency_ms_count += 1
            self.last_confidence = max(0.0, min(1.0, confidence))

    def record_error(self, latency_ms: float) -> None:
        with self._lock:
            self.errors_total += 1
            self.latency_ms_sum += max(latency_ms, 0.0)
            self.latency_ms_count += 1

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
                "# HELP seaguard_anomaly_requests_total Total anomaly-detect requests received.",
                "# TYPE seaguard_anomaly_requests_total counter",
                f"seaguard_anomaly_requests_total {self.requests_total}",
                "# HELP seaguard_anomaly_success_total Total successful anomaly-detect responses.",
                "# TYPE seaguard_anomaly_success_total counter",
                f"seaguard_anomaly_success_total {self.success_total}",
                "# HELP seaguard_anomaly_errors_total Total failed anomaly-detect requests.",
                "# TYPE seaguard_anomaly_errors_total counter",
                f"seaguard_anomaly_errors_total {self.errors_total}",
                "# HELP seaguard_anomaly_detected_total Evaluations that flagged an anomaly.",
                "# TYPE seaguard_anomaly_detected_total counter",
                f"seaguard_anomaly_detected_total {self.anomalies_total}",
                "# HELP seaguard_anomaly_alerts_total Alerts raised through the recording sink.",
                "# TYPE seaguard_anomaly_alerts_total counter",
                f"seaguard_anomaly_alerts_total {self.alerts_total}",
                "# HELP seaguard_anomaly_lookups_skipped_total Historical lookups skipped after timeout or error.",
                "# TYPE seaguard_anomaly_lookups_skipped_total counter",
                f"seaguard_anomaly_lookups_skipped_total {self.lookups_skipped_total}",
                "# HELP seaguard_anomaly_sink_failures_total Recording or alert writes that failed.",
                "# TYPE seaguard_anomaly_sink_failures_total counter",
                f"seaguard_anomaly_sink_failures_total {self.sink_failures_total}",
                "# HELP seaguard_anomaly_latency_ms_sum Sum of anomaly-detect latency in milliseconds.",
                "# TYPE seaguard_anomaly_latency_ms_sum counter",
                f"seaguard_anomaly_latency_ms_sum {self.latency_ms_sum:.3f}",
                "# HELP seaguard_anomaly_latency_ms_count Number of latency observations.",
                "# TYPE seaguard_anomaly_latency_ms_count counter",
                f"seaguard_anomaly_latency_ms_count {self.latency_ms_count}",
                "# HELP seaguard_anomaly_last_confidence Last computed confidence score.",
                "# TYPE seaguard_anomaly_last_confidence gauge",
                f"seaguard_anomaly_last_confidence {self.last_confidence:.4f}",
            ]
        return "\n".join(lines) + "\n"


_metrics = AnomalyMetrics()


def get_metrics() -> AnomalyMetrics:
    """Return singleton metrics collector."""

    return _metrics
