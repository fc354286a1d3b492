"""In-memory record store for detections, alerts and maintenance predictions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Any


@dataclass
class DetectionRecord:
    """Persisted anomaly detection; ``verdict`` holds the serialized record format."""

    detection_id: str
    yacht_id: str
    device_id: str | None
    parameter: str
    verdict: str
    values: list[float]
    detected_at: datetime
    recorded_at: datetime


@dataclass
class AlertRecord:
    """Alert raised for a high-severity detection."""

    alert_id: str
    yacht_id: str
    parameter: str
    severity: str
    message: str
    command: dict[str, Any]
    delivered: bool
    created_at: datetime
    error: str | None = None


@dataclass
class MaintenancePrediction:
    """Latest anomaly-based maintenance prediction per vessel/device/parameter."""

    yacht_id: str
    device_id: str | None
    parameter: str
    urgency: str
    estimated_cost: float
    parts_needed: list[str] | None
    confidence_score: float
    anomaly_type: str
    failure_risk: float
    updated_at: datetime


class InMemoryAnomalyStore:
    """Thread-safe in-memory storage behind the anomaly recording sink."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._counter = 0
            self._detections: dict[str, DetectionRecord] = {}
            self._alerts: list[AlertRecord] = []
            self._maintenance: dict[tuple[str, str | None, str], MaintenancePrediction] = {}

    def next_id(self, prefix: str, now: datetime) -> str:
        with self._lock:
            self._counter += 1
            return f"{prefix}_{now.strftime('%Y%m%d')}_{self._counter:04d}"

    def put_detection(self, record: DetectionRecord) -> None:
        with self._lock:
            self._detections[record.detection_id] = record

    def get_detection(self, detection_id: str) -> DetectionRecord | None:
        with self._lock:
            return self._detections.get(detection_id)

    def list_detections(
        self,
        *,
        yacht_id: str | None = None,
        parameter: str | None = None,
    ) -> list[DetectionRecord]:
        with self._lock:
            records = list(self._detections.values())

        if yacht_id:
            records = [record for record in records if record.yacht_id == yacht_id]
        if parameter:
            records = [record for record in records if record.parameter == parameter]

        return sorted(records, key=lambda record: record.recorded_at, reverse=True)

    def add_alert(self, record: AlertRecord) -> None:
        with self._lock:
            self._alerts.append(record)

    def list_alerts(self) -> list[AlertRecord]:
        with self._lock:
            return list(self._alerts)

    def upsert_maintenance(self, prediction: MaintenancePrediction) -> None:
        key = (prediction.yacht_id, prediction.device_id, prediction.parameter)
        with self._lock:
            self._maintenance[key] = prediction

    def list_maintenance(self, *, yacht_id: str | None = None) -> list[MaintenancePrediction]:
        with self._lock:
            records = list(self._maintenance.values())
        if yacht_id:
            records = [record for record in records if record.yacht_id == yacht_id]
        return sorted(records, key=lambda record: record.updated_at, reverse=True)
