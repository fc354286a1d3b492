"""Historical context provider backed by hourly telemetry aggregates."""

from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timedelta, timezone
import logging
from typing import Callable, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import NmeaHourlyAggregate
from .observability import log_event
from .stats import HistoricalBaseline, baseline_from_series

logger = logging.getLogger("sensor_anomaly")


class HistoryUnavailable(RuntimeError):
    """Raised when historical statistics cannot be read."""


class HistoricalContextProvider(Protocol):
    def get_baseline(self, vessel_id: str, parameter: str, window_days: int) -> HistoricalBaseline | None:
        """Return aggregated statistics, or None when history is insufficient."""


class SqlHistoricalContextProvider:
    """Computes baselines from the `nmea_data_hourly` roll-up table."""

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session],
        max_rows: int = 720,
        min_samples: int = 2,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._max_rows = max_rows
        self._min_samples = max(min_samples, 1)
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    def get_baseline(self, vessel_id: str, parameter: str, window_days: int) -> HistoricalBaseline | None:
        since = self._clock() - timedelta(days=window_days)
        stmt = (
            select(NmeaHourlyAggregate.avg_value)
            .where(NmeaHourlyAggregate.yacht_id == vessel_id)
            .where(NmeaHourlyAggregate.parameter_name == parameter)
            .where(NmeaHourlyAggregate.hour_timestamp >= since)
            .order_by(NmeaHourlyAggregate.hour_timestamp.desc())
            .limit(self._max_rows)
        )

        try:
            with self._session_factory() as session:
                averages = list(session.scalars(stmt))
        except SQLAlchemyError as exc:
            raise HistoryUnavailable(f"history query failed for {vessel_id}/{parameter}") from exc

        series = [float(value) for value in averages if value is not None]
        if len(series) < self._min_samples:
            return None
        return baseline_from_series(series)


class TimedHistoryLookup:
    """Runs baseline lookups with a bounded timeout; failures degrade to "skipped"."""

    def __init__(
        self,
        provider: HistoricalContextProvider,
        *,
        window_days: int,
        timeout_seconds: float,
        executor: Executor | None = None,
    ) -> None:
        self._provider = provider
        self._window_days = window_days
        self._timeout_seconds = max(timeout_seconds, 0.01)
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="history-lookup")

    def fetch(self, vessel_id: str, parameter: str) -> tuple[HistoricalBaseline | None, bool]:
        """Return ``(baseline, available)``; ``available`` is False when the lookup was skipped."""

        future = self._executor.submit(self._provider.get_baseline, vessel_id, parameter, self._window_days)
        try:
            return future.result(timeout=self._timeout_seconds), True
        except FutureTimeoutError:
            future.cancel()
            reason = f"timed out after {self._timeout_seconds:.2f}s"
        except Exception as exc:
            reason = str(exc) or exc.__class__.__name__

        log_event(
            logger,
            "history_lookup_skipped",
            vessel_id=vessel_id,
            parameter=parameter,
            reason=reason,
        )
        return None, False
