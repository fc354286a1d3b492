"""Concurrent fan-out for independent reference lookups."""

from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
import logging
from time import monotonic
from typing import Any, Callable, Mapping

from .observability import log_event

logger = logging.getLogger("maritime_safety")


@dataclass
class LookupResults:
    """Values of the lookups that completed plus the names of those that were skipped."""

    values: dict[str, Any] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)


class LookupFanOut:
    """Runs independent reads concurrently under one shared deadline.

    A lookup that raises or misses the deadline is reported as skipped; the others
    are unaffected. Results are collected in the order the calls were given.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float,
        max_workers: int = 6,
        executor: Executor | None = None,
    ) -> None:
        self._timeout_seconds = max(timeout_seconds, 0.01)
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="safety-lookup")

    def run(self, calls: Mapping[str, Callable[[], Any]], *, trace_id: str | None = None) -> LookupResults:
        futures = {name: self._executor.submit(call) for name, call in calls.items()}
        deadline = monotonic() + self._timeout_seconds
        results = LookupResults()

        for name, future in futures.items():
            try:
                results.values[name] = future.result(timeout=max(deadline - monotonic(), 0.0))
                continue
            except FutureTimeoutError:
                future.cancel()
                reason = f"timed out after {self._timeout_seconds:.2f}s"
            except Exception as exc:
                reason = str(exc) or exc.__class__.__name__

            results.skipped.append(name)
            log_event(logger, "safety_lookup_skipped", lookup=name, trace_id=trace_id, reason=reason)

        return results
