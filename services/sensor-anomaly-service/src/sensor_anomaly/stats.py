"""Statistical helpers shared by the rule passes and the historical baseline."""

from __future__ import annotations

from dataclasses import dataclass
from statistics import fmean, pstdev, pvariance
from typing import Sequence


@dataclass(frozen=True)
class TrendFit:
    """Ordinary least squares fit of sample value against sample index."""

    slope: float
    r_squared: float


@dataclass(frozen=True)
class HistoricalBaseline:
    """Aggregated statistics for a parameter over a trailing window."""

    mean: float
    std_dev: float
    sample_count: int


def window_mean(values: Sequence[float]) -> float:
    return fmean(values)


def population_variance(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    return pvariance(values)


def fit_trend(values: Sequence[float], min_points: int = 3) -> TrendFit:
    """Fit a line through (index, value); fewer than ``min_points`` samples yields a flat fit."""

    n = len(values)
    if n < min_points:
        return TrendFit(slope=0.0, r_squared=0.0)

    x_mean = (n - 1) / 2.0
    y_mean = fmean(values)
    sxx = sum((i - x_mean) ** 2 for i in range(n))
    sxy = sum((i - x_mean) * (y - y_mean) for i, y in enumerate(values))
    slope = sxy / sxx
    intercept = y_mean - slope * x_mean

    ss_tot = sum((y - y_mean) ** 2 for y in values)
    ss_res = sum((y - (slope * i + intercept)) ** 2 for i, y in enumerate(values))
    r_squared = 1.0 - (ss_res / ss_tot) if ss_tot > 0 else 0.0
    return TrendFit(slope=slope, r_squared=r_squared)


def baseline_from_series(series: Sequence[float]) -> HistoricalBaseline | None:
    """Collapse a historical series of hourly averages into a baseline."""

    if not series:
        return None
    return HistoricalBaseline(mean=fmean(series), std_dev=pstdev(series), sample_count=len(series))


def z_score(current_mean: float, baseline: HistoricalBaseline) -> float | None:
    """Absolute deviation of ``current_mean`` in baseline standard deviations.

    Returns None when the baseline has no dispersion to compare against.
    """

    if baseline.std_dev <= 1e-9:
        return None
    return abs(current_mean - baseline.mean) / baseline.std_dev
