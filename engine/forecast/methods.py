"""
Forecast method runners: ordinary least squares linear trend, single exponential smoothing with a
last-step trend, and a recency-weighted moving average. Each produces a day-by-day forecast with
decaying per-point confidence and a self-assessed reliability score, or nothing when the series is
shorter than its window.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from engine.enums import Method
from config import settings

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForecastPoint:
    date: str
    value: float
    confidence: float


@dataclass(frozen=True)
class MethodForecast:
    method: Method
    points: Tuple[ForecastPoint, ...]
    reliability: float

    @property
    def values(self) -> List[float]:
        return [p.value for p in self.points]


def _clamp(value: float, lo: float, hi: float) -> float:
    return float(max(lo, min(hi, value)))


def _future_dates(last_date: date, horizon: int) -> List[str]:
    return [(last_date + timedelta(days=i)).isoformat() for i in range(1, horizon + 1)]


def _build_points(
    raw_values: Iterable[float],
    last_date: date,
    horizon: int,
    base_confidence: float,
    decay: float,
) -> Tuple[ForecastPoint, ...]:
    digits = settings.forecast_round_digits
    points = []
    for i, (day, raw) in enumerate(zip(_future_dates(last_date, horizon), raw_values), start=1):
        confidence = max(0.0, base_confidence * (1.0 - (i / horizon) * decay))
        points.append(ForecastPoint(
            date=day,
            value=round(max(0.0, float(raw)), digits),
            confidence=round(confidence, digits),
        ))
    return tuple(points)


def _linear_fit(vals: np.ndarray) -> tuple[float, float]:
    x = np.arange(len(vals), dtype=float)
    slope, intercept = np.polyfit(x, vals, 1)
    return float(slope), float(intercept)


def _r_squared(vals: np.ndarray, slope: float, intercept: float) -> float:
    x = np.arange(len(vals), dtype=float)
    predicted = slope * x + intercept
    ss_res = float(np.sum((vals - predicted) ** 2))
    ss_tot = float(np.sum((vals - np.mean(vals)) ** 2))
    if ss_tot <= 0:
        return 0.0
    return _clamp(1.0 - ss_res / ss_tot, 0.0, 1.0)


def _ema(vals: np.ndarray, alpha: float) -> np.ndarray:
    result = np.zeros(len(vals))
    result[0] = vals[0]
    for i in range(1, len(vals)):
        result[i] = alpha * vals[i] + (1 - alpha) * result[i - 1]
    return result


def _coefficient_of_variation(vals: np.ndarray) -> float:
    mean = float(np.mean(vals))
    if mean <= 0:
        return 0.0
    return float(np.std(vals)) / mean


def linear_trend(values: Sequence[float], last_date: date, horizon: int) -> Optional[MethodForecast]:
    if horizon < 1 or len(values) < settings.forecast_linear_min_points:
        return None

    arr = np.asarray(values, dtype=float)
    n = len(arr)
    slope, intercept = _linear_fit(arr)
    r2 = _r_squared(arr, slope, intercept)

    projected = (slope * (n + i - 1) + intercept for i in range(1, horizon + 1))
    reliability = _clamp(
        r2 * 100.0,
        settings.forecast_linear_reliability_min,
        settings.forecast_linear_reliability_max,
    )
    return MethodForecast(
        method=Method.linear,
        points=_build_points(projected, last_date, horizon, r2 * 100.0, settings.forecast_linear_decay),
        reliability=reliability,
    )


def exponential_smoothing(
    values: Sequence[float],
    last_date: date,
    horizon: int,
    alpha: float | None = None,
) -> Optional[MethodForecast]:
    if alpha is None:
        alpha = settings.forecast_ema_alpha
    if horizon < 1 or len(values) < max(2, settings.forecast_ema_min_points):
        return None

    arr = np.asarray(values, dtype=float)
    smoothed = _ema(arr, alpha)
    step = float(smoothed[-1] - smoothed[-2])
    level = float(smoothed[-1])
    projected = (level + step * i for i in range(1, horizon + 1))

    cv = _coefficient_of_variation(arr)
    base_confidence = _clamp(100.0 - cv * 100.0, 0.0, 100.0)
    reliability = _clamp(
        100.0 - cv * 50.0,
        settings.forecast_ema_reliability_min,
        settings.forecast_ema_reliability_max,
    )
    return MethodForecast(
        method=Method.exponential,
        points=_build_points(projected, last_date, horizon, base_confidence, settings.forecast_ema_decay),
        reliability=reliability,
    )


def _window_stability(window: np.ndarray) -> float:
    variance = float(np.var(window))
    if variance < settings.forecast_wma_variance_low:
        return settings.forecast_wma_stability_high
    if variance < settings.forecast_wma_variance_high:
        return settings.forecast_wma_stability_medium
    return settings.forecast_wma_stability_low


def weighted_moving_average(
    values: Sequence[float],
    last_date: date,
    horizon: int,
    window: int | None = None,
) -> Optional[MethodForecast]:
    if window is None:
        window = settings.forecast_wma_window
    if horizon < 1 or window < 2 or len(values) < window:
        return None

    recent = np.asarray(values[-window:], dtype=float)
    weights = np.arange(1, window + 1, dtype=float) / window
    level = float(np.dot(recent, weights) / np.sum(weights))
    step = float(recent[-1] - recent[0]) / window
    projected = (level + step * i for i in range(1, horizon + 1))

    stability = _window_stability(recent)
    reliability = _clamp(
        stability,
        settings.forecast_wma_reliability_min,
        settings.forecast_wma_reliability_max,
    )
    return MethodForecast(
        method=Method.moving_average,
        points=_build_points(projected, last_date, horizon, stability, settings.forecast_wma_decay),
        reliability=reliability,
    )


RUNNERS: Dict[Method, Callable[[Sequence[float], date, int], Optional[MethodForecast]]] = {
    Method.linear: linear_trend,
    Method.exponential: exponential_smoothing,
    Method.moving_average: weighted_moving_average,
}


def run(method: Method, values: Sequence[float], last_date: date, horizon: int) -> Optional[MethodForecast]:
    result = RUNNERS[method](values, last_date, horizon)
    if result is None:
        log.debug("runner %s skipped: %d points, horizon %d", method.value, len(values), horizon)
    return result
