"""
Ensemble combination of method runner outputs into a single forecast bundle: reliability-weighted
day values, an empirical band from the spread across methods, overall confidence from method
reliability and data quality, a trend label and an explicit zero-confidence fallback when no runner
can produce a forecast.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from engine.enums import ConfidenceLabel, Method, Trend
from engine.errors import InsufficientData
from engine.forecast import methods
from engine.forecast.hashing import forecast_hash
from engine.forecast.methods import ForecastPoint, MethodForecast
from engine.series import Series, extract
from config import settings

log = logging.getLogger(__name__)

SeriesInput = Union[Series, Sequence[Mapping[str, Any]]]


@dataclass(frozen=True)
class ForecastBundle:
    subject: str
    horizon_days: int
    points: Tuple[ForecastPoint, ...]
    lower: Tuple[float, ...]
    upper: Tuple[float, ...]
    lower95: Tuple[float, ...]
    upper95: Tuple[float, ...]
    overall_confidence: int
    trend: Trend
    explanation: str
    methods: Tuple[str, ...]
    forecast_hash: str
    data_points: int = 0
    method_reliability: Dict[str, float] = field(default_factory=dict)
    is_fallback: bool = False
    reason: Optional[str] = None

    @property
    def dates(self) -> List[str]:
        return [p.date for p in self.points]

    @property
    def values(self) -> List[float]:
        return [p.value for p in self.points]


@dataclass(frozen=True)
class _Combined:
    points: Tuple[ForecastPoint, ...]
    lower: Tuple[float, ...]
    upper: Tuple[float, ...]
    lower95: Tuple[float, ...]
    upper95: Tuple[float, ...]


def _r(value: float) -> float:
    return round(float(value), settings.forecast_round_digits)


def _ordered(results: Sequence[Optional[MethodForecast]]) -> List[MethodForecast]:
    rank = {m: i for i, m in enumerate(Method.ordered())}
    return sorted((r for r in results if r is not None and r.points), key=lambda r: rank[r.method])


def combine(results: Sequence[Optional[MethodForecast]]) -> _Combined:
    usable = _ordered(results)
    if not usable:
        return _Combined((), (), (), (), ())

    if len(usable) == 1:
        only = usable[0]
        band = settings.ensemble_single_band
        band95 = band * settings.ensemble_z95 / settings.ensemble_z80
        return _Combined(
            points=only.points,
            lower=tuple(_r(max(0.0, p.value * (1 - band))) for p in only.points),
            upper=tuple(_r(p.value * (1 + band)) for p in only.points),
            lower95=tuple(_r(max(0.0, p.value * (1 - band95))) for p in only.points),
            upper95=tuple(_r(p.value * (1 + band95)) for p in only.points),
        )

    reliabilities = np.array([r.reliability for r in usable], dtype=float)
    total = float(np.sum(reliabilities))
    weights = reliabilities / total if total > 0 else np.full(len(usable), 1.0 / len(usable))

    days = min(len(r.points) for r in usable)
    points: List[ForecastPoint] = []
    lower: List[float] = []
    upper: List[float] = []
    lower95: List[float] = []
    upper95: List[float] = []
    for i in range(days):
        day_values = np.array([r.points[i].value for r in usable], dtype=float)
        day_conf = np.array([r.points[i].confidence for r in usable], dtype=float)
        points.append(ForecastPoint(
            date=usable[0].points[i].date,
            value=_r(np.dot(day_values, weights)),
            confidence=_r(np.dot(day_conf, weights)),
        ))
        mean = float(np.mean(day_values))
        std = float(np.std(day_values))
        lower.append(_r(max(0.0, mean - settings.ensemble_z80 * std)))
        upper.append(_r(mean + settings.ensemble_z80 * std))
        lower95.append(_r(max(0.0, mean - settings.ensemble_z95 * std)))
        upper95.append(_r(mean + settings.ensemble_z95 * std))

    return _Combined(tuple(points), tuple(lower), tuple(upper), tuple(lower95), tuple(upper95))


def data_quality(values: Sequence[float]) -> float:
    if len(values) < settings.series_min_points:
        return 30.0
    arr = np.asarray(values, dtype=float)
    completeness = 1.0 - float(np.count_nonzero(arr == 0)) / len(arr)

    ordered = np.sort(arr)
    q1 = ordered[int(len(ordered) * 0.25)]
    q3 = ordered[int(len(ordered) * 0.75)]
    iqr = q3 - q1
    outliers = np.count_nonzero((arr < q1 - 1.5 * iqr) | (arr > q3 + 1.5 * iqr))
    outlier_ratio = float(outliers) / len(arr)

    quality = (completeness * 0.6 + (1.0 - outlier_ratio) * 0.4) * 100.0
    return float(max(0.0, min(100.0, quality)))


def overall_confidence(results: Sequence[MethodForecast], values: Sequence[float]) -> int:
    if not results:
        return 0
    avg_reliability = float(np.mean([r.reliability for r in results]))
    confidence = (
        avg_reliability * settings.ensemble_reliability_weight
        + data_quality(values) * settings.ensemble_quality_weight
    )
    return int(round(max(0.0, min(100.0, confidence))))


def determine_trend(points: Sequence[ForecastPoint], history: Sequence[float]) -> Trend:
    window = settings.ensemble_trend_window
    if len(points) < 2 or not history:
        return Trend.stable

    recent_avg = float(np.mean(history[-window:]))
    future_avg = float(np.mean([p.value for p in points[:window]]))
    if recent_avg == 0:
        return Trend.rising if future_avg > 0 else Trend.stable

    change = (future_avg - recent_avg) / recent_avg * 100.0
    if change > settings.ensemble_trend_threshold_pct:
        return Trend.rising
    if change < -settings.ensemble_trend_threshold_pct:
        return Trend.falling
    return Trend.stable


def _display(subject: str) -> str:
    return subject.replace("-", " ")


def explain(subject: str, trend: Trend, confidence: int, points: Sequence[ForecastPoint]) -> str:
    avg_future = float(np.mean([p.value for p in points])) if points else 0.0
    movement = {
        Trend.rising: "show an upward trend",
        Trend.falling: "show a downward trend",
        Trend.stable: "remain relatively stable",
    }[trend]
    text = (
        f"Based on statistical analysis of historical data, {_display(subject)} is predicted to "
        f"{movement} over the next {len(points)} days, with an average forecasted value of {avg_future:.1f}. "
    )
    label = ConfidenceLabel.from_score(confidence)
    if label is ConfidenceLabel.high:
        text += f"This prediction has high confidence ({confidence}%) based on consistent historical patterns."
    elif label is ConfidenceLabel.medium:
        text += f"This prediction has moderate confidence ({confidence}%) - trends may vary."
    else:
        text += f"This prediction has lower confidence ({confidence}%) due to high variability in historical data."
    return text


def fallback(subject: str, horizon: int, reason: str, values: Sequence[float] = ()) -> ForecastBundle:
    return ForecastBundle(
        subject=subject,
        horizon_days=horizon,
        points=(),
        lower=(),
        upper=(),
        lower95=(),
        upper95=(),
        overall_confidence=0,
        trend=Trend.stable,
        explanation=f'Unable to generate a forecast for "{_display(subject)}": {reason}.',
        methods=(),
        forecast_hash=forecast_hash(subject, values),
        data_points=len(values),
        is_fallback=True,
        reason=reason,
    )


def assemble(series: Series, horizon: int, results: Sequence[Optional[MethodForecast]]) -> ForecastBundle:
    usable = _ordered(results)
    if not usable:
        return fallback(series.subject, horizon, "no forecasting method could run on this series", series.values)

    combined = combine(usable)
    confidence = overall_confidence(usable, series.values)
    trend = determine_trend(combined.points, series.values)
    return ForecastBundle(
        subject=series.subject,
        horizon_days=horizon,
        points=combined.points,
        lower=combined.lower,
        upper=combined.upper,
        lower95=combined.lower95,
        upper95=combined.upper95,
        overall_confidence=confidence,
        trend=trend,
        explanation=explain(series.subject, trend, confidence, combined.points),
        methods=tuple(r.method.value for r in usable),
        forecast_hash=forecast_hash(series.subject, series.values),
        data_points=len(series),
        method_reliability={r.method.value: round(r.reliability, 2) for r in usable},
    )


def _prepare(series: SeriesInput, subject: Optional[str], horizon_days: Optional[int]) -> tuple[Series, int]:
    if not isinstance(series, Series):
        if not subject:
            raise ValueError("subject is required when forecasting from raw points")
        series = extract(series, subject)
    if horizon_days is None:
        horizon_days = settings.forecast_default_horizon_days
    horizon = min(int(horizon_days), settings.forecast_max_horizon_days)
    return series, horizon


def _check(series: Series, horizon: int) -> None:
    if horizon < 1:
        raise InsufficientData(needed=1, got=horizon)
    if len(series) < settings.series_min_points:
        raise InsufficientData(needed=settings.series_min_points, got=len(series))


def forecast(
    series: SeriesInput,
    subject: Optional[str] = None,
    horizon_days: Optional[int] = None,
) -> ForecastBundle:
    prepared, horizon = _prepare(series, subject, horizon_days)
    try:
        _check(prepared, horizon)
    except InsufficientData as exc:
        return fallback(prepared.subject, horizon, f"insufficient data for prediction ({exc})", prepared.values)

    results = [methods.run(m, prepared.values, prepared.last_date, horizon) for m in Method.ordered()]
    return assemble(prepared, horizon, results)


async def forecast_async(
    series: SeriesInput,
    subject: Optional[str] = None,
    horizon_days: Optional[int] = None,
) -> ForecastBundle:
    prepared, horizon = _prepare(series, subject, horizon_days)
    try:
        _check(prepared, horizon)
    except InsufficientData as exc:
        return fallback(prepared.subject, horizon, f"insufficient data for prediction ({exc})", prepared.values)

    results = await asyncio.gather(*[
        asyncio.to_thread(methods.run, m, prepared.values, prepared.last_date, horizon)
        for m in Method.ordered()
    ])
    return assemble(prepared, horizon, results)
