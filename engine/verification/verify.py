"""
Forecast verification: once real values arrive for forecast dates, compare them with what the
bundles predicted and compute interval coverage, absolute and percentage error, direction accuracy
and, for comparisons, whether the predicted leader was right.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from engine.forecast.ensemble import ForecastBundle
from engine.series import Series
from config import settings

log = logging.getLogger(__name__)

Actuals = Union[Series, Mapping[str, float]]


@dataclass(frozen=True)
class VerifiedPoint:
    subject: str
    date: str
    predicted: float
    actual: float
    lower80: float
    upper80: float
    lower95: float
    upper95: float

    @property
    def hit80(self) -> bool:
        return self.lower80 <= self.actual <= self.upper80

    @property
    def hit95(self) -> bool:
        return self.lower95 <= self.actual <= self.upper95

    @property
    def abs_error(self) -> float:
        return abs(self.actual - self.predicted)


@dataclass(frozen=True)
class VerifiedForecast:
    forecast_id: str
    evaluated_at: datetime
    subject_a: str
    subject_b: Optional[str]
    points: Tuple[VerifiedPoint, ...]
    winner_correct: Optional[bool]
    interval_hit_rate_80: Optional[float]
    interval_hit_rate_95: Optional[float]
    mae: Optional[float]
    mape: Optional[float]
    direction_accuracy: Optional[float]

    @property
    def evaluated_points(self) -> int:
        return len(self.points)


def _actual_map(actuals: Actuals) -> Dict[str, float]:
    raw = actuals.as_mapping() if isinstance(actuals, Series) else actuals
    out: Dict[str, float] = {}
    for day, value in raw.items():
        try:
            v = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(v):
            out[str(day)[:10]] = v
    return out


def _match(bundle: ForecastBundle, actuals: Dict[str, float]) -> List[VerifiedPoint]:
    matched = []
    for i, p in enumerate(bundle.points):
        actual = actuals.get(p.date)
        if actual is None:
            continue
        matched.append(VerifiedPoint(
            subject=bundle.subject,
            date=p.date,
            predicted=p.value,
            actual=actual,
            lower80=bundle.lower[i],
            upper80=bundle.upper[i],
            lower95=bundle.lower95[i] if i < len(bundle.lower95) else bundle.lower[i],
            upper95=bundle.upper95[i] if i < len(bundle.upper95) else bundle.upper[i],
        ))
    return matched


def _pct_error(point: VerifiedPoint, tolerance: float) -> float:
    if point.actual == 0:
        return 100.0 if abs(point.predicted) > tolerance else 0.0
    return point.abs_error / abs(point.actual) * 100.0


def _directions(bundle: ForecastBundle, actuals: Dict[str, float]) -> Tuple[int, int]:
    correct = total = 0
    for prev, cur in zip(bundle.points, bundle.points[1:]):
        a_prev = actuals.get(prev.date)
        a_cur = actuals.get(cur.date)
        if a_prev is None or a_cur is None:
            continue
        total += 1
        if (cur.value > prev.value) == (a_cur > a_prev):
            correct += 1
    return correct, total


def _round(value: Optional[float]) -> Optional[float]:
    return None if value is None else round(float(value), settings.forecast_round_digits)


def _metrics(points: Sequence[VerifiedPoint], direction: Tuple[int, int]) -> Dict[str, Optional[float]]:
    if not points:
        return {
            "interval_hit_rate_80": None,
            "interval_hit_rate_95": None,
            "mae": None,
            "mape": None,
            "direction_accuracy": None,
        }
    tolerance = settings.verification_zero_tolerance
    correct, total = direction
    return {
        "interval_hit_rate_80": _round(100.0 * sum(p.hit80 for p in points) / len(points)),
        "interval_hit_rate_95": _round(100.0 * sum(p.hit95 for p in points) / len(points)),
        "mae": _round(np.mean([p.abs_error for p in points])),
        "mape": _round(np.mean([_pct_error(p, tolerance) for p in points])),
        "direction_accuracy": _round(100.0 * correct / total) if total else None,
    }


def _now(evaluated_at: Optional[datetime]) -> datetime:
    return evaluated_at or datetime.now(timezone.utc)


def verify(
    bundle: ForecastBundle,
    actuals: Actuals,
    forecast_id: Optional[str] = None,
    evaluated_at: Optional[datetime] = None,
) -> VerifiedForecast:
    observed = _actual_map(actuals)
    points = _match(bundle, observed)
    metrics = _metrics(points, _directions(bundle, observed))
    return VerifiedForecast(
        forecast_id=forecast_id or bundle.forecast_hash,
        evaluated_at=_now(evaluated_at),
        subject_a=bundle.subject,
        subject_b=None,
        points=tuple(points),
        winner_correct=None,
        **metrics,
    )


def _winner_correct(points_a: Sequence[VerifiedPoint], points_b: Sequence[VerifiedPoint]) -> Optional[bool]:
    by_date_b = {p.date: p for p in points_b}
    common = [p.date for p in points_a if p.date in by_date_b]
    if not common:
        return None
    last = max(common)
    pa = next(p for p in points_a if p.date == last)
    pb = by_date_b[last]
    return bool(np.sign(pa.actual - pb.actual) == np.sign(pa.predicted - pb.predicted))


def verify_comparison(
    bundle_a: ForecastBundle,
    bundle_b: ForecastBundle,
    actuals_a: Actuals,
    actuals_b: Actuals,
    forecast_id: Optional[str] = None,
    evaluated_at: Optional[datetime] = None,
) -> VerifiedForecast:
    """Verify both sides of a comparison and pool their points into one record.

    Metrics are computed over the points of both subjects together. ``winner_correct`` looks at
    the latest date verified for both subjects only.
    """
    observed_a = _actual_map(actuals_a)
    observed_b = _actual_map(actuals_b)
    points_a = _match(bundle_a, observed_a)
    points_b = _match(bundle_b, observed_b)

    correct_a, total_a = _directions(bundle_a, observed_a)
    correct_b, total_b = _directions(bundle_b, observed_b)
    metrics = _metrics(points_a + points_b, (correct_a + correct_b, total_a + total_b))
    winner = _winner_correct(points_a, points_b)
    log.debug(
        "verified %s vs %s: %d+%d points, winner_correct=%s",
        bundle_a.subject, bundle_b.subject, len(points_a), len(points_b), winner,
    )
    return VerifiedForecast(
        forecast_id=forecast_id or f"{bundle_a.forecast_hash}:{bundle_b.forecast_hash}",
        evaluated_at=_now(evaluated_at),
        subject_a=bundle_a.subject,
        subject_b=bundle_b.subject,
        points=tuple(points_a + points_b),
        winner_correct=winner,
        **metrics,
    )
