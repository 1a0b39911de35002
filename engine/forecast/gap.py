"""
Gap forecasting between two subjects: the day-by-day difference of their ensemble forecasts with a
worst-case band, the chance that the current leader loses its lead, and a reliability gate saying
whether the comparison is worth showing at all.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from engine.forecast.ensemble import ForecastBundle
from config import settings

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GapPoint:
    date: str
    gap: float
    lower: float
    upper: float


@dataclass(frozen=True)
class ReliabilityGate:
    should_show: bool
    reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class GapForecastResult:
    subject_a: str
    subject_b: str
    current_gap: float
    expected_gap: float
    expected_margin_change: float
    points: Tuple[GapPoint, ...]
    lead_change_risk: float
    gate: ReliabilityGate

    @property
    def gaps(self) -> List[float]:
        return [p.gap for p in self.points]


def _r(value: float) -> float:
    return round(float(value), settings.forecast_round_digits)


def _gate(bundle_a: ForecastBundle, bundle_b: ForecastBundle, days: int, aligned: bool) -> ReliabilityGate:
    reasons: List[str] = []
    for bundle in (bundle_a, bundle_b):
        if bundle.is_fallback:
            reasons.append(f"no usable forecast for {bundle.subject}")
        if bundle.overall_confidence < settings.gap_min_confidence:
            reasons.append(
                f"confidence for {bundle.subject} is {bundle.overall_confidence}, "
                f"below {settings.gap_min_confidence:g}"
            )
    if not aligned:
        reasons.append("forecast dates of the two subjects do not align")
    if days < settings.gap_min_days:
        reasons.append(f"only {days} forecast days available, need {settings.gap_min_days}")
    return ReliabilityGate(should_show=not reasons, reasons=tuple(reasons))


def _leader_sign(gaps: np.ndarray) -> np.ndarray:
    # a tie counts as A leading
    return np.where(gaps >= 0, 1, -1)


def lead_change_risk(gaps: List[float], current_gap: float) -> float:
    if not gaps:
        return 0.0
    current_sign = _leader_sign(np.asarray([current_gap], dtype=float))[0]
    flips = int(np.count_nonzero(_leader_sign(np.asarray(gaps, dtype=float)) != current_sign))
    return round(100.0 * flips / len(gaps), 2)


def gap_forecast(
    bundle_a: ForecastBundle,
    bundle_b: ForecastBundle,
    current_a: float,
    current_b: float,
) -> GapForecastResult:
    """Forecast the difference ``A - B`` from two ensemble bundles.

    The band is the worst case of both individual bands: the lower bound pairs A's lower bound
    with B's upper bound and vice versa. Only dates present in both bundles contribute, in A's
    order; any mismatch also fails the reliability gate.
    """
    current_gap = float(current_a) - float(current_b)

    index_b = {p.date: i for i, p in enumerate(bundle_b.points)}
    aligned = bundle_a.dates == bundle_b.dates

    points: List[GapPoint] = []
    for i, pa in enumerate(bundle_a.points):
        j = index_b.get(pa.date)
        if j is None:
            continue
        pb = bundle_b.points[j]
        points.append(GapPoint(
            date=pa.date,
            gap=_r(pa.value - pb.value),
            lower=_r(bundle_a.lower[i] - bundle_b.upper[j]),
            upper=_r(bundle_a.upper[i] - bundle_b.lower[j]),
        ))

    gaps = [p.gap for p in points]
    expected_gap = gaps[-1] if gaps else current_gap
    gate = _gate(bundle_a, bundle_b, len(points), aligned)
    if not gate.should_show:
        log.debug("gap %s/%s gated: %s", bundle_a.subject, bundle_b.subject, "; ".join(gate.reasons))

    return GapForecastResult(
        subject_a=bundle_a.subject,
        subject_b=bundle_b.subject,
        current_gap=_r(current_gap),
        expected_gap=_r(expected_gap),
        expected_margin_change=_r(expected_gap - current_gap),
        points=tuple(points),
        lead_change_risk=lead_change_risk(gaps, current_gap),
        gate=gate,
    )
