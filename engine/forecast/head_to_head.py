"""
Head-to-head analytics for two forecast bundles: who is likely to lead on average over the horizon,
by how much, and how likely the lead is to change hands along the way.

Each day's value is treated as uniform within its 80% band, so a day's margin ``A - B`` has the
forecast difference as its mean and ``(range_a^2 + range_b^2) / 12`` as its variance. The winner
probability uses a normal approximation of the horizon-average margin; the crossover probability
is computed exactly from the day-by-day sign probabilities.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from config import settings
from engine.enums import LeadChangeLevel
from engine.forecast.ensemble import ForecastBundle


@dataclass(frozen=True)
class HeadToHead:
    subject_a: str
    subject_b: str
    horizon_days: int
    current_margin: float
    expected_margin: float
    probability_a_wins: float
    crossover_probability: float
    lead_change_level: LeadChangeLevel

    @property
    def probability_b_wins(self) -> float:
        return round(100.0 - self.probability_a_wins, settings.forecast_round_digits)

    @property
    def predicted_winner(self) -> Optional[str]:
        if self.probability_a_wins > 50.0:
            return self.subject_a
        if self.probability_a_wins < 50.0:
            return self.subject_b
        return None


def _r(value: float) -> float:
    return round(float(value), settings.forecast_round_digits)


def _sign_probabilities(mean: float, sd: float) -> Tuple[float, float]:
    """P(margin > 0) and P(margin < 0); with no spread a zero margin is neither."""
    if sd <= 0:
        if mean > 0:
            return 1.0, 0.0
        if mean < 0:
            return 0.0, 1.0
        return 0.0, 0.0
    positive = 0.5 * (1.0 + math.erf(mean / (sd * math.sqrt(2.0))))
    return positive, 1.0 - positive


def crossover_probability(means: Sequence[float], sds: Sequence[float], current_margin: float) -> float:
    """Chance that the margin changes sign from one day to the next at least once.

    Tracks the probability mass of the previous day's sign that has not crossed yet; a zero margin
    neither starts nor completes a crossover.
    """
    pos = 1.0 if current_margin > 0 else 0.0
    neg = 1.0 if current_margin < 0 else 0.0
    zero = 1.0 - pos - neg
    crossed = 0.0
    for mean, sd in zip(means, sds):
        p_pos, p_neg = _sign_probabilities(mean, sd)
        p_zero = 1.0 - p_pos - p_neg
        crossed += pos * p_neg + neg * p_pos
        pos, neg, zero = (pos + zero) * p_pos, (neg + zero) * p_neg, (pos + neg + zero) * p_zero
    return min(1.0, crossed)


def lead_change_level(
    current_a: float,
    current_b: float,
    crossover: float,
    mean_confidence: float,
) -> LeadChangeLevel:
    scale = max(current_a, current_b)
    share = abs(current_a - current_b) / scale if scale > 0 else 0.0
    if (
        share < settings.h2h_margin_high
        or crossover > settings.h2h_crossover_high
        or mean_confidence < settings.h2h_confidence_high
    ):
        return LeadChangeLevel.high
    if (
        share < settings.h2h_margin_medium
        or crossover > settings.h2h_crossover_medium
        or mean_confidence < settings.h2h_confidence_medium
    ):
        return LeadChangeLevel.medium
    return LeadChangeLevel.low


def head_to_head(
    bundle_a: ForecastBundle,
    bundle_b: ForecastBundle,
    current_a: float,
    current_b: float,
) -> HeadToHead:
    current_a, current_b = float(current_a), float(current_b)
    current_margin = current_a - current_b

    index_b = {p.date: i for i, p in enumerate(bundle_b.points)}
    means, variances = [], []
    for i, pa in enumerate(bundle_a.points):
        j = index_b.get(pa.date)
        if j is None:
            continue
        range_a = bundle_a.upper[i] - bundle_a.lower[i]
        range_b = bundle_b.upper[j] - bundle_b.lower[j]
        means.append(pa.value - bundle_b.points[j].value)
        variances.append((range_a ** 2 + range_b ** 2) / 12.0)

    if not means:
        return HeadToHead(
            subject_a=bundle_a.subject,
            subject_b=bundle_b.subject,
            horizon_days=0,
            current_margin=_r(current_margin),
            expected_margin=0.0,
            probability_a_wins=50.0,
            crossover_probability=0.0,
            lead_change_level=LeadChangeLevel.medium,
        )

    mean_arr = np.asarray(means, dtype=float)
    var_arr = np.asarray(variances, dtype=float)
    horizon = len(mean_arr)
    expected = float(mean_arr.mean())
    # spread of the horizon average over independent days
    p_pos, p_neg = _sign_probabilities(expected, math.sqrt(float(var_arr.sum())) / horizon)
    p_a_wins = p_pos + 0.5 * (1.0 - p_pos - p_neg)

    crossover = crossover_probability(mean_arr.tolist(), np.sqrt(var_arr).tolist(), current_margin)
    mean_confidence = (bundle_a.overall_confidence + bundle_b.overall_confidence) / 2.0

    return HeadToHead(
        subject_a=bundle_a.subject,
        subject_b=bundle_b.subject,
        horizon_days=horizon,
        current_margin=_r(current_margin),
        expected_margin=_r(expected),
        probability_a_wins=_r(100.0 * p_a_wins),
        crossover_probability=_r(100.0 * crossover),
        lead_change_level=lead_change_level(current_a, current_b, crossover, mean_confidence),
    )
