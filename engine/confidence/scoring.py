"""
Confidence scoring for forecasts and comparisons: a 0-100 trust score built from method agreement,
volatility, sample size, source count, margin and lead-change risk, plus its categorical label.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from engine.enums import ConfidenceLabel

_BASE = 50.0
_AGREEMENT_WEIGHT = 0.3
_VOLATILITY_PENALTY = 0.25
_DATA_POINTS_CAP = 20.0
_DATA_POINTS_FULL = 50.0
_SOURCE_BONUS = 7.5
_SOURCE_CAP = 15.0
_MARGIN_WEIGHT = 0.5
_MARGIN_CAP = 10.0
_RISK_PENALTY = 0.15


def _finite(value: Any, default: float, lo: float, hi: float = math.inf) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(v):
        return default
    return max(lo, min(hi, v))


@dataclass(frozen=True)
class ConfidenceFactors:
    agreement_index: float = 50.0
    volatility: float = 0.0
    data_points: float = 0.0
    source_count: float = 1.0
    leader_change_risk: float = 0.0
    margin: float = 0.0

    @classmethod
    def sanitized(
        cls,
        agreement_index: Optional[float] = None,
        volatility: Optional[float] = None,
        data_points: Optional[float] = None,
        source_count: Optional[float] = None,
        leader_change_risk: Optional[float] = None,
        margin: Optional[float] = None,
    ) -> ConfidenceFactors:
        return cls(
            agreement_index=_finite(agreement_index, 50.0, 0.0, 100.0),
            volatility=_finite(volatility, 0.0, 0.0, 100.0),
            data_points=_finite(data_points, 0.0, 0.0),
            source_count=_finite(source_count, 1.0, 1.0),
            leader_change_risk=_finite(leader_change_risk, 0.0, 0.0, 100.0),
            margin=_finite(margin, 0.0, 0.0),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ConfidenceFactors:
        """Build factors from either snake_case or camelCase keys; anything missing is neutral."""
        def pick(snake: str, camel: str) -> Any:
            return data.get(snake, data.get(camel))

        return cls.sanitized(
            agreement_index=pick("agreement_index", "agreementIndex"),
            volatility=pick("volatility", "volatility"),
            data_points=pick("data_points", "dataPoints"),
            source_count=pick("source_count", "sourceCount"),
            leader_change_risk=pick("leader_change_risk", "leaderChangeRisk"),
            margin=pick("margin", "margin"),
        )


@dataclass(frozen=True)
class ConfidenceResult:
    score: int
    label: ConfidenceLabel


def score(factors: ConfidenceFactors) -> float:
    f = ConfidenceFactors.sanitized(
        factors.agreement_index,
        factors.volatility,
        factors.data_points,
        factors.source_count,
        factors.leader_change_risk,
        factors.margin,
    )
    total = _BASE
    total += (f.agreement_index - 50.0) * _AGREEMENT_WEIGHT
    total -= f.volatility * _VOLATILITY_PENALTY
    total += min(_DATA_POINTS_CAP, f.data_points / _DATA_POINTS_FULL * _DATA_POINTS_CAP)
    total += min(_SOURCE_CAP, (f.source_count - 1.0) * _SOURCE_BONUS)
    total += min(_MARGIN_CAP, f.margin * _MARGIN_WEIGHT)
    total -= f.leader_change_risk * _RISK_PENALTY
    return max(0.0, min(100.0, total))


def confidence(factors: ConfidenceFactors | Mapping[str, Any] | None = None) -> ConfidenceResult:
    if factors is None:
        factors = ConfidenceFactors()
    elif not isinstance(factors, ConfidenceFactors):
        factors = ConfidenceFactors.from_mapping(factors)
    value = int(round(score(factors)))
    return ConfidenceResult(score=value, label=ConfidenceLabel.from_score(value))
