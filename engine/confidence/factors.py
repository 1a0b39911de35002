"""
Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from engine.confidence.scoring import ConfidenceFactors
from config import settings


def gap_volatility(gaps: Sequence[float], window: int | None = None) -> float:
    if window is None:
        window = settings.gap_volatility_window
    recent = np.asarray(gaps[-window:], dtype=float) if window > 0 else np.asarray([], dtype=float)
    if len(recent) < 2:
        return 0.0
    scale = float(np.mean(np.abs(recent)))
    if scale <= 0:
        return 0.0
    return float(min(100.0, 100.0 * float(np.std(recent)) / scale))


def leader_agreement(gaps: Sequence[float], current_gap: float) -> float:
    if not gaps or current_gap == 0:
        return 50.0
    signs = np.sign(np.asarray(gaps, dtype=float))
    return float(100.0 * np.count_nonzero(signs == np.sign(current_gap)) / len(signs))


def comparison_factors(
    values_a: Sequence[float],
    values_b: Sequence[float],
    leader_change_risk: float,
    source_count: int = 1,
) -> ConfidenceFactors:
    """Derive confidence factors for a subject pair from its aligned history.

    The margin is the absolute current gap; agreement is how consistently the current
    leader has led across the history.
    """
    n = min(len(values_a), len(values_b))
    gaps = [float(a) - float(b) for a, b in zip(values_a[:n], values_b[:n])]
    current_gap = gaps[-1] if gaps else 0.0
    return ConfidenceFactors.sanitized(
        agreement_index=leader_agreement(gaps, current_gap),
        volatility=gap_volatility(gaps),
        data_points=n,
        source_count=source_count,
        leader_change_risk=leader_change_risk,
        margin=abs(current_gap),
    )
