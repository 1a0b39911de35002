"""
Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, List, Optional

import numpy as np

from config import settings


@dataclass(frozen=True)
class TrustStats:
    total_evaluated: int
    winner_accuracy: Optional[float]
    avg_interval_coverage: Optional[float]
    mean_mae: Optional[float]
    recent_winner_accuracy: Optional[float]
    recent_evaluated: int
    window_days: int


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return round(float(np.mean(values)), settings.forecast_round_digits)


def _accuracy(records: List[Any]) -> Optional[float]:
    judged = [r.winner_correct for r in records if r.winner_correct is not None]
    if not judged:
        return None
    return round(100.0 * sum(1 for w in judged if w) / len(judged), settings.forecast_round_digits)


def summarize(
    records: Iterable[Any],
    now: Optional[datetime] = None,
    window_days: Optional[int] = None,
) -> TrustStats:
    # accepts anything shaped like a VerifiedForecast, including persisted rows
    if window_days is None:
        window_days = settings.trust_window_days
    now = _aware(now or datetime.now(timezone.utc))
    rows = list(records)
    cutoff = now - timedelta(days=window_days)
    recent = [r for r in rows if _aware(r.evaluated_at) >= cutoff]

    return TrustStats(
        total_evaluated=len(rows),
        winner_accuracy=_accuracy(rows),
        avg_interval_coverage=_mean([r.interval_hit_rate_80 for r in rows if r.interval_hit_rate_80 is not None]),
        mean_mae=_mean([r.mae for r in rows if r.mae is not None]),
        recent_winner_accuracy=_accuracy(recent),
        recent_evaluated=len(recent),
        window_days=window_days,
    )
