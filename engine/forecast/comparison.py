"""
Two-subject comparison forecast: both ensemble bundles computed concurrently, the gap forecast
between them, the head-to-head analytics and the comparison confidence derived from their shared
history.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from engine.confidence import ConfidenceResult, comparison_factors, confidence
from engine.forecast.ensemble import ForecastBundle, forecast_async
from engine.forecast.gap import GapForecastResult, gap_forecast
from engine.forecast.hashing import data_hash
from engine.forecast.head_to_head import HeadToHead, head_to_head
from engine.series import Series


@dataclass(frozen=True)
class ComparisonForecast:
    subject_a: str
    subject_b: str
    bundle_a: ForecastBundle
    bundle_b: ForecastBundle
    gap: GapForecastResult
    confidence: ConfidenceResult
    data_hash: str
    generated_at: datetime
    params: Dict[str, Any] = field(default_factory=dict)
    head_to_head: Optional[HeadToHead] = None

    @property
    def both_usable(self) -> bool:
        return not (self.bundle_a.is_fallback or self.bundle_b.is_fallback)


async def compare(
    series_a: Series,
    series_b: Series,
    horizon_days: Optional[int] = None,
    params: Optional[Dict[str, Any]] = None,
) -> ComparisonForecast:
    params = dict(params or {})
    bundle_a, bundle_b = await asyncio.gather(
        forecast_async(series_a, horizon_days=horizon_days),
        forecast_async(series_b, horizon_days=horizon_days),
    )
    gap = gap_forecast(bundle_a, bundle_b, series_a.last_value, series_b.last_value)
    factors = comparison_factors(series_a.values, series_b.values, gap.lead_change_risk)
    return ComparisonForecast(
        subject_a=series_a.subject,
        subject_b=series_b.subject,
        bundle_a=bundle_a,
        bundle_b=bundle_b,
        gap=gap,
        confidence=confidence(factors),
        data_hash=data_hash(
            series_a.iso_dates(),
            series_a.values,
            series_b.values,
            series_a.subject,
            series_b.subject,
            params,
        ),
        generated_at=datetime.now(timezone.utc),
        params=params,
        head_to_head=head_to_head(bundle_a, bundle_b, series_a.last_value, series_b.last_value),
    )
