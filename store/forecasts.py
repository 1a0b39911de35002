"""
JSON-safe (de)serialization of forecast bundles, gap results, head-to-head analytics and comparison
forecasts for the cache and the forecast run log.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from engine.confidence import ConfidenceResult
from engine.enums import ConfidenceLabel, LeadChangeLevel, Trend
from engine.forecast import (
    ComparisonForecast,
    ForecastBundle,
    ForecastPoint,
    GapForecastResult,
    GapPoint,
    HeadToHead,
    ReliabilityGate,
)
from store import keys
from store.cache import CachedValue, ForecastCache
from config import settings

log = logging.getLogger(__name__)


def bundle_to_dict(bundle: ForecastBundle) -> Dict[str, Any]:
    return {
        "subject": bundle.subject,
        "horizon_days": bundle.horizon_days,
        "points": [{"date": p.date, "value": p.value, "confidence": p.confidence} for p in bundle.points],
        "lower": list(bundle.lower),
        "upper": list(bundle.upper),
        "lower95": list(bundle.lower95),
        "upper95": list(bundle.upper95),
        "overall_confidence": bundle.overall_confidence,
        "trend": bundle.trend.value,
        "explanation": bundle.explanation,
        "methods": list(bundle.methods),
        "forecast_hash": bundle.forecast_hash,
        "data_points": bundle.data_points,
        "method_reliability": dict(bundle.method_reliability),
        "is_fallback": bundle.is_fallback,
        "reason": bundle.reason,
    }


def bundle_from_dict(data: Dict[str, Any]) -> ForecastBundle:
    return ForecastBundle(
        subject=data["subject"],
        horizon_days=int(data["horizon_days"]),
        points=tuple(ForecastPoint(p["date"], float(p["value"]), float(p["confidence"])) for p in data["points"]),
        lower=tuple(float(v) for v in data["lower"]),
        upper=tuple(float(v) for v in data["upper"]),
        lower95=tuple(float(v) for v in data.get("lower95", data["lower"])),
        upper95=tuple(float(v) for v in data.get("upper95", data["upper"])),
        overall_confidence=int(data["overall_confidence"]),
        trend=Trend(data["trend"]),
        explanation=data["explanation"],
        methods=tuple(data["methods"]),
        forecast_hash=data["forecast_hash"],
        data_points=int(data.get("data_points", 0)),
        method_reliability={k: float(v) for k, v in data.get("method_reliability", {}).items()},
        is_fallback=bool(data.get("is_fallback", False)),
        reason=data.get("reason"),
    )


def gap_to_dict(gap: GapForecastResult) -> Dict[str, Any]:
    return {
        "subject_a": gap.subject_a,
        "subject_b": gap.subject_b,
        "current_gap": gap.current_gap,
        "expected_gap": gap.expected_gap,
        "expected_margin_change": gap.expected_margin_change,
        "points": [{"date": p.date, "gap": p.gap, "lower": p.lower, "upper": p.upper} for p in gap.points],
        "lead_change_risk": gap.lead_change_risk,
        "gate": {"should_show": gap.gate.should_show, "reasons": list(gap.gate.reasons)},
    }


def gap_from_dict(data: Dict[str, Any]) -> GapForecastResult:
    gate = data.get("gate") or {}
    return GapForecastResult(
        subject_a=data["subject_a"],
        subject_b=data["subject_b"],
        current_gap=float(data["current_gap"]),
        expected_gap=float(data["expected_gap"]),
        expected_margin_change=float(data["expected_margin_change"]),
        points=tuple(GapPoint(p["date"], float(p["gap"]), float(p["lower"]), float(p["upper"])) for p in data["points"]),
        lead_change_risk=float(data["lead_change_risk"]),
        gate=ReliabilityGate(bool(gate.get("should_show", False)), tuple(gate.get("reasons", ()))),
    )


def head_to_head_to_dict(h2h: HeadToHead) -> Dict[str, Any]:
    return {
        "subject_a": h2h.subject_a,
        "subject_b": h2h.subject_b,
        "horizon_days": h2h.horizon_days,
        "current_margin": h2h.current_margin,
        "expected_margin": h2h.expected_margin,
        "probability_a_wins": h2h.probability_a_wins,
        "crossover_probability": h2h.crossover_probability,
        "lead_change_level": h2h.lead_change_level.value,
    }


def head_to_head_from_dict(data: Dict[str, Any]) -> HeadToHead:
    return HeadToHead(
        subject_a=data["subject_a"],
        subject_b=data["subject_b"],
        horizon_days=int(data["horizon_days"]),
        current_margin=float(data["current_margin"]),
        expected_margin=float(data["expected_margin"]),
        probability_a_wins=float(data["probability_a_wins"]),
        crossover_probability=float(data["crossover_probability"]),
        lead_change_level=LeadChangeLevel(data["lead_change_level"]),
    )


def comparison_to_dict(comparison: ComparisonForecast) -> Dict[str, Any]:
    return {
        "subject_a": comparison.subject_a,
        "subject_b": comparison.subject_b,
        "bundle_a": bundle_to_dict(comparison.bundle_a),
        "bundle_b": bundle_to_dict(comparison.bundle_b),
        "gap": gap_to_dict(comparison.gap),
        "confidence": {"score": comparison.confidence.score, "label": comparison.confidence.label.value},
        "data_hash": comparison.data_hash,
        "generated_at": comparison.generated_at.isoformat(),
        "params": dict(comparison.params),
        "head_to_head": head_to_head_to_dict(comparison.head_to_head) if comparison.head_to_head else None,
    }


def comparison_from_dict(data: Dict[str, Any]) -> ComparisonForecast:
    conf = data["confidence"]
    h2h = data.get("head_to_head")
    return ComparisonForecast(
        subject_a=data["subject_a"],
        subject_b=data["subject_b"],
        bundle_a=bundle_from_dict(data["bundle_a"]),
        bundle_b=bundle_from_dict(data["bundle_b"]),
        gap=gap_from_dict(data["gap"]),
        confidence=ConfidenceResult(score=int(conf["score"]), label=ConfidenceLabel(conf["label"])),
        data_hash=data["data_hash"],
        generated_at=datetime.fromisoformat(data["generated_at"]),
        params=dict(data.get("params", {})),
        head_to_head=head_to_head_from_dict(h2h) if h2h else None,
    )


async def save_comparison(
    cache: ForecastCache,
    comparison: ComparisonForecast,
    timeframe: str,
    geo: str,
) -> None:
    fresh = settings.forecast_fresh_ttl_seconds
    stale = settings.forecast_stale_ttl_seconds
    await cache.set(
        keys.comparison(comparison.subject_a, comparison.subject_b, timeframe, geo),
        comparison_to_dict(comparison),
        fresh,
        stale,
    )
    for bundle in (comparison.bundle_a, comparison.bundle_b):
        await cache.set(keys.forecast(bundle.subject, timeframe, geo), bundle_to_dict(bundle), fresh, stale)


async def load_comparison(
    cache: ForecastCache,
    subject_a: str,
    subject_b: str,
    timeframe: str,
    geo: str,
) -> Optional[tuple[ComparisonForecast, bool]]:
    cached: Optional[CachedValue] = await cache.get(keys.comparison(subject_a, subject_b, timeframe, geo))
    if cached is None:
        return None
    try:
        return comparison_from_dict(cached.value), cached.is_stale
    except (KeyError, TypeError, ValueError) as exc:
        log.warning("Unreadable cached comparison %s vs %s: %s", subject_a, subject_b, exc)
        return None


async def load_bundle(cache: ForecastCache, subject: str, timeframe: str, geo: str) -> Optional[ForecastBundle]:
    cached = await cache.get(keys.forecast(subject, timeframe, geo))
    if cached is None:
        return None
    try:
        return bundle_from_dict(cached.value)
    except (KeyError, TypeError, ValueError) as exc:
        log.warning("Unreadable cached forecast for %s: %s", subject, exc)
        return None
