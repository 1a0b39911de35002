"""
Response models for API endpoints.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from datetime import datetime
import numpy as np
from pydantic import BaseModel, Field, model_serializer

from engine.confidence import ConfidenceResult
from engine.enums import ConfidenceLabel, LeadChangeLevel, Trend, WarmupStatus
from engine.forecast import ComparisonForecast, ForecastBundle, GapForecastResult, HeadToHead
from engine.verification import TrustStats, VerifiedForecast


def _coerce(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _coerce(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_coerce(v) for v in obj]
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    return obj


class NpModel(BaseModel):

    @model_serializer(mode="wrap")
    def _serialize(self, handler: Any) -> Any:
        return _coerce(handler(self))


class ForecastPointOut(NpModel):
    date: str
    value: float
    confidence: float
    lower: float
    upper: float
    lower95: float
    upper95: float


class ForecastBundleOut(NpModel):
    subject: str
    horizon_days: int
    points: List[ForecastPointOut] = Field(default_factory=list)
    overall_confidence: int
    trend: Trend
    explanation: str
    methods: List[str] = Field(default_factory=list)
    method_reliability: Dict[str, float] = Field(default_factory=dict)
    forecast_hash: str
    data_points: int
    is_fallback: bool = False
    reason: Optional[str] = None

    @classmethod
    def from_bundle(cls, bundle: ForecastBundle) -> ForecastBundleOut:
        return cls(
            subject=bundle.subject,
            horizon_days=bundle.horizon_days,
            points=[
                ForecastPointOut(
                    date=p.date,
                    value=p.value,
                    confidence=p.confidence,
                    lower=bundle.lower[i],
                    upper=bundle.upper[i],
                    lower95=bundle.lower95[i],
                    upper95=bundle.upper95[i],
                )
                for i, p in enumerate(bundle.points)
            ],
            overall_confidence=bundle.overall_confidence,
            trend=bundle.trend,
            explanation=bundle.explanation,
            methods=list(bundle.methods),
            method_reliability=dict(bundle.method_reliability),
            forecast_hash=bundle.forecast_hash,
            data_points=bundle.data_points,
            is_fallback=bundle.is_fallback,
            reason=bundle.reason,
        )


class GapPointOut(NpModel):
    date: str
    gap: float
    lower: float
    upper: float


class GapForecastOut(NpModel):
    subject_a: str
    subject_b: str
    current_gap: float
    expected_gap: float
    expected_margin_change: float
    points: List[GapPointOut] = Field(default_factory=list)
    lead_change_risk: float
    should_show: bool
    reasons: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, gap: GapForecastResult) -> GapForecastOut:
        return cls(
            subject_a=gap.subject_a,
            subject_b=gap.subject_b,
            current_gap=gap.current_gap,
            expected_gap=gap.expected_gap,
            expected_margin_change=gap.expected_margin_change,
            points=[GapPointOut(date=p.date, gap=p.gap, lower=p.lower, upper=p.upper) for p in gap.points],
            lead_change_risk=gap.lead_change_risk,
            should_show=gap.gate.should_show,
            reasons=list(gap.gate.reasons),
        )


class ConfidenceOut(NpModel):
    score: int
    label: ConfidenceLabel

    @classmethod
    def from_result(cls, result: ConfidenceResult) -> ConfidenceOut:
        return cls(score=result.score, label=result.label)


class HeadToHeadOut(NpModel):
    horizon_days: int
    current_margin: float
    expected_margin: float
    probability_a_wins: float
    probability_b_wins: float
    predicted_winner: Optional[str] = None
    crossover_probability: float
    lead_change_level: LeadChangeLevel

    @classmethod
    def from_result(cls, h2h: HeadToHead) -> HeadToHeadOut:
        return cls(
            horizon_days=h2h.horizon_days,
            current_margin=h2h.current_margin,
            expected_margin=h2h.expected_margin,
            probability_a_wins=h2h.probability_a_wins,
            probability_b_wins=h2h.probability_b_wins,
            predicted_winner=h2h.predicted_winner,
            crossover_probability=h2h.crossover_probability,
            lead_change_level=h2h.lead_change_level,
        )


class ComparisonOut(NpModel):
    subject_a: str
    subject_b: str
    forecast_a: ForecastBundleOut
    forecast_b: ForecastBundleOut
    gap: GapForecastOut
    confidence: ConfidenceOut
    head_to_head: Optional[HeadToHeadOut] = None
    data_hash: str
    generated_at: datetime

    @classmethod
    def from_comparison(cls, comparison: ComparisonForecast) -> ComparisonOut:
        return cls(
            subject_a=comparison.subject_a,
            subject_b=comparison.subject_b,
            forecast_a=ForecastBundleOut.from_bundle(comparison.bundle_a),
            forecast_b=ForecastBundleOut.from_bundle(comparison.bundle_b),
            gap=GapForecastOut.from_result(comparison.gap),
            confidence=ConfidenceOut.from_result(comparison.confidence),
            head_to_head=HeadToHeadOut.from_result(comparison.head_to_head) if comparison.head_to_head else None,
            data_hash=comparison.data_hash,
            generated_at=comparison.generated_at,
        )


class WarmupResponse(NpModel):
    status: WarmupStatus
    done: bool = False
    forecast: Optional[ComparisonOut] = None
    is_stale: bool = False
    error: Optional[str] = None
    retry_eligible: bool = False
    updated_at: Optional[datetime] = None


class VerifiedPointOut(NpModel):
    subject: str
    date: str
    predicted: float
    actual: float
    lower80: float
    upper80: float
    lower95: float
    upper95: float
    hit80: bool
    hit95: bool


class VerifiedForecastOut(NpModel):
    record_id: Optional[str] = None
    forecast_id: str
    evaluated_at: datetime
    subject_a: str
    subject_b: Optional[str] = None
    evaluated_points: int
    winner_correct: Optional[bool] = None
    interval_hit_rate_80: Optional[float] = None
    interval_hit_rate_95: Optional[float] = None
    mae: Optional[float] = None
    mape: Optional[float] = None
    direction_accuracy: Optional[float] = None
    points: List[VerifiedPointOut] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: VerifiedForecast, record_id: Optional[str] = None) -> VerifiedForecastOut:
        return cls(
            record_id=record_id,
            forecast_id=result.forecast_id,
            evaluated_at=result.evaluated_at,
            subject_a=result.subject_a,
            subject_b=result.subject_b,
            evaluated_points=result.evaluated_points,
            winner_correct=result.winner_correct,
            interval_hit_rate_80=result.interval_hit_rate_80,
            interval_hit_rate_95=result.interval_hit_rate_95,
            mae=result.mae,
            mape=result.mape,
            direction_accuracy=result.direction_accuracy,
            points=[
                VerifiedPointOut(
                    subject=p.subject,
                    date=p.date,
                    predicted=p.predicted,
                    actual=p.actual,
                    lower80=p.lower80,
                    upper80=p.upper80,
                    lower95=p.lower95,
                    upper95=p.upper95,
                    hit80=p.hit80,
                    hit95=p.hit95,
                )
                for p in result.points
            ],
        )


class EvaluationResponse(NpModel):
    recorded: bool
    verification: Optional[VerifiedForecastOut] = None
    skipped_reason: Optional[str] = None


class TrustStatsOut(NpModel):
    total_evaluated: int
    winner_accuracy: Optional[float] = None
    avg_interval_coverage: Optional[float] = None
    mean_mae: Optional[float] = None
    recent_winner_accuracy: Optional[float] = None
    recent_evaluated: int = 0
    window_days: int

    @classmethod
    def from_stats(cls, stats: TrustStats) -> TrustStatsOut:
        return cls(**stats.__dict__)


class DueEvaluationResponse(NpModel):
    checked: int
    verified: List[VerifiedForecastOut] = Field(default_factory=list)
    skipped: Dict[str, str] = Field(default_factory=dict)
    failed: Dict[str, str] = Field(default_factory=dict)
    trust: Optional[TrustStatsOut] = None
