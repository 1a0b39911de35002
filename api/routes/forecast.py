"""
Forecast routes: single-subject ensemble forecasts, two-subject gap forecasts and confidence scoring
over caller-supplied series.

Copyright (c) 2026 Stefan Kumarasinghe
Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from fastapi import APIRouter

from api.requests import ConfidenceRequest, ForecastRequest, GapRequest
from api.responses import ComparisonOut, ConfidenceOut, ForecastBundleOut
from api.routes.common import to_pair
from api.routes.exception import handle_exceptions
from engine.confidence import ConfidenceFactors, confidence
from engine.forecast import compare, forecast_async
from engine.series import extract, extract_pair

router = APIRouter(tags=["Forecast"])


@router.post("/forecast", summary="Ensemble forecast for one subject", response_model=ForecastBundleOut)
@handle_exceptions
async def forecast_subject(req: ForecastRequest) -> ForecastBundleOut:
    series = extract(req.points, req.subject)
    bundle = await forecast_async(series, horizon_days=req.horizon_days)
    return ForecastBundleOut.from_bundle(bundle)


@router.post("/forecast/gap", summary="Forecast the gap between two subjects", response_model=ComparisonOut)
@handle_exceptions
async def forecast_gap(req: GapRequest) -> ComparisonOut:
    pair = to_pair(req.subject_a, req.subject_b)
    series_a, series_b = extract_pair(req.points, pair.subject_a, pair.subject_b)
    comparison = await compare(series_a, series_b, req.horizon_days)
    return ComparisonOut.from_comparison(comparison)


@router.post("/confidence", summary="Score confidence from explicit factors", response_model=ConfidenceOut)
@handle_exceptions
async def score_confidence(req: ConfidenceRequest) -> ConfidenceOut:
    factors = ConfidenceFactors.sanitized(**req.model_dump())
    return ConfidenceOut.from_result(confidence(factors))
