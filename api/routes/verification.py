"""
Verification routes: evaluate a cached comparison or every due forecast run against observed values,
read stored verifications and the aggregate trust statistics.

Copyright (c) 2026 Stefan Kumarasinghe
Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

import database
from api.requests import PairRequest
from api.responses import DueEvaluationResponse, EvaluationResponse, TrustStatsOut, VerifiedForecastOut
from api.routes.common import get_verification_service, pair_and_params, safe_call
from api.routes.exception import handle_exceptions

router = APIRouter(tags=["Verification"])


def _require_database() -> None:
    if not database.is_initialized():
        raise HTTPException(status_code=503, detail="verification store is not configured")


@router.post("/forecasts/evaluate", summary="Verify a cached comparison against actuals", response_model=EvaluationResponse)
@handle_exceptions
async def evaluate(req: PairRequest) -> EvaluationResponse:
    _require_database()
    pair, params = pair_and_params(req)
    outcome = await safe_call(get_verification_service().evaluate(pair, params))
    if outcome.stored is None:
        return EvaluationResponse(recorded=False, skipped_reason=outcome.skipped_reason)
    return EvaluationResponse(
        recorded=True,
        verification=VerifiedForecastOut.from_result(outcome.stored.result, outcome.stored.record_id),
    )


@router.post(
    "/forecasts/evaluate-due",
    summary="Verify every stored forecast whose horizon has passed",
    response_model=DueEvaluationResponse,
)
@handle_exceptions
async def evaluate_due(limit: Optional[int] = Query(default=None, ge=1, le=500)) -> DueEvaluationResponse:
    _require_database()
    limit = None if hasattr(limit, "default") else limit
    summary = await safe_call(get_verification_service().evaluate_due(limit=limit))
    return DueEvaluationResponse(
        checked=summary.checked,
        verified=[VerifiedForecastOut.from_result(s.result, s.record_id) for s in summary.stored],
        skipped=summary.skipped,
        failed=summary.failed,
        trust=TrustStatsOut.from_stats(summary.trust) if summary.trust else None,
    )


@router.get("/forecasts/verified/{record_id}", summary="Read one stored verification", response_model=VerifiedForecastOut)
@handle_exceptions
async def get_verified(record_id: str) -> VerifiedForecastOut:
    _require_database()
    stored = await get_verification_service().get(record_id)
    if stored is None:
        raise HTTPException(status_code=404, detail="verification not found")
    return VerifiedForecastOut.from_result(stored.result, stored.record_id)


@router.get("/forecasts/verified", summary="Stored verifications of one forecast", response_model=List[VerifiedForecastOut])
@handle_exceptions
async def list_verified(
    forecast_id: str = Query(..., min_length=1),
    limit: int = Query(default=50, ge=1, le=500),
) -> List[VerifiedForecastOut]:
    _require_database()
    limit = limit.default if hasattr(limit, "default") else limit
    rows = await get_verification_service().list_for_forecast(forecast_id, limit)
    return [VerifiedForecastOut.from_result(r.result, r.record_id) for r in rows]


@router.get("/forecasts/trust", summary="Aggregate accuracy of verified forecasts", response_model=TrustStatsOut)
@handle_exceptions
async def trust() -> TrustStatsOut:
    _require_database()
    return TrustStatsOut.from_stats(await get_verification_service().trust_stats())
