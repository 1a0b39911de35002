"""
Warmup routes: trigger the locked comparison computation for a subject pair and poll its status.

Copyright (c) 2026 Stefan Kumarasinghe
Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from api.requests import PairRequest
from api.responses import ComparisonOut, WarmupResponse
from api.routes.common import get_orchestrator, pair_and_params
from api.routes.exception import handle_exceptions
from config import DEFAULT_GEO, DEFAULT_TIMEFRAME
from services.warmup_service import WarmupResult

router = APIRouter(tags=["Warmup"])


def _to_response(result: WarmupResult) -> WarmupResponse:
    return WarmupResponse(
        status=result.status,
        done=result.status.is_terminal,
        forecast=ComparisonOut.from_comparison(result.forecast) if result.forecast else None,
        is_stale=result.is_stale,
        error=result.error,
        retry_eligible=result.retry_eligible,
        updated_at=result.updated_at,
    )


def _coerce_query_value(value, default):
    # Allow direct unit-test invocation without FastAPI Query parsing.
    return value.default if hasattr(value, "default") else (value if value is not None else default)


@router.post("/warmup", summary="Compute and cache the comparison forecast for a pair", response_model=WarmupResponse)
@handle_exceptions
async def warmup(req: PairRequest) -> WarmupResponse:
    pair, params = pair_and_params(req)
    return _to_response(await get_orchestrator().warmup(pair, params))


@router.get("/warmup/status", summary="Poll the warmup state of a pair", response_model=WarmupResponse)
@handle_exceptions
async def warmup_status(
    subject_a: str = Query(..., min_length=1),
    subject_b: str = Query(..., min_length=1),
    timeframe: str = Query(default=DEFAULT_TIMEFRAME),
    geo: str = Query(default=DEFAULT_GEO),
) -> WarmupResponse:
    req = PairRequest(
        subject_a=subject_a,
        subject_b=subject_b,
        timeframe=_coerce_query_value(timeframe, DEFAULT_TIMEFRAME),
        geo=_coerce_query_value(geo, DEFAULT_GEO),
    )
    pair, params = pair_and_params(req)
    return _to_response(await get_orchestrator().status(pair, params))
