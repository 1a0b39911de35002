"""
Shared dependencies for API route modules.

Holds the process-wide series source, forecast cache and the services built on top of them so
individual route files stay thin. Tests swap these out with ``monkeypatch``.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from typing import Awaitable, Optional, TypeVar

from fastapi import HTTPException

from api.requests import PairRequest
from datasources.base import SeriesParams, SeriesSource, SubjectPair
from datasources.series_source import HttpSeriesSource
from services.verification_service import VerificationService
from services.warmup_service import WarmupOrchestrator
from store.cache import ForecastCache

_T = TypeVar("_T")
_source: Optional[SeriesSource] = None
_cache: Optional[ForecastCache] = None
_orchestrator: Optional[WarmupOrchestrator] = None
_verification: Optional[VerificationService] = None


def get_series_source() -> SeriesSource:
    global _source
    if _source is None:
        _source = HttpSeriesSource()
    return _source


def get_cache() -> ForecastCache:
    global _cache
    if _cache is None:
        _cache = ForecastCache()
    return _cache


def get_orchestrator() -> WarmupOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = WarmupOrchestrator(get_series_source(), get_cache(), runs=get_verification_service())
    return _orchestrator


def get_verification_service() -> VerificationService:
    global _verification
    if _verification is None:
        _verification = VerificationService(get_series_source(), get_cache())
    return _verification


async def close_services() -> None:
    global _source, _cache, _orchestrator, _verification
    source = _source
    _source = _cache = _orchestrator = _verification = None
    if source is not None:
        await source.aclose()


def to_pair(subject_a: str, subject_b: str) -> SubjectPair:
    try:
        return SubjectPair(subject_a, subject_b)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def pair_and_params(req: PairRequest) -> tuple[SubjectPair, SeriesParams]:
    return to_pair(req.subject_a, req.subject_b), SeriesParams(timeframe=req.timeframe, geo=req.geo)


async def safe_call(coro: Awaitable[_T], status_code: int = 502) -> _T:
    try:
        return await coro
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=status_code, detail=str(exc)) from exc
