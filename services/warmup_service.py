from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from config import WARMUP_FAILED_TTL, WARMUP_QUEUED_TTL, WARMUP_READY_TTL, settings
from datasources.base import SeriesParams, SeriesSource, SubjectPair
from engine.enums import WarmupStatus
from engine.errors import ComputationFailure, LockContention
from engine.forecast import ComparisonForecast, compare
from engine.series import extract_pair
from store import keys
from store.cache import ForecastCache
from store.forecasts import load_comparison, save_comparison

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class WarmupResult:
    status: WarmupStatus
    forecast: Optional[ComparisonForecast] = None
    is_stale: bool = False
    error: Optional[str] = None
    retry_eligible: bool = False
    updated_at: Optional[datetime] = None


def _status_ttl(status: WarmupStatus) -> int:
    if status == WarmupStatus.READY:
        return WARMUP_READY_TTL
    if status == WarmupStatus.QUEUED:
        return WARMUP_QUEUED_TTL
    if status == WarmupStatus.FAILED:
        return WARMUP_FAILED_TTL
    return int(settings.warmup_lock_ttl_seconds)


class RunRecorder(Protocol):
    async def record_run(self, comparison: ComparisonForecast, params: SeriesParams) -> Any: ...


class WarmupOrchestrator:
    def __init__(
        self,
        source: SeriesSource,
        cache: Optional[ForecastCache] = None,
        horizon_days: Optional[int] = None,
        runs: Optional[RunRecorder] = None,
    ) -> None:
        self._source = source
        self._cache = cache or ForecastCache()
        self._horizon_days = horizon_days
        self._runs = runs

    @staticmethod
    def _key_args(pair: SubjectPair, params: SeriesParams) -> tuple[str, str, str, str]:
        return pair.subject_a, pair.subject_b, params.timeframe, params.geo

    async def _set_status(self, pair: SubjectPair, params: SeriesParams, status: WarmupStatus) -> datetime:
        now = _utcnow()
        record = json.dumps({"status": status.value, "updated_at": now.isoformat()})
        await self._cache.set_text(keys.warmup_status(*self._key_args(pair, params)), record, ttl=_status_ttl(status))
        log.info("warmup %s vs %s -> %s", pair.subject_a, pair.subject_b, status.value)
        return now

    async def _get_status(self, pair: SubjectPair, params: SeriesParams) -> tuple[WarmupStatus, Optional[datetime]]:
        raw = await self._cache.get_text(keys.warmup_status(*self._key_args(pair, params)))
        if not raw:
            return WarmupStatus.IDLE, None
        try:
            record = json.loads(raw)
            return WarmupStatus(record["status"]), datetime.fromisoformat(record["updated_at"])
        except (ValueError, KeyError, TypeError):
            log.warning("Unreadable warmup status for %s vs %s: %r", pair.subject_a, pair.subject_b, raw)
            return WarmupStatus.IDLE, None

    async def _compute(self, pair: SubjectPair, params: SeriesParams) -> ComparisonForecast:
        points = await self._source.fetch(pair, params)
        series_a, series_b = extract_pair(points, pair.subject_a, pair.subject_b)
        if series_a.dropped:
            log.debug("dropped %d malformed points for %s vs %s", series_a.dropped, pair.subject_a, pair.subject_b)
        comparison = await compare(series_a, series_b, self._horizon_days, params.as_dict())
        await save_comparison(self._cache, comparison, params.timeframe, params.geo)
        return comparison

    async def _record_failure(
        self,
        pair: SubjectPair,
        params: SeriesParams,
        failure: ComputationFailure,
    ) -> WarmupResult:
        error_key = keys.warmup_error(*self._key_args(pair, params))
        await self._cache.set_text(error_key, str(failure), ttl=WARMUP_FAILED_TTL)
        updated_at = await self._set_status(pair, params, WarmupStatus.FAILED)
        return WarmupResult(
            status=WarmupStatus.FAILED,
            error=str(failure),
            retry_eligible=failure.retry_eligible,
            updated_at=updated_at,
        )

    async def _record_run(self, comparison: ComparisonForecast, params: SeriesParams) -> None:
        if self._runs is None:
            return
        try:
            await self._runs.record_run(comparison, params)
        except Exception:
            log.exception("could not persist forecast run %s", comparison.data_hash)

    async def _run_locked(self, pair: SubjectPair, params: SeriesParams) -> WarmupResult:
        await self._set_status(pair, params, WarmupStatus.RUNNING)
        error_key = keys.warmup_error(*self._key_args(pair, params))
        timeout = float(settings.warmup_timeout_seconds)
        try:
            try:
                comparison = await asyncio.wait_for(self._compute(pair, params), timeout=timeout)
            except asyncio.TimeoutError as exc:
                raise ComputationFailure(f"warmup timed out after {timeout:g}s") from exc
            except ComputationFailure:
                raise
            except Exception as exc:
                log.exception("warmup failed for %s vs %s", pair.subject_a, pair.subject_b)
                raise ComputationFailure(str(exc) or type(exc).__name__) from exc
        except ComputationFailure as failure:
            return await self._record_failure(pair, params, failure)

        if comparison.both_usable:
            await self._record_run(comparison, params)
            await self._cache.delete(error_key)
            updated_at = await self._set_status(pair, params, WarmupStatus.READY)
            return WarmupResult(status=WarmupStatus.READY, forecast=comparison, updated_at=updated_at)

        updated_at = await self._set_status(pair, params, WarmupStatus.QUEUED)
        return WarmupResult(
            status=WarmupStatus.QUEUED,
            forecast=comparison,
            retry_eligible=True,
            updated_at=updated_at,
        )

    async def warmup(self, pair: SubjectPair, params: Optional[SeriesParams] = None) -> WarmupResult:
        """Make sure a comparison forecast exists for ``pair``, computing it at most once at a time.

        Idempotent: a fresh usable comparison is returned as ``ready`` without touching the
        source, and a concurrent caller that loses the lock race gets ``running`` with no writes.
        """
        params = params or SeriesParams()
        args = self._key_args(pair, params)

        cached = await load_comparison(self._cache, *args)
        if cached is not None:
            comparison, is_stale = cached
            if not is_stale and comparison.both_usable:
                return WarmupResult(status=WarmupStatus.READY, forecast=comparison)

        try:
            async with self._cache.lock(keys.warmup_lock(*args), int(settings.warmup_lock_ttl_seconds)):
                return await self._run_locked(pair, params)
        except LockContention:
            log.info("warmup %s vs %s already in progress", pair.subject_a, pair.subject_b)
            return WarmupResult(
                status=WarmupStatus.RUNNING,
                forecast=cached[0] if cached else None,
                is_stale=bool(cached and cached[1]),
            )
        except Exception as exc:
            log.exception("warmup lock unavailable for %s vs %s", pair.subject_a, pair.subject_b)
            failure = ComputationFailure(f"lock store unavailable: {exc}")
            return await self._record_failure(pair, params, failure)

    async def status(self, pair: SubjectPair, params: Optional[SeriesParams] = None) -> WarmupResult:
        params = params or SeriesParams()
        args = self._key_args(pair, params)
        recorded, updated_at = await self._get_status(pair, params)
        cached = await load_comparison(self._cache, *args)

        if cached is not None and cached[0].both_usable:
            comparison, is_stale = cached
            return WarmupResult(
                status=WarmupStatus.READY,
                forecast=comparison,
                is_stale=is_stale,
                updated_at=updated_at,
            )

        error = None
        if recorded == WarmupStatus.FAILED:
            error = await self._cache.get_text(keys.warmup_error(*args))
        return WarmupResult(
            status=recorded,
            forecast=cached[0] if cached else None,
            is_stale=bool(cached and cached[1]),
            error=error,
            retry_eligible=recorded in (WarmupStatus.QUEUED, WarmupStatus.FAILED),
            updated_at=updated_at,
        )
