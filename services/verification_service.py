from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select

import database
from config import settings
from database import get_db_session
from datasources.base import SeriesParams, SeriesSource, SubjectPair
from datasources.exceptions import DataSourceError
from db_models import ForecastRunRecord, VerifiedForecastRecord
from engine.forecast import ComparisonForecast
from engine.series import extract_pair
from engine.verification import TrustStats, VerifiedForecast, VerifiedPoint, summarize, verify_comparison
from store.cache import ForecastCache
from store.forecasts import comparison_from_dict, comparison_to_dict, load_comparison

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StoredVerification:
    record_id: str
    result: VerifiedForecast


@dataclass
class EvaluationOutcome:
    stored: Optional[StoredVerification] = None
    skipped_reason: Optional[str] = None


@dataclass
class DueEvaluation:
    """Outcome of one pass over the forecast runs whose horizon has passed."""

    checked: int = 0
    stored: List[StoredVerification] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)
    trust: Optional[TrustStats] = None


def _point_to_dict(p: VerifiedPoint) -> Dict[str, Any]:
    return {
        "subject": p.subject,
        "date": p.date,
        "predicted": p.predicted,
        "actual": p.actual,
        "lower80": p.lower80,
        "upper80": p.upper80,
        "lower95": p.lower95,
        "upper95": p.upper95,
    }


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def _to_view(row: VerifiedForecastRecord) -> StoredVerification:
    points = tuple(
        VerifiedPoint(
            subject=p["subject"],
            date=p["date"],
            predicted=float(p["predicted"]),
            actual=float(p["actual"]),
            lower80=float(p["lower80"]),
            upper80=float(p["upper80"]),
            lower95=float(p["lower95"]),
            upper95=float(p["upper95"]),
        )
        for p in row.points or []
    )
    return StoredVerification(
        record_id=row.record_id,
        result=VerifiedForecast(
            forecast_id=row.forecast_id,
            evaluated_at=_aware(row.evaluated_at),
            subject_a=row.subject_a,
            subject_b=row.subject_b,
            points=points,
            winner_correct=row.winner_correct,
            interval_hit_rate_80=row.interval_hit_rate_80,
            interval_hit_rate_95=row.interval_hit_rate_95,
            mae=row.mae,
            mape=row.mape,
            direction_accuracy=row.direction_accuracy,
        ),
    )


def _new_record(verified: VerifiedForecast) -> VerifiedForecastRecord:
    return VerifiedForecastRecord(
        forecast_id=verified.forecast_id,
        subject_a=verified.subject_a,
        subject_b=verified.subject_b,
        evaluated_at=verified.evaluated_at,
        evaluated_points=verified.evaluated_points,
        winner_correct=verified.winner_correct,
        interval_hit_rate_80=verified.interval_hit_rate_80,
        interval_hit_rate_95=verified.interval_hit_rate_95,
        mae=verified.mae,
        mape=verified.mape,
        direction_accuracy=verified.direction_accuracy,
        points=[_point_to_dict(p) for p in verified.points],
    )


def _horizon_end(comparison: ComparisonForecast) -> Optional[str]:
    dates = comparison.bundle_a.dates + comparison.bundle_b.dates
    return max(dates) if dates else None


class VerificationService:
    """Append-only store of verified forecasts, the log of forecast runs awaiting verification and
    the evaluation jobs that turn one into the other."""

    def __init__(self, source: Optional[SeriesSource] = None, cache: Optional[ForecastCache] = None) -> None:
        self._source = source
        self._cache = cache or ForecastCache()

    async def record(self, verified: VerifiedForecast) -> StoredVerification:
        def _insert() -> StoredVerification:
            with get_db_session() as db:
                row = _new_record(verified)
                db.add(row)
                db.flush()
                return _to_view(row)

        stored = await asyncio.to_thread(_insert)
        log.info("recorded verification %s for forecast %s", stored.record_id, verified.forecast_id)
        return stored

    def _record_run_sync(self, comparison: ComparisonForecast, params: SeriesParams, horizon_end: str) -> bool:
        with get_db_session() as db:
            if db.get(ForecastRunRecord, comparison.data_hash) is not None:
                return False
            db.add(ForecastRunRecord(
                data_hash=comparison.data_hash,
                subject_a=comparison.subject_a,
                subject_b=comparison.subject_b,
                timeframe=params.timeframe,
                geo=params.geo,
                generated_at=comparison.generated_at,
                horizon_end=horizon_end,
                payload=comparison_to_dict(comparison),
            ))
            return True

    async def record_run(self, comparison: ComparisonForecast, params: SeriesParams) -> bool:
        """Keep a generated comparison so it can be verified once its horizon has passed.

        Runs are keyed by data hash, so recording the same comparison twice is a no-op. Returns
        whether a new run was stored.
        """
        if not database.is_initialized():
            return False
        horizon_end = _horizon_end(comparison)
        if horizon_end is None:
            log.debug("not recording forecast run %s: no forecast dates", comparison.data_hash)
            return False
        created = await asyncio.to_thread(self._record_run_sync, comparison, params, horizon_end)
        if created:
            log.info("recorded forecast run %s (%s vs %s, ends %s)",
                     comparison.data_hash, comparison.subject_a, comparison.subject_b, horizon_end)
        return created

    def _get_sync(self, record_id: str) -> Optional[StoredVerification]:
        with get_db_session() as db:
            row = db.get(VerifiedForecastRecord, record_id)
            return _to_view(row) if row is not None else None

    async def get(self, record_id: str) -> Optional[StoredVerification]:
        return await asyncio.to_thread(self._get_sync, record_id)

    def _list_sync(self, forecast_id: str, limit: int) -> List[StoredVerification]:
        with get_db_session() as db:
            rows = db.scalars(
                select(VerifiedForecastRecord)
                .where(VerifiedForecastRecord.forecast_id == forecast_id)
                .order_by(VerifiedForecastRecord.evaluated_at.desc())
                .limit(max(1, int(limit)))
            ).all()
            return [_to_view(r) for r in rows]

    async def list_for_forecast(self, forecast_id: str, limit: int = 50) -> List[StoredVerification]:
        return await asyncio.to_thread(self._list_sync, forecast_id, limit)

    def _trust_sync(self, now: datetime, window_days: int) -> TrustStats:
        with get_db_session() as db:
            rows = db.scalars(select(VerifiedForecastRecord)).all()
            return summarize(rows, now=now, window_days=window_days)

    async def trust_stats(self, now: Optional[datetime] = None, window_days: Optional[int] = None) -> TrustStats:
        now = now or _utcnow()
        window_days = window_days if window_days is not None else settings.trust_window_days
        return await asyncio.to_thread(self._trust_sync, now, window_days)

    def _latest_run_sync(self, pair: SubjectPair, params: SeriesParams) -> Optional[Dict[str, Any]]:
        with get_db_session() as db:
            row = db.scalars(
                select(ForecastRunRecord)
                .where(
                    ForecastRunRecord.subject_a == pair.subject_a,
                    ForecastRunRecord.subject_b == pair.subject_b,
                    ForecastRunRecord.timeframe == params.timeframe,
                    ForecastRunRecord.geo == params.geo,
                )
                .order_by(ForecastRunRecord.generated_at.desc())
                .limit(1)
            ).first()
            return dict(row.payload) if row is not None else None

    async def _find_comparison(self, pair: SubjectPair, params: SeriesParams) -> Optional[ComparisonForecast]:
        cached = await load_comparison(self._cache, pair.subject_a, pair.subject_b, params.timeframe, params.geo)
        if cached is not None:
            return cached[0]
        payload = await asyncio.to_thread(self._latest_run_sync, pair, params)
        if payload is None:
            return None
        try:
            return comparison_from_dict(payload)
        except (KeyError, TypeError, ValueError) as exc:
            log.warning("Unreadable stored forecast run for %s vs %s: %s", pair.subject_a, pair.subject_b, exc)
            return None

    async def _verify(self, comparison: ComparisonForecast, pair: SubjectPair, params: SeriesParams) -> VerifiedForecast:
        points = await self._source.fetch(pair, params)
        actual_a, actual_b = extract_pair(points, pair.subject_a, pair.subject_b)
        return verify_comparison(
            comparison.bundle_a,
            comparison.bundle_b,
            actual_a,
            actual_b,
            forecast_id=comparison.data_hash,
        )

    async def evaluate(self, pair: SubjectPair, params: Optional[SeriesParams] = None) -> EvaluationOutcome:
        params = params or SeriesParams()
        if self._source is None:
            raise RuntimeError("VerificationService has no series source configured")

        comparison = await self._find_comparison(pair, params)
        if comparison is None:
            return EvaluationOutcome(skipped_reason="no forecast stored for this comparison")
        if not comparison.both_usable:
            return EvaluationOutcome(skipped_reason="cached forecast has no usable predictions")

        verified = await self._verify(comparison, pair, params)
        if verified.evaluated_points == 0:
            return EvaluationOutcome(skipped_reason="no actual values available for the forecast dates yet")
        return EvaluationOutcome(stored=await self.record(verified))

    def _due_sync(self, today: str, limit: int) -> List[Tuple[str, str, str, Dict[str, Any]]]:
        with get_db_session() as db:
            rows = db.scalars(
                select(ForecastRunRecord)
                .where(ForecastRunRecord.evaluated_at.is_(None), ForecastRunRecord.horizon_end < today)
                .order_by(ForecastRunRecord.horizon_end, ForecastRunRecord.generated_at)
                .limit(max(1, int(limit)))
            ).all()
            return [(r.data_hash, r.timeframe, r.geo, dict(r.payload)) for r in rows]

    def _store_due_sync(self, verified: VerifiedForecast, data_hash: str, now: datetime) -> StoredVerification:
        with get_db_session() as db:
            row = _new_record(verified)
            db.add(row)
            run = db.get(ForecastRunRecord, data_hash)
            if run is not None:
                run.evaluated_at = now
            db.flush()
            return _to_view(row)

    def _mark_evaluated_sync(self, data_hash: str, now: datetime) -> None:
        with get_db_session() as db:
            run = db.get(ForecastRunRecord, data_hash)
            if run is not None:
                run.evaluated_at = now

    async def evaluate_due(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> DueEvaluation:
        """Verify stored forecast runs whose last forecast date is before today, then refresh trust stats.

        Each run is verified at most once. Runs without actuals yet stay due; a failing source only
        fails that run and the pass moves on. Unreadable runs are marked evaluated so they are not
        picked up again.
        """
        if self._source is None:
            raise RuntimeError("VerificationService has no series source configured")
        now = now or _utcnow()
        limit = limit if limit is not None else settings.verification_batch_size
        due = await asyncio.to_thread(self._due_sync, now.date().isoformat(), limit)
        summary = DueEvaluation(checked=len(due))

        for data_hash, timeframe, geo, payload in due:
            try:
                comparison = comparison_from_dict(payload)
            except (KeyError, TypeError, ValueError) as exc:
                log.warning("Unreadable forecast run %s, retiring it: %s", data_hash, exc)
                summary.skipped[data_hash] = "stored forecast is unreadable"
                await asyncio.to_thread(self._mark_evaluated_sync, data_hash, now)
                continue

            pair = SubjectPair(comparison.subject_a, comparison.subject_b)
            try:
                verified = await self._verify(comparison, pair, SeriesParams(timeframe=timeframe, geo=geo))
            except DataSourceError as exc:
                log.warning("could not fetch actuals for forecast run %s: %s", data_hash, exc)
                summary.failed[data_hash] = str(exc) or type(exc).__name__
                continue

            if verified.evaluated_points == 0:
                summary.skipped[data_hash] = "no actual values available for the forecast dates yet"
                continue
            stored = await asyncio.to_thread(self._store_due_sync, verified, data_hash, now)
            log.info("verified forecast run %s as %s", data_hash, stored.record_id)
            summary.stored.append(stored)

        summary.trust = await self.trust_stats(now=now)
        log.info(
            "due evaluation: %d checked, %d verified, %d skipped, %d failed",
            summary.checked, len(summary.stored), len(summary.skipped), len(summary.failed),
        )
        return summary
