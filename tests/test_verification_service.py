"""
Test Suite for the Verification Service

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from datetime import datetime, timedelta, timezone

import pytest

from datasources.base import SeriesParams, SubjectPair
from datasources.exceptions import DataSourceUnavailable
from datasources.series_source import StaticSeriesSource
from engine.enums import WarmupStatus
from engine.verification import VerifiedForecast, VerifiedPoint
from services import verification_service
from services.verification_service import VerificationService
from services.warmup_service import WarmupOrchestrator
from store import keys
from store.cache import ForecastCache

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)
PAIR = SubjectPair("steady", "climber")
PARAMS = SeriesParams(timeframe="12m", geo="")


def _verified(forecast_id="f1", winner_correct=True, evaluated_at=NOW, mae=2.0):
    point = VerifiedPoint(
        subject="steady", date="2026-05-01", predicted=10.0, actual=12.0,
        lower80=8.0, upper80=13.0, lower95=6.0, upper95=15.0,
    )
    return VerifiedForecast(
        forecast_id=forecast_id,
        evaluated_at=evaluated_at,
        subject_a="steady",
        subject_b="climber",
        points=(point,),
        winner_correct=winner_correct,
        interval_hit_rate_80=100.0,
        interval_hit_rate_95=100.0,
        mae=mae,
        mape=16.67,
        direction_accuracy=None,
    )


@pytest.mark.asyncio
async def test_record_and_get_round_trip(sqlite_db):
    service = VerificationService()
    stored = await service.record(_verified())
    assert stored.record_id

    loaded = await service.get(stored.record_id)
    assert loaded is not None
    assert loaded.result == stored.result
    assert loaded.result.evaluated_at == NOW
    assert loaded.result.points[0].hit80


@pytest.mark.asyncio
async def test_get_unknown_record_returns_none(sqlite_db):
    assert await VerificationService().get("missing") is None


@pytest.mark.asyncio
async def test_list_for_forecast_newest_first(sqlite_db):
    service = VerificationService()
    await service.record(_verified(evaluated_at=NOW - timedelta(days=2)))
    await service.record(_verified(evaluated_at=NOW))
    await service.record(_verified(forecast_id="other"))

    rows = await service.list_for_forecast("f1")
    assert len(rows) == 2
    assert rows[0].result.evaluated_at > rows[1].result.evaluated_at
    assert len(await service.list_for_forecast("f1", limit=1)) == 1


@pytest.mark.asyncio
async def test_trust_stats_over_stored_records(sqlite_db):
    service = VerificationService()
    await service.record(_verified(winner_correct=True, mae=2.0))
    await service.record(_verified(winner_correct=False, mae=4.0, evaluated_at=NOW - timedelta(days=120)))

    stats = await service.trust_stats(now=NOW, window_days=30)
    assert stats.total_evaluated == 2
    assert stats.winner_accuracy == 50.0
    assert stats.recent_evaluated == 1
    assert stats.recent_winner_accuracy == 100.0
    assert stats.mean_mae == 3.0
    assert stats.window_days == 30


@pytest.mark.asyncio
async def test_evaluate_without_source_raises(sqlite_db):
    with pytest.raises(RuntimeError):
        await VerificationService().evaluate(PAIR, PARAMS)


@pytest.mark.asyncio
async def test_evaluate_skips_without_cached_forecast(sqlite_db):
    service = VerificationService(StaticSeriesSource([]))
    outcome = await service.evaluate(PAIR, PARAMS)
    assert outcome.stored is None
    assert "no forecast stored" in outcome.skipped_reason


@pytest.mark.asyncio
async def test_evaluate_scores_cached_forecast_against_actuals(sqlite_db, points_factory):
    history = {"steady": [50.0] * 30, "climber": [50.0 + i for i in range(30)]}
    cache = ForecastCache()
    source = StaticSeriesSource(points_factory(history))
    warmed = await WarmupOrchestrator(source, cache, horizon_days=7).warmup(PAIR, PARAMS)
    assert warmed.status == WarmupStatus.READY

    service = VerificationService(source, cache)
    early = await service.evaluate(PAIR, PARAMS)
    assert early.stored is None
    assert "no actual values" in early.skipped_reason

    # a week later the actuals cover the forecast window
    later = {"steady": [50.0] * 37, "climber": [50.0 + i for i in range(37)]}
    source.put(PAIR, points_factory(later))
    outcome = await service.evaluate(PAIR, PARAMS)

    stored = outcome.stored
    assert stored is not None
    assert stored.result.forecast_id == warmed.forecast.data_hash
    assert stored.result.evaluated_points == 14
    assert stored.result.winner_correct is True
    assert stored.result.mae is not None

    listed = await service.list_for_forecast(warmed.forecast.data_hash)
    assert [r.record_id for r in listed] == [stored.record_id]


@pytest.mark.asyncio
async def test_evaluate_skips_fallback_forecast(sqlite_db, points_factory):
    cache = ForecastCache()
    source = StaticSeriesSource(points_factory({"steady": [1.0] * 4, "climber": [2.0] * 4}))
    await WarmupOrchestrator(source, cache).warmup(PAIR, PARAMS)
    outcome = await VerificationService(source, cache).evaluate(PAIR, PARAMS)
    assert outcome.stored is None
    assert "no usable predictions" in outcome.skipped_reason



HISTORY = {"steady": [50.0] * 30, "climber": [50.0 + i for i in range(30)]}
LATER = {"steady": [50.0] * 37, "climber": [50.0 + i for i in range(37)]}
# history runs through 2026-01-30, so a 7 day forecast ends on 2026-02-06
BEFORE_END = datetime(2026, 2, 6, 12, tzinfo=timezone.utc)
AFTER_END = datetime(2026, 2, 7, 9, tzinfo=timezone.utc)


class FlakySource(StaticSeriesSource):
    def __init__(self, points, failing=()):
        super().__init__(points)
        self.failing = set(failing)

    async def fetch(self, pair, params):
        if (pair.subject_a, pair.subject_b) in self.failing:
            raise DataSourceUnavailable("trends backend down")
        return await super().fetch(pair, params)


async def _warm(service, source, pair=PAIR, params=PARAMS, cache=None):
    orchestrator = WarmupOrchestrator(source, cache or ForecastCache(), horizon_days=7, runs=service)
    result = await orchestrator.warmup(pair, params)
    assert result.status == WarmupStatus.READY
    return result.forecast


@pytest.mark.asyncio
async def test_record_run_is_idempotent_per_data_hash(sqlite_db, points_factory):
    service = VerificationService()
    comparison = await _warm(service, StaticSeriesSource(points_factory(HISTORY)))
    assert await service.record_run(comparison, PARAMS) is False


@pytest.mark.asyncio
async def test_record_run_without_database_is_skipped(points_factory):
    comparison = await _warm(None, StaticSeriesSource(points_factory(HISTORY)))
    assert await VerificationService().record_run(comparison, PARAMS) is False


@pytest.mark.asyncio
async def test_evaluate_due_waits_for_the_horizon_to_pass(sqlite_db, points_factory):
    source = StaticSeriesSource(points_factory(HISTORY))
    service = VerificationService(source)
    await _warm(service, source)
    source.put(PAIR, points_factory(LATER))

    summary = await service.evaluate_due(now=BEFORE_END)
    assert summary.checked == 0
    assert summary.stored == []
    assert summary.trust.total_evaluated == 0


@pytest.mark.asyncio
async def test_evaluate_due_verifies_each_run_once(sqlite_db, points_factory):
    source = StaticSeriesSource(points_factory(HISTORY))
    service = VerificationService(source)
    comparison = await _warm(service, source)
    source.put(PAIR, points_factory(LATER))

    summary = await service.evaluate_due(now=AFTER_END)
    assert summary.checked == 1
    assert len(summary.stored) == 1
    result = summary.stored[0].result
    assert result.forecast_id == comparison.data_hash
    assert result.evaluated_points == 14
    assert result.winner_correct is True
    assert summary.trust.total_evaluated == 1

    again = await service.evaluate_due(now=AFTER_END)
    assert again.checked == 0
    assert len(await service.list_for_forecast(comparison.data_hash)) == 1


@pytest.mark.asyncio
async def test_evaluate_due_uses_stored_bands_after_cache_expiry(sqlite_db, points_factory):
    source = StaticSeriesSource(points_factory(HISTORY))
    service = VerificationService(source)
    cache = ForecastCache()
    comparison = await _warm(service, source, cache=cache)
    await cache.delete(keys.comparison(PAIR.subject_a, PAIR.subject_b, PARAMS.timeframe, PARAMS.geo))
    source.put(PAIR, points_factory(LATER))

    summary = await service.evaluate_due(now=AFTER_END)
    point = summary.stored[0].result.points[0]
    first_a = comparison.bundle_a
    assert (point.lower80, point.upper80) == (first_a.lower[0], first_a.upper[0])
    assert (point.lower95, point.upper95) == (first_a.lower95[0], first_a.upper95[0])

    # a manual evaluation falls back to the stored run when the cache is empty
    manual = await service.evaluate(PAIR, PARAMS)
    assert manual.stored is not None
    assert manual.stored.result.forecast_id == comparison.data_hash


@pytest.mark.asyncio
async def test_evaluate_due_keeps_runs_without_actuals_due(sqlite_db, points_factory):
    source = StaticSeriesSource(points_factory(HISTORY))
    service = VerificationService(source)
    await _warm(service, source)

    first = await service.evaluate_due(now=AFTER_END)
    assert first.stored == []
    assert len(first.skipped) == 1
    assert "no actual values" in next(iter(first.skipped.values()))

    source.put(PAIR, points_factory(LATER))
    second = await service.evaluate_due(now=AFTER_END)
    assert len(second.stored) == 1


@pytest.mark.asyncio
async def test_evaluate_due_continues_past_source_failures(sqlite_db, points_factory):
    other = SubjectPair("climber", "steady")
    source = FlakySource(points_factory(HISTORY))
    service = VerificationService(source)
    broken = await _warm(service, source)
    healthy = await _warm(service, source, pair=other)
    source.put(other, points_factory(LATER))
    source.failing.add((PAIR.subject_a, PAIR.subject_b))

    summary = await service.evaluate_due(now=AFTER_END)
    assert summary.checked == 2
    assert list(summary.failed) == [broken.data_hash]
    assert "trends backend down" in summary.failed[broken.data_hash]
    assert [s.result.forecast_id for s in summary.stored] == [healthy.data_hash]

    source.failing.clear()
    source.put(PAIR, points_factory(LATER))
    retried = await service.evaluate_due(now=AFTER_END)
    assert [s.result.forecast_id for s in retried.stored] == [broken.data_hash]


@pytest.mark.asyncio
async def test_evaluate_due_honours_batch_size(monkeypatch, sqlite_db, points_factory):
    monkeypatch.setattr(verification_service.settings, "verification_batch_size", 1)
    source = StaticSeriesSource(points_factory(LATER))
    service = VerificationService(source)
    await _warm(service, StaticSeriesSource(points_factory(HISTORY)))
    await _warm(service, StaticSeriesSource(points_factory(HISTORY)), pair=SubjectPair("climber", "steady"))

    first = await service.evaluate_due(now=AFTER_END)
    assert first.checked == 1
    second = await service.evaluate_due(now=AFTER_END)
    assert second.checked == 1
    third = await service.evaluate_due(now=AFTER_END)
    assert third.checked == 0


@pytest.mark.asyncio
async def test_evaluate_due_without_source_raises(sqlite_db):
    with pytest.raises(RuntimeError):
        await VerificationService().evaluate_due(now=AFTER_END)
