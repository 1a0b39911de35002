"""
Test Suite for Head-to-Head Analytics

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import pytest

from engine.enums import LeadChangeLevel, Trend
from engine.forecast import ForecastBundle, ForecastPoint, compare, head_to_head
from engine.forecast.ensemble import fallback
from engine.forecast.head_to_head import crossover_probability
from engine.series import extract_pair
from store.forecasts import comparison_from_dict, comparison_to_dict


def _bundle(subject, values, confidence=80, band=5.0):
    dates = [f"2026-03-{i + 1:02d}" for i in range(len(values))]
    return ForecastBundle(
        subject=subject,
        horizon_days=len(values),
        points=tuple(ForecastPoint(d, v, 70.0) for d, v in zip(dates, values)),
        lower=tuple(v - band for v in values),
        upper=tuple(v + band for v in values),
        lower95=tuple(v - 2 * band for v in values),
        upper95=tuple(v + 2 * band for v in values),
        overall_confidence=confidence,
        trend=Trend.stable,
        explanation="",
        methods=("linear",),
        forecast_hash="h",
    )


def test_clear_leader_wins_with_low_risk():
    result = head_to_head(_bundle("a", [60.0] * 6), _bundle("b", [40.0] * 6, band=3.0), 58.0, 42.0)
    assert result.horizon_days == 6
    assert result.current_margin == 16.0
    assert result.expected_margin == 20.0
    assert result.probability_a_wins == 100.0
    assert result.probability_b_wins == 0.0
    assert result.predicted_winner == "a"
    assert result.crossover_probability == 0.0
    assert result.lead_change_level == LeadChangeLevel.low


def test_even_race_is_a_coin_flip_with_high_risk():
    result = head_to_head(_bundle("a", [50.0] * 5), _bundle("b", [50.0] * 5), 50.0, 50.0)
    assert result.probability_a_wins == 50.0
    assert result.predicted_winner is None
    assert result.expected_margin == 0.0
    # first day only sets the leader, each later day flips it with probability one half
    assert result.crossover_probability == 93.75
    assert result.lead_change_level == LeadChangeLevel.high


def test_trailing_subject_is_predicted_winner_for_b():
    result = head_to_head(_bundle("a", [30.0] * 4, band=1.0), _bundle("b", [45.0] * 4, band=1.0), 31.0, 44.0)
    assert result.probability_a_wins == 0.0
    assert result.predicted_winner == "b"
    assert result.expected_margin == -15.0


def test_narrow_margin_is_medium_risk():
    result = head_to_head(_bundle("a", [55.0] * 6, band=1.0), _bundle("b", [48.0] * 6, band=1.0), 55.0, 48.0)
    assert result.crossover_probability == 0.0
    assert result.lead_change_level == LeadChangeLevel.medium


def test_low_confidence_is_high_risk_even_with_wide_margin():
    a = _bundle("a", [80.0] * 6, confidence=40, band=1.0)
    b = _bundle("b", [20.0] * 6, confidence=40, band=1.0)
    assert head_to_head(a, b, 80.0, 20.0).lead_change_level == LeadChangeLevel.high


def test_no_shared_days_is_neutral():
    result = head_to_head(_bundle("a", [10.0] * 3), fallback("b", 3, "not enough history"), 10.0, 8.0)
    assert result.horizon_days == 0
    assert result.probability_a_wins == 50.0
    assert result.expected_margin == 0.0
    assert result.current_margin == 2.0
    assert result.lead_change_level == LeadChangeLevel.medium


def test_flat_bands_tied_forecast_never_crosses():
    result = head_to_head(_bundle("a", [50.0] * 3, band=0.0), _bundle("b", [50.0] * 3, band=0.0), 50.0, 50.0)
    assert result.probability_a_wins == 50.0
    assert result.crossover_probability == 0.0


@pytest.mark.parametrize(
    "means, sds, current, expected",
    [
        ([5.0, 5.0], [0.0, 0.0], 2.0, 0.0),
        ([-5.0], [0.0], 2.0, 1.0),
        ([0.0, -5.0], [0.0, 0.0], 2.0, 0.0),
        ([-5.0, 5.0], [0.0, 0.0], 0.0, 1.0),
        ([], [], 3.0, 0.0),
    ],
)
def test_crossover_probability_with_certain_margins(means, sds, current, expected):
    assert crossover_probability(means, sds, current) == expected


def test_head_to_head_is_deterministic():
    a = _bundle("a", [50.0, 52.0, 54.0, 53.0])
    b = _bundle("b", [51.0, 50.0, 55.0, 52.0])
    assert head_to_head(a, b, 50.0, 51.0) == head_to_head(a, b, 50.0, 51.0)


@pytest.mark.asyncio
async def test_comparison_carries_head_to_head_through_serialization(points_factory):
    points = points_factory({
        "steady": [50.0] * 30,
        "climber": [50.0 + 30.0 * i / 29 for i in range(30)],
    })
    series_a, series_b = extract_pair(points, "steady", "climber")
    comparison = await compare(series_a, series_b, horizon_days=14)

    h2h = comparison.head_to_head
    assert h2h is not None
    assert h2h.predicted_winner == "climber"
    assert h2h.probability_a_wins < 50.0
    assert h2h.expected_margin < 0

    data = comparison_to_dict(comparison)
    assert comparison_from_dict(data).head_to_head == h2h
    data.pop("head_to_head")
    assert comparison_from_dict(data).head_to_head is None
