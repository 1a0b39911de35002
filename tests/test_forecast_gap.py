"""
Test Suite for the Gap Forecaster

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.enums import Trend
from engine.forecast import ForecastBundle, ForecastPoint, forecast, gap_forecast
from engine.forecast.ensemble import fallback
from engine.forecast.gap import lead_change_risk
from engine.series import extract_pair


def _bundle(subject, values, confidence=80, band=5.0, start_day=1):
    dates = [f"2026-03-{start_day + i:02d}" for i in range(len(values))]
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


def test_gap_band_is_worst_case_of_both_bands():
    a = _bundle("a", [60.0] * 6, band=5.0)
    b = _bundle("b", [40.0] * 6, band=3.0)
    result = gap_forecast(a, b, 58.0, 42.0)
    assert result.current_gap == 16.0
    assert result.gaps == [20.0] * 6
    assert result.points[0].lower == 60.0 - 5.0 - (40.0 + 3.0)
    assert result.points[0].upper == 60.0 + 5.0 - (40.0 - 3.0)
    assert result.expected_gap == 20.0
    assert result.expected_margin_change == 4.0
    assert result.lead_change_risk == 0.0
    assert result.gate.should_show
    assert result.gate.reasons == ()


def test_lead_change_risk_counts_sign_flips():
    a = _bundle("a", [50.0, 45.0, 40.0, 35.0, 30.0, 25.0])
    b = _bundle("b", [40.0] * 6)
    result = gap_forecast(a, b, 55.0, 40.0)
    # the tied day keeps A as leader
    assert result.lead_change_risk == 50.0
    assert result.expected_gap == -15.0


def test_tied_current_gap_counts_as_a_leading():
    a = _bundle("a", [50.0] * 6)
    b = _bundle("b", [50.5] * 6)
    result = gap_forecast(a, b, 50.0, 50.0)
    assert result.current_gap == 0.0
    assert result.lead_change_risk == 100.0


def test_tied_current_gap_with_a_edging_ahead_has_no_risk():
    a = _bundle("a", [50.2] * 6)
    b = _bundle("b", [50.0] * 6)
    result = gap_forecast(a, b, 50.0, 50.0)
    assert result.expected_gap > 0
    assert result.lead_change_risk == 0.0


def test_tied_forecast_days_do_not_flip_a_tied_start():
    assert lead_change_risk([0.0, 0.0, 2.0], 0.0) == 0.0
    assert lead_change_risk([0.0, -1.0], 0.0) == 50.0


def test_lead_change_risk_zero_when_no_days():
    assert lead_change_risk([], 5.0) == 0.0


def test_gate_collects_every_failing_reason():
    a = _bundle("a", [10.0, 11.0, 12.0], confidence=30)
    b = fallback("b", 3, "not enough history")
    result = gap_forecast(a, b, 10.0, 8.0)
    assert not result.gate.should_show
    assert len(result.gate.reasons) == 5
    assert result.points == ()
    assert result.expected_gap == result.current_gap == 2.0


def test_gate_flags_misaligned_dates():
    a = _bundle("a", [10.0] * 6, start_day=1)
    b = _bundle("b", [5.0] * 6, start_day=3)
    result = gap_forecast(a, b, 10.0, 5.0)
    assert not result.gate.should_show
    assert any("align" in r for r in result.gate.reasons)
    assert len(result.points) == 4


def test_constant_against_rising_series_widens_the_deficit(points_factory):
    points = points_factory({
        "steady": [50.0] * 30,
        "climber": [50.0 + 30.0 * i / 29 for i in range(30)],
    })
    series_a, series_b = extract_pair(points, "steady", "climber")
    bundle_a = forecast(series_a, horizon_days=14)
    bundle_b = forecast(series_b, horizon_days=14)

    result = gap_forecast(bundle_a, bundle_b, series_a.last_value, series_b.last_value)
    assert result.current_gap < 0
    assert result.expected_gap < result.current_gap
    assert result.lead_change_risk == 0.0
    assert result.gate.should_show
    assert len(result.points) == 14
