"""
Test Suite for Confidence Scoring

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import itertools
import math

import pytest

from engine.confidence import ConfidenceFactors, comparison_factors, confidence, score
from engine.confidence.factors import gap_volatility, leader_agreement
from engine.enums import ConfidenceLabel


def test_neutral_factors_score_fifty():
    result = confidence()
    assert result.score == 50
    assert result.label == ConfidenceLabel.medium


def test_best_case_is_capped_at_hundred():
    f = ConfidenceFactors(agreement_index=100, volatility=0, data_points=500, source_count=5, margin=80)
    assert score(f) == 100.0
    assert confidence(f).label == ConfidenceLabel.high


def test_worst_case_is_floored_at_zero():
    f = ConfidenceFactors(agreement_index=0, volatility=100, data_points=0, leader_change_risk=100)
    assert score(f) == 0.0
    assert confidence(f).label == ConfidenceLabel.low


def test_components_add_up():
    f = ConfidenceFactors(agreement_index=70, volatility=20, data_points=25, source_count=2,
                          leader_change_risk=10, margin=4)
    # 50 + 6 - 5 + 10 + 7.5 + 2 - 1.5
    assert score(f) == pytest.approx(69.0)
    assert confidence(f).label == ConfidenceLabel.medium


def test_missing_and_non_finite_factors_are_neutral():
    result = confidence({"agreementIndex": float("nan"), "volatility": None, "dataPoints": "x",
                         "sourceCount": float("inf")})
    assert result.score == 50


def test_out_of_range_factors_are_clamped():
    f = ConfidenceFactors.sanitized(agreement_index=500, volatility=-40, source_count=0)
    assert f.agreement_index == 100.0
    assert f.volatility == 0.0
    assert f.source_count == 1.0


def test_score_always_within_bounds():
    extremes = [-1e9, -1.0, 0.0, 50.0, 100.0, 1e9, float("nan"), float("inf"), None]
    for a, v, d, r in itertools.product(extremes, repeat=4):
        s = score(ConfidenceFactors(agreement_index=a, volatility=v, data_points=d, leader_change_risk=r))
        assert not math.isnan(s)
        assert 0.0 <= s <= 100.0


def test_comparison_factors_for_steady_leader():
    f = comparison_factors([60.0] * 10, [40.0] * 10, leader_change_risk=0.0)
    assert f.agreement_index == 100.0
    assert f.volatility == 0.0
    assert f.data_points == 10
    assert f.margin == 20.0


def test_gap_volatility_and_agreement_helpers():
    assert gap_volatility([5.0]) == 0.0
    assert gap_volatility([10.0, -10.0] * 5) == 100.0
    assert leader_agreement([1.0, -1.0, 2.0, 3.0], 2.0) == 75.0
    assert leader_agreement([1.0, 2.0], 0.0) == 50.0
