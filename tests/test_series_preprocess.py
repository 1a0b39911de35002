"""
Test Suite for Series Preprocessing

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from datetime import date

import pytest

from engine.errors import InvalidInput
from engine.series import extract, extract_pair, resolve_subject_key
from engine.series.preprocess import coerce_value, parse_date


def test_resolve_subject_key_prefers_exact_then_case_then_normalized():
    keys = ["date", "iPhone 15", "iphone-15", "Pixel"]
    assert resolve_subject_key(keys, "iphone-15") == "iphone-15"
    assert resolve_subject_key(["date", "Pixel"], "pixel") == "Pixel"
    assert resolve_subject_key(["date", "iPhone 15"], "iphone-15") == "iPhone 15"
    assert resolve_subject_key(keys, "galaxy") is None
    assert resolve_subject_key(keys, "date") is None


def test_coerce_value_rules():
    assert coerce_value(None) == 0.0
    assert coerce_value("12.5") == 12.5
    for bad in ("abc", float("nan"), float("inf"), -1, True):
        with pytest.raises(InvalidInput):
            coerce_value(bad)


def test_parse_date_accepts_datetime_strings():
    assert parse_date("2026-03-04T10:00:00Z") == date(2026, 3, 4)
    with pytest.raises(InvalidInput):
        parse_date("yesterday")


def test_extract_drops_bad_points_sorts_and_keeps_last_duplicate():
    points = [
        {"date": "2026-01-03", "a": 3},
        {"date": "2026-01-01", "a": 1},
        {"date": "2026-01-02", "a": "oops"},
        {"date": "2026-01-02", "a": 2},
        {"date": "bad", "a": 5},
        {"date": "2026-01-01", "a": 10},
        {"date": "2026-01-04"},
    ]
    series = extract(points, "a")
    assert series.iso_dates() == ["2026-01-01", "2026-01-02", "2026-01-03", "2026-01-04"]
    assert series.values == (10.0, 2.0, 3.0, 0.0)
    assert series.dropped == 2
    assert series.last_value == 0.0


def test_extract_unknown_subject_is_empty():
    series = extract([{"date": "2026-01-01", "a": 1}], "b")
    assert len(series) == 0
    assert series.last_date is None


def test_extract_pair_shares_dates(points_factory):
    points = points_factory({"a": [1, 2, 3, 4], "b": [5, 6, 7, 8]})
    points[1]["b"] = float("nan")
    series_a, series_b = extract_pair(points, "a", "b")
    assert series_a.dates == series_b.dates
    assert len(series_a) == 3
    assert series_b.values == (5.0, 7.0, 8.0)
