"""
Test Suite for Forecast Hashing

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.forecast.hashing import data_hash, forecast_hash, stable_hash


def test_stable_hash_ignores_key_order():
    assert stable_hash({"a": 1, "b": [1, 2]}) == stable_hash({"b": [1, 2], "a": 1})
    assert len(stable_hash({"a": 1})) == 16


def test_forecast_hash_only_depends_on_tail_of_history():
    history = [float(i) for i in range(40)]
    changed_early = [99.0] + history[1:]
    changed_late = history[:-1] + [99.0]
    assert forecast_hash("alpha", history) == forecast_hash("alpha", changed_early)
    assert forecast_hash("alpha", history) != forecast_hash("alpha", changed_late)
    assert forecast_hash("alpha", history) != forecast_hash("beta", history)
    assert forecast_hash("alpha", history) != forecast_hash("alpha", history, version="other")


def test_data_hash_changes_with_params():
    args = (["2026-01-01"], [1.0], [2.0], "a", "b")
    assert data_hash(*args, {"geo": ""}) == data_hash(*args, {"geo": ""})
    assert data_hash(*args, {"geo": ""}) != data_hash(*args, {"geo": "US"})
