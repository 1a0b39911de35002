"""
Forecasting for interest series: per-method runners, the reliability-weighted ensemble that turns
them into a forecast bundle, the gap forecast between two competing subjects and the comparison
that ties both together.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""


from engine.forecast.methods import ForecastPoint, MethodForecast
from engine.forecast.ensemble import ForecastBundle, forecast, forecast_async
from engine.forecast.gap import GapForecastResult, GapPoint, ReliabilityGate, gap_forecast
from engine.forecast.hashing import data_hash, forecast_hash
from engine.forecast.head_to_head import HeadToHead, head_to_head
from engine.forecast.comparison import ComparisonForecast, compare

__all__ = [
    "ForecastPoint",
    "MethodForecast",
    "ForecastBundle",
    "forecast",
    "forecast_async",
    "GapForecastResult",
    "GapPoint",
    "ReliabilityGate",
    "gap_forecast",
    "data_hash",
    "forecast_hash",
    "HeadToHead",
    "head_to_head",
    "ComparisonForecast",
    "compare",
]
