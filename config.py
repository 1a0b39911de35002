"""
Constants and configuration for TrendCast.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import os
from typing import Optional

from pydantic_settings import BaseSettings


REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# forecast cache lifetimes: fresh entries are served as-is, stale ones are served
# while a refresh is allowed, after the stale TTL the entry disappears
FORECAST_FRESH_TTL: int = int(os.getenv("FORECAST_FRESH_TTL", "86400"))
FORECAST_STALE_TTL: int = int(os.getenv("FORECAST_STALE_TTL", "604800"))

# warmup status lifetimes per terminal state
WARMUP_READY_TTL: int = int(os.getenv("WARMUP_READY_TTL", "604800"))
WARMUP_QUEUED_TTL: int = int(os.getenv("WARMUP_QUEUED_TTL", "300"))
WARMUP_FAILED_TTL: int = int(os.getenv("WARMUP_FAILED_TTL", "600"))
WARMUP_LOCK_TTL: int = int(os.getenv("WARMUP_LOCK_TTL", "1800"))

TRENDCAST_SERIES_URL = os.getenv("TRENDCAST_SERIES_URL", "http://trends:8080").rstrip("/")
TRENDCAST_SERIES_TIMEOUT = int(os.getenv("TRENDCAST_SERIES_TIMEOUT", "30"))

DEFAULT_TIMEFRAME = "12m"
DEFAULT_GEO = ""

# confidence label cutoffs, shared by the scorer and the bundle explanation
CONFIDENCE_LABELS: dict[str, float] = {
    "high": 70.0,
    "medium": 50.0,
}


class Settings(BaseSettings):
    series_url: str = TRENDCAST_SERIES_URL
    series_timeout: int = TRENDCAST_SERIES_TIMEOUT
    series_retry_attempts: int = 3
    series_retry_delay: float = 0.5
    series_health_path: str = "/health"
    series_startup_timeout: int = 30

    database_url: Optional[str] = None

    # series preprocessing
    series_min_points: int = 7

    # method runners
    forecast_default_horizon_days: int = 14
    forecast_max_horizon_days: int = 90
    forecast_round_digits: int = 2
    forecast_linear_min_points: int = 3
    forecast_linear_reliability_min: float = 40.0
    forecast_linear_reliability_max: float = 90.0
    forecast_linear_decay: float = 0.5
    forecast_ema_alpha: float = 0.3
    forecast_ema_min_points: int = 7
    forecast_ema_reliability_min: float = 50.0
    forecast_ema_reliability_max: float = 85.0
    forecast_ema_decay: float = 0.6
    forecast_wma_window: int = 7
    forecast_wma_reliability_min: float = 45.0
    forecast_wma_reliability_max: float = 80.0
    forecast_wma_decay: float = 0.5
    # trailing window variance cutoffs and the stability scores they map to
    forecast_wma_variance_low: float = 100.0
    forecast_wma_variance_high: float = 500.0
    forecast_wma_stability_high: float = 80.0
    forecast_wma_stability_medium: float = 60.0
    forecast_wma_stability_low: float = 40.0

    # ensemble
    ensemble_single_band: float = 0.20
    ensemble_z80: float = 1.28
    ensemble_z95: float = 1.96
    ensemble_reliability_weight: float = 0.6
    ensemble_quality_weight: float = 0.4
    ensemble_trend_window: int = 7
    ensemble_trend_threshold_pct: float = 10.0
    ensemble_hash_tail: int = 20

    # gap forecaster reliability gate
    gap_min_confidence: float = 40.0
    gap_min_days: int = 5
    gap_volatility_window: int = 24

    # head-to-head lead change levels: margin as a share of the larger current value,
    # crossover probability and the mean confidence of both bundles
    h2h_margin_high: float = 0.1
    h2h_margin_medium: float = 0.2
    h2h_crossover_high: float = 0.3
    h2h_crossover_medium: float = 0.15
    h2h_confidence_high: float = 50.0
    h2h_confidence_medium: float = 70.0

    # verification
    verification_zero_tolerance: float = 0.5
    trust_window_days: int = 90
    verification_batch_size: int = 20

    # warmup orchestration
    warmup_timeout_seconds: float = 120.0
    warmup_lock_ttl_seconds: int = WARMUP_LOCK_TTL
    forecast_fresh_ttl_seconds: int = FORECAST_FRESH_TTL
    forecast_stale_ttl_seconds: int = FORECAST_STALE_TTL

    store_redis_retry_cooldown_seconds: float = 10.0
    store_fallback_max_items: int = 10_000

    host: str = "0.0.0.0"
    port: int = 4322

    model_config = {
        "env_prefix": "TRENDCAST_",
        "extra": "ignore",
    }


settings = Settings()
