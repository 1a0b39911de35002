"""
Cache key layout for forecasts, comparisons and warmup state.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import hashlib

_SEP = "\x1f"


def _slug(*parts: str) -> str:
    # Internal cache keys do not require reversibility; use strong stable hashing.
    return hashlib.sha256(_SEP.join(parts).encode()).hexdigest()[:32]


def pair_id(subject_a: str, subject_b: str, timeframe: str, geo: str) -> str:
    return _slug(subject_a, subject_b, timeframe, geo)


def comparison(subject_a: str, subject_b: str, timeframe: str, geo: str) -> str:
    return f"tc:comparison:{pair_id(subject_a, subject_b, timeframe, geo)}"


def forecast(subject: str, timeframe: str, geo: str) -> str:
    return f"tc:forecast:{_slug(subject, timeframe, geo)}"


def warmup_status(subject_a: str, subject_b: str, timeframe: str, geo: str) -> str:
    return f"tc:warmup:status:{pair_id(subject_a, subject_b, timeframe, geo)}"


def warmup_lock(subject_a: str, subject_b: str, timeframe: str, geo: str) -> str:
    return f"tc:warmup:lock:{pair_id(subject_a, subject_b, timeframe, geo)}"


def warmup_error(subject_a: str, subject_b: str, timeframe: str, geo: str) -> str:
    return f"tc:warmup:error:{pair_id(subject_a, subject_b, timeframe, geo)}"
