"""
Stable content digests used as idempotency and cache keys for forecasts.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Sequence

from engine.constants import ENGINE_VERSION
from config import settings


def _canonical(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True, allow_nan=False)


def stable_hash(obj: Any, length: int = 16) -> str:
    return hashlib.sha256(_canonical(obj).encode("utf-8")).hexdigest()[:length]


def forecast_hash(
    subject: str,
    values: Sequence[float],
    version: str = ENGINE_VERSION,
    tail: int | None = None,
) -> str:
    if tail is None:
        tail = settings.ensemble_hash_tail
    window = [float(v) for v in values[-tail:]] if tail > 0 else []
    return stable_hash({"subject": subject, "series": window, "version": version})


def data_hash(
    dates: Sequence[str],
    values_a: Sequence[float],
    values_b: Sequence[float],
    subject_a: str,
    subject_b: str,
    params: dict[str, Any],
    version: str = ENGINE_VERSION,
) -> str:
    return stable_hash({
        "series": [[d, float(a), float(b)] for d, a, b in zip(dates, values_a, values_b)],
        "subjects": [subject_a, subject_b],
        "params": params,
        "version": version,
    })
