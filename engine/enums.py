"""
Enumerations for forecast methods, trend direction, confidence labels, lead change levels and
warmup status.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from enum import Enum

from config import CONFIDENCE_LABELS


class Method(str, Enum):
    linear = "linear"
    exponential = "exponential"
    moving_average = "moving-average"

    @classmethod
    def ordered(cls) -> tuple[Method, ...]:
        # combination order is fixed so results never depend on completion order
        return (cls.linear, cls.exponential, cls.moving_average)


class Trend(str, Enum):
    rising = "rising"
    falling = "falling"
    stable = "stable"


class ConfidenceLabel(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"

    @classmethod
    def from_score(cls, score: float) -> ConfidenceLabel:
        if score >= CONFIDENCE_LABELS["high"]:
            return cls.high
        if score >= CONFIDENCE_LABELS["medium"]:
            return cls.medium
        return cls.low


class LeadChangeLevel(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class WarmupStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    READY = "ready"
    QUEUED = "queued"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (WarmupStatus.READY, WarmupStatus.QUEUED, WarmupStatus.FAILED)
