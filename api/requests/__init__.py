from __future__ import annotations

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from config import DEFAULT_GEO, DEFAULT_TIMEFRAME


class ForecastRequest(BaseModel):
    subject: str = Field(min_length=1)
    points: List[Dict[str, Any]] = Field(default_factory=list)
    horizon_days: Optional[int] = Field(default=None, ge=1, le=365)


class GapRequest(BaseModel):
    subject_a: str = Field(min_length=1)
    subject_b: str = Field(min_length=1)
    points: List[Dict[str, Any]] = Field(default_factory=list)
    horizon_days: Optional[int] = Field(default=None, ge=1, le=365)


class ConfidenceRequest(BaseModel):
    agreement_index: Optional[float] = None
    volatility: Optional[float] = None
    data_points: Optional[float] = None
    source_count: Optional[float] = None
    leader_change_risk: Optional[float] = None
    margin: Optional[float] = None


class PairRequest(BaseModel):
    subject_a: str = Field(min_length=1)
    subject_b: str = Field(min_length=1)
    timeframe: str = DEFAULT_TIMEFRAME
    geo: str = DEFAULT_GEO
