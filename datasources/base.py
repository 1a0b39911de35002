"""
Query types and the abstract series source that the warmup and verification services read from.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List

from config import DEFAULT_GEO, DEFAULT_TIMEFRAME


@dataclass(frozen=True)
class SubjectPair:
    subject_a: str
    subject_b: str

    def __post_init__(self) -> None:
        a = (self.subject_a or "").strip()
        b = (self.subject_b or "").strip()
        if not a or not b:
            raise ValueError("both subjects are required")
        if a.lower() == b.lower():
            raise ValueError("subjects must differ")
        object.__setattr__(self, "subject_a", a)
        object.__setattr__(self, "subject_b", b)


@dataclass(frozen=True)
class SeriesParams:
    timeframe: str = DEFAULT_TIMEFRAME
    geo: str = DEFAULT_GEO

    def as_dict(self) -> Dict[str, str]:
        return {"timeframe": self.timeframe, "geo": self.geo}


class SeriesSource(ABC):
    """Historical interest series for a subject pair.

    ``fetch`` returns raw points shaped ``{"date": ..., <subject>: <value>, ...}``; cleaning is
    left to the preprocessor.
    """

    @abstractmethod
    async def fetch(self, pair: SubjectPair, params: SeriesParams) -> List[Dict[str, Any]]: ...

    async def aclose(self) -> None:
        return None
