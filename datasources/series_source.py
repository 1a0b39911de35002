"""
Series source implementations: an HTTP client for a trends service and an in-memory source.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from datasources.base import SeriesParams, SeriesSource, SubjectPair
from datasources.exceptions import DataSourceUnavailable, MalformedSeries, QueryTimeout
from datasources.helpers import fetch_json
from datasources.retry import retry
from config import settings

log = logging.getLogger(__name__)


def _points_from_payload(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, Mapping):
        for key in ("points", "data", "series"):
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
    if not isinstance(payload, list):
        raise MalformedSeries(f"expected a list of points, got {type(payload).__name__}")
    return [dict(p) for p in payload if isinstance(p, Mapping)]


class HttpSeriesSource(SeriesSource):
    path = "/api/series"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.base_url = str(base_url or settings.series_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.series_timeout
        self.headers = headers or {}

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    async def fetch(self, pair: SubjectPair, params: SeriesParams) -> List[Dict[str, Any]]:
        return await self._fetch(pair, params)

    @retry(exceptions=(DataSourceUnavailable, QueryTimeout))
    async def _fetch(self, pair: SubjectPair, params: SeriesParams) -> List[Dict[str, Any]]:
        query = {"terms": f"{pair.subject_a},{pair.subject_b}", **params.as_dict()}
        payload = await fetch_json(self.url, params=query, headers=self.headers, timeout=self.timeout)
        points = _points_from_payload(payload)
        log.debug("fetched %d points for %s vs %s", len(points), pair.subject_a, pair.subject_b)
        return points


class StaticSeriesSource(SeriesSource):
    """In-memory source, keyed by subject pair or shared across all pairs."""

    def __init__(
        self,
        points: Optional[Sequence[Mapping[str, Any]]] = None,
        by_pair: Optional[Mapping[Tuple[str, str], Sequence[Mapping[str, Any]]]] = None,
    ) -> None:
        self._points = [dict(p) for p in points or ()]
        self._by_pair = {k: [dict(p) for p in v] for k, v in (by_pair or {}).items()}
        self.calls = 0

    def put(self, pair: SubjectPair, points: Sequence[Mapping[str, Any]]) -> None:
        self._by_pair[(pair.subject_a, pair.subject_b)] = [dict(p) for p in points]

    async def fetch(self, pair: SubjectPair, params: SeriesParams) -> List[Dict[str, Any]]:
        self.calls += 1
        points = self._by_pair.get((pair.subject_a, pair.subject_b), self._points)
        return [dict(p) for p in points]
