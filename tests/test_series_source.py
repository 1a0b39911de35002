"""
Test Suite for Series Sources

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

import httpx
import pytest

from config import settings
from datasources.base import SeriesParams, SubjectPair
from datasources.exceptions import DataSourceUnavailable, InvalidQuery, MalformedSeries
from datasources.series_source import HttpSeriesSource, StaticSeriesSource, _points_from_payload

PAIR = SubjectPair("tea", "coffee")
POINTS = [{"date": "2026-01-01", "tea": 10, "coffee": 20}, {"date": "2026-01-02", "tea": 11, "coffee": 19}]


class DummyResponse:
    def __init__(self, status_code=200, json_data=None, text=""):
        self.status_code = status_code
        self._json = json_data
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise httpx.HTTPStatusError("err", request=None, response=self)

    def json(self):
        return self._json


class DummyClient:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def get(self, url, params=None, headers=None):
        self.calls.append((url, params, headers))
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


def test_subject_pair_validation():
    assert SubjectPair("  tea ", "coffee").subject_a == "tea"
    with pytest.raises(ValueError):
        SubjectPair("", "coffee")
    with pytest.raises(ValueError):
        SubjectPair("Tea", "tea")


@pytest.mark.parametrize("payload", [POINTS, {"points": POINTS}, {"data": POINTS}, {"series": POINTS}])
def test_payload_shapes(payload):
    assert _points_from_payload(payload) == POINTS


def test_payload_skips_non_mapping_entries():
    assert _points_from_payload([POINTS[0], "junk", 3]) == [POINTS[0]]


def test_payload_rejects_non_list():
    with pytest.raises(MalformedSeries):
        _points_from_payload({"rows": POINTS})


@pytest.mark.asyncio
async def test_http_source_sends_terms_and_params(monkeypatch):
    client = DummyClient([DummyResponse(json_data={"points": POINTS})])
    monkeypatch.setattr(httpx, "AsyncClient", lambda timeout: client)
    source = HttpSeriesSource("http://trends/", timeout=5, headers={"X-Key": "k"})

    got = await source.fetch(PAIR, SeriesParams(timeframe="3m", geo="US"))

    assert got == POINTS
    url, params, headers = client.calls[0]
    assert url == "http://trends/api/series"
    assert params == {"terms": "tea,coffee", "timeframe": "3m", "geo": "US"}
    assert headers == {"X-Key": "k"}


@pytest.mark.asyncio
async def test_http_source_retries_when_unreachable(monkeypatch):
    client = DummyClient([httpx.ConnectError("refused"), DummyResponse(json_data=POINTS)])
    monkeypatch.setattr(httpx, "AsyncClient", lambda timeout: client)

    got = await HttpSeriesSource("http://trends").fetch(PAIR, SeriesParams())

    assert got == POINTS
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_http_source_does_not_retry_bad_query(monkeypatch):
    client = DummyClient([DummyResponse(status_code=400, text="bad terms")])
    monkeypatch.setattr(httpx, "AsyncClient", lambda timeout: client)

    with pytest.raises(InvalidQuery):
        await HttpSeriesSource("http://trends").fetch(PAIR, SeriesParams())
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_http_source_gives_up_after_attempts(monkeypatch):
    client = DummyClient([httpx.ConnectError("refused")] * 3)
    monkeypatch.setattr(httpx, "AsyncClient", lambda timeout: client)

    with pytest.raises(DataSourceUnavailable):
        await HttpSeriesSource("http://trends").fetch(PAIR, SeriesParams())
    assert len(client.calls) == 3


@pytest.mark.asyncio
async def test_http_source_uses_current_retry_settings(monkeypatch):
    monkeypatch.setattr(settings, "series_retry_attempts", 1)
    client = DummyClient([httpx.ConnectError("refused"), DummyResponse(json_data=POINTS)])
    monkeypatch.setattr(httpx, "AsyncClient", lambda timeout: client)

    with pytest.raises(DataSourceUnavailable):
        await HttpSeriesSource("http://trends").fetch(PAIR, SeriesParams())
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_static_source_by_pair_and_default():
    other = SubjectPair("milk", "juice")
    source = StaticSeriesSource(points=POINTS)
    source.put(other, [{"date": "2026-02-01", "milk": 1, "juice": 2}])

    assert await source.fetch(PAIR, SeriesParams()) == POINTS
    assert (await source.fetch(other, SeriesParams()))[0]["milk"] == 1
    assert source.calls == 2


@pytest.mark.asyncio
async def test_static_source_returns_copies():
    source = StaticSeriesSource(points=POINTS)
    first = await source.fetch(PAIR, SeriesParams())
    first[0]["tea"] = 999
    assert (await source.fetch(PAIR, SeriesParams()))[0]["tea"] == 10
