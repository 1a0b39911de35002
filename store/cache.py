"""
Fresh/stale envelope cache and distributed lock on top of the Redis client.

Entries are written with a fresh deadline inside a JSON envelope and a Redis expiry equal to the
stale TTL, so a read after the fresh deadline still returns the value, flagged stale, until Redis
drops it.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional

from engine.errors import LockContention
from store import client

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedValue:
    value: Any
    is_stale: bool


class ForecastCache:
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock

    async def get(self, key: str) -> Optional[CachedValue]:
        raw = await client.redis_get(key)
        if raw is None:
            return None
        try:
            envelope = json.loads(raw)
            value = envelope["value"]
            fresh_until = float(envelope["fresh_until"])
        except (ValueError, KeyError, TypeError) as exc:
            log.warning("Discarding malformed cache entry %s: %s", key, exc)
            await client.redis_delete(key)
            return None
        return CachedValue(value=value, is_stale=self._clock() >= fresh_until)

    async def set(self, key: str, value: Any, fresh_ttl: int, stale_ttl: int) -> None:
        envelope = {"value": value, "fresh_until": self._clock() + fresh_ttl}
        await client.redis_set(key, json.dumps(envelope), ttl=max(int(stale_ttl), int(fresh_ttl)))

    async def get_text(self, key: str) -> Optional[str]:
        return await client.redis_get(key)

    async def set_text(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        await client.redis_set(key, value, ttl=ttl)

    async def delete(self, key: str) -> None:
        await client.redis_delete(key)

    async def acquire(self, key: str, ttl: int) -> Optional[str]:
        """Take the lock at ``key``; returns the owner token, or None when someone else holds it."""
        token = uuid.uuid4().hex
        if await client.redis_set_nx(key, token, ttl):
            return token
        return None

    async def release(self, key: str, token: str) -> bool:
        released = await client.redis_delete_if_equal(key, token)
        if not released:
            log.warning("lock %s expired or changed owner before release", key)
        return released

    @asynccontextmanager
    async def lock(self, key: str, ttl: int) -> AsyncIterator[str]:
        token = await self.acquire(key, ttl)
        if token is None:
            raise LockContention(key)
        try:
            yield token
        finally:
            await self.release(key, token)
