"""
Client code for Redis access, with in-memory fallback if Redis is unavailable.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

from config import REDIS_URL, settings

log = logging.getLogger(__name__)

_redis_client: Any = None
_fallback: dict[str, str] = {}
_fallback_expiry: dict[str, float] = {}
_using_fallback = False
_init_lock = asyncio.Lock()
_retry_after_monotonic: float = 0.0

_REDIS_OP_TIMEOUT_SECONDS = 0.5


async def get_redis() -> Any:
    global _redis_client, _using_fallback, _retry_after_monotonic

    if _redis_client is not None:
        return _redis_client
    if time.monotonic() < _retry_after_monotonic:
        _using_fallback = True
        return None

    async with _init_lock:
        if _redis_client is not None:
            return _redis_client
        if time.monotonic() < _retry_after_monotonic:
            _using_fallback = True
            return None
        try:
            import redis.asyncio as aioredis

            client = aioredis.from_url(
                REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=0.5,
                socket_timeout=0.5,
            )
            await asyncio.wait_for(client.ping(), timeout=0.5)
            _redis_client = client
            _retry_after_monotonic = 0.0
            _using_fallback = False
            log.info("Redis connected: %s", REDIS_URL)
            return _redis_client
        except Exception as exc:
            _retry_after_monotonic = time.monotonic() + max(0.0, settings.store_redis_retry_cooldown_seconds)
            if not _using_fallback:
                log.warning("Redis unavailable (%s), using in-memory fallback", exc)
                _using_fallback = True
            return None


def _fallback_get(key: str) -> Optional[str]:
    expires = _fallback_expiry.get(key)
    if expires is not None and time.monotonic() >= expires:
        _fallback.pop(key, None)
        _fallback_expiry.pop(key, None)
        return None
    return _fallback.get(key)


def _fallback_put(key: str, value: str, ttl: Optional[int]) -> None:
    if key not in _fallback and len(_fallback) >= settings.store_fallback_max_items:
        log.debug("in-memory fallback full, dropping %s", key)
        return
    _fallback[key] = value
    if ttl:
        _fallback_expiry[key] = time.monotonic() + ttl
    else:
        _fallback_expiry.pop(key, None)


def _fallback_pop(key: str) -> None:
    _fallback.pop(key, None)
    _fallback_expiry.pop(key, None)


async def redis_get(key: str) -> Optional[str]:
    client = await get_redis()
    if client is None:
        return _fallback_get(key)
    try:
        return await asyncio.wait_for(client.get(key), timeout=_REDIS_OP_TIMEOUT_SECONDS)
    except Exception as exc:
        log.debug("Redis GET error %s: %s", key, exc)
        return _fallback_get(key)


async def redis_set(key: str, value: str, ttl: Optional[int] = None) -> None:
    client = await get_redis()
    if client is None:
        _fallback_put(key, value, ttl)
        return
    try:
        if ttl:
            await asyncio.wait_for(client.setex(key, ttl, value), timeout=_REDIS_OP_TIMEOUT_SECONDS)
        else:
            await asyncio.wait_for(client.set(key, value), timeout=_REDIS_OP_TIMEOUT_SECONDS)
    except Exception as exc:
        log.debug("Redis SET error %s: %s", key, exc)
        _fallback_put(key, value, ttl)


async def redis_set_nx(key: str, value: str, ttl: int) -> bool:
    """Set ``key`` only if it does not exist yet, with an expiry.

    Used for locks, so a Redis error after the connection is up is raised rather than
    silently granting the lock from the local fallback.
    """
    client = await get_redis()
    if client is None:
        if _fallback_get(key) is not None:
            return False
        _fallback_put(key, value, ttl)
        return key in _fallback
    result = await asyncio.wait_for(
        client.set(key, value, nx=True, ex=ttl),
        timeout=_REDIS_OP_TIMEOUT_SECONDS,
    )
    return bool(result)


_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


async def redis_delete_if_equal(key: str, value: str) -> bool:
    """Delete ``key`` only while it still holds ``value``; used to release locks by owner token."""
    client = await get_redis()
    if client is None:
        if _fallback_get(key) != value:
            return False
        _fallback_pop(key)
        return True
    try:
        result = await asyncio.wait_for(
            client.eval(_RELEASE_SCRIPT, 1, key, value),
            timeout=_REDIS_OP_TIMEOUT_SECONDS,
        )
    except Exception as exc:
        log.warning("Redis lock release failed for %s, leaving it to expire: %s", key, exc)
        return False
    return bool(result)


async def redis_delete(key: str) -> None:
    client = await get_redis()
    if client is None:
        _fallback_pop(key)
        return
    try:
        await asyncio.wait_for(client.delete(key), timeout=_REDIS_OP_TIMEOUT_SECONDS)
    except Exception as exc:
        log.debug("Redis DEL error %s: %s", key, exc)
        _fallback_pop(key)


def reset_fallback() -> None:
    _fallback.clear()
    _fallback_expiry.clear()


def is_using_fallback() -> bool:
    return _using_fallback
