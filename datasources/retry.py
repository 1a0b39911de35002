"""
Retry decorator for series source calls, with exponential backoff.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from functools import wraps
from typing import Any, Callable, Optional, Type, TypeVar, Tuple, cast

from config import settings

log = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _next_delay(func: Callable[..., Any], attempt: int, attempts: int, delay: float, exc: Exception) -> None:
    log.warning(
        "%s failed (attempt %d/%d): %s; retrying in %.2fs",
        getattr(func, "__qualname__", func), attempt, attempts, exc, delay,
    )


def retry(
    *,
    attempts: Optional[int] = None,
    delay: Optional[float] = None,
    backoff: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
) -> Callable[[F], F]:
    """Retry an async callable on ``exceptions``.

    ``attempts`` and ``delay`` left as None are read from settings on every call, so runtime
    overrides of ``series_retry_attempts`` and ``series_retry_delay`` apply to decorated methods.
    """
    def decorator(func: F) -> F:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"retry expects a coroutine function, got {func!r}")

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            limit = max(1, int(attempts if attempts is not None else settings.series_retry_attempts))
            wait = float(delay if delay is not None else settings.series_retry_delay)
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as exc:
                    attempt += 1
                    if attempt >= limit:
                        raise
                    _next_delay(func, attempt, limit, wait, exc)
                    await asyncio.sleep(wait)
                    wait *= backoff

        return cast(F, wrapper)

    return decorator
