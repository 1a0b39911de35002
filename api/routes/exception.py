"""
Centralized exception handling decorator for API route functions.

:func:`handle_exceptions` wraps an endpoint handler and converts uncaught exceptions into
:class:`fastapi.HTTPException` responses. HTTPExceptions raised by the handler pass through
untouched. Malformed input maps to ``400``, series source failures to ``502`` and anything else
to ``500`` with the exception message as the detail.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, TypeVar, cast

from fastapi import HTTPException

from datasources.exceptions import DataSourceError
from engine.errors import InvalidInput

log = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _translate(func: Callable[..., Any], exc: Exception) -> HTTPException:
    if isinstance(exc, (InvalidInput, ValueError)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, DataSourceError):
        return HTTPException(status_code=502, detail=str(exc))
    log.exception("unhandled error in %s", func.__name__)
    return HTTPException(status_code=500, detail=str(exc))


def handle_exceptions(func: F) -> F:
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except HTTPException:
            raise
        except Exception as exc:
            raise _translate(func, exc) from exc

    return cast(F, wrapper)
