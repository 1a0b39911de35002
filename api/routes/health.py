"""
Health check route to verify service, store and database connectivity.

Copyright (c) 2026 Stefan Kumarasinghe
Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict

from fastapi import APIRouter

import database
from store import client as store_client
from api.routes.exception import handle_exceptions

router = APIRouter(tags=["Health"])


@router.get("/health")
@handle_exceptions
async def health() -> Dict[str, Any]:
    await store_client.get_redis()
    if database.is_initialized():
        db_state = "ok" if await asyncio.to_thread(database.connection_test) else "unreachable"
    else:
        db_state = "disabled"
    return {
        "status": "ok",
        "store": "fallback" if store_client.is_using_fallback() else "redis",
        "database": db_state,
    }
