"""
Entry point for the TrendCast forecasting API server.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from api.routes import router
from api.routes.common import close_services
from config import settings
from database import init_database, init_db, dispose_database
from datasources.exceptions import BackendStartupTimeout

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    stream=sys.stdout,
)
log = logging.getLogger(__name__)

_backend_ready = False
_backend_status: Dict[str, str] = {}


async def wait_for(
    name: str,
    url: str,
    timeout: float,
    headers: Optional[Dict[str, str]] = None,
    accept_status: tuple = (200, 204),
) -> None:
    deadline = time.monotonic() + timeout
    attempt = 0
    async with httpx.AsyncClient() as client:
        while time.monotonic() < deadline:
            attempt += 1
            try:
                resp = await client.get(url, headers=headers or {}, timeout=3.0)
                if resp.status_code in accept_status:
                    log.info("%s ready (attempt %d, status %d)", name, attempt, resp.status_code)
                    return
                log.debug("%s probe returned %d (attempt %d)", name, resp.status_code, attempt)
            except httpx.HTTPError as exc:
                log.debug("%s not reachable (attempt %d): %s", name, attempt, exc)
            await asyncio.sleep(2)
    raise BackendStartupTimeout(f"{name} did not become ready within {timeout}s")


async def _wait_for_series_bg(series_url: str, health_path: str, timeout: float) -> None:
    global _backend_ready, _backend_status

    _backend_status["series"] = "waiting"
    log.info("Series source readiness check starting (timeout=%ss) ...", timeout)
    try:
        await wait_for("series", f"{series_url}{health_path}", timeout)
    except BackendStartupTimeout as exc:
        log.warning("Series source failed readiness: %s; cached forecasts are still served", exc)
        _backend_status["series"] = f"failed: {exc}"
        _backend_ready = False
        return
    _backend_status["series"] = "ready"
    _backend_ready = True


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if settings.database_url:
        init_database(settings.database_url)
        init_db()
    else:
        log.warning("TRENDCAST_DATABASE_URL not set; verification endpoints are disabled")

    readiness_task = asyncio.create_task(
        _wait_for_series_bg(settings.series_url, settings.series_health_path, settings.series_startup_timeout)
    )
    try:
        yield
    finally:
        readiness_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await readiness_task
        await close_services()
        dispose_database()


app = FastAPI(
    title="TrendCast Forecasting Engine",
    description="Multi-method forecasting, gap prediction and self-verification for competing interest series.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router, prefix="/api/v1")


@app.get("/api/v1/ready", tags=["health"], summary="Series source readiness probe")
async def ready() -> JSONResponse:
    code = 200 if _backend_ready else 503
    return JSONResponse(
        status_code=code,
        content={"ready": _backend_ready, "backends": _backend_status},
    )


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        log_level="info",
        access_log=True,
    )
