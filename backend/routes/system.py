"""
Routes that are always registered: health probes, metrics and the API index.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from backend import __version__
from backend.schemas import (
    DependencyStatus,
    HealthResponse,
    IndexResponse,
    MetricsResponse,
    PingResponse,
)

logger = logging.getLogger(__name__)

health_router = APIRouter(tags=["health"])
index_router = APIRouter(tags=["system"])


@health_router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
def health():
    return HealthResponse(status="ok")


@health_router.get("/health/live", response_model=HealthResponse, response_model_exclude_none=True)
def live():
    return HealthResponse(status="alive")


@health_router.get("/metrics", response_model=MetricsResponse, tags=["monitoring"])
def metrics(request: Request):
    return request.app.state.metrics.snapshot()


@health_router.get(
    "/health/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
def ready(request: Request):
    """
    Run every dependency check registered at startup.

    Answers 503 when any dependency is down.
    """
    details: dict[str, DependencyStatus] = {}
    all_healthy = True
    for name, check in getattr(request.app.state, "health_checks", []):
        try:
            check()
        except Exception as exc:
            logger.warning("Readiness check %s failed: %s", name, exc)
            details[name] = DependencyStatus(status="down", message=str(exc))
            all_healthy = False
        else:
            details[name] = DependencyStatus(status="up", message="connected")

    if not all_healthy:
        body = HealthResponse(status="not_ready", details=details)
        return JSONResponse(status_code=503, content=body.model_dump())
    return HealthResponse(status="ready", details=details)


@index_router.get("/", response_model=IndexResponse)
def index():
    return IndexResponse(message="Super Dashboard API v1", version=__version__)


@index_router.get("/ping", response_model=PingResponse)
def ping():
    return PingResponse(
        message="pong",
        timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    )
