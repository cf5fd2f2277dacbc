"""
FastAPI application factory for the backend.

Run with: uvicorn backend.app:create_app --factory
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend import __version__
from backend.config import Settings, get_settings
from backend.metrics import MetricsMiddleware, RequestMetrics
from backend.routes import API_PREFIX
from backend.routes.system import health_router, index_router
from backend.security import SecurityHeadersConfig, SecurityHeadersMiddleware
from backend.wiring import wire

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, *, base_dir: Optional[Path] = None) -> FastAPI:
    """
    Build the application and wire every route before it starts serving.

    Raises StartupError when database mode is selected and the database is
    unreachable or cannot be migrated.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("API ready on port %s (env=%s)", settings.port, settings.env)
        yield
        logger.info("API shutting down...")
        app.state.wiring.close()

    docs_enabled = not settings.is_production
    app = FastAPI(
        title="Super Dashboard API",
        description="Integrated sports betting and stock monitoring API",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = settings
    app.state.health_checks = []
    app.state.metrics = RequestMetrics()

    origins = settings.cors_origin_list
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers reject credentials with a wildcard origin.
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.is_production:
        security_config = SecurityHeadersConfig.production()
    else:
        security_config = SecurityHeadersConfig()
    app.add_middleware(SecurityHeadersMiddleware, config=security_config)
    app.add_middleware(MetricsMiddleware, metrics=app.state.metrics)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    app.include_router(health_router)
    app.include_router(index_router, prefix=API_PREFIX)
    app.state.wiring = wire(app, settings, base_dir=base_dir)
    return app
