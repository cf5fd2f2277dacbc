"""
Startup wiring: pick the backend mode once and register the routes it supports.

* mock mode serves each domain from a JSON file; a domain whose file fails
  to load is skipped with a warning.
* database mode connects to Postgres and migrates (both fatal on failure),
  then serves every domain plus auth from the database.
* otherwise only the health and index routes are served.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI
from sqlalchemy.engine import Engine

from backend import db
from backend.auth import AuthService
from backend.cache import CacheConnectionError, InMemoryTokenStore, RedisTokenStore, TokenStore
from backend.config import Settings
from backend.ratelimit import (
    InMemoryRateLimiter,
    RateLimiter,
    RedisRateLimiter,
    enforce_auth_rate_limit,
)
from backend.repositories import (
    MockDataError,
    MockMatchRepository,
    MockStockRepository,
    SqlMatchRepository,
    SqlStockRepository,
    SqlUserRepository,
)
from backend.routes import API_PREFIX
from backend.routes import auth as auth_routes
from backend.routes import matches as match_routes
from backend.routes import stocks as stock_routes

logger = logging.getLogger(__name__)

MOCK_DIR_CANDIDATES = ("mock", "../mock", "backend/mock")
MOCK_DATA_FILES = ("matches.json", "stocks.json")
DEFAULT_MOCK_DIR = "mock"


class StartupError(Exception):
    """A failure that must stop the process before it starts serving."""


class BackendMode(str, Enum):
    MOCK = "mock"
    DATABASE = "database"
    DEGENERATE = "degenerate"


@dataclass
class Wiring:
    """What ``wire`` registered, plus the resources the app must release."""

    mode: BackendMode
    domains: list[str] = field(default_factory=list)
    engine: Optional[Engine] = None
    token_store: Optional[TokenStore] = None

    def close(self) -> None:
        if self.token_store is not None:
            self.token_store.close()
        if self.engine is not None:
            self.engine.dispose()


def resolve_mode(settings: Settings) -> BackendMode:
    """The mock flag always wins over a configured database."""
    if settings.use_mock_data:
        return BackendMode.MOCK
    if settings.database_url:
        return BackendMode.DATABASE
    return BackendMode.DEGENERATE


def find_mock_dir(
    candidates: tuple[str, ...] = MOCK_DIR_CANDIDATES,
    base: Optional[Path] = None,
) -> Path:
    """Return the first candidate directory holding a mock data file."""
    base = Path(base) if base is not None else Path.cwd()
    for candidate in candidates:
        directory = base / candidate
        if any((directory / name).is_file() for name in MOCK_DATA_FILES):
            return directory
    return base / DEFAULT_MOCK_DIR


def wire(app: FastAPI, settings: Settings, *, base_dir: Optional[Path] = None) -> Wiring:
    """Register domain routes on ``app`` for the mode ``settings`` selects."""
    if not hasattr(app.state, "health_checks"):
        app.state.health_checks = []

    mode = resolve_mode(settings)
    wiring = Wiring(mode=mode)
    if mode is BackendMode.MOCK:
        if settings.database_url:
            logger.info("USE_MOCK_DATA is enabled; ignoring DATABASE_URL")
        _wire_mock(app, settings, wiring, base_dir)
    elif mode is BackendMode.DATABASE:
        _wire_database(app, settings, wiring)
    else:
        logger.warning(
            "No database URL configured and not in mock mode; serving health and index routes only"
        )

    logger.info(
        "Backend wired in %s mode with domains: %s",
        mode.value,
        ", ".join(wiring.domains) or "none",
    )
    return wiring


def _wire_mock(app: FastAPI, settings: Settings, wiring: Wiring, base_dir: Optional[Path]) -> None:
    base = Path(base_dir) if base_dir is not None else Path.cwd()
    if settings.mock_data_dir:
        mock_dir = base / settings.mock_data_dir
    else:
        mock_dir = find_mock_dir(base=base)
    logger.info("Initializing mock data repositories from %s", mock_dir)

    try:
        match_repo = MockMatchRepository.from_file(mock_dir / "matches.json")
    except (OSError, MockDataError) as exc:
        logger.warning("Failed to load mock match data: %s", exc)
    else:
        app.state.match_repository = match_repo
        app.include_router(match_routes.router, prefix=API_PREFIX)
        wiring.domains.append("matches")
        logger.info("Match endpoints registered with mock data")

    try:
        stock_repo = MockStockRepository.from_file(mock_dir / "stocks.json")
    except (OSError, MockDataError) as exc:
        logger.warning("Failed to load mock stock data: %s", exc)
    else:
        app.state.stock_repository = stock_repo
        app.include_router(stock_routes.router, prefix=API_PREFIX)
        wiring.domains.append("stocks")
        logger.info("Stock endpoints registered with mock data")


def _wire_database(app: FastAPI, settings: Settings, wiring: Wiring) -> None:
    try:
        engine = db.connect(settings.database_url)
    except db.DatabaseError as exc:
        raise StartupError(f"failed to connect to database: {exc}") from exc
    wiring.engine = engine

    try:
        db.migrate(engine)
    except db.DatabaseError as exc:
        engine.dispose()
        raise StartupError(f"failed to run database migrations: {exc}") from exc

    app.state.health_checks.append(("database", lambda: db.ping(engine)))

    token_store = _open_token_store(app, settings)
    wiring.token_store = token_store

    app.state.match_repository = SqlMatchRepository(engine)
    app.include_router(match_routes.router, prefix=API_PREFIX)
    wiring.domains.append("matches")

    app.state.stock_repository = SqlStockRepository(engine)
    app.include_router(stock_routes.router, prefix=API_PREFIX)
    wiring.domains.append("stocks")

    app.state.auth_service = AuthService(
        users=SqlUserRepository(engine),
        tokens=token_store,
        jwt_secret=settings.jwt_secret,
    )
    app.state.auth_rate_limiter = _auth_rate_limiter(settings, token_store)
    app.include_router(
        auth_routes.router,
        prefix=API_PREFIX,
        dependencies=[Depends(enforce_auth_rate_limit)],
    )
    wiring.domains.append("auth")
    logger.info("Database-backed services initialized")


def _open_token_store(app: FastAPI, settings: Settings) -> TokenStore:
    if not settings.redis_url:
        logger.info("REDIS_URL not set; refresh tokens are kept in process memory")
        return InMemoryTokenStore()
    try:
        store = RedisTokenStore.connect(settings.redis_url)
    except CacheConnectionError as exc:
        logger.warning(
            "Failed to connect to Redis, refresh tokens are kept in process memory: %s", exc
        )
        return InMemoryTokenStore()
    app.state.health_checks.append(("redis", store.ping))
    return store


def _auth_rate_limiter(settings: Settings, token_store: TokenStore) -> RateLimiter:
    """Share the token store's Redis connection when there is one."""
    if isinstance(token_store, RedisTokenStore):
        return RedisRateLimiter(
            token_store.client,
            settings.auth_rate_limit,
            settings.auth_rate_window_seconds,
        )
    return InMemoryRateLimiter(settings.auth_rate_limit, settings.auth_rate_window_seconds)
