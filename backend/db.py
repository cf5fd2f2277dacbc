"""
Database connection helpers and ORM tables for Postgres.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Float,
    ForeignKey,
    String,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 5.0
PING_TIMEOUT_SECONDS = 3.0
PING_WORKERS = 2

# Shared so a hung database holds at most PING_WORKERS threads.
_ping_executor = ThreadPoolExecutor(max_workers=PING_WORKERS, thread_name_prefix="db-ping")


class DatabaseError(Exception):
    """Base class for database connector failures."""


class EmptyDSNError(DatabaseError):
    """The database DSN is empty, i.e. the database is not configured."""

    def __init__(self) -> None:
        super().__init__("database DSN cannot be empty")


class DatabaseConnectionError(DatabaseError):
    """A DSN was given but the database could not be reached."""


def normalize_dsn(dsn: str) -> str:
    """Map libpq-style postgres URLs onto the psycopg SQLAlchemy driver."""
    for scheme in ("postgres://", "postgresql://"):
        if dsn.startswith(scheme):
            return "postgresql+psycopg://" + dsn[len(scheme):]
    return dsn


def connect(dsn: str, timeout: float = CONNECT_TIMEOUT_SECONDS) -> Engine:
    """
    Open an engine for ``dsn`` and verify it answers within ``timeout`` seconds.

    Raises EmptyDSNError before any I/O when the DSN is empty, and
    DatabaseConnectionError when the engine cannot be created or pinged.
    """
    if not dsn:
        raise EmptyDSNError()

    url = normalize_dsn(dsn)
    connect_args = {}
    if url.startswith("postgresql"):
        # libpq only accepts whole seconds.
        connect_args["connect_timeout"] = max(1, int(timeout))
    try:
        engine = create_engine(
            url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
            connect_args=connect_args,
        )
    except (SQLAlchemyError, ImportError) as exc:
        raise DatabaseConnectionError(f"failed to open database: {exc}") from exc

    try:
        ping(engine, timeout=timeout)
    except DatabaseConnectionError:
        engine.dispose()
        raise

    logger.info("Connected to database %s", engine.url.render_as_string(hide_password=True))
    return engine


def ping(engine: Engine, timeout: float = PING_TIMEOUT_SECONDS) -> None:
    """Run a liveness query, raising DatabaseConnectionError after ``timeout`` seconds."""
    future = _ping_executor.submit(_select_one, engine)
    try:
        future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        future.cancel()
        raise DatabaseConnectionError(
            f"database ping timed out after {timeout:g}s"
        ) from exc
    except (SQLAlchemyError, OSError) as exc:
        raise DatabaseConnectionError(f"database ping failed: {exc}") from exc


def _select_one(engine: Engine) -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def migrate(engine: Engine) -> None:
    """Create any tables that do not exist yet."""
    logger.info("Running database migrations...")
    try:
        Base.metadata.create_all(engine)
    except SQLAlchemyError as exc:
        raise DatabaseError(f"database migration failed: {exc}") from exc
    logger.info("Database migrations completed")


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


class TeamRow(Base):
    __tablename__ = "teams"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    country = Column(String, nullable=False, default="")
    elo = Column(Float, nullable=False, default=0.0)


class MatchRow(Base):
    __tablename__ = "matches"

    id = Column(String, primary_key=True)
    league = Column(String, nullable=False, index=True)
    home_team_id = Column(String, ForeignKey("teams.id"), nullable=False)
    away_team_id = Column(String, ForeignKey("teams.id"), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=True)
    status = Column(String, nullable=False, default="scheduled")
    venue = Column(String, nullable=False, default="")


class OddsRow(Base):
    __tablename__ = "odds"

    id = Column(String, primary_key=True)
    match_id = Column(String, ForeignKey("matches.id"), nullable=False, index=True)
    bookmaker = Column(String, nullable=False)
    market = Column(String, nullable=False)
    outcome = Column(String, nullable=False)
    price = Column(Float, nullable=False)


class StockRow(Base):
    __tablename__ = "stocks"

    symbol = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    market_cap = Column(Float, nullable=False, default=0.0)
    sector = Column(String, nullable=False, default="")


class StockPriceRow(Base):
    __tablename__ = "stock_prices"

    id = Column(String, primary_key=True)
    symbol = Column(String, ForeignKey("stocks.symbol"), nullable=False, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    open = Column(Float, nullable=False)
    high = Column(Float, nullable=False)
    low = Column(Float, nullable=False)
    close = Column(Float, nullable=False)
    volume = Column(BigInteger, nullable=False, default=0)
