"""
Repositories for match, stock and user data.

Mock implementations load immutable snapshots from JSON files once at
startup; SQL implementations read the tables created by ``backend.db``.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from backend.db import MatchRow, OddsRow, StockPriceRow, StockRow, TeamRow, UserRow

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """Raised when a requested resource does not exist."""


class DuplicateError(ValueError):
    """Raised when creating a resource that already exists."""


class MockDataError(ValueError):
    """Raised when a mock data file is not in the expected shape."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return _as_utc(parsed)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    country: str = ""
    elo: float = 0.0

    def as_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "country": self.country, "elo": self.elo}


@dataclass(frozen=True)
class Match:
    id: str
    league: str
    home_team: Team
    away_team: Team
    start_time: Optional[datetime] = None
    status: str = "scheduled"
    venue: str = ""

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "league": self.league,
            "home_team_id": self.home_team.id,
            "home_team": self.home_team.as_dict(),
            "away_team_id": self.away_team.id,
            "away_team": self.away_team.as_dict(),
            "start_time": _iso(self.start_time),
            "status": self.status,
            "venue": self.venue,
        }


@dataclass(frozen=True)
class Odds:
    id: str
    match_id: str
    bookmaker: str
    market: str
    outcome: str
    price: float

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "match_id": self.match_id,
            "bookmaker": self.bookmaker,
            "market": self.market,
            "outcome": self.outcome,
            "price": self.price,
        }


@dataclass(frozen=True)
class Stock:
    symbol: str
    name: str
    market_cap: float = 0.0
    sector: str = ""

    def as_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "market_cap": self.market_cap,
            "sector": self.sector,
        }


@dataclass(frozen=True)
class StockPrice:
    symbol: str
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int = 0

    def as_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "timestamp": _iso(self.timestamp),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass(frozen=True)
class User:
    id: str
    email: str
    name: str
    password_hash: str = field(repr=False)
    created_at: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "created_at": _iso(self.created_at),
        }


class MatchRepository(Protocol):
    def list_matches(self) -> list[Match]:
        ...

    def get_match(self, match_id: str) -> Match:
        ...

    def list_odds(self, match_id: str) -> list[Odds]:
        ...


class StockRepository(Protocol):
    def list_stocks(self) -> list[Stock]:
        ...

    def get_stock(self, symbol: str) -> Stock:
        ...

    def latest_price(self, symbol: str) -> StockPrice:
        ...

    def price_history(self, symbol: str, limit: int = 0) -> list[StockPrice]:
        ...


class UserRepository(Protocol):
    def create_user(self, email: str, name: str, password_hash: str) -> User:
        ...

    def get_by_email(self, email: str) -> User:
        ...

    def get_by_id(self, user_id: str) -> User:
        ...


def _read_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise MockDataError(f"{path}: invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MockDataError(f"{path}: expected a JSON object at the top level")
    return data


def _price_from_json(symbol: str, item: dict[str, Any], default_time: datetime) -> StockPrice:
    return StockPrice(
        symbol=symbol,
        timestamp=_parse_time(item.get("timestamp")) or default_time,
        open=float(item.get("open", 0.0)),
        high=float(item.get("high", 0.0)),
        low=float(item.get("low", 0.0)),
        close=float(item.get("close", 0.0)),
        volume=int(item.get("volume", 0)),
    )


class MockMatchRepository:
    """Match data served from a ``matches.json`` snapshot."""

    def __init__(self, teams: dict[str, Team], matches: dict[str, Match], odds: dict[str, list[Odds]]):
        self._teams = teams
        self._matches = matches
        self._odds = odds

    @classmethod
    def from_file(cls, path: str | Path) -> "MockMatchRepository":
        path = Path(path)
        data = _read_json(path)
        try:
            teams = {
                str(t["id"]): Team(
                    id=str(t["id"]),
                    name=t["name"],
                    country=t.get("country", ""),
                    elo=float(t.get("elo", 0.0)),
                )
                for t in data.get("teams", [])
            }
            matches: dict[str, Match] = {}
            for m in data.get("matches", []):
                home_id, away_id = str(m["home_team_id"]), str(m["away_team_id"])
                matches[str(m["id"])] = Match(
                    id=str(m["id"]),
                    league=m.get("league", ""),
                    home_team=teams.get(home_id, Team(id=home_id, name="")),
                    away_team=teams.get(away_id, Team(id=away_id, name="")),
                    start_time=_parse_time(m.get("start_time")),
                    status=m.get("status", "scheduled"),
                    venue=m.get("venue", ""),
                )
            odds: dict[str, list[Odds]] = {}
            for o in data.get("odds", []):
                entry = Odds(
                    id=str(o["id"]),
                    match_id=str(o["match_id"]),
                    bookmaker=o.get("bookmaker", ""),
                    market=o.get("market", ""),
                    outcome=o.get("outcome", ""),
                    price=float(o["price"]),
                )
                odds.setdefault(entry.match_id, []).append(entry)
        except (KeyError, TypeError, ValueError) as exc:
            raise MockDataError(f"{path}: malformed match data: {exc!r}") from exc
        return cls(teams, matches, odds)

    def list_matches(self) -> list[Match]:
        return sorted(
            self._matches.values(),
            key=lambda m: (m.start_time or datetime.max.replace(tzinfo=timezone.utc), m.id),
        )

    def get_match(self, match_id: str) -> Match:
        match = self._matches.get(match_id)
        if match is None:
            raise NotFoundError(f"match {match_id} not found")
        return match

    def list_odds(self, match_id: str) -> list[Odds]:
        return list(self._odds.get(match_id, []))


class MockStockRepository:
    """
    Stock data served from a ``stocks.json`` snapshot.

    Sibling ``prices_<SYMBOL>.json`` files, when present, replace the single
    price from ``stocks.json`` with a full history ordered newest first.
    """

    def __init__(self, stocks: dict[str, Stock], history: dict[str, list[StockPrice]]):
        self._stocks = stocks
        self._history = history

    @classmethod
    def from_file(cls, path: str | Path) -> "MockStockRepository":
        path = Path(path)
        data = _read_json(path)
        loaded_at = _utcnow()
        try:
            stocks = {
                s["symbol"].upper(): Stock(
                    symbol=s["symbol"].upper(),
                    name=s.get("name", ""),
                    market_cap=float(s.get("market_cap", 0.0)),
                    sector=s.get("sector", ""),
                )
                for s in data.get("stocks", [])
            }
            history: dict[str, list[StockPrice]] = {}
            for p in data.get("prices", []):
                symbol = p["symbol"].upper()
                if symbol not in stocks:
                    continue
                history[symbol] = [_price_from_json(symbol, p, loaded_at)]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise MockDataError(f"{path}: malformed stock data: {exc!r}") from exc

        for history_path in sorted(path.parent.glob("prices_*.json")):
            try:
                symbol, prices = cls._load_history_file(history_path, loaded_at)
            except (OSError, MockDataError) as exc:
                logger.warning("Skipping price history file %s: %s", history_path, exc)
                continue
            if symbol in stocks:
                history[symbol] = prices
        return cls(stocks, history)

    @staticmethod
    def _load_history_file(path: Path, default_time: datetime) -> tuple[str, list[StockPrice]]:
        data = _read_json(path)
        try:
            symbol = data["symbol"].upper()
            prices = [_price_from_json(symbol, p, default_time) for p in data.get("prices", [])]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise MockDataError(f"{path}: malformed price history: {exc!r}") from exc
        prices.sort(key=lambda price: price.timestamp, reverse=True)
        return symbol, prices

    def list_stocks(self) -> list[Stock]:
        return sorted(self._stocks.values(), key=lambda s: s.symbol)

    def get_stock(self, symbol: str) -> Stock:
        stock = self._stocks.get(symbol.upper())
        if stock is None:
            raise NotFoundError(f"stock {symbol} not found")
        return stock

    def latest_price(self, symbol: str) -> StockPrice:
        history = self._history.get(symbol.upper())
        if not history:
            raise NotFoundError(f"no price for {symbol}")
        return history[0]

    def price_history(self, symbol: str, limit: int = 0) -> list[StockPrice]:
        history = self._history.get(symbol.upper(), [])
        if limit <= 0 or limit > len(history):
            limit = len(history)
        return history[:limit]


class _SqlRepository:
    def __init__(self, engine: Engine):
        self.engine = engine
        self.Session = sessionmaker(
            bind=engine, class_=Session, expire_on_commit=False, future=True
        )


def _team_from_row(row: Optional[TeamRow], team_id: str) -> Team:
    if row is None:
        return Team(id=team_id, name="")
    return Team(id=row.id, name=row.name, country=row.country or "", elo=row.elo or 0.0)


class SqlMatchRepository(_SqlRepository):
    """Match data read from Postgres."""

    def _to_match(self, session: Session, row: MatchRow) -> Match:
        return Match(
            id=row.id,
            league=row.league,
            home_team=_team_from_row(session.get(TeamRow, row.home_team_id), row.home_team_id),
            away_team=_team_from_row(session.get(TeamRow, row.away_team_id), row.away_team_id),
            start_time=_as_utc(row.start_time),
            status=row.status,
            venue=row.venue or "",
        )

    def list_matches(self) -> list[Match]:
        with self.Session() as session:
            rows = session.scalars(
                select(MatchRow).order_by(MatchRow.start_time, MatchRow.id)
            ).all()
            return [self._to_match(session, row) for row in rows]

    def get_match(self, match_id: str) -> Match:
        with self.Session() as session:
            row = session.get(MatchRow, match_id)
            if row is None:
                raise NotFoundError(f"match {match_id} not found")
            return self._to_match(session, row)

    def list_odds(self, match_id: str) -> list[Odds]:
        with self.Session() as session:
            rows = session.scalars(
                select(OddsRow).where(OddsRow.match_id == match_id).order_by(OddsRow.id)
            ).all()
            return [
                Odds(
                    id=row.id,
                    match_id=row.match_id,
                    bookmaker=row.bookmaker,
                    market=row.market,
                    outcome=row.outcome,
                    price=row.price,
                )
                for row in rows
            ]


class SqlStockRepository(_SqlRepository):
    """Stock data read from Postgres."""

    @staticmethod
    def _to_price(row: StockPriceRow) -> StockPrice:
        return StockPrice(
            symbol=row.symbol,
            timestamp=_as_utc(row.timestamp),
            open=row.open,
            high=row.high,
            low=row.low,
            close=row.close,
            volume=row.volume or 0,
        )

    def list_stocks(self) -> list[Stock]:
        with self.Session() as session:
            rows = session.scalars(select(StockRow).order_by(StockRow.symbol)).all()
            return [
                Stock(symbol=r.symbol, name=r.name, market_cap=r.market_cap or 0.0, sector=r.sector or "")
                for r in rows
            ]

    def get_stock(self, symbol: str) -> Stock:
        with self.Session() as session:
            row = session.get(StockRow, symbol.upper())
            if row is None:
                raise NotFoundError(f"stock {symbol} not found")
            return Stock(
                symbol=row.symbol, name=row.name, market_cap=row.market_cap or 0.0, sector=row.sector or ""
            )

    def latest_price(self, symbol: str) -> StockPrice:
        history = self.price_history(symbol, limit=1)
        if not history:
            raise NotFoundError(f"no price for {symbol}")
        return history[0]

    def price_history(self, symbol: str, limit: int = 0) -> list[StockPrice]:
        query = (
            select(StockPriceRow)
            .where(StockPriceRow.symbol == symbol.upper())
            .order_by(StockPriceRow.timestamp.desc())
        )
        if limit > 0:
            query = query.limit(limit)
        with self.Session() as session:
            return [self._to_price(row) for row in session.scalars(query).all()]


class SqlUserRepository(_SqlRepository):
    """User accounts stored in Postgres."""

    @staticmethod
    def _to_user(row: UserRow) -> User:
        return User(
            id=row.id,
            email=row.email,
            name=row.name,
            password_hash=row.password_hash,
            created_at=_as_utc(row.created_at),
        )

    def create_user(self, email: str, name: str, password_hash: str) -> User:
        email = email.strip().lower()
        with self.Session() as session:
            existing = session.scalars(select(UserRow).where(UserRow.email == email)).first()
            if existing is not None:
                raise DuplicateError(f"user {email} already exists")
            row = UserRow(
                id=uuid.uuid4().hex,
                email=email,
                name=name,
                password_hash=password_hash,
                created_at=_utcnow(),
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateError(f"user {email} already exists") from exc
            return self._to_user(row)

    def get_by_email(self, email: str) -> User:
        with self.Session() as session:
            row = session.scalars(
                select(UserRow).where(UserRow.email == email.strip().lower())
            ).first()
            if row is None:
                raise NotFoundError(f"user {email} not found")
            return self._to_user(row)

    def get_by_id(self, user_id: str) -> User:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if row is None:
                raise NotFoundError(f"user {user_id} not found")
            return self._to_user(row)
