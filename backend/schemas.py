"""
Pydantic schemas for the FastAPI backend.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class DependencyStatus(BaseModel):
    status: str
    message: str = ""


class HealthResponse(BaseModel):
    status: str
    details: Optional[dict[str, DependencyStatus]] = None


class IndexResponse(BaseModel):
    message: str
    version: str


class PingResponse(BaseModel):
    message: str
    timestamp: str


class MetricsResponse(BaseModel):
    uptime: str
    uptime_seconds: float
    requests_total: int
    errors_total: int
    threads: int


class TeamSchema(BaseModel):
    id: str
    name: str
    country: str = ""
    elo: float = 0.0


class MatchSchema(BaseModel):
    id: str
    league: str
    home_team_id: str
    home_team: TeamSchema
    away_team_id: str
    away_team: TeamSchema
    start_time: Optional[str] = None
    status: str
    venue: str = ""


class OddsSchema(BaseModel):
    id: str
    match_id: str
    bookmaker: str
    market: str
    outcome: str
    price: float


class StockSchema(BaseModel):
    symbol: str
    name: str
    market_cap: float = 0.0
    sector: str = ""


class StockPriceSchema(BaseModel):
    symbol: str
    timestamp: Optional[str] = None
    open: float
    high: float
    low: float
    close: float
    volume: int = 0


class StockQuoteResponse(BaseModel):
    symbol: str
    name: str
    price: float = 0.0
    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    volume: int = 0
    market_cap: float = 0.0
    sector: str = ""


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    # bcrypt only looks at the first 72 bytes.
    password: str = Field(..., min_length=8, max_length=72)
    name: str = Field(..., min_length=1, max_length=200)


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    created_at: Optional[str] = None


class MessageResponse(BaseModel):
    message: str
