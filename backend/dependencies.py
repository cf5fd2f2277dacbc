"""
Dependency wiring for the FastAPI routes.

Collaborators are chosen once at startup by ``backend.wiring`` and parked
on ``app.state``; routes only ever read them from there.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.auth import AuthService, InvalidTokenError
from backend.repositories import MatchRepository, StockRepository, User

_bearer = HTTPBearer(auto_error=False)


def get_match_repository(request: Request) -> MatchRepository:
    return request.app.state.match_repository


def get_stock_repository(request: Request) -> StockRepository:
    return request.app.state.stock_repository


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    auth: AuthService = Depends(get_auth_service),
) -> User:
    """Resolve the bearer access token to a user, or answer 401."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=401,
            detail="unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return auth.authenticate(credentials.credentials)
    except InvalidTokenError as exc:
        raise HTTPException(
            status_code=401,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
