"""
Account and token routes. Only registered when a database is configured.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from backend.auth import AuthService, EmailTakenError, InvalidCredentialsError, InvalidTokenError
from backend.cache import CacheError
from backend.dependencies import get_auth_service, get_current_user
from backend.repositories import User
from backend.schemas import (
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_store_unavailable(exc: CacheError) -> HTTPException:
    logger.error("Token store unavailable: %s", exc)
    return HTTPException(status_code=503, detail="token store unavailable")


@router.post("/register", response_model=UserResponse, status_code=201)
def register(payload: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        user = auth.register(payload.email, payload.password, payload.name)
    except EmailTakenError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return user.as_dict()


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        tokens = auth.login(payload.email, payload.password)
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except CacheError as exc:
        raise _token_store_unavailable(exc) from exc
    return tokens.as_dict()


@router.post("/refresh", response_model=TokenResponse)
def refresh(payload: RefreshRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        tokens = auth.refresh(payload.refresh_token)
    except InvalidTokenError as exc:
        raise HTTPException(status_code=401, detail="invalid refresh token") from exc
    except CacheError as exc:
        raise _token_store_unavailable(exc) from exc
    return tokens.as_dict()


@router.post("/logout", response_model=MessageResponse)
def logout(payload: RefreshRequest, auth: AuthService = Depends(get_auth_service)):
    try:
        auth.logout(payload.refresh_token)
    except CacheError as exc:
        raise _token_store_unavailable(exc) from exc
    return MessageResponse(message="logged out")


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user.as_dict()
