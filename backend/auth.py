"""
Account registration and token issuance.

Access tokens are short-lived HS256 JWTs. Refresh tokens are opaque ids
kept in the token store; a token is valid exactly as long as its entry
exists there.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from backend.cache import TokenNotFoundError, TokenStore
from backend.repositories import DuplicateError, NotFoundError, User, UserRepository

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TTL = timedelta(minutes=15)
REFRESH_TOKEN_TTL = timedelta(days=7)
ISSUER = "SuperDashboard"


class AuthError(Exception):
    """Base class for authentication failures."""


class EmailTakenError(AuthError):
    pass


class InvalidCredentialsError(AuthError):
    pass


class InvalidTokenError(AuthError):
    pass


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"

    def as_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
            "token_type": self.token_type,
        }


BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes; newer releases reject longer input.
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        return False


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        tokens: TokenStore,
        jwt_secret: str,
        *,
        access_ttl: timedelta = ACCESS_TOKEN_TTL,
        refresh_ttl: timedelta = REFRESH_TOKEN_TTL,
    ):
        if not jwt_secret:
            logger.warning(
                "JWT_SECRET is not set; using a random secret, issued tokens will not survive a restart"
            )
            jwt_secret = secrets.token_urlsafe(32)
        self.users = users
        self.tokens = tokens
        self._secret = jwt_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def register(self, email: str, password: str, name: str) -> User:
        try:
            user = self.users.create_user(email, name, hash_password(password))
        except DuplicateError as exc:
            raise EmailTakenError("email is already registered") from exc
        logger.info("Registered user %s", user.id)
        return user

    def login(self, email: str, password: str) -> TokenPair:
        try:
            user = self.users.get_by_email(email)
        except NotFoundError as exc:
            raise InvalidCredentialsError("invalid email or password") from exc
        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("invalid email or password")
        return self._issue(user.id)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair; the old token is revoked."""
        try:
            user_id = self.tokens.take_token(refresh_token)
        except TokenNotFoundError as exc:
            raise InvalidTokenError("invalid refresh token") from exc
        return self._issue(user_id)

    def logout(self, refresh_token: str) -> None:
        self.tokens.delete_token(refresh_token)

    def authenticate(self, access_token: str) -> User:
        try:
            claims = jwt.decode(
                access_token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                issuer=ISSUER,
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as exc:
            raise InvalidTokenError("invalid access token") from exc
        if claims.get("type") != "access":
            raise InvalidTokenError("invalid access token")
        try:
            return self.users.get_by_id(claims["sub"])
        except NotFoundError as exc:
            raise InvalidTokenError("unknown user") from exc

    def _issue(self, user_id: str) -> TokenPair:
        now = datetime.now(timezone.utc)
        access_token = jwt.encode(
            {
                "sub": user_id,
                "type": "access",
                "iss": ISSUER,
                "iat": now,
                "exp": now + self.access_ttl,
            },
            self._secret,
            algorithm=JWT_ALGORITHM,
        )
        refresh_token = secrets.token_urlsafe(32)
        self.tokens.set_token(user_id, refresh_token, self.refresh_ttl)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(self.access_ttl.total_seconds()),
        )
