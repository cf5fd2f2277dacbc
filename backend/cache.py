"""
Refresh-token storage: `refresh_token:<id>` keys mapping to a user id with a TTL.

RedisTokenStore is used when REDIS_URL answers at startup; InMemoryTokenStore
keeps the same contract inside one process.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)

REFRESH_TOKEN_PREFIX = "refresh_token:"


class CacheError(Exception):
    """Raised when the token store cannot complete a command."""


class CacheConnectionError(CacheError):
    """Raised when the token store cannot be reached at construction."""


class TokenNotFoundError(CacheError):
    """Raised when a token is absent, expired or revoked."""

    def __init__(self, token_id: str):
        super().__init__(f"refresh token not found: {token_id}")
        self.token_id = token_id


def token_key(token_id: str) -> str:
    return f"{REFRESH_TOKEN_PREFIX}{token_id}"


def _ttl_seconds(ttl: timedelta | float) -> float:
    seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
    if seconds <= 0:
        raise ValueError("token ttl must be positive")
    return seconds


class TokenStore(Protocol):
    """Operations the auth service needs from the refresh-token store."""

    def set_token(self, user_id: str, token_id: str, ttl: timedelta | float) -> None:
        ...

    def get_token(self, token_id: str) -> str:
        ...

    def take_token(self, token_id: str) -> str:
        """Return the user id and remove the token in one step."""
        ...

    def delete_token(self, token_id: str) -> None:
        ...

    def ping(self) -> None:
        ...

    def close(self) -> None:
        ...


@dataclass
class InMemoryTokenStore:
    """Token store held in a dict of key -> (user id, expiry on ``clock``)."""

    clock: Callable[[], float] = time.monotonic
    entries: dict[str, tuple[str, float]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def set_token(self, user_id: str, token_id: str, ttl: timedelta | float) -> None:
        expires_at = self.clock() + _ttl_seconds(ttl)
        with self._lock:
            self.entries[token_key(token_id)] = (user_id, expires_at)

    def get_token(self, token_id: str) -> str:
        key = token_key(token_id)
        with self._lock:
            entry = self.entries.get(key)
            if entry is not None and self.clock() >= entry[1]:
                del self.entries[key]
                entry = None
        if entry is None:
            raise TokenNotFoundError(token_id)
        return entry[0]

    def take_token(self, token_id: str) -> str:
        with self._lock:
            entry = self.entries.pop(token_key(token_id), None)
        if entry is None or self.clock() >= entry[1]:
            raise TokenNotFoundError(token_id)
        return entry[0]

    def delete_token(self, token_id: str) -> None:
        with self._lock:
            self.entries.pop(token_key(token_id), None)

    def ping(self) -> None:
        return None

    def close(self) -> None:
        with self._lock:
            self.entries.clear()


class RedisTokenStore:
    """Redis-backed token store storing ``refresh_token:<id>`` -> user id."""

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def connect(
        cls,
        url: str,
        *,
        connect_timeout: float = 5.0,
        op_timeout: float = 3.0,
    ) -> "RedisTokenStore":
        """
        Open a client for ``url`` and ping it within ``connect_timeout`` seconds.

        Every later command is bounded by ``op_timeout`` seconds.
        """
        if not url:
            raise CacheConnectionError("redis URL cannot be empty")
        try:
            client = redis.Redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=connect_timeout,
                socket_timeout=op_timeout,
            )
        except ValueError as exc:
            raise CacheConnectionError(f"invalid redis URL: {exc}") from exc

        store = cls(client)
        try:
            client.ping()
        except redis_exceptions.RedisError as exc:
            client.close()
            raise CacheConnectionError(f"failed to connect to redis: {exc}") from exc

        logger.info("Connected to Redis")
        return store

    def set_token(self, user_id: str, token_id: str, ttl: timedelta | float) -> None:
        seconds = _ttl_seconds(ttl)
        try:
            # Redis EXPIRE granularity is milliseconds.
            self.client.set(token_key(token_id), user_id, px=max(1, int(seconds * 1000)))
        except redis_exceptions.RedisError as exc:
            raise CacheError(f"failed to store refresh token: {exc}") from exc

    def get_token(self, token_id: str) -> str:
        try:
            user_id = self.client.get(token_key(token_id))
        except redis_exceptions.RedisError as exc:
            raise CacheError(f"failed to read refresh token: {exc}") from exc
        if user_id is None:
            raise TokenNotFoundError(token_id)
        if isinstance(user_id, bytes):
            user_id = user_id.decode("utf-8")
        return user_id

    def take_token(self, token_id: str) -> str:
        try:
            # GETDEL needs Redis 6.2+.
            user_id = self.client.getdel(token_key(token_id))
        except redis_exceptions.RedisError as exc:
            raise CacheError(f"failed to take refresh token: {exc}") from exc
        if user_id is None:
            raise TokenNotFoundError(token_id)
        if isinstance(user_id, bytes):
            user_id = user_id.decode("utf-8")
        return user_id

    def delete_token(self, token_id: str) -> None:
        try:
            self.client.delete(token_key(token_id))
        except redis_exceptions.RedisError as exc:
            raise CacheError(f"failed to delete refresh token: {exc}") from exc

    def ping(self) -> None:
        try:
            self.client.ping()
        except redis_exceptions.RedisError as exc:
            raise CacheError(f"redis ping failed: {exc}") from exc

    def close(self) -> None:
        self.client.close()
