from __future__ import annotations

import asyncio
import time
from typing import Any

from redis import asyncio as redis_async
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger("app.auth")


class TokenBlacklist:
    """Revoked JWT ids, in Redis when configured, else process memory."""

    def __init__(self, redis_url: str | None = None, prefix: str = "jwt-bl") -> None:
        self._prefix = prefix
        self._store: dict[str, float] = {}
        self._lock = asyncio.Lock()
        self._redis: Any | None = None
        if redis_url:
            self._redis = redis_async.from_url(redis_url, encoding="utf-8", decode_responses=True)

    def _key(self, jti: str) -> str:
        return f"{self._prefix}:{jti}"

    async def add(self, jti: str, ttl_seconds: int) -> None:
        ttl = max(int(ttl_seconds), 1)
        if self._redis is not None:
            try:
                await self._redis.setex(self._key(jti), ttl, "1")
                return
            except RedisError as exc:
                logger.warning("Token blacklist backend unavailable", extra={"error": str(exc)})
        async with self._lock:
            self._store[jti] = time.monotonic() + ttl

    async def contains(self, jti: str) -> bool:
        if self._redis is not None:
            try:
                return bool(await self._redis.exists(self._key(jti)))
            except RedisError as exc:
                logger.warning("Token blacklist backend unavailable", extra={"error": str(exc)})
        async with self._lock:
            expires_at = self._store.get(jti)
            if expires_at is None:
                return False
            if expires_at < time.monotonic():
                self._store.pop(jti, None)
                return False
            return True

    def reset(self) -> None:
        self._store.clear()


_blacklist: TokenBlacklist | None = None


def get_token_blacklist() -> TokenBlacklist:
    global _blacklist
    if _blacklist is None:
        _blacklist = TokenBlacklist(redis_url=settings.REDIS_URL)
    return _blacklist


def _seconds_left(claims: dict[str, Any]) -> int:
    exp = claims.get("exp")
    if exp is None:
        return settings.REFRESH_TOKEN_EXPIRE_DAYS * 86400
    return int(exp - time.time())


async def revoke_token(claims: dict[str, Any]) -> None:
    """Blacklist a decoded token until it would have expired anyway."""
    jti = claims.get("jti")
    if not jti:
        return
    ttl = _seconds_left(claims) + settings.JWT_BLACKLIST_TTL_LEEWAY_SECONDS
    await get_token_blacklist().add(jti, ttl)


async def is_token_revoked(claims: dict[str, Any]) -> bool:
    jti = claims.get("jti")
    if not jti:
        return False
    return await get_token_blacklist().contains(jti)
