"""Durable idempotency keys for event delivery.

An event carrying an ``idempotency_key`` is handled only by the first caller
that claims the key. Keys expire after a TTL so the keyspace stays bounded.
"""

from __future__ import annotations

import time
from typing import Protocol

import redis.asyncio as redis

from intake.core.redis import redis_key

DEFAULT_TTL_SECONDS = 7 * 24 * 3600


class IdempotencyStore(Protocol):
    async def claim(self, key: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
        """Return True if ``key`` was unclaimed and is now claimed."""
        ...


class RedisIdempotencyStore:
    """Claims keys with ``SET NX EX`` so they survive restarts."""

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    async def claim(self, key: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
        result = await self._redis.set(redis_key("idempotency", key), "1", nx=True, ex=ttl_seconds)
        return bool(result)


class InMemoryIdempotencyStore:
    """Process-local store for tests and single-process runs."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._expiry: dict[str, float] = {}

    async def claim(self, key: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> bool:
        now = self._clock()
        expires_at = self._expiry.get(key)
        if expires_at is not None and expires_at > now:
            return False
        self._expiry[key] = now + ttl_seconds
        return True


__all__ = [
    "DEFAULT_TTL_SECONDS",
    "IdempotencyStore",
    "InMemoryIdempotencyStore",
    "RedisIdempotencyStore",
]
