# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Redis Cache Backend

Purpose:
    Counter cache on Redis. ``incr``/``decr`` only touch keys that already
    exist (a Lua script makes the existence check and the ``INCRBY`` one
    atomic step), and ``add`` is ``SET NX`` so exactly one racing writer can
    seed a missing key.

Layer: infrastructure/caching
"""

from __future__ import annotations

from typing import Any

import redis.exceptions

from cached_counter.config.settings import Settings
from cached_counter.infrastructure.caching.redis_client import AioredisRedis, init_redis

__all__ = ["RedisCacheBackend"]

# Returns nil when the key is missing instead of creating it at 0.
_INCRBY_IF_EXISTS = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    return redis.call('INCRBY', KEYS[1], ARGV[1])
end
return nil
"""

_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    redis.exceptions.ConnectionError,
    redis.exceptions.TimeoutError,
    OSError,
)


class RedisCacheBackend:
    """CacheBackend backed by an asyncio Redis client.

    Args:
        client: Redis client created with ``decode_responses=True``.
        ttl_seconds: Expiry applied when ``add`` seeds a key; ``None`` disables it.
    """

    def __init__(self, client: AioredisRedis, *, ttl_seconds: int | None = None) -> None:
        self._client = client
        self._ttl_seconds = ttl_seconds
        self._incrby: Any = client.register_script(_INCRBY_IF_EXISTS)

    @classmethod
    def from_settings(cls, settings: Settings) -> RedisCacheBackend:
        """Registry factory: global client initialized from ``settings`` plus configured TTL."""
        return cls(init_redis(settings), ttl_seconds=settings.cache_ttl_seconds)

    async def incr(self, key: str) -> int | None:
        return await self._incr_by(key, 1)

    async def decr(self, key: str) -> int | None:
        return await self._incr_by(key, -1)

    async def add(self, key: str, value: int) -> bool:
        created = await self._client.set(key, value, ex=self._ttl_seconds, nx=True)
        return bool(created)

    async def get(self, key: str) -> int | None:
        raw = await self._client.get(key)
        if raw is None:
            return None
        return int(raw)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    def is_transient(self, exc: BaseException) -> bool:
        return isinstance(exc, _TRANSIENT_ERRORS)

    async def _incr_by(self, key: str, amount: int) -> int | None:
        result = await self._incrby(keys=[key], args=[amount])
        if result is None:
            return None
        return int(result)
