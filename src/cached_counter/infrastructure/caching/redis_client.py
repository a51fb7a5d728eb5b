# src/cached_counter/infrastructure/caching/redis_client.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Async Redis client factory for the Redis cache backend."""

from __future__ import annotations

from contextlib import suppress
from typing import TYPE_CHECKING, Any, cast

import redis.asyncio as aioredis

if TYPE_CHECKING:
    from typing import TypeAlias

    from redis.asyncio.client import Redis as _RedisGeneric

    AioredisRedis: TypeAlias = _RedisGeneric[str]
else:
    from redis.asyncio.client import Redis as AioredisRedis  # type: ignore[assignment]

from cached_counter.config.settings import Settings, get_settings
from cached_counter.infrastructure.logging.logger import get_json_logger

__all__ = [
    "AioredisRedis",
    "close_redis",
    "create_redis_client",
    "get_redis_client",
    "init_redis",
]

log = get_json_logger(__name__)

_client: AioredisRedis | None = None


def create_redis_client(settings: Settings) -> AioredisRedis:
    """Build a concrete asyncio Redis client from settings."""
    _from_url: Any = aioredis.from_url
    client = _from_url(
        url=settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        health_check_interval=settings.redis_health_check_interval_s,
        socket_timeout=settings.redis_socket_timeout_s,
        socket_connect_timeout=settings.redis_socket_connect_timeout_s,
    )
    return cast(AioredisRedis, client)


def init_redis(settings: Settings) -> AioredisRedis:
    """Initialize the global async Redis client (idempotent)."""
    global _client
    if _client is None:
        _client = create_redis_client(settings)
        log.info("redis client initialized")
    return _client


async def close_redis() -> None:
    """Close the global Redis client at shutdown."""
    global _client
    if _client is not None:
        with suppress(RuntimeError):
            await _client.aclose()
        _client = None


def get_redis_client() -> AioredisRedis:
    """Return the initialized Redis client (lazy-inits from settings)."""
    if _client is None:
        return init_redis(get_settings())
    return _client
