# tests/unit/infrastructure/caching/test_redis_cache_backend.py
from __future__ import annotations

import fakeredis.aioredis
import pytest
import redis.exceptions

from cached_counter.config.settings import Settings
from cached_counter.infrastructure.caching import redis_client as redis_client_module
from cached_counter.infrastructure.caching.redis_backend import RedisCacheBackend


@pytest.mark.asyncio
async def test_incr_and_decr_only_touch_existing_keys(fake_redis) -> None:
    backend = RedisCacheBackend(fake_redis)

    assert await backend.incr("k") is None
    assert await backend.decr("k") is None
    assert await fake_redis.exists("k") == 0

    await fake_redis.set("k", 5)
    assert await backend.incr("k") == 6
    assert await backend.decr("k") == 5
    assert await backend.decr("k") == 4


@pytest.mark.asyncio
async def test_add_only_succeeds_for_missing_keys(fake_redis) -> None:
    backend = RedisCacheBackend(fake_redis)

    assert await backend.add("k", 2) is True
    assert await backend.add("k", 7) is False
    assert await backend.get("k") == 2
    assert await fake_redis.ttl("k") == -1


@pytest.mark.asyncio
async def test_add_applies_ttl_when_configured(fake_redis) -> None:
    backend = RedisCacheBackend(fake_redis, ttl_seconds=120)

    await backend.add("k", 1)

    ttl = await fake_redis.ttl("k")
    assert 0 < ttl <= 120


@pytest.mark.asyncio
async def test_get_and_delete(fake_redis) -> None:
    backend = RedisCacheBackend(fake_redis)

    assert await backend.get("missing") is None
    await fake_redis.set("k", "-3")
    assert await backend.get("k") == -3

    await backend.delete("k")
    await backend.delete("k")
    assert await backend.get("k") is None


@pytest.mark.parametrize(
    ("exc", "transient"),
    [
        (redis.exceptions.ConnectionError("refused"), True),
        (redis.exceptions.TimeoutError("slow"), True),
        (ConnectionResetError("reset"), True),
        (TimeoutError("slow"), True),
        (redis.exceptions.ResponseError("WRONGTYPE"), False),
        (ValueError("bad"), False),
    ],
)
def test_transient_classification(exc, transient) -> None:
    backend = RedisCacheBackend(fakeredis.aioredis.FakeRedis(decode_responses=True))
    assert backend.is_transient(exc) is transient


@pytest.mark.asyncio
async def test_from_settings_uses_global_client_and_ttl(fake_redis, monkeypatch) -> None:
    monkeypatch.setattr(redis_client_module, "_client", fake_redis)
    settings = Settings(database_url="sqlite+aiosqlite:///unused.db", cache_ttl_seconds=30)

    backend = RedisCacheBackend.from_settings(settings)
    await backend.add("k", 1)

    assert 0 < await fake_redis.ttl("k") <= 30


@pytest.mark.asyncio
async def test_from_settings_builds_client_from_the_given_settings(monkeypatch) -> None:
    monkeypatch.setattr(redis_client_module, "_client", None)
    settings = Settings(
        database_url="sqlite+aiosqlite:///unused.db", redis_url="redis://cache-b:6390/3"
    )

    backend = RedisCacheBackend.from_settings(settings)

    assert backend._client is redis_client_module._client
    kwargs = backend._client.connection_pool.connection_kwargs
    assert (kwargs["host"], kwargs["port"], kwargs["db"]) == ("cache-b", 6390, 3)
    await redis_client_module.close_redis()
