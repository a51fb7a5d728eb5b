# tests/unit/infrastructure/caching/test_redis_client.py
from __future__ import annotations

import pytest

from cached_counter.config.settings import Settings
from cached_counter.infrastructure.caching import redis_client as redis_client_module


def _settings(**overrides) -> Settings:
    return Settings(database_url="sqlite+aiosqlite:///unused.db", **overrides)


def test_client_is_built_from_settings() -> None:
    client = redis_client_module.create_redis_client(
        _settings(redis_url="redis://cache:6380/2", redis_socket_timeout_s=1.5)
    )

    kwargs = client.connection_pool.connection_kwargs
    assert kwargs["host"] == "cache"
    assert kwargs["port"] == 6380
    assert kwargs["db"] == 2
    assert kwargs["socket_timeout"] == 1.5
    assert kwargs["decode_responses"] is True


@pytest.mark.asyncio
async def test_init_is_idempotent_and_close_resets(monkeypatch) -> None:
    monkeypatch.setattr(redis_client_module, "_client", None)
    settings = _settings()

    first = redis_client_module.init_redis(settings)
    assert redis_client_module.init_redis(settings) is first
    assert redis_client_module.get_redis_client() is first

    await redis_client_module.close_redis()
    assert redis_client_module._client is None
