# tests/unit/infrastructure/caching/test_cache_registry.py
from __future__ import annotations

import fakeredis.aioredis
import pytest

from cached_counter.config.settings import Settings
from cached_counter.domain.exceptions.counter import CacheBackendNotRegisteredError
from cached_counter.infrastructure.caching import registry
from cached_counter.infrastructure.caching import redis_client as redis_client_module
from cached_counter.infrastructure.caching.memory_backend import InMemoryCacheBackend
from cached_counter.infrastructure.caching.redis_backend import RedisCacheBackend


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite+aiosqlite:///unused.db", cache_backend="memory")


@pytest.fixture(autouse=True)
def _restore_registry(monkeypatch) -> None:
    monkeypatch.setattr(registry, "_FACTORIES", dict(registry._FACTORIES))


def test_builtin_backends_are_registered() -> None:
    assert registry.registered_cache_backends() == ["memory", "redis"]


def test_build_uses_settings_backend_name(settings) -> None:
    assert isinstance(registry.build_cache_backend(settings), InMemoryCacheBackend)


def test_build_redis_backend_from_global_client(settings, monkeypatch) -> None:
    monkeypatch.setattr(
        redis_client_module, "_client", fakeredis.aioredis.FakeRedis(decode_responses=True)
    )

    assert isinstance(registry.build_cache_backend(settings, "redis"), RedisCacheBackend)


def test_custom_backends_can_be_registered(settings) -> None:
    built: list[Settings] = []

    def _factory(s: Settings) -> InMemoryCacheBackend:
        built.append(s)
        return InMemoryCacheBackend(ttl_seconds=5)

    registry.register_cache_backend("memcached", _factory)

    assert isinstance(registry.build_cache_backend(settings, "memcached"), InMemoryCacheBackend)
    assert built == [settings]
    assert "memcached" in registry.registered_cache_backends()


def test_unknown_backend_raises(settings) -> None:
    with pytest.raises(CacheBackendNotRegisteredError) as excinfo:
        registry.resolve_cache_backend("dalli")

    assert excinfo.value.code == "CACHE_BACKEND_NOT_REGISTERED"
    assert excinfo.value.details["name"] == "dalli"


def test_empty_name_is_rejected() -> None:
    with pytest.raises(ValueError):
        registry.register_cache_backend("", lambda s: InMemoryCacheBackend())
