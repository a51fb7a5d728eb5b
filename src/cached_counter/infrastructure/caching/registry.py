# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Cache Backend Registry

Purpose:
    Map backend names (as used by ``Settings.cache_backend``) to factories,
    so deployments pick a cache by configuration and host applications can
    plug in their own backends.

Usage:
    register_cache_backend("memcached", MyMemcachedBackend.from_settings)
    cache = build_cache_backend(settings)

Layer: infrastructure/caching
"""

from __future__ import annotations

from collections.abc import Callable

from cached_counter.application.interfaces.cache_backend import CacheBackend
from cached_counter.config.settings import Settings
from cached_counter.domain.exceptions.counter import CacheBackendNotRegisteredError
from cached_counter.infrastructure.caching.memory_backend import InMemoryCacheBackend
from cached_counter.infrastructure.caching.redis_backend import RedisCacheBackend

__all__ = [
    "CacheBackendFactory",
    "build_cache_backend",
    "register_cache_backend",
    "registered_cache_backends",
    "resolve_cache_backend",
]

CacheBackendFactory = Callable[[Settings], CacheBackend]

_FACTORIES: dict[str, CacheBackendFactory] = {
    "redis": RedisCacheBackend.from_settings,
    "memory": InMemoryCacheBackend.from_settings,
}


def register_cache_backend(name: str, factory: CacheBackendFactory) -> None:
    """Register (or replace) the factory for ``name``."""
    if not name:
        raise ValueError("cache backend name must be non-empty")
    _FACTORIES[name] = factory


def registered_cache_backends() -> list[str]:
    return sorted(_FACTORIES)


def resolve_cache_backend(name: str) -> CacheBackendFactory:
    """Return the factory registered under ``name``.

    Raises:
        CacheBackendNotRegisteredError: If nothing is registered under ``name``.
    """
    try:
        return _FACTORIES[name]
    except KeyError:
        raise CacheBackendNotRegisteredError(
            f"No cache backend registered under {name!r}",
            details={"name": name, "registered": registered_cache_backends()},
        ) from None


def build_cache_backend(settings: Settings, name: str | None = None) -> CacheBackend:
    """Instantiate the backend selected by ``name`` or ``settings.cache_backend``."""
    return resolve_cache_backend(name or settings.cache_backend)(settings)
