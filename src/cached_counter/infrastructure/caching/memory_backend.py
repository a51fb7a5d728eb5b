# Copyright (c)
# SPDX-License-Identifier: MIT
"""
In-Memory Cache Backend

Purpose:
    Process-local counter cache for development, tests and single-process
    deployments. Every operation completes without awaiting, so each one is
    atomic with respect to other coroutines on the same event loop.

Layer: infrastructure/caching
"""

from __future__ import annotations

import time
from collections.abc import Callable

from cached_counter.config.settings import Settings

__all__ = ["InMemoryCacheBackend"]


class InMemoryCacheBackend:
    """Dict-backed CacheBackend with lazy TTL expiry.

    Args:
        ttl_seconds: Expiry applied when ``add`` seeds a key; ``None`` disables it.
        clock: Monotonic time source.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        # key -> (value, expiry timestamp or None)
        self._data: dict[str, tuple[int, float | None]] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> InMemoryCacheBackend:
        return cls(ttl_seconds=settings.cache_ttl_seconds)

    def _live(self, key: str) -> tuple[int, float | None] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        expiry = entry[1]
        if expiry is not None and self._clock() > expiry:
            del self._data[key]
            return None
        return entry

    def _bump(self, key: str, amount: int) -> int | None:
        entry = self._live(key)
        if entry is None:
            return None
        value = entry[0] + amount
        self._data[key] = (value, entry[1])
        return value

    async def incr(self, key: str) -> int | None:
        return self._bump(key, 1)

    async def decr(self, key: str) -> int | None:
        return self._bump(key, -1)

    async def add(self, key: str, value: int) -> bool:
        if self._live(key) is not None:
            return False
        expiry = self._clock() + self._ttl_seconds if self._ttl_seconds else None
        self._data[key] = (value, expiry)
        return True

    async def get(self, key: str) -> int | None:
        entry = self._live(key)
        return None if entry is None else entry[0]

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def is_transient(self, exc: BaseException) -> bool:
        return False

    def clear(self) -> None:
        """Drop every key."""
        self._data.clear()
