# tests/unit/infrastructure/caching/test_memory_cache_backend.py
from __future__ import annotations

import pytest

from cached_counter.infrastructure.caching.memory_backend import InMemoryCacheBackend


@pytest.mark.asyncio
async def test_counter_semantics_match_cache_contract() -> None:
    backend = InMemoryCacheBackend()

    assert await backend.incr("k") is None
    assert await backend.add("k", 3) is True
    assert await backend.add("k", 9) is False
    assert await backend.incr("k") == 4
    assert await backend.decr("k") == 3
    assert await backend.get("k") == 3

    await backend.delete("k")
    assert await backend.get("k") is None
    assert backend.is_transient(ConnectionError()) is False


@pytest.mark.asyncio
async def test_seeded_keys_expire() -> None:
    clock = [100.0]
    backend = InMemoryCacheBackend(ttl_seconds=10, clock=lambda: clock[0])

    await backend.add("k", 1)
    assert await backend.incr("k") == 2

    clock[0] += 11
    assert await backend.get("k") is None
    assert await backend.incr("k") is None
    assert await backend.add("k", 5) is True


@pytest.mark.asyncio
async def test_clear_drops_everything() -> None:
    backend = InMemoryCacheBackend()
    await backend.add("a", 1)
    await backend.add("b", 2)

    backend.clear()

    assert await backend.get("a") is None
    assert await backend.get("b") is None
