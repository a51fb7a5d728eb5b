# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Consistency Engine

Purpose:
    Keep a cache-accelerated counter coherent with its durable row across
    cache outages, racing cache initializers, rollbacks of the caller's unit
    of work, and transient failures of the deferred durable write.

Write protocol (increment; decrement mirrors it):
    1. ``cache.incr(key)``; a value means the key existed and was bumped.
    2. Otherwise ``cache.add(key, durable + 1)`` lazily seeds the key.
    3. If ``add`` reports the key exists, another writer raced us:
       raise :class:`ConcurrentCacheWriteError` without touching anything.
    4. On success register a :class:`RollbackCompensator` and schedule a
       :class:`RetryableAdjustment`, inside the caller's transaction when
       the executor can share it, otherwise after commit.
    5. If the cache raised a transient error, adjust the durable row
       synchronously instead.

Read protocol:
    Cache hit wins; a miss or a transient cache error falls back to the
    durable store. Reads never seed the cache.

Layer: application/counter
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from functools import partial
from typing import TypeVar

from cached_counter.application.counter.config import CounterConfig
from cached_counter.application.counter.jobs import RetryableAdjustment, RollbackCompensator
from cached_counter.application.counter.scopes import ImmediateCommitScope
from cached_counter.application.interfaces.cache_backend import CacheBackend
from cached_counter.application.interfaces.transaction_hook import TransactionHook
from cached_counter.domain.entities.counter_handle import CounterHandle
from cached_counter.domain.enums.direction import Direction
from cached_counter.domain.exceptions.counter import ConcurrentCacheWriteError
from cached_counter.domain.interfaces.durable_store import DurableStore
from cached_counter.infrastructure.logging.logger import get_json_logger
from cached_counter.infrastructure.observability.metrics import (
    get_cache_op_duration_seconds,
    get_counter_reads_total,
    get_counter_writes_total,
)

__all__ = ["ConsistencyEngine"]

log = get_json_logger(__name__)

T = TypeVar("T")


async def _timed(operation: str, call: Callable[[], Awaitable[T]]) -> T:
    """Await ``call`` and record its latency under ``operation``."""
    start = time.perf_counter()
    try:
        return await call()
    finally:
        get_cache_op_duration_seconds().labels(operation=operation).observe(
            time.perf_counter() - start
        )


class ConsistencyEngine:
    """Cache-first counter protocol over a durable store.

    Args:
        config: Process-wide counter configuration.
    """

    def __init__(self, config: CounterConfig) -> None:
        self._config = config

    @property
    def config(self) -> CounterConfig:
        return self._config

    def cache_key(self, handle: CounterHandle) -> str:
        """Derive the cache key for ``handle`` with the configured function."""
        return self._config.key_function(handle)

    # ------------------------------------------------------------------
    # Caller-facing operations
    # ------------------------------------------------------------------

    async def increment(
        self,
        handle: CounterHandle,
        *,
        tx: TransactionHook | None = None,
        cache: CacheBackend | None = None,
    ) -> None:
        """Increment ``handle`` by one.

        Args:
            handle: Counter identity.
            tx: Active unit of work; ``None`` behaves as an immediate commit.
            cache: Per-call cache override.

        Raises:
            ConcurrentCacheWriteError: If a racing writer seeded the key first.
        """
        await self._write(handle, Direction.INCREMENT, tx=tx, cache=cache)

    async def decrement(
        self,
        handle: CounterHandle,
        *,
        tx: TransactionHook | None = None,
        cache: CacheBackend | None = None,
    ) -> None:
        """Decrement ``handle`` by one. Mirror image of :meth:`increment`."""
        await self._write(handle, Direction.DECREMENT, tx=tx, cache=cache)

    async def read(
        self,
        handle: CounterHandle,
        *,
        tx: TransactionHook | None = None,
        cache: CacheBackend | None = None,
    ) -> int:
        """Return the current value, preferring the cache.

        Returns:
            The cached value on a hit, otherwise the durable value.
        """
        cache = cache or self._config.cache
        key = self.cache_key(handle)
        try:
            cached = await _timed("get", partial(cache.get, key))
        except Exception as exc:
            if not cache.is_transient(exc):
                raise
            log.warning(
                "cache read failed; answering from durable store",
                exc_info=exc,
                extra={"cache_key": key},
            )
            get_counter_reads_total().labels(source="cache_error").inc()
            return await self.read_durable(handle, tx=tx)

        if cached is not None:
            get_counter_reads_total().labels(source="cache").inc()
            return cached

        get_counter_reads_total().labels(source="durable").inc()
        return await self.read_durable(handle, tx=tx)

    async def read_durable(self, handle: CounterHandle, *, tx: TransactionHook | None = None) -> int:
        """Return the durable value, bypassing the cache."""
        return await self._store_for(tx).read(handle)

    async def invalidate(self, handle: CounterHandle, *, cache: CacheBackend | None = None) -> None:
        """Drop the cached value so the next write re-seeds it from the durable row."""
        cache = cache or self._config.cache
        await _timed("delete", partial(cache.delete, self.cache_key(handle)))

    # ------------------------------------------------------------------
    # Single-tier adjustments (re-invoked by jobs and compensators)
    # ------------------------------------------------------------------

    async def adjust_cache(
        self,
        handle: CounterHandle,
        direction: Direction,
        *,
        cache: CacheBackend | None = None,
    ) -> int | None:
        """Apply ``direction`` to the cached value only.

        Returns:
            The new cached value, or ``None`` if the key is absent.
        """
        cache = cache or self._config.cache
        key = self.cache_key(handle)
        if direction is Direction.INCREMENT:
            return await _timed("incr", partial(cache.incr, key))
        return await _timed("decr", partial(cache.decr, key))

    async def adjust_durable(
        self,
        handle: CounterHandle,
        direction: Direction,
        *,
        tx: TransactionHook | None = None,
    ) -> None:
        """Apply ``direction`` to the durable row only."""
        await self._store_for(tx).adjust(handle, direction)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _store_for(self, tx: TransactionHook | None) -> DurableStore:
        if tx is not None:
            bound = tx.counter_store()
            if bound is not None:
                return bound
        return self._config.store

    async def _write(
        self,
        handle: CounterHandle,
        direction: Direction,
        *,
        tx: TransactionHook | None,
        cache: CacheBackend | None,
    ) -> None:
        scope: TransactionHook = tx if tx is not None else ImmediateCommitScope()
        scope.ensure_active()
        config = self._config.with_cache(cache)
        key = self.cache_key(handle)
        writes = get_counter_writes_total()

        try:
            await self._write_cache(handle, direction, config.cache, key, tx=tx)
        except ConcurrentCacheWriteError:
            writes.labels(path="race", direction=direction.value).inc()
            raise
        except Exception as exc:
            if not config.cache.is_transient(exc):
                raise
            log.warning(
                "cache unavailable; adjusting durable store synchronously",
                exc_info=exc,
                extra={"cache_key": key, "extra": {"direction": direction.value}},
            )
            await self.adjust_durable(handle, direction, tx=tx)
            writes.labels(path="fallback", direction=direction.value).inc()
            return

        writes.labels(path="fast", direction=direction.value).inc()
        await scope.on_rollback(RollbackCompensator(handle, direction.inverse, config))
        job = RetryableAdjustment(handle, direction)
        if not await scope.enlist(config.executor, job, max_attempts=config.max_attempts):
            await scope.after_commit(
                partial(config.executor.enqueue, job, max_attempts=config.max_attempts)
            )

    async def _write_cache(
        self,
        handle: CounterHandle,
        direction: Direction,
        cache: CacheBackend,
        key: str,
        *,
        tx: TransactionHook | None,
    ) -> int:
        """Apply ``direction`` in the cache, seeding the key from the durable row."""
        value = await self.adjust_cache(handle, direction, cache=cache)
        if value is not None:
            return value

        seeded = await self.read_durable(handle, tx=tx) + direction.delta
        if await _timed("add", partial(cache.add, key, seeded)):
            return seeded

        raise ConcurrentCacheWriteError(
            f"Failing not to enter a race condition while writing a value for the key {key}",
            details={"cache_key": key, "direction": direction.value},
        )
