# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Cached Counter

Purpose:
    Caller-facing handle on a single counter column. Binds a
    :class:`CounterHandle` to a :class:`ConsistencyEngine` so application code
    can write ``await counter.increment(tx=uow)`` and ``await counter.value()``.

Example:
    counter = CachedCounter.create("articles", article.id, "num_read", config=config)
    async with SqlAlchemyUnitOfWork(session_factory=factory, models=models) as uow:
        await counter.increment(tx=uow)
        await uow.commit()

Layer: application/counter
"""

from __future__ import annotations

from cached_counter.application.counter.config import CounterConfig
from cached_counter.application.counter.engine import ConsistencyEngine
from cached_counter.application.interfaces.cache_backend import CacheBackend
from cached_counter.application.interfaces.transaction_hook import TransactionHook
from cached_counter.domain.entities.counter_handle import CounterHandle, EntityId
from cached_counter.domain.enums.direction import Direction

__all__ = ["CachedCounter"]


class CachedCounter:
    """A counter whose reads and writes go through the cache first.

    Args:
        handle: Counter identity.
        config: Process-wide counter configuration.
        cache: Optional cache backend overriding ``config.cache`` for this
            counter (the override also reaches its rollback compensators).
    """

    def __init__(
        self,
        handle: CounterHandle,
        *,
        config: CounterConfig,
        cache: CacheBackend | None = None,
    ) -> None:
        self._handle = handle
        self._engine = ConsistencyEngine(config.with_cache(cache))

    @classmethod
    def create(
        cls,
        entity_type: str,
        entity_id: EntityId,
        attribute: str,
        *,
        config: CounterConfig,
        cache: CacheBackend | None = None,
    ) -> CachedCounter:
        """Build a counter for ``attribute`` of the ``entity_type`` row ``entity_id``."""
        return cls(CounterHandle(entity_type, entity_id, attribute), config=config, cache=cache)

    @property
    def handle(self) -> CounterHandle:
        return self._handle

    @property
    def cache_key(self) -> str:
        return self._engine.cache_key(self._handle)

    def __repr__(self) -> str:
        return f"CachedCounter({self._handle!r})"

    async def increment(self, *, tx: TransactionHook | None = None) -> None:
        """Increment by one; the durable row follows after ``tx`` commits."""
        await self._engine.increment(self._handle, tx=tx)

    async def decrement(self, *, tx: TransactionHook | None = None) -> None:
        """Decrement by one; the durable row follows after ``tx`` commits."""
        await self._engine.decrement(self._handle, tx=tx)

    async def value(self, *, tx: TransactionHook | None = None) -> int:
        """Return the cached value, or the durable value on a miss or cache outage."""
        return await self._engine.read(self._handle, tx=tx)

    async def value_in_db(self, *, tx: TransactionHook | None = None) -> int:
        return await self._engine.read_durable(self._handle, tx=tx)

    async def invalidate_cache(self) -> None:
        await self._engine.invalidate(self._handle)

    async def increment_in_cache(self) -> int | None:
        return await self._engine.adjust_cache(self._handle, Direction.INCREMENT)

    async def decrement_in_cache(self) -> int | None:
        return await self._engine.adjust_cache(self._handle, Direction.DECREMENT)

    async def increment_in_db(self, *, tx: TransactionHook | None = None) -> None:
        await self._engine.adjust_durable(self._handle, Direction.INCREMENT, tx=tx)

    async def decrement_in_db(self, *, tx: TransactionHook | None = None) -> None:
        await self._engine.adjust_durable(self._handle, Direction.DECREMENT, tx=tx)
