# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Counter Stores (SQLAlchemy).

Purpose:
    Concrete implementations of the `DurableStore` contract on top of
    SQLAlchemy ORM models.

Layer:
    adapters

Notes:
    * Adjustments are issued as a single ``UPDATE t SET col = col ± 1``
      statement, so concurrent adjusters never lose updates and no row lock
      is held across application logic.
    * `SqlAlchemyCounterStore` never commits; the unit of work owns the
      transaction. `SessionScopedCounterStore` opens and commits its own
      short session per call for callers outside a unit of work.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import InstrumentedAttribute

from cached_counter.domain.entities.counter_handle import CounterHandle
from cached_counter.domain.enums.direction import Direction
from cached_counter.domain.exceptions.counter import CounterNotFoundError, UnknownCounterError

__all__ = ["CounterModels", "SessionScopedCounterStore", "SqlAlchemyCounterStore"]

#: Mapping of entity type to the ORM model holding its counter columns.
CounterModels = Mapping[str, type[Any]]


def _resolve(models: CounterModels, handle: CounterHandle) -> tuple[Any, Any]:
    """Return ``(primary key column, counter column)`` for ``handle``.

    Raises:
        UnknownCounterError: If the entity type or attribute is not mapped.
    """
    model = models.get(handle.entity_type)
    if model is None:
        raise UnknownCounterError(
            f"No model registered for entity type {handle.entity_type!r}",
            details={"entity_type": handle.entity_type},
        )

    column = getattr(model, handle.attribute, None)
    if not isinstance(column, InstrumentedAttribute):
        raise UnknownCounterError(
            f"{model.__name__} has no mapped column {handle.attribute!r}",
            details={"entity_type": handle.entity_type, "attribute": handle.attribute},
        )

    pk_columns = model.__mapper__.primary_key
    if len(pk_columns) != 1:
        raise UnknownCounterError(
            f"{model.__name__} must have a single-column primary key",
            details={"entity_type": handle.entity_type},
        )
    return pk_columns[0], column


def _not_found(handle: CounterHandle) -> CounterNotFoundError:
    return CounterNotFoundError(
        f"No {handle.entity_type} row with id {handle.entity_id!r}",
        details=handle.as_identifiers(),
    )


class SqlAlchemyCounterStore:
    """Durable store bound to an existing `AsyncSession`."""

    def __init__(self, session: AsyncSession, *, models: CounterModels) -> None:
        """Initialize the store.

        Args:
            session: Session whose transaction the store participates in.
            models: Entity type to ORM model mapping.
        """
        self._session = session
        self._models = models

    async def read(self, handle: CounterHandle) -> int:
        pk, column = _resolve(self._models, handle)
        result = await self._session.execute(select(column).where(pk == handle.entity_id))
        row = result.one_or_none()
        if row is None:
            raise _not_found(handle)
        return int(row[0] or 0)

    async def adjust(self, handle: CounterHandle, direction: Direction) -> None:
        pk, column = _resolve(self._models, handle)
        stmt = (
            update(column.class_)
            .where(pk == handle.entity_id)
            .values({column.key: column + direction.delta})
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise _not_found(handle)


class SessionScopedCounterStore:
    """Durable store that runs each call in its own committed session."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        models: CounterModels,
    ) -> None:
        self._session_factory = session_factory
        self._models = models

    async def read(self, handle: CounterHandle) -> int:
        async with self._session_factory() as session:
            return await SqlAlchemyCounterStore(session, models=self._models).read(handle)

    async def adjust(self, handle: CounterHandle, direction: Direction) -> None:
        async with self._session_factory() as session, session.begin():
            await SqlAlchemyCounterStore(session, models=self._models).adjust(handle, direction)
