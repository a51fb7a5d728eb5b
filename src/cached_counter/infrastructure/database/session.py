# Copyright (c)
# SPDX-License-Identifier: MIT
"""Async SQLAlchemy engine/session factory.

This module owns the process-global async SQLAlchemy engine and
`async_sessionmaker` used by counter stores, units of work and the job queue.

Lifecycle:
    * Call `init_engine_and_sessionmaker(settings)` at process start.
    * Use `get_sessionmaker()` to obtain the session factory.
    * Call `dispose_engine()` during shutdown.

Notes:
    * No business logic here; stores and queues consume the sessions.
    * `pool_pre_ping=True` surfaces dead connections before use.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from cached_counter.config.settings import Settings

__all__ = [
    "dispose_engine",
    "get_engine",
    "get_sessionmaker",
    "init_engine_and_sessionmaker",
]

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def init_engine_and_sessionmaker(settings: Settings) -> async_sessionmaker[AsyncSession]:
    """Initialize the global async engine and sessionmaker (idempotent).

    Args:
        settings: Settings providing `database_url`.

    Returns:
        async_sessionmaker[AsyncSession]: The global session factory.

    Raises:
        ValueError: If `database_url` is empty.
    """
    global _engine, _sessionmaker

    if not settings.database_url:
        raise ValueError("database_url must be configured")
    if _engine is not None and _sessionmaker is not None:
        return _sessionmaker

    _engine = create_async_engine(
        url=settings.database_url,
        pool_pre_ping=True,
        echo=False,
    )
    _sessionmaker = async_sessionmaker(bind=_engine, expire_on_commit=False, class_=AsyncSession)
    return _sessionmaker


async def dispose_engine() -> None:
    """Dispose the global engine at shutdown."""
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None


def get_engine() -> AsyncEngine:
    """Return the initialized async engine.

    Raises:
        RuntimeError: If the engine is not yet initialized.
    """
    if _engine is None:
        raise RuntimeError("DB engine not initialized (call init_engine_and_sessionmaker)")
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the initialized async sessionmaker.

    Raises:
        RuntimeError: If the sessionmaker is not yet initialized.
    """
    if _sessionmaker is None:
        raise RuntimeError("DB sessionmaker not initialized (call init_engine_and_sessionmaker)")
    return _sessionmaker
