# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Process Bootstrap

Purpose:
    Assemble a :class:`CounterConfig` from :class:`Settings`: the database
    engine, the durable counter store, the cache backend chosen through the
    registry, and a deferred executor. Library code never reads settings
    itself; host applications and the CLI call :func:`build_counter_config`
    once at startup.

Layer: composition root
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cached_counter.adapters.executors.in_process import InProcessExecutor
from cached_counter.adapters.executors.sqlalchemy_queue import SqlAlchemyJobQueue
from cached_counter.adapters.repositories.counter_store import SessionScopedCounterStore
from cached_counter.adapters.uow.sqlalchemy_uow import SqlAlchemyUnitOfWork
from cached_counter.application.counter.config import CounterConfig, template_key_function
from cached_counter.application.interfaces.cache_backend import CacheBackend
from cached_counter.application.interfaces.deferred_executor import DeferredExecutor
from cached_counter.config.settings import Settings
from cached_counter.infrastructure.caching.registry import build_cache_backend
from cached_counter.infrastructure.database.session import init_engine_and_sessionmaker

__all__ = ["build_counter_config", "build_job_queue", "build_unit_of_work"]


def _require_models(settings: Settings, models: Mapping[str, type[Any]] | None) -> Mapping[str, type[Any]]:
    resolved = models if models is not None else settings.counter_models
    if not resolved:
        raise RuntimeError(
            "No counter models configured; pass models= or set CACHED_COUNTER_MODELS"
        )
    return resolved


def build_job_queue(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    worker_name: str | None = None,
) -> SqlAlchemyJobQueue:
    """Create the database job queue with settings-driven backoff and lock expiry."""
    return SqlAlchemyJobQueue(
        session_factory,
        retry_base_s=settings.retry_base_s,
        retry_cap_s=settings.retry_cap_s,
        worker_name=worker_name,
        max_run_time_s=settings.worker_max_run_time_s,
    )


def build_counter_config(
    settings: Settings,
    *,
    models: Mapping[str, type[Any]] | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    cache: CacheBackend | None = None,
    executor: DeferredExecutor | None = None,
) -> CounterConfig:
    """Build the process-wide counter configuration.

    Args:
        settings: Validated settings.
        models: Entity type to ORM model mapping; defaults to ``settings.counter_models``.
        session_factory: Session factory; defaults to the global one from settings.
        cache: Cache backend; defaults to the registry entry for ``settings.cache_backend``.
        executor: Deferred executor; defaults to a :class:`SqlAlchemyJobQueue`.
            An :class:`InProcessExecutor` is bound to the returned config.

    Returns:
        CounterConfig: Ready-to-use configuration.

    Raises:
        RuntimeError: If no counter models are configured.
    """
    counter_models = _require_models(settings, models)
    session_factory = session_factory or init_engine_and_sessionmaker(settings)

    config = CounterConfig(
        cache=cache or build_cache_backend(settings),
        store=SessionScopedCounterStore(session_factory, models=counter_models),
        executor=executor or build_job_queue(settings, session_factory),
        key_function=template_key_function(settings.key_template),
        max_attempts=settings.max_attempts,
    )
    if isinstance(config.executor, InProcessExecutor):
        config.executor.bind(config)
    return config


def build_unit_of_work(
    settings: Settings,
    *,
    models: Mapping[str, type[Any]] | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> SqlAlchemyUnitOfWork:
    """Create a unit of work whose counter store sees the configured models."""
    return SqlAlchemyUnitOfWork(
        session_factory=session_factory or init_engine_and_sessionmaker(settings),
        models=_require_models(settings, models),
    )
