# Copyright (c)
# SPDX-License-Identifier: MIT
"""
cached_counter

Cache-accelerated counters that stay consistent with their database rows.

Exports:
    - CachedCounter / CounterHandle / Direction
    - CounterConfig and key functions
    - SqlAlchemyUnitOfWork (transaction hooks)
    - build_counter_config / build_unit_of_work (composition from Settings)
    - Error types
"""

from __future__ import annotations

from cached_counter.adapters.uow.sqlalchemy_uow import SqlAlchemyUnitOfWork
from cached_counter.application.counter.cached_counter import CachedCounter
from cached_counter.application.counter.config import (
    CounterConfig,
    default_cache_key,
    template_key_function,
)
from cached_counter.bootstrap import build_counter_config, build_unit_of_work
from cached_counter.domain.entities.counter_handle import CounterHandle
from cached_counter.domain.enums.direction import Direction
from cached_counter.domain.exceptions.counter import (
    CacheBackendNotRegisteredError,
    CachedCounterError,
    ConcurrentCacheWriteError,
    CounterNotFoundError,
    ExecutorNotBoundError,
    UnknownCounterError,
)

__all__ = [
    "CacheBackendNotRegisteredError",
    "CachedCounter",
    "CachedCounterError",
    "ConcurrentCacheWriteError",
    "CounterConfig",
    "CounterHandle",
    "CounterNotFoundError",
    "Direction",
    "ExecutorNotBoundError",
    "SqlAlchemyUnitOfWork",
    "UnknownCounterError",
    "build_counter_config",
    "build_unit_of_work",
    "default_cache_key",
    "template_key_function",
]
