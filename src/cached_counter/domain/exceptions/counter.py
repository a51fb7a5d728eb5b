# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Counter Domain Exceptions

Purpose:
    Error conditions raised by the cached counter consistency protocol and
    its adapters.

Layer: domain/exceptions
"""
from __future__ import annotations

from .base import DomainError


class CachedCounterError(DomainError):
    """Root of all cached counter errors."""

    code = "CACHED_COUNTER_ERROR"


class ConcurrentCacheWriteError(CachedCounterError):
    """Another writer initialized the cache key between our incr/decr and add."""

    code = "CONCURRENT_CACHE_WRITE"


class CounterNotFoundError(CachedCounterError):
    """The durable row addressed by a counter handle does not exist."""

    code = "COUNTER_NOT_FOUND"


class UnknownCounterError(CachedCounterError):
    """The entity type or attribute is not registered as a counter."""

    code = "UNKNOWN_COUNTER"


class CacheBackendNotRegisteredError(CachedCounterError):
    """No cache backend factory is registered under the requested name."""

    code = "CACHE_BACKEND_NOT_REGISTERED"


class ExecutorNotBoundError(CachedCounterError):
    """A deferred executor was asked to run jobs before receiving a config."""

    code = "EXECUTOR_NOT_BOUND"
