# Copyright (c)
# SPDX-License-Identifier: MIT
"""Prometheus metrics for cached counters (registry-aware, hot-reload safe).

Every accessor returns a collector bound to the **current**
``prometheus_client.REGISTRY``. Collectors are created once per registry, so
tests that swap the default registry and long-running workers that reload
modules never hit duplicate-registration errors.

Collectors:
    * ``cached_counter_writes_total{path,direction}``: fast/fallback/race writes.
    * ``cached_counter_reads_total{source}``: where a read was answered from.
    * ``cached_counter_deferred_adjustments_total{result}``: applied/retry/terminal.
    * ``cached_counter_cache_op_duration_seconds{operation}``: cache latency.

Example:
    get_counter_writes_total().labels(path="fast", direction="increment").inc()
"""

from __future__ import annotations

import logging
import threading
from contextlib import suppress
from typing import Final

import prometheus_client as prom
from prometheus_client import Counter, Histogram

__all__ = [
    "get_cache_op_duration_seconds",
    "get_counter_reads_total",
    "get_counter_writes_total",
    "get_deferred_adjustments_total",
]

_log = logging.getLogger(__name__)

# Cache round trips are expected in the sub-millisecond to low-millisecond range.
_BUCKETS: Final[tuple[float, ...]] = (
    0.0005,
    0.001,
    0.0025,
    0.005,
    0.010,
    0.025,
    0.050,
    0.100,
    0.250,
    1.000,
)

_registry_id: int | None = None
_hist_cache: dict[str, Histogram] = {}
_counter_cache: dict[str, Counter] = {}
_lock = threading.RLock()


def _ensure_registry() -> None:
    """Reset caches if the active registry changed."""
    global _registry_id
    with _lock:
        rid = id(prom.REGISTRY)
        if _registry_id != rid:
            _hist_cache.clear()
            _counter_cache.clear()
            _registry_id = rid


def _lookup_existing(name: str) -> object | None:
    """Return a collector already registered under ``name`` on the active registry."""
    with _lock, suppress(Exception):
        mapping = getattr(prom.REGISTRY, "_names_to_collectors", None)
        if isinstance(mapping, dict):
            return mapping.get(name)
    return None


def _get_or_create_hist(
    name: str,
    help_text: str,
    *,
    labelnames: tuple[str, ...] = (),
) -> Histogram:
    """Get or create a registry-bound ``Histogram`` with stable identity.

    Args:
        name: Metric name (snake_case).
        help_text: Human-readable description.
        labelnames: Label names.

    Returns:
        Histogram: Bound to ``prom.REGISTRY``.
    """
    _ensure_registry()
    with _lock:
        cached = _hist_cache.get(name)
        if cached is not None:
            return cached

        existing = _lookup_existing(name)
        if isinstance(existing, Histogram):
            _hist_cache[name] = existing
            return existing

        try:
            hist = Histogram(name, help_text, labelnames, buckets=_BUCKETS, registry=prom.REGISTRY)
        except ValueError:
            again = _lookup_existing(name)
            if isinstance(again, Histogram):
                _hist_cache[name] = again
                return again
            _log.exception("Failed to register Prometheus histogram %s", name)
            raise
        _hist_cache[name] = hist
        return hist


def _get_or_create_counter(
    name: str,
    help_text: str,
    *,
    labelnames: tuple[str, ...] = (),
) -> Counter:
    """Get or create a registry-bound ``Counter`` with stable identity.

    ``prometheus_client`` registers counters under both ``name`` and
    ``name_total``; lookups try both.
    """
    _ensure_registry()
    with _lock:
        cached = _counter_cache.get(name)
        if cached is not None:
            return cached

        base = name.removesuffix("_total")
        for candidate in (name, base):
            existing = _lookup_existing(candidate)
            if isinstance(existing, Counter):
                _counter_cache[name] = existing
                return existing

        try:
            counter = Counter(base, help_text, labelnames, registry=prom.REGISTRY)
        except ValueError:
            again = _lookup_existing(base)
            if isinstance(again, Counter):
                _counter_cache[name] = again
                return again
            _log.exception("Failed to register Prometheus counter %s", name)
            raise
        _counter_cache[name] = counter
        return counter


def get_counter_writes_total() -> Counter:
    """Return counter of counter writes.

    Labels:
        path: ``fast`` (cache), ``fallback`` (durable), or ``race`` (rejected).
        direction: ``increment`` | ``decrement``.
    """
    return _get_or_create_counter(
        "cached_counter_writes_total",
        "Counter writes by consistency path",
        labelnames=("path", "direction"),
    )


def get_counter_reads_total() -> Counter:
    """Return counter of counter reads.

    Labels:
        source: ``cache`` (hit), ``durable`` (miss), ``cache_error`` (fallback).
    """
    return _get_or_create_counter(
        "cached_counter_reads_total",
        "Counter reads by answering tier",
        labelnames=("source",),
    )


def get_deferred_adjustments_total() -> Counter:
    """Return counter of deferred durable adjustment outcomes.

    Labels:
        result: ``applied`` | ``retry`` | ``terminal``.
    """
    return _get_or_create_counter(
        "cached_counter_deferred_adjustments_total",
        "Deferred durable adjustments by outcome",
        labelnames=("result",),
    )


def get_cache_op_duration_seconds() -> Histogram:
    """Return histogram of cache backend round-trip latency.

    Labels:
        operation: ``incr`` | ``decr`` | ``add`` | ``get`` | ``delete``.
    """
    return _get_or_create_hist(
        "cached_counter_cache_op_duration_seconds",
        "Latency (seconds) of cache backend operations",
        labelnames=("operation",),
    )
