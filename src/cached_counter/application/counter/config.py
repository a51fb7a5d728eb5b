# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Counter Configuration

Purpose:
    Explicit, immutable wiring for the consistency engine: which cache, which
    durable store, which executor, and how cache keys are derived. One
    instance is built at process start and passed to every engine; per-call
    overrides derive a new instance instead of mutating the shared one.

Layer: application/counter
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace

from cached_counter.application.interfaces.cache_backend import CacheBackend
from cached_counter.application.interfaces.deferred_executor import DeferredExecutor
from cached_counter.domain.entities.counter_handle import CounterHandle
from cached_counter.domain.interfaces.durable_store import DurableStore

__all__ = [
    "DEFAULT_KEY_TEMPLATE",
    "DEFAULT_MAX_ATTEMPTS",
    "CounterConfig",
    "KeyFunction",
    "default_cache_key",
    "template_key_function",
]

KeyFunction = Callable[[CounterHandle], str]

#: Default cache key layout.
DEFAULT_KEY_TEMPLATE = "{entity_type}/{attribute}/cached_counter/{entity_id}"

#: Executions allowed for a deferred durable adjustment.
DEFAULT_MAX_ATTEMPTS = 10


def default_cache_key(handle: CounterHandle) -> str:
    """Derive the default cache key for ``handle``."""
    return DEFAULT_KEY_TEMPLATE.format(**handle.as_identifiers())


def template_key_function(template: str) -> KeyFunction:
    """Build a key function from a ``str.format`` template.

    The template may reference ``entity_type``, ``entity_id`` and
    ``attribute``; all three must appear so distinct handles never collide.

    Args:
        template: Format string, e.g. ``"app:{entity_type}:{entity_id}:{attribute}"``.

    Returns:
        KeyFunction: Deterministic handle-to-key mapping.

    Raises:
        ValueError: If a placeholder is missing or unknown.
    """
    for name in ("entity_type", "entity_id", "attribute"):
        if "{" + name + "}" not in template:
            raise ValueError(f"key template must reference {{{name}}}")
    try:
        template.format(entity_type="t", entity_id=1, attribute="a")
    except (KeyError, IndexError) as exc:
        raise ValueError(f"key template has unknown placeholder: {exc}") from exc

    def _key(handle: CounterHandle) -> str:
        return template.format(**handle.as_identifiers())

    return _key


@dataclass(frozen=True)
class CounterConfig:
    """Process-wide configuration for cached counters.

    Attributes:
        cache: Active cache backend.
        store: Durable store used outside of a unit of work (and by workers).
        executor: Scheduler for deferred durable adjustments.
        key_function: Handle-to-cache-key derivation.
        max_attempts: Execution budget for each deferred adjustment.
    """

    cache: CacheBackend
    store: DurableStore
    executor: DeferredExecutor
    key_function: KeyFunction = field(default=default_cache_key)
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def with_cache(self, cache: CacheBackend | None) -> CounterConfig:
        """Return a config using ``cache`` instead of the configured backend."""
        if cache is None or cache is self.cache:
            return self
        return replace(self, cache=cache)
