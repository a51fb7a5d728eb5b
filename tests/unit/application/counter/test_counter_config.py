# tests/unit/application/counter/test_counter_config.py
from __future__ import annotations

import pytest

from cached_counter.application.counter.config import (
    CounterConfig,
    default_cache_key,
    template_key_function,
)
from cached_counter.domain.entities.counter_handle import CounterHandle
from cached_counter.infrastructure.caching.memory_backend import InMemoryCacheBackend


class _NullStore:
    async def read(self, handle):  # pragma: no cover - never called
        raise AssertionError

    async def adjust(self, handle, direction):  # pragma: no cover - never called
        raise AssertionError


class _NullExecutor:
    async def enqueue(self, job, *, max_attempts):  # pragma: no cover - never called
        raise AssertionError


def test_default_cache_key_layout() -> None:
    handle = CounterHandle("articles", 7, "num_read")
    assert default_cache_key(handle) == "articles/num_read/cached_counter/7"


def test_template_key_function_formats_all_identifiers() -> None:
    key_fn = template_key_function("app:{entity_type}:{entity_id}:{attribute}")
    assert key_fn(CounterHandle("tags", "py", "uses")) == "app:tags:py:uses"


@pytest.mark.parametrize(
    "template",
    [
        "{entity_type}/{attribute}",
        "{entity_type}/{entity_id}/{attribute}/{shard}",
    ],
)
def test_template_key_function_rejects_bad_templates(template: str) -> None:
    with pytest.raises(ValueError):
        template_key_function(template)


def test_with_cache_derives_new_config_only_when_needed() -> None:
    base_cache = InMemoryCacheBackend()
    config = CounterConfig(cache=base_cache, store=_NullStore(), executor=_NullExecutor())

    assert config.with_cache(None) is config
    assert config.with_cache(base_cache) is config

    other = InMemoryCacheBackend()
    derived = config.with_cache(other)
    assert derived.cache is other
    assert derived.store is config.store
    assert config.cache is base_cache


def test_max_attempts_must_be_positive() -> None:
    with pytest.raises(ValueError):
        CounterConfig(
            cache=InMemoryCacheBackend(),
            store=_NullStore(),
            executor=_NullExecutor(),
            max_attempts=0,
        )
