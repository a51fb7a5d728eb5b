# tests/unit/application/counter/test_adjustment_jobs.py
from __future__ import annotations

import pytest

from cached_counter.application.counter.jobs import (
    AdjustmentState,
    RetryableAdjustment,
    RollbackCompensator,
)
from cached_counter.application.counter.scopes import ImmediateCommitScope
from cached_counter.domain.entities.counter_handle import CounterHandle
from cached_counter.domain.enums.direction import Direction


def test_failure_transitions_depend_on_attempt_budget() -> None:
    executing = AdjustmentState.EXECUTING
    assert executing.after_failure(attempts=1, max_attempts=3) is AdjustmentState.FAILED_RETRYABLE
    assert executing.after_failure(attempts=3, max_attempts=3) is AdjustmentState.FAILED_TERMINAL


def test_failure_transition_requires_executing_state() -> None:
    with pytest.raises(ValueError):
        AdjustmentState.PENDING.after_failure(attempts=1, max_attempts=3)


def test_final_states() -> None:
    assert AdjustmentState.APPLIED.is_final
    assert AdjustmentState.FAILED_TERMINAL.is_final
    assert not AdjustmentState.FAILED_RETRYABLE.is_final
    assert not AdjustmentState.PENDING.is_final


def test_adjustment_payload_carries_plain_identifiers() -> None:
    job = RetryableAdjustment(CounterHandle("articles", 1, "num_read"), Direction.DECREMENT)

    payload = job.to_payload()

    assert payload == {
        "entity_type": "articles",
        "entity_id": 1,
        "attribute": "num_read",
        "direction": "decrement",
    }
    assert RetryableAdjustment.from_payload(payload) == job


@pytest.mark.asyncio
async def test_perform_adjusts_durable_row_only(config, fake_redis, article_id, read_num_read) -> None:
    job = RetryableAdjustment(CounterHandle("articles", article_id, "num_read"), Direction.INCREMENT)

    await job.perform(config)

    assert await read_num_read(article_id) == 2
    assert await fake_redis.get("articles/num_read/cached_counter/1") is None


@pytest.mark.asyncio
async def test_compensator_adjusts_cache_only(config, fake_redis, article_id, read_num_read) -> None:
    await fake_redis.set("articles/num_read/cached_counter/1", 9)
    compensator = RollbackCompensator(
        CounterHandle("articles", article_id, "num_read"), Direction.DECREMENT, config
    )

    await compensator()

    assert await fake_redis.get("articles/num_read/cached_counter/1") == "8"
    assert await read_num_read(article_id) == 1


@pytest.mark.asyncio
async def test_immediate_scope_runs_commit_callbacks_and_drops_rollback_ones() -> None:
    scope = ImmediateCommitScope()
    calls: list[str] = []

    async def _cb(name: str) -> None:
        calls.append(name)

    await scope.on_rollback(lambda: _cb("rollback"))
    await scope.after_commit(lambda: _cb("commit"))

    assert calls == ["commit"]
    assert scope.counter_store() is None
