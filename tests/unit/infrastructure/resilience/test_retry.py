# tests/unit/infrastructure/resilience/test_retry.py
from __future__ import annotations

import pytest

from cached_counter.infrastructure.resilience.retry import RetryPolicy, backoff_seconds, retry_async


def test_policy_for_attempts_counts_first_execution() -> None:
    assert RetryPolicy.for_attempts(10, base=0.5, cap=30).total == 9
    assert RetryPolicy.for_attempts(1, base=0.5, cap=30).total == 0


def test_backoff_is_exponential_and_capped_without_jitter() -> None:
    policy = RetryPolicy(total=5, base=0.5, cap=3.0, jitter=False)

    assert [backoff_seconds(policy, n) for n in range(5)] == [0.5, 1.0, 2.0, 3.0, 3.0]


def test_jittered_backoff_stays_within_bounds() -> None:
    policy = RetryPolicy(total=5, base=1.0, cap=4.0, jitter=True)

    for attempt in range(6):
        assert 0.0 <= backoff_seconds(policy, attempt) <= min(4.0, 2**attempt)


@pytest.mark.asyncio
async def test_retry_async_retries_until_success() -> None:
    calls = 0
    retried: list[int] = []

    async def flaky() -> str:
        nonlocal calls
        calls += 1
        if calls < 3:
            raise OSError("boom")
        return "ok"

    result = await retry_async(
        flaky,
        policy=RetryPolicy(total=5, base=0.0, cap=0.0),
        retry_on=lambda exc: isinstance(exc, OSError),
        on_retry=lambda attempt, exc: retried.append(attempt),
    )

    assert result == "ok"
    assert calls == 3
    assert retried == [0, 1]


@pytest.mark.asyncio
async def test_retry_async_gives_up_after_budget() -> None:
    calls = 0

    async def always_fails() -> None:
        nonlocal calls
        calls += 1
        raise OSError("boom")

    with pytest.raises(OSError):
        await retry_async(
            always_fails,
            policy=RetryPolicy(total=2, base=0.0, cap=0.0),
            retry_on=lambda exc: True,
        )
    assert calls == 3


@pytest.mark.asyncio
async def test_retry_async_does_not_retry_unretryable_errors() -> None:
    calls = 0

    async def bad() -> None:
        nonlocal calls
        calls += 1
        raise ValueError("nope")

    with pytest.raises(ValueError):
        await retry_async(
            bad,
            policy=RetryPolicy(total=5, base=0.0, cap=0.0),
            retry_on=lambda exc: isinstance(exc, OSError),
        )
    assert calls == 1
