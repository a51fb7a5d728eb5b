# Copyright (c)
# SPDX-License-Identifier: MIT
"""Retry utilities (async) with jittered exponential backoff."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")

__all__ = ["RetryPolicy", "backoff_seconds", "retry_async"]


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry attempts."""

    total: int  # number of retries (not counting the first attempt)
    base: float  # base backoff seconds
    cap: float  # max backoff seconds
    jitter: bool = True  # add full jitter if True

    @classmethod
    def for_attempts(cls, max_attempts: int, *, base: float, cap: float) -> RetryPolicy:
        """Build a policy allowing ``max_attempts`` executions in total."""
        return cls(total=max(0, max_attempts - 1), base=base, cap=cap)


def backoff_seconds(policy: RetryPolicy, attempt: int) -> float:
    """Return the delay before retry number ``attempt`` (0-based).

    Args:
        policy: Backoff configuration.
        attempt: Index of the failed attempt.

    Returns:
        Seconds to wait, capped by ``policy.cap`` and fully jittered when enabled.
    """
    backoff = min(policy.cap, policy.base * (2**attempt))
    if policy.jitter:
        backoff = random.uniform(0, backoff)  # noqa: S311
    return backoff


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    retry_on: Callable[[Exception], bool],
    on_retry: Callable[[int, Exception], None] | None = None,
) -> T:
    """Retry an async function with backoff until success or budget exhausted.

    Args:
        fn: Zero-arg async function to execute.
        policy: RetryPolicy defining count/backoff.
        retry_on: Predicate that returns True when an exception is retryable.
        on_retry: Optional callback invoked with ``(attempt, exc)`` before sleeping.

    Returns:
        The return value of ``fn`` if successful.

    Raises:
        The last exception if retries are exhausted or it is not retryable.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:  # noqa: BLE001
            if attempt >= policy.total or not retry_on(exc):
                raise
            if on_retry is not None:
                on_retry(attempt, exc)
        await asyncio.sleep(backoff_seconds(policy, attempt))
        attempt += 1
