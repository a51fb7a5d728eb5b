# Copyright (c)
# SPDX-License-Identifier: MIT
"""Application Interface: Deferred Executor.

Synopsis:
    At-least-once handoff of retryable durable adjustments to a later
    execution context. Attempt bookkeeping belongs to the executor; terminal
    failures must be reported through the executor's own channel.

Layer:
    application/interfaces
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from cached_counter.application.counter.jobs import RetryableAdjustment


class DeferredExecutor(Protocol):
    """Scheduler for :class:`RetryableAdjustment` jobs."""

    async def enqueue(self, job: RetryableAdjustment, *, max_attempts: int) -> None:
        """Schedule ``job`` with at most ``max_attempts`` executions.

        Args:
            job: Unit of work carrying plain counter identifiers.
            max_attempts: Upper bound on executions before terminal failure.
        """
