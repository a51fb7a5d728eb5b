# Copyright (c)
# SPDX-License-Identifier: MIT
"""Implicit transaction scope used when the caller has no active unit of work."""

from __future__ import annotations

from cached_counter.application.counter.jobs import RetryableAdjustment
from cached_counter.application.interfaces.deferred_executor import DeferredExecutor
from cached_counter.application.interfaces.transaction_hook import TransactionCallback
from cached_counter.domain.interfaces.durable_store import DurableStore


class ImmediateCommitScope:
    """A scope that is already committed.

    Rollback callbacks are discarded (there is nothing to roll back) and
    after-commit callbacks run immediately.
    """

    def ensure_active(self) -> None:
        return None

    async def on_rollback(self, callback: TransactionCallback) -> None:
        return None

    async def after_commit(self, callback: TransactionCallback) -> None:
        await callback()

    async def enlist(
        self, executor: DeferredExecutor, job: RetryableAdjustment, *, max_attempts: int
    ) -> bool:
        return False

    def counter_store(self) -> DurableStore | None:
        return None
