# Copyright (c)
# SPDX-License-Identifier: MIT
"""Application Interface: Transaction Hook.

Synopsis:
    Lifecycle notifications for the caller's unit of work. The engine uses
    them to undo a cache write when the unit of work rolls back and to hand
    the deferred durable write to an executor together with, or only after,
    the unit's commit.

Layer:
    application/interfaces
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol

from cached_counter.domain.interfaces.durable_store import DurableStore

if TYPE_CHECKING:
    from cached_counter.application.counter.jobs import RetryableAdjustment
    from cached_counter.application.interfaces.deferred_executor import DeferredExecutor

TransactionCallback = Callable[[], Awaitable[None]]


class TransactionHook(Protocol):
    """Registration surface of an active unit of work."""

    def ensure_active(self) -> None:
        """Raise if the unit of work can no longer take counter writes."""

    async def on_rollback(self, callback: TransactionCallback) -> None:
        """Run ``callback`` at most once, only if the unit of work rolls back."""

    async def after_commit(self, callback: TransactionCallback) -> None:
        """Run ``callback`` at most once, only after the unit of work commits."""

    async def enlist(
        self, executor: DeferredExecutor, job: RetryableAdjustment, *, max_attempts: int
    ) -> bool:
        """Schedule ``job`` inside this unit's own transaction if ``executor`` allows it.

        Returns:
            ``True`` if the job now commits or rolls back with the unit;
            ``False`` if the caller must hand it off after commit instead.
        """

    def counter_store(self) -> DurableStore | None:
        """Return a durable store bound to this unit of work, if it has one."""
