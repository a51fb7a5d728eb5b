# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Deferred and Compensating Units of Work

Purpose:
    The two actions a successful fast-path write leaves behind:

    * :class:`RetryableAdjustment` is handed to a deferred executor after the
      caller's unit of work commits and applies the ±1 to the durable row.
    * :class:`RollbackCompensator` is registered with the unit of work and,
      only on rollback, reverts the cache write.

    Both carry plain identifiers and rebuild a fresh engine when they run,
    because they execute across an asynchronous or transactional boundary
    where the originating instance may be gone.

Layer: application/counter
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from cached_counter.domain.entities.counter_handle import CounterHandle
from cached_counter.domain.enums.direction import Direction

if TYPE_CHECKING:
    from cached_counter.application.counter.config import CounterConfig

__all__ = ["AdjustmentState", "RetryableAdjustment", "RollbackCompensator"]


class AdjustmentState(str, Enum):
    """Lifecycle of a deferred durable adjustment."""

    PENDING = "pending"
    EXECUTING = "executing"
    APPLIED = "applied"
    FAILED_RETRYABLE = "failed_retryable"
    FAILED_TERMINAL = "failed_terminal"

    @property
    def is_final(self) -> bool:
        return self in (AdjustmentState.APPLIED, AdjustmentState.FAILED_TERMINAL)

    def after_failure(self, *, attempts: int, max_attempts: int) -> AdjustmentState:
        """Return the state following a failed execution."""
        if self is not AdjustmentState.EXECUTING:
            raise ValueError(f"cannot fail an adjustment in state {self.value}")
        if attempts >= max_attempts:
            return AdjustmentState.FAILED_TERMINAL
        return AdjustmentState.FAILED_RETRYABLE


@dataclass(frozen=True, slots=True)
class RetryableAdjustment:
    """Durable ±1 adjustment scheduled after a committed cache write.

    Args:
        handle: Counter identity.
        direction: Adjustment to apply to the durable row.
    """

    handle: CounterHandle
    direction: Direction

    async def perform(self, config: CounterConfig) -> None:
        """Apply the adjustment through a freshly built engine.

        Raises:
            Exception: Any durable-store failure, for the executor to retry.
        """
        from cached_counter.application.counter.engine import ConsistencyEngine

        await ConsistencyEngine(config).adjust_durable(self.handle, self.direction)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly mapping."""
        return {**self.handle.as_identifiers(), "direction": self.direction.value}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> RetryableAdjustment:
        """Rebuild a job from :meth:`to_payload` output."""
        return cls(
            handle=CounterHandle.from_identifiers(payload),
            direction=Direction(payload["direction"]),
        )


@dataclass(frozen=True, slots=True)
class RollbackCompensator:
    """Cache-only undo of a fast-path write, fired on rollback.

    No retry and no fallback: the durable store was never touched by the
    fast path, so only the cache needs reverting. Failures propagate to the
    rollback path.

    Args:
        handle: Counter identity.
        direction: Direction to apply to the cache (inverse of the write).
        config: Configuration (including the cache the write went to).
    """

    handle: CounterHandle
    direction: Direction
    config: CounterConfig

    async def __call__(self) -> None:
        from cached_counter.application.counter.engine import ConsistencyEngine

        await ConsistencyEngine(self.config).adjust_cache(self.handle, self.direction)
