# Copyright (c)
# SPDX-License-Identifier: MIT
"""Domain-facing interface for the authoritative counter store.

The durable store owns the committed value of every counter. Implementations
must apply adjustments with a single atomic statement so that concurrent
adjusters never lose updates.
"""

from __future__ import annotations

from typing import Protocol

from cached_counter.domain.entities.counter_handle import CounterHandle
from cached_counter.domain.enums.direction import Direction


class DurableStore(Protocol):
    """Domain-level contract for durable counter storage."""

    async def read(self, handle: CounterHandle) -> int:
        """Return the current authoritative value.

        Args:
            handle: Counter identity.

        Returns:
            Integer value of the counter column.

        Raises:
            CounterNotFoundError: If the addressed row does not exist.
        """

        raise NotImplementedError

    async def adjust(self, handle: CounterHandle, direction: Direction) -> None:
        """Atomically apply a ±1 adjustment.

        Args:
            handle: Counter identity.
            direction: Adjustment direction.

        Raises:
            CounterNotFoundError: If no row was affected.
        """

        raise NotImplementedError
