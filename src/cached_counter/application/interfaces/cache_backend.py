# Copyright (c)
# SPDX-License-Identifier: MIT
"""Application Interface: Cache Backend.

Synopsis:
    Atomic integer operations against a volatile cache. The consistency
    engine depends only on this Protocol, so Redis, an in-process dict, or
    any other product with atomic increments can be swapped in.

Contract:
    * ``incr``/``decr`` never create a key; they return ``None`` when absent.
    * ``add`` creates a key only if it does not exist yet.
    * ``is_transient`` separates "backend unreachable" (the engine falls back
      to the durable store) from programming errors (propagated).

Layer:
    application/interfaces
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class CacheBackend(Protocol):
    """Atomic integer cache used by the consistency engine."""

    async def incr(self, key: str) -> int | None:
        """Increment an existing integer value.

        Args:
            key: Fully-qualified cache key.

        Returns:
            The new value, or ``None`` if the key does not exist.
        """

    async def decr(self, key: str) -> int | None:
        """Decrement an existing integer value.

        Args:
            key: Fully-qualified cache key.

        Returns:
            The new value, or ``None`` if the key does not exist.
        """

    async def add(self, key: str, value: int) -> bool:
        """Create ``key`` with ``value`` iff it does not already exist.

        Returns:
            ``True`` if the key was created, ``False`` if it already existed.
        """

    async def get(self, key: str) -> int | None:
        """Return the cached integer, or ``None`` when absent."""

    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""

    def is_transient(self, exc: BaseException) -> bool:
        """Return ``True`` when ``exc`` means the backend is unreachable."""
