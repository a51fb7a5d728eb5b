# Copyright (c)
# SPDX-License-Identifier: MIT
"""Adjustment direction for counters."""

from __future__ import annotations

from enum import Enum


class Direction(str, Enum):
    """Direction of a ±1 counter adjustment."""

    INCREMENT = "increment"
    DECREMENT = "decrement"

    @property
    def delta(self) -> int:
        """Signed step applied to the counter."""
        return 1 if self is Direction.INCREMENT else -1

    @property
    def inverse(self) -> Direction:
        """The direction that undoes this one."""
        return Direction.DECREMENT if self is Direction.INCREMENT else Direction.INCREMENT
