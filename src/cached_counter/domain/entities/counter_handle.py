# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Counter Handle Entity

Purpose:
    Immutable identity of a counter: which entity, which row, which column.
    Handles cross asynchronous and transactional boundaries, so they carry
    plain identifiers only (no ORM instances, no sessions).

Layer: domain/entities
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

EntityId = int | str


@dataclass(frozen=True, slots=True)
class CounterHandle:
    """Identity of a counter.

    Args:
        entity_type: Logical entity name (e.g. ``"articles"``).
        entity_id: Primary key of the row holding the counter.
        attribute: Integer column holding the counter (e.g. ``"num_read"``).

    Raises:
        ValueError: If any identifier is empty or of an unsupported type.
    """

    entity_type: str
    entity_id: EntityId
    attribute: str

    def __post_init__(self) -> None:
        if not isinstance(self.entity_type, str) or not self.entity_type.strip():
            raise ValueError("entity_type must be a non-empty string")
        if not isinstance(self.attribute, str) or not self.attribute.strip():
            raise ValueError("attribute must be a non-empty string")
        if isinstance(self.entity_id, bool) or not isinstance(self.entity_id, (int, str)):
            raise ValueError("entity_id must be an int or a string")
        if isinstance(self.entity_id, str) and not self.entity_id:
            raise ValueError("entity_id must not be empty")

    def as_identifiers(self) -> dict[str, Any]:
        """Return the handle as a plain, JSON-friendly mapping."""
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "attribute": self.attribute,
        }

    @classmethod
    def from_identifiers(cls, data: dict[str, Any]) -> CounterHandle:
        """Rebuild a handle from :meth:`as_identifiers` output."""
        return cls(
            entity_type=data["entity_type"],
            entity_id=data["entity_id"],
            attribute=data["attribute"],
        )
