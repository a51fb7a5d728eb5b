# Copyright (c)
# SPDX-License-Identifier: MIT
"""Counter Job Model.

Purpose:
    Persistence shape of deferred durable adjustments queued by
    :class:`~cached_counter.adapters.executors.sqlalchemy_queue.SqlAlchemyJobQueue`.

Layer:
    infrastructure

Notes:
    Applied jobs are deleted. Terminal failures keep their row with
    ``failed_at`` set so operators can inspect and re-queue them.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from cached_counter.application.counter.jobs import AdjustmentState, RetryableAdjustment
from cached_counter.domain.entities.counter_handle import CounterHandle, EntityId
from cached_counter.domain.enums.direction import Direction
from cached_counter.infrastructure.database.models.base import Base, utcnow_naive

_INT_TAG = "i:"
_STR_TAG = "s:"


def encode_entity_id(entity_id: EntityId) -> str:
    """Encode an entity id into a string column while keeping its type."""
    if isinstance(entity_id, int):
        return f"{_INT_TAG}{entity_id}"
    return f"{_STR_TAG}{entity_id}"


def decode_entity_id(raw: str) -> EntityId:
    """Invert :func:`encode_entity_id`."""
    if raw.startswith(_INT_TAG):
        return int(raw[len(_INT_TAG) :])
    if raw.startswith(_STR_TAG):
        return raw[len(_STR_TAG) :]
    raise ValueError(f"unrecognized entity id encoding: {raw!r}")


class CounterJob(Base):
    """Persistence model for a queued durable adjustment.

    Attributes:
        id: Surrogate primary key.
        entity_type: Counter entity type.
        entity_id: Type-tagged entity id (see :func:`encode_entity_id`).
        attribute: Counter column.
        direction: ``increment`` | ``decrement``.
        state: :class:`AdjustmentState` value.
        attempts: Executions so far.
        max_attempts: Execution budget.
        last_error: Message of the most recent failure.
        run_at: Earliest time the job may run.
        locked_at: When a worker claimed the job.
        locked_by: Worker name holding the claim.
        failed_at: When the job failed terminally.
        created_at: Enqueue time.
    """

    __tablename__ = "cached_counter_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(length=255), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(length=255), nullable=False)
    attribute: Mapped[str] = mapped_column(String(length=255), nullable=False)
    direction: Mapped[str] = mapped_column(String(length=16), nullable=False)
    state: Mapped[str] = mapped_column(
        String(length=32),
        nullable=False,
        default=AdjustmentState.PENDING.value,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    run_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow_naive)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    locked_by: Mapped[str | None] = mapped_column(String(length=255), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow_naive)

    __table_args__ = (Index("ix_cached_counter_jobs_state_run_at", "state", "run_at"),)

    @classmethod
    def from_adjustment(
        cls,
        job: RetryableAdjustment,
        *,
        max_attempts: int,
        now: datetime | None = None,
    ) -> CounterJob:
        """Create a pending row for ``job``."""
        now = now or utcnow_naive()
        return cls(
            entity_type=job.handle.entity_type,
            entity_id=encode_entity_id(job.handle.entity_id),
            attribute=job.handle.attribute,
            direction=job.direction.value,
            state=AdjustmentState.PENDING.value,
            attempts=0,
            max_attempts=max_attempts,
            run_at=now,
            created_at=now,
        )

    def to_adjustment(self) -> RetryableAdjustment:
        """Rebuild the unit of work carried by this row."""
        return RetryableAdjustment(
            handle=CounterHandle(
                entity_type=self.entity_type,
                entity_id=decode_entity_id(self.entity_id),
                attribute=self.attribute,
            ),
            direction=Direction(self.direction),
        )
