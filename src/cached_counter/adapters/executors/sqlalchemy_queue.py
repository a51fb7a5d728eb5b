# Copyright (c)
# SPDX-License-Identifier: MIT
"""
SQLAlchemy Job Queue

Purpose:
    Durable deferred executor. Adjustments are stored as rows in
    ``cached_counter_jobs`` and worked off by one or more worker processes
    that claim due rows with ``SELECT ... FOR UPDATE SKIP LOCKED``.

Row lifecycle:
    pending -> executing -> (deleted on success)
                         -> failed_retryable (run_at pushed back) -> executing ...
                         -> failed_terminal (failed_at set, kept for operators)

    Executing rows whose lock is older than ``max_run_time_s`` are treated
    as abandoned by a crashed worker and become claimable again.

Layer: adapters/executors
"""

from __future__ import annotations

import asyncio
import os
import socket
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cached_counter.application.counter.jobs import AdjustmentState, RetryableAdjustment
from cached_counter.infrastructure.database.models.base import utcnow_naive
from cached_counter.infrastructure.database.models.counter_job import CounterJob
from cached_counter.infrastructure.logging.logger import get_json_logger
from cached_counter.infrastructure.observability.metrics import get_deferred_adjustments_total
from cached_counter.infrastructure.resilience.retry import RetryPolicy, backoff_seconds

if TYPE_CHECKING:
    from cached_counter.application.counter.config import CounterConfig

__all__ = ["FailedJob", "SqlAlchemyJobQueue", "WorkResult"]

log = get_json_logger(__name__)

_DUE_STATES = (AdjustmentState.PENDING.value, AdjustmentState.FAILED_RETRYABLE.value)


@dataclass(frozen=True, slots=True)
class WorkResult:
    """Outcome counts of one :meth:`SqlAlchemyJobQueue.work_off` round."""

    applied: int = 0
    retried: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.applied + self.retried + self.failed


@dataclass(frozen=True, slots=True)
class FailedJob:
    """Snapshot of a terminally failed job row."""

    id: int
    adjustment: RetryableAdjustment
    attempts: int
    last_error: str | None
    failed_at: datetime | None


@dataclass(frozen=True, slots=True)
class _Claim:
    id: int
    adjustment: RetryableAdjustment
    attempts: int
    max_attempts: int


def _default_worker_name() -> str:
    return f"host:{socket.gethostname()} pid:{os.getpid()}"


class SqlAlchemyJobQueue:
    """Database-backed :class:`DeferredExecutor`.

    Args:
        session_factory: Factory for sessions on the database holding the job table.
        retry_base_s: Base backoff before a failed job becomes due again.
        retry_cap_s: Maximum backoff before a failed job becomes due again.
        worker_name: Identifier written to ``locked_by`` when claiming.
        max_run_time_s: Age after which a claimed job's lock is stale.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        retry_base_s: float = 0.5,
        retry_cap_s: float = 300.0,
        worker_name: str | None = None,
        max_run_time_s: int = 300,
    ) -> None:
        self._session_factory = session_factory
        self._policy = RetryPolicy(total=0, base=retry_base_s, cap=retry_cap_s)
        self._worker_name = worker_name or _default_worker_name()
        self._max_run_time = timedelta(seconds=max_run_time_s)

    @property
    def worker_name(self) -> str:
        return self._worker_name

    # ------------------------------------------------------------------
    # DeferredExecutor
    # ------------------------------------------------------------------

    async def enqueue(self, job: RetryableAdjustment, *, max_attempts: int) -> None:
        """Insert a pending row for ``job`` in its own transaction."""
        async with self._session_factory() as session, session.begin():
            session.add(CounterJob.from_adjustment(job, max_attempts=max_attempts))

    async def enqueue_in(
        self, session: AsyncSession, job: RetryableAdjustment, *, max_attempts: int
    ) -> None:
        """Add a pending row for ``job`` to ``session`` without committing.

        The row is written by the caller's own commit, so it exists exactly
        when the counter write it belongs to was kept.
        """
        session.add(CounterJob.from_adjustment(job, max_attempts=max_attempts))

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    async def work_off(self, config: CounterConfig, *, limit: int = 100) -> WorkResult:
        """Claim and perform up to ``limit`` due jobs.

        Args:
            config: Configuration the jobs are performed with.
            limit: Maximum number of jobs to claim.

        Returns:
            WorkResult: Counts of applied, rescheduled and terminally failed jobs.
        """
        claims = await self._claim(limit)
        applied = retried = failed = 0
        results = get_deferred_adjustments_total()

        for claim in claims:
            try:
                await claim.adjustment.perform(config)
            except Exception as exc:
                if await self._record_failure(claim, exc):
                    failed += 1
                    results.labels(result="terminal").inc()
                else:
                    retried += 1
                    results.labels(result="retry").inc()
                continue

            await self._delete(claim.id)
            applied += 1
            results.labels(result="applied").inc()

        return WorkResult(applied=applied, retried=retried, failed=failed)

    async def run(
        self,
        config: CounterConfig,
        *,
        batch_size: int = 100,
        poll_interval_s: float = 1.0,
        stop: asyncio.Event | None = None,
    ) -> None:
        """Work off jobs until ``stop`` is set, sleeping when the queue is idle."""
        stop = stop or asyncio.Event()
        log.info("job queue worker started", extra={"worker": self._worker_name})
        while not stop.is_set():
            result = await self.work_off(config, limit=batch_size)
            if result.total:
                log.info(
                    "worked off counter jobs",
                    extra={
                        "worker": self._worker_name,
                        "extra": {
                            "applied": result.applied,
                            "retried": result.retried,
                            "failed": result.failed,
                        },
                    },
                )
                continue
            try:
                await asyncio.wait_for(stop.wait(), timeout=poll_interval_s)
            except asyncio.TimeoutError:
                pass
        log.info("job queue worker stopped", extra={"worker": self._worker_name})

    # ------------------------------------------------------------------
    # Operator side
    # ------------------------------------------------------------------

    async def failed_jobs(self) -> list[FailedJob]:
        """Return terminally failed jobs, oldest failure first."""
        stmt = (
            select(CounterJob)
            .where(CounterJob.state == AdjustmentState.FAILED_TERMINAL.value)
            .order_by(CounterJob.failed_at, CounterJob.id)
        )
        async with self._session_factory() as session:
            rows = (await session.scalars(stmt)).all()
            return [
                FailedJob(
                    id=row.id,
                    adjustment=row.to_adjustment(),
                    attempts=row.attempts,
                    last_error=row.last_error,
                    failed_at=row.failed_at,
                )
                for row in rows
            ]

    async def retry_failed(self, job_id: int | None = None) -> int:
        """Re-queue terminally failed jobs with a fresh attempt budget.

        Args:
            job_id: Only re-queue this job; ``None`` re-queues all of them.

        Returns:
            Number of jobs re-queued.
        """
        stmt = (
            update(CounterJob)
            .where(CounterJob.state == AdjustmentState.FAILED_TERMINAL.value)
            .values(
                state=AdjustmentState.PENDING.value,
                attempts=0,
                run_at=utcnow_naive(),
                failed_at=None,
                locked_at=None,
                locked_by=None,
            )
            .execution_options(synchronize_session=False)
        )
        if job_id is not None:
            stmt = stmt.where(CounterJob.id == job_id)
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
        return int(result.rowcount or 0)

    async def pending_count(self) -> int:
        """Number of rows that are not terminally failed."""
        stmt = select(func.count(CounterJob.id)).where(
            CounterJob.state != AdjustmentState.FAILED_TERMINAL.value
        )
        async with self._session_factory() as session:
            return int((await session.execute(stmt)).scalar_one())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _claim(self, limit: int) -> list[_Claim]:
        now = utcnow_naive()
        stale_before = now - self._max_run_time
        stmt = (
            select(CounterJob)
            .where(
                or_(
                    and_(CounterJob.state.in_(_DUE_STATES), CounterJob.run_at <= now),
                    and_(
                        CounterJob.state == AdjustmentState.EXECUTING.value,
                        CounterJob.locked_at < stale_before,
                    ),
                )
            )
            .order_by(CounterJob.run_at, CounterJob.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        async with self._session_factory() as session, session.begin():
            rows = (await session.scalars(stmt)).all()
            claims: list[_Claim] = []
            for row in rows:
                if row.state == AdjustmentState.EXECUTING.value:
                    log.warning(
                        "reclaiming job with stale lock",
                        extra={"job_id": row.id, "extra": {"locked_by": row.locked_by}},
                    )
                row.state = AdjustmentState.EXECUTING.value
                row.locked_at = now
                row.locked_by = self._worker_name
                claims.append(
                    _Claim(
                        id=row.id,
                        adjustment=row.to_adjustment(),
                        attempts=row.attempts,
                        max_attempts=row.max_attempts,
                    )
                )
        return claims

    async def _record_failure(self, claim: _Claim, exc: Exception) -> bool:
        """Persist a failed execution. Returns True if the job is now terminal."""
        attempts = claim.attempts + 1
        state = AdjustmentState.EXECUTING.after_failure(
            attempts=attempts, max_attempts=claim.max_attempts
        )
        now = utcnow_naive()
        async with self._session_factory() as session, session.begin():
            row = await session.get(CounterJob, claim.id)
            if row is None:
                return False
            row.attempts = attempts
            row.state = state.value
            row.last_error = f"{type(exc).__name__}: {exc}"
            row.locked_at = None
            row.locked_by = None
            if state is AdjustmentState.FAILED_TERMINAL:
                row.failed_at = now
            else:
                row.run_at = now + timedelta(seconds=backoff_seconds(self._policy, attempts - 1))

        payload = {**claim.adjustment.to_payload(), "attempts": attempts}
        if state is AdjustmentState.FAILED_TERMINAL:
            log.error(
                "deferred adjustment failed terminally",
                exc_info=exc,
                extra={"job_id": claim.id, "worker": self._worker_name, "extra": payload},
            )
            return True
        log.warning(
            "deferred adjustment failed; rescheduled",
            exc_info=exc,
            extra={"job_id": claim.id, "worker": self._worker_name, "extra": payload},
        )
        return False

    async def _delete(self, job_id: int) -> None:
        async with self._session_factory() as session, session.begin():
            row = await session.get(CounterJob, job_id)
            if row is not None:
                await session.delete(row)
