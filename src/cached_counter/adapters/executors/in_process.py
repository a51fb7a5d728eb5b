# Copyright (c)
# SPDX-License-Identifier: MIT
"""
In-process Deferred Executor

Purpose:
    Run deferred durable adjustments on asyncio workers inside the current
    process. Each job gets up to ``max_attempts`` executions with jittered
    exponential backoff between them; jobs that exhaust the budget are
    logged, counted, and kept in :attr:`InProcessExecutor.dead_letters`.

Usage:
    executor = InProcessExecutor()
    config = CounterConfig(cache=cache, store=store, executor=executor)
    executor.bind(config)
    executor.start(concurrency=2)
    ...
    await executor.stop()

    Tests and shutdown hooks call :meth:`InProcessExecutor.run_pending` to
    drain the queue deterministically instead.

Layer: adapters/executors
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cached_counter.application.counter.jobs import AdjustmentState, RetryableAdjustment
from cached_counter.domain.exceptions.counter import ExecutorNotBoundError
from cached_counter.infrastructure.logging.logger import get_json_logger
from cached_counter.infrastructure.observability.metrics import get_deferred_adjustments_total
from cached_counter.infrastructure.resilience.retry import RetryPolicy, retry_async

if TYPE_CHECKING:
    from cached_counter.application.counter.config import CounterConfig

__all__ = ["DeadLetter", "InProcessExecutor"]

log = get_json_logger(__name__)


@dataclass(frozen=True, slots=True)
class DeadLetter:
    """A job that failed terminally."""

    job: RetryableAdjustment
    attempts: int
    error: Exception


@dataclass(slots=True)
class _QueuedAdjustment:
    job: RetryableAdjustment
    max_attempts: int
    state: AdjustmentState = AdjustmentState.PENDING
    attempts: int = 0
    errors: list[Exception] = field(default_factory=list)


class InProcessExecutor:
    """Asyncio queue of deferred adjustments.

    Args:
        retry_base_s: Base backoff between attempts of one job.
        retry_cap_s: Maximum backoff between attempts of one job.
    """

    def __init__(self, *, retry_base_s: float = 0.5, retry_cap_s: float = 300.0) -> None:
        self._retry_base_s = retry_base_s
        self._retry_cap_s = retry_cap_s
        self._config: CounterConfig | None = None
        self._queue: asyncio.Queue[_QueuedAdjustment] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self.dead_letters: list[DeadLetter] = []

    def bind(self, config: CounterConfig) -> None:
        """Attach the configuration jobs are performed with."""
        self._config = config

    @property
    def pending(self) -> int:
        """Number of queued jobs not yet picked up by a worker."""
        return self._queue.qsize()

    async def enqueue(self, job: RetryableAdjustment, *, max_attempts: int) -> None:
        """Queue ``job`` for execution.

        Raises:
            ExecutorNotBoundError: If :meth:`bind` was never called.
        """
        self._require_config()
        await self._queue.put(_QueuedAdjustment(job=job, max_attempts=max_attempts))

    async def run_pending(self) -> int:
        """Execute every queued job in the current task.

        Returns:
            Number of jobs processed (applied or dead-lettered).
        """
        config = self._require_config()
        processed = 0
        while not self._queue.empty():
            item = self._queue.get_nowait()
            try:
                await self._execute(item, config)
            finally:
                self._queue.task_done()
            processed += 1
        return processed

    def start(self, concurrency: int = 1) -> None:
        """Spawn ``concurrency`` background worker tasks."""
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        config = self._require_config()
        if self._workers:
            raise RuntimeError("InProcessExecutor workers already started")
        self._workers = [
            asyncio.create_task(self._worker(config), name=f"cached-counter-worker-{i}")
            for i in range(concurrency)
        ]
        log.info("in-process executor started", extra={"extra": {"concurrency": concurrency}})

    async def stop(self, *, drain: bool = True) -> None:
        """Stop background workers, optionally waiting for queued jobs first."""
        if drain and self._workers:
            await self._queue.join()
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    async def _worker(self, config: CounterConfig) -> None:
        while True:
            item = await self._queue.get()
            try:
                await self._execute(item, config)
            except Exception:
                log.exception("unexpected failure in in-process worker")
            finally:
                self._queue.task_done()

    async def _execute(self, item: _QueuedAdjustment, config: CounterConfig) -> None:
        results = get_deferred_adjustments_total()
        policy = RetryPolicy.for_attempts(
            item.max_attempts, base=self._retry_base_s, cap=self._retry_cap_s
        )

        async def attempt() -> None:
            item.state = AdjustmentState.EXECUTING
            item.attempts += 1
            await item.job.perform(config)

        def on_retry(_attempt: int, exc: Exception) -> None:
            item.errors.append(exc)
            item.state = item.state.after_failure(
                attempts=item.attempts, max_attempts=item.max_attempts
            )
            results.labels(result="retry").inc()
            log.warning(
                "deferred adjustment failed; retrying",
                exc_info=exc,
                extra={"extra": {**item.job.to_payload(), "attempts": item.attempts}},
            )

        try:
            await retry_async(attempt, policy=policy, retry_on=lambda _exc: True, on_retry=on_retry)
        except Exception as exc:
            item.errors.append(exc)
            item.state = AdjustmentState.FAILED_TERMINAL
            self.dead_letters.append(DeadLetter(job=item.job, attempts=item.attempts, error=exc))
            results.labels(result="terminal").inc()
            log.error(
                "deferred adjustment failed terminally",
                exc_info=exc,
                extra={"extra": {**item.job.to_payload(), "attempts": item.attempts}},
            )
            return

        item.state = AdjustmentState.APPLIED
        results.labels(result="applied").inc()

    def _require_config(self) -> CounterConfig:
        if self._config is None:
            raise ExecutorNotBoundError(
                "InProcessExecutor.bind(config) must be called before use",
            )
        return self._config
