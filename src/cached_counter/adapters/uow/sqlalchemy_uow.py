# Copyright (c)
# SPDX-License-Identifier: MIT
"""SQLAlchemy-backed Unit of Work with transaction lifecycle hooks.

Purpose:
    Provide a concrete `TransactionHook` using SQLAlchemy's AsyncSession.
    Counter writes inside the unit register a rollback compensator. Their
    deferred job is either written through the unit's session or handed off
    after commit; the unit runs exactly one of the two callback lists.

Layer:
    adapters/uow
"""

from __future__ import annotations

from types import TracebackType

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cached_counter.adapters.executors.sqlalchemy_queue import SqlAlchemyJobQueue
from cached_counter.adapters.repositories.counter_store import (
    CounterModels,
    SqlAlchemyCounterStore,
)
from cached_counter.application.counter.jobs import RetryableAdjustment
from cached_counter.application.interfaces.deferred_executor import DeferredExecutor
from cached_counter.application.interfaces.transaction_hook import TransactionCallback
from cached_counter.infrastructure.logging.logger import get_json_logger

log = get_json_logger(__name__)


async def _run_callbacks(callbacks: list[TransactionCallback], *, phase: str) -> None:
    """Run every callback; re-raise the first failure after all have run."""
    first_error: BaseException | None = None
    for callback in callbacks:
        try:
            await callback()
        except Exception as exc:
            log.exception("%s callback failed", phase)
            if first_error is None:
                first_error = exc
    if first_error is not None:
        raise first_error


class SqlAlchemyUnitOfWork:
    """SQLAlchemy-based UnitOfWork implementing `TransactionHook`.

    Intended to be used via:

        async with SqlAlchemyUnitOfWork(session_factory=..., models=...) as uow:
            await counter.increment(tx=uow)
            await uow.commit()

    Leaving the context without committing rolls back, which fires the
    registered rollback callbacks.
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        models: CounterModels,
    ) -> None:
        """Initialize the UnitOfWork.

        Args:
            session_factory: Factory for creating new AsyncSession instances.
            models: Entity type to ORM model mapping for the bound counter store.
        """
        self._session_factory = session_factory
        self._models = models
        self._session: AsyncSession | None = None
        self._store: SqlAlchemyCounterStore | None = None
        self._rollback_callbacks: list[TransactionCallback] = []
        self._commit_callbacks: list[TransactionCallback] = []
        self._committed = False
        self._rolled_back = False

    # ------------------------------------------------------------------
    # Async context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SqlAlchemyUnitOfWork:
        """Enter the UnitOfWork context and open a new AsyncSession.

        Raises:
            RuntimeError: If a session is already active (nested usage).
        """
        if self._session is not None:
            raise RuntimeError("UnitOfWork is already active; nested usage is not supported.")

        self._session = self._session_factory()
        self._store = SqlAlchemyCounterStore(self._session, models=self._models)
        self._rollback_callbacks.clear()
        self._commit_callbacks.clear()
        self._committed = False
        self._rolled_back = False
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        """Exit the UnitOfWork context.

        Behavior:
            * If the unit was neither committed nor rolled back, rolls back
              (running rollback callbacks).
            * Closes the AsyncSession.

        Returns:
            Always returns None; exceptions are propagated.
        """
        try:
            if not self._committed and not self._rolled_back:
                await self.rollback()
        finally:
            if self._session is not None:
                await self._session.close()
                self._session = None
            self._store = None
        return None

    # ------------------------------------------------------------------
    # TransactionHook
    # ------------------------------------------------------------------

    def ensure_active(self) -> None:
        self._require_active("A counter write")

    async def on_rollback(self, callback: TransactionCallback) -> None:
        self._require_active("on_rollback()")
        self._rollback_callbacks.append(callback)

    async def after_commit(self, callback: TransactionCallback) -> None:
        self._require_active("after_commit()")
        self._commit_callbacks.append(callback)

    async def enlist(
        self, executor: DeferredExecutor, job: RetryableAdjustment, *, max_attempts: int
    ) -> bool:
        """Write ``job`` through this unit's session when ``executor`` is a job table.

        The row then shares the unit's fate: it commits with the counter
        write or disappears on rollback. Other executors are handed the job
        after commit by the caller.
        """
        self._require_active("enlist()")
        if not isinstance(executor, SqlAlchemyJobQueue):
            return False
        await executor.enqueue_in(self.session, job, max_attempts=max_attempts)
        return True

    def counter_store(self) -> SqlAlchemyCounterStore | None:
        return self._store

    @property
    def session(self) -> AsyncSession:
        """The active session, for host code that writes alongside counters."""
        if self._session is None:
            raise RuntimeError("UnitOfWork has no active session.")
        return self._session

    # ------------------------------------------------------------------
    # Transaction control
    # ------------------------------------------------------------------

    async def commit(self) -> None:
        """Commit, then hand off after-commit callbacks.

        Rollback callbacks are discarded once the commit succeeds. If the
        commit itself fails the unit rolls back before re-raising.

        Raises:
            RuntimeError: If called without an active session.
        """
        if self._session is None:
            raise RuntimeError("Cannot commit: UnitOfWork has no active session.")
        if self._committed or self._rolled_back:
            return

        try:
            await self._session.commit()
        except Exception:
            await self.rollback()
            raise

        self._committed = True
        self._rollback_callbacks.clear()
        callbacks, self._commit_callbacks = self._commit_callbacks, []
        await _run_callbacks(callbacks, phase="after_commit")

    async def rollback(self) -> None:
        """Roll back, then run rollback callbacks in reverse registration order.

        No-op if already rolled back or committed, or if no session exists.
        """
        if self._session is None or self._rolled_back or self._committed:
            return

        self._rolled_back = True
        self._commit_callbacks.clear()
        callbacks, self._rollback_callbacks = self._rollback_callbacks, []
        try:
            await self._session.rollback()
        finally:
            await _run_callbacks(list(reversed(callbacks)), phase="on_rollback")

    def _require_active(self, what: str) -> None:
        if self._session is None or self._committed or self._rolled_back:
            raise RuntimeError(f"{what} requires an active, unfinished UnitOfWork.")
