# Copyright (c)
# SPDX-License-Identifier: MIT
"""Cached counter CLI: workers and operator commands.

Commands:
    worker run           Work off deferred adjustments until interrupted.
    worker once          Work off a single batch and print the outcome.
    jobs failed          List terminally failed adjustments.
    jobs retry           Re-queue terminally failed adjustments.
    counter show         Print the cached and durable value of a counter.
    counter invalidate   Drop a counter's cached value.

Environment:
    CACHED_COUNTER_DATABASE_URL   Async SQLAlchemy URL.
    CACHED_COUNTER_MODELS         Import path of the entity type -> model mapping.
    CACHED_COUNTER_CACHE_BACKEND  Registered cache backend name.
    CACHED_COUNTER_REDIS_URL      Redis URL for the redis backend.
"""

from __future__ import annotations

import asyncio
import json
import signal
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import TypeVar

import typer

from cached_counter.application.counter.cached_counter import CachedCounter
from cached_counter.bootstrap import build_counter_config, build_job_queue
from cached_counter.config.settings import Settings, get_settings
from cached_counter.domain.entities.counter_handle import EntityId
from cached_counter.infrastructure.caching.redis_client import close_redis
from cached_counter.infrastructure.database.session import (
    dispose_engine,
    init_engine_and_sessionmaker,
)
from cached_counter.infrastructure.logging.logger import configure_root_logging, get_json_logger

configure_root_logging()
log = get_json_logger(__name__)

T = TypeVar("T")

app = typer.Typer(add_completion=False, no_args_is_help=True)
worker_app = typer.Typer(no_args_is_help=True)
jobs_app = typer.Typer(no_args_is_help=True)
counter_app = typer.Typer(no_args_is_help=True)
app.add_typer(worker_app, name="worker")
app.add_typer(jobs_app, name="jobs")
app.add_typer(counter_app, name="counter")


def _run(settings: Settings, main: Callable[[], Awaitable[T]]) -> T:
    """Run ``main`` and release global clients afterwards."""

    async def _wrapped() -> T:
        try:
            return await main()
        finally:
            await dispose_engine()
            if settings.cache_backend == "redis":
                await close_redis()

    return asyncio.run(_wrapped())


def _parse_entity_id(raw: str, *, as_string: bool) -> EntityId:
    if as_string or not raw.lstrip("-").isdigit():
        return raw
    return int(raw)


@worker_app.command("run")
def worker_run(
    batch_size: int | None = typer.Option(None, min=1, help="Jobs claimed per round."),  # noqa: B008
    poll_interval: float | None = typer.Option(  # noqa: B008
        None, min=0.01, help="Seconds to sleep when the queue is empty."
    ),
    worker_name: str | None = typer.Option(None, help="Name recorded on claimed jobs."),  # noqa: B008
) -> None:
    """Work off deferred adjustments until SIGINT or SIGTERM."""
    settings = get_settings()

    async def _main() -> None:
        session_factory = init_engine_and_sessionmaker(settings)
        queue = build_job_queue(settings, session_factory, worker_name=worker_name)
        config = build_counter_config(settings, session_factory=session_factory, executor=queue)

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with suppress(NotImplementedError):
                loop.add_signal_handler(sig, stop.set)

        await queue.run(
            config,
            batch_size=batch_size or settings.worker_batch_size,
            poll_interval_s=poll_interval or settings.worker_poll_interval_s,
            stop=stop,
        )

    _run(settings, _main)


@worker_app.command("once")
def worker_once(
    limit: int | None = typer.Option(None, min=1, help="Maximum jobs to claim."),  # noqa: B008
) -> None:
    """Work off one batch of due adjustments and print the counts."""
    settings = get_settings()

    async def _main() -> dict[str, int]:
        session_factory = init_engine_and_sessionmaker(settings)
        queue = build_job_queue(settings, session_factory)
        config = build_counter_config(settings, session_factory=session_factory, executor=queue)
        result = await queue.work_off(config, limit=limit or settings.worker_batch_size)
        return {"applied": result.applied, "retried": result.retried, "failed": result.failed}

    outcome = _run(settings, _main)
    log.info("worker.once.done", extra={"extra": outcome})
    typer.echo(json.dumps(outcome))


@jobs_app.command("failed")
def jobs_failed() -> None:
    """Print terminally failed adjustments, one JSON object per line."""
    settings = get_settings()

    async def _main() -> list[dict[str, object]]:
        queue = build_job_queue(settings, init_engine_and_sessionmaker(settings))
        return [
            {
                "id": job.id,
                **job.adjustment.to_payload(),
                "attempts": job.attempts,
                "last_error": job.last_error,
                "failed_at": job.failed_at.isoformat() if job.failed_at else None,
            }
            for job in await queue.failed_jobs()
        ]

    for row in _run(settings, _main):
        typer.echo(json.dumps(row))


@jobs_app.command("retry")
def jobs_retry(
    job_id: int | None = typer.Option(None, "--id", help="Only re-queue this job."),  # noqa: B008
) -> None:
    """Re-queue terminally failed adjustments with a fresh attempt budget."""
    settings = get_settings()

    async def _main() -> int:
        queue = build_job_queue(settings, init_engine_and_sessionmaker(settings))
        return await queue.retry_failed(job_id)

    requeued = _run(settings, _main)
    log.info("jobs.retry.done", extra={"extra": {"requeued": requeued, "job_id": job_id}})
    typer.echo(json.dumps({"requeued": requeued}))


@counter_app.command("show")
def counter_show(
    entity_type: str = typer.Argument(..., help="Entity type, e.g. 'articles'."),  # noqa: B008
    entity_id: str = typer.Argument(..., help="Entity primary key."),  # noqa: B008
    attribute: str = typer.Argument(..., help="Counter column."),  # noqa: B008
    string_id: bool = typer.Option(False, help="Treat ENTITY_ID as a string key."),  # noqa: B008
) -> None:
    """Print the effective, cached and durable values of one counter."""
    settings = get_settings()

    async def _main() -> dict[str, object]:
        config = build_counter_config(settings)
        counter = CachedCounter.create(
            entity_type,
            _parse_entity_id(entity_id, as_string=string_id),
            attribute,
            config=config,
        )
        return {
            "cache_key": counter.cache_key,
            "cached": await config.cache.get(counter.cache_key),
            "durable": await counter.value_in_db(),
            "value": await counter.value(),
        }

    typer.echo(json.dumps(_run(settings, _main)))


@counter_app.command("invalidate")
def counter_invalidate(
    entity_type: str = typer.Argument(..., help="Entity type, e.g. 'articles'."),  # noqa: B008
    entity_id: str = typer.Argument(..., help="Entity primary key."),  # noqa: B008
    attribute: str = typer.Argument(..., help="Counter column."),  # noqa: B008
    string_id: bool = typer.Option(False, help="Treat ENTITY_ID as a string key."),  # noqa: B008
) -> None:
    """Drop the cached value so the next write re-seeds it from the database."""
    settings = get_settings()

    async def _main() -> str:
        config = build_counter_config(settings)
        counter = CachedCounter.create(
            entity_type,
            _parse_entity_id(entity_id, as_string=string_id),
            attribute,
            config=config,
        )
        await counter.invalidate_cache()
        return counter.cache_key

    key = _run(settings, _main)
    log.info("counter.invalidated", extra={"cache_key": key})
    typer.echo(json.dumps({"invalidated": key}))


if __name__ == "__main__":
    app()
