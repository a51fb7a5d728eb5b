# tests/conftest.py
from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path

import fakeredis.aioredis
import pytest
import pytest_asyncio
import redis.exceptions
from sqlalchemy import Integer, String, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Mapped, mapped_column

from cached_counter.adapters.executors.in_process import InProcessExecutor
from cached_counter.adapters.repositories.counter_store import SessionScopedCounterStore
from cached_counter.adapters.uow.sqlalchemy_uow import SqlAlchemyUnitOfWork
from cached_counter.application.counter.config import CounterConfig
from cached_counter.config.settings import get_settings
from cached_counter.infrastructure.caching.redis_backend import RedisCacheBackend
from cached_counter.infrastructure.database.models import counter_job  # noqa: F401
from cached_counter.infrastructure.database.models.base import Base


class Article(Base):
    """Host-application model with an integer counter column."""

    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(length=200), nullable=False)
    num_read: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Tag(Base):
    """Host-application model keyed by a string slug."""

    __tablename__ = "tags"

    slug: Mapped[str] = mapped_column(String(length=64), primary_key=True)
    uses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


COUNTER_MODELS = {"articles": Article, "tags": Tag}


class DownCache:
    """Cache whose every operation fails with a transient Redis error."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def _fail(self, op: str) -> None:
        self.calls.append(op)
        raise redis.exceptions.ConnectionError(f"{op}: connection refused")

    async def incr(self, key: str) -> int | None:
        self._fail("incr")

    async def decr(self, key: str) -> int | None:
        self._fail("decr")

    async def add(self, key: str, value: int) -> bool:
        self._fail("add")
        return False

    async def get(self, key: str) -> int | None:
        self._fail("get")

    async def delete(self, key: str) -> None:
        self._fail("delete")

    def is_transient(self, exc: BaseException) -> bool:
        return isinstance(exc, redis.exceptions.ConnectionError)


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    get_settings.cache_clear()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'counters.db'}"


@pytest_asyncio.fixture
async def engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def article_id(session_factory: async_sessionmaker[AsyncSession]) -> int:
    """Insert the article used by most scenarios: ``num_read == 1``."""
    async with session_factory() as session, session.begin():
        session.add(Article(id=1, title="hello", num_read=1))
    return 1


@pytest.fixture
def read_num_read(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[int], Awaitable[int]]:
    """Return a helper reading ``articles.num_read`` straight from the database."""

    async def _read(article_id: int) -> int:
        async with session_factory() as session:
            return (
                await session.execute(select(Article.num_read).where(Article.id == article_id))
            ).scalar_one()

    return _read


@pytest_asyncio.fixture
async def fake_redis() -> AsyncGenerator[fakeredis.aioredis.FakeRedis, None]:
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    await client.flushall()
    yield client
    await client.aclose()


@pytest.fixture
def cache(fake_redis: fakeredis.aioredis.FakeRedis) -> RedisCacheBackend:
    return RedisCacheBackend(fake_redis)


@pytest.fixture
def executor() -> InProcessExecutor:
    return InProcessExecutor(retry_base_s=0.0, retry_cap_s=0.0)


@pytest.fixture
def config(
    cache: RedisCacheBackend,
    session_factory: async_sessionmaker[AsyncSession],
    executor: InProcessExecutor,
) -> CounterConfig:
    config = CounterConfig(
        cache=cache,
        store=SessionScopedCounterStore(session_factory, models=COUNTER_MODELS),
        executor=executor,
    )
    executor.bind(config)
    return config


@pytest.fixture
def make_uow(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[], SqlAlchemyUnitOfWork]:
    return lambda: SqlAlchemyUnitOfWork(session_factory=session_factory, models=COUNTER_MODELS)


@pytest.fixture
def counter_models() -> dict[str, type[Base]]:
    return dict(COUNTER_MODELS)


@pytest.fixture
def down_cache() -> DownCache:
    return DownCache()


@pytest_asyncio.fixture
async def tag_slug(session_factory: async_sessionmaker[AsyncSession]) -> str:
    """Insert a string-keyed row: ``tags['python'].uses == 5``."""
    async with session_factory() as session, session.begin():
        session.add(Tag(slug="python", uses=5))
    return "python"
