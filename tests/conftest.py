"""Shared test fixtures."""

from collections.abc import AsyncGenerator, Callable
from datetime import date, time
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from install_analytics.db.models import Base, Install
from install_analytics.repositories.installs import InstallRepository
from install_analytics.schemas.installs import InstallRecord


@pytest.fixture
def anyio_backend() -> str:
    """Run async tests on asyncio only."""
    return "asyncio"


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite store with the installs schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'installs.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def make_record() -> Callable[..., InstallRecord]:
    """Factory for install records with overridable fields."""
    counter = iter(range(1, 1_000_000))

    def factory(**overrides: Any) -> InstallRecord:
        n = next(counter)
        fields: dict[str, Any] = {
            "idfv": f"IDFV-{n:06d}",
            "app_name": "X",
            "city": "Kyiv",
            "device_model": "iPhone14,2",
            "install_time": time(12, n % 60, n // 60 % 60),
            "date": date(2024, 1, 1),
            "is_lat": False,
        }
        fields.update(overrides)
        return InstallRecord(**fields)

    return factory


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]):
    """Insert records directly, bypassing the feed."""

    async def insert(records: list[InstallRecord]) -> int:
        async with session_factory() as db:
            written = await InstallRepository().insert_ignore(db, records)
            await db.commit()
            return written

    return insert


@pytest.fixture
def count_installs(session_factory: async_sessionmaker[AsyncSession]):
    async def count() -> int:
        async with session_factory() as db:
            return (await db.execute(select(func.count(Install.id)))).scalar_one()

    return count


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the ASGI app (lifespan not started)."""
    from install_analytics.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
