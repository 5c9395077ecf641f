"""Test configuration and fixtures."""

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from drydock.config import PoolConfig, Settings
from drydock.db.session import create_session_factory
from drydock.services.pool.manager import PoolManager
from drydock.store.memory import InMemoryPoolStore
from drydock.store.sql import SqlPoolStore
from tests.fakes import (
    ADMIN_KEY,
    INTERNAL_SECRET,
    USER_KEY,
    FakeHealthProbe,
    FakeProvider,
)

@pytest.fixture
def pool_config() -> PoolConfig:
    return PoolConfig(
        min_pool_size=3,
        max_pool_size=10,
        provisioning_timeout_seconds=600,
        max_batch_size=5,
    )


@pytest.fixture
def test_settings(pool_config: PoolConfig) -> Settings:
    """Get test settings with in-memory SQLite."""
    return Settings(
        database={"url": "sqlite+aiosqlite:///:memory:"},
        pool=pool_config,
        security={
            "internal_secret": INTERNAL_SECRET,
            "admin_api_keys": [ADMIN_KEY],
            "api_keys": [USER_KEY],
        },
    )


@pytest.fixture
async def sql_store():
    """SqlPoolStore on a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield SqlPoolStore(create_session_factory(engine))

    await engine.dispose()


@pytest.fixture
def memory_store() -> InMemoryPoolStore:
    return InMemoryPoolStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def probe() -> FakeHealthProbe:
    return FakeHealthProbe()


@pytest.fixture
def pool(test_settings, memory_store, provider, probe) -> PoolManager:
    return PoolManager.build(
        test_settings,
        store=memory_store,
        provider=provider,
        probe=probe,
    )
