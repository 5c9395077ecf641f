"""Pool lifecycle management for the FastAPI lifespan and CLI commands.

Opens the database, provider client and health probe, hands out a
PoolManager, and closes everything it opened on exit.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog

from drydock.clients.health import HealthProbe
from drydock.db.session import create_db_engine, create_session_factory, init_db
from drydock.providers import create_provider
from drydock.services.pool.manager import PoolManager
from drydock.store.sql import SqlPoolStore

if TYPE_CHECKING:
    from drydock.config import Settings
    from drydock.providers.base import Provider
    from drydock.store.base import PoolStore

logger = structlog.get_logger()


@asynccontextmanager
async def open_pool_manager(
    settings: "Settings",
    *,
    store: "PoolStore | None" = None,
    provider: "Provider | None" = None,
    probe: HealthProbe | None = None,
) -> AsyncIterator[PoolManager]:
    """Open pool resources. Injected resources are left open on exit."""
    engine = None
    owned_store = store is None
    owned_provider = provider is None
    owned_probe = probe is None

    if store is None:
        engine = create_db_engine(settings.database)
        await init_db(engine)
        store = SqlPoolStore(create_session_factory(engine))
    if provider is None:
        provider = create_provider(settings.provider)
    if probe is None:
        probe = HealthProbe(settings.health_probe)

    logger.info(
        "pool.lifecycle.opened",
        provider=settings.provider.type,
        min_pool_size=settings.pool.min_pool_size,
        max_pool_size=settings.pool.max_pool_size,
    )

    try:
        yield PoolManager.build(settings, store=store, provider=provider, probe=probe)
    finally:
        if owned_probe:
            await probe.close()
        if owned_provider:
            await provider.close()
        if owned_store:
            await store.close()
        if engine is not None:
            await engine.dispose()
        logger.info("pool.lifecycle.closed")
