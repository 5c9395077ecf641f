"""Database engine and session management using SQLModel async."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

# Import all models to ensure they are registered with SQLModel metadata
import drydock.models  # noqa: F401
from drydock.config import DatabaseConfig

logger = structlog.get_logger()

SessionFactory = Callable[[], AsyncSession]


def create_db_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create the async engine for the configured database URL."""
    return create_async_engine(
        config.url,
        echo=config.echo,
        future=True,
    )


def create_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Create an async session factory bound to ``engine``."""
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def _auto_migrate_sync(conn) -> None:
    """Add columns present in the models but missing from existing tables.

    Only supports column additions. Renames, type changes and removals
    need a real migration.
    """
    inspector = inspect(conn)
    existing_tables = inspector.get_table_names()

    for table in SQLModel.metadata.sorted_tables:
        if table.name not in existing_tables:
            continue

        existing_cols = {c["name"] for c in inspector.get_columns(table.name)}

        for col in table.columns:
            if col.name in existing_cols:
                continue

            col_type = col.type.compile(dialect=conn.dialect)
            nullable = "NULL" if col.nullable else "NOT NULL"
            default_clause = ""
            if col.server_default is not None:
                default_clause = f" DEFAULT {col.server_default.arg}"
            elif col.nullable:
                default_clause = " DEFAULT NULL"

            ddl = f"ALTER TABLE {table.name} ADD COLUMN {col.name} {col_type} {nullable}{default_clause}"
            logger.info(
                "db.auto_migrate.add_column",
                table=table.name,
                column=col.name,
                ddl=ddl,
            )
            conn.execute(text(ddl))


async def init_db(engine: AsyncEngine) -> None:
    """Create the pool tables (and add any new columns) if needed."""
    async with engine.begin() as conn:
        await conn.run_sync(_auto_migrate_sync)
        await conn.run_sync(SQLModel.metadata.create_all)


@asynccontextmanager
async def session_scope(factory: SessionFactory) -> AsyncGenerator[AsyncSession, None]:
    """Open a short-lived session that commits on success.

    Usage:
        async with session_scope(factory) as session:
            result = await session.execute(select(Model))
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
