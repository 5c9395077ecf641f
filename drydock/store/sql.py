"""SqlPoolStore - relational PoolStore backed by SQLModel/SQLAlchemy async.

Each operation runs in its own short transaction. Stage changes are a single
``UPDATE ... WHERE id = :id AND stage = :from_stage`` so concurrent callers
are arbitrated by the database, not by in-process locks.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import delete, func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from drydock.db.session import SessionFactory, session_scope
from drydock.errors import AssignmentConflictError, InvalidTransitionError
from drydock.models.pool_server import PoolServer, PoolStage
from drydock.store.base import PoolStore, check_transition

logger = structlog.get_logger()


class SqlPoolStore(PoolStore):
    """PoolStore on top of an async SQLAlchemy session factory."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory
        self._log = logger.bind(store="sql")

    async def add(self, server: PoolServer) -> PoolServer:
        if server.stage != PoolStage.PROVISIONING:
            raise InvalidTransitionError(
                f"New pool servers must start in provisioning, got {server.stage.value}",
            )

        async with session_scope(self._session_factory) as db:
            db.add(server)
            await db.commit()
            await db.refresh(server)

        return server

    async def get(self, server_id: str) -> PoolServer | None:
        async with session_scope(self._session_factory) as db:
            result = await db.execute(select(PoolServer).where(PoolServer.id == server_id))
            return result.scalars().first()

    async def get_by_provider_id(self, provider_server_id: str) -> PoolServer | None:
        async with session_scope(self._session_factory) as db:
            result = await db.execute(
                select(PoolServer).where(PoolServer.provider_server_id == provider_server_id)
            )
            return result.scalars().first()

    async def find_assigned(self, request_id: str) -> PoolServer | None:
        async with session_scope(self._session_factory) as db:
            result = await db.execute(
                select(PoolServer).where(
                    PoolServer.stage == PoolStage.ASSIGNED,
                    PoolServer.assigned_request_id == request_id,
                )
            )
            return result.scalars().first()

    async def count_by_stage(self) -> dict[PoolStage, int]:
        counts = {stage: 0 for stage in PoolStage}

        async with session_scope(self._session_factory) as db:
            result = await db.execute(
                select(PoolServer.stage, func.count(PoolServer.id)).group_by(PoolServer.stage)
            )
            for stage, count in result.all():
                counts[PoolStage(stage)] = count

        return counts

    async def list_by_stage(
        self,
        stage: PoolStage,
        *,
        created_before: datetime | None = None,
        limit: int | None = None,
    ) -> list[PoolServer]:
        stmt = select(PoolServer).where(PoolServer.stage == stage)
        if created_before is not None:
            stmt = stmt.where(PoolServer.created_at < created_before)
        stmt = stmt.order_by(PoolServer.ready_at.asc(), PoolServer.created_at.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        async with session_scope(self._session_factory) as db:
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def transition(
        self,
        server_id: str,
        from_stage: PoolStage,
        to_stage: PoolStage,
        **values: Any,
    ) -> PoolServer | None:
        check_transition(from_stage, to_stage, values)

        async with session_scope(self._session_factory) as db:
            stmt = (
                update(PoolServer)
                .where(
                    PoolServer.id == server_id,
                    PoolServer.stage == from_stage,
                )
                .values(stage=to_stage, **values)
            )
            try:
                update_result = await db.execute(stmt)
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                if to_stage != PoolStage.ASSIGNED:
                    raise
                raise AssignmentConflictError(
                    details={"request_id": values.get("assigned_request_id")},
                ) from exc

            if update_result.rowcount != 1:
                self._log.debug(
                    "pool.store.transition_conflict",
                    server_id=server_id,
                    from_stage=from_stage.value,
                    to_stage=to_stage.value,
                )
                return None

            result = await db.execute(select(PoolServer).where(PoolServer.id == server_id))
            updated = result.scalars().first()

        self._log.debug(
            "pool.store.transitioned",
            server_id=server_id,
            from_stage=from_stage.value,
            to_stage=to_stage.value,
        )
        return updated

    async def touch_checked(self, server_id: str, checked_at: datetime) -> None:
        async with session_scope(self._session_factory) as db:
            await db.execute(
                update(PoolServer)
                .where(
                    PoolServer.id == server_id,
                    PoolServer.stage == PoolStage.PROVISIONING,
                )
                .values(
                    last_checked_at=checked_at,
                    check_attempts=PoolServer.check_attempts + 1,
                )
            )

    async def purge_failed(self, failed_before: datetime) -> int:
        async with session_scope(self._session_factory) as db:
            result = await db.execute(
                delete(PoolServer).where(
                    PoolServer.stage == PoolStage.FAILED,
                    PoolServer.failed_at < failed_before,
                )
            )
            return result.rowcount or 0
