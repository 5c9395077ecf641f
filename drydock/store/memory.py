"""InMemoryPoolStore - process-local PoolStore for tests and dry runs."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any

from drydock.errors import AssignmentConflictError, InvalidTransitionError
from drydock.models.pool_server import PoolServer, PoolStage
from drydock.store.base import PoolStore, check_transition


class InMemoryPoolStore(PoolStore):
    """PoolStore keeping rows as plain dicts.

    Callers always receive fresh PoolServer copies, so mutating a returned
    object never changes stored state.
    """

    def __init__(self) -> None:
        self._rows: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _to_model(row: dict[str, Any]) -> PoolServer:
        return PoolServer(**row)

    def _sort_key(self, row: dict[str, Any]) -> tuple:
        # Mirrors ORDER BY ready_at, created_at with NULLs first (SQLite)
        ready_at = row["ready_at"]
        return (ready_at is not None, ready_at or row["created_at"], row["created_at"])

    async def add(self, server: PoolServer) -> PoolServer:
        if server.stage != PoolStage.PROVISIONING:
            raise InvalidTransitionError(
                f"New pool servers must start in provisioning, got {server.stage.value}",
            )

        async with self._lock:
            if server.id in self._rows:
                raise ValueError(f"Duplicate pool server id: {server.id}")
            if any(
                row["provider_server_id"] == server.provider_server_id
                for row in self._rows.values()
            ):
                raise ValueError(
                    f"Duplicate provider server id: {server.provider_server_id}"
                )
            self._rows[server.id] = server.model_dump()
            return self._to_model(self._rows[server.id])

    async def get(self, server_id: str) -> PoolServer | None:
        row = self._rows.get(server_id)
        return self._to_model(row) if row is not None else None

    async def get_by_provider_id(self, provider_server_id: str) -> PoolServer | None:
        for row in self._rows.values():
            if row["provider_server_id"] == provider_server_id:
                return self._to_model(row)
        return None

    async def find_assigned(self, request_id: str) -> PoolServer | None:
        for row in self._rows.values():
            if row["stage"] == PoolStage.ASSIGNED and row["assigned_request_id"] == request_id:
                return self._to_model(row)
        return None

    async def count_by_stage(self) -> dict[PoolStage, int]:
        counts = {stage: 0 for stage in PoolStage}
        for row in self._rows.values():
            counts[row["stage"]] += 1
        return counts

    async def list_by_stage(
        self,
        stage: PoolStage,
        *,
        created_before: datetime | None = None,
        limit: int | None = None,
    ) -> list[PoolServer]:
        rows = [
            row
            for row in self._rows.values()
            if row["stage"] == stage
            and (created_before is None or row["created_at"] < created_before)
        ]
        rows.sort(key=self._sort_key)
        if limit is not None:
            rows = rows[:limit]
        return [self._to_model(row) for row in rows]

    async def transition(
        self,
        server_id: str,
        from_stage: PoolStage,
        to_stage: PoolStage,
        **values: Any,
    ) -> PoolServer | None:
        check_transition(from_stage, to_stage, values)

        async with self._lock:
            row = self._rows.get(server_id)
            if row is None or row["stage"] != from_stage:
                return None
            request_id = values.get("assigned_request_id")
            if request_id is not None and any(
                other["assigned_request_id"] == request_id
                for other_id, other in self._rows.items()
                if other_id != server_id
            ):
                raise AssignmentConflictError(details={"request_id": request_id})
            row.update(values)
            row["stage"] = to_stage
            return self._to_model(row)

    async def touch_checked(self, server_id: str, checked_at: datetime) -> None:
        async with self._lock:
            row = self._rows.get(server_id)
            if row is None or row["stage"] != PoolStage.PROVISIONING:
                return
            row["last_checked_at"] = checked_at
            row["check_attempts"] += 1

    async def purge_failed(self, failed_before: datetime) -> int:
        async with self._lock:
            doomed = [
                server_id
                for server_id, row in self._rows.items()
                if row["stage"] == PoolStage.FAILED
                and row["failed_at"] is not None
                and row["failed_at"] < failed_before
            ]
            for server_id in doomed:
                del self._rows[server_id]
            return len(doomed)
