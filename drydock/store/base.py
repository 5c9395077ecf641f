"""PoolStore base class - persistence abstraction for pool servers.

Every mutation goes through ``transition``: a conditional update that only
applies while the row is still in the expected stage. Components never hold
a lock across calls; a row belongs to whichever caller wins the transition.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import structlog

from drydock.errors import AssignmentConflictError, InvalidTransitionError
from drydock.models.pool_server import PoolServer, PoolStage
from drydock.utils.datetime import utcnow

logger = structlog.get_logger()

# Columns a transition may set alongside the stage
TRANSITION_FIELDS = frozenset(
    {
        "ip_address",
        "ready_at",
        "last_checked_at",
        "assigned_request_id",
        "assigned_at",
        "failed_at",
        "failure_reason",
    }
)


def check_transition(
    from_stage: PoolStage,
    to_stage: PoolStage,
    values: dict[str, Any],
) -> None:
    """Validate a requested transition before it reaches the backend.

    Raises:
        InvalidTransitionError: If the edge is not part of the lifecycle DAG,
            an unknown column is set, or an assignment lacks a request id.
    """
    if not from_stage.can_transition(to_stage):
        raise InvalidTransitionError(
            f"Cannot transition pool server from {from_stage.value} to {to_stage.value}",
            details={"from": from_stage.value, "to": to_stage.value},
        )

    unknown = set(values) - TRANSITION_FIELDS
    if unknown:
        raise InvalidTransitionError(
            f"Transition cannot set fields: {', '.join(sorted(unknown))}",
        )

    has_request_id = bool(values.get("assigned_request_id"))
    if (to_stage == PoolStage.ASSIGNED) != has_request_id:
        raise InvalidTransitionError(
            "assigned_request_id must be set exactly when assigning a server",
        )


class PoolStore(ABC):
    """Abstract pool server store."""

    @abstractmethod
    async def add(self, server: PoolServer) -> PoolServer:
        """Insert a new row. Only PROVISIONING rows may be inserted."""
        ...

    @abstractmethod
    async def get(self, server_id: str) -> PoolServer | None:
        ...

    @abstractmethod
    async def get_by_provider_id(self, provider_server_id: str) -> PoolServer | None:
        ...

    @abstractmethod
    async def find_assigned(self, request_id: str) -> PoolServer | None:
        """Get the server already assigned to ``request_id``, if any."""
        ...

    @abstractmethod
    async def count_by_stage(self) -> dict[PoolStage, int]:
        """Count rows per stage. Every stage is present in the result."""
        ...

    @abstractmethod
    async def list_by_stage(
        self,
        stage: PoolStage,
        *,
        created_before: datetime | None = None,
        limit: int | None = None,
    ) -> list[PoolServer]:
        """List rows in ``stage``, oldest ready first, then oldest created."""
        ...

    @abstractmethod
    async def transition(
        self,
        server_id: str,
        from_stage: PoolStage,
        to_stage: PoolStage,
        **values: Any,
    ) -> PoolServer | None:
        """Atomically move a row from ``from_stage`` to ``to_stage``.

        Returns:
            The updated row, or None if the row is missing or no longer
            in ``from_stage`` (another caller won).

        Raises:
            InvalidTransitionError: If the edge or the values are invalid.
            AssignmentConflictError: If ``assigned_request_id`` already
                belongs to another row.
        """
        ...

    @abstractmethod
    async def touch_checked(self, server_id: str, checked_at: datetime) -> None:
        """Record a readiness probe on a PROVISIONING row."""
        ...

    @abstractmethod
    async def purge_failed(self, failed_before: datetime) -> int:
        """Delete FAILED rows whose ``failed_at`` is older than the cutoff."""
        ...

    async def close(self) -> None:
        """Release backend resources."""

    async def claim_available(
        self,
        request_id: str,
        *,
        max_attempts: int = 3,
    ) -> PoolServer | None:
        """Claim the oldest AVAILABLE row for ``request_id``.

        Uses "pick candidate + conditional update" so it works on backends
        without SELECT ... FOR UPDATE SKIP LOCKED. A request id holds at most
        one server: losing that race returns the server the winner claimed.

        Returns:
            The claimed server, or None if nothing could be claimed.
        """
        for attempt in range(max_attempts):
            candidates = await self.list_by_stage(PoolStage.AVAILABLE, limit=1)
            if not candidates:
                return None

            candidate_id = candidates[0].id
            try:
                claimed = await self.transition(
                    candidate_id,
                    PoolStage.AVAILABLE,
                    PoolStage.ASSIGNED,
                    assigned_request_id=request_id,
                    assigned_at=utcnow(),
                )
            except AssignmentConflictError:
                # A concurrent call for the same request id won
                logger.info(
                    "pool.store.claim_duplicate",
                    server_id=candidate_id,
                    request_id=request_id,
                )
                return await self.find_assigned(request_id)
            if claimed is not None:
                return claimed

            # Lost the race for this row, retry with the next candidate
            logger.debug(
                "pool.store.claim_conflict",
                server_id=candidate_id,
                request_id=request_id,
                attempt=attempt + 1,
            )

        logger.info(
            "pool.store.claim_exhausted",
            request_id=request_id,
            attempts=max_attempts,
        )
        return None
