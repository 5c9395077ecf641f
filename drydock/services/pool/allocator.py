"""Allocator - hands out AVAILABLE pool servers, exactly once each."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

import structlog

from drydock.errors import ValidationError
from drydock.models.pool_server import PoolServer

if TYPE_CHECKING:
    from drydock.config import PoolConfig
    from drydock.store.base import PoolStore

logger = structlog.get_logger()


class NotAvailableType(Enum):
    """Sentinel type for an empty pool."""

    NOT_AVAILABLE = "not_available"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NotAvailable"


NotAvailable = NotAvailableType.NOT_AVAILABLE


class Allocator:
    """Claims one AVAILABLE server per request."""

    def __init__(self, store: "PoolStore", pool_config: "PoolConfig") -> None:
        self._store = store
        self._config = pool_config
        self._log = logger.bind(component="allocator")

    async def assign(self, request_id: str) -> PoolServer | NotAvailableType:
        """Assign a ready server to ``request_id``.

        Repeating a request id, concurrently or not, returns the server it
        holds; the store keeps request ids unique across rows. Losing a
        race for the last server is not an error: the caller gets NotAvailable
        and falls back to on-demand provisioning.
        """
        if not request_id or not request_id.strip():
            raise ValidationError("request_id must be a non-empty string")

        existing = await self._store.find_assigned(request_id)
        if existing is not None:
            self._log.info(
                "pool.assign.existing",
                request_id=request_id,
                server_id=existing.id,
            )
            return existing

        server = await self._store.claim_available(
            request_id,
            max_attempts=self._config.claim_max_attempts,
        )
        if server is None:
            # A concurrent call for this request id may have taken the last server
            server = await self._store.find_assigned(request_id)
        if server is None:
            self._log.info("pool.assign.not_available", request_id=request_id)
            return NotAvailable

        self._log.info(
            "pool.assign.success",
            request_id=request_id,
            server_id=server.id,
            provider_server_id=server.provider_server_id,
        )
        return server
