"""Reaper - writes off pool servers stuck in PROVISIONING.

Responsibilities:
1. Mark PROVISIONING rows older than provisioning_timeout as FAILED
2. Best-effort delete of the underlying VM
3. Purge FAILED rows past their retention window
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog

from drydock.models.pool_server import PoolServer, PoolStage
from drydock.utils.datetime import utcnow

if TYPE_CHECKING:
    from drydock.config import PoolConfig
    from drydock.providers.base import Provider
    from drydock.store.base import PoolStore

logger = structlog.get_logger()

TIMEOUT_REASON = "provisioning_timeout"


@dataclass
class ReapResult:
    cleaned: int = 0
    # Provider ids whose VM deletion failed and may still exist
    orphaned: list[str] = field(default_factory=list)


class Reaper:
    """Retires stale PROVISIONING servers. Never touches AVAILABLE or ASSIGNED."""

    def __init__(
        self,
        store: "PoolStore",
        provider: "Provider",
        pool_config: "PoolConfig",
    ) -> None:
        self._store = store
        self._provider = provider
        self._config = pool_config
        self._log = logger.bind(component="reaper")

    async def reap_stale(self) -> ReapResult:
        """Fail every PROVISIONING server past the timeout."""
        result = ReapResult()
        now = utcnow()
        cutoff = now - timedelta(seconds=self._config.provisioning_timeout_seconds)

        stale = await self._store.list_by_stage(PoolStage.PROVISIONING, created_before=cutoff)
        for server in stale:
            failed = await self._store.transition(
                server.id,
                PoolStage.PROVISIONING,
                PoolStage.FAILED,
                failed_at=now,
                failure_reason=TIMEOUT_REASON,
            )
            if failed is None:
                # Promoted or reaped concurrently
                continue

            result.cleaned += 1
            self._log.warning(
                "pool.reaper.failed",
                server_id=server.id,
                provider_server_id=server.provider_server_id,
                age_seconds=round((now - server.created_at).total_seconds()),
            )

            if not await self._delete_vm(server):
                result.orphaned.append(server.provider_server_id)

        if stale:
            self._log.info(
                "pool.reaper.pass_complete",
                stale=len(stale),
                cleaned=result.cleaned,
                orphaned=len(result.orphaned),
            )
        return result

    async def _delete_vm(self, server: PoolServer) -> bool:
        try:
            await self._provider.delete_server(server.provider_server_id)
        except Exception as exc:
            self._log.warning(
                "pool.reaper.delete_failed",
                server_id=server.id,
                provider_server_id=server.provider_server_id,
                error=str(exc),
            )
            return False
        return True

    async def purge_failed(self) -> int:
        """Delete FAILED rows older than failed_retention_seconds."""
        cutoff = utcnow() - timedelta(seconds=self._config.failed_retention_seconds)
        purged = await self._store.purge_failed(cutoff)
        if purged:
            self._log.info("pool.reaper.purged", count=purged)
        return purged
