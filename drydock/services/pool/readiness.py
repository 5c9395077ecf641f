"""ReadinessTracker - promotes booted pool servers to AVAILABLE."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from drydock.errors import DrydockError
from drydock.models.pool_server import PoolServer, PoolStage
from drydock.utils.datetime import utcnow

if TYPE_CHECKING:
    from drydock.clients.health import HealthProbe
    from drydock.providers.base import Provider
    from drydock.store.base import PoolStore

logger = structlog.get_logger()


@dataclass
class ReadinessResult:
    promoted: int = 0
    pending: int = 0
    errors: list[str] = field(default_factory=list)


class ReadinessTracker:
    """Probes PROVISIONING servers once per pass.

    A server is ready when the provider reports it running AND the health
    probe answers. "Not yet" and probe errors only bump ``last_checked_at``.
    """

    def __init__(
        self,
        store: "PoolStore",
        provider: "Provider",
        probe: "HealthProbe",
        *,
        max_concurrency: int = 4,
    ) -> None:
        self._store = store
        self._provider = provider
        self._probe = probe
        self._max_concurrency = max_concurrency
        self._log = logger.bind(component="readiness_tracker")

    async def check_provisioning(self) -> ReadinessResult:
        """Probe every PROVISIONING server and promote the ready ones.

        A failure on one row is recorded in ``errors`` and never stops the
        other rows.
        """
        result = ReadinessResult()
        servers = await self._store.list_by_stage(PoolStage.PROVISIONING)
        if not servers:
            return result

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _check(server: PoolServer) -> None:
            async with semaphore:
                try:
                    promoted = await self._check_one(server)
                except Exception as exc:
                    result.errors.append(f"Readiness check failed for {server.id}: {exc}")
                    self._log.exception(
                        "pool.readiness.check_failed",
                        server_id=server.id,
                        error=str(exc),
                    )
                    promoted = False
            if promoted:
                result.promoted += 1
            else:
                result.pending += 1

        await asyncio.gather(*(_check(server) for server in servers))

        self._log.info(
            "pool.readiness.pass_complete",
            checked=len(servers),
            promoted=result.promoted,
            pending=result.pending,
            errors=len(result.errors),
        )
        return result

    async def _check_one(self, server: PoolServer) -> bool:
        try:
            ready, ip_address = await self._probe_server(server)
        except DrydockError as exc:
            self._log.info(
                "pool.readiness.probe_error",
                server_id=server.id,
                error=exc.message,
            )
            ready, ip_address = False, None
        except Exception as exc:
            self._log.warning(
                "pool.readiness.probe_error",
                server_id=server.id,
                error=repr(exc),
            )
            ready, ip_address = False, None

        now = utcnow()
        if not ready:
            await self._store.touch_checked(server.id, now)
            return False

        promoted = await self._store.transition(
            server.id,
            PoolStage.PROVISIONING,
            PoolStage.AVAILABLE,
            ready_at=now,
            last_checked_at=now,
            ip_address=ip_address,
        )
        if promoted is None:
            # Reaped or promoted by a concurrent pass
            self._log.debug("pool.readiness.promote_conflict", server_id=server.id)
            return False

        self._log.info(
            "pool.readiness.promoted",
            server_id=server.id,
            ip_address=ip_address,
            boot_seconds=round((now - server.created_at).total_seconds(), 1),
        )
        return True

    async def _probe_server(self, server: PoolServer) -> tuple[bool, str | None]:
        info = await self._provider.get_server(server.provider_server_id)
        if info is None or not info.is_running:
            return False, None

        ip_address = info.ip_address or server.ip_address
        if not ip_address:
            return False, None

        return await self._probe.check(ip_address), ip_address

    async def mark_ready(self, provider_server_id: str) -> PoolServer | None:
        """Promote a server on an explicit boot-complete signal.

        A server is only promoted with a known address: a row without one
        takes it from the provider.

        Returns:
            The promoted server, or None if it is unknown, not PROVISIONING
            or has no address yet.
        """
        server = await self._store.get_by_provider_id(provider_server_id)
        if server is None or server.stage != PoolStage.PROVISIONING:
            self._log.info(
                "pool.readiness.mark_ready_ignored",
                provider_server_id=provider_server_id,
                stage=server.stage.value if server else None,
            )
            return None

        ip_address = server.ip_address or await self._lookup_address(provider_server_id)
        if not ip_address:
            self._log.info(
                "pool.readiness.mark_ready_no_address",
                server_id=server.id,
                provider_server_id=provider_server_id,
            )
            return None

        now = utcnow()
        promoted = await self._store.transition(
            server.id,
            PoolStage.PROVISIONING,
            PoolStage.AVAILABLE,
            ready_at=now,
            last_checked_at=now,
            ip_address=ip_address,
        )
        if promoted is not None:
            self._log.info(
                "pool.readiness.marked_ready",
                server_id=server.id,
                provider_server_id=provider_server_id,
                ip_address=ip_address,
            )
        return promoted

    async def _lookup_address(self, provider_server_id: str) -> str | None:
        try:
            info = await self._provider.get_server(provider_server_id)
        except DrydockError as exc:
            self._log.info(
                "pool.readiness.address_lookup_failed",
                provider_server_id=provider_server_id,
                error=exc.message,
            )
            return None
        return info.ip_address if info is not None else None
