"""Provisioner - requests new pool servers from the cloud provider.

Each unit is independent: a failed create is recorded in ``errors`` and the
rest of the batch carries on. Rows are only written for servers the provider
actually created.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from drydock.errors import ProviderError
from drydock.models.pool_server import PoolServer, PoolStage
from drydock.utils.datetime import utcnow

if TYPE_CHECKING:
    from drydock.config import PoolConfig, ProviderConfig
    from drydock.providers.base import Provider
    from drydock.store.base import PoolStore

logger = structlog.get_logger()


@dataclass
class ProvisionResult:
    """Outcome of one provisioning batch."""

    provisioned: int = 0
    errors: list[str] = field(default_factory=list)
    servers: list[PoolServer] = field(default_factory=list)


def capacity_message(allowed: int, max_pool_size: int) -> str:
    return f"Can only provision {allowed} servers (max pool size: {max_pool_size})"


class Provisioner:
    """Creates VMs and registers them as PROVISIONING pool servers."""

    def __init__(
        self,
        store: "PoolStore",
        provider: "Provider",
        pool_config: "PoolConfig",
        provider_config: "ProviderConfig",
    ) -> None:
        self._store = store
        self._provider = provider
        self._pool_config = pool_config
        self._provider_config = provider_config
        self._log = logger.bind(component="provisioner")
        self._user_data = self._load_user_data()

    def _load_user_data(self) -> str | None:
        path = self._provider_config.user_data_file
        if not path:
            return None
        return Path(path).read_text()

    async def current_total(self) -> int:
        """Servers counting against max_pool_size (everything but FAILED)."""
        counts = await self._store.count_by_stage()
        return (
            counts[PoolStage.AVAILABLE]
            + counts[PoolStage.PROVISIONING]
            + counts[PoolStage.ASSIGNED]
        )

    async def provision_servers(self, count: int) -> ProvisionResult:
        """Provision up to ``count`` new pool servers.

        The request is clipped to the remaining headroom under
        max_pool_size; clipping is reported as a capacity error.
        """
        result = ProvisionResult()
        if count <= 0:
            return result

        max_pool_size = self._pool_config.max_pool_size
        headroom = max(0, max_pool_size - await self.current_total())
        to_provision = min(count, headroom)

        if to_provision < count:
            result.errors.append(capacity_message(to_provision, max_pool_size))
            self._log.warning(
                "pool.provision.capacity_limited",
                requested=count,
                allowed=to_provision,
                max_pool_size=max_pool_size,
            )

        if to_provision == 0:
            return result

        self._log.info("pool.provision.start", count=to_provision)

        semaphore = asyncio.Semaphore(self._provider_config.max_concurrency)

        async def _provision_unit() -> None:
            async with semaphore:
                try:
                    server = await self._provision_one()
                except ProviderError as exc:
                    result.errors.append(f"Provider error: {exc.message}")
                    self._log.warning("pool.provision.provider_failed", error=exc.message)
                    return
                except Exception as exc:
                    result.errors.append(f"Provisioning failed: {exc}")
                    self._log.exception("pool.provision.unit_failed", error=str(exc))
                    return

                result.provisioned += 1
                result.servers.append(server)

        await asyncio.gather(*(_provision_unit() for _ in range(to_provision)))

        self._log.info(
            "pool.provision.complete",
            requested=count,
            provisioned=result.provisioned,
            errors=len(result.errors),
        )
        return result

    async def _provision_one(self) -> PoolServer:
        """Create one VM and record it. Raises on failure."""
        pool_id = f"pool-{uuid.uuid4().hex[:12]}"
        labels = {
            **self._provider_config.labels,
            "type": "pool",
            "pool_id": pool_id,
        }

        info = await self._provider.create_server(
            f"drydock-{pool_id}",
            labels=labels,
            user_data=self._user_data,
        )

        server = PoolServer(
            id=pool_id,
            provider_server_id=info.server_id,
            ip_address=info.ip_address,
            stage=PoolStage.PROVISIONING,
            created_at=utcnow(),
        )

        try:
            server = await self._store.add(server)
        except Exception:
            # VM exists but has no row: delete it before re-raising
            self._log.exception(
                "pool.provision.record_failed",
                pool_id=pool_id,
                provider_server_id=info.server_id,
            )
            await self._discard_server(info.server_id)
            raise

        self._log.info(
            "pool.provision.created",
            pool_id=pool_id,
            provider_server_id=info.server_id,
            ip_address=info.ip_address,
        )
        return server

    async def _discard_server(self, provider_server_id: str) -> None:
        try:
            await self._provider.delete_server(provider_server_id)
        except Exception as exc:
            self._log.warning(
                "pool.provision.discard_failed",
                provider_server_id=provider_server_id,
                error=str(exc),
            )
