"""PoolManager - wires the pool components around one store handle."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from drydock.services.pool.allocator import Allocator
from drydock.services.pool.provisioner import Provisioner
from drydock.services.pool.readiness import ReadinessTracker
from drydock.services.pool.reaper import Reaper
from drydock.services.pool.reconciler import Reconciler
from drydock.services.pool.status import StatusReporter

if TYPE_CHECKING:
    from drydock.clients.health import HealthProbe
    from drydock.config import Settings
    from drydock.providers.base import Provider
    from drydock.store.base import PoolStore


@dataclass(frozen=True, slots=True)
class PoolManager:
    store: "PoolStore"
    provisioner: Provisioner
    readiness: ReadinessTracker
    reaper: Reaper
    allocator: Allocator
    reconciler: Reconciler
    status: StatusReporter

    @classmethod
    def build(
        cls,
        settings: "Settings",
        *,
        store: "PoolStore",
        provider: "Provider",
        probe: "HealthProbe",
    ) -> "PoolManager":
        pool_config = settings.pool

        provisioner = Provisioner(store, provider, pool_config, settings.provider)
        readiness = ReadinessTracker(
            store,
            provider,
            probe,
            max_concurrency=settings.provider.max_concurrency,
        )
        reaper = Reaper(store, provider, pool_config)

        return cls(
            store=store,
            provisioner=provisioner,
            readiness=readiness,
            reaper=reaper,
            allocator=Allocator(store, pool_config),
            reconciler=Reconciler(store, reaper, provisioner, readiness, pool_config),
            status=StatusReporter(store, pool_config),
        )
