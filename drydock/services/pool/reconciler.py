"""Reconciler - one pool maintenance pass.

Steps (each isolated, a failure is recorded and the pass continues):
1. Reap stale PROVISIONING servers, purge old FAILED rows
2. Compute shortfall from live counts
3. Provision min(shortfall, max_batch_size) servers
4. Probe PROVISIONING servers for readiness

No lock is taken. Overlapping passes may overshoot min_pool_size (and
max_pool_size) by at most one batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from drydock.models.pool_server import PoolStage

if TYPE_CHECKING:
    from drydock.config import PoolConfig
    from drydock.services.pool.provisioner import Provisioner
    from drydock.services.pool.readiness import ReadinessTracker
    from drydock.services.pool.reaper import Reaper
    from drydock.store.base import PoolStore

logger = structlog.get_logger()


@dataclass
class MaintainResult:
    provisioned: int = 0
    cleaned: int = 0
    purged: int = 0
    promoted: int = 0
    # Provider ids of reaped servers whose VM deletion failed
    orphaned: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class Reconciler:
    """Runs maintenance passes over the persisted pool state."""

    def __init__(
        self,
        store: "PoolStore",
        reaper: "Reaper",
        provisioner: "Provisioner",
        readiness: "ReadinessTracker",
        pool_config: "PoolConfig",
    ) -> None:
        self._store = store
        self._reaper = reaper
        self._provisioner = provisioner
        self._readiness = readiness
        self._config = pool_config
        self._log = logger.bind(component="reconciler")

    async def compute_shortfall(self) -> int:
        counts = await self._store.count_by_stage()
        supply = counts[PoolStage.AVAILABLE] + counts[PoolStage.PROVISIONING]
        return max(0, self._config.min_pool_size - supply)

    async def maintain_pool(self) -> MaintainResult:
        """Execute one maintenance pass."""
        result = MaintainResult()
        self._log.info("pool.maintain.start")

        try:
            reaped = await self._reaper.reap_stale()
            result.cleaned = reaped.cleaned
            result.orphaned = reaped.orphaned
        except Exception as exc:
            self._record_failure(result, "reap", exc)

        try:
            result.purged = await self._reaper.purge_failed()
        except Exception as exc:
            self._record_failure(result, "purge", exc)

        try:
            shortfall = await self.compute_shortfall()
            if shortfall > 0:
                batch = min(shortfall, self._config.max_batch_size)
                self._log.info(
                    "pool.maintain.replenishing",
                    shortfall=shortfall,
                    batch=batch,
                )
                provisioned = await self._provisioner.provision_servers(batch)
                result.provisioned = provisioned.provisioned
                result.errors.extend(provisioned.errors)
        except Exception as exc:
            self._record_failure(result, "provision", exc)

        try:
            readiness = await self._readiness.check_provisioning()
            result.promoted = readiness.promoted
            result.errors.extend(readiness.errors)
        except Exception as exc:
            self._record_failure(result, "readiness", exc)

        self._log.info(
            "pool.maintain.complete",
            provisioned=result.provisioned,
            cleaned=result.cleaned,
            purged=result.purged,
            promoted=result.promoted,
            orphaned=len(result.orphaned),
            errors=len(result.errors),
        )
        return result

    def _record_failure(self, result: MaintainResult, step: str, exc: Exception) -> None:
        result.errors.append(f"{step} step failed: {exc}")
        self._log.exception(
            "pool.maintain.step_failed",
            step=step,
            error=str(exc),
        )
