"""StatusReporter - read-only pool counts and health."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from drydock.models.pool_server import PoolStage

if TYPE_CHECKING:
    from drydock.config import PoolConfig
    from drydock.store.base import PoolStore


@dataclass(frozen=True, slots=True)
class PoolHealth:
    healthy: bool
    message: str


@dataclass(frozen=True, slots=True)
class PoolStatus:
    available: int
    assigned: int
    provisioning: int
    failed: int
    min_pool_size: int
    max_pool_size: int

    @property
    def total(self) -> int:
        # FAILED rows are written off and do not count as pool capacity
        return self.available + self.assigned + self.provisioning

    @property
    def health(self) -> PoolHealth:
        if self.available >= self.min_pool_size:
            return PoolHealth(healthy=True, message="Pool healthy")
        return PoolHealth(
            healthy=False,
            message=f"Pool below minimum ({self.available}/{self.min_pool_size})",
        )

    def counts(self) -> dict[str, int]:
        return {
            "available": self.available,
            "assigned": self.assigned,
            "provisioning": self.provisioning,
            "total": self.total,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.counts(),
            "failed": self.failed,
            "min_pool_size": self.min_pool_size,
            "max_pool_size": self.max_pool_size,
        }


class StatusReporter:
    def __init__(self, store: "PoolStore", pool_config: "PoolConfig") -> None:
        self._store = store
        self._config = pool_config

    async def get_pool_status(self) -> PoolStatus:
        counts = await self._store.count_by_stage()
        return PoolStatus(
            available=counts[PoolStage.AVAILABLE],
            assigned=counts[PoolStage.ASSIGNED],
            provisioning=counts[PoolStage.PROVISIONING],
            failed=counts[PoolStage.FAILED],
            min_pool_size=self._config.min_pool_size,
            max_pool_size=self._config.max_pool_size,
        )
