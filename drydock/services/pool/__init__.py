"""Pool lifecycle services.

This module provides:
- Provisioner: creates VMs and records them as PROVISIONING
- ReadinessTracker: promotes booted servers to AVAILABLE
- Reaper: fails servers stuck in PROVISIONING
- Allocator: hands out AVAILABLE servers exactly once
- Reconciler: one maintenance pass over all of the above
- StatusReporter: counts and health

Usage:
    from drydock.services.pool import open_pool_manager

    async with open_pool_manager(settings) as pool:
        result = await pool.reconciler.maintain_pool()
"""

from drydock.services.pool.allocator import Allocator, NotAvailable, NotAvailableType
from drydock.services.pool.lifecycle import open_pool_manager
from drydock.services.pool.manager import PoolManager
from drydock.services.pool.provisioner import ProvisionResult, Provisioner
from drydock.services.pool.readiness import ReadinessResult, ReadinessTracker
from drydock.services.pool.reaper import Reaper, ReapResult
from drydock.services.pool.reconciler import MaintainResult, Reconciler
from drydock.services.pool.status import PoolHealth, PoolStatus, StatusReporter

__all__ = [
    "Allocator",
    "MaintainResult",
    "NotAvailable",
    "NotAvailableType",
    "PoolHealth",
    "PoolManager",
    "PoolStatus",
    "ProvisionResult",
    "Provisioner",
    "ReadinessResult",
    "ReadinessTracker",
    "ReapResult",
    "Reaper",
    "Reconciler",
    "StatusReporter",
    "open_pool_manager",
]
