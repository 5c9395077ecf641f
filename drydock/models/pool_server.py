"""PoolServer data model.

PoolServer represents one pre-provisioned VM.
- Created by the provisioner in PROVISIONING
- Promoted to AVAILABLE once booted and healthy
- Handed out exactly once (ASSIGNED) or written off (FAILED)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from drydock.utils.datetime import utcnow

# Timestamps are naive UTC (see utcnow); the column must not demand tzinfo
NaiveUTC = DateTime(timezone=False)


class PoolStage(str, Enum):
    """Pool server lifecycle stage."""

    PROVISIONING = "provisioning"  # VM requested, still booting
    AVAILABLE = "available"  # Booted and healthy, ready to hand out
    ASSIGNED = "assigned"  # Handed to a requester (terminal)
    FAILED = "failed"  # Never became ready (terminal)

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self]

    def can_transition(self, target: "PoolStage") -> bool:
        """Whether ``self -> target`` is an edge of the lifecycle DAG."""
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[PoolStage, frozenset[PoolStage]] = {
    PoolStage.PROVISIONING: frozenset({PoolStage.AVAILABLE, PoolStage.FAILED}),
    PoolStage.AVAILABLE: frozenset({PoolStage.ASSIGNED}),
    PoolStage.ASSIGNED: frozenset(),
    PoolStage.FAILED: frozenset(),
}


class PoolServer(SQLModel, table=True):
    """PoolServer - one pre-booted VM tracked by the pool."""

    __tablename__ = "pool_servers"

    id: str = Field(primary_key=True)
    provider_server_id: str = Field(index=True, unique=True)
    ip_address: str | None = Field(default=None)

    stage: PoolStage = Field(default=PoolStage.PROVISIONING, index=True)

    # Timestamps, stored as naive UTC
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=NaiveUTC)
    ready_at: datetime | None = Field(default=None, sa_type=NaiveUTC)
    last_checked_at: datetime | None = Field(default=None, sa_type=NaiveUTC)
    check_attempts: int = Field(default=0)

    # Assignment (set iff stage == ASSIGNED)
    # Unique: one server per request id, NULLs do not collide
    assigned_request_id: str | None = Field(default=None, index=True, unique=True)
    assigned_at: datetime | None = Field(default=None, sa_type=NaiveUTC)

    # Failure bookkeeping
    failed_at: datetime | None = Field(default=None, sa_type=NaiveUTC)
    failure_reason: str | None = Field(default=None)

    @property
    def is_available(self) -> bool:
        return self.stage == PoolStage.AVAILABLE

    @property
    def age_seconds(self) -> float:
        return (utcnow() - self.created_at).total_seconds()
