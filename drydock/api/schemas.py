"""Request/response models shared by the admin and internal routers."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from drydock.models.pool_server import PoolServer


class PoolCounts(BaseModel):
    available: int
    assigned: int
    provisioning: int
    total: int


class PoolStatusResponse(PoolCounts):
    """Raw status object."""

    failed: int
    min_pool_size: int
    max_pool_size: int


class PoolServerResponse(BaseModel):
    id: str
    provider_server_id: str
    ip_address: str | None
    stage: str
    created_at: datetime
    ready_at: datetime | None
    assigned_request_id: str | None
    assigned_at: datetime | None

    @classmethod
    def from_model(cls, server: PoolServer) -> "PoolServerResponse":
        return cls(
            id=server.id,
            provider_server_id=server.provider_server_id,
            ip_address=server.ip_address,
            stage=server.stage.value,
            created_at=server.created_at,
            ready_at=server.ready_at,
            assigned_request_id=server.assigned_request_id,
            assigned_at=server.assigned_at,
        )
