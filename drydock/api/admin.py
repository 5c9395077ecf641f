"""Admin pool endpoints.

POST /admin/pool/provision - provision servers into the pool
GET  /admin/pool/status    - pool counts, limits and health
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from drydock.api.dependencies import PoolDep, require_admin
from drydock.api.schemas import PoolCounts
from drydock.errors import ValidationError

router = APIRouter(dependencies=[Depends(require_admin)])

MIN_PROVISION_COUNT = 1
MAX_PROVISION_COUNT = 10


class ProvisionRequest(BaseModel):
    count: int = 1


class ProvisionResponse(BaseModel):
    success: bool
    provisioned: int
    errors: list[str]
    pool: PoolCounts


class PoolConfigResponse(BaseModel):
    min_pool_size: int
    max_pool_size: int


class HealthResponse(BaseModel):
    healthy: bool
    message: str


class AdminStatusResponse(BaseModel):
    pool: PoolCounts
    config: PoolConfigResponse
    health: HealthResponse


@router.post("/provision", response_model=ProvisionResponse)
async def provision_pool(
    pool: PoolDep,
    request: ProvisionRequest | None = None,
) -> ProvisionResponse:
    """Provision ``count`` servers (1-10, default 1), clipped to max pool size."""
    count = request.count if request is not None else 1
    if not MIN_PROVISION_COUNT <= count <= MAX_PROVISION_COUNT:
        raise ValidationError(
            f"count must be in range [{MIN_PROVISION_COUNT}, {MAX_PROVISION_COUNT}]",
            details={
                "count": count,
                "min": MIN_PROVISION_COUNT,
                "max": MAX_PROVISION_COUNT,
            },
        )

    result = await pool.provisioner.provision_servers(count)
    status = await pool.status.get_pool_status()

    return ProvisionResponse(
        success=True,
        provisioned=result.provisioned,
        errors=result.errors,
        pool=PoolCounts(**status.counts()),
    )


@router.get("/status", response_model=AdminStatusResponse)
async def pool_status(pool: PoolDep) -> AdminStatusResponse:
    status = await pool.status.get_pool_status()
    health = status.health

    return AdminStatusResponse(
        pool=PoolCounts(**status.counts()),
        config=PoolConfigResponse(
            min_pool_size=status.min_pool_size,
            max_pool_size=status.max_pool_size,
        ),
        health=HealthResponse(healthy=health.healthy, message=health.message),
    )
