"""Internal endpoints for the scheduler and the instance-creation flow.

All routes require the shared internal secret as a bearer token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from drydock.api.dependencies import PoolDep, require_internal_secret
from drydock.api.schemas import PoolServerResponse, PoolStatusResponse
from drydock.errors import PoolExhaustedError
from drydock.services.pool.allocator import NotAvailable

router = APIRouter(dependencies=[Depends(require_internal_secret)])


class MaintainResponse(BaseModel):
    success: bool
    before: PoolStatusResponse
    after: PoolStatusResponse
    provisioned: int
    cleaned: int
    orphaned: list[str]
    errors: list[str]


class AssignRequest(BaseModel):
    request_id: str


class AssignResponse(BaseModel):
    server: PoolServerResponse


class ReadyRequest(BaseModel):
    provider_server_id: str


class ReadyResponse(BaseModel):
    promoted: bool


@router.post("/maintain-pool", response_model=MaintainResponse)
async def maintain_pool(pool: PoolDep) -> MaintainResponse:
    """Run one reconciliation pass (cron entry point)."""
    before = await pool.status.get_pool_status()
    result = await pool.reconciler.maintain_pool()
    after = await pool.status.get_pool_status()

    return MaintainResponse(
        success=True,
        before=PoolStatusResponse(**before.to_dict()),
        after=PoolStatusResponse(**after.to_dict()),
        provisioned=result.provisioned,
        cleaned=result.cleaned,
        orphaned=result.orphaned,
        errors=result.errors,
    )


@router.get("/maintain-pool", response_model=PoolStatusResponse)
async def maintain_pool_status(pool: PoolDep) -> PoolStatusResponse:
    status = await pool.status.get_pool_status()
    return PoolStatusResponse(**status.to_dict())


@router.post("/pool/assign", response_model=AssignResponse)
async def assign_server(request: AssignRequest, pool: PoolDep) -> AssignResponse:
    """Hand one AVAILABLE server to ``request_id``.

    404 pool_exhausted tells the caller to provision on demand.
    """
    server = await pool.allocator.assign(request.request_id)
    if server is NotAvailable:
        raise PoolExhaustedError(details={"request_id": request.request_id})
    return AssignResponse(server=PoolServerResponse.from_model(server))


@router.post("/pool/ready", response_model=ReadyResponse)
async def mark_server_ready(request: ReadyRequest, pool: PoolDep) -> ReadyResponse:
    """Boot-complete callback (cloud-init phone-home)."""
    promoted = await pool.readiness.mark_ready(request.provider_server_id)
    return ReadyResponse(promoted=promoted is not None)
