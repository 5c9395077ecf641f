"""HTTP API router."""

from fastapi import APIRouter

from drydock.api.admin import router as admin_router
from drydock.api.internal import router as internal_router

router = APIRouter()

router.include_router(admin_router, prefix="/admin/pool", tags=["admin"])
router.include_router(internal_router, prefix="/internal", tags=["internal"])
