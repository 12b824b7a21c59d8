"""API v1 router."""

from fastapi import APIRouter

from compat_gateway.api.v1.admin import router as admin_router
from compat_gateway.api.v1.denylist import router as denylist_router
from compat_gateway.api.v1.lookups import router as lookups_router

router = APIRouter()

router.include_router(lookups_router, tags=["lookups"])
router.include_router(denylist_router, prefix="/denylist", tags=["denylist"])
router.include_router(admin_router)  # /admin prefix is in the router itself
