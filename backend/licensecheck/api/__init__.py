"""API routes module."""

from fastapi import APIRouter

from licensecheck.api import cron, licenses

router = APIRouter()

# Scheduler trigger (shared-secret protected)
router.include_router(cron.router, prefix="/cron", tags=["cron"])

# License verification
router.include_router(licenses.router, prefix="/licenses", tags=["licenses"])
