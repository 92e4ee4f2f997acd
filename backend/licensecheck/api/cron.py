"""Scheduler trigger endpoints for the recurring verification job."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from licensecheck.authz import SYSTEM_ACTOR, AuthorizationPolicy, PolicyDenied, RUN_JOB
from licensecheck.db import VerificationJob, get_db
from licensecheck.engines.verify.errors import WorkSetError
from licensecheck.engines.verify.registry import SourceRegistry
from licensecheck.engines.verify.run_logger import request_cancel
from licensecheck.engines.verify.runner import RecheckWindowPolicy, VerificationJobRunner
from licensecheck.api.deps import get_policy, get_registry, require_cron_secret

logger = structlog.get_logger()

router = APIRouter(dependencies=[Depends(require_cron_secret)])


class JobRunResponse(BaseModel):
    """One verification job run."""

    id: UUID
    status: str
    trigger: Optional[str] = None
    dry_run: bool = False
    total_licenses: int = 0
    processed: int = 0
    auto_verified: int = 0
    tasks_created: int = 0
    tasks_refreshed: int = 0
    errors: int = 0
    error_details: Optional[list[dict[str, Any]]] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TriggerInfoResponse(BaseModel):
    endpoint: str
    method: str
    description: str
    latest_job: Optional[JobRunResponse] = None


@router.post("/monthly-verification")
async def run_monthly_verification(
    dry_run: bool = False,
    db: AsyncSession = Depends(get_db),
    registry: SourceRegistry = Depends(get_registry),
    policy: AuthorizationPolicy = Depends(get_policy),
):
    """Run the verification job and return its summary."""
    logger.info("Starting monthly verification job", dry_run=dry_run)
    runner = VerificationJobRunner(db, registry=registry, policy=policy, dry_run=dry_run)
    try:
        summary = await runner.run(RecheckWindowPolicy(trigger="scheduled"))
    except PolicyDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    except WorkSetError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {"data": {"success": True, **summary.to_dict()}}


@router.get("/monthly-verification", response_model=TriggerInfoResponse)
async def describe_monthly_verification(db: AsyncSession = Depends(get_db)):
    """Describe the trigger and report the latest run without starting one."""
    result = await db.execute(
        select(VerificationJob).order_by(VerificationJob.created_at.desc()).limit(1)
    )
    latest = result.scalar_one_or_none()
    return TriggerInfoResponse(
        endpoint="/api/cron/monthly-verification",
        method="POST",
        description="Runs monthly license verification job",
        latest_job=JobRunResponse.model_validate(latest) if latest else None,
    )


@router.get("/jobs/{job_id}", response_model=JobRunResponse)
async def get_job(job_id: UUID, db: AsyncSession = Depends(get_db)):
    job = await db.get(VerificationJob, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.post("/jobs/{job_id}/cancel")
async def cancel_job(
    job_id: UUID,
    db: AsyncSession = Depends(get_db),
    policy: AuthorizationPolicy = Depends(get_policy),
):
    """Ask a running job to stop. In-flight lookups are cancelled at the next poll."""
    try:
        policy.authorize(SYSTEM_ACTOR, RUN_JOB, str(job_id))
    except PolicyDenied as e:
        raise HTTPException(status_code=403, detail=str(e))

    job = await db.get(VerificationJob, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    if not await request_cancel(db, job_id):
        raise HTTPException(status_code=409, detail=f"Job is {job.status}, not running")

    logger.info("Verification job cancel requested", job_id=str(job_id))
    return {"status": "cancelling", "job_id": str(job_id)}
