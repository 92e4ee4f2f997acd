"""Per-license verification endpoints."""

from datetime import date
from typing import Any, Literal, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from licensecheck.authz import AuthorizationPolicy, PolicyDenied
from licensecheck.db import License, get_db
from licensecheck.engines.verify.errors import LicenseNotFound, TaskMismatch, WorkSetError
from licensecheck.engines.verify.manual import ManualVerificationService
from licensecheck.engines.verify.registry import SourceRegistry
from licensecheck.engines.verify.runner import verify_single_license
from licensecheck.api.deps import get_actor, get_policy, get_registry

logger = structlog.get_logger()

router = APIRouter()


class AvailabilityResponse(BaseModel):
    """Whether a license can be checked automatically."""

    available: bool
    state: str
    credential_type: str
    reason: Optional[str] = None
    available_states: list[str]
    states_by_region: dict[str, list[str]]


class ManualVerifyRequest(BaseModel):
    """Result of a person checking the board website."""

    result: Literal["verified", "expired", "not_found", "flagged"]
    expiration_date: Optional[date] = None
    notes: Optional[str] = None
    evidence_url: Optional[str] = None
    task_id: Optional[UUID] = None


class ManualVerifyResponse(BaseModel):
    verification_id: UUID
    result: str
    license_status: str
    closed_task_ids: list[UUID]


async def _get_license(db: AsyncSession, license_id: UUID) -> License:
    license_row = await db.get(License, license_id)
    if not license_row:
        raise HTTPException(status_code=404, detail="License not found")
    return license_row


@router.get("/{license_id}/verify", response_model=AvailabilityResponse)
async def get_verify_availability(
    license_id: UUID,
    db: AsyncSession = Depends(get_db),
    registry: SourceRegistry = Depends(get_registry),
):
    """Check if automated verification is available for a license."""
    license_row = await _get_license(db, license_id)
    capability = registry.capability_for(license_row.state, license_row.credential_type)
    return AvailabilityResponse(
        available=capability.automated,
        state=license_row.state,
        credential_type=license_row.credential_type,
        reason=capability.reason,
        available_states=sorted(registry.list_automated_jurisdictions()),
        states_by_region=registry.states_by_region(),
    )


@router.post("/{license_id}/verify")
async def verify_license(
    license_id: UUID,
    db: AsyncSession = Depends(get_db),
    registry: SourceRegistry = Depends(get_registry),
    policy: AuthorizationPolicy = Depends(get_policy),
    actor: str = Depends(get_actor),
):
    """Look up one license now, through the same pipeline as the monthly job."""
    license_row = await _get_license(db, license_id)

    capability = registry.capability_for(license_row.state, license_row.credential_type)
    if not capability.automated:
        available = sorted(registry.list_automated_jurisdictions())
        raise HTTPException(
            status_code=400,
            detail={
                "error": "No auto-verification available",
                "reason": capability.reason,
                "details": (
                    f"No automated lookup for {license_row.credential_type} in {license_row.state}. "
                    f"Available states: {', '.join(available)}"
                ),
                "available_states": available,
            },
        )

    try:
        summary, outcome = await verify_single_license(
            db, license_id, registry=registry, policy=policy, actor=actor
        )
    except LicenseNotFound:
        raise HTTPException(status_code=404, detail="License not found")
    except PolicyDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    except WorkSetError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if outcome is None:
        raise HTTPException(status_code=500, detail="Verification did not produce an outcome")

    body: dict[str, Any] = {
        "job_id": str(summary.job_id),
        "outcome": outcome.outcome,
        "verification_id": str(outcome.verification_id) if outcome.verification_id else None,
        "task_id": str(outcome.task_id) if outcome.task_id else None,
    }

    if outcome.outcome == "verified":
        lookup = outcome.lookup
        body["lookup"] = {
            "status": lookup.raw_status,
            "expiration_date": lookup.expiration_date.isoformat() if lookup.expiration_date else None,
            "unencumbered": lookup.unencumbered,
            "licensee_name": lookup.licensee_name,
            "license_number": lookup.license_number,
        }
        return {"success": True, "data": body}

    body["error"] = outcome.failure_kind
    body["details"] = outcome.detail
    status_code = 500 if outcome.outcome == "error" else 422
    return JSONResponse(status_code=status_code, content={"success": False, **body})


@router.post("/{license_id}/manual-verify", response_model=ManualVerifyResponse)
async def manual_verify(
    license_id: UUID,
    request: ManualVerifyRequest,
    db: AsyncSession = Depends(get_db),
    policy: AuthorizationPolicy = Depends(get_policy),
    actor: str = Depends(get_actor),
):
    """Record a verification a person made on the board website."""
    service = ManualVerificationService(db, policy)
    try:
        outcome = await service.record(
            license_id,
            request.result,
            expiration_date=request.expiration_date,
            notes=request.notes,
            evidence_url=request.evidence_url,
            task_id=request.task_id,
            actor=actor,
        )
    except LicenseNotFound:
        raise HTTPException(status_code=404, detail="License not found")
    except TaskMismatch as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PolicyDenied as e:
        raise HTTPException(status_code=403, detail=str(e))

    return ManualVerifyResponse(
        verification_id=outcome.verification.id,
        result=outcome.verification.result,
        license_status=outcome.license_status,
        closed_task_ids=outcome.closed_task_ids,
    )
