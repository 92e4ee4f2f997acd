"""Verification recorder.

Inserting a Verification and projecting it onto its License are two commits.
The Verification is committed first and is never rolled back to repair a
failed projection; the License row is a rebuildable cache of the latest
accepted Verification.
"""

from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from licensecheck.authz import (
    RECORD_VERIFICATION,
    SYSTEM_ACTOR,
    AllowAllPolicy,
    AuthorizationPolicy,
)
from licensecheck.db.models import License, RunType, Verification, utcnow
from licensecheck.engines.verify.base import LookupSuccess
from licensecheck.engines.verify.normalizer import NormalizedResult

logger = structlog.get_logger()


def build_synced_snapshot(
    lookup: LookupSuccess,
    source: str,
    synced_at: datetime,
) -> dict[str, Any]:
    """Display cache of a successful lookup, stored on License.synced_data."""
    return {
        "license_number": lookup.license_number,
        "licensee_name": lookup.licensee_name,
        "status": lookup.raw_status,
        "expiration_date": lookup.expiration_date.isoformat() if lookup.expiration_date else None,
        "unencumbered": lookup.unencumbered,
        "raw_data": lookup.raw_payload,
        "source": source,
        "synced_at": synced_at.isoformat(),
    }


async def apply_license_projection(
    db: AsyncSession,
    verification: Verification,
    synced_data: Optional[dict[str, Any]] = None,
    licensee_name: Optional[str] = None,
) -> bool:
    """Project a committed Verification onto its License.

    Shared by the automated and manual paths. The update is conditional on
    the License not already reflecting a newer Verification, so projections
    applied out of order never regress the cached status. Status and
    expiration are only written when the Verification carries them.

    Returns:
        True if the License row was updated, False if it was newer, missing,
        or the write failed. Failures are logged and left for reconciliation.
    """
    license_id = str(verification.license_id)
    verification_id = str(verification.id)
    values: dict[str, Any] = {"last_verified_at": verification.created_at}
    if verification.status_found is not None:
        values["status"] = verification.status_found
    if verification.expiration_found is not None:
        values["expiration_date"] = verification.expiration_found
    if synced_data is not None:
        values["synced_data"] = synced_data
        values["synced_at"] = verification.created_at
    if licensee_name:
        values["licensee_name"] = licensee_name

    stmt = (
        update(License)
        .where(License.id == verification.license_id)
        .where(
            or_(
                License.last_verified_at.is_(None),
                License.last_verified_at <= verification.created_at,
            )
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )

    try:
        result = await db.execute(stmt)
        await db.commit()
    except SQLAlchemyError as e:
        logger.error(
            "License projection failed; verification retained for reconciliation",
            license_id=license_id,
            verification_id=verification_id,
            error=str(e),
        )
        await db.rollback()
        return False

    if result.rowcount == 0:
        logger.info(
            "License projection skipped; newer verification already applied",
            license_id=license_id,
            verification_id=verification_id,
        )
        return False
    return True


async def reconcile_license(db: AsyncSession, license_id: UUID) -> bool:
    """Rebuild a License's cached status from its verification history.

    Repairs rows left stale by a failed projection. The newest Verification
    that carries a status is applied first, then the newest overall, so a
    trailing pending feed check does not hide the last observed status.

    Returns:
        True if the License row was updated.
    """
    newest_first = (
        select(Verification)
        .where(Verification.license_id == license_id)
        .order_by(Verification.created_at.desc())
        .limit(1)
    )
    latest = (await db.execute(newest_first)).scalar_one_or_none()
    if latest is None:
        return False
    db.expunge(latest)

    updated = False
    if latest.status_found is None:
        with_status = (
            await db.execute(newest_first.where(Verification.status_found.is_not(None)))
        ).scalar_one_or_none()
        if with_status is not None:
            db.expunge(with_status)
            updated = await apply_license_projection(db, with_status)

    updated = await apply_license_projection(db, latest) or updated
    logger.info("Reconciled license projection", license_id=str(license_id), updated=updated)
    return updated


class VerificationRecorder:
    """Durably records verification events and updates the License cache."""

    def __init__(self, db: AsyncSession, policy: Optional[AuthorizationPolicy] = None):
        self.db = db
        self.policy = policy or AllowAllPolicy()

    async def record(
        self,
        license_id: UUID,
        normalized: NormalizedResult,
        raw_payload: Optional[dict[str, Any]] = None,
        source_id: Optional[UUID] = None,
        *,
        expiration_found: Optional[date] = None,
        unencumbered: Optional[bool] = None,
        synced_data: Optional[dict[str, Any]] = None,
        licensee_name: Optional[str] = None,
        run_type: RunType = RunType.AUTOMATED,
        actor: str = SYSTEM_ACTOR,
        notes: Optional[str] = None,
        evidence_url: Optional[str] = None,
        job_id: Optional[UUID] = None,
    ) -> Verification:
        """Insert one immutable Verification, then project it onto the License.

        Raises:
            PolicyDenied: the actor may not record verifications
            SQLAlchemyError: the Verification insert itself failed
        """
        self.policy.authorize(actor, RECORD_VERIFICATION, str(license_id))

        verification = Verification(
            license_id=license_id,
            run_type=run_type.value,
            source_id=source_id,
            result=normalized.result.value,
            status_found=normalized.status.value if normalized.status else None,
            expiration_found=expiration_found,
            unencumbered=unencumbered,
            raw_response=raw_payload,
            evidence_url=evidence_url,
            notes=notes,
            verified_by=actor,
            job_id=job_id,
            created_at=utcnow(),
        )
        self.db.add(verification)
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        await self.db.refresh(verification)
        # Detached so a failed projection rollback can not expire it
        self.db.expunge(verification)

        await apply_license_projection(
            self.db,
            verification,
            synced_data=synced_data,
            licensee_name=licensee_name,
        )

        logger.info(
            "Recorded verification",
            license_id=str(license_id),
            verification_id=str(verification.id),
            result=verification.result,
            status=verification.status_found,
            run_type=verification.run_type,
        )
        return verification
