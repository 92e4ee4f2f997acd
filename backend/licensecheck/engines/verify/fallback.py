"""Manual-review tasks for licenses automation could not resolve."""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from licensecheck.authz import MANAGE_TASKS, SYSTEM_ACTOR, AllowAllPolicy, AuthorizationPolicy
from licensecheck.config import get_settings
from licensecheck.db.models import (
    OPEN_TASK_STATUSES,
    LicenseStatus,
    TaskStatus,
    VerificationTask,
    utcnow,
)

logger = structlog.get_logger()


class TaskReason:
    """Why a license was routed to a person."""

    UNSUPPORTED_JURISDICTION = "unsupported_jurisdiction"
    UNSUPPORTED_CREDENTIAL = "unsupported_credential"
    LOOKUP_FAILED = "lookup_failed"
    NOT_FOUND = "not_found"
    NEEDS_REVIEW = "needs_review"


# Standing gaps rank below fresh anomalies
BASE_PRIORITY = {
    TaskReason.UNSUPPORTED_JURISDICTION: 0,
    TaskReason.UNSUPPORTED_CREDENTIAL: 0,
    TaskReason.LOOKUP_FAILED: 3,
    TaskReason.NOT_FOUND: 3,
    TaskReason.NEEDS_REVIEW: 2,
}
MAX_PRIORITY = 10


def calculate_priority(
    reason: str,
    expiration_date: Optional[date],
    license_status: Optional[str] = None,
    today: Optional[date] = None,
) -> int:
    """Priority 0-10; higher means sooner.

    Expiration inside the "expiring soon" window (or already past) adds 5,
    inside 60 days adds 3, inside 90 days adds 1. Currently flagged licenses
    add 2.
    """
    settings = get_settings()
    today = today or date.today()
    priority = BASE_PRIORITY.get(reason, 0)

    if expiration_date:
        days_left = (expiration_date - today).days
        if days_left < settings.expiring_soon_days:
            priority += 5
        elif days_left < 60:
            priority += 3
        elif days_left < 90:
            priority += 1

    if license_status == LicenseStatus.FLAGGED.value:
        priority += 2

    return min(priority, MAX_PRIORITY)


def calculate_due_date(expiration_date: Optional[date], today: Optional[date] = None) -> date:
    """Default window, pulled in when the license expires sooner."""
    today = today or date.today()
    due = today + timedelta(days=get_settings().task_due_days)
    if expiration_date and today <= expiration_date < due:
        return expiration_date
    return due


@dataclass
class EnsuredTask:
    task: VerificationTask
    created: bool


class FallbackTaskEngine:
    """Keeps at most one open VerificationTask per (license, source)."""

    def __init__(self, db: AsyncSession, policy: Optional[AuthorizationPolicy] = None):
        self.db = db
        self.policy = policy or AllowAllPolicy()

    async def find_open_task(
        self, license_id: UUID, source_id: Optional[UUID]
    ) -> Optional[VerificationTask]:
        query = select(VerificationTask).where(
            VerificationTask.license_id == license_id,
            VerificationTask.status.in_(OPEN_TASK_STATUSES),
        )
        if source_id is None:
            query = query.where(VerificationTask.source_id.is_(None))
        else:
            query = query.where(VerificationTask.source_id == source_id)
        query = query.order_by(VerificationTask.created_at).limit(1)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def ensure_task(
        self,
        license_id: UUID,
        source_id: Optional[UUID],
        reason: str,
        *,
        expiration_date: Optional[date] = None,
        license_status: Optional[str] = None,
        notes: Optional[str] = None,
        job_id: Optional[UUID] = None,
        actor: str = SYSTEM_ACTOR,
        today: Optional[date] = None,
    ) -> EnsuredTask:
        """Create the open task for (license, source), or refresh the existing one.

        Refreshing never postpones work: the due date only moves earlier and
        the priority only rises. Reason and notes are replaced.
        """
        self.policy.authorize(actor, MANAGE_TASKS, str(license_id))

        priority = calculate_priority(reason, expiration_date, license_status, today)
        due_date = calculate_due_date(expiration_date, today)

        try:
            task = await self.find_open_task(license_id, source_id)
            created = task is None
            if task is None:
                task = VerificationTask(
                    license_id=license_id,
                    source_id=source_id,
                    status=TaskStatus.PENDING.value,
                    priority=priority,
                    due_date=due_date,
                    reason=reason,
                    notes=notes,
                    job_id=job_id,
                )
                self.db.add(task)
            else:
                task.priority = max(task.priority or 0, priority)
                task.due_date = min(task.due_date, due_date) if task.due_date else due_date
                task.reason = reason
                task.notes = notes
                if job_id is not None:
                    task.job_id = job_id

            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        logger.info(
            "Created verification task" if created else "Refreshed verification task",
            license_id=str(license_id),
            task_id=str(task.id),
            reason=reason,
            priority=task.priority,
            due_date=task.due_date.isoformat() if task.due_date else None,
        )
        return EnsuredTask(task=task, created=created)

    async def resolve_open_task(
        self,
        license_id: UUID,
        source_id: Optional[UUID],
        verification_id: UUID,
        *,
        actor: str = SYSTEM_ACTOR,
    ) -> Optional[UUID]:
        """Close the open task for (license, source) answered by a verification.

        Returns:
            The id of the closed task, or None if there was none open.
        """
        self.policy.authorize(actor, MANAGE_TASKS, str(license_id))

        try:
            task = await self.find_open_task(license_id, source_id)
            if task is None:
                return None
            task.status = TaskStatus.COMPLETED.value
            task.completed_at = utcnow()
            task.completed_by = actor
            task.verification_id = verification_id
            task_id = task.id
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        logger.info(
            "Resolved verification task",
            license_id=str(license_id),
            task_id=str(task_id),
            verification_id=str(verification_id),
        )
        return task_id
