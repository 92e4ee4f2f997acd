"""Hand-entered verifications.

A person checks the board website and records what they saw. The entry
bypasses the verifiers but goes through the same recorder and projection
rule as automated lookups, and closes the open review tasks it resolves.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from licensecheck.audit import audit_log
from licensecheck.authz import MANAGE_TASKS, SYSTEM_ACTOR, AllowAllPolicy, AuthorizationPolicy
from licensecheck.db.models import (
    OPEN_TASK_STATUSES,
    License,
    RunType,
    TaskStatus,
    Verification,
    VerificationTask,
    utcnow,
)
from licensecheck.engines.verify.errors import LicenseNotFound, TaskMismatch
from licensecheck.engines.verify.normalizer import manual_result
from licensecheck.engines.verify.recorder import VerificationRecorder

logger = structlog.get_logger()

DEFAULT_MANUAL_NOTE = "Manually verified via state board website"


@dataclass
class ManualVerificationOutcome:
    verification: Verification
    license_status: str
    closed_task_ids: list[UUID] = field(default_factory=list)


class ManualVerificationService:
    def __init__(self, db: AsyncSession, policy: Optional[AuthorizationPolicy] = None):
        self.db = db
        self.policy = policy or AllowAllPolicy()
        self.recorder = VerificationRecorder(db, self.policy)

    async def record(
        self,
        license_id: UUID,
        result: str,
        *,
        expiration_date: Optional[date] = None,
        notes: Optional[str] = None,
        evidence_url: Optional[str] = None,
        task_id: Optional[UUID] = None,
        actor: str = SYSTEM_ACTOR,
    ) -> ManualVerificationOutcome:
        """Record a manual verification for a license.

        With ``task_id`` only that task is closed; otherwise every open task
        of the license is closed, since the entry answers all of them.

        Raises:
            ValueError: unknown result
            LicenseNotFound: no such license
            TaskMismatch: task_id is not an open task of this license
            PolicyDenied: actor may not record verifications or close tasks
        """
        normalized = manual_result(result)

        license_row = await self.db.get(License, license_id)
        if license_row is None:
            raise LicenseNotFound(license_id)

        tasks_query = select(VerificationTask).where(
            VerificationTask.license_id == license_id,
            VerificationTask.status.in_(OPEN_TASK_STATUSES),
        )
        if task_id is not None:
            tasks_query = tasks_query.where(VerificationTask.id == task_id)
        open_tasks = list((await self.db.execute(tasks_query)).scalars().all())
        if task_id is not None and not open_tasks:
            raise TaskMismatch(f"Task {task_id} is not an open task of license {license_id}")
        if open_tasks:
            self.policy.authorize(actor, MANAGE_TASKS, str(license_id))

        # Source of the task being answered, when there is exactly one
        source_ids = {t.source_id for t in open_tasks}
        source_id = source_ids.pop() if len(source_ids) == 1 else None

        verification = await self.recorder.record(
            license_id,
            normalized,
            raw_payload={"entered_result": result},
            source_id=source_id,
            expiration_found=expiration_date,
            run_type=RunType.MANUAL,
            actor=actor,
            notes=notes or DEFAULT_MANUAL_NOTE,
            evidence_url=evidence_url,
        )

        closed: list[UUID] = []
        if open_tasks:
            now = utcnow()
            for task in open_tasks:
                task.status = TaskStatus.COMPLETED.value
                task.completed_at = now
                task.completed_by = actor
                task.verification_id = verification.id
                closed.append(task.id)
            try:
                await self.db.commit()
            except SQLAlchemyError as e:
                # The verification stands; tasks stay open for a person to close
                logger.error(
                    "Failed to close tasks after manual verification",
                    license_id=str(license_id),
                    verification_id=str(verification.id),
                    error=str(e),
                )
                await self.db.rollback()
                closed = []

        await audit_log(
            self.db,
            action="manual_verify",
            entity_type="license",
            entity_id=license_id,
            metadata={
                "verification_id": str(verification.id),
                "result": result,
                "closed_task_ids": [str(t) for t in closed],
            },
            user_id=None if actor == SYSTEM_ACTOR else actor,
        )

        return ManualVerificationOutcome(
            verification=verification,
            license_status=normalized.status.value,
            closed_task_ids=closed,
        )
