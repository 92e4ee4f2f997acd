"""Verification job run bookkeeping.

Shared helpers for the verification_jobs table: create, poll for operator
cancellation, record progress and finalize.
"""

from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from licensecheck.db.models import JobStatus, VerificationJob, utcnow

logger = structlog.get_logger()

ORPHANED_RUN_MESSAGE = "Interrupted by server restart"
OPERATOR_CANCEL_MESSAGE = "Cancelled by operator"


async def create_job_run(db: AsyncSession, trigger: str, dry_run: bool = False) -> VerificationJob:
    """Create a verification job in the running state.

    Raises:
        SQLAlchemyError: the run could not be created
    """
    job = VerificationJob(
        status=JobStatus.RUNNING.value,
        trigger=trigger,
        dry_run=dry_run,
        started_at=utcnow(),
        error_details=[],
    )
    db.add(job)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise
    return job


async def check_if_cancelled(db: AsyncSession, job_id: UUID) -> bool:
    """Check if an operator has cancelled the job."""
    try:
        result = await db.execute(
            select(VerificationJob.status).where(VerificationJob.id == job_id)
        )
        return result.scalar_one_or_none() == JobStatus.CANCELLED.value
    except SQLAlchemyError as e:
        logger.warning("Failed to poll job status", job_id=str(job_id), error=str(e))
        return False


async def request_cancel(db: AsyncSession, job_id: UUID) -> bool:
    """Mark a running job cancelled. The runner notices on its next poll.

    Returns:
        True if the job was running and is now cancelled.
    """
    result = await db.execute(
        update(VerificationJob)
        .where(
            VerificationJob.id == job_id,
            VerificationJob.status.in_([JobStatus.RUNNING.value, JobStatus.PENDING.value]),
        )
        .values(status=JobStatus.CANCELLED.value)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount > 0


async def update_job_progress(
    db: AsyncSession,
    job_id: UUID,
    counts: dict[str, Any],
) -> None:
    """Write running counters so the status endpoint can show progress."""
    try:
        await db.execute(
            update(VerificationJob)
            .where(VerificationJob.id == job_id)
            .values(**counts)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError as e:
        logger.warning("Failed to update job progress", job_id=str(job_id), error=str(e))
        await db.rollback()


async def complete_job_run(
    db: AsyncSession,
    job_id: UUID,
    counts: dict[str, Any],
    status: JobStatus = JobStatus.COMPLETED,
    error: Optional[str] = None,
) -> Optional[str]:
    """Finalize a job. Finalized jobs are not touched again.

    An operator cancel always wins: a job already marked cancelled is
    finalized as cancelled with its partial counts, whatever status the
    caller asked for.

    Returns:
        The status written, or None if the job was already finalized or the
        write failed.
    """
    values = dict(counts)
    values.update(completed_at=utcnow(), error_message=error)

    try:
        result = await db.execute(
            update(VerificationJob)
            .where(
                VerificationJob.id == job_id,
                VerificationJob.status == JobStatus.RUNNING.value,
                VerificationJob.completed_at.is_(None),
            )
            .values(status=status.value, **values)
            .execution_options(synchronize_session=False)
        )
        written: Optional[str] = status.value
        if result.rowcount == 0:
            if status != JobStatus.CANCELLED and not error:
                values["error_message"] = OPERATOR_CANCEL_MESSAGE
            result = await db.execute(
                update(VerificationJob)
                .where(
                    VerificationJob.id == job_id,
                    VerificationJob.status == JobStatus.CANCELLED.value,
                    VerificationJob.completed_at.is_(None),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            written = JobStatus.CANCELLED.value if result.rowcount else None
        await db.commit()
    except SQLAlchemyError as e:
        logger.error("Failed to finalize job", job_id=str(job_id), status=status.value, error=str(e))
        await db.rollback()
        return None

    if written is None:
        logger.warning("Job already finalized", job_id=str(job_id), status=status.value)
    return written


async def fail_orphaned_runs(db: AsyncSession) -> int:
    """Mark jobs left running by a previous process as failed."""
    result = await db.execute(
        update(VerificationJob)
        .where(VerificationJob.status == JobStatus.RUNNING.value)
        .values(
            status=JobStatus.FAILED.value,
            error_message=ORPHANED_RUN_MESSAGE,
            completed_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount
