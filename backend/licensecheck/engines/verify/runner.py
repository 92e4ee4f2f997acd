"""Verification job runner.

Selects the licenses due for a check, looks them up under bounded
concurrency and routes every outcome to the recorder or the fallback task
engine. Lookups run concurrently; all database writes happen one at a time
on the runner's session as results complete.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from licensecheck.audit import audit_log
from licensecheck.authz import (
    RUN_JOB,
    SYSTEM_ACTOR,
    AllowAllPolicy,
    AuthorizationPolicy,
    PolicyDenied,
)
from licensecheck.config import get_settings
from licensecheck.db.models import (
    JobStatus,
    License,
    LicenseStatus,
    NursysEnrollment,
    Person,
    VerificationSource,
    utcnow,
)
from licensecheck.engines.verify.base import (
    BaseVerifier,
    FailureKind,
    LookupFailure,
    LookupIdentity,
    LookupResult,
    LookupSuccess,
)
from licensecheck.engines.verify.errors import LicenseNotFound, WorkSetError
from licensecheck.engines.verify.fallback import FallbackTaskEngine, TaskReason
from licensecheck.engines.verify.normalizer import feed_pending_result, normalize, not_found_result
from licensecheck.engines.verify.recorder import VerificationRecorder, build_synced_snapshot
from licensecheck.engines.verify.registry import Capability, SourceRegistry
from licensecheck.engines.verify.run_logger import (
    OPERATOR_CANCEL_MESSAGE,
    check_if_cancelled,
    complete_job_run,
    create_job_run,
    update_job_progress,
)

logger = structlog.get_logger()

REVIEW_STATUSES = (LicenseStatus.NEEDS_MANUAL, LicenseStatus.FLAGGED)
ENOTIFY_PENDING_NOTE = "Awaiting Nursys e-Notify notification"


# -----------------------------------------------------------------------------
# Work set selection
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkItem:
    """Snapshot of one license taken when the work set is read."""

    license_id: UUID
    jurisdiction: str
    license_number: str
    credential_type: str
    status: str
    expiration_date: Optional[date]
    first_name: Optional[str]
    last_name: Optional[str]
    source_id: Optional[UUID] = None
    feed_enrolled: bool = False

    def identity(self) -> LookupIdentity:
        return LookupIdentity(
            license_number=self.license_number,
            jurisdiction=self.jurisdiction,
            credential_type=self.credential_type,
            first_name=self.first_name,
            last_name=self.last_name,
        )


class WorkSetPolicy(ABC):
    """Which licenses a run processes."""

    trigger: str = "scheduled"

    @abstractmethod
    def filters(self, now: datetime) -> list[Any]:
        """SQLAlchemy criteria applied to the License query."""


class RecheckWindowPolicy(WorkSetPolicy):
    """Non-archived licenses never verified or not verified within the window."""

    def __init__(self, recheck_after_days: Optional[int] = None, trigger: str = "scheduled"):
        self.recheck_after_days = (
            recheck_after_days
            if recheck_after_days is not None
            else get_settings().recheck_after_days
        )
        self.trigger = trigger

    def filters(self, now: datetime) -> list[Any]:
        cutoff = now - timedelta(days=self.recheck_after_days)
        return [
            License.archived.is_(False),
            (License.last_verified_at.is_(None)) | (License.last_verified_at < cutoff),
        ]


class SingleLicensePolicy(WorkSetPolicy):
    """One license, on demand, regardless of when it was last checked."""

    trigger = "license"

    def __init__(self, license_id: UUID):
        self.license_id = license_id

    def filters(self, now: datetime) -> list[Any]:
        return [License.id == self.license_id]


def source_type_for(credential_type: Optional[str]) -> str:
    """Nursing assistants are listed in the CNA registry, everyone else with the board."""
    return "cna_registry" if (credential_type or "").upper() == "CNA" else "bon"


# -----------------------------------------------------------------------------
# Summary
# -----------------------------------------------------------------------------


@dataclass
class LicenseOutcome:
    """What happened to one license in a run."""

    license_id: UUID
    outcome: str  # verified, not_found, failed, not_automated, feed_pending, error
    verification_id: Optional[UUID] = None
    task_id: Optional[UUID] = None
    resolved_task_id: Optional[UUID] = None
    failure_kind: Optional[str] = None
    detail: Optional[str] = None
    lookup: Optional[LookupSuccess] = None


@dataclass
class JobSummary:
    job_id: UUID
    status: str = JobStatus.RUNNING.value
    total_licenses: int = 0
    processed: int = 0
    auto_verified: int = 0
    tasks_created: int = 0
    tasks_refreshed: int = 0
    tasks_resolved: int = 0
    errors: int = 0
    error_details: list[dict[str, Any]] = field(default_factory=list)
    errors_truncated: bool = False
    cancelled: bool = False
    dry_run: bool = False
    outcomes: list[LicenseOutcome] = field(default_factory=list)

    def add_error(self, item: WorkItem, kind: str, detail: str, cap: int) -> None:
        self.errors += 1
        if len(self.error_details) < cap:
            self.error_details.append(
                {
                    "license_id": str(item.license_id),
                    "jurisdiction": item.jurisdiction,
                    "license_number": item.license_number,
                    "kind": kind,
                    "detail": detail,
                }
            )
        else:
            self.errors_truncated = True

    def counts(self) -> dict[str, Any]:
        """Column values for the verification_jobs row."""
        return {
            "total_licenses": self.total_licenses,
            "processed": self.processed,
            "auto_verified": self.auto_verified,
            "tasks_created": self.tasks_created,
            "tasks_refreshed": self.tasks_refreshed,
            "errors": self.errors,
            "error_details": list(self.error_details),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": str(self.job_id),
            "status": self.status,
            "total_licenses": self.total_licenses,
            "processed": self.processed,
            "auto_verified": self.auto_verified,
            "tasks_created": self.tasks_created,
            "tasks_refreshed": self.tasks_refreshed,
            "tasks_resolved": self.tasks_resolved,
            "errors": self.errors,
            "error_details": list(self.error_details),
            "errors_truncated": self.errors_truncated,
            "cancelled": self.cancelled,
            "dry_run": self.dry_run,
        }


# -----------------------------------------------------------------------------
# Runner
# -----------------------------------------------------------------------------


class VerificationJobRunner:
    """Runs one verification job over a work set.

    A run goes running -> completed (or cancelled on operator abort or global
    timeout). Only work-set and run-bookkeeping failures make it failed; a
    license whose lookup fails is counted and handed to the fallback engine.

    A dry run performs the lookups and counts outcomes but writes nothing
    except the job row.
    """

    def __init__(
        self,
        db: AsyncSession,
        registry: Optional[SourceRegistry] = None,
        policy: Optional[AuthorizationPolicy] = None,
        actor: str = SYSTEM_ACTOR,
        concurrency: Optional[int] = None,
        jurisdiction_concurrency: Optional[dict[str, int]] = None,
        job_timeout: Optional[float] = None,
        cancel_poll_every: int = 10,
        keep_outcomes: bool = False,
        dry_run: bool = False,
    ):
        self.db = db
        self.settings = get_settings()
        self.registry = registry or SourceRegistry()
        self.policy = policy or AllowAllPolicy()
        self.actor = actor
        self.concurrency = concurrency or self.settings.verification_concurrency
        self.jurisdiction_concurrency = {
            code.upper(): limit
            for code, limit in (
                jurisdiction_concurrency
                if jurisdiction_concurrency is not None
                else self.settings.jurisdiction_concurrency
            ).items()
        }
        self.job_timeout = job_timeout if job_timeout is not None else self.settings.job_timeout_seconds
        self.cancel_poll_every = max(1, cancel_poll_every)
        self.keep_outcomes = keep_outcomes
        self.dry_run = dry_run

        self.recorder = VerificationRecorder(db, self.policy)
        self.fallback = FallbackTaskEngine(db, self.policy)

    async def run(
        self,
        work_set: WorkSetPolicy,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> JobSummary:
        """Execute one job and return its summary.

        Raises:
            PolicyDenied: the actor may not run jobs (nothing is started)
            WorkSetError: the work set could not be read (job marked failed)
        """
        self.policy.authorize(self.actor, RUN_JOB)

        job = await create_job_run(self.db, work_set.trigger, dry_run=self.dry_run)
        job_id = job.id
        summary = JobSummary(job_id=job_id, dry_run=self.dry_run)
        log = logger.bind(job_id=str(job_id), trigger=work_set.trigger, dry_run=self.dry_run)
        log.info("Verification job started")

        try:
            items = await self._load_work_set(work_set)
        except WorkSetError as e:
            log.error("Verification job failed reading work set", error=str(e))
            summary.status = JobStatus.FAILED.value
            await complete_job_run(
                self.db, job_id, summary.counts(), JobStatus.FAILED, error=str(e)
            )
            raise

        summary.total_licenses = len(items)
        await update_job_progress(self.db, job_id, {"total_licenses": len(items)})
        log.info("Work set selected", total_licenses=len(items))

        try:
            await asyncio.wait_for(
                self._process(items, summary, cancel_event),
                timeout=self.job_timeout,
            )
        except asyncio.TimeoutError:
            log.warning("Verification job timed out", timeout=self.job_timeout)
            summary.cancelled = True
            await self._reset_session()
        except asyncio.CancelledError:
            summary.cancelled = True
            summary.status = JobStatus.CANCELLED.value
            await self._reset_session()
            await complete_job_run(
                self.db, job_id, summary.counts(), JobStatus.CANCELLED, error="Job task cancelled"
            )
            raise
        except Exception as e:
            log.error("Verification job failed", error=str(e), error_type=type(e).__name__)
            summary.status = JobStatus.FAILED.value
            await complete_job_run(self.db, job_id, summary.counts(), JobStatus.FAILED, error=str(e))
            raise

        await self._finalize(summary)
        return summary

    # -------------------------------------------------------------------------
    # Work set
    # -------------------------------------------------------------------------

    async def _load_work_set(self, work_set: WorkSetPolicy) -> list[WorkItem]:
        """Read licenses and sources once; nothing is re-queried mid-run."""
        now = utcnow()
        try:
            result = await self.db.execute(
                select(License, Person.first_name, Person.last_name, NursysEnrollment.id)
                .join(Person, License.person_id == Person.id)
                .outerjoin(
                    NursysEnrollment,
                    and_(
                        NursysEnrollment.license_id == License.id,
                        NursysEnrollment.active.is_(True),
                    ),
                )
                .where(*work_set.filters(now))
                .order_by(
                    License.last_verified_at.is_(None).desc(),
                    License.last_verified_at.asc(),
                    License.id,
                )
            )
            rows = result.all()

            source_result = await self.db.execute(
                select(VerificationSource).where(VerificationSource.active.is_(True))
            )
            sources: dict[tuple[str, str], UUID] = {}
            national: dict[str, UUID] = {}
            for source in source_result.scalars().all():
                if source.state:
                    sources.setdefault((source.state.upper(), source.source_type), source.id)
                else:
                    national.setdefault(source.source_type, source.id)
        except SQLAlchemyError as e:
            await self._reset_session()
            raise WorkSetError(f"Could not read work set: {e}") from e

        items = []
        for license_row, first_name, last_name, enrollment_id in rows:
            state = license_row.state.upper()
            if enrollment_id is not None:
                source_id = national.get("nursys")
            else:
                source_id = sources.get((state, source_type_for(license_row.credential_type)))
                if source_id is None:
                    source_id = sources.get((state, "bon"))
            items.append(
                WorkItem(
                    license_id=license_row.id,
                    jurisdiction=state,
                    license_number=license_row.license_number,
                    credential_type=license_row.credential_type,
                    status=license_row.status,
                    expiration_date=license_row.expiration_date,
                    first_name=first_name,
                    last_name=last_name,
                    source_id=source_id,
                    feed_enrolled=enrollment_id is not None,
                )
            )
        return items

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def _jurisdiction_limit(self, jurisdiction: str) -> Optional[int]:
        limits = [
            limit
            for limit in (
                self.jurisdiction_concurrency.get(jurisdiction),
                self.registry.concurrency_limit(jurisdiction),
            )
            if limit
        ]
        return min(limits) if limits else None

    async def _process(
        self,
        items: list[WorkItem],
        summary: JobSummary,
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            summary.cancelled = True
            return

        automated: list[tuple[WorkItem, BaseVerifier]] = []
        not_automated: list[tuple[WorkItem, Capability]] = []
        via_feed: list[WorkItem] = []
        for item in items:
            capability = self.registry.capability_for(
                item.jurisdiction, item.credential_type, feed_enrolled=item.feed_enrolled
            )
            if capability.via_feed:
                via_feed.append(item)
                continue
            verifier = self.registry.get_verifier(item.jurisdiction) if capability.automated else None
            if verifier is None:
                not_automated.append((item, capability))
            else:
                automated.append((item, verifier))

        for item, capability in not_automated:
            if await self._should_stop(summary, cancel_event):
                return
            await self._handle_not_automated(item, capability, summary)

        for item in via_feed:
            if await self._should_stop(summary, cancel_event):
                return
            await self._handle_feed_enrolled(item, summary)

        if not automated:
            return

        global_limit = asyncio.Semaphore(self.concurrency)
        jurisdiction_limits: dict[str, asyncio.Semaphore] = {}
        for item, _ in automated:
            limit = self._jurisdiction_limit(item.jurisdiction)
            if limit and item.jurisdiction not in jurisdiction_limits:
                jurisdiction_limits[item.jurisdiction] = asyncio.Semaphore(limit)

        async def lookup_one(item: WorkItem, verifier: BaseVerifier) -> tuple[WorkItem, LookupResult]:
            async with AsyncExitStack() as stack:
                # Jurisdiction slot first so a throttled source never holds a global slot idle
                jurisdiction_limit = jurisdiction_limits.get(item.jurisdiction)
                if jurisdiction_limit is not None:
                    await stack.enter_async_context(jurisdiction_limit)
                await stack.enter_async_context(global_limit)
                try:
                    return item, await verifier.lookup(item.identity())
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    return item, LookupFailure(FailureKind.PARSE_ERROR, f"{type(e).__name__}: {e}")

        pending = {asyncio.create_task(lookup_one(item, verifier)) for item, verifier in automated}
        tasks = list(pending)
        cancel_waiter = asyncio.create_task(cancel_event.wait()) if cancel_event is not None else None
        try:
            while pending:
                waiting = pending | {cancel_waiter} if cancel_waiter is not None else pending
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
                if cancel_waiter in done:
                    summary.cancelled = True
                    return
                for task in done:
                    pending.discard(task)
                    item, result = task.result()
                    await self._handle_result(item, result, summary)
                    if await self._should_stop(summary, cancel_event):
                        return
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()
                tasks.append(cancel_waiter)
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _should_stop(self, summary: JobSummary, cancel_event: Optional[asyncio.Event]) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            summary.cancelled = True
            return True
        if summary.processed and summary.processed % self.cancel_poll_every == 0:
            await update_job_progress(self.db, summary.job_id, summary.counts())
            if await check_if_cancelled(self.db, summary.job_id):
                logger.info("Verification job cancelled by operator", job_id=str(summary.job_id))
                summary.cancelled = True
                return True
        return False

    # -------------------------------------------------------------------------
    # Outcome handling
    # -------------------------------------------------------------------------

    def _keep(self, outcome: LicenseOutcome, summary: JobSummary) -> None:
        if self.keep_outcomes:
            summary.outcomes.append(outcome)

    async def _handle_not_automated(
        self, item: WorkItem, capability: Capability, summary: JobSummary
    ) -> None:
        reason = capability.reason or TaskReason.UNSUPPORTED_JURISDICTION
        if reason == TaskReason.UNSUPPORTED_CREDENTIAL:
            notes = f"No automated lookup for {item.credential_type} licenses in {item.jurisdiction}"
        else:
            notes = f"No automated lookup for jurisdiction {item.jurisdiction or 'unknown'}"

        summary.processed += 1
        if self.dry_run:
            summary.tasks_created += 1
            self._keep(
                LicenseOutcome(license_id=item.license_id, outcome="not_automated", detail=notes),
                summary,
            )
            return

        try:
            ensured = await self.fallback.ensure_task(
                item.license_id,
                item.source_id,
                reason,
                expiration_date=item.expiration_date,
                license_status=item.status,
                notes=notes,
                job_id=summary.job_id,
                actor=self.actor,
            )
        except (SQLAlchemyError, PolicyDenied) as e:
            self._write_failed(item, summary, "task_write_failed", e)
            return

        summary.tasks_created += 1
        if not ensured.created:
            summary.tasks_refreshed += 1
        self._keep(
            LicenseOutcome(
                license_id=item.license_id,
                outcome="not_automated",
                task_id=ensured.task.id,
                detail=notes,
            ),
            summary,
        )

    async def _handle_feed_enrolled(self, item: WorkItem, summary: JobSummary) -> None:
        """The registry pushes status changes; record a pending check and move on."""
        summary.processed += 1
        if self.dry_run:
            summary.auto_verified += 1
            self._keep(
                LicenseOutcome(
                    license_id=item.license_id, outcome="feed_pending", detail=ENOTIFY_PENDING_NOTE
                ),
                summary,
            )
            return

        try:
            verification = await self.recorder.record(
                item.license_id,
                feed_pending_result(),
                raw_payload={"source": "nursys_enotify"},
                source_id=item.source_id,
                actor=self.actor,
                notes=ENOTIFY_PENDING_NOTE,
                job_id=summary.job_id,
            )
        except (SQLAlchemyError, PolicyDenied) as e:
            self._write_failed(item, summary, "record_failed", e)
            return

        summary.auto_verified += 1
        await audit_log(
            self.db,
            action="auto_verify_enotify",
            entity_type="license",
            entity_id=item.license_id,
            metadata={
                "job_id": str(summary.job_id),
                "verification_id": str(verification.id),
            },
        )
        self._keep(
            LicenseOutcome(
                license_id=item.license_id,
                outcome="feed_pending",
                verification_id=verification.id,
                detail=ENOTIFY_PENDING_NOTE,
            ),
            summary,
        )

    async def _handle_result(self, item: WorkItem, result: LookupResult, summary: JobSummary) -> None:
        summary.processed += 1
        if isinstance(result, LookupSuccess):
            await self._handle_success(item, result, summary)
        elif result.kind == FailureKind.NOT_FOUND:
            await self._handle_not_found(item, result, summary)
        else:
            await self._handle_failure(item, result, summary)

    async def _handle_success(self, item: WorkItem, lookup: LookupSuccess, summary: JobSummary) -> None:
        normalized = normalize(lookup.raw_status)
        if self.dry_run:
            summary.auto_verified += 1
            self._keep(
                LicenseOutcome(license_id=item.license_id, outcome="verified", lookup=lookup),
                summary,
            )
            return

        try:
            verification = await self.recorder.record(
                item.license_id,
                normalized,
                raw_payload=lookup.raw_payload,
                source_id=item.source_id,
                expiration_found=lookup.expiration_date,
                unencumbered=lookup.unencumbered,
                synced_data=build_synced_snapshot(lookup, item.jurisdiction, utcnow()),
                licensee_name=lookup.licensee_name,
                actor=self.actor,
                notes=f"Automated lookup via {item.jurisdiction} licensing board",
                job_id=summary.job_id,
            )
        except (SQLAlchemyError, PolicyDenied) as e:
            self._write_failed(item, summary, "record_failed", e)
            return

        summary.auto_verified += 1
        task_id = None
        resolved_task_id = None
        if normalized.status in REVIEW_STATUSES:
            task_id = await self._ensure_review_task(
                item,
                TaskReason.NEEDS_REVIEW,
                license_status=normalized.status.value,
                notes=f"Board reported status {lookup.raw_status or 'unknown'}",
                summary=summary,
            )
        else:
            # A definitive answer closes the follow-up left by an earlier failure
            resolved_task_id = await self._resolve_open_task(item, verification.id, summary)

        metadata = {
            "job_id": str(summary.job_id),
            "verification_id": str(verification.id),
            "result": verification.result,
            "status": verification.status_found,
        }
        if resolved_task_id is not None:
            metadata["resolved_task_id"] = str(resolved_task_id)
        await audit_log(
            self.db,
            action="auto_verify",
            entity_type="license",
            entity_id=item.license_id,
            metadata=metadata,
        )
        self._keep(
            LicenseOutcome(
                license_id=item.license_id,
                outcome="verified",
                verification_id=verification.id,
                task_id=task_id,
                resolved_task_id=resolved_task_id,
                lookup=lookup,
            ),
            summary,
        )

    async def _handle_not_found(self, item: WorkItem, failure: LookupFailure, summary: JobSummary) -> None:
        """The board answered definitively that it has no such license."""
        if self.dry_run:
            summary.auto_verified += 1
            self._keep(
                LicenseOutcome(
                    license_id=item.license_id,
                    outcome="not_found",
                    failure_kind=failure.kind.value,
                    detail=failure.detail,
                ),
                summary,
            )
            return

        try:
            verification = await self.recorder.record(
                item.license_id,
                not_found_result(),
                raw_payload={"failure": failure.kind.value, "detail": failure.detail},
                source_id=item.source_id,
                actor=self.actor,
                notes=failure.detail,
                job_id=summary.job_id,
            )
        except (SQLAlchemyError, PolicyDenied) as e:
            self._write_failed(item, summary, "record_failed", e)
            return

        summary.auto_verified += 1
        task_id = await self._ensure_review_task(
            item,
            TaskReason.NOT_FOUND,
            license_status=LicenseStatus.NEEDS_MANUAL.value,
            notes=failure.detail,
            summary=summary,
        )
        await audit_log(
            self.db,
            action="auto_verify_not_found",
            entity_type="license",
            entity_id=item.license_id,
            metadata={
                "job_id": str(summary.job_id),
                "verification_id": str(verification.id),
                "detail": failure.detail,
            },
        )
        self._keep(
            LicenseOutcome(
                license_id=item.license_id,
                outcome="not_found",
                verification_id=verification.id,
                task_id=task_id,
                failure_kind=failure.kind.value,
                detail=failure.detail,
            ),
            summary,
        )

    async def _handle_failure(self, item: WorkItem, failure: LookupFailure, summary: JobSummary) -> None:
        """Lookup failed; License status is left as it was."""
        logger.warning(
            "License lookup failed",
            job_id=str(summary.job_id),
            license_id=str(item.license_id),
            jurisdiction=item.jurisdiction,
            kind=failure.kind.value,
            detail=failure.detail,
        )
        summary.add_error(item, failure.kind.value, failure.detail, self.settings.max_error_details)

        task_id = None
        if not self.dry_run:
            task_id = await self._ensure_review_task(
                item,
                TaskReason.LOOKUP_FAILED,
                license_status=item.status,
                notes=f"{failure.kind.value}: {failure.detail}",
                summary=summary,
            )
            await audit_log(
                self.db,
                action="auto_verify_failed",
                entity_type="license",
                entity_id=item.license_id,
                metadata={
                    "job_id": str(summary.job_id),
                    "error": failure.kind.value,
                    "error_details": failure.detail,
                },
            )
        self._keep(
            LicenseOutcome(
                license_id=item.license_id,
                outcome="failed",
                task_id=task_id,
                failure_kind=failure.kind.value,
                detail=failure.detail,
            ),
            summary,
        )

    async def _ensure_review_task(
        self,
        item: WorkItem,
        reason: str,
        license_status: Optional[str],
        notes: Optional[str],
        summary: JobSummary,
    ) -> Optional[UUID]:
        try:
            ensured = await self.fallback.ensure_task(
                item.license_id,
                item.source_id,
                reason,
                expiration_date=item.expiration_date,
                license_status=license_status,
                notes=notes,
                job_id=summary.job_id,
                actor=self.actor,
            )
        except (SQLAlchemyError, PolicyDenied) as e:
            logger.error(
                "Failed to ensure review task",
                job_id=str(summary.job_id),
                license_id=str(item.license_id),
                reason=reason,
                error=str(e),
            )
            return None
        return ensured.task.id

    async def _resolve_open_task(
        self, item: WorkItem, verification_id: UUID, summary: JobSummary
    ) -> Optional[UUID]:
        try:
            task_id = await self.fallback.resolve_open_task(
                item.license_id, item.source_id, verification_id, actor=self.actor
            )
        except (SQLAlchemyError, PolicyDenied) as e:
            logger.error(
                "Failed to resolve review task",
                job_id=str(summary.job_id),
                license_id=str(item.license_id),
                error=str(e),
            )
            return None
        if task_id is not None:
            summary.tasks_resolved += 1
        return task_id

    def _write_failed(self, item: WorkItem, summary: JobSummary, kind: str, error: Exception) -> None:
        logger.error(
            "Failed to persist license outcome",
            job_id=str(summary.job_id),
            license_id=str(item.license_id),
            kind=kind,
            error=str(error),
        )
        summary.add_error(item, kind, str(error), self.settings.max_error_details)
        self._keep(
            LicenseOutcome(
                license_id=item.license_id,
                outcome="error",
                failure_kind=kind,
                detail=str(error),
            ),
            summary,
        )

    # -------------------------------------------------------------------------
    # Finalize
    # -------------------------------------------------------------------------

    async def _reset_session(self) -> None:
        """Drop whatever write an interrupted handler left half done."""
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning("Failed to roll back interrupted session", error=str(e))

    async def _finalize(self, summary: JobSummary) -> None:
        # An operator cancel may land after the last poll
        if not summary.cancelled and await check_if_cancelled(self.db, summary.job_id):
            logger.info("Verification job cancelled by operator", job_id=str(summary.job_id))
            summary.cancelled = True

        status = JobStatus.CANCELLED if summary.cancelled else JobStatus.COMPLETED
        error = None
        if summary.cancelled:
            if summary.processed < summary.total_licenses:
                error = "Cancelled before all licenses were processed"
            else:
                error = OPERATOR_CANCEL_MESSAGE
        written = await complete_job_run(self.db, summary.job_id, summary.counts(), status, error=error)
        if written == JobStatus.CANCELLED.value:
            summary.cancelled = True
        summary.status = written or status.value

        if self.dry_run:
            logger.info(
                "Dry run finished",
                job_id=str(summary.job_id),
                status=summary.status,
                processed=summary.processed,
                auto_verified=summary.auto_verified,
                tasks_created=summary.tasks_created,
                errors=summary.errors,
            )
            return

        await audit_log(
            self.db,
            action="verification_job_completed",
            entity_type="job",
            entity_id=summary.job_id,
            metadata={
                "status": summary.status,
                "processed": summary.processed,
                "auto_verified": summary.auto_verified,
                "tasks_created": summary.tasks_created,
                "errors": summary.errors,
            },
        )
        logger.info(
            "Verification job finished",
            job_id=str(summary.job_id),
            status=summary.status,
            total_licenses=summary.total_licenses,
            processed=summary.processed,
            auto_verified=summary.auto_verified,
            tasks_created=summary.tasks_created,
            errors=summary.errors,
        )


# -----------------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------------


async def run_verification_job(
    trigger: str = "scheduled",
    recheck_after_days: Optional[int] = None,
    policy: Optional[AuthorizationPolicy] = None,
    dry_run: bool = False,
) -> JobSummary:
    """Convenience function to run the recurring verification job."""
    from licensecheck.db import async_session_factory

    async with async_session_factory() as db:
        runner = VerificationJobRunner(db, policy=policy, dry_run=dry_run)
        return await runner.run(RecheckWindowPolicy(recheck_after_days, trigger=trigger))


async def verify_single_license(
    db: AsyncSession,
    license_id: UUID,
    registry: Optional[SourceRegistry] = None,
    policy: Optional[AuthorizationPolicy] = None,
    actor: str = SYSTEM_ACTOR,
) -> tuple[JobSummary, Optional[LicenseOutcome]]:
    """Run the job pipeline over one license.

    Raises:
        LicenseNotFound: no such license
    """
    if await db.get(License, license_id) is None:
        raise LicenseNotFound(license_id)

    runner = VerificationJobRunner(
        db, registry=registry, policy=policy, actor=actor, keep_outcomes=True
    )
    summary = await runner.run(SingleLicensePolicy(license_id))
    outcome = summary.outcomes[0] if summary.outcomes else None
    return summary, outcome
