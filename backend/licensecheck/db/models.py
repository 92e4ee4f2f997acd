"""SQLAlchemy database models."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LicenseStatus(str, Enum):
    """Canonical license state, derived from verification history."""

    ACTIVE = "active"
    EXPIRED = "expired"
    NEEDS_MANUAL = "needs_manual"
    FLAGGED = "flagged"
    UNKNOWN = "unknown"


class VerificationResult(str, Enum):
    """Outcome classification of a single check attempt."""

    VERIFIED = "verified"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"
    ERROR = "error"
    PENDING = "pending"


class RunType(str, Enum):
    AUTOMATED = "automated"
    MANUAL = "manual"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


OPEN_TASK_STATUSES = (TaskStatus.PENDING.value, TaskStatus.IN_PROGRESS.value)


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Person(Base):
    """A nurse, aide or other credential holder being tracked."""

    __tablename__ = "people"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    licenses: Mapped[list["License"]] = relationship(back_populates="person")


class License(Base):
    """A professional credential issued by one jurisdiction."""

    __tablename__ = "licenses"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    person_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False
    )
    state: Mapped[str] = mapped_column(String(2), nullable=False)  # jurisdiction code
    license_number: Mapped[str] = mapped_column(Text, nullable=False)
    credential_type: Mapped[str] = mapped_column(String(10), nullable=False)  # RN, LPN, CNA...
    status: Mapped[str] = mapped_column(
        String(20), default=LicenseStatus.UNKNOWN.value, nullable=False
    )
    expiration_date: Mapped[Optional[date]] = mapped_column(Date)
    archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Display cache of the last lookup; never authoritative for status
    licensee_name: Mapped[Optional[str]] = mapped_column(Text)
    synced_data: Mapped[Optional[dict]] = mapped_column(JSONType)
    synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    person: Mapped["Person"] = relationship(back_populates="licenses")


class NursysEnrollment(Base):
    """A license enrolled in Nursys e-Notify; status changes are pushed to us."""

    __tablename__ = "nursys_enrollments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    license_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("licenses.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    nursys_id: Mapped[Optional[str]] = mapped_column(Text)
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    last_notification_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow
    )


class VerificationSource(Base):
    """An external authority consulted for verification (BON, CNA registry...)."""

    __tablename__ = "verification_sources"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    state: Mapped[Optional[str]] = mapped_column(String(2))
    source_type: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # bon, cna_registry, nursys, other
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    lookup_url: Mapped[Optional[str]] = mapped_column(Text)
    instructions: Mapped[Optional[str]] = mapped_column(Text)
    supports_api: Mapped[bool] = mapped_column(Boolean, default=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Verification(Base):
    """Append-only record of one verification attempt."""

    __tablename__ = "verifications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    license_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("licenses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    run_type: Mapped[str] = mapped_column(String(20), nullable=False)
    source_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("verification_sources.id")
    )
    result: Mapped[str] = mapped_column(String(20), nullable=False)
    status_found: Mapped[Optional[str]] = mapped_column(String(20))
    expiration_found: Mapped[Optional[date]] = mapped_column(Date)
    unencumbered: Mapped[Optional[bool]] = mapped_column(Boolean)
    raw_response: Mapped[Optional[dict]] = mapped_column(JSONType)
    evidence_url: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    verified_by: Mapped[Optional[str]] = mapped_column(Text)  # user id or "system"
    job_id: Mapped[Optional[UUID]] = mapped_column(Uuid, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class VerificationTask(Base):
    """Manual follow-up needed when automation cannot resolve a license."""

    __tablename__ = "verification_tasks"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    license_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("licenses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("verification_sources.id")
    )
    status: Mapped[str] = mapped_column(
        String(20), default=TaskStatus.PENDING.value, nullable=False
    )
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    assigned_to: Mapped[Optional[str]] = mapped_column(Text)
    reason: Mapped[Optional[str]] = mapped_column(String(40))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_by: Mapped[Optional[str]] = mapped_column(Text)
    verification_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("verifications.id")
    )
    job_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow
    )


class VerificationJob(Base):
    """One execution of the batch verification runner."""

    __tablename__ = "verification_jobs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    status: Mapped[str] = mapped_column(
        String(20), default=JobStatus.PENDING.value, nullable=False
    )  # pending, running, completed, failed, cancelled
    trigger: Mapped[str] = mapped_column(
        String(20), default="scheduled"
    )  # scheduled, on_demand, license
    dry_run: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Stats
    total_licenses: Mapped[int] = mapped_column(Integer, default=0)
    processed: Mapped[int] = mapped_column(Integer, default=0)
    auto_verified: Mapped[int] = mapped_column(Integer, default=0)
    tasks_created: Mapped[int] = mapped_column(Integer, default=0)
    tasks_refreshed: Mapped[int] = mapped_column(Integer, default=0)
    errors: Mapped[int] = mapped_column(Integer, default=0)

    # Error tracking
    error_details: Mapped[Optional[list]] = mapped_column(JSONType)
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class AuditLog(Base):
    """Append-only audit trail."""

    __tablename__ = "audit_log"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str] = mapped_column(Text, nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    user_id: Mapped[Optional[str]] = mapped_column(Text)
    details: Mapped[Optional[dict]] = mapped_column("metadata", JSONType)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
