"""Database module."""

from licensecheck.db.session import get_db, engine, async_session_factory
from licensecheck.db.models import (
    Base,
    Person,
    License,
    NursysEnrollment,
    VerificationSource,
    Verification,
    VerificationTask,
    VerificationJob,
    AuditLog,
    LicenseStatus,
    VerificationResult,
    RunType,
    TaskStatus,
    JobStatus,
)

__all__ = [
    "get_db",
    "engine",
    "async_session_factory",
    "Base",
    "Person",
    "License",
    "NursysEnrollment",
    "VerificationSource",
    "Verification",
    "VerificationTask",
    "VerificationJob",
    "AuditLog",
    "LicenseStatus",
    "VerificationResult",
    "RunType",
    "TaskStatus",
    "JobStatus",
]
