"""License verification engine: registry, verifiers, recorder, fallback and job runner."""

from licensecheck.engines.verify.base import (
    BaseVerifier,
    FailureKind,
    LookupFailure,
    LookupIdentity,
    LookupSuccess,
    SourceKind,
    VerifierConfig,
)
from licensecheck.engines.verify.errors import LicenseNotFound, TaskMismatch, WorkSetError
from licensecheck.engines.verify.fallback import FallbackTaskEngine, TaskReason
from licensecheck.engines.verify.manual import ManualVerificationService
from licensecheck.engines.verify.normalizer import normalize
from licensecheck.engines.verify.recorder import (
    VerificationRecorder,
    apply_license_projection,
    reconcile_license,
)
from licensecheck.engines.verify.registry import Capability, SourceRegistry
from licensecheck.engines.verify.runner import (
    JobSummary,
    RecheckWindowPolicy,
    SingleLicensePolicy,
    VerificationJobRunner,
    run_verification_job,
    verify_single_license,
)

__all__ = [
    "BaseVerifier",
    "FailureKind",
    "LookupFailure",
    "LookupIdentity",
    "LookupSuccess",
    "SourceKind",
    "VerifierConfig",
    "LicenseNotFound",
    "TaskMismatch",
    "WorkSetError",
    "FallbackTaskEngine",
    "TaskReason",
    "ManualVerificationService",
    "normalize",
    "VerificationRecorder",
    "apply_license_projection",
    "reconcile_license",
    "Capability",
    "SourceRegistry",
    "JobSummary",
    "RecheckWindowPolicy",
    "SingleLicensePolicy",
    "VerificationJobRunner",
    "run_verification_job",
    "verify_single_license",
]
