"""Raw board status -> canonical status and verification result.

Two independent projections. A suspended license is ``flagged`` while its
verification result is still ``pending``; they are deliberately not merged.
"""

from dataclasses import dataclass
from typing import Optional

from licensecheck.db.models import LicenseStatus, VerificationResult

_CANONICAL_STATUS: dict[str, LicenseStatus] = {
    "active": LicenseStatus.ACTIVE,
    "expired": LicenseStatus.EXPIRED,
    "inactive": LicenseStatus.EXPIRED,
    "suspended": LicenseStatus.FLAGGED,
    "revoked": LicenseStatus.FLAGGED,
}

_VERIFICATION_RESULT: dict[str, VerificationResult] = {
    "active": VerificationResult.VERIFIED,
    "expired": VerificationResult.EXPIRED,
}

# Results a person can record by hand
_MANUAL_STATUS: dict[str, LicenseStatus] = {
    VerificationResult.VERIFIED.value: LicenseStatus.ACTIVE,
    VerificationResult.EXPIRED.value: LicenseStatus.EXPIRED,
    VerificationResult.NOT_FOUND.value: LicenseStatus.NEEDS_MANUAL,
    "flagged": LicenseStatus.FLAGGED,
}
MANUAL_RESULTS = tuple(_MANUAL_STATUS)


@dataclass(frozen=True)
class NormalizedResult:
    status: Optional[LicenseStatus]  # None leaves the License status as it is
    result: VerificationResult
    raw_status: Optional[str] = None


def _key(raw_status: Optional[str]) -> str:
    return (raw_status or "").strip().lower()


def to_license_status(raw_status: Optional[str]) -> LicenseStatus:
    """Missing or unrecognized values map to needs_manual."""
    return _CANONICAL_STATUS.get(_key(raw_status), LicenseStatus.NEEDS_MANUAL)


def to_verification_result(raw_status: Optional[str]) -> VerificationResult:
    """Missing or unrecognized values map to pending."""
    return _VERIFICATION_RESULT.get(_key(raw_status), VerificationResult.PENDING)


def normalize(raw_status: Optional[str]) -> NormalizedResult:
    return NormalizedResult(
        status=to_license_status(raw_status),
        result=to_verification_result(raw_status),
        raw_status=raw_status,
    )


def not_found_result() -> NormalizedResult:
    """A definitive "no such license" answer from the source."""
    return NormalizedResult(
        status=LicenseStatus.NEEDS_MANUAL,
        result=VerificationResult.NOT_FOUND,
    )


def feed_pending_result() -> NormalizedResult:
    """A license whose status will be pushed by a registry feed.

    Nothing was observed, so the License status is not changed.
    """
    return NormalizedResult(status=None, result=VerificationResult.PENDING)


def manual_result(result: str) -> NormalizedResult:
    """Normalize a hand-entered result (verified, expired, not_found, flagged).

    ``flagged`` is stored with verification result ``pending``, matching the
    automated path for suspended or revoked licenses.

    Raises:
        ValueError: result is not one of MANUAL_RESULTS
    """
    key = _key(result)
    if key not in _MANUAL_STATUS:
        raise ValueError(f"Unknown manual result {result!r}; expected one of {MANUAL_RESULTS}")
    if key == "flagged":
        verification_result = VerificationResult.PENDING
    else:
        verification_result = VerificationResult(key)
    return NormalizedResult(status=_MANUAL_STATUS[key], result=verification_result)
