"""California Board of Registered Nursing license verification."""

from licensecheck.engines.verify.base import VerifierConfig
from licensecheck.engines.verify.boards.form import BoardFormVerifier


class CaliforniaVerifier(BoardFormVerifier):
    config = VerifierConfig(
        jurisdiction="CA",
        credential_types=frozenset({"RN", "NP", "CNM", "CRNA", "CNS", "PHN"}),
        lookup_url="https://www.rn.ca.gov/verification.shtml",
    )

    LICENSE_FIELDS = ("licenseNumber", "LicenseNumber", "license_number", "txtLicense")
    LAST_NAME_FIELDS = ("lastName", "LastName", "last_name", "txtLastName")
    DETAIL_LINK_SELECTOR = "a[href*='detail'], a[href*='view']"
