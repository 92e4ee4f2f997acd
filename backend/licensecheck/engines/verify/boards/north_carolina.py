"""North Carolina Board of Nursing license verification."""

from licensecheck.engines.verify.base import VerifierConfig
from licensecheck.engines.verify.boards.form import BoardFormVerifier


class NorthCarolinaVerifier(BoardFormVerifier):
    config = VerifierConfig(
        jurisdiction="NC",
        credential_types=frozenset({"RN", "LPN", "APRN", "NP"}),
        lookup_url="https://portal.ncbon.com/LicenseVerification/Search.aspx",
    )

    LICENSE_FIELDS = ("txtLicenseNumber", "LicenseNumber", "licenseNumber")
    LAST_NAME_FIELDS = ("txtLastName", "LastName")
    DETAIL_LINK_SELECTOR = "a[href*='Detail'], a[href*='detail']"
