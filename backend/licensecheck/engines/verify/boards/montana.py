"""Montana Department of Labor & Industry licensee search."""

from licensecheck.engines.verify.base import VerifierConfig
from licensecheck.engines.verify.boards.form import BoardFormVerifier


class MontanaVerifier(BoardFormVerifier):
    config = VerifierConfig(
        jurisdiction="MT",
        credential_types=frozenset({"RN", "LPN", "CNA", "APRN", "NP"}),
        lookup_url="https://ebiz.mt.gov/publicportal/mt/dlibsdlv/licenseesearch.aspx",
    )

    LICENSE_FIELDS = ("txtLicenseNumber", "LicenseNumber")
    LAST_NAME_FIELDS = ("txtLastName", "LastName")
    DETAIL_LINK_SELECTOR = "a[href*='detail'], a[href*='view']"
