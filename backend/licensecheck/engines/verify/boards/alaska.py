"""Alaska Division of Corporations, Business and Professional Licensing search."""

from licensecheck.engines.verify.base import VerifierConfig
from licensecheck.engines.verify.boards.form import BoardFormVerifier


class AlaskaVerifier(BoardFormVerifier):
    config = VerifierConfig(
        jurisdiction="AK",
        credential_types=frozenset({"RN", "LPN", "CNA", "APRN", "NP"}),
        lookup_url="https://www.commerce.alaska.gov/cbp/main/search/professional",
    )

    LICENSE_FIELDS = ("LicenseNumber", "txtLicenseNumber", "licenseNumber")
    LAST_NAME_FIELDS = ("LastName", "txtLastName")
    DETAIL_LINK_SELECTOR = "a[href*='detail'], a[href*='view']"
