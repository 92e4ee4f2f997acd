"""Florida Department of Health MQA license search."""

from licensecheck.engines.verify.base import VerifierConfig
from licensecheck.engines.verify.boards.form import BoardFormVerifier


class FloridaVerifier(BoardFormVerifier):
    config = VerifierConfig(
        jurisdiction="FL",
        credential_types=frozenset({"RN", "LPN", "ARNP", "APRN", "CNA"}),
        lookup_url="https://mqa-internet.doh.state.fl.us/MQASearchServices/Home",
    )

    LICENSE_FIELDS = ("LicenseNumber", "licenseNumber")
    LAST_NAME_FIELDS = ("LastName", "lastName")
    DETAIL_LINK_SELECTOR = "a[href*='Detail']"
