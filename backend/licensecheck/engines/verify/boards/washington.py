"""Washington State Department of Health provider credential search."""

from licensecheck.engines.verify.base import VerifierConfig
from licensecheck.engines.verify.boards.form import BoardFormVerifier


class WashingtonVerifier(BoardFormVerifier):
    """WA DOH credential search (RN, LPN, CNA, ARNP, LNA)."""

    config = VerifierConfig(
        jurisdiction="WA",
        credential_types=frozenset({"RN", "LPN", "CNA", "ARNP", "LNA"}),
        lookup_url="https://fortress.wa.gov/doh/providercredentialsearch",
    )

    LICENSE_FIELDS = (
        "CredentialNumber",
        "credentialNumber",
        "Credential",
        "credential",
        "LicenseNumber",
        "licenseNumber",
    )
    DETAIL_LINK_SELECTOR = "table tr td a[href]"
