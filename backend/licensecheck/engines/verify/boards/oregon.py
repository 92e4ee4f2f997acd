"""Oregon State Board of Nursing license verification."""

from licensecheck.engines.verify.base import VerifierConfig
from licensecheck.engines.verify.boards.form import BoardFormVerifier


class OregonVerifier(BoardFormVerifier):
    config = VerifierConfig(
        jurisdiction="OR",
        credential_types=frozenset({"RN", "LPN", "CNA", "NP", "CNS", "CRNA", "CNM"}),
        lookup_url="https://osbn.oregon.gov/OSBNVerification/",
    )

    DETAIL_LINK_SELECTOR = "table tr td a[href*='Detail'], a[href*='detail']"
