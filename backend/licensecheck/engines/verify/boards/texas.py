"""Texas Board of Nursing license lookup."""

from licensecheck.engines.verify.base import LookupIdentity, VerifierConfig
from licensecheck.engines.verify.boards.form import BoardFormVerifier

RN_LOOKUP_URL = "https://www.bon.texas.gov/forms/rnlookup.asp"
LVN_LOOKUP_URL = "https://www.bon.texas.gov/forms/lvnlookup.asp"


class TexasVerifier(BoardFormVerifier):
    """Texas keeps separate lookup pages for RN and LVN licenses."""

    config = VerifierConfig(
        jurisdiction="TX",
        credential_types=frozenset({"RN", "LVN", "LPN", "APRN"}),
        lookup_url=RN_LOOKUP_URL,
    )

    LICENSE_FIELDS = ("lic_no", "license", "licenseNumber")
    LAST_NAME_FIELDS = ("last_name", "lastName", "lname")

    def search_url(self, identity: LookupIdentity) -> str:
        if identity.credential_type.upper() in ("LVN", "LPN"):
            return LVN_LOOKUP_URL
        return RN_LOOKUP_URL
