"""New York State Education Department Office of the Professions search."""

from licensecheck.engines.verify.base import VerifierConfig
from licensecheck.engines.verify.boards.form import BoardFormVerifier


class NewYorkVerifier(BoardFormVerifier):
    config = VerifierConfig(
        jurisdiction="NY",
        credential_types=frozenset({"RN", "LPN", "NP", "APRN"}),
        lookup_url="http://www.op.nysed.gov/opsearches.htm",
    )

    LICENSE_FIELDS = ("LicNo", "licenseNo", "license")
    LAST_NAME_FIELDS = ("LastName", "lname")
    STATUS_KEYS = ("Status", "Registration Status", "License Status")
    EXPIRATION_KEYS = ("Registered through last day of", "Registered Through", "Expiration Date")
