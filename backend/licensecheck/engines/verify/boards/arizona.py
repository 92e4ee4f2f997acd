"""Arizona State Board of Nursing license lookup.

Only nursing assistant style credentials are searchable here. RN, LPN and
advanced practice licenses are verified through Nursys, so they are left
off the supported list and handled as manual tasks.
"""

from licensecheck.engines.verify.base import VerifierConfig
from licensecheck.engines.verify.boards.form import BoardFormVerifier


class ArizonaVerifier(BoardFormVerifier):
    config = VerifierConfig(
        jurisdiction="AZ",
        credential_types=frozenset({"CNA", "LNA", "UCNA", "CMA", "LHA", "SN"}),
        lookup_url="https://azbn.boardsofnursing.org/licenselookup",
    )

    LICENSE_FIELDS = ("LicenseSearch.LicenseSearchInput.LicenseNumber", "LicenseNumber")
    DETAIL_LINK_SELECTOR = "table tr td a[href*='Detail'], a[href*='licenselookup/']"
