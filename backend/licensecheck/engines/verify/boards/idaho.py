"""Idaho Board of Nursing license verification portal."""

from licensecheck.engines.verify.base import VerifierConfig
from licensecheck.engines.verify.boards.form import BoardFormVerifier


class IdahoVerifier(BoardFormVerifier):
    """ASP.NET WebForms portal; view state is carried by the form builder."""

    config = VerifierConfig(
        jurisdiction="ID",
        credential_types=frozenset({"RN", "LPN", "CNA", "APRN", "MA-C"}),
        lookup_url="https://ibn.idaho.gov/IBNPortal/LicenseVerification.aspx",
    )

    LICENSE_FIELDS = ("txtLicenseNumber", "LicenseNumber")
    LAST_NAME_FIELDS = ("txtLastName", "LastName")
