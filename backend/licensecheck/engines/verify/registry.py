"""Source registry: which jurisdictions can be verified automatically.

Add a jurisdiction by writing a verifier under ``boards/`` and listing it in
``VERIFIER_CLASSES``. The job runner never branches on jurisdiction.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

import httpx

from licensecheck.engines.verify.base import BaseVerifier, SourceKind, VerifierConfig
from licensecheck.engines.verify.boards import (
    AlaskaVerifier,
    ArizonaVerifier,
    CaliforniaVerifier,
    FloridaVerifier,
    IdahoVerifier,
    MontanaVerifier,
    NewYorkVerifier,
    NorthCarolinaVerifier,
    OregonVerifier,
    TexasVerifier,
    WashingtonVerifier,
)
from licensecheck.engines.verify.fallback import TaskReason

VERIFIER_CLASSES: list[type[BaseVerifier]] = [
    # Pacific Northwest
    WashingtonVerifier,
    OregonVerifier,
    IdahoVerifier,
    AlaskaVerifier,
    MontanaVerifier,
    # Southwest
    ArizonaVerifier,
    CaliforniaVerifier,
    TexasVerifier,
    # Southeast
    FloridaVerifier,
    NorthCarolinaVerifier,
    # Northeast
    NewYorkVerifier,
]

REGIONS: dict[str, tuple[str, ...]] = {
    "Pacific Northwest": ("WA", "OR", "ID", "AK", "MT"),
    "Southwest": ("AZ", "CA", "TX"),
    "Southeast": ("FL", "NC"),
    "Northeast": ("NY",),
}


@dataclass(frozen=True)
class Capability:
    """Answer to "can this license be checked automatically?"."""

    jurisdiction: str
    automated: bool
    config: Optional[VerifierConfig] = None
    reason: Optional[str] = None  # why not automated
    source_kind: Optional[SourceKind] = None

    @property
    def via_feed(self) -> bool:
        return self.source_kind == SourceKind.REGISTRY_FEED


class SourceRegistry:
    """Static jurisdiction -> verifier mapping.

    Lookups are deterministic and side-effect free. Unknown jurisdiction
    codes are not an error: they report ``automated=False``.
    """

    def __init__(
        self,
        verifiers: Optional[Iterable[BaseVerifier]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if verifiers is None:
            verifiers = [cls(transport=transport) for cls in VERIFIER_CLASSES]
        self._verifiers: dict[str, BaseVerifier] = {
            v.jurisdiction.upper(): v for v in verifiers
        }

    def capability_for(
        self,
        jurisdiction: Optional[str],
        credential_type: Optional[str] = None,
        feed_enrolled: bool = False,
    ) -> Capability:
        """Report automatability for a jurisdiction, optionally narrowed to a credential type.

        A license enrolled in a registry feed is automated whatever its
        jurisdiction: the feed replaces the board lookup.
        """
        code = (jurisdiction or "").strip().upper()
        if feed_enrolled:
            return Capability(
                jurisdiction=code, automated=True, source_kind=SourceKind.REGISTRY_FEED
            )

        verifier = self._verifiers.get(code)
        if verifier is None:
            return Capability(
                jurisdiction=code, automated=False, reason=TaskReason.UNSUPPORTED_JURISDICTION
            )

        if credential_type is not None and not verifier.supports(credential_type):
            return Capability(
                jurisdiction=code,
                automated=False,
                config=verifier.config,
                reason=TaskReason.UNSUPPORTED_CREDENTIAL,
                source_kind=verifier.config.source_kind,
            )

        return Capability(
            jurisdiction=code,
            automated=True,
            config=verifier.config,
            source_kind=verifier.config.source_kind,
        )

    def list_automated_jurisdictions(self) -> set[str]:
        return set(self._verifiers)

    def get_verifier(self, jurisdiction: Optional[str]) -> Optional[BaseVerifier]:
        return self._verifiers.get((jurisdiction or "").strip().upper())

    def concurrency_limit(self, jurisdiction: str) -> Optional[int]:
        """Adapter-declared concurrency cap, if any."""
        verifier = self.get_verifier(jurisdiction)
        return verifier.config.max_concurrency if verifier else None

    def states_by_region(self) -> dict[str, list[str]]:
        """Automated jurisdictions grouped by region for status displays."""
        grouped: dict[str, list[str]] = {}
        automated = self.list_automated_jurisdictions()
        placed: set[str] = set()
        for region, codes in REGIONS.items():
            present = [c for c in codes if c in automated]
            if present:
                grouped[region] = present
                placed.update(present)
        others = sorted(automated - placed)
        if others:
            grouped["Other"] = others
        return grouped
