"""Base classes for per-jurisdiction license lookups."""

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union

import httpx
import structlog
from bs4 import BeautifulSoup

from licensecheck.config import get_settings
from licensecheck.engines.http_client import create_http_client

logger = structlog.get_logger()


class FailureKind(str, Enum):
    """Why a lookup did not produce a usable result."""

    NOT_FOUND = "not_found"
    TRANSIENT = "transient"  # network, timeout, rate limit
    PARSE_ERROR = "parse_error"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class LookupIdentity:
    """What we know about a license when asking its jurisdiction about it.

    Names are best-effort: they may be absent or differ from the registry.
    """

    license_number: str
    jurisdiction: str
    credential_type: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


@dataclass
class LookupSuccess:
    """A license record found at the source.

    ``raw_status`` uses the shared adapter vocabulary
    (active, expired, inactive, suspended, revoked, unknown) or None.
    """

    raw_status: Optional[str]
    expiration_date: Optional[date] = None
    unencumbered: Optional[bool] = None
    licensee_name: Optional[str] = None
    license_number: Optional[str] = None
    raw_payload: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return True


@dataclass
class LookupFailure:
    """A lookup that did not yield a license record."""

    kind: FailureKind
    detail: str

    @property
    def ok(self) -> bool:
        return False


LookupResult = Union[LookupSuccess, LookupFailure]


class LookupFailed(Exception):
    """Raised inside adapters to short-circuit with a typed failure."""

    def __init__(self, kind: FailureKind, detail: str):
        self.kind = kind
        self.detail = detail
        super().__init__(detail)


class SourceKind(str, Enum):
    """How a source delivers license status."""

    WEBSITE = "website"
    API = "api"
    REGISTRY_FEED = "registry_feed"  # pushed by the registry, never looked up


@dataclass(frozen=True)
class VerifierConfig:
    """Static description of one jurisdiction's lookup source."""

    jurisdiction: str
    credential_types: frozenset[str]
    lookup_url: str
    source_kind: SourceKind = SourceKind.WEBSITE
    timeout: Optional[float] = None  # seconds; defaults to settings.lookup_timeout_seconds
    max_concurrency: Optional[int] = None


class BaseVerifier(ABC):
    """Base class for license verifiers.

    Subclasses implement ``_lookup``. ``lookup`` bounds it with a timeout and
    turns every expected failure mode into a ``LookupFailure`` so callers
    never need to catch adapter exceptions.
    """

    config: VerifierConfig

    # Shared raw-status vocabulary, most specific first ("inactive" contains "active")
    STATUS_PATTERNS: list[tuple[str, re.Pattern]] = [
        ("inactive", re.compile(r"\b(inactive|lapsed|retired)\b", re.I)),
        ("revoked", re.compile(r"\b(revoked|revocation|surrendered)\b", re.I)),
        ("suspended", re.compile(r"\bsuspend(ed|ion)?\b", re.I)),
        ("expired", re.compile(r"\bexpired\b", re.I)),
        ("active", re.compile(r"\b(active|current|valid|clear)\b", re.I)),
    ]

    DATE_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%B %d, %Y", "%B %d %Y", "%b %d, %Y", "%b %d %Y")
    DATE_PATTERN = re.compile(
        r"\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2}|[A-Za-z]{3,9}\.?\s+\d{1,2},?\s+\d{4}"
    )
    NO_ACTION_PATTERN = re.compile(r"(none|no|n/?a)\b", re.I)
    UNENCUMBERED_PATTERN = re.compile(
        r"\bunencumbered\b|no\s+(public\s+)?(board\s+)?(action|discipline)", re.I
    )

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport
        self._settings = get_settings()

    @property
    def jurisdiction(self) -> str:
        return self.config.jurisdiction

    @property
    def timeout(self) -> float:
        return self.config.timeout or self._settings.lookup_timeout_seconds

    def supports(self, credential_type: Optional[str]) -> bool:
        """Whether this source can look up the given credential type."""
        if not credential_type:
            return False
        return credential_type.upper() in self.config.credential_types

    async def lookup(self, identity: LookupIdentity) -> LookupResult:
        """Perform one bounded, cancellable lookup.

        Cancellation of the calling task propagates; everything else
        becomes a typed failure.
        """
        log = logger.bind(
            jurisdiction=self.jurisdiction,
            license_number=identity.license_number,
        )
        try:
            return await asyncio.wait_for(self._lookup(identity), timeout=self.timeout)
        except asyncio.TimeoutError:
            log.warning("Lookup timed out", timeout=self.timeout)
            return LookupFailure(
                FailureKind.TRANSIENT, f"Lookup timed out after {self.timeout:g}s"
            )
        except LookupFailed as e:
            return LookupFailure(e.kind, e.detail)
        except httpx.TimeoutException as e:
            log.warning("Lookup HTTP timeout", error=str(e))
            return LookupFailure(FailureKind.TRANSIENT, f"HTTP timeout: {e}")
        except httpx.HTTPStatusError as e:
            return self._classify_http_error(e)
        except httpx.TransportError as e:
            log.warning("Lookup transport error", error=str(e))
            return LookupFailure(FailureKind.TRANSIENT, f"Network error: {e}")
        except Exception as e:
            log.error("Lookup failed while parsing", error=str(e), error_type=type(e).__name__)
            return LookupFailure(FailureKind.PARSE_ERROR, f"{type(e).__name__}: {e}")

    @abstractmethod
    async def _lookup(self, identity: LookupIdentity) -> LookupResult:
        """Query the source for one license."""
        pass

    def _client(self, json_accept: bool = False) -> httpx.AsyncClient:
        return create_http_client(
            timeout=self.timeout,
            json_accept=json_accept,
            transport=self._transport,
        )

    def _classify_http_error(self, error: httpx.HTTPStatusError) -> LookupFailure:
        code = error.response.status_code
        if code == 404:
            return LookupFailure(FailureKind.NOT_FOUND, "Source returned 404 for this license")
        if code == 429 or code >= 500:
            return LookupFailure(FailureKind.TRANSIENT, f"Source returned HTTP {code}")
        return LookupFailure(FailureKind.PARSE_ERROR, f"Unexpected HTTP {code} from source")

    # -------------------------------------------------------------------------
    # Parsing helpers
    # -------------------------------------------------------------------------

    def _clean_text(self, text: Optional[str]) -> Optional[str]:
        """Collapse whitespace; empty strings become None."""
        if not text:
            return None
        text = " ".join(text.split()).strip()
        return text if text else None

    def _classify_status(self, status_text: Optional[str]) -> Optional[str]:
        """Map a board's free-text status to the shared raw vocabulary."""
        if not status_text:
            return None
        for raw_status, pattern in self.STATUS_PATTERNS:
            if pattern.search(status_text):
                return raw_status
        return "unknown"

    def _parse_date(self, date_text: Optional[str]) -> Optional[date]:
        """Parse the first recognizable date in the text."""
        if not date_text:
            return None
        match = self.DATE_PATTERN.search(date_text)
        if not match:
            return None
        candidate = match.group(0).replace(".", "")
        for fmt in self.DATE_FORMATS:
            try:
                return datetime.strptime(candidate, fmt).date()
            except ValueError:
                continue
        return None

    def _detect_unencumbered(self, discipline_text: Optional[str]) -> Optional[bool]:
        """Read a board's discipline/action field. None when the board shows none."""
        text = self._clean_text(discipline_text)
        if not text:
            return None
        if self.NO_ACTION_PATTERN.match(text) or self.UNENCUMBERED_PATTERN.search(text):
            return True
        return False

    def _extract_fields(self, soup: BeautifulSoup) -> dict[str, str]:
        """
        Collect label/value pairs from a detail page.

        Looks at two-column table rows, definition lists and labelled
        ``.field``-style blocks, in that order. Later duplicates do not
        overwrite earlier ones.
        """
        fields: dict[str, str] = {}

        def put(label: Optional[str], value: Optional[str]) -> None:
            label = self._clean_text(label)
            value = self._clean_text(value)
            if not label or not value or label == value:
                return
            label = label.rstrip(":").strip()
            fields.setdefault(label, value)

        for row in soup.select("tr"):
            cells = row.find_all(["th", "td"], recursive=False)
            if len(cells) >= 2:
                put(cells[0].get_text(" "), cells[1].get_text(" "))

        for dt in soup.find_all("dt"):
            dd = dt.find_next_sibling("dd")
            if dd:
                put(dt.get_text(" "), dd.get_text(" "))

        for block in soup.select(".field, .form-group, .detail-item"):
            label_el = block.select_one("label, .label, strong, b, .field-label")
            value_el = block.select_one(".value, .field-value")
            if label_el and value_el:
                put(label_el.get_text(" "), value_el.get_text(" "))

        return fields

    def _first_field(self, fields: dict[str, str], keys: tuple[str, ...]) -> Optional[str]:
        """Case-insensitive lookup of the first present key."""
        lowered = {k.lower(): v for k, v in fields.items()}
        for key in keys:
            value = lowered.get(key.lower())
            if value:
                return value
        return None
