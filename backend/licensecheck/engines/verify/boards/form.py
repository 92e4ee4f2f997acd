"""Generic HTML search-form verifier for state licensing boards."""

import re
from typing import Optional
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup, Tag

from licensecheck.engines.verify.base import (
    BaseVerifier,
    FailureKind,
    LookupFailed,
    LookupIdentity,
    LookupSuccess,
)

logger = structlog.get_logger()


class BoardFormVerifier(BaseVerifier):
    """Verifier for boards that expose a server-rendered search form.

    Flow: fetch the search page, fill the form (keeping hidden fields such
    as ASP.NET view state), submit it, optionally follow the first result
    link to a detail page, then read label/value pairs.

    Subclasses set ``config`` and override the field-name tuples when the
    board uses unusual names.
    """

    LICENSE_FIELDS: tuple[str, ...] = (
        "licenseNumber",
        "LicenseNumber",
        "license_number",
        "license",
        "credential",
        "credentialNumber",
        "CredentialNumber",
        "lic_no",
    )
    LAST_NAME_FIELDS: tuple[str, ...] = ("lastName", "LastName", "last_name", "lname")
    FIRST_NAME_FIELDS: tuple[str, ...] = ("firstName", "FirstName", "first_name", "fname")

    # Followed when the search returns a result list instead of a detail page
    DETAIL_LINK_SELECTOR: Optional[str] = None

    STATUS_KEYS = ("Status", "License Status", "Credential Status", "Licensure Status")
    EXPIRATION_KEYS = ("Expiration Date", "Expiration", "Expires", "Expiration date", "Exp Date")
    NAME_KEYS = ("Name", "Licensee Name", "Licensee", "Provider Name", "Full Name")
    NUMBER_KEYS = ("License Number", "License #", "Credential Number", "License No", "Credential")
    DISCIPLINE_KEYS = (
        "Discipline",
        "Disciplinary Action",
        "Board Action",
        "Public Board Actions",
        "Discipline on File",
    )

    NO_RESULT_PATTERNS = [
        re.compile(r"no\s*records?\s*(were\s*)?found", re.I),
        re.compile(r"no\s*results?\s*(were\s*)?found", re.I),
        re.compile(r"no\s*matching", re.I),
        re.compile(r"no\s*licen[sc]es?\s*found", re.I),
        re.compile(r"\b0\s*records", re.I),
    ]

    def search_url(self, identity: LookupIdentity) -> str:
        """Search page for this identity. Some boards split pages by credential."""
        return self.config.lookup_url

    async def _lookup(self, identity: LookupIdentity) -> LookupSuccess:
        url = self.search_url(identity)

        async with self._client() as client:
            response = await client.get(url)
            response.raise_for_status()

            search_page = BeautifulSoup(response.text, "lxml")
            method, action, data = self._build_submission(search_page, str(response.url), identity)

            if method == "get":
                response = await client.get(action, params=data)
            else:
                response = await client.post(action, data=data)
            response.raise_for_status()

            page = BeautifulSoup(response.text, "lxml")
            if self._has_no_results(page):
                raise LookupFailed(
                    FailureKind.NOT_FOUND, "No license found matching the search criteria"
                )

            if self.DETAIL_LINK_SELECTOR:
                link = page.select_one(self.DETAIL_LINK_SELECTOR)
                if link and link.get("href"):
                    response = await client.get(urljoin(str(response.url), link["href"]))
                    response.raise_for_status()
                    page = BeautifulSoup(response.text, "lxml")

            return self._parse_result(page, identity, str(response.url))

    def _find_input(self, form: Tag, names: tuple[str, ...]) -> Optional[Tag]:
        for name in names:
            field = form.find("input", attrs={"name": name})
            if field:
                return field
        # ASP.NET mangles names, e.g. ctl00$Main$txtLicenseNumber
        lowered = [n.lower() for n in names]
        for field in form.find_all("input"):
            name = (field.get("name") or "").lower()
            if name and any(name.endswith(n) for n in lowered):
                return field
        return None

    def _build_submission(
        self,
        page: BeautifulSoup,
        page_url: str,
        identity: LookupIdentity,
    ) -> tuple[str, str, dict[str, str]]:
        """Locate the search form and fill it in.

        Returns (method, absolute action URL, form data).
        """
        for form in page.find_all("form"):
            license_input = self._find_input(form, self.LICENSE_FIELDS)
            if not license_input:
                continue

            data: dict[str, str] = {}
            submit_used = False
            for field in form.find_all("input"):
                name = field.get("name")
                if not name:
                    continue
                input_type = (field.get("type") or "text").lower()
                if input_type in ("submit", "button", "image"):
                    # Only the first submit button is sent, like a browser click
                    if submit_used:
                        continue
                    submit_used = True
                if input_type in ("checkbox", "radio") and not field.has_attr("checked"):
                    continue
                data[name] = field.get("value", "")

            for select in form.find_all("select"):
                name = select.get("name")
                if not name:
                    continue
                option = select.find("option", selected=True) or select.find("option")
                data[name] = option.get("value", option.get_text(strip=True)) if option else ""

            data[license_input["name"]] = identity.license_number

            if identity.last_name:
                last_name_input = self._find_input(form, self.LAST_NAME_FIELDS)
                if last_name_input:
                    data[last_name_input["name"]] = identity.last_name
            if identity.first_name:
                first_name_input = self._find_input(form, self.FIRST_NAME_FIELDS)
                if first_name_input:
                    data[first_name_input["name"]] = identity.first_name

            method = (form.get("method") or "get").lower()
            action = urljoin(page_url, form.get("action") or page_url)
            return method, action, data

        raise LookupFailed(
            FailureKind.PARSE_ERROR, "Could not find license input field on the page"
        )

    def _has_no_results(self, page: BeautifulSoup) -> bool:
        text = page.get_text(" ")
        return any(pattern.search(text) for pattern in self.NO_RESULT_PATTERNS)

    def _parse_result(
        self,
        page: BeautifulSoup,
        identity: LookupIdentity,
        page_url: str,
    ) -> LookupSuccess:
        fields = self._extract_fields(page)
        text = self._clean_text(page.get_text(" ")) or ""

        license_number = self._first_field(fields, self.NUMBER_KEYS)
        if not fields and identity.license_number not in text:
            raise LookupFailed(
                FailureKind.PARSE_ERROR, "Result page did not contain a recognizable license record"
            )

        status_text = self._first_field(fields, self.STATUS_KEYS)
        raw_status = self._classify_status(status_text)
        expiration_date = self._parse_date(self._first_field(fields, self.EXPIRATION_KEYS))

        logger.debug(
            "Parsed board result",
            jurisdiction=self.jurisdiction,
            raw_status=raw_status,
            field_count=len(fields),
        )

        return LookupSuccess(
            raw_status=raw_status,
            expiration_date=expiration_date,
            unencumbered=self._detect_unencumbered(self._first_field(fields, self.DISCIPLINE_KEYS)),
            licensee_name=self._first_field(fields, self.NAME_KEYS),
            license_number=license_number or identity.license_number,
            raw_payload={
                "url": page_url,
                "status_text": status_text,
                "fields": fields,
            },
        )
