"""Shared HTTP client factory for licensing board lookups.

Usage:
    from licensecheck.engines.http_client import create_http_client

    async with create_http_client() as client:
        response = await client.get("https://example.com")
"""

from typing import Optional

import httpx

from licensecheck.config import get_settings

settings = get_settings()


def get_default_headers(
    user_agent: Optional[str] = None,
    accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    json_accept: bool = False,
) -> dict[str, str]:
    """
    Get default headers for HTTP requests.

    Args:
        user_agent: Custom user agent string. Defaults to settings.lookup_user_agent.
        accept: Accept header value. Defaults to HTML/XML preference.
        json_accept: If True, sets Accept header for JSON responses.

    Returns:
        Dictionary of HTTP headers.
    """
    if json_accept:
        accept = "application/json, text/html"

    return {
        "User-Agent": user_agent or settings.lookup_user_agent,
        "Accept": accept,
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
    }


def create_http_client(
    timeout: Optional[float] = None,
    follow_redirects: bool = True,
    user_agent: Optional[str] = None,
    json_accept: bool = False,
    headers: Optional[dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create a configured httpx.AsyncClient with consistent defaults.

    Args:
        timeout: Request timeout in seconds. Defaults to settings.lookup_timeout_seconds.
        follow_redirects: Whether to follow HTTP redirects. Default True.
        user_agent: Custom user agent string.
        json_accept: If True, sets Accept header for JSON responses.
        headers: Additional headers to merge with defaults.
        transport: Optional transport override (used by tests to stub boards).

    Returns:
        Configured httpx.AsyncClient instance.
    """
    default_timeout = timeout if timeout is not None else settings.lookup_timeout_seconds
    default_headers = get_default_headers(
        user_agent=user_agent,
        json_accept=json_accept,
    )

    if headers:
        default_headers.update(headers)

    return httpx.AsyncClient(
        timeout=default_timeout,
        follow_redirects=follow_redirects,
        headers=default_headers,
        transport=transport,
    )
