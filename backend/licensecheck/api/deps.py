"""Shared FastAPI dependencies."""

import hmac
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException

from licensecheck.authz import SYSTEM_ACTOR, AllowAllPolicy, AuthorizationPolicy
from licensecheck.config import ConfigurationError, get_settings
from licensecheck.engines.verify.registry import SourceRegistry


@lru_cache
def get_registry() -> SourceRegistry:
    return SourceRegistry()


def get_policy() -> AuthorizationPolicy:
    return AllowAllPolicy()


def get_actor(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Acting user as forwarded by the auth layer in front of the API."""
    return x_user_id or SYSTEM_ACTOR


def require_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """Bearer shared-secret check for the scheduler trigger.

    Raises:
        ConfigurationError: no secret is configured, so nothing may run
        HTTPException: 401 when the header does not carry the secret
    """
    secret = get_settings().cron_secret
    if not secret:
        raise ConfigurationError("CRON_SECRET not configured")

    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")
