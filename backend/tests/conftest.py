"""
Pytest configuration and shared fixtures.

Each test gets its own in-memory SQLite database built from the ORM
metadata, plus fake verifiers that never touch the network.
"""

import asyncio
from datetime import date, datetime
from typing import Optional, Union

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from licensecheck.config import get_settings
from licensecheck.db.models import (
    Base,
    License,
    NursysEnrollment,
    Person,
    VerificationSource,
    VerificationTask,
    Verification,
)
from licensecheck.engines.verify.base import (
    BaseVerifier,
    LookupFailure,
    LookupIdentity,
    LookupSuccess,
    VerifierConfig,
)
from licensecheck.engines.verify.registry import SourceRegistry


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so env changes made by a test are picked up."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ============================================
# Seed helpers
# ============================================


async def make_license(
    db: AsyncSession,
    state: str = "WA",
    credential_type: str = "RN",
    license_number: str = "RN00012345",
    status: str = "unknown",
    expiration_date: Optional[date] = None,
    last_verified_at: Optional[datetime] = None,
    archived: bool = False,
    first_name: str = "Ada",
    last_name: str = "Lovelace",
) -> License:
    person = Person(first_name=first_name, last_name=last_name)
    db.add(person)
    await db.flush()
    license_row = License(
        person_id=person.id,
        state=state,
        credential_type=credential_type,
        license_number=license_number,
        status=status,
        expiration_date=expiration_date,
        last_verified_at=last_verified_at,
        archived=archived,
    )
    db.add(license_row)
    await db.commit()
    return license_row


async def make_source(
    db: AsyncSession,
    state: Optional[str] = "WA",
    source_type: str = "bon",
) -> VerificationSource:
    source = VerificationSource(
        state=state,
        source_type=source_type,
        display_name=f"{state or 'National'} {source_type}",
        lookup_url="https://example.test/lookup",
    )
    db.add(source)
    await db.commit()
    return source


async def enroll_in_feed(db: AsyncSession, license_id, active: bool = True) -> NursysEnrollment:
    enrollment = NursysEnrollment(license_id=license_id, nursys_id="NUR-1", active=active)
    db.add(enrollment)
    await db.commit()
    return enrollment


async def reload(db: AsyncSession, model, obj_id):
    """Read a row fresh from the database, bypassing the identity map."""
    return await db.get(model, obj_id, populate_existing=True)


async def tasks_for(db: AsyncSession, license_id) -> list[VerificationTask]:
    result = await db.execute(
        select(VerificationTask)
        .where(VerificationTask.license_id == license_id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def verifications_for(db: AsyncSession, license_id) -> list[Verification]:
    result = await db.execute(
        select(Verification)
        .where(Verification.license_id == license_id)
        .order_by(Verification.created_at)
    )
    return list(result.scalars().all())


# ============================================
# Fake verifiers
# ============================================


class FakeVerifier(BaseVerifier):
    """Verifier returning a canned result, tracking overlapping calls."""

    def __init__(
        self,
        jurisdiction: str = "WA",
        result: Union[LookupSuccess, LookupFailure, Exception, None] = None,
        delay: float = 0.0,
        credential_types: tuple[str, ...] = ("RN", "LPN", "CNA"),
        timeout: Optional[float] = None,
        max_concurrency: Optional[int] = None,
    ):
        super().__init__()
        self.config = VerifierConfig(
            jurisdiction=jurisdiction,
            credential_types=frozenset(credential_types),
            lookup_url="https://example.test/lookup",
            timeout=timeout,
            max_concurrency=max_concurrency,
        )
        self.result = result or LookupSuccess(
            raw_status="active",
            expiration_date=date(2026, 1, 1),
            unencumbered=True,
            licensee_name="ADA LOVELACE",
            raw_payload={"fields": {"Status": "Active"}},
        )
        self.delay = delay
        self.calls: list[LookupIdentity] = []
        self.active = 0
        self.max_active = 0
        self.cancelled = 0

    async def _lookup(self, identity: LookupIdentity):
        self.calls.append(identity)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.active -= 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def fake_verifier():
    return FakeVerifier()


@pytest.fixture
def registry(fake_verifier):
    return SourceRegistry(verifiers=[fake_verifier])
