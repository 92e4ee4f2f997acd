"""Tests for verification recording and the License projection."""

from datetime import date, timedelta

import pytest
from sqlalchemy import Update
from sqlalchemy.exc import OperationalError

from licensecheck.authz import ActionAllowListPolicy, PolicyDenied
from licensecheck.db.models import License, RunType, Verification, utcnow
from licensecheck.engines.verify.base import LookupSuccess
from licensecheck.engines.verify.normalizer import feed_pending_result, normalize, not_found_result
from licensecheck.engines.verify.recorder import (
    VerificationRecorder,
    apply_license_projection,
    build_synced_snapshot,
    reconcile_license,
)

from conftest import make_license, reload, verifications_for


def fail_license_updates(db, monkeypatch):
    """Make every UPDATE of the licenses table fail as a locked database would."""
    real_execute = db.execute

    async def execute(statement, *args, **kwargs):
        if isinstance(statement, Update) and statement.table.name == "licenses":
            raise OperationalError(str(statement), {}, Exception("database is locked"))
        return await real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", execute)


@pytest.mark.asyncio
async def test_record_inserts_and_projects(db):
    license_row = await make_license(db)
    recorder = VerificationRecorder(db)

    verification = await recorder.record(
        license_row.id,
        normalize("active"),
        raw_payload={"fields": {"Status": "Active"}},
        expiration_found=date(2026, 1, 1),
        unencumbered=True,
        licensee_name="ADA LOVELACE",
        synced_data={"status": "active"},
    )

    assert verification.result == "verified"
    assert verification.status_found == "active"
    assert verification.run_type == RunType.AUTOMATED.value
    assert verification.verified_by == "system"

    license_row = await reload(db, License, license_row.id)
    assert license_row.status == "active"
    assert license_row.expiration_date == date(2026, 1, 1)
    assert license_row.licensee_name == "ADA LOVELACE"
    assert license_row.synced_data == {"status": "active"}
    assert license_row.last_verified_at is not None
    assert license_row.synced_at is not None


@pytest.mark.asyncio
async def test_missing_expiration_keeps_existing(db):
    license_row = await make_license(db, status="active", expiration_date=date(2025, 6, 1))
    recorder = VerificationRecorder(db)

    await recorder.record(license_row.id, not_found_result())

    license_row = await reload(db, License, license_row.id)
    assert license_row.status == "needs_manual"
    assert license_row.expiration_date == date(2025, 6, 1)


@pytest.mark.asyncio
async def test_older_verification_does_not_regress_license(db):
    later = utcnow() + timedelta(days=1)
    license_row = await make_license(db, status="active", last_verified_at=later)
    recorder = VerificationRecorder(db)

    verification = await recorder.record(license_row.id, normalize("expired"))

    license_row = await reload(db, License, license_row.id)
    assert license_row.status == "active"
    # The event is kept even though the cache was newer
    stored = await verifications_for(db, license_row.id)
    assert [v.id for v in stored] == [verification.id]
    assert stored[0].status_found == "expired"


@pytest.mark.asyncio
async def test_projection_reports_skip(db):
    license_row = await make_license(db, last_verified_at=utcnow() + timedelta(days=1))
    verification = Verification(
        license_id=license_row.id,
        run_type="manual",
        result="verified",
        status_found="active",
        created_at=utcnow(),
    )
    db.add(verification)
    await db.commit()

    assert await apply_license_projection(db, verification) is False


@pytest.mark.asyncio
async def test_manual_run_type_and_actor(db):
    license_row = await make_license(db)
    recorder = VerificationRecorder(db)

    verification = await recorder.record(
        license_row.id,
        normalize("active"),
        run_type=RunType.MANUAL,
        actor="user-7",
        notes="Checked by phone",
    )

    assert verification.run_type == "manual"
    assert verification.verified_by == "user-7"
    assert verification.notes == "Checked by phone"


@pytest.mark.asyncio
async def test_policy_denial_writes_nothing(db):
    license_row = await make_license(db)
    recorder = VerificationRecorder(db, ActionAllowListPolicy(frozenset()))

    with pytest.raises(PolicyDenied):
        await recorder.record(license_row.id, normalize("active"))

    assert await verifications_for(db, license_row.id) == []
    license_row = await reload(db, License, license_row.id)
    assert license_row.status == "unknown"


def test_synced_snapshot():
    synced_at = utcnow()
    lookup = LookupSuccess(
        raw_status="active",
        expiration_date=date(2026, 1, 1),
        unencumbered=True,
        licensee_name="ADA LOVELACE",
        license_number="RN00012345",
        raw_payload={"url": "https://board.test/detail/42"},
    )

    snapshot = build_synced_snapshot(lookup, "WA", synced_at)

    assert snapshot["status"] == "active"
    assert snapshot["expiration_date"] == "2026-01-01"
    assert snapshot["raw_data"] == {"url": "https://board.test/detail/42"}
    assert snapshot["source"] == "WA"
    assert snapshot["synced_at"] == synced_at.isoformat()


@pytest.mark.asyncio
async def test_pending_feed_check_keeps_status(db):
    license_row = await make_license(db, status="active")
    recorder = VerificationRecorder(db)

    verification = await recorder.record(license_row.id, feed_pending_result())

    assert verification.result == "pending"
    assert verification.status_found is None
    license_row = await reload(db, License, license_row.id)
    assert license_row.status == "active"
    assert license_row.last_verified_at is not None


class TestProjectionFailure:
    @pytest.mark.asyncio
    async def test_failed_projection_keeps_verification(self, db, monkeypatch):
        license_row = await make_license(db, status="unknown")
        recorder = VerificationRecorder(db)
        fail_license_updates(db, monkeypatch)

        verification = await recorder.record(license_row.id, normalize("active"))

        assert verification.status_found == "active"
        stored = await verifications_for(db, license_row.id)
        assert [v.id for v in stored] == [verification.id]
        license_row = await reload(db, License, license_row.id)
        assert license_row.status == "unknown"
        assert license_row.last_verified_at is None

    @pytest.mark.asyncio
    async def test_reconcile_repairs_stale_license(self, db, monkeypatch):
        license_row = await make_license(db, status="unknown")
        recorder = VerificationRecorder(db)
        fail_license_updates(db, monkeypatch)
        await recorder.record(license_row.id, normalize("active"), expiration_found=date(2026, 1, 1))
        monkeypatch.undo()

        assert await reconcile_license(db, license_row.id) is True

        license_row = await reload(db, License, license_row.id)
        assert license_row.status == "active"
        assert license_row.expiration_date == date(2026, 1, 1)
        assert license_row.last_verified_at is not None

    @pytest.mark.asyncio
    async def test_reconcile_looks_past_trailing_pending_check(self, db, monkeypatch):
        license_row = await make_license(db, status="unknown")
        recorder = VerificationRecorder(db)
        fail_license_updates(db, monkeypatch)
        await recorder.record(license_row.id, normalize("expired"))
        await recorder.record(license_row.id, feed_pending_result())
        monkeypatch.undo()

        assert await reconcile_license(db, license_row.id) is True

        license_row = await reload(db, License, license_row.id)
        assert license_row.status == "expired"
        assert license_row.last_verified_at is not None

    @pytest.mark.asyncio
    async def test_reconcile_without_history(self, db):
        license_row = await make_license(db)

        assert await reconcile_license(db, license_row.id) is False
