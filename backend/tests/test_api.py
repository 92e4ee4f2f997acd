"""Tests for the HTTP endpoints."""

from uuid import uuid4

import httpx
import pytest
import pytest_asyncio

from licensecheck.api.deps import get_registry, require_cron_secret
from licensecheck.config import ConfigurationError, get_settings
from licensecheck.db import get_db
from licensecheck.db.models import VerificationJob
from licensecheck.engines.verify.base import FailureKind, LookupFailure
from licensecheck.engines.verify.fallback import FallbackTaskEngine, TaskReason
from licensecheck.engines.verify.registry import SourceRegistry
from licensecheck.engines.verify.run_logger import create_job_run
from licensecheck.main import app

from conftest import FakeVerifier, make_license, reload, verifications_for

SECRET = "test-cron-secret"
AUTH = {"Authorization": f"Bearer {SECRET}"}


@pytest.fixture
def cron_secret(monkeypatch):
    monkeypatch.setenv("CRON_SECRET", SECRET)
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def client(session_factory, registry):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registry] = lambda: registry
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestCronTrigger:
    @pytest.mark.asyncio
    async def test_missing_secret_configuration(self, client, monkeypatch):
        monkeypatch.setenv("CRON_SECRET", "")
        get_settings.cache_clear()

        response = await client.post("/api/cron/monthly-verification", headers=AUTH)

        assert response.status_code == 500
        assert response.json()["detail"] == "Server configuration error"

    def test_missing_secret_raises_configuration_error(self, monkeypatch):
        monkeypatch.setenv("CRON_SECRET", "")
        get_settings.cache_clear()

        with pytest.raises(ConfigurationError):
            require_cron_secret(authorization=AUTH["Authorization"])

    @pytest.mark.asyncio
    async def test_wrong_secret(self, client, cron_secret):
        response = await client.post(
            "/api/cron/monthly-verification", headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_header(self, client, cron_secret):
        response = await client.post("/api/cron/monthly-verification")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_runs_job(self, client, cron_secret, db):
        await make_license(db, state="WA", license_number="RN1")
        await make_license(db, state="ZZ", license_number="RN2")

        response = await client.post("/api/cron/monthly-verification", headers=AUTH)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["success"] is True
        assert data["status"] == "completed"
        assert data["processed"] == 2
        assert data["auto_verified"] == 1
        assert data["tasks_created"] == 1
        assert data["errors"] == 0

    @pytest.mark.asyncio
    async def test_dry_run_writes_no_verifications(self, client, cron_secret, db):
        license_row = await make_license(db, state="WA", license_number="RN1")

        response = await client.post(
            "/api/cron/monthly-verification", params={"dry_run": "true"}, headers=AUTH
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["dry_run"] is True
        assert data["auto_verified"] == 1
        assert await verifications_for(db, license_row.id) == []
        job = await client.get(f"/api/cron/jobs/{data['job_id']}", headers=AUTH)
        assert job.json()["dry_run"] is True

    @pytest.mark.asyncio
    async def test_describe_reports_latest_job(self, client, cron_secret):
        response = await client.get("/api/cron/monthly-verification", headers=AUTH)
        assert response.status_code == 200
        assert response.json()["latest_job"] is None
        assert response.json()["method"] == "POST"

        await client.post("/api/cron/monthly-verification", headers=AUTH)
        response = await client.get("/api/cron/monthly-verification", headers=AUTH)

        assert response.json()["latest_job"]["status"] == "completed"


class TestJobs:
    @pytest.mark.asyncio
    async def test_get_job(self, client, cron_secret, db):
        job = await create_job_run(db, "on_demand")

        response = await client.get(f"/api/cron/jobs/{job.id}", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["status"] == "running"
        assert response.json()["trigger"] == "on_demand"

    @pytest.mark.asyncio
    async def test_get_unknown_job(self, client, cron_secret):
        response = await client.get(f"/api/cron/jobs/{uuid4()}", headers=AUTH)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_cancel_job(self, client, cron_secret, db):
        job = await create_job_run(db, "scheduled")

        response = await client.post(f"/api/cron/jobs/{job.id}/cancel", headers=AUTH)
        assert response.status_code == 200
        assert response.json() == {"status": "cancelling", "job_id": str(job.id)}
        assert (await reload(db, VerificationJob, job.id)).status == "cancelled"

        response = await client.post(f"/api/cron/jobs/{job.id}/cancel", headers=AUTH)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_cancel_unknown_job(self, client, cron_secret):
        response = await client.post(f"/api/cron/jobs/{uuid4()}/cancel", headers=AUTH)

        assert response.status_code == 404


class TestLicenseVerify:
    @pytest.mark.asyncio
    async def test_availability(self, client, db):
        supported = await make_license(db, state="WA")
        unsupported = await make_license(db, state="ZZ", license_number="X1")

        response = await client.get(f"/api/licenses/{supported.id}/verify")
        assert response.status_code == 200
        assert response.json()["available"] is True
        assert response.json()["available_states"] == ["WA"]
        assert response.json()["states_by_region"] == {"Pacific Northwest": ["WA"]}

        response = await client.get(f"/api/licenses/{unsupported.id}/verify")
        assert response.json()["available"] is False
        assert response.json()["reason"] == "unsupported_jurisdiction"

    @pytest.mark.asyncio
    async def test_verify_success(self, client, db):
        license_row = await make_license(db, state="WA")

        response = await client.post(f"/api/licenses/{license_row.id}/verify")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["outcome"] == "verified"
        assert body["data"]["lookup"]["status"] == "active"
        assert body["data"]["lookup"]["expiration_date"] == "2026-01-01"
        assert body["data"]["verification_id"] is not None

    @pytest.mark.asyncio
    async def test_verify_unsupported(self, client, db):
        license_row = await make_license(db, state="ZZ")

        response = await client.post(f"/api/licenses/{license_row.id}/verify")

        assert response.status_code == 400
        assert response.json()["detail"]["reason"] == "unsupported_jurisdiction"
        assert response.json()["detail"]["available_states"] == ["WA"]

    @pytest.mark.asyncio
    async def test_verify_lookup_failure(self, client, db):
        failing = SourceRegistry(
            verifiers=[FakeVerifier(result=LookupFailure(FailureKind.TRANSIENT, "HTTP 503"))]
        )
        app.dependency_overrides[get_registry] = lambda: failing
        license_row = await make_license(db, state="WA")

        response = await client.post(f"/api/licenses/{license_row.id}/verify")

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "transient"
        assert body["details"] == "HTTP 503"
        assert body["task_id"] is not None

    @pytest.mark.asyncio
    async def test_verify_unknown_license(self, client):
        response = await client.post(f"/api/licenses/{uuid4()}/verify")

        assert response.status_code == 404


class TestManualVerify:
    @pytest.mark.asyncio
    async def test_records_and_closes_task(self, client, db):
        license_row = await make_license(db, state="ZZ")
        ensured = await FallbackTaskEngine(db).ensure_task(
            license_row.id, None, TaskReason.UNSUPPORTED_JURISDICTION
        )

        response = await client.post(
            f"/api/licenses/{license_row.id}/manual-verify",
            json={"result": "verified", "expiration_date": "2027-06-30"},
            headers={"X-User-Id": "reviewer-9"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["result"] == "verified"
        assert body["license_status"] == "active"
        assert body["closed_task_ids"] == [str(ensured.task.id)]

    @pytest.mark.asyncio
    async def test_invalid_result(self, client, db):
        license_row = await make_license(db)

        response = await client.post(
            f"/api/licenses/{license_row.id}/manual-verify", json={"result": "maybe"}
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_task_mismatch(self, client, db):
        license_row = await make_license(db)

        response = await client.post(
            f"/api/licenses/{license_row.id}/manual-verify",
            json={"result": "verified", "task_id": str(uuid4())},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_license(self, client):
        response = await client.post(
            f"/api/licenses/{uuid4()}/manual-verify", json={"result": "verified"}
        )

        assert response.status_code == 404
