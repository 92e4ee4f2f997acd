"""Tests for the recurring job schedule."""

from unittest.mock import MagicMock

import pytest

from licensecheck.workers import scheduler as scheduler_module
from licensecheck.workers import tasks


@pytest.fixture
def scheduler():
    yield scheduler_module.scheduler
    scheduler_module.scheduler.remove_all_jobs()


def test_monthly_job_registered(scheduler):
    scheduler_module.setup_scheduler()

    job = scheduler.get_job("monthly_verification")

    assert job is not None
    assert job.name == "Monthly license verification"
    fields = {f.name: str(f) for f in job.trigger.fields}
    assert fields["day"] == "1"
    assert fields["hour"] == "6"
    assert fields["minute"] == "0"


def test_job_enqueues_verification_run(scheduler, monkeypatch):
    send = MagicMock()
    monkeypatch.setattr(tasks.run_verification_job_task, "send", send)
    scheduler_module.setup_scheduler()

    scheduler.get_job("monthly_verification").func()

    send.assert_called_once_with("scheduled")
