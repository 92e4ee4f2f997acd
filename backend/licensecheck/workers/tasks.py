"""Background task definitions using Dramatiq."""

import asyncio

import dramatiq
from dramatiq.brokers.redis import RedisBroker
import structlog

from licensecheck.config import get_settings

settings = get_settings()
logger = structlog.get_logger()

# Configure Redis broker
redis_broker = RedisBroker(url=str(settings.redis_url))
dramatiq.set_broker(redis_broker)

# A full run can take hours on slow boards
JOB_TIME_LIMIT_MS = 6 * 60 * 60 * 1000


def run_async(coro):
    """Helper to run async functions in sync context."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ============================================
# VERIFICATION TASKS
# ============================================


# Not retried: a second run would re-check licenses the first already handled
@dramatiq.actor(max_retries=0, time_limit=JOB_TIME_LIMIT_MS)
def run_verification_job_task(trigger: str = "scheduled"):
    """Run the recurring license verification job."""
    from licensecheck.engines.verify.runner import run_verification_job

    logger.info("Starting verification job task", trigger=trigger)
    summary = run_async(run_verification_job(trigger=trigger))
    logger.info("Verification job task complete", **summary.to_dict())


@dramatiq.actor(max_retries=2, min_backoff=60000)
def verify_license_task(license_id: str):
    """Verify a single license on demand."""
    from uuid import UUID

    from licensecheck.db import async_session_factory
    from licensecheck.engines.verify.runner import verify_single_license

    async def verify():
        async with async_session_factory() as db:
            return await verify_single_license(db, UUID(license_id))

    logger.info("Starting license verification task", license_id=license_id)
    _, outcome = run_async(verify())
    logger.info(
        "License verification task complete",
        license_id=license_id,
        outcome=outcome.outcome if outcome else None,
    )
