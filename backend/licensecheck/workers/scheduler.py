"""Task scheduler using APScheduler."""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import structlog

from licensecheck.config import get_settings

settings = get_settings()
logger = structlog.get_logger()

scheduler = AsyncIOScheduler(timezone="UTC")


def setup_scheduler():
    """Configure the scheduler."""

    # Import tasks here to avoid circular imports
    from licensecheck.workers.tasks import run_verification_job_task

    # ============================================
    # VERIFICATION SCHEDULES
    # ============================================

    # Monthly verification - 1st of the month at 6 AM UTC
    scheduler.add_job(
        lambda: run_verification_job_task.send("scheduled"),
        trigger=CronTrigger(day=1, hour=6, minute=0, timezone="UTC"),
        id="monthly_verification",
        name="Monthly license verification",
        replace_existing=True,
    )

    logger.info("Scheduler configured with jobs")


def start_scheduler():
    """Start the scheduler."""
    setup_scheduler()
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler."""
    scheduler.shutdown()
    logger.info("Scheduler stopped")


# For running as standalone scheduler process
if __name__ == "__main__":
    import asyncio

    async def main():
        setup_scheduler()
        scheduler.start()
        logger.info("Scheduler started")

        # Keep the scheduler running
        try:
            while True:
                await asyncio.sleep(3600)
        except asyncio.CancelledError:
            pass
        finally:
            stop_scheduler()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Scheduler shutdown by keyboard interrupt")
