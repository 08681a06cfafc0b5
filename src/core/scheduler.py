"""Scheduler for background jobs (expired-claim sweep)."""

import logging
from functools import partial

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.core.config import constants, settings
from src.core.scheduler_tracker import retry_job_with_backoff
from src.services.claim_sweeper import release_expired_claims_job


logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


def start_scheduler() -> None:
    """Start the scheduler and register all jobs.

    This should be called during FastAPI app startup.
    """
    logger.info("Starting scheduler")

    scheduler.add_job(
        partial(retry_job_with_backoff, release_expired_claims_job, constants.CLAIM_SWEEP_JOB_ID),
        trigger=IntervalTrigger(minutes=settings.claim_sweep_interval_minutes),
        id=constants.CLAIM_SWEEP_JOB_ID,
        name="Release Expired Donation Claims",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(
        "Scheduled expired-claim sweep: every %d minutes (grace period %d minutes)",
        settings.claim_sweep_interval_minutes,
        settings.claim_grace_period_minutes,
    )

    scheduler.start()
    logger.info("Scheduler started successfully")


def stop_scheduler() -> None:
    """Stop the scheduler.

    This should be called during FastAPI app shutdown.
    """
    if not scheduler.running:
        return
    logger.info("Stopping scheduler")
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
