"""Scheduler for periodic module jobs."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from pairplan.core.clock import reference_zone
from pairplan.core.module import ScheduledJob
from pairplan.core.module_registry import get_all_scheduled_jobs


logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


def build_trigger(job: ScheduledJob) -> CronTrigger | IntervalTrigger:
    """APScheduler trigger for a job, evaluated in the reference timezone."""
    if job.cron is not None:
        return CronTrigger.from_crontab(job.cron, timezone=reference_zone())
    return IntervalTrigger(minutes=job.interval_minutes, timezone=reference_zone())


def start_scheduler() -> None:
    """Register every module job and start the scheduler.

    This should be called during FastAPI app startup.
    """
    logger.info("Starting scheduler")

    for job in get_all_scheduled_jobs():
        scheduler.add_job(
            job.func,
            trigger=build_trigger(job),
            id=job.id,
            name=job.name,
            replace_existing=True,
        )
        logger.info("Scheduled job %s", job.id)

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
