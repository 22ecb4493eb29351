"""Scheduled jobs for the tasks module.

- Start assigned tasks once their start time is reached
- Report suspect tasks and repair counters that disagree with their history
"""

import logging

from pairplan.core.config import settings
from pairplan.core.module import ScheduledJob
from pairplan.modules.tasks import service


logger = logging.getLogger(__name__)


async def promote_started_tasks() -> None:
    """Move assigned tasks whose start time has passed to in_progress."""
    logger.info("Running task promotion job")
    try:
        promoted = await service.promote_started_tasks()
        logger.info("Completed task promotion job: %d tasks started", promoted)
    except Exception as e:
        logger.error("Error in task promotion job: %s", e)


async def audit_task_consistency() -> None:
    """Log every suspect task, then run the repair pass on drifted counters."""
    logger.info("Running task consistency audit")
    try:
        suspect = await service.list_suspect_tasks()
        for task in suspect:
            logger.warning(
                "Task %s needs repair",
                task.id,
                extra={"task_id": task.id, "warnings": task.data_warnings},
            )
        repaired = await service.repair_inconsistent_tasks()
        logger.info(
            "Completed task consistency audit: %d suspect, %d repaired",
            len(suspect),
            len(repaired),
        )
    except Exception as e:
        logger.error("Error in task consistency audit: %s", e)


def get_scheduled_jobs() -> list[ScheduledJob]:
    """Return scheduled jobs for the tasks module."""
    return [
        ScheduledJob(
            id="promote_started_tasks",
            name="Start Assigned Tasks",
            interval_minutes=settings.task_promotion_interval_minutes,
            func=promote_started_tasks,
        ),
        ScheduledJob(
            id="audit_task_consistency",
            name="Audit Task Counters",
            cron="30 3 * * *",
            func=audit_task_consistency,
        ),
    ]
