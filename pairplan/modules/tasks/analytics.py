"""Task statistics.

Counts tasks per lifecycle state for a couple. When a member is given, the
summary also reports how many tasks are assigned to them and how many of those
they can still complete today.
"""

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import datetime

from pairplan.core import clock
from pairplan.domain.task import Task, TaskStatus
from pairplan.models.service_models import TaskStats
from pairplan.modules.tasks.filters import select_today_tasks


logger = logging.getLogger(__name__)


def summarize_tasks(tasks: Iterable[Task], *, user_id: str | None = None, as_of: datetime | None = None) -> TaskStats:
    """Summarize a couple's tasks.

    Args:
        tasks: Every task of the couple
        user_id: Member whose personal counts to include (optional)
        as_of: Reference instant for today's availability (default: now)

    Returns:
        TaskStats with per-status totals, plus ``my_tasks`` and
        ``today_available`` when ``user_id`` is given
    """
    tasks = list(tasks)
    by_status = Counter(task.status for task in tasks)

    stats = TaskStats(
        total=len(tasks),
        recruiting=by_status[TaskStatus.RECRUITING],
        assigned=by_status[TaskStatus.ASSIGNED],
        in_progress=by_status[TaskStatus.IN_PROGRESS],
        completed=by_status[TaskStatus.COMPLETED],
        abandoned=by_status[TaskStatus.ABANDONED],
    )

    if user_id is not None:
        at = clock.at_or_now(as_of)
        stats.my_tasks = sum(1 for task in tasks if task.assignee_id == user_id)
        stats.today_available = len(select_today_tasks(tasks, user_id=user_id, as_of=at))

    logger.debug("Task summary: %s", stats.model_dump())
    return stats
