"""Task selection, board views and sorting."""

from collections.abc import Iterable
from datetime import datetime
from enum import StrEnum
from typing import Any

from pairplan.core import clock
from pairplan.domain.task import SortOrder, Task, TaskFilter, TaskSort, TaskSortBy, TaskStatus
from pairplan.modules.tasks.progress import (
    ACTIVE_STATUSES,
    completion_block_reason,
    completion_percentage,
    is_completed_this_period,
)


class TaskView(StrEnum):
    """Task board tabs."""

    ALL = "all"
    PUBLISHED = "published"
    ASSIGNED = "assigned"
    RECRUITING = "recruiting"


def matches(task: Task, task_filter: TaskFilter) -> bool:
    """Whether a task satisfies every field set on the filter."""
    if task_filter.creator_id is not None and task.creator_id != task_filter.creator_id:
        return False
    if task_filter.assignee_id is not None and task.assignee_id != task_filter.assignee_id:
        return False
    if task_filter.statuses and task.status not in task_filter.statuses:
        return False
    if task_filter.task_types and task.task_type not in task_filter.task_types:
        return False
    return not (task_filter.repeat_frequencies and task.repeat_frequency not in task_filter.repeat_frequencies)


def select_tasks(tasks: Iterable[Task], task_filter: TaskFilter | None = None) -> list[Task]:
    """Tasks matching the filter, in input order. No filter selects everything."""
    if task_filter is None:
        return list(tasks)
    return [task for task in tasks if matches(task, task_filter)]


def filter_for_view(view: TaskView, user_id: str | None = None) -> TaskFilter:
    """Filter backing a board tab for the given user."""
    match view:
        case TaskView.PUBLISHED:
            return TaskFilter(creator_id=user_id)
        case TaskView.ASSIGNED:
            return TaskFilter(assignee_id=user_id)
        case TaskView.RECRUITING:
            return TaskFilter(statuses={TaskStatus.RECRUITING})
    return TaskFilter()


def merge_filters(base: TaskFilter, extra: TaskFilter) -> TaskFilter:
    """Combine two filters; fields set on ``extra`` override ``base``."""
    return base.model_copy(update=extra.model_dump(exclude_none=True))


def _sort_value(task: Task, by: TaskSortBy) -> Any:
    match by:
        case TaskSortBy.CREATED_AT:
            return task.created_at
        case TaskSortBy.TASK_DEADLINE:
            return task.task_deadline
        case TaskSortBy.POINTS:
            return task.points
        case TaskSortBy.TITLE:
            return task.title.casefold()
        case TaskSortBy.COMPLETION_PERCENTAGE:
            return completion_percentage(task)
    return None


def sort_tasks(tasks: Iterable[Task], sort: TaskSort | None = None) -> list[Task]:
    """Stable sort by one attribute. Tasks missing the attribute always go last."""
    sort = sort or TaskSort()
    present: list[tuple[Any, Task]] = []
    missing: list[Task] = []
    for task in tasks:
        value = _sort_value(task, sort.by)
        if value is None:
            missing.append(task)
        else:
            present.append((value, task))

    present.sort(key=lambda item: item[0], reverse=sort.order == SortOrder.DESC)
    return [task for _, task in present] + missing


def is_available_today(task: Task, at: datetime) -> bool:
    """Whether an active task can still take a completion in the current period."""
    if task.status not in ACTIVE_STATUSES:
        return False
    if task.completion_record and is_completed_this_period(task, at):
        return False
    return completion_block_reason(task, at) is None


def select_today_tasks(tasks: Iterable[Task], *, user_id: str, as_of: datetime | None = None) -> list[Task]:
    """The user's active tasks that can still be completed today, in input order."""
    at = clock.at_or_now(as_of)
    mine = select_tasks(tasks, TaskFilter(assignee_id=user_id, statuses=set(ACTIVE_STATUSES)))
    return [task for task in mine if is_available_today(task, at)]
