"""Derived progress and display fields for a task at a reference instant."""

from datetime import datetime, time

from pairplan.core import clock
from pairplan.core.config import constants
from pairplan.domain.task import (
    BOUNDED_FREQUENCIES,
    RepeatFrequency,
    Task,
    TaskCategory,
    TaskDisplayInfo,
    TaskProgress,
    TaskStatus,
    TimeType,
)
from pairplan.modules.tasks.periods import key_for, period_start, previous_period


STATUS_LABELS: dict[TaskStatus, str] = {
    TaskStatus.RECRUITING: "Recruiting",
    TaskStatus.ASSIGNED: "Assigned",
    TaskStatus.IN_PROGRESS: "In progress",
    TaskStatus.COMPLETED: "Completed",
    TaskStatus.ABANDONED: "Abandoned",
}

ACTIVE_STATUSES: frozenset[TaskStatus] = frozenset({TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS})


def in_daily_window(task: Task, at: datetime) -> bool:
    """Whether ``at`` falls inside the task's daily time window.

    A window whose start is after its end wraps past midnight. Tasks without a
    window are always inside it.
    """
    if task.daily_time_start is None or task.daily_time_end is None:
        return True
    wall = clock.local_time(at)
    start, end = task.daily_time_start, task.daily_time_end
    if start <= end:
        return start <= wall <= end
    return wall >= start or wall <= end


def on_allowed_weekday(task: Task, at: datetime) -> bool:
    """Whether ``at`` falls on one of the task's repeat weekdays (1=Monday)."""
    if not task.repeat_weekdays:
        return True
    return clock.local_date(at).isoweekday() in task.repeat_weekdays


def is_overdue(task: Task, at: datetime) -> bool:
    """True iff the deadline is set and strictly before ``at``."""
    return task.task_deadline is not None and task.task_deadline < at


def count_reached(task: Task) -> bool:
    """Whether a bounded task already has all the completions it requires."""
    return (
        task.repeat_frequency in BOUNDED_FREQUENCIES
        and task.required_count is not None
        and task.completed_count >= task.required_count
    )


def completion_block_reason(task: Task, at: datetime) -> str | None:
    """Why a completion at ``at`` would be rejected, ignoring the task's status.

    Returns None when the timing and count gates all pass.
    """
    if task.earliest_start_time is not None and at < task.earliest_start_time:
        return "start time not reached"
    if is_overdue(task, at):
        return "deadline has passed"
    if not on_allowed_weekday(task, at):
        return "not an allowed weekday"
    if not in_daily_window(task, at):
        return "outside the daily time window"
    if count_reached(task):
        return "required count already reached"
    return None


def completion_percentage(task: Task) -> float | None:
    """Share of required completions done, or None for unbounded tasks."""
    if task.repeat_frequency == RepeatFrequency.FOREVER:
        return None
    if task.repeat_frequency == RepeatFrequency.NEVER:
        return 100.0 if task.completed_count >= 1 else 0.0
    if not task.required_count:
        return 0.0
    return min(100.0, task.completed_count / task.required_count * 100)


def is_completed_this_period(task: Task, at: datetime) -> bool:
    """Whether the period containing ``at`` already holds a completion.

    Biweekly tasks count the previous week as well, since one completion
    covers a two-week cycle.
    """
    if task.repeat_frequency == RepeatFrequency.NEVER:
        return task.completed_count >= 1
    if task.repeat_frequency == RepeatFrequency.BIWEEKLY:
        this_week = period_start(at, task.repeat_frequency)
        last_week = previous_period(this_week, task.repeat_frequency)
        keys = {key_for(this_week, task.repeat_frequency), key_for(last_week, task.repeat_frequency)}
        return not keys.isdisjoint(task.completion_record)
    return key_for(at, task.repeat_frequency) in task.completion_record


def evaluate(task: Task, as_of: datetime | None = None) -> TaskProgress:
    """Compute percentage, overdue and completable-today flags for a task."""
    at = clock.at_or_now(as_of)
    overdue = is_overdue(task, at)
    return TaskProgress(
        completion_percentage=completion_percentage(task),
        is_overdue=overdue,
        can_complete_today=(
            task.status == TaskStatus.IN_PROGRESS and not overdue and completion_block_reason(task, at) is None
        ),
    )


def task_category(task: Task) -> TaskCategory:
    if task.repeat_frequency == RepeatFrequency.NEVER:
        return TaskCategory.ONCE
    if task.repeat_frequency == RepeatFrequency.FOREVER:
        return TaskCategory.FOREVER_REPEAT
    return TaskCategory.LIMITED_REPEAT


def time_type(task: Task) -> TimeType:
    """Unlimited without bounds, fixed when start equals deadline, flexible otherwise."""
    if task.earliest_start_time is None and task.task_deadline is None:
        return TimeType.UNLIMITED
    if task.earliest_start_time is not None and task.earliest_start_time == task.task_deadline:
        return TimeType.FIXED
    return TimeType.FLEXIBLE


def _format_instant(value: datetime) -> str:
    return clock.to_reference(value).strftime(constants.DISPLAY_DATETIME_FORMAT)


def _format_time(value: time) -> str:
    return value.strftime(constants.DISPLAY_TIME_FORMAT)


def format_time_display(task: Task) -> str:
    """Human-readable time bounds of a task."""
    start, deadline = task.earliest_start_time, task.task_deadline

    if task.repeat_frequency == RepeatFrequency.NEVER:
        if start is not None and deadline is not None:
            return f"{_format_instant(start)} - {_format_instant(deadline)}"
        if start is not None:
            return f"Starts {_format_instant(start)}"
        if deadline is not None:
            return f"Due {_format_instant(deadline)}"
        return "No time limit"

    parts: list[str] = []
    if start is not None:
        parts.append(f"Starts {_format_instant(start)}")
    if deadline is not None and task.repeat_frequency != RepeatFrequency.FOREVER:
        parts.append(f"ends {_format_instant(deadline)}" if parts else f"Ends {_format_instant(deadline)}")
    text = " - ".join(parts)

    if task.daily_time_start is not None and task.daily_time_end is not None:
        window = f"daily {_format_time(task.daily_time_start)} - {_format_time(task.daily_time_end)}"
        text = f"{text}, {window}" if text else window[0].upper() + window[1:]

    return text or "No time limit"


def format_progress_display(task: Task, percentage: float | None) -> str:
    """Human-readable progress of a task."""
    if task.repeat_frequency == RepeatFrequency.NEVER:
        return "Done" if task.completed_count >= 1 else "Not done"
    if task.repeat_frequency == RepeatFrequency.FOREVER:
        return f"Completed {task.completed_count} times, current streak {task.current_streak}"
    if task.required_count:
        return f"{task.completed_count}/{task.required_count} times ({round(percentage or 0)}%)"
    return f"Completed {task.completed_count} times"


def format_status_display(status: TaskStatus) -> str:
    return STATUS_LABELS.get(status, str(status))


def build_display_info(task: Task, as_of: datetime | None = None) -> TaskDisplayInfo:
    """Compute the full display bundle for a task once per render."""
    at = clock.at_or_now(as_of)
    progress = evaluate(task, at)
    completed_this_period = task.completed_count > 0 and is_completed_this_period(task, at)

    return TaskDisplayInfo(
        **progress.model_dump(),
        task_category=task_category(task),
        time_type=time_type(task),
        is_active=task.status in ACTIVE_STATUSES,
        completed_this_period=completed_this_period,
        time_display=format_time_display(task),
        progress_display=format_progress_display(task, progress.completion_percentage),
        status_display=format_status_display(task.status),
        data_warnings=list(task.data_warnings),
    )
