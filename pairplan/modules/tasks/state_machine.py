"""Pure state transition functions for task lifecycle management.

Every function takes a ``Task`` snapshot and returns a new one; the input is
never mutated, so a rejected transition leaves the caller's task untouched.
"""

import logging
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from pairplan.core import clock
from pairplan.core.errors import InvalidTransitionError, TaskPermissionError
from pairplan.domain.task import BOUNDED_FREQUENCIES, RepeatFrequency, Task, TaskStatus
from pairplan.domain.update_models import TaskUpdate
from pairplan.modules.tasks.completion_record import add_key
from pairplan.modules.tasks.periods import key_for
from pairplan.modules.tasks.progress import completion_block_reason, count_reached, is_completed_this_period
from pairplan.modules.tasks.streaks import compute_current_streak, update_longest_streak


logger = logging.getLogger(__name__)


class TaskAction(StrEnum):
    """Actions a user can request on a task."""

    ASSIGN = "assign"
    START = "start"
    COMPLETE = "complete"
    ABANDON = "abandon"
    FINISH = "finish"
    EDIT = "edit"


# Actions permitted in each state
ALLOWED_ACTIONS: dict[TaskStatus, set[TaskAction]] = {
    TaskStatus.RECRUITING: {TaskAction.ASSIGN, TaskAction.EDIT},
    TaskStatus.ASSIGNED: {TaskAction.START, TaskAction.COMPLETE, TaskAction.ABANDON, TaskAction.EDIT},
    TaskStatus.IN_PROGRESS: {TaskAction.COMPLETE, TaskAction.ABANDON, TaskAction.FINISH, TaskAction.EDIT},
    TaskStatus.COMPLETED: set(),
    TaskStatus.ABANDONED: set(),
}


class CompletionResult(BaseModel):
    """Outcome of a completion request."""

    task: Task
    recorded: bool


def can(task: Task, action: TaskAction) -> bool:
    """Whether ``action`` is legal from the task's current state."""
    return action in ALLOWED_ACTIONS[task.status]


def ensure_can(task: Task, action: TaskAction) -> None:
    """Raise InvalidTransitionError unless ``action`` is legal from the current state."""
    if not can(task, action):
        raise InvalidTransitionError(task_id=task.id, current_status=task.status, action=action)


def _reject(task: Task, action: TaskAction, reason: str) -> InvalidTransitionError:
    return InvalidTransitionError(task_id=task.id, current_status=task.status, action=action, reason=reason)


def _require_assignee(task: Task, actor_id: str, action: TaskAction) -> None:
    if task.assignee_id is None:
        raise _reject(task, action, "task has no assignee")
    if actor_id != task.assignee_id:
        raise TaskPermissionError(task_id=task.id, actor_id=actor_id, action=action)


def _transition(task: Task, to_status: TaskStatus, at: datetime, **changes: Any) -> Task:
    update: dict[str, Any] = {"status": to_status, "updated_at": at, **changes}
    if to_status in (TaskStatus.COMPLETED, TaskStatus.ABANDONED):
        update["completed_at"] = at
    updated = task.model_copy(update=update)
    logger.info("Transitioned task %s from %s to %s", task.id, task.status, to_status)
    return updated


def can_auto_start(task: Task, at: datetime | None = None) -> bool:
    """Whether an assigned task's start time has been reached (or it has none)."""
    if task.status != TaskStatus.ASSIGNED:
        return False
    at = clock.at_or_now(at)
    return task.earliest_start_time is None or task.earliest_start_time <= at


def assign(task: Task, *, assignee_id: str, at: datetime | None = None) -> Task:
    """Assign a recruiting task. The creator may assign it to themselves.

    The task starts straight away when it has no start time or the start time
    has already passed.
    """
    at = clock.at_or_now(at)
    ensure_can(task, TaskAction.ASSIGN)
    if task.assignee_id is not None:
        raise _reject(task, TaskAction.ASSIGN, f"already assigned to {task.assignee_id}")

    assigned = _transition(task, TaskStatus.ASSIGNED, at, assignee_id=assignee_id)
    if can_auto_start(assigned, at):
        return start(assigned, actor_id=assignee_id, at=at)
    return assigned


def start(task: Task, *, actor_id: str, at: datetime | None = None) -> Task:
    """Move an assigned task to in_progress."""
    at = clock.at_or_now(at)
    ensure_can(task, TaskAction.START)
    _require_assignee(task, actor_id, TaskAction.START)
    if task.earliest_start_time is not None and at < task.earliest_start_time:
        raise _reject(task, TaskAction.START, "start time not reached")
    return _transition(task, TaskStatus.IN_PROGRESS, at)


def record_completion(
    task: Task,
    *,
    actor_id: str,
    at: datetime | None = None,
    proof_url: str | None = None,
) -> CompletionResult:
    """Record a completion for the period containing ``at``.

    An assigned task is started implicitly by its first completion. Completing
    a period that already holds a completion changes nothing and reports
    ``recorded=False``. Bounded tasks complete once ``required_count`` is
    reached; ``never`` tasks complete on their single completion.

    Raises:
        InvalidTransitionError: if the state or a timing/count gate forbids it
        TaskPermissionError: if ``actor_id`` is not the assignee
    """
    at = clock.at_or_now(at)
    ensure_can(task, TaskAction.COMPLETE)
    _require_assignee(task, actor_id, TaskAction.COMPLETE)

    reason = completion_block_reason(task, at)
    if reason is not None:
        raise _reject(task, TaskAction.COMPLETE, reason)

    if task.completion_record and is_completed_this_period(task, at):
        logger.info("Task %s already completed for this period, nothing recorded", task.id)
        return CompletionResult(task=task, recorded=False)

    if task.status == TaskStatus.ASSIGNED:
        task = _transition(task, TaskStatus.IN_PROGRESS, at)

    frequency = task.repeat_frequency
    if frequency == RepeatFrequency.NEVER:
        keys = add_key(task.completion_record, clock.local_date(at).isoformat())
        current_streak = 1
    else:
        keys = add_key(task.completion_record, key_for(at, frequency))
        current_streak = compute_current_streak(keys, frequency, at)

    progressed: dict[str, Any] = {
        "completion_record": keys,
        "completed_count": len(keys),
        "current_streak": current_streak,
        "longest_streak": update_longest_streak(task.longest_streak, current_streak),
        "submitted_at": at,
        "updated_at": at,
    }
    if proof_url is not None:
        progressed["proof_url"] = proof_url

    finished = frequency == RepeatFrequency.NEVER or (
        frequency in BOUNDED_FREQUENCIES and task.required_count is not None and len(keys) >= task.required_count
    )
    if finished:
        return CompletionResult(task=_transition(task, TaskStatus.COMPLETED, at, **progressed), recorded=True)

    logger.info("Recorded completion %d for task %s (streak %d)", len(keys), task.id, current_streak)
    return CompletionResult(task=task.model_copy(update=progressed), recorded=True)


def abandon(task: Task, *, actor_id: str, at: datetime | None = None) -> Task:
    """Give up an assigned or in-progress task. Completion history is kept as is."""
    at = clock.at_or_now(at)
    ensure_can(task, TaskAction.ABANDON)
    _require_assignee(task, actor_id, TaskAction.ABANDON)
    return _transition(task, TaskStatus.ABANDONED, at)


def finish(task: Task, *, actor_id: str, at: datetime | None = None) -> Task:
    """Explicitly complete an in-progress forever task."""
    at = clock.at_or_now(at)
    ensure_can(task, TaskAction.FINISH)
    _require_assignee(task, actor_id, TaskAction.FINISH)
    if task.repeat_frequency != RepeatFrequency.FOREVER:
        raise _reject(task, TaskAction.FINISH, "only forever tasks are finished explicitly")
    return _transition(task, TaskStatus.COMPLETED, at)


def apply_edit(task: Task, update: TaskUpdate, *, actor_id: str, at: datetime | None = None) -> Task:
    """Apply the creator's edit form to a non-terminal task.

    An in-progress task whose required count is lowered to the completions
    already recorded is completed by the edit.

    Raises:
        InvalidTransitionError: on a terminal task, or when the edit conflicts
            with recorded completions
        TaskPermissionError: if ``actor_id`` is not the creator
        pydantic.ValidationError: if the merged form is invalid
    """
    at = clock.at_or_now(at)
    ensure_can(task, TaskAction.EDIT)
    if actor_id != task.creator_id:
        raise TaskPermissionError(task_id=task.id, actor_id=actor_id, action=TaskAction.EDIT)

    form = update.merged_onto(task)
    if form.repeat_frequency != task.repeat_frequency and task.completion_record:
        raise _reject(task, TaskAction.EDIT, "repeat frequency cannot change once completions are recorded")
    if (
        form.repeat_frequency in BOUNDED_FREQUENCIES
        and form.required_count is not None
        and form.required_count < task.completed_count
    ):
        raise _reject(task, TaskAction.EDIT, "required count is below completions already recorded")

    edited = task.model_copy(update={**form.model_dump(), "updated_at": at})
    logger.info("Edited task %s", task.id)
    if edited.status == TaskStatus.IN_PROGRESS and count_reached(edited):
        # Lowered to the completions already recorded
        return _transition(edited, TaskStatus.COMPLETED, at)
    return edited
