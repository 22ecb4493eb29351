"""Task service: persistence operations around the pure task lifecycle.

Every read decodes the stored completion history and flags inconsistent
counters instead of failing. Every write repairs drifted counters, goes
through the state machine, is checked against the counter invariants, and
stores the history in its array form.
"""

import json
import logging
from datetime import datetime
from typing import Any

from pydantic import TypeAdapter, ValidationError

from pairplan.core import clock, db_client
from pairplan.core.config import constants
from pairplan.core.db_client import sanitize_param
from pairplan.core.logging import log_task_event, span
from pairplan.domain.create_models import TaskCreate
from pairplan.domain.task import Task, TaskFilter, TaskSort, TaskStatus, Weekdays
from pairplan.domain.update_models import TaskUpdate
from pairplan.models.service_models import TaskStats
from pairplan.modules.tasks import state_machine
from pairplan.modules.tasks.analytics import summarize_tasks
from pairplan.modules.tasks.completion_record import DecodedRecord, decode, encode
from pairplan.modules.tasks.filters import select_tasks, select_today_tasks, sort_tasks
from pairplan.modules.tasks.integrity import (
    ConsistencyReport,
    assert_invariants,
    build_consistency_report,
    check_invariants,
    flag_suspect,
    repair_task,
)


logger = logging.getLogger(__name__)

TASKS_COLLECTION = "tasks"

_weekdays_adapter = TypeAdapter(Weekdays)


def _parse_weekdays(value: Any) -> tuple[list[int] | None, str | None]:
    """Stored weekdays and, when they cannot be read, the reason they were dropped."""
    try:
        if isinstance(value, str):
            value = json.loads(value) if value.strip() else None
        return _weekdays_adapter.validate_python(value), None
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Unreadable repeat_weekdays", extra={"raw": repr(value), "error": str(e)})
        return None, f"Unreadable repeat_weekdays {value!r} dropped"


def _decode_record(record: dict[str, Any]) -> tuple[Task, DecodedRecord]:
    decoded = decode(record.get("completion_record"))
    weekdays, weekdays_warning = _parse_weekdays(record.get("repeat_weekdays"))
    warnings: list[str] = []
    data = {**record, "completion_record": decoded.keys, "repeat_weekdays": weekdays}
    if decoded.is_corrupt:
        # Unreadable history: serve safe defaults, keep the recorded maximum
        data.update(completed_count=0, current_streak=0)
        warnings.append(str(decoded.error))
    if weekdays_warning is not None:
        warnings.append(weekdays_warning)
    data["data_warnings"] = warnings

    return flag_suspect(Task.model_validate(data)), decoded


def _from_record(record: dict[str, Any]) -> Task:
    task, _ = _decode_record(record)
    return task


def _to_record(task: Task) -> dict[str, Any]:
    data = task.model_dump(mode="json", exclude={"id"})
    data["completion_record"] = encode(task.completion_record)
    return data


async def _save(task: Task) -> Task:
    assert_invariants(task)
    record = await db_client.update_record(collection=TASKS_COLLECTION, record_id=task.id, data=_to_record(task))
    return _from_record(record)


async def _list_all(filter_query: str = "") -> list[dict[str, Any]]:
    """Every stored task row matching the filter, read page by page."""
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await db_client.list_records(
            collection=TASKS_COLLECTION,
            page=page,
            per_page=constants.DEFAULT_PER_PAGE_LIMIT,
            filter_query=filter_query,
        )
        records.extend(batch)
        if len(batch) < constants.DEFAULT_PER_PAGE_LIMIT:
            return records
        page += 1


def _with_repaired_counters(task: Task, at: datetime | None) -> Task:
    if check_invariants(task):
        return repair_task(task, at)
    return task


async def _get_for_write(task_id: str, at: datetime | None) -> Task:
    """Load a task for a write that keeps its counters, repairing them first if they drifted."""
    task = await get_task(task_id=task_id)
    return _with_repaired_counters(task, at)


async def get_task(*, task_id: str) -> Task:
    """Get a task by ID.

    Raises:
        KeyError: If the task does not exist
    """
    with span("task_service.get_task", task_id=task_id):
        record = await db_client.get_record(collection=TASKS_COLLECTION, record_id=task_id)
        return _from_record(record)


async def get_tasks(
    *,
    couple_id: str,
    task_filter: TaskFilter | None = None,
    sort: TaskSort | None = None,
) -> list[Task]:
    """Get a couple's tasks matching the filter, sorted (newest first by default)."""
    with span("task_service.get_tasks"):
        task_filter = task_filter or TaskFilter()

        conditions = [f'couple_id = "{sanitize_param(couple_id)}"']
        if task_filter.creator_id is not None:
            conditions.append(f'creator_id = "{sanitize_param(task_filter.creator_id)}"')
        if task_filter.assignee_id is not None:
            conditions.append(f'assignee_id = "{sanitize_param(task_filter.assignee_id)}"')

        records = await _list_all(" && ".join(conditions))
        tasks = select_tasks((_from_record(record) for record in records), task_filter)
        return sort_tasks(tasks, sort)


async def create_task(
    *,
    form: TaskCreate,
    creator_id: str,
    couple_id: str,
    assignee_id: str | None = None,
    at: datetime | None = None,
) -> Task:
    """Publish a task. With ``assignee_id`` it is assigned straight away (self-assignment included)."""
    with span("task_service.create_task"):
        at = clock.at_or_now(at)
        data: dict[str, Any] = {
            **form.model_dump(mode="json"),
            "couple_id": couple_id,
            "creator_id": creator_id,
            "status": TaskStatus.RECRUITING.value,
            "completion_record": encode([]),
            "completed_count": 0,
            "current_streak": 0,
            "longest_streak": 0,
            "created_at": at.isoformat(),
            "updated_at": at.isoformat(),
        }
        record = await db_client.create_record(collection=TASKS_COLLECTION, data=data)
        task = _from_record(record)
        log_task_event(logger, "info", "Task created", task_id=task.id, actor_id=creator_id)

        if assignee_id is not None:
            task = await _save(state_machine.assign(task, assignee_id=assignee_id, at=at))
        return task


async def update_task(*, update: TaskUpdate, actor_id: str, at: datetime | None = None) -> Task:
    """Apply the creator's edit form.

    Raises:
        KeyError: If the task does not exist
        TaskPermissionError: If the actor is not the creator
        InvalidTransitionError: If the task is terminal or the edit conflicts with its history
    """
    with span("task_service.update_task", task_id=update.id):
        task = await _get_for_write(update.id, at)
        return await _save(state_machine.apply_edit(task, update, actor_id=actor_id, at=at))


async def assign_task(*, task_id: str, assignee_id: str, at: datetime | None = None) -> Task:
    """Assign a recruiting task, starting it when its start time allows."""
    with span("task_service.assign_task", task_id=task_id):
        task = await _get_for_write(task_id, at)
        updated = await _save(state_machine.assign(task, assignee_id=assignee_id, at=at))
        log_task_event(logger, "info", "Task assigned", task_id=task_id, actor_id=assignee_id)
        return updated


async def start_task(*, task_id: str, actor_id: str, at: datetime | None = None) -> Task:
    """Explicitly start an assigned task."""
    with span("task_service.start_task", task_id=task_id):
        task = await _get_for_write(task_id, at)
        return await _save(state_machine.start(task, actor_id=actor_id, at=at))


async def complete_task(
    *,
    task_id: str,
    actor_id: str,
    proof_url: str | None = None,
    at: datetime | None = None,
) -> Task:
    """Record a completion for the current period.

    Completing an already completed period returns the task unchanged
    without writing.
    """
    with span("task_service.complete_task", task_id=task_id):
        task = await get_task(task_id=task_id)
        result = state_machine.record_completion(task, actor_id=actor_id, at=at, proof_url=proof_url)
        if not result.recorded:
            return task
        log_task_event(
            logger,
            "info",
            "Task completion recorded",
            task_id=task_id,
            actor_id=actor_id,
            completed_count=result.task.completed_count,
            status=result.task.status,
        )
        return await _save(result.task)


async def abandon_task(*, task_id: str, actor_id: str, at: datetime | None = None) -> Task:
    """Abandon an assigned or in-progress task."""
    with span("task_service.abandon_task", task_id=task_id):
        task = await _get_for_write(task_id, at)
        return await _save(state_machine.abandon(task, actor_id=actor_id, at=at))


async def finish_task(*, task_id: str, actor_id: str, at: datetime | None = None) -> Task:
    """Explicitly complete an in-progress forever task."""
    with span("task_service.finish_task", task_id=task_id):
        task = await _get_for_write(task_id, at)
        return await _save(state_machine.finish(task, actor_id=actor_id, at=at))


async def get_today_tasks(*, couple_id: str, user_id: str, at: datetime | None = None) -> list[Task]:
    """The user's active tasks that can still be completed in the current period."""
    with span("task_service.get_today_tasks"):
        tasks = await get_tasks(couple_id=couple_id, task_filter=TaskFilter(assignee_id=user_id))
        return select_today_tasks(tasks, user_id=user_id, as_of=at)


async def get_task_stats(*, couple_id: str, user_id: str | None = None, at: datetime | None = None) -> TaskStats:
    """Per-status task counts for a couple, plus the user's own counts when given."""
    with span("task_service.get_task_stats"):
        tasks = await get_tasks(couple_id=couple_id)
        return summarize_tasks(tasks, user_id=user_id, as_of=at)


async def promote_started_tasks(*, at: datetime | None = None) -> int:
    """Start every assigned task whose start time has been reached.

    Returns:
        Number of tasks started
    """
    with span("task_service.promote_started_tasks"):
        at = clock.at_or_now(at)
        records = await _list_all(f'status = "{TaskStatus.ASSIGNED.value}"')

        promoted = 0
        for task in (_from_record(record) for record in records):
            if task.assignee_id is None or not state_machine.can_auto_start(task, at):
                continue
            task = _with_repaired_counters(task, at)
            await _save(state_machine.start(task, actor_id=task.assignee_id, at=at))
            promoted += 1

        logger.info("Promoted %d assigned tasks to in_progress", promoted)
        return promoted


async def get_consistency_report(*, task_id: str, at: datetime | None = None) -> ConsistencyReport:
    """Compare a task's stored counters with its completion history."""
    with span("task_service.get_consistency_report", task_id=task_id):
        record = await db_client.get_record(collection=TASKS_COLLECTION, record_id=task_id)
        task, decoded = _decode_record(record)
        return build_consistency_report(task, at, record_source=decoded.source)


async def repair_task_record(*, task_id: str, reset_longest: bool = False, at: datetime | None = None) -> Task:
    """Rewrite a task's counters (and history encoding) from its completion history."""
    with span("task_service.repair_task_record", task_id=task_id):
        task = await get_task(task_id=task_id)
        return await _save(repair_task(task, at, reset_longest=reset_longest))


async def list_suspect_tasks() -> list[Task]:
    """Every task whose stored record needed recovery or fails an invariant check."""
    with span("task_service.list_suspect_tasks"):
        records = await _list_all()
        return [task for task in (_from_record(record) for record in records) if task.is_suspect]


async def repair_inconsistent_tasks(*, at: datetime | None = None) -> list[str]:
    """Run the repair pass on every task whose counters disagree with its history.

    ``longest_streak`` keeps its recorded maximum. Tasks whose only problem is
    an unreadable field are left for the next write to replace.

    Returns:
        IDs of the repaired tasks
    """
    with span("task_service.repair_inconsistent_tasks"):
        repaired: list[str] = []
        for task in (_from_record(record) for record in await _list_all()):
            if not check_invariants(task):
                continue
            await _save(repair_task(task, at))
            repaired.append(task.id)
        return repaired
