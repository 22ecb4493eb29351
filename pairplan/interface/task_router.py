"""JSON API for couple tasks.

Authentication is handled elsewhere; the acting user is an explicit request
field on every mutation.
"""

import logging
from datetime import datetime, time

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from pairplan.domain.create_models import TaskCreate
from pairplan.domain.task import (
    Instant,
    RepeatFrequency,
    SortOrder,
    Task,
    TaskFilter,
    TaskSort,
    TaskSortBy,
    TaskStatus,
    TaskType,
    Weekdays,
)
from pairplan.domain.update_models import TaskUpdate
from pairplan.models.service_models import TaskStats, TaskWithDisplay
from pairplan.modules.tasks import service
from pairplan.modules.tasks.filters import TaskView, filter_for_view, merge_filters
from pairplan.modules.tasks.integrity import ConsistencyReport
from pairplan.modules.tasks.progress import build_display_info


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


class CreateTaskRequest(TaskCreate):
    """Creation form plus ownership."""

    couple_id: str
    creator_id: str
    assignee_id: str | None = Field(default=None, description="Assign on creation, e.g. to the creator")


class EditTaskRequest(BaseModel):
    """Edit form without the id, which comes from the path."""

    actor_id: str
    title: str | None = None
    description: str | None = None
    points: int | None = Field(default=None, ge=0)
    task_type: TaskType | None = None
    repeat_frequency: RepeatFrequency | None = None
    required_count: int | None = Field(default=None, ge=1)
    earliest_start_time: Instant = None
    task_deadline: Instant = None
    repeat_weekdays: Weekdays = None
    daily_time_start: time | None = None
    daily_time_end: time | None = None
    requires_proof: bool | None = None


class AssignRequest(BaseModel):
    assignee_id: str
    at: datetime | None = None


class ActorRequest(BaseModel):
    actor_id: str
    at: datetime | None = None


class CompleteRequest(ActorRequest):
    proof_url: str | None = None


class RepairRequest(BaseModel):
    reset_longest: bool = False


def _with_display(task: Task, at: datetime | None = None) -> TaskWithDisplay:
    return TaskWithDisplay(task=task, display=build_display_info(task, at))


@router.get("")
async def list_tasks(
    couple_id: str,
    view: TaskView = TaskView.ALL,
    user_id: str | None = None,
    status: list[TaskStatus] | None = Query(default=None),
    task_type: list[TaskType] | None = Query(default=None),
    repeat_frequency: list[RepeatFrequency] | None = Query(default=None),
    sort_by: TaskSortBy = TaskSortBy.CREATED_AT,
    order: SortOrder = SortOrder.DESC,
) -> list[TaskWithDisplay]:
    """List a couple's tasks for a board tab."""
    extra = TaskFilter(
        statuses=set(status) if status else None,
        task_types=set(task_type) if task_type else None,
        repeat_frequencies=set(repeat_frequency) if repeat_frequency else None,
    )
    tasks = await service.get_tasks(
        couple_id=couple_id,
        task_filter=merge_filters(filter_for_view(view, user_id), extra),
        sort=TaskSort(by=sort_by, order=order),
    )
    return [_with_display(task) for task in tasks]


@router.get("/today")
async def list_today_tasks(couple_id: str, user_id: str) -> list[TaskWithDisplay]:
    """The user's tasks still completable today."""
    tasks = await service.get_today_tasks(couple_id=couple_id, user_id=user_id)
    return [_with_display(task) for task in tasks]


@router.get("/stats")
async def task_stats(couple_id: str, user_id: str | None = None) -> TaskStats:
    """Per-status task counts."""
    return await service.get_task_stats(couple_id=couple_id, user_id=user_id)


@router.post("", status_code=201)
async def create_task(request: CreateTaskRequest) -> TaskWithDisplay:
    """Publish a task."""
    form = TaskCreate.model_validate(request.model_dump(include=set(TaskCreate.model_fields)))
    task = await service.create_task(
        form=form,
        creator_id=request.creator_id,
        couple_id=request.couple_id,
        assignee_id=request.assignee_id,
    )
    return _with_display(task)


@router.get("/{task_id}")
async def get_task(task_id: str) -> TaskWithDisplay:
    """Get one task with its display fields."""
    return _with_display(await service.get_task(task_id=task_id))


@router.patch("/{task_id}")
async def edit_task(task_id: str, request: EditTaskRequest) -> TaskWithDisplay:
    """Apply the creator's edits. Only fields present in the body change."""
    changes = request.model_dump(include=request.model_fields_set - {"actor_id"})
    update = TaskUpdate.model_validate({"id": task_id, **changes})
    task = await service.update_task(update=update, actor_id=request.actor_id)
    return _with_display(task)


@router.post("/{task_id}/assign")
async def assign_task(task_id: str, request: AssignRequest) -> TaskWithDisplay:
    task = await service.assign_task(task_id=task_id, assignee_id=request.assignee_id, at=request.at)
    return _with_display(task, request.at)


@router.post("/{task_id}/start")
async def start_task(task_id: str, request: ActorRequest) -> TaskWithDisplay:
    task = await service.start_task(task_id=task_id, actor_id=request.actor_id, at=request.at)
    return _with_display(task, request.at)


@router.post("/{task_id}/complete")
async def complete_task(task_id: str, request: CompleteRequest) -> TaskWithDisplay:
    task = await service.complete_task(
        task_id=task_id,
        actor_id=request.actor_id,
        proof_url=request.proof_url,
        at=request.at,
    )
    return _with_display(task, request.at)


@router.post("/{task_id}/abandon")
async def abandon_task(task_id: str, request: ActorRequest) -> TaskWithDisplay:
    task = await service.abandon_task(task_id=task_id, actor_id=request.actor_id, at=request.at)
    return _with_display(task, request.at)


@router.post("/{task_id}/finish")
async def finish_task(task_id: str, request: ActorRequest) -> TaskWithDisplay:
    task = await service.finish_task(task_id=task_id, actor_id=request.actor_id, at=request.at)
    return _with_display(task, request.at)


@router.get("/{task_id}/consistency")
async def task_consistency(task_id: str) -> ConsistencyReport:
    """Compare stored counters with the completion history."""
    return await service.get_consistency_report(task_id=task_id)


@router.post("/{task_id}/repair")
async def repair_task(task_id: str, request: RepairRequest) -> TaskWithDisplay:
    """Rebuild the task's counters from its history."""
    task = await service.repair_task_record(task_id=task_id, reset_longest=request.reset_longest)
    logger.info("Repaired task %s via API", task_id)
    return _with_display(task)
