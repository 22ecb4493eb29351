"""Pydantic models for service layer return types."""

from pydantic import BaseModel

from pairplan.domain.task import Task, TaskDisplayInfo


class TaskStats(BaseModel):
    """Task counts for a couple, optionally from one member's point of view."""

    total: int
    recruiting: int
    assigned: int
    in_progress: int
    completed: int
    abandoned: int
    my_tasks: int | None = None
    today_available: int | None = None


class TaskWithDisplay(BaseModel):
    """A task together with its display bundle."""

    task: Task
    display: TaskDisplayInfo
