"""Domain models and DTOs."""

from pairplan.domain.create_models import TaskCreate
from pairplan.domain.task import (
    BOUNDED_FREQUENCIES,
    TERMINAL_STATUSES,
    RepeatFrequency,
    SortOrder,
    Task,
    TaskCategory,
    TaskDisplayInfo,
    TaskFilter,
    TaskProgress,
    TaskSort,
    TaskSortBy,
    TaskStatus,
    TaskType,
    TimeType,
)
from pairplan.domain.update_models import TaskUpdate


__all__ = [
    "BOUNDED_FREQUENCIES",
    "TERMINAL_STATUSES",
    "RepeatFrequency",
    "SortOrder",
    "Task",
    "TaskCategory",
    "TaskCreate",
    "TaskDisplayInfo",
    "TaskFilter",
    "TaskProgress",
    "TaskSort",
    "TaskSortBy",
    "TaskStatus",
    "TaskType",
    "TaskUpdate",
    "TimeType",
]
