"""Pydantic models for updating task records."""

from datetime import time

from pydantic import BaseModel, Field

from pairplan.domain.create_models import TaskCreate
from pairplan.domain.task import Instant, RepeatFrequency, Task, TaskType, Weekdays


class TaskUpdate(BaseModel):
    """Edit form: the task id plus any subset of the creation fields.

    Only fields the caller actually sent are applied, so an explicit ``None``
    clears a value while an omitted field keeps the current one.
    """

    id: str = Field(..., description="Task being edited")
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

    def merged_onto(self, task: Task) -> TaskCreate:
        """Apply the sent fields onto an existing task and re-validate as a full form."""
        current = task.model_dump(include=set(TaskCreate.model_fields))
        changes = self.model_dump(include=self.model_fields_set - {"id"})
        return TaskCreate.model_validate({**current, **changes})
