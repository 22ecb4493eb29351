"""Pydantic models for creating task records."""

from datetime import time
from typing import Self

from pydantic import BaseModel, Field, field_validator, model_validator

from pairplan.domain.task import Instant, RepeatFrequency, TaskType, Weekdays


class TaskCreate(BaseModel):
    """Fields a user may set when publishing a task."""

    title: str = Field(..., min_length=1, description="Task title")
    description: str | None = Field(default=None, description="Detailed task description")
    points: int = Field(default=0, ge=0, description="Reward points")
    task_type: TaskType = Field(default=TaskType.DAILY)
    repeat_frequency: RepeatFrequency = Field(default=RepeatFrequency.NEVER)
    required_count: int | None = Field(default=None, ge=1)
    earliest_start_time: Instant = None
    task_deadline: Instant = None
    repeat_weekdays: Weekdays = None
    daily_time_start: time | None = None
    daily_time_end: time | None = None
    requires_proof: bool = False

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Strip whitespace and reject blank titles."""
        v = v.strip()
        if not v:
            msg = "Title must not be blank"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_repeat_rules(self) -> Self:
        """Enforce the required_count and deadline rules of each frequency."""
        if self.repeat_frequency == RepeatFrequency.NEVER:
            self.required_count = 1
        elif self.repeat_frequency == RepeatFrequency.FOREVER:
            if self.required_count is not None:
                msg = "Forever tasks must not set required_count"
                raise ValueError(msg)
            if self.task_deadline is not None:
                msg = "Forever tasks must not set task_deadline"
                raise ValueError(msg)
        elif self.required_count is None:
            msg = f"required_count is mandatory for {self.repeat_frequency} tasks"
            raise ValueError(msg)

        if (self.daily_time_start is None) != (self.daily_time_end is None):
            msg = "daily_time_start and daily_time_end must be set together"
            raise ValueError(msg)

        if (
            self.earliest_start_time is not None
            and self.task_deadline is not None
            and self.earliest_start_time > self.task_deadline
        ):
            msg = "earliest_start_time must not be after task_deadline"
            raise ValueError(msg)

        return self
