"""Task domain models and enums."""

from datetime import datetime, time
from enum import StrEnum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field

from pairplan.core.clock import to_reference


class RepeatFrequency(StrEnum):
    """How often a task repeats. Governs every progress calculation."""

    NEVER = "never"
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    FOREVER = "forever"


class TaskType(StrEnum):
    """Advisory categorization shown in the UI."""

    DAILY = "daily"
    HABIT = "habit"
    SPECIAL = "special"


class TaskStatus(StrEnum):
    """Task lifecycle state."""

    RECRUITING = "recruiting"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


TERMINAL_STATUSES: frozenset[TaskStatus] = frozenset({TaskStatus.COMPLETED, TaskStatus.ABANDONED})

# Frequencies that finish after a fixed number of completions
BOUNDED_FREQUENCIES: frozenset[RepeatFrequency] = frozenset(
    {
        RepeatFrequency.DAILY,
        RepeatFrequency.WEEKLY,
        RepeatFrequency.BIWEEKLY,
        RepeatFrequency.MONTHLY,
        RepeatFrequency.YEARLY,
    }
)


class TaskCategory(StrEnum):
    """Display grouping derived from the repeat frequency."""

    ONCE = "once"
    LIMITED_REPEAT = "limited_repeat"
    FOREVER_REPEAT = "forever_repeat"


class TimeType(StrEnum):
    """Display grouping derived from the start time and deadline."""

    UNLIMITED = "unlimited"
    FIXED = "fixed"
    FLEXIBLE = "flexible"


def _validate_weekdays(v: list[int] | None) -> list[int] | None:
    """Reject out-of-range weekdays and return them sorted and deduplicated."""
    if v is None:
        return None
    for day in v:
        if not 1 <= day <= 7:  # noqa: PLR2004
            msg = f"Weekday must be between 1 (Monday) and 7 (Sunday), got {day}"
            raise ValueError(msg)
    return sorted(set(v)) or None


def _as_reference_time(v: datetime | None) -> datetime | None:
    return to_reference(v) if v is not None else None


Weekdays = Annotated[list[int] | None, AfterValidator(_validate_weekdays)]
Instant = Annotated[datetime | None, AfterValidator(_as_reference_time)]


class Task(BaseModel):
    """Task data transfer object.

    ``completion_record`` is always the canonical form: period keys in
    insertion order, without duplicates.
    """

    id: str = Field(..., description="Unique task ID from database")
    couple_id: str = Field(..., description="Scope the task belongs to")
    creator_id: str = Field(..., description="User who published the task")
    assignee_id: str | None = Field(default=None, description="User working on the task")
    title: str = Field(..., description="Task title")
    description: str | None = Field(default=None, description="Detailed task description")
    points: int = Field(default=0, ge=0, description="Reward points")
    task_type: TaskType = Field(default=TaskType.DAILY, description="Advisory categorization")
    repeat_frequency: RepeatFrequency = Field(default=RepeatFrequency.NEVER, description="Repeat cadence")
    required_count: int | None = Field(default=None, ge=1, description="Completions needed to finish")

    completion_record: list[str] = Field(default_factory=list, description="Completed period keys")
    completed_count: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)

    earliest_start_time: Instant = Field(default=None, description="Task may not be acted on before this")
    task_deadline: Instant = Field(default=None, description="Task may not be acted on after this")
    daily_time_start: time | None = Field(default=None, description="Daily completion window start")
    daily_time_end: time | None = Field(default=None, description="Daily completion window end")
    repeat_weekdays: Weekdays = Field(default=None, description="Allowed ISO weekdays, 1=Monday")

    status: TaskStatus = Field(default=TaskStatus.RECRUITING, description="Current lifecycle state")
    requires_proof: bool = Field(default=False, description="Advisory to the UI only")
    proof_url: str | None = Field(default=None)
    review_comment: str | None = Field(default=None)

    created_at: Instant = Field(default=None)
    updated_at: Instant = Field(default=None)
    submitted_at: Instant = Field(default=None, description="Last recorded completion")
    completed_at: Instant = Field(default=None, description="Set on terminal transitions")

    # Read-path flags for records that failed normalization or invariant checks
    data_warnings: list[str] = Field(default_factory=list, exclude=True)

    @property
    def is_terminal(self) -> bool:
        """Whether no further lifecycle transition is permitted."""
        return self.status in TERMINAL_STATUSES

    @property
    def is_suspect(self) -> bool:
        """Whether the stored record needed recovery or failed an invariant check."""
        return bool(self.data_warnings)


class TaskFilter(BaseModel):
    """Conjunctive selection criteria. Unset fields match everything."""

    creator_id: str | None = None
    assignee_id: str | None = None
    statuses: set[TaskStatus] | None = None
    task_types: set[TaskType] | None = None
    repeat_frequencies: set[RepeatFrequency] | None = None


class TaskSortBy(StrEnum):
    """Sortable task attributes."""

    CREATED_AT = "created_at"
    TASK_DEADLINE = "task_deadline"
    POINTS = "points"
    TITLE = "title"
    COMPLETION_PERCENTAGE = "completion_percentage"


class SortOrder(StrEnum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


class TaskSort(BaseModel):
    """Sort specification for task lists."""

    by: TaskSortBy = TaskSortBy.CREATED_AT
    order: SortOrder = SortOrder.DESC


class TaskProgress(BaseModel):
    """Progress fields derived from a task at a reference instant."""

    completion_percentage: float | None
    is_overdue: bool
    can_complete_today: bool


class TaskDisplayInfo(TaskProgress):
    """Display-ready bundle computed once per render request."""

    task_category: TaskCategory
    time_type: TimeType
    is_active: bool
    completed_this_period: bool
    time_display: str
    progress_display: str
    status_display: str
    data_warnings: list[str] = Field(default_factory=list)
