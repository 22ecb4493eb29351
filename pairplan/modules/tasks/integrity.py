"""Counter invariants, consistency reports and explicit data repair."""

import logging
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from pairplan.core import clock
from pairplan.core.errors import InvariantViolationError
from pairplan.domain.task import RepeatFrequency, Task
from pairplan.modules.tasks.periods import parse_key
from pairplan.modules.tasks.streaks import (
    StreakGap,
    StreakSegment,
    compute_current_streak,
    longest_run,
    streak_gaps,
    streak_segments,
)


logger = logging.getLogger(__name__)


class StreakCounters(BaseModel):
    """The three derived counters of a task."""

    completed_count: int
    current_streak: int
    longest_streak: int


class ConsistencyReport(BaseModel):
    """Stored counters compared with those the completion history implies."""

    task_id: str
    is_consistent: bool
    violations: list[str]
    stored: StreakCounters
    expected: StreakCounters
    record_source: Literal["array", "legacy_map", "corrupt"]
    unparseable_keys: list[str]
    segments: list[StreakSegment]
    gaps: list[StreakGap]


def check_invariants(task: Task) -> list[str]:
    """Describe every way the stored counters disagree with the history."""
    violations: list[str] = []
    recorded = len(task.completion_record)
    if task.completed_count != recorded:
        violations.append(f"completed_count is {task.completed_count} but {recorded} periods are recorded")
    if task.longest_streak < task.current_streak:
        violations.append(f"longest_streak {task.longest_streak} is below current_streak {task.current_streak}")
    if recorded == 0 and task.current_streak != 0:
        violations.append(f"current_streak is {task.current_streak} with no recorded completions")
    return violations


def assert_invariants(task: Task) -> None:
    """Raise InvariantViolationError if the stored counters are inconsistent."""
    violations = check_invariants(task)
    if violations:
        raise InvariantViolationError(task_id=task.id, violations=violations)


def flag_suspect(task: Task) -> Task:
    """Attach invariant violations to a task read from storage.

    The task is served as stored; only ``data_warnings`` changes.
    """
    violations = check_invariants(task)
    if not violations:
        return task
    logger.warning(
        "Task %s violates counter invariants",
        task.id,
        extra={"task_id": task.id, "violations": violations},
    )
    return task.model_copy(update={"data_warnings": [*task.data_warnings, *violations]})


def unparseable_keys(task: Task) -> list[str]:
    """Recorded keys that do not name a period of the task's frequency."""
    if task.repeat_frequency == RepeatFrequency.NEVER:
        return []
    return [key for key in task.completion_record if parse_key(key, task.repeat_frequency) is None]


def expected_counters(task: Task, as_of: datetime | None = None, *, reset_longest: bool = False) -> StreakCounters:
    """Counters implied by the history.

    ``longest_streak`` keeps its recorded maximum unless ``reset_longest`` asks
    for it to be rebuilt from the history alone.
    """
    at = clock.at_or_now(as_of)
    keys = task.completion_record
    current = compute_current_streak(keys, task.repeat_frequency, at)
    if reset_longest:
        longest = max(current, longest_run(keys, task.repeat_frequency))
    else:
        longest = max(task.longest_streak, current)
    return StreakCounters(completed_count=len(keys), current_streak=current, longest_streak=longest)


def build_consistency_report(
    task: Task,
    as_of: datetime | None = None,
    *,
    record_source: Literal["array", "legacy_map", "corrupt"] = "array",
) -> ConsistencyReport:
    """Compare a task's stored counters with its history."""
    stored = StreakCounters(
        completed_count=task.completed_count,
        current_streak=task.current_streak,
        longest_streak=task.longest_streak,
    )
    expected = expected_counters(task, as_of)
    violations = check_invariants(task)
    if stored.current_streak != expected.current_streak:
        violations.append(f"current_streak is {stored.current_streak}, history implies {expected.current_streak}")

    segments = streak_segments(task.completion_record, task.repeat_frequency)
    gaps = streak_gaps(segments, task.repeat_frequency) if segments else []
    return ConsistencyReport(
        task_id=task.id,
        is_consistent=not violations and record_source != "corrupt",
        violations=violations,
        stored=stored,
        expected=expected,
        record_source=record_source,
        unparseable_keys=unparseable_keys(task),
        segments=segments,
        gaps=gaps,
    )


def repair_task(task: Task, as_of: datetime | None = None, *, reset_longest: bool = False) -> Task:
    """Rewrite the derived counters from the completion history.

    This is the only operation that may lower ``longest_streak``, and only
    when ``reset_longest`` is set.
    """
    counters = expected_counters(task, as_of, reset_longest=reset_longest)
    logger.info(
        "Repaired task %s counters",
        task.id,
        extra={"task_id": task.id, "reset_longest": reset_longest, **counters.model_dump()},
    )
    return task.model_copy(update={**counters.model_dump(), "data_warnings": []})
