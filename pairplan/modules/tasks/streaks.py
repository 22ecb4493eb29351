"""Streak calculation over completed period keys."""

from collections.abc import Iterable
from datetime import date, datetime

from pydantic import BaseModel

from pairplan.domain.task import RepeatFrequency
from pairplan.modules.tasks.periods import key_for, parse_key, period_keys, period_start, previous_period


class StreakSegment(BaseModel):
    """A run of consecutive completed periods."""

    start_key: str
    end_key: str
    length: int


class StreakGap(BaseModel):
    """Periods missed between two segments."""

    after_key: str
    before_key: str
    missed_periods: int


def _period_starts(keys: Iterable[str], frequency: RepeatFrequency) -> set[date]:
    # Keys of another shape (e.g. history kept under an older frequency) cannot chain
    starts = (parse_key(key, frequency) for key in keys)
    return {start for start in starts if start is not None}


def _predecessor_candidates(start: date, frequency: RepeatFrequency) -> list[date]:
    previous = previous_period(start, frequency)
    if frequency == RepeatFrequency.BIWEEKLY:
        # A biweekly run steps back two weeks; the week in between also links
        return [previous, previous_period(previous, frequency)]
    return [previous]


def _present_predecessor(start: date, starts: set[date], frequency: RepeatFrequency) -> date | None:
    for candidate in _predecessor_candidates(start, frequency):
        if candidate in starts:
            return candidate
    return None


def compute_current_streak(keys: Iterable[str], frequency: RepeatFrequency, as_of: datetime | date) -> int:
    """Count consecutive completed periods ending at or before ``as_of``.

    The walk starts at the period containing ``as_of`` when it is completed,
    otherwise at the most recent completed period before it, and moves back
    one period at a time until a period is missing. Not having completed the
    current period yet therefore never shrinks the streak.
    """
    keys = list(keys)
    if frequency == RepeatFrequency.NEVER:
        return 1 if keys else 0

    starts = _period_starts(keys, frequency)
    current = period_start(as_of, frequency)

    if current in starts:
        anchor = current
    else:
        earlier = [start for start in starts if start < current]
        if not earlier:
            return 0
        anchor = max(earlier)

    streak = 1
    cursor = anchor
    while (previous := _present_predecessor(cursor, starts, frequency)) is not None:
        streak += 1
        cursor = previous
    return streak


def update_longest_streak(longest_streak: int, current_streak: int) -> int:
    """Running maximum; a recorded longest streak is never lowered here."""
    return max(longest_streak, current_streak)


def streak_segments(keys: Iterable[str], frequency: RepeatFrequency) -> list[StreakSegment]:
    """Split the history into runs of consecutive periods, oldest first."""
    if frequency == RepeatFrequency.NEVER:
        return []

    starts = _period_starts(keys, frequency)
    segments: list[StreakSegment] = []
    run: list[date] = []
    for start in sorted(starts):
        if run and _present_predecessor(start, {run[-1]}, frequency) is None:
            segments.append(_segment(run, frequency))
            run = []
        run.append(start)
    if run:
        segments.append(_segment(run, frequency))
    return segments


def _segment(run: list[date], frequency: RepeatFrequency) -> StreakSegment:
    return StreakSegment(
        start_key=key_for(run[0], frequency),
        end_key=key_for(run[-1], frequency),
        length=len(run),
    )


def streak_gaps(segments: list[StreakSegment], frequency: RepeatFrequency) -> list[StreakGap]:
    """Missed periods between each pair of adjacent segments."""
    gaps: list[StreakGap] = []
    for earlier, later in zip(segments, segments[1:], strict=False):
        end = parse_key(earlier.end_key, frequency)
        start = parse_key(later.start_key, frequency)
        if end is None or start is None:
            continue
        spanned = period_keys(end, start, frequency)
        gaps.append(
            StreakGap(
                after_key=earlier.end_key,
                before_key=later.start_key,
                missed_periods=max(len(spanned) - 2, 0),
            )
        )
    return gaps


def longest_run(keys: Iterable[str], frequency: RepeatFrequency) -> int:
    """Length of the longest run anywhere in the history."""
    keys = list(keys)
    if frequency == RepeatFrequency.NEVER:
        return 1 if keys else 0
    return max((segment.length for segment in streak_segments(keys, frequency)), default=0)
