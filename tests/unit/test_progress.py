"""Tests for progress gates and display fields."""

from datetime import time

import pytest

from pairplan.domain.task import TaskCategory, TaskStatus, TimeType
from pairplan.modules.tasks.progress import (
    build_display_info,
    completion_block_reason,
    completion_percentage,
    evaluate,
    format_progress_display,
    format_status_display,
    format_time_display,
    in_daily_window,
    is_completed_this_period,
    is_overdue,
    on_allowed_weekday,
    task_category,
    time_type,
)
from tests.unit.factories import at, make_task


@pytest.mark.unit
class TestGates:
    """Tests for the timing and count gates."""

    def test_daily_window(self):
        task = make_task(daily_time_start=time(7), daily_time_end=time(9))

        assert in_daily_window(task, at(4, 8))
        assert in_daily_window(task, at(4, 9))
        assert not in_daily_window(task, at(4, 10))

    def test_daily_window_wrapping_midnight(self):
        task = make_task(daily_time_start=time(22), daily_time_end=time(6))

        assert in_daily_window(task, at(4, 23))
        assert in_daily_window(task, at(4, 5))
        assert not in_daily_window(task, at(4, 12))

    def test_no_window_is_always_open(self):
        assert in_daily_window(make_task(), at(4, 3))

    def test_allowed_weekdays(self):
        task = make_task(repeat_weekdays=[1, 3, 5])

        assert on_allowed_weekday(task, at(4))  # Monday
        assert not on_allowed_weekday(task, at(5))  # Tuesday

    def test_overdue_is_strictly_after_deadline(self):
        task = make_task(task_deadline=at(5, 12))

        assert not is_overdue(task, at(5, 12))
        assert is_overdue(task, at(5, 13))

    def test_no_deadline_is_never_overdue(self):
        assert not is_overdue(make_task(), at(31))

    @pytest.mark.parametrize(
        ("overrides", "instant", "reason"),
        [
            ({"earliest_start_time": at(6)}, at(5), "start time not reached"),
            ({"task_deadline": at(4)}, at(5), "deadline has passed"),
            ({"repeat_weekdays": [1]}, at(5), "not an allowed weekday"),
            ({"daily_time_start": time(7), "daily_time_end": time(8)}, at(5, 20), "outside the daily time window"),
            ({"completed_count": 5, "completion_record": list("abcde")}, at(5), "required count already reached"),
        ],
    )
    def test_block_reasons(self, overrides, instant, reason):
        assert completion_block_reason(make_task(**overrides), instant) == reason

    def test_no_block_reason_when_gates_pass(self):
        assert completion_block_reason(make_task(repeat_weekdays=[2]), at(5)) is None


@pytest.mark.unit
class TestProgress:
    """Tests for percentage, period completion and evaluate()."""

    def test_bounded_percentage(self):
        assert completion_percentage(make_task(completed_count=3, required_count=5)) == 60.0

    def test_percentage_is_capped(self):
        assert completion_percentage(make_task(completed_count=7, required_count=5)) == 100.0

    def test_forever_has_no_percentage(self):
        assert completion_percentage(make_task(repeat_frequency="forever", required_count=None)) is None

    def test_never_percentage(self):
        assert completion_percentage(make_task(repeat_frequency="never", required_count=1)) == 0.0
        assert completion_percentage(make_task(repeat_frequency="never", required_count=1, completed_count=1)) == 100.0

    def test_completed_this_period_daily(self):
        task = make_task(completion_record=["2024-03-05"], completed_count=1)

        assert is_completed_this_period(task, at(5, 20))
        assert not is_completed_this_period(task, at(6))

    def test_biweekly_completion_covers_following_week(self):
        task = make_task(repeat_frequency="biweekly", completion_record=["2024-W09"], completed_count=1)

        assert is_completed_this_period(task, at(5))  # W10
        assert not is_completed_this_period(task, at(11))  # W11

    def test_evaluate_in_progress_task(self):
        progress = evaluate(make_task(completed_count=3, completion_record=["x", "y", "z"]), at(5))

        assert progress.completion_percentage == 60.0
        assert not progress.is_overdue
        assert progress.can_complete_today

    def test_assigned_task_cannot_complete_today(self):
        assert not evaluate(make_task(status="assigned"), at(5)).can_complete_today

    def test_overdue_task_cannot_complete_today(self):
        progress = evaluate(make_task(task_deadline=at(4)), at(5))

        assert progress.is_overdue
        assert not progress.can_complete_today

    def test_outside_weekday_cannot_complete_today(self):
        assert not evaluate(make_task(repeat_weekdays=[1, 3, 5]), at(5)).can_complete_today


@pytest.mark.unit
class TestDisplay:
    """Tests for categories and display strings."""

    def test_categories(self):
        assert task_category(make_task(repeat_frequency="never", required_count=1)) == TaskCategory.ONCE
        assert task_category(make_task()) == TaskCategory.LIMITED_REPEAT
        assert task_category(make_task(repeat_frequency="forever", required_count=None)) == TaskCategory.FOREVER_REPEAT

    def test_time_types(self):
        assert time_type(make_task()) == TimeType.UNLIMITED
        assert time_type(make_task(earliest_start_time=at(5), task_deadline=at(5))) == TimeType.FIXED
        assert time_type(make_task(earliest_start_time=at(5), task_deadline=at(9))) == TimeType.FLEXIBLE
        assert time_type(make_task(task_deadline=at(9))) == TimeType.FLEXIBLE

    def test_time_display_for_one_off_task(self):
        task = make_task(repeat_frequency="never", required_count=1, task_deadline=at(5, 18))

        assert format_time_display(task) == "Due 2024-03-05 18:00"

    def test_time_display_for_repeating_task(self):
        task = make_task(earliest_start_time=at(1, 9), task_deadline=at(31, 18))

        assert format_time_display(task) == "Starts 2024-03-01 09:00 - ends 2024-03-31 18:00"

    def test_time_display_with_only_a_window(self):
        task = make_task(daily_time_start=time(22), daily_time_end=time(6, 30))

        assert format_time_display(task) == "Daily 22:00 - 06:30"

    def test_time_display_without_bounds(self):
        assert format_time_display(make_task()) == "No time limit"

    def test_progress_display(self):
        assert format_progress_display(make_task(completed_count=3), 60.0) == "3/5 times (60%)"

    def test_progress_display_for_once_and_forever(self):
        once = make_task(repeat_frequency="never", required_count=1)
        forever = make_task(repeat_frequency="forever", required_count=None, completed_count=4, current_streak=2)

        assert format_progress_display(once, 0.0) == "Not done"
        assert format_progress_display(forever, None) == "Completed 4 times, current streak 2"

    def test_status_display(self):
        assert format_status_display(TaskStatus.IN_PROGRESS) == "In progress"

    def test_display_info_bundle(self):
        task = make_task(completion_record=["2024-03-05"], completed_count=1, current_streak=1, longest_streak=1)

        info = build_display_info(task, at(5))

        assert info.completion_percentage == 20.0
        assert info.is_active
        assert info.completed_this_period
        assert info.can_complete_today
        assert info.progress_display == "1/5 times (20%)"
        assert info.status_display == "In progress"
        assert info.data_warnings == []
