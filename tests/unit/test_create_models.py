"""Tests for task creation and edit forms."""

from datetime import time

import pytest
from pydantic import ValidationError

from pairplan.domain.create_models import TaskCreate
from pairplan.domain.update_models import TaskUpdate
from tests.unit.factories import at, make_task


@pytest.mark.unit
class TestTaskCreate:
    """Tests for TaskCreate validation."""

    def test_one_off_task_requires_one_completion(self):
        form = TaskCreate(title="Book flights", repeat_frequency="never", required_count=4)

        assert form.required_count == 1

    def test_bounded_task_requires_count(self):
        with pytest.raises(ValidationError, match="required_count is mandatory"):
            TaskCreate(title="Run", repeat_frequency="weekly")

    def test_forever_task_rejects_count(self):
        with pytest.raises(ValidationError, match="must not set required_count"):
            TaskCreate(title="Read", repeat_frequency="forever", required_count=3)

    def test_forever_task_rejects_deadline(self):
        with pytest.raises(ValidationError, match="must not set task_deadline"):
            TaskCreate(title="Read", repeat_frequency="forever", task_deadline=at(30))

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            TaskCreate(title="   ")

    def test_half_window_rejected(self):
        with pytest.raises(ValidationError, match="set together"):
            TaskCreate(title="Walk", repeat_frequency="daily", required_count=3, daily_time_start=time(7))

    def test_start_after_deadline_rejected(self):
        with pytest.raises(ValidationError, match="must not be after"):
            TaskCreate(title="Walk", earliest_start_time=at(10), task_deadline=at(5))

    @pytest.mark.parametrize("weekdays", [[0], [8], [1, 9]])
    def test_out_of_range_weekdays_rejected(self, weekdays):
        with pytest.raises(ValidationError, match="Weekday must be between"):
            TaskCreate(title="Gym", repeat_frequency="weekly", required_count=4, repeat_weekdays=weekdays)

    def test_weekdays_sorted_and_deduplicated(self):
        form = TaskCreate(title="Gym", repeat_frequency="weekly", required_count=4, repeat_weekdays=[5, 1, 5])

        assert form.repeat_weekdays == [1, 5]

    def test_negative_points_rejected(self):
        with pytest.raises(ValidationError):
            TaskCreate(title="Walk", points=-1)


@pytest.mark.unit
class TestTaskUpdate:
    """Tests for merging edit forms onto tasks."""

    def test_omitted_fields_keep_current_values(self):
        form = TaskUpdate(id="1", points=4).merged_onto(make_task(title="Dishes", points=1))

        assert form.title == "Dishes"
        assert form.points == 4

    def test_merged_form_is_revalidated(self):
        with pytest.raises(ValidationError):
            TaskUpdate(id="1", required_count=None).merged_onto(make_task())
