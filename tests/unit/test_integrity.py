"""Tests for counter invariants, consistency reports and repair."""

import logging

import pytest

from pairplan.core.errors import InvariantViolationError
from pairplan.modules.tasks.integrity import (
    assert_invariants,
    build_consistency_report,
    check_invariants,
    expected_counters,
    flag_suspect,
    repair_task,
    unparseable_keys,
)
from tests.unit.factories import at, make_task


def consistent_task(**overrides):
    data = {
        "completion_record": ["2024-03-03", "2024-03-04"],
        "completed_count": 2,
        "current_streak": 2,
        "longest_streak": 2,
    }
    data.update(overrides)
    return make_task(**data)


@pytest.mark.unit
class TestInvariants:
    """Tests for check_invariants() and friends."""

    def test_consistent_task_has_no_violations(self):
        assert check_invariants(consistent_task()) == []

    def test_count_mismatch(self):
        violations = check_invariants(consistent_task(completed_count=5))

        assert violations == ["completed_count is 5 but 2 periods are recorded"]

    def test_longest_below_current(self):
        assert check_invariants(consistent_task(longest_streak=1)) == [
            "longest_streak 1 is below current_streak 2"
        ]

    def test_streak_without_history(self):
        task = make_task(current_streak=1, longest_streak=1)

        assert "current_streak is 1 with no recorded completions" in check_invariants(task)

    def test_assert_invariants_raises(self):
        with pytest.raises(InvariantViolationError) as exc_info:
            assert_invariants(consistent_task(completed_count=0))

        assert exc_info.value.task_id == "1"
        assert len(exc_info.value.violations) == 1

    def test_flag_suspect_keeps_stored_values(self, caplog):
        task = consistent_task(completed_count=7)

        with caplog.at_level(logging.WARNING):
            flagged = flag_suspect(task)

        assert flagged.completed_count == 7
        assert flagged.is_suspect
        assert "violates counter invariants" in caplog.text

    def test_flag_suspect_returns_clean_task_unchanged(self):
        task = consistent_task()

        assert flag_suspect(task) is task

    def test_unparseable_keys(self):
        task = consistent_task(completion_record=["2024-03-04", "2024-W10"], completed_count=2)

        assert unparseable_keys(task) == ["2024-W10"]


@pytest.mark.unit
class TestReportAndRepair:
    """Tests for consistency reports and repair_task()."""

    def test_report_for_consistent_task(self):
        report = build_consistency_report(consistent_task(), at(4))

        assert report.is_consistent
        assert report.expected == report.stored
        assert [segment.length for segment in report.segments] == [2]
        assert report.gaps == []

    def test_report_flags_stale_current_streak(self):
        task = consistent_task(current_streak=1)

        report = build_consistency_report(task, at(4))

        assert not report.is_consistent
        assert report.expected.current_streak == 2
        assert "current_streak is 1, history implies 2" in report.violations

    def test_report_lists_gaps(self):
        task = consistent_task(
            completion_record=["2024-03-01", "2024-03-04"], current_streak=1, longest_streak=1
        )

        report = build_consistency_report(task, at(4))

        assert len(report.segments) == 2
        assert report.gaps[0].missed_periods == 2

    def test_corrupt_source_is_never_consistent(self):
        report = build_consistency_report(make_task(), at(4), record_source="corrupt")

        assert report.violations == []
        assert not report.is_consistent

    def test_expected_counters_keep_recorded_longest(self):
        task = consistent_task(longest_streak=9)

        assert expected_counters(task, at(4)).longest_streak == 9
        assert expected_counters(task, at(4), reset_longest=True).longest_streak == 2

    def test_repair_rebuilds_counters(self):
        task = consistent_task(completed_count=0, current_streak=0, data_warnings=["bad"])

        repaired = repair_task(task, at(4))

        assert repaired.completed_count == 2
        assert repaired.current_streak == 2
        assert repaired.longest_streak == 2
        assert not repaired.is_suspect
        assert check_invariants(repaired) == []

    def test_repair_lowers_longest_only_on_request(self):
        task = consistent_task(longest_streak=9)

        assert repair_task(task, at(4)).longest_streak == 9
        assert repair_task(task, at(4), reset_longest=True).longest_streak == 2
