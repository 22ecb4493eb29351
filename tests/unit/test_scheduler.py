"""Tests for module registration and scheduled jobs."""

import logging

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import ValidationError

import pairplan.modules.tasks.service as task_service
from pairplan.core.module import ScheduledJob
from pairplan.core.module_registry import (
    get_all_scheduled_jobs,
    get_all_table_schemas,
    get_modules,
    register_module,
    unregister_module,
)
from pairplan.core.scheduler import build_trigger
from pairplan.modules.tasks import TasksModule, scheduler_jobs
from tests.unit.factories import at


async def _noop() -> None:
    return None


@pytest.fixture
def tasks_module():
    """Registers the tasks module for the duration of a test."""
    registered_here = "tasks" not in get_modules()
    if registered_here:
        register_module(TasksModule())
    yield get_modules()["tasks"]
    if registered_here:
        unregister_module("tasks")


class _ClashingModule:
    name = "clashing"
    description = "Declares a table another module owns"

    def get_table_schemas(self) -> dict[str, str]:
        return {"tasks": "CREATE TABLE IF NOT EXISTS tasks (id INTEGER PRIMARY KEY)"}

    def get_indexes(self) -> list[str]:
        return []

    def get_scheduled_jobs(self) -> list[ScheduledJob]:
        return []


@pytest.mark.unit
class TestModuleRegistry:
    """Tests for the module registry."""

    def test_tasks_module_contributes_schema_and_jobs(self, tasks_module):
        assert "tasks" in get_all_table_schemas()
        assert {job.id for job in get_all_scheduled_jobs()} >= {"promote_started_tasks", "audit_task_consistency"}

    def test_duplicate_registration_rejected(self, tasks_module):
        with pytest.raises(ValueError, match="already registered"):
            register_module(TasksModule())

    def test_duplicate_table_rejected(self, tasks_module):
        register_module(_ClashingModule())
        try:
            with pytest.raises(ValueError, match="declared by both"):
                get_all_table_schemas()
        finally:
            unregister_module("clashing")


@pytest.mark.unit
class TestTriggers:
    """Tests for ScheduledJob and build_trigger."""

    def test_cron_job(self):
        job = ScheduledJob(id="nightly", name="Nightly", func=_noop, cron="30 3 * * *")

        assert isinstance(build_trigger(job), CronTrigger)

    def test_interval_job(self):
        job = ScheduledJob(id="often", name="Often", func=_noop, interval_minutes=5)

        assert isinstance(build_trigger(job), IntervalTrigger)

    @pytest.mark.parametrize("trigger", [{}, {"cron": "* * * * *", "interval_minutes": 1}])
    def test_exactly_one_trigger_required(self, trigger):
        with pytest.raises(ValidationError, match="exactly one of cron or interval_minutes"):
            ScheduledJob(id="bad", name="Bad", func=_noop, **trigger)


@pytest.mark.unit
class TestTaskJobs:
    """Tests for the tasks module's scheduled jobs."""

    async def test_promotion_job_logs_failures(self, monkeypatch, caplog):
        async def failing_promotion(**_kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(task_service, "promote_started_tasks", failing_promotion)

        with caplog.at_level(logging.ERROR):
            await scheduler_jobs.promote_started_tasks()

        assert "Error in task promotion job: database unavailable" in caplog.text

    async def test_audit_job_reports_and_repairs_suspect_tasks(self, patched_db, caplog):
        task_id = patched_db.insert_raw(
            "tasks",
            {
                "couple_id": "c1",
                "creator_id": "alice",
                "title": "Stretch",
                "repeat_frequency": "daily",
                "required_count": 3,
                "status": "in_progress",
                "assignee_id": "bob",
                "completion_record": "[]",
                "completed_count": 2,
                "created_at": at(1).isoformat(),
            },
        )

        with caplog.at_level(logging.WARNING):
            await scheduler_jobs.audit_task_consistency()

        assert "needs repair" in caplog.text
        assert patched_db.raw("tasks", task_id)["completed_count"] == 0
