"""Tasks module for recurring couple tasks."""

from pairplan.core.module import ScheduledJob


class TasksModule:
    """Tasks module for shared and recurring couple tasks.

    Provides:
    - Task persistence (publish, edit, assign, complete, abandon, finish)
    - Completion history decoding and period keys
    - Streaks, progress and display fields
    - Consistency reports and counter repair
    - Scheduled start of assigned tasks and consistency audits
    """

    @property
    def name(self) -> str:
        """Registry key, also the name of the table."""
        return "tasks"

    @property
    def description(self) -> str:
        return "Recurring task tracking with streaks, progress and lifecycle management"

    def get_table_schemas(self) -> dict[str, str]:
        """The tasks table. History is JSON text, weekdays a JSON array."""
        return {
            "tasks": """CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        couple_id TEXT NOT NULL,
        creator_id TEXT NOT NULL,
        assignee_id TEXT,
        title TEXT NOT NULL,
        description TEXT,
        points INTEGER NOT NULL DEFAULT 0 CHECK (points >= 0),
        task_type TEXT NOT NULL DEFAULT 'daily' CHECK (task_type IN ('daily', 'habit', 'special')),
        repeat_frequency TEXT NOT NULL DEFAULT 'never'
            CHECK (repeat_frequency IN ('never', 'daily', 'weekly', 'biweekly', 'monthly', 'yearly', 'forever')),
        required_count INTEGER CHECK (required_count IS NULL OR required_count >= 1),
        completion_record TEXT,
        completed_count INTEGER NOT NULL DEFAULT 0,
        current_streak INTEGER NOT NULL DEFAULT 0,
        longest_streak INTEGER NOT NULL DEFAULT 0,
        earliest_start_time TEXT,
        task_deadline TEXT,
        daily_time_start TEXT,
        daily_time_end TEXT,
        repeat_weekdays TEXT,
        status TEXT NOT NULL DEFAULT 'recruiting'
            CHECK (status IN ('recruiting', 'assigned', 'in_progress', 'completed', 'abandoned')),
        requires_proof INTEGER NOT NULL DEFAULT 0,
        proof_url TEXT,
        review_comment TEXT,
        created_at TEXT NOT NULL DEFAULT (datetime('now')),
        updated_at TEXT NOT NULL DEFAULT (datetime('now')),
        submitted_at TEXT,
        completed_at TEXT
    )""",
        }

    def get_indexes(self) -> list[str]:
        """Indexes backing the per-couple, per-member and per-status queries."""
        return [
            "CREATE INDEX IF NOT EXISTS idx_tasks_couple_id ON tasks (couple_id)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_creator_id ON tasks (creator_id)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_assignee_id ON tasks (assignee_id)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks (status)",
        ]

    def get_scheduled_jobs(self) -> list[ScheduledJob]:
        """Start promotion and the nightly counter audit."""
        from pairplan.modules.tasks import scheduler_jobs  # noqa: PLC0415

        return scheduler_jobs.get_scheduled_jobs()
