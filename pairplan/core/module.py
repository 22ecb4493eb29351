"""Feature-module plugin interface.

A module contributes SQLite tables, their indexes and periodic jobs; the
registry collects them at startup.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from pydantic import BaseModel, Field, model_validator


class ScheduledJob(BaseModel):
    """A periodic coroutine run by the scheduler.

    Exactly one of ``cron`` (crontab syntax) and ``interval_minutes`` is set.
    """

    id: str
    name: str
    func: Callable[[], Awaitable[None]]
    cron: str | None = None
    interval_minutes: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def validate_trigger(self) -> "ScheduledJob":
        if (self.cron is None) == (self.interval_minutes is None):
            msg = f"Job '{self.id}' must set exactly one of cron or interval_minutes"
            raise ValueError(msg)
        return self


class Module(Protocol):
    """What a feature module exposes to the application."""

    @property
    def name(self) -> str:
        """Registry key."""
        ...

    @property
    def description(self) -> str: ...

    def get_table_schemas(self) -> dict[str, str]:
        """Table name to ``CREATE TABLE IF NOT EXISTS`` statement."""
        ...

    def get_indexes(self) -> list[str]:
        """``CREATE INDEX IF NOT EXISTS`` statements for the module's tables."""
        ...

    def get_scheduled_jobs(self) -> list[ScheduledJob]:
        """Jobs registered when the scheduler starts."""
        ...
