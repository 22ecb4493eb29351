"""Reference-timezone clock helpers.

Every calendar calculation (period keys, weekday gates, daily windows) happens
in the single timezone named by ``settings.reference_timezone``.
"""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from pairplan.core.config import settings


def reference_zone() -> ZoneInfo:
    """Return the configured reference timezone."""
    return ZoneInfo(settings.reference_timezone)


def now() -> datetime:
    """Current instant as an aware datetime in the reference timezone."""
    return datetime.now(reference_zone())


def to_reference(instant: datetime) -> datetime:
    """Convert an instant to the reference timezone.

    Naive datetimes are taken to already be in the reference timezone.
    """
    zone = reference_zone()
    if instant.tzinfo is None:
        return instant.replace(tzinfo=zone)
    return instant.astimezone(zone)


def local_date(instant: datetime | date) -> date:
    """Calendar date of an instant in the reference timezone."""
    if isinstance(instant, datetime):
        return to_reference(instant).date()
    return instant


def local_time(instant: datetime) -> time:
    """Wall-clock time of an instant in the reference timezone."""
    return to_reference(instant).time().replace(tzinfo=None)


def at_or_now(instant: datetime | None) -> datetime:
    """The given instant in the reference timezone, or the current one."""
    return to_reference(instant) if instant is not None else now()
