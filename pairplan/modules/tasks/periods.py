"""Period keys: canonical identifiers for the time bucket a completion falls in.

| frequency           | key          | example      |
|---------------------|--------------|--------------|
| daily, forever      | ``YYYY-MM-DD`` | ``2024-03-05`` |
| weekly, biweekly    | ``YYYY-Www``   | ``2024-W10``   |
| monthly             | ``YYYY-MM``    | ``2024-03``    |
| yearly              | ``YYYY``       | ``2024``       |

Weeks are ISO weeks starting on Monday, keyed by ISO year. Biweekly tasks key
by single week; the two-week cadence is applied by the streak and completion
rules. ``never`` tasks have no period keys.
"""

import re
from datetime import date, datetime, timedelta

from pairplan.core.clock import local_date
from pairplan.core.errors import InvalidFrequencyError
from pairplan.domain.task import RepeatFrequency


_WEEK_KEY = re.compile(r"^(\d{4})-W(\d{2})$")
_MONTH_KEY = re.compile(r"^(\d{4})-(\d{2})$")
_YEAR_KEY = re.compile(r"^(\d{4})$")


def _require_periodic(frequency: RepeatFrequency, operation: str) -> None:
    if frequency == RepeatFrequency.NEVER:
        raise InvalidFrequencyError(frequency, operation)


def period_start(instant: datetime | date, frequency: RepeatFrequency) -> date:
    """First calendar day of the period containing ``instant``."""
    _require_periodic(frequency, "period_start")
    day = local_date(instant)

    match frequency:
        case RepeatFrequency.DAILY | RepeatFrequency.FOREVER:
            return day
        case RepeatFrequency.WEEKLY | RepeatFrequency.BIWEEKLY:
            return day - timedelta(days=day.isoweekday() - 1)
        case RepeatFrequency.MONTHLY:
            return day.replace(day=1)
        case RepeatFrequency.YEARLY:
            return day.replace(month=1, day=1)

    raise InvalidFrequencyError(frequency, "period_start")


def key_for(instant: datetime | date, frequency: RepeatFrequency) -> str:
    """Map an instant to the key of the period containing it.

    Datetimes are converted to the reference timezone before taking the
    calendar date, so the same instant always yields the same key.

    Raises:
        InvalidFrequencyError: for ``never`` tasks, which have no periods
    """
    _require_periodic(frequency, "key_for")
    day = local_date(instant)

    match frequency:
        case RepeatFrequency.DAILY | RepeatFrequency.FOREVER:
            return day.isoformat()
        case RepeatFrequency.WEEKLY | RepeatFrequency.BIWEEKLY:
            iso_year, iso_week, _ = day.isocalendar()
            return f"{iso_year:04d}-W{iso_week:02d}"
        case RepeatFrequency.MONTHLY:
            return f"{day.year:04d}-{day.month:02d}"
        case RepeatFrequency.YEARLY:
            return f"{day.year:04d}"

    raise InvalidFrequencyError(frequency, "key_for")


def parse_key(key: str, frequency: RepeatFrequency) -> date | None:
    """First day of the period a key names, or None if the key has another shape."""
    _require_periodic(frequency, "parse_key")

    try:
        match frequency:
            case RepeatFrequency.DAILY | RepeatFrequency.FOREVER:
                return date.fromisoformat(key) if len(key) == 10 else None  # noqa: PLR2004
            case RepeatFrequency.WEEKLY | RepeatFrequency.BIWEEKLY:
                if m := _WEEK_KEY.match(key):
                    return date.fromisocalendar(int(m.group(1)), int(m.group(2)), 1)
            case RepeatFrequency.MONTHLY:
                if m := _MONTH_KEY.match(key):
                    return date(int(m.group(1)), int(m.group(2)), 1)
            case RepeatFrequency.YEARLY:
                if m := _YEAR_KEY.match(key):
                    return date(int(m.group(1)), 1, 1)
    except ValueError:
        return None

    return None


def previous_period(start: date, frequency: RepeatFrequency) -> date:
    """First day of the period immediately before the one starting at ``start``."""
    _require_periodic(frequency, "previous_period")
    return period_start(start - timedelta(days=1), frequency)


def period_keys(start: date, end: date, frequency: RepeatFrequency) -> list[str]:
    """Keys of every period overlapping ``[start, end]``, oldest first."""
    _require_periodic(frequency, "period_keys")
    keys: list[str] = []
    cursor = period_start(end, frequency)
    floor = period_start(start, frequency)
    while cursor >= floor:
        keys.append(key_for(cursor, frequency))
        cursor = previous_period(cursor, frequency)
    return keys[::-1]
