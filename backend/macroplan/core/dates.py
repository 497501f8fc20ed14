"""Local Calendar Dates - Pure helpers for week arithmetic.

Plans are keyed and matched by local calendar dates built from
year/month/day components. Timestamps are converted to the local date
before comparison so a UTC offset never shifts an entry onto another day.
"""

from datetime import date, datetime, timedelta


WEEK_KEY_PREFIX = "weekPlan_"


def format_local_date(d: date) -> str:
    """Format a date as YYYY-MM-DD from its components."""
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def parse_local_date(value: str) -> date:
    """Parse YYYY-MM-DD into a date.

    Raises:
        ValueError: If the string is not a valid calendar date
    """
    parts = value.strip().split("-")
    if len(parts) != 3:
        raise ValueError(f"Invalid date: {value!r}. Use YYYY-MM-DD.")
    year, month, day = (int(p) for p in parts)
    return date(year, month, day)


def to_local_date(value: date | datetime | str) -> date:
    """Normalize a date, timestamp or date string to a local calendar date.

    Aware timestamps are converted to the local timezone first; naive ones are
    taken as already local. Strings longer than a date are read as ISO
    timestamps.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return date(value.year, value.month, value.day)
    if isinstance(value, date):
        return value
    if len(value) > 10:
        return to_local_date(datetime.fromisoformat(value.replace("Z", "+00:00")))
    return parse_local_date(value)


def week_start(d: date) -> date:
    """Monday of the week containing d."""
    return d - timedelta(days=d.weekday())


def week_dates(start: date) -> list[date]:
    """The seven consecutive dates beginning at start."""
    return [start + timedelta(days=i) for i in range(7)]


def week_key(d: date) -> str:
    """Cache key for the week containing d."""
    return f"{WEEK_KEY_PREFIX}{format_local_date(week_start(d))}"


def shift_week(d: date, weeks: int) -> date:
    """Move a date by whole weeks."""
    return d + timedelta(days=7 * weeks)


def is_future(d: date, today: date) -> bool:
    """True if d is strictly after today."""
    return d > today
