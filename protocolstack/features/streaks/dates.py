"""Calendar-date helpers for streaks. Dates are plain YYYY-MM-DD strings."""

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def resolve_today(tz_name: str, now: Optional[datetime] = None) -> str:
    """
    Today's calendar date as seen in `tz_name`, formatted YYYY-MM-DD.

    `now` pins the clock for tests; a naive value is read as UTC.
    The zone is not validated here (see validators.resolve_timezone).
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).date().isoformat()


def days_between(date_a: str, date_b: str) -> int:
    """Whole calendar days from `date_b` to `date_a` (a - b)."""
    return (date.fromisoformat(date_a) - date.fromisoformat(date_b)).days
