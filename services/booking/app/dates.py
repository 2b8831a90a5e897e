from __future__ import annotations

from collections.abc import Iterator
from datetime import date, datetime, timedelta


def as_day(value: date | datetime | str) -> date:
    """
    Normalize a calendar value to a day.

    Datetimes keep their own calendar day (no timezone conversion), and ISO strings are
    cut to their `YYYY-MM-DD` prefix, so "2025-01-04T23:30:00-03:00" is the 4th.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def iter_nights(check_in: date, check_out: date) -> Iterator[date]:
    # The departure day is never yielded.
    d = check_in
    while d < check_out:
        yield d
        d += timedelta(days=1)
