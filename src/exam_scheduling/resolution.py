"""Boundary: clock time ↔ integer minute-of-day conversion."""

from __future__ import annotations

import re
from datetime import date, datetime, time

MINUTES_PER_DAY = 24 * 60

_HHMM = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


def reject_aware(dt: datetime, name: str) -> None:
    """Reject timezone-aware datetimes."""
    if dt.tzinfo is not None:
        raise TypeError(
            f"{name} must be a naive datetime (no tzinfo), "
            f"got tzinfo={dt.tzinfo!r}. "
            f"All datetimes are assumed to be in campus local time."
        )


def is_valid_time(value: object) -> bool:
    """True if value is an 'H:MM' or 'HH:MM' string within one day."""
    return isinstance(value, str) and _HHMM.match(value) is not None


def to_minutes(value: str) -> int:
    """Convert 'HH:MM' to minutes since midnight.

    Raises ValueError for anything outside 00:00..23:59.
    """
    match = _HHMM.match(value) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def to_hhmm(minutes: int) -> str:
    """Convert minutes since midnight to zero-padded 'HH:MM'.

    Values outside one day wrap around midnight.
    """
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize(value: str) -> str:
    """'9:05' -> '09:05'. Zero-padded strings compare correctly as text."""
    return to_hhmm(to_minutes(value))


def add_duration(start: str, duration_minutes: int) -> str:
    """End time for a start time plus a duration, wrapping within the day."""
    return to_hhmm(to_minutes(start) + duration_minutes)


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open interval overlap: [a_start, a_end) ∩ [b_start, b_end) ≠ ∅."""
    return a_start < b_end and b_start < a_end


def combine(d: date, hhmm: str) -> datetime:
    """Naive datetime for a calendar date and a clock time."""
    return datetime.combine(d, time.fromisoformat(normalize(hhmm)))


def parse_date(value: date | str) -> date:
    """Accept a date or an ISO 'YYYY-MM-DD' string (a trailing time part is ignored)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"invalid date {value!r}, expected YYYY-MM-DD")
    return date.fromisoformat(value[:10])
