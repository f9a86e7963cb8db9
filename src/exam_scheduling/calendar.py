"""Layer 1: AvailabilityCalendar, a teacher's weekly pattern plus date exceptions."""

from __future__ import annotations

from datetime import date
from typing import Iterable

from exam_scheduling.resolution import overlaps, to_hhmm, to_minutes
from exam_scheduling.types import (
    WEEKDAY_NAMES,
    AvailabilityException,
    AvailabilityResult,
    Reason,
    RecurringAvailability,
    TeacherProfile,
)

Window = tuple[int, int]


def _subtract(segment: Window, cuts: Iterable[Window]) -> list[Window]:
    """Parts of segment not covered by any cut. Half-open minute intervals."""
    remaining = [segment]
    for cut_start, cut_end in sorted(cuts):
        next_remaining: list[Window] = []
        for start, end in remaining:
            if not overlaps(start, end, cut_start, cut_end):
                next_remaining.append((start, end))
                continue
            if start < cut_start:
                next_remaining.append((start, cut_start))
            if cut_end < end:
                next_remaining.append((cut_end, end))
        remaining = next_remaining
    return remaining


def _merge(windows: Iterable[Window]) -> list[Window]:
    """Union of windows as sorted, disjoint, non-touching intervals."""
    merged: list[Window] = []
    for start, end in sorted(windows):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


class AvailabilityCalendar:
    """Horizon-free availability view of one teacher.

    Rules define recurring weekly windows. Exceptions override specific dates
    for the part of the day they cover and nowhere else. A blocking exception
    wins over an opening one on the same minutes.
    """

    def __init__(
        self,
        teacher_id: str,
        recurring: Iterable[RecurringAvailability],
        exceptions: Iterable[AvailabilityException],
    ) -> None:
        self.teacher_id = teacher_id

        # Parse rules: weekday int -> sorted list of (start, end) minutes
        self._rules: dict[int, list[Window]] = {}
        for window in recurring:
            self._rules.setdefault(window.day_of_week, []).append(
                (to_minutes(window.start), to_minutes(window.end))
            )
        for periods in self._rules.values():
            periods.sort()

        self._exceptions: dict[date, list[AvailabilityException]] = {}
        for entry in exceptions:
            self._exceptions.setdefault(entry.date, []).append(entry)

    @classmethod
    def from_profile(cls, profile: TeacherProfile) -> AvailabilityCalendar:
        return cls(profile.teacher_id, profile.recurring, profile.exceptions)

    @property
    def has_pattern(self) -> bool:
        return bool(self._rules)

    def windows_for_weekday(self, weekday: int) -> list[Window]:
        return list(self._rules.get(weekday, []))

    def exceptions_on(self, d: date) -> list[AvailabilityException]:
        return list(self._exceptions.get(d, []))

    def periods_for_date(self, d: date) -> list[tuple[str, str]]:
        """Effective open periods for a date as sorted ('HH:MM', 'HH:MM') pairs.

        Weekly windows plus opening exceptions, minus blocking exceptions.
        Half-open intervals: [start, end).
        """
        entries = self.exceptions_on(d)
        opened = self.windows_for_weekday(d.weekday())
        opened += [
            (to_minutes(e.start), to_minutes(e.end)) for e in entries if e.is_available
        ]
        blocked = [
            (to_minutes(e.start), to_minutes(e.end)) for e in entries if not e.is_available
        ]
        periods: list[Window] = []
        for window in _merge(opened):
            periods.extend(_subtract(window, blocked))
        return [(to_hhmm(s), to_hhmm(e)) for s, e in periods]

    def resolve(self, d: date, start_minute: int, end_minute: int) -> AvailabilityResult:
        """Resolve the exception and pattern rules for [start_minute, end_minute).

        1. An overlapping exception is authoritative for the minutes it covers.
        2. Minutes not covered by an opening exception must each fall in a
           single weekly window for the weekday; partial containment fails.
        """
        relevant = [
            e for e in self.exceptions_on(d)
            if overlaps(start_minute, end_minute, to_minutes(e.start), to_minutes(e.end))
        ]

        blocking = [e for e in relevant if not e.is_available]
        if blocking:
            entry = blocking[0]
            note = f": {entry.reason}" if entry.reason else ""
            return AvailabilityResult(
                available=False,
                reason=Reason.EXCEPTION_BLOCK,
                message=(
                    f"Unavailable on {d.isoformat()} from {entry.start} "
                    f"to {entry.end}{note}"
                ),
            )

        opening = [(to_minutes(e.start), to_minutes(e.end)) for e in relevant]
        uncovered = _subtract((start_minute, end_minute), opening)
        if not uncovered:
            return AvailabilityResult(True, None, "Available (exception)")

        day_name = WEEKDAY_NAMES[d.weekday()]
        windows = self.windows_for_weekday(d.weekday())
        for seg_start, seg_end in uncovered:
            if any(w_start <= seg_start and seg_end <= w_end for w_start, w_end in windows):
                continue
            if not self.has_pattern:
                message = "Has not set any availability"
            elif not windows:
                message = f"Not available on {day_name}s"
            else:
                spans = ", ".join(f"{to_hhmm(s)} to {to_hhmm(e)}" for s, e in windows)
                message = (
                    f"Only available from {spans} on {day_name}s. "
                    f"Session time: {to_hhmm(start_minute)} to {to_hhmm(end_minute)}"
                )
            return AvailabilityResult(False, Reason.OUTSIDE_PATTERN, message)

        return AvailabilityResult(True, None, "Available")
