"""AvailabilityResolver: can this teacher or classroom take this interval?

Teachers are resolved in three steps, first failure wins:

1. a date exception overlapping the interval is authoritative where it applies,
2. otherwise the interval must sit inside the weekly pattern for that weekday,
3. in every case the teacher must not already supervise an overlapping,
   non-cancelled session.

Classrooms have no pattern; only step 3 applies to them.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import date, timedelta
from typing import Callable, Iterable, TypeVar

from exam_scheduling.calendar import AvailabilityCalendar
from exam_scheduling.config import DEFAULT_SETTINGS, SchedulerSettings
from exam_scheduling.occupancy import SessionReader
from exam_scheduling.resolution import parse_date, to_minutes
from exam_scheduling.types import (
    AvailabilityResult,
    Classroom,
    ClassroomAvailability,
    Reason,
    Session,
    TeacherAvailability,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def _interval_minutes(start: str, end: str) -> tuple[int, int]:
    start_minute, end_minute = to_minutes(start), to_minutes(end)
    if start_minute >= end_minute:
        raise ValueError(f"start {start} must be before end {end}")
    return start_minute, end_minute


class AvailabilityResolver:
    """Pure resolution over a SessionReader.

    Repeated calls with unchanged store state return identical results.
    Fan-out over many teachers or classrooms uses one bounded thread pool,
    created on first use unless an executor is passed in; results are
    merged back in input order.
    """

    def __init__(
        self,
        store: SessionReader,
        settings: SchedulerSettings = DEFAULT_SETTINGS,
        executor: Executor | None = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self._executor = executor
        self._executor_guard = threading.Lock()

    def _pool(self) -> Executor:
        with self._executor_guard:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.settings.max_workers,
                    thread_name_prefix="availability",
                )
            return self._executor

    def _fan_out(self, fn: Callable[[T], R], items: list[T]) -> list[R]:
        if min(self.settings.max_workers, len(items)) <= 1:
            return [fn(item) for item in items]
        return list(self._pool().map(fn, items))

    def _overlapping(
        self,
        sessions: Iterable[Session],
        day: date,
        start_minute: int,
        end_minute: int,
        exclude_session_id: str | None,
    ) -> list[Session]:
        return [
            s for s in sessions
            if s.session_id != exclude_session_id
            and s.blocks(day, start_minute, end_minute)
        ]

    # ------------------------------------------------------------------
    # Teachers
    # ------------------------------------------------------------------

    def calendar_for(self, teacher_id: str) -> AvailabilityCalendar | None:
        profile = self.store.get_teacher(teacher_id)
        if profile is None:
            return None
        return AvailabilityCalendar.from_profile(profile)

    def is_available(
        self,
        person_id: str,
        day: date | str,
        start: str,
        end: str,
        exclude_session_id: str | None = None,
    ) -> AvailabilityResult:
        """Resolve one teacher for [start, end) on day.

        Raises ValueError for malformed times or an empty interval.
        """
        day = parse_date(day)
        start_minute, end_minute = _interval_minutes(start, end)

        calendar = self.calendar_for(person_id)
        if calendar is None:
            return AvailabilityResult(False, Reason.UNKNOWN_PERSON, "Teacher not found")

        verdict = calendar.resolve(day, start_minute, end_minute)
        if not verdict.available:
            logger.debug(
                "Teacher %s unavailable on %s %s-%s: %s",
                person_id, day, start, end, verdict.reason.value,
            )
            return verdict

        clashes = self._overlapping(
            self.store.sessions_for_supervisor(person_id, day),
            day, start_minute, end_minute, exclude_session_id,
        )
        if clashes:
            first = clashes[0]
            return AvailabilityResult(
                available=False,
                reason=Reason.DOUBLE_BOOKED,
                message=(
                    f"Already assigned to session {first.session_id} "
                    f"from {first.start} to {first.end}"
                ),
            )
        return verdict

    def check_supervisors(
        self,
        teacher_ids: Iterable[str],
        day: date | str,
        start: str,
        end: str,
        exclude_session_id: str | None = None,
    ) -> dict[str, AvailabilityResult]:
        """is_available for many teachers, keyed by id in input order."""
        ids = list(dict.fromkeys(teacher_ids))
        results = self._fan_out(
            lambda tid: self.is_available(tid, day, start, end, exclude_session_id),
            ids,
        )
        return dict(zip(ids, results))

    def _week_bounds(self, day: date) -> tuple[date, date]:
        first = day - timedelta(days=(day.weekday() - self.settings.week_starts_on) % 7)
        return first, first + timedelta(days=6)

    def get_available_teachers(
        self,
        day: date | str,
        start: str,
        end: str,
        exclude_session_id: str | None = None,
    ) -> list[TeacherAvailability]:
        """Every known teacher with availability and current supervision load.

        Session counts skip cancelled sessions and the session being edited.
        """
        day = parse_date(day)
        _interval_minutes(start, end)
        week_first, week_last = self._week_bounds(day)

        def describe(teacher) -> TeacherAvailability:
            verdict = self.is_available(
                teacher.teacher_id, day, start, end, exclude_session_id
            )
            weekly = [
                s for s in self.store.sessions_for_supervisor(
                    teacher.teacher_id, week_first, week_last
                )
                if not s.is_cancelled and s.session_id != exclude_session_id
            ]
            return TeacherAvailability(
                teacher_id=teacher.teacher_id,
                name=teacher.name,
                is_available=verdict.available,
                reason=verdict.reason,
                message=verdict.message,
                daily_sessions=sum(1 for s in weekly if s.date == day),
                weekly_sessions=len(weekly),
            )

        return self._fan_out(describe, self.store.list_teachers())

    # ------------------------------------------------------------------
    # Classrooms
    # ------------------------------------------------------------------

    def is_classroom_available(
        self,
        classroom_id: str,
        day: date | str,
        start: str,
        end: str,
        exclude_session_id: str | None = None,
    ) -> ClassroomAvailability:
        day = parse_date(day)
        start_minute, end_minute = _interval_minutes(start, end)
        clashes = self._overlapping(
            self.store.sessions_for_classroom(classroom_id, day),
            day, start_minute, end_minute, exclude_session_id,
        )
        if clashes:
            first = clashes[0]
            return ClassroomAvailability(
                classroom_id=classroom_id,
                is_available=False,
                reason=Reason.CLASSROOM_BOOKED,
                message=(
                    f"Classroom is already booked for another session "
                    f"from {first.start} to {first.end}"
                ),
            )
        return ClassroomAvailability(classroom_id, True)

    def get_available_classrooms(
        self,
        classrooms: Iterable[Classroom | str],
        day: date | str,
        start: str,
        end: str,
        exclude_session_id: str | None = None,
    ) -> list[ClassroomAvailability]:
        """Free/busy for each classroom, in the order given."""
        ids = [c if isinstance(c, str) else c.classroom_id for c in classrooms]
        return self._fan_out(
            lambda cid: self.is_classroom_available(cid, day, start, end, exclude_session_id),
            ids,
        )
