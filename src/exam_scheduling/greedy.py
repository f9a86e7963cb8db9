"""ScheduleGenerator: greedy earliest-fit batch placement of exam requirements.

Requirements are placed one at a time in a stable order. Each placement is
staged into a working set immediately, so later requirements see it as a
conflict source. Earlier placements are never revisited; there is no
backtracking and no load balancing.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from typing import Callable, Iterable

from exam_scheduling.availability import AvailabilityResolver
from exam_scheduling.config import DEFAULT_SETTINGS, SchedulerSettings
from exam_scheduling.conflicts import ConflictValidator
from exam_scheduling.occupancy import SessionReader, WorkingSet
from exam_scheduling.resolution import parse_date
from exam_scheduling.types import (
    Candidate,
    Classroom,
    GenerationResult,
    Requirement,
    Session,
    Slot,
    UnscheduledReason,
    UnscheduledRequirement,
)

logger = logging.getLogger(__name__)

_STAGES = list(UnscheduledReason)


def _further(a: UnscheduledReason, b: UnscheduledReason) -> UnscheduledReason:
    return a if _STAGES.index(a) >= _STAGES.index(b) else b


def candidate_slots(
    start_date: date,
    end_date: date,
    daily_slots: Iterable[Slot],
    skip_weekends: bool = False,
) -> list[tuple[date, Slot]]:
    """Every (date, slot) pair in [start_date, end_date], chronologically."""
    template = sorted(set(daily_slots), key=lambda s: (s.start, s.end))
    grid: list[tuple[date, Slot]] = []
    current = start_date
    while current <= end_date:
        if not (skip_weekends and current.weekday() >= 5):
            grid.extend((current, slot) for slot in template)
        current += timedelta(days=1)
    return grid


class ScheduleGenerator:
    """Deterministic: the same requirements over the same store state always
    produce the same placements, in the same order, with the same ids.
    """

    def __init__(
        self,
        store: SessionReader,
        settings: SchedulerSettings = DEFAULT_SETTINGS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.settings = settings
        self.clock = clock

    def generate(
        self,
        start_date: date | str,
        end_date: date | str,
        daily_slots: Iterable[Slot],
        requirements: Iterable[Requirement] | None = None,
    ) -> GenerationResult:
        """Place every requirement at its earliest legal (date, slot).

        Requirements default to the store's own enumeration. Unplaceable
        requirements are reported with the furthest stage any candidate
        reached; generation carries on with the rest. When the configured
        deadline passes, before a requirement or between two of its
        candidates, every requirement not yet placed is reported as
        `deadline` and the partial result is returned.
        """
        started = self.clock()
        first, last = parse_date(start_date), parse_date(end_date)
        if requirements is None:
            requirements = self.store.list_requirements()
        ordered = sorted(requirements, key=lambda r: r.sort_key)

        deadline = self.settings.generation_deadline

        def expired() -> bool:
            return deadline is not None and self.clock() - started >= deadline

        working = WorkingSet(self.store)
        classrooms = sorted(working.list_classrooms(), key=lambda c: c.classroom_id)
        teachers = [t.teacher_id for t in working.list_teachers()]
        grid = candidate_slots(first, last, daily_slots, self.settings.skip_weekends)

        result = GenerationResult()
        with ThreadPoolExecutor(
            max_workers=self.settings.max_workers, thread_name_prefix="generation"
        ) as pool:
            validator = ConflictValidator(working)
            resolver = AvailabilityResolver(working, self.settings, executor=pool)
            for index, requirement in enumerate(ordered):
                session, reason = None, UnscheduledReason.DEADLINE
                if not expired():
                    session, reason = self._place(
                        requirement, grid, classrooms, teachers, validator, resolver, expired
                    )
                if session is None and reason is UnscheduledReason.DEADLINE:
                    result.deadline_hit = True
                    result.unscheduled.extend(
                        UnscheduledRequirement(r, UnscheduledReason.DEADLINE)
                        for r in ordered[index:]
                    )
                    logger.warning(
                        "Generation deadline of %.1fs reached with %d requirement(s) left",
                        deadline, len(ordered) - index,
                    )
                    break
                if session is None:
                    logger.debug("Could not place %s: %s", requirement.requirement_id, reason.value)
                    result.unscheduled.append(UnscheduledRequirement(requirement, reason))
                    continue
                working.stage(session)
                result.scheduled.append(session)
                result.sources[session.session_id] = requirement

        logger.info(
            "Generated %d session(s) for %s..%s, %d unscheduled, in %.2fs",
            result.count, first, last, len(result.unscheduled), self.clock() - started,
        )
        return result

    def _place(
        self,
        requirement: Requirement,
        grid: list[tuple[date, Slot]],
        classrooms: list[Classroom],
        teachers: list[str],
        validator: ConflictValidator,
        resolver: AvailabilityResolver,
        expired: Callable[[], bool],
    ) -> tuple[Session | None, UnscheduledReason]:
        if not grid:
            return None, UnscheduledReason.NO_SLOTS

        rooms = [c for c in classrooms if c.capacity >= requirement.headcount]
        if not rooms:
            return None, UnscheduledReason.NO_CLASSROOM_CAPACITY

        needed = requirement.supervisors_needed
        if needed is None:
            needed = self.settings.supervisors_per_session
        pool = list(requirement.preferred_supervisors) or teachers

        furthest = UnscheduledReason.GROUP_CONFLICT
        for day, slot in grid:
            if expired():
                return None, UnscheduledReason.DEADLINE
            probe = Candidate(rooms[0].classroom_id, requirement.groups, day, slot.start, slot.end)
            if validator.group_conflicts(probe):
                continue

            free_rooms = [
                verdict.classroom_id
                for verdict in resolver.get_available_classrooms(
                    rooms, day, slot.start, slot.end
                )
                if verdict.is_available
            ]
            if not free_rooms:
                furthest = _further(furthest, UnscheduledReason.CLASSROOM_CONFLICT)
                continue

            chosen: list[str] = []
            if needed:
                verdicts = resolver.check_supervisors(pool, day, slot.start, slot.end)
                chosen = [tid for tid, verdict in verdicts.items() if verdict.available][:needed]
            if len(chosen) < needed:
                furthest = _further(furthest, UnscheduledReason.INSUFFICIENT_SUPERVISORS)
                continue

            session = Session(
                session_id=f"{requirement.requirement_id}@{day.isoformat()}T{slot.start}",
                subject=requirement.subject,
                date=day,
                start=slot.start,
                end=slot.end,
                classroom=free_rooms[0],
                groups=requirement.groups,
                supervisors=tuple(chosen),
                exam_type=requirement.exam_type,
                sections=requirement.sections,
            )
            return session, furthest

        return None, furthest
