"""ConflictValidator: classroom and group overlap checks for a candidate session."""

from __future__ import annotations

from exam_scheduling.occupancy import SessionReader
from exam_scheduling.types import Candidate, ConflictKind, ConflictResult


class ConflictValidator:
    """Detects interval overlaps against committed, non-cancelled sessions.

    Read-only: validate() never mutates the store, so any number of
    validations may run concurrently.
    """

    def __init__(self, store: SessionReader) -> None:
        self.store = store

    def classroom_conflicts(
        self, candidate: Candidate, exclude_session_id: str | None = None
    ) -> list[str]:
        """Ids of sessions holding the candidate's classroom over its interval."""
        interval = candidate.interval
        return [
            s.session_id
            for s in self.store.sessions_for_classroom(candidate.classroom, interval.date)
            if s.session_id != exclude_session_id
            and s.blocks(interval.date, interval.start_minute, interval.end_minute)
        ]

    def group_conflicts(
        self, candidate: Candidate, exclude_session_id: str | None = None
    ) -> list[tuple[str, str]]:
        """(session id, group id) pairs for every clashing group, in candidate order."""
        interval = candidate.interval
        clashing = [
            s
            for s in self.store.sessions_for_groups(candidate.groups, interval.date)
            if s.session_id != exclude_session_id
            and s.blocks(interval.date, interval.start_minute, interval.end_minute)
        ]
        return [
            (s.session_id, group)
            for group in candidate.groups
            for s in clashing
            if group in s.groups
        ]

    def validate(
        self, candidate: Candidate, exclude_session_id: str | None = None
    ) -> ConflictResult:
        """Classify the candidate. Classroom conflicts are reported first.

        Both lists are always filled so callers can explain every clash.
        """
        rooms = self.classroom_conflicts(candidate, exclude_session_id)
        groups = self.group_conflicts(candidate, exclude_session_id)
        if rooms:
            kind = ConflictKind.CLASSROOM
        elif groups:
            kind = ConflictKind.GROUP
        else:
            kind = ConflictKind.NONE
        return ConflictResult(
            conflict=kind,
            classroom_sessions=tuple(rooms),
            group_conflicts=tuple(groups),
        )
