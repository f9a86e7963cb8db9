"""Layer 2: committed-session occupancy.

Defines the store contracts the core reads and writes through, an in-memory
ledger implementing them, and the working set the generator stages into.
"""

from __future__ import annotations

import itertools
import threading
from datetime import date
from typing import Iterable, Protocol

from exam_scheduling.types import (
    Classroom,
    Group,
    Requirement,
    Session,
    TeacherProfile,
)


class SessionReader(Protocol):
    """Read side of the availability store. Results include cancelled sessions."""

    def get_teacher(self, teacher_id: str) -> TeacherProfile | None: ...

    def list_teachers(self) -> list[TeacherProfile]: ...

    def get_classroom(self, classroom_id: str) -> Classroom | None: ...

    def list_classrooms(self) -> list[Classroom]: ...

    def list_requirements(self) -> list[Requirement]: ...

    def get_session(self, session_id: str) -> Session | None: ...

    def list_sessions(self) -> list[Session]: ...

    def sessions_for_classroom(self, classroom_id: str, day: date) -> list[Session]: ...

    def sessions_for_groups(self, group_ids: Iterable[str], day: date) -> list[Session]: ...

    def sessions_for_supervisor(
        self, teacher_id: str, first_day: date, last_day: date | None = None
    ) -> list[Session]: ...


class AvailabilityStore(SessionReader, Protocol):
    """Read/write contract. Writes replace whole sessions."""

    def new_session_id(self) -> str: ...

    def add_session(self, session: Session) -> None: ...

    def replace_session(self, session: Session) -> None: ...

    def remove_session(self, session_id: str) -> Session | None: ...


def _ordered(sessions: Iterable[Session]) -> list[Session]:
    return sorted(sessions, key=lambda s: (s.date, s.start, s.session_id))


class OccupancyLedger:
    """In-memory AvailabilityStore. Safe to share between threads.

    Sessions are indexed by (classroom, date), (group, date) and
    (supervisor, date) so each availability question is one lookup.
    """

    def __init__(
        self,
        teachers: Iterable[TeacherProfile] = (),
        classrooms: Iterable[Classroom] = (),
        groups: Iterable[Group] = (),
        requirements: Iterable[Requirement] = (),
        sessions: Iterable[Session] = (),
    ) -> None:
        self._lock = threading.RLock()
        # Dicts keep declaration order, which the generator relies on.
        self._teachers = {t.teacher_id: t for t in teachers}
        self._classrooms = {c.classroom_id: c for c in classrooms}
        self._groups = {g.group_id: g for g in groups}
        self._requirements = list(requirements)
        self._sessions: dict[str, Session] = {}
        self._by_classroom: dict[tuple[str, date], set[str]] = {}
        self._by_group: dict[tuple[str, date], set[str]] = {}
        self._by_supervisor: dict[tuple[str, date], set[str]] = {}
        self._ids = itertools.count(1)
        for session in sessions:
            self.add_session(session)

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    def get_teacher(self, teacher_id: str) -> TeacherProfile | None:
        return self._teachers.get(teacher_id)

    def list_teachers(self) -> list[TeacherProfile]:
        return list(self._teachers.values())

    def get_classroom(self, classroom_id: str) -> Classroom | None:
        return self._classrooms.get(classroom_id)

    def list_classrooms(self) -> list[Classroom]:
        return list(self._classrooms.values())

    def list_groups(self) -> list[Group]:
        return list(self._groups.values())

    def list_requirements(self) -> list[Requirement]:
        return list(self._requirements)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[Session]:
        with self._lock:
            return _ordered(self._sessions.values())

    def _lookup(self, index: dict[tuple[str, date], set[str]], keys: Iterable[tuple[str, date]]) -> list[Session]:
        with self._lock:
            ids: set[str] = set()
            for key in keys:
                ids |= index.get(key, set())
            return _ordered(self._sessions[i] for i in ids)

    def sessions_for_classroom(self, classroom_id: str, day: date) -> list[Session]:
        return self._lookup(self._by_classroom, [(classroom_id, day)])

    def sessions_for_groups(self, group_ids: Iterable[str], day: date) -> list[Session]:
        return self._lookup(self._by_group, [(g, day) for g in group_ids])

    def sessions_for_supervisor(
        self, teacher_id: str, first_day: date, last_day: date | None = None
    ) -> list[Session]:
        last_day = first_day if last_day is None else last_day
        with self._lock:
            keys = [
                key for key in self._by_supervisor
                if key[0] == teacher_id and first_day <= key[1] <= last_day
            ]
            return self._lookup(self._by_supervisor, keys)

    def new_session_id(self) -> str:
        with self._lock:
            while True:
                candidate = f"S{next(self._ids):04d}"
                if candidate not in self._sessions:
                    return candidate

    def _index(self, session: Session, add: bool) -> None:
        keys = (
            [(self._by_classroom, (session.classroom, session.date))]
            + [(self._by_group, (g, session.date)) for g in session.groups]
            + [(self._by_supervisor, (t, session.date)) for t in session.supervisors]
        )
        for index, key in keys:
            if add:
                index.setdefault(key, set()).add(session.session_id)
            else:
                bucket = index.get(key)
                if bucket is not None:
                    bucket.discard(session.session_id)
                    if not bucket:
                        del index[key]

    def add_session(self, session: Session) -> None:
        """Commit a new session. Raises ValueError on a duplicate id."""
        with self._lock:
            if session.session_id in self._sessions:
                raise ValueError(f"Session {session.session_id!r} already exists")
            self._sessions[session.session_id] = session
            self._index(session, add=True)

    def replace_session(self, session: Session) -> None:
        """Swap in a new version of an existing session. Raises KeyError."""
        with self._lock:
            previous = self._sessions[session.session_id]
            self._index(previous, add=False)
            self._sessions[session.session_id] = session
            self._index(session, add=True)

    def remove_session(self, session_id: str) -> Session | None:
        with self._lock:
            previous = self._sessions.pop(session_id, None)
            if previous is not None:
                self._index(previous, add=False)
            return previous


class WorkingSet:
    """Read view of a store plus sessions staged during one generation run.

    Staged sessions are conflict sources for every later query, so two
    placements made in the same run can never collide. Nothing is written
    to the underlying store.
    """

    def __init__(self, base: SessionReader) -> None:
        self._base = base
        self._staged: list[Session] = []

    def stage(self, session: Session) -> None:
        self._staged.append(session)

    def get_teacher(self, teacher_id: str) -> TeacherProfile | None:
        return self._base.get_teacher(teacher_id)

    def list_teachers(self) -> list[TeacherProfile]:
        return self._base.list_teachers()

    def get_classroom(self, classroom_id: str) -> Classroom | None:
        return self._base.get_classroom(classroom_id)

    def list_classrooms(self) -> list[Classroom]:
        return self._base.list_classrooms()

    def list_requirements(self) -> list[Requirement]:
        return self._base.list_requirements()

    def get_session(self, session_id: str) -> Session | None:
        for session in self._staged:
            if session.session_id == session_id:
                return session
        return self._base.get_session(session_id)

    def list_sessions(self) -> list[Session]:
        return _ordered(self._base.list_sessions() + self._staged)

    def sessions_for_classroom(self, classroom_id: str, day: date) -> list[Session]:
        staged = [
            s for s in self._staged if s.classroom == classroom_id and s.date == day
        ]
        return _ordered(self._base.sessions_for_classroom(classroom_id, day) + staged)

    def sessions_for_groups(self, group_ids: Iterable[str], day: date) -> list[Session]:
        wanted = set(group_ids)
        staged = [
            s for s in self._staged if s.date == day and wanted.intersection(s.groups)
        ]
        return _ordered(self._base.sessions_for_groups(wanted, day) + staged)

    def sessions_for_supervisor(
        self, teacher_id: str, first_day: date, last_day: date | None = None
    ) -> list[Session]:
        last_day = first_day if last_day is None else last_day
        staged = [
            s for s in self._staged
            if teacher_id in s.supervisors and first_day <= s.date <= last_day
        ]
        return _ordered(
            self._base.sessions_for_supervisor(teacher_id, first_day, last_day) + staged
        )
