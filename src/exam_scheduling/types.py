"""Shared types: sessions, availability rules, result values and errors."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from exam_scheduling.resolution import normalize, overlaps, parse_date, to_minutes

WEEKDAY_NAMES = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)


class LifecycleStatus(str, Enum):
    """Lifecycle phase. Only SCHEDULED and CANCELLED are ever persisted."""

    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ExamType(str, Enum):
    """Exam classification tag, independent of the lifecycle phase."""

    DEVOIR_SURVEILLE = "devoir_surveille"
    EXAMEN_TP = "examen_tp"
    EXAMEN_PRINCIPAL = "examen_principal"
    EXAMEN_RATTRAPAGE = "examen_rattrapage"


class ConflictKind(str, Enum):
    NONE = "none"
    CLASSROOM = "classroomConflict"
    GROUP = "groupConflict"


class Reason(str, Enum):
    """Machine-readable cause of an unavailable person or classroom."""

    EXCEPTION_BLOCK = "exception-block"
    OUTSIDE_PATTERN = "outside-pattern"
    DOUBLE_BOOKED = "double-booked"
    UNKNOWN_PERSON = "unknown-person"
    CLASSROOM_BOOKED = "classroom-booked"


class UnscheduledReason(str, Enum):
    """Why the generator could not place a requirement.

    Members are declared in the order the generator evaluates a candidate,
    so a later member means the requirement got closer to being placed.
    """

    NO_SLOTS = "no-slots"
    NO_CLASSROOM_CAPACITY = "no-classroom-capacity"
    GROUP_CONFLICT = "group-conflict"
    CLASSROOM_CONFLICT = "classroom-conflict"
    INSUFFICIENT_SUPERVISORS = "insufficient-supervisors"
    DEADLINE = "deadline"
    CONFLICT_AT_COMMIT = "conflict-at-commit"
    STORAGE_FAILURE = "storage-failure"


def _check_order(start: str, end: str) -> None:
    if to_minutes(start) >= to_minutes(end):
        raise ValueError(f"start {start} must be before end {end}")


def parse_weekday(value: int | str) -> int:
    """Weekday as 0-6 (Monday = 0). Accepts ints, digit strings or day names."""
    if isinstance(value, bool):
        raise ValueError(f"invalid weekday {value!r}")
    if isinstance(value, int):
        if 0 <= value <= 6:
            return value
        raise ValueError(f"invalid weekday {value} (must be 0-6)")
    text = str(value).strip()
    if text.isdigit():
        return parse_weekday(int(text))
    for index, name in enumerate(WEEKDAY_NAMES):
        if name.lower() == text.lower():
            return index
    raise ValueError(f"invalid weekday {value!r}")


# ---------------------------------------------------------------------------
# Time and availability rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeInterval:
    """Same-day half-open interval [start, end).

    Times are stored zero-padded, so text comparison matches clock order.
    """

    date: date
    start: str
    end: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", parse_date(self.date))
        object.__setattr__(self, "start", normalize(self.start))
        object.__setattr__(self, "end", normalize(self.end))
        _check_order(self.start, self.end)

    @property
    def start_minute(self) -> int:
        return to_minutes(self.start)

    @property
    def end_minute(self) -> int:
        return to_minutes(self.end)

    def overlaps(self, other: TimeInterval) -> bool:
        return self.date == other.date and overlaps(
            self.start_minute, self.end_minute,
            other.start_minute, other.end_minute,
        )


@dataclass(frozen=True)
class RecurringAvailability:
    """A standing weekly window during which a teacher can supervise."""

    day_of_week: int
    start: str
    end: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "day_of_week", parse_weekday(self.day_of_week))
        object.__setattr__(self, "start", normalize(self.start))
        object.__setattr__(self, "end", normalize(self.end))
        _check_order(self.start, self.end)

    @property
    def day_name(self) -> str:
        return WEEKDAY_NAMES[self.day_of_week]


@dataclass(frozen=True)
class AvailabilityException:
    """Date-specific override of the weekly pattern, in either direction."""

    date: date
    start: str
    end: str
    is_available: bool = False
    reason: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", parse_date(self.date))
        object.__setattr__(self, "start", normalize(self.start))
        object.__setattr__(self, "end", normalize(self.end))
        _check_order(self.start, self.end)


@dataclass(frozen=True)
class TeacherProfile:
    teacher_id: str
    name: str = ""
    department: str = ""
    recurring: tuple[RecurringAvailability, ...] = ()
    exceptions: tuple[AvailabilityException, ...] = ()


@dataclass(frozen=True)
class Classroom:
    classroom_id: str
    capacity: int = 0
    room_number: str = ""
    building: str = ""


@dataclass(frozen=True)
class Group:
    group_id: str
    name: str = ""
    size: int = 0
    section: str = ""


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Candidate:
    """The resource footprint of a proposed session."""

    classroom: str
    groups: tuple[str, ...]
    date: date
    start: str
    end: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "groups", tuple(self.groups))

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.date, self.start, self.end)


@dataclass(frozen=True)
class SessionDraft:
    """Validated field set for a session that has not been committed yet."""

    subject: str
    date: date
    start: str
    end: str
    classroom: str
    groups: tuple[str, ...]
    supervisors: tuple[str, ...] = ()
    status: LifecycleStatus = LifecycleStatus.SCHEDULED
    exam_type: ExamType | None = None
    sections: tuple[str, ...] = ()
    exam_duration: int | None = None
    notes: str = ""

    def __post_init__(self) -> None:
        # Builds the interval, which normalises and checks the times.
        interval = TimeInterval(self.date, self.start, self.end)
        object.__setattr__(self, "date", interval.date)
        object.__setattr__(self, "start", interval.start)
        object.__setattr__(self, "end", interval.end)
        for name in ("groups", "supervisors", "sections"):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        status = LifecycleStatus(self.status)
        if status in (LifecycleStatus.ONGOING, LifecycleStatus.COMPLETED):
            raise ValueError(f"status {status.value!r} is derived from time, not stored")
        object.__setattr__(self, "status", status)
        if self.exam_type is not None:
            object.__setattr__(self, "exam_type", ExamType(self.exam_type))

    @property
    def candidate(self) -> Candidate:
        return Candidate(self.classroom, self.groups, self.date, self.start, self.end)


@dataclass(frozen=True)
class Session(SessionDraft):
    """One committed exam occurrence. Replaced, never mutated, on update."""

    session_id: str = ""

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.date, self.start, self.end)

    @property
    def is_cancelled(self) -> bool:
        return self.status is LifecycleStatus.CANCELLED

    def blocks(self, day: date, start_minute: int, end_minute: int) -> bool:
        """True if this session holds its resources over the given interval."""
        if self.is_cancelled or self.date != day:
            return False
        return overlaps(
            to_minutes(self.start), to_minutes(self.end), start_minute, end_minute
        )


@dataclass(frozen=True)
class Slot:
    """One window of the daily slot template used by the generator."""

    start: str
    end: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", normalize(self.start))
        object.__setattr__(self, "end", normalize(self.end))
        _check_order(self.start, self.end)


@dataclass(frozen=True)
class Requirement:
    """A subject exam that one batch of groups has to sit."""

    requirement_id: str
    subject: str
    groups: tuple[str, ...]
    headcount: int = 0
    supervisors_needed: int | None = None
    preferred_supervisors: tuple[str, ...] = ()
    exam_type: ExamType | None = None
    sections: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "groups", tuple(self.groups))
        object.__setattr__(self, "preferred_supervisors", tuple(self.preferred_supervisors))
        object.__setattr__(self, "sections", tuple(self.sections))
        if self.exam_type is not None:
            object.__setattr__(self, "exam_type", ExamType(self.exam_type))

    @property
    def sort_key(self) -> tuple[str, tuple[str, ...], str]:
        return (self.subject, tuple(sorted(self.groups)), self.requirement_id)


# ---------------------------------------------------------------------------
# Result values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConflictResult:
    """Outcome of a classroom/group overlap check.

    Every conflicting session is listed, not only the first one found.
    """

    conflict: ConflictKind = ConflictKind.NONE
    classroom_sessions: tuple[str, ...] = ()
    group_conflicts: tuple[tuple[str, str], ...] = ()

    @property
    def ok(self) -> bool:
        return self.conflict is ConflictKind.NONE

    @property
    def details(self) -> dict:
        return {
            "classroomSessions": list(self.classroom_sessions),
            "groupConflicts": [
                {"sessionId": sid, "group": group}
                for sid, group in self.group_conflicts
            ],
        }


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    reason: Reason | None = None
    message: str = ""


@dataclass(frozen=True)
class ClassroomAvailability:
    classroom_id: str
    is_available: bool
    reason: Reason | None = None
    message: str = ""


@dataclass(frozen=True)
class TeacherAvailability:
    teacher_id: str
    name: str
    is_available: bool
    reason: Reason | None
    message: str
    daily_sessions: int
    weekly_sessions: int


@dataclass(frozen=True)
class UnavailableSupervisor:
    teacher_id: str
    name: str
    reason: Reason
    message: str = ""


@dataclass(frozen=True)
class LifecycleResult:
    """Outcome of a create/update/delete.

    A failed outcome carries the conflict and/or unavailable supervisors and
    no session. Nothing has been written when ok is False.
    """

    session: Session | None = None
    affected_supervisors: tuple[str, ...] = ()
    conflict: ConflictResult = field(default_factory=ConflictResult)
    unavailable: tuple[UnavailableSupervisor, ...] = ()

    @property
    def ok(self) -> bool:
        return self.conflict.ok and not self.unavailable

    def raise_for_conflict(self) -> None:
        if not self.ok:
            raise ConflictError(self.conflict, self.unavailable)


@dataclass(frozen=True)
class UnscheduledRequirement:
    requirement: Requirement
    reason: UnscheduledReason


@dataclass
class GenerationResult:
    scheduled: list[Session] = field(default_factory=list)
    unscheduled: list[UnscheduledRequirement] = field(default_factory=list)
    # generated session id -> the requirement it satisfies
    sources: dict[str, Requirement] = field(default_factory=dict)
    deadline_hit: bool = False

    @property
    def count(self) -> int:
        return len(self.scheduled)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class SchedulingError(Exception):
    """Base class for errors surfaced to callers of the scheduling core."""


class ValidationError(SchedulingError):
    """Missing or malformed input. The caller can fix it and retry."""

    def __init__(
        self,
        message: str,
        missing_fields: tuple[str, ...] | list[str] = (),
        field_errors: tuple[str, ...] | list[str] = (),
    ) -> None:
        self.missing_fields = tuple(missing_fields)
        self.field_errors = tuple(field_errors)
        detail = ""
        if self.missing_fields:
            detail = f" (missing: {', '.join(self.missing_fields)})"
        elif self.field_errors:
            detail = f" ({'; '.join(self.field_errors)})"
        super().__init__(f"{message}{detail}")


class ConflictError(SchedulingError):
    """A classroom, group or supervisor is already committed elsewhere."""

    def __init__(
        self,
        conflict: ConflictResult,
        unavailable: tuple[UnavailableSupervisor, ...] = (),
    ) -> None:
        self.conflict = conflict
        self.unavailable = tuple(unavailable)
        parts: list[str] = []
        if conflict.classroom_sessions:
            parts.append(
                f"classroom booked by {', '.join(conflict.classroom_sessions)}"
            )
        if conflict.group_conflicts:
            groups = sorted({group for _, group in conflict.group_conflicts})
            parts.append(f"groups already sitting an exam: {', '.join(groups)}")
        if self.unavailable:
            parts.append(
                "unavailable supervisors: "
                + ", ".join(f"{u.teacher_id} ({u.reason.value})" for u in self.unavailable)
            )
        super().__init__("Conflict: " + "; ".join(parts))


class NotFoundError(SchedulingError):
    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"No {entity} with the id of {entity_id}")


class StorageFailure(SchedulingError):
    """The underlying store is unreachable or did not answer in time."""
