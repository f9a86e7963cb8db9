"""StatusResolver: time-derived lifecycle phase of a session. Pure, no I/O."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from exam_scheduling.resolution import combine, reject_aware
from exam_scheduling.types import ExamType, LifecycleStatus, Session

_EXAM_TYPES = {t.value: t for t in ExamType}


@dataclass(frozen=True)
class DisplayStatus:
    status: LifecycleStatus
    exam_type: ExamType | None = None


def split_status(
    raw: str | LifecycleStatus | ExamType | None,
) -> tuple[LifecycleStatus, ExamType | None]:
    """Split a legacy single status field into (persisted lifecycle, exam type).

    Exam-type tags become SCHEDULED plus the tag. 'ongoing' and 'completed'
    are derived from time and are stored as SCHEDULED.
    Raises ValueError for unknown values.
    """
    if raw is None:
        return LifecycleStatus.SCHEDULED, None
    if isinstance(raw, ExamType):
        return LifecycleStatus.SCHEDULED, raw
    value = raw.value if isinstance(raw, LifecycleStatus) else raw
    if value in _EXAM_TYPES:
        return LifecycleStatus.SCHEDULED, _EXAM_TYPES[value]
    status = LifecycleStatus(value)
    if status is LifecycleStatus.CANCELLED:
        return status, None
    return LifecycleStatus.SCHEDULED, None


def compute_display_status(
    stored_status: str | LifecycleStatus | ExamType | None,
    start: datetime,
    end: datetime,
    now: datetime,
    exam_type: ExamType | None = None,
) -> DisplayStatus:
    """Lifecycle phase at `now` for a session occupying [start, end).

    Cancelled is never overridden. Otherwise the phase comes from time alone;
    an exam-type tag, stored in the status field or passed separately, is
    carried alongside it.
    """
    for name, value in (("start", start), ("end", end), ("now", now)):
        reject_aware(value, name)

    lifecycle, tagged = split_status(stored_status)
    exam_type = exam_type or tagged

    if lifecycle is LifecycleStatus.CANCELLED:
        phase = LifecycleStatus.CANCELLED
    elif now < start:
        phase = LifecycleStatus.SCHEDULED
    elif now < end:
        phase = LifecycleStatus.ONGOING
    else:
        phase = LifecycleStatus.COMPLETED
    return DisplayStatus(phase, exam_type)


def display_status(session: Session, now: datetime) -> DisplayStatus:
    """compute_display_status for a committed session. Never writes back."""
    return compute_display_status(
        session.status,
        combine(session.date, session.start),
        combine(session.date, session.end),
        now,
        exam_type=session.exam_type,
    )
