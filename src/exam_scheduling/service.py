"""SchedulingService: request/response contracts for session scheduling.

Payloads use the wire field names (camelCase). Transport is not handled
here; every method returns a Response that a web layer can serialise as-is.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Iterable, Mapping

from exam_scheduling.availability import AvailabilityResolver
from exam_scheduling.config import DEFAULT_SETTINGS, SchedulerSettings
from exam_scheduling.greedy import ScheduleGenerator
from exam_scheduling.lifecycle import SessionLifecycle
from exam_scheduling.occupancy import AvailabilityStore
from exam_scheduling.resolution import add_duration, normalize, parse_date
from exam_scheduling.schema import (
    missing_session_fields,
    validate_session_fields,
    validate_slots,
)
from exam_scheduling.status import display_status, split_status
from exam_scheduling.types import (
    ConflictKind,
    ExamType,
    LifecycleResult,
    NotFoundError,
    Session,
    SessionDraft,
    Slot,
    StorageFailure,
    UnscheduledReason,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Wire name -> SessionDraft field
_FIELD_NAMES = {
    "subject": "subject",
    "date": "date",
    "startTime": "start",
    "endTime": "end",
    "examDuration": "exam_duration",
    "classroom": "classroom",
    "groups": "groups",
    "supervisors": "supervisors",
    "sections": "sections",
    "notes": "notes",
}


@dataclass(frozen=True)
class Response:
    status_code: int
    body: dict = field(default_factory=dict)


def session_to_dict(session: Session, now: datetime | None = None) -> dict:
    """Wire form of a session. With `now`, status is the displayed phase."""
    if now is None:
        status, exam_type = session.status, session.exam_type
    else:
        shown = display_status(session, now)
        status, exam_type = shown.status, shown.exam_type
    return {
        "id": session.session_id,
        "subject": session.subject,
        "date": session.date.isoformat(),
        "startTime": session.start,
        "endTime": session.end,
        "examDuration": session.exam_duration,
        "classroom": session.classroom,
        "groups": list(session.groups),
        "supervisors": list(session.supervisors),
        "status": status.value,
        "examType": exam_type.value if exam_type else None,
        "sections": list(session.sections),
        "notes": session.notes,
    }


def _failure(result: LifecycleResult) -> Response:
    body: dict[str, Any] = {"success": False}
    conflict = result.conflict
    if conflict.conflict is ConflictKind.CLASSROOM:
        body["message"] = "Classroom is already booked during the requested time slot"
        body["classroomConflict"] = conflict.details
    elif conflict.conflict is ConflictKind.GROUP:
        body["message"] = "Some groups already have an exam scheduled during this time slot"
        body["groupConflict"] = conflict.details
    else:
        body["message"] = "Some supervisors are not available at this time"
    if result.unavailable:
        body["unavailableSupervisors"] = [
            {"id": u.teacher_id, "name": u.name, "reason": u.reason.value, "message": u.message}
            for u in result.unavailable
        ]
    return Response(400, body)


def _handles_errors(method: Callable[..., Response]) -> Callable[..., Response]:
    """Map the error taxonomy onto responses."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs) -> Response:
        try:
            return method(self, *args, **kwargs)
        except ValidationError as e:
            body: dict[str, Any] = {"success": False, "message": str(e)}
            if e.missing_fields:
                body["missingFields"] = list(e.missing_fields)
            if e.field_errors:
                body["errors"] = list(e.field_errors)
            return Response(400, body)
        except NotFoundError as e:
            return Response(404, {"success": False, "message": str(e)})
        except StorageFailure:
            logger.exception("Storage failure in %s", method.__name__)
            return Response(500, {"success": False, "message": "Server Error"})

    return wrapper


class SchedulingService:
    def __init__(
        self,
        store: AvailabilityStore,
        settings: SchedulerSettings = DEFAULT_SETTINGS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.settings = settings
        self.clock = clock
        self.lifecycle = SessionLifecycle(store, settings)
        self.resolver = AvailabilityResolver(store, settings)
        self.generator = ScheduleGenerator(store, settings)

    # ------------------------------------------------------------------
    # Payload parsing
    # ------------------------------------------------------------------

    def _check_fields(self, payload: Mapping[str, Any]) -> None:
        errors = validate_session_fields(payload, self.settings.min_exam_duration)
        if errors:
            raise ValidationError("Invalid session fields", field_errors=errors)

    def _status_fields(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        if payload.get("status") is not None:
            values["status"], tagged = split_status(payload["status"])
            if tagged is not None:
                values["exam_type"] = tagged
        if payload.get("examType") is not None:
            try:
                values["exam_type"] = ExamType(payload["examType"])
            except ValueError as e:
                raise ValidationError("Invalid session fields", field_errors=[f"examType: {e}"]) from e
        return values

    def _draft(self, payload: Mapping[str, Any]) -> SessionDraft:
        missing = missing_session_fields(payload)
        if missing:
            raise ValidationError("Missing required fields for session creation", missing)
        self._check_fields(payload)

        values = {
            _FIELD_NAMES[k]: v for k, v in payload.items()
            if k in _FIELD_NAMES and v is not None
        }
        values["date"] = parse_date(payload["date"])
        if payload.get("endTime") in (None, ""):
            values["end"] = add_duration(normalize(payload["startTime"]), payload["examDuration"])
        values.update(self._status_fields(payload))
        try:
            return SessionDraft(**values)
        except ValueError as e:
            raise ValidationError("Invalid session fields", field_errors=[str(e)]) from e

    def _changes(self, existing: Session, payload: Mapping[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(payload) - set(_FIELD_NAMES) - {"status", "examType", "id"})
        if unknown:
            raise ValidationError("Unknown session fields", field_errors=unknown)
        self._check_fields(payload)

        changes = {
            _FIELD_NAMES[k]: v for k, v in payload.items()
            if k in _FIELD_NAMES and v is not None
        }
        if "date" in changes:
            changes["date"] = parse_date(changes["date"])
        if "end" not in changes and ("start" in changes or "exam_duration" in changes):
            duration = changes.get("exam_duration", existing.exam_duration)
            if duration is not None:
                changes["end"] = add_duration(
                    normalize(changes.get("start", existing.start)), duration
                )
        changes.update(self._status_fields(payload))
        return changes

    # ------------------------------------------------------------------
    # Session mutations
    # ------------------------------------------------------------------

    @_handles_errors
    def create_session(self, payload: Mapping[str, Any]) -> Response:
        result = self.lifecycle.create(self._draft(payload))
        if not result.ok:
            return _failure(result)
        return Response(201, {"success": True, "data": session_to_dict(result.session)})

    @_handles_errors
    def update_session(self, session_id: str, payload: Mapping[str, Any]) -> Response:
        existing = self.store.get_session(session_id)
        if existing is None:
            raise NotFoundError("session", session_id)
        result = self.lifecycle.update(session_id, self._changes(existing, payload))
        if not result.ok:
            return _failure(result)
        return Response(200, {
            "success": True,
            "data": session_to_dict(result.session),
            "affectedSupervisors": list(result.affected_supervisors),
        })

    @_handles_errors
    def delete_session(self, session_id: str) -> Response:
        result = self.lifecycle.delete(session_id)
        return Response(200, {
            "success": True,
            "data": {},
            "affectedSupervisors": list(result.affected_supervisors),
        })

    @_handles_errors
    def generate_schedule(self, payload: Mapping[str, Any]) -> Response:
        """Generate, then commit each placement through the normal create path.

        A placement invalidated by a concurrent writer between generation and
        commit is reported as unscheduled with reason conflict-at-commit. A
        placement whose commit fails in the store (lock timeout included) is
        reported as storage-failure; sessions committed before it stay in
        the response.
        """
        missing = [k for k in ("startDate", "endDate", "dailySlots") if not payload.get(k)]
        if missing:
            raise ValidationError("Please provide startDate, endDate, and dailySlots", missing)
        errors = validate_slots(payload["dailySlots"])
        try:
            first, last = parse_date(payload["startDate"]), parse_date(payload["endDate"])
        except ValueError as e:
            errors.append(f"dates: {e}")
        else:
            if last < first:
                errors.append("endDate: must not be before startDate")
        if errors:
            raise ValidationError("Invalid generation request", field_errors=errors)

        slots = [
            Slot(s.get("startTime", s.get("start")), s.get("endTime", s.get("end")))
            for s in payload["dailySlots"]
        ]
        result = self.generator.generate(first, last, slots)

        committed: list[Session] = []
        unscheduled = [(u.requirement, u.reason) for u in result.unscheduled]
        for placed in result.scheduled:
            requirement = result.sources[placed.session_id]
            try:
                outcome = self.lifecycle.create(placed)
            except StorageFailure as e:
                logger.warning(
                    "Could not commit generated session for %s: %s",
                    requirement.requirement_id, e,
                )
                unscheduled.append((requirement, UnscheduledReason.STORAGE_FAILURE))
                continue
            if outcome.ok:
                committed.append(outcome.session)
            else:
                logger.warning(
                    "Generated session for %s conflicted at commit", requirement.requirement_id
                )
                unscheduled.append((requirement, UnscheduledReason.CONFLICT_AT_COMMIT))

        return Response(201, {
            "success": True,
            "count": len(committed),
            "data": [session_to_dict(s) for s in committed],
            "unscheduled": [
                {
                    "requirementId": r.requirement_id,
                    "subject": r.subject,
                    "groups": list(r.groups),
                    "reason": reason.value,
                }
                for r, reason in unscheduled
            ],
        })

    # ------------------------------------------------------------------
    # Availability queries
    # ------------------------------------------------------------------

    def _interval_args(self, day: date | str, start_time: str, end_time: str) -> tuple[date, str, str]:
        missing = [
            name for name, value in
            (("date", day), ("startTime", start_time), ("endTime", end_time))
            if not value
        ]
        if missing:
            raise ValidationError("Please provide date, startTime and endTime", missing)
        errors = validate_session_fields(
            {"date": day, "startTime": start_time, "endTime": end_time}
        )
        if errors:
            raise ValidationError("Invalid time range", field_errors=errors)
        start, end = normalize(start_time), normalize(end_time)
        if start >= end:
            raise ValidationError("Invalid time range", field_errors=["startTime must be before endTime"])
        return parse_date(day), start, end

    @_handles_errors
    def get_available_teachers(
        self,
        day: date | str,
        start_time: str,
        end_time: str,
        session_id: str | None = None,
    ) -> Response:
        day, start, end = self._interval_args(day, start_time, end_time)
        teachers = self.resolver.get_available_teachers(day, start, end, session_id)
        return Response(200, {
            "success": True,
            "count": len(teachers),
            "data": [
                {
                    "id": t.teacher_id,
                    "name": t.name,
                    "isAvailable": t.is_available,
                    "reason": t.reason.value if t.reason else None,
                    "message": None if t.is_available else t.message,
                    "dailySessions": t.daily_sessions,
                    "weeklySessions": t.weekly_sessions,
                }
                for t in teachers
            ],
        })

    @_handles_errors
    def get_available_classrooms_for_time(
        self,
        day: date | str,
        start_time: str,
        end_time: str,
        session_id: str | None = None,
    ) -> Response:
        day, start, end = self._interval_args(day, start_time, end_time)
        classrooms = self.store.list_classrooms()
        verdicts = self.resolver.get_available_classrooms(classrooms, day, start, end, session_id)
        return Response(200, {
            "success": True,
            "count": len(verdicts),
            "data": [
                {
                    "id": v.classroom_id,
                    "capacity": room.capacity,
                    "isAvailable": v.is_available,
                    "reason": v.reason.value if v.reason else None,
                    "message": v.message or None,
                }
                for room, v in zip(classrooms, verdicts)
            ],
        })

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @_handles_errors
    def list_sessions(
        self,
        supervisor: str | None = None,
        groups: Iterable[str] | None = None,
    ) -> Response:
        """All sessions, optionally narrowed to one supervisor or to a set of groups.

        Statuses are computed for display; nothing stored is rewritten.
        """
        now = self.clock()
        wanted = set(groups) if groups is not None else None
        sessions = [
            s for s in self.store.list_sessions()
            if (supervisor is None or supervisor in s.supervisors)
            and (wanted is None or wanted.intersection(s.groups))
        ]
        return Response(200, {
            "success": True,
            "count": len(sessions),
            "data": [session_to_dict(s, now) for s in sessions],
        })

    @_handles_errors
    def get_session(self, session_id: str) -> Response:
        session = self.store.get_session(session_id)
        if session is None:
            raise NotFoundError("session", session_id)
        return Response(200, {"success": True, "data": session_to_dict(session, self.clock())})
