"""Data loading utilities for campus definitions, settings and fixtures."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from exam_scheduling.config import DEFAULT_SETTINGS, SchedulerSettings
from exam_scheduling.occupancy import OccupancyLedger
from exam_scheduling.schema import validate_exceptions, validate_rules, validate_settings
from exam_scheduling.status import split_status
from exam_scheduling.types import (
    AvailabilityException,
    Classroom,
    Group,
    RecurringAvailability,
    Requirement,
    Session,
    TeacherProfile,
)

logger = logging.getLogger(__name__)


def _read(path: str | Path) -> tuple[Path, Any]:
    path = Path(path)
    with open(path) as f:
        return path, json.load(f)


def _raise_errors(errors: list[str], where: str) -> None:
    if errors:
        raise ValueError(
            f"Validation errors in {where}:\n" + "\n".join(f"  - {e}" for e in errors)
        )


def teacher_from_dict(data: Mapping[str, Any]) -> TeacherProfile:
    """Build a TeacherProfile from its JSON form.

    Weekly windows live under "availability"; date exceptions under
    "exceptions" or, in older exports, "specialOccasions".

    Raises ValueError if validation fails.
    """
    teacher_id = data["id"]
    rules = data.get("availability", [])
    exceptions = data.get("exceptions", data.get("specialOccasions", []))

    errors = validate_rules(rules)
    errors.extend(validate_exceptions(exceptions))
    _raise_errors(errors, f"teacher {teacher_id}")

    return TeacherProfile(
        teacher_id=teacher_id,
        name=data.get("name", ""),
        department=data.get("department", ""),
        recurring=tuple(
            RecurringAvailability(
                rule.get("day", rule.get("dayOfWeek")), rule["startTime"], rule["endTime"]
            )
            for rule in rules
        ),
        exceptions=tuple(
            AvailabilityException(
                date=entry["date"],
                start=entry["startTime"],
                end=entry["endTime"],
                is_available=entry.get("isAvailable", False),
                reason=entry.get("reason", ""),
            )
            for entry in exceptions
        ),
    )


def session_from_dict(data: Mapping[str, Any]) -> Session:
    """Build a committed Session from its wire form.

    A legacy combined status such as "examen_tp" is split into a
    scheduled lifecycle status plus the exam type.
    """
    status, exam_type = split_status(data.get("status"))
    return Session(
        session_id=data["id"],
        subject=data["subject"],
        date=data["date"],
        start=data["startTime"],
        end=data["endTime"],
        classroom=data["classroom"],
        groups=data.get("groups", ()),
        supervisors=data.get("supervisors", ()),
        status=status,
        exam_type=data.get("examType") or exam_type,
        sections=data.get("sections", ()),
        exam_duration=data.get("examDuration"),
        notes=data.get("notes", ""),
    )


def requirement_from_dict(data: Mapping[str, Any]) -> Requirement:
    return Requirement(
        requirement_id=data["id"],
        subject=data["subject"],
        groups=data["groups"],
        headcount=data.get("headcount", 0),
        supervisors_needed=data.get("supervisorsNeeded"),
        preferred_supervisors=data.get("preferredSupervisors", ()),
        exam_type=data.get("examType"),
        sections=data.get("sections", ()),
    )


def ledger_from_dict(data: Mapping[str, Any]) -> OccupancyLedger:
    """Build an OccupancyLedger from a campus mapping.

    {
        "teachers": [{"id", "name", "availability": [...], "exceptions": [...]}],
        "classrooms": [{"id", "capacity", "roomNumber", "building"}],
        "groups": [{"id", "name", "size", "section"}],
        "requirements": [{"id", "subject", "groups", "headcount", ...}],
        "sessions": [{"id", "subject", "date", "startTime", "endTime", ...}]
    }

    Every section is optional.
    """
    return OccupancyLedger(
        teachers=[teacher_from_dict(t) for t in data.get("teachers", [])],
        classrooms=[
            Classroom(
                classroom_id=c["id"],
                capacity=c.get("capacity", 0),
                room_number=c.get("roomNumber", ""),
                building=c.get("building", ""),
            )
            for c in data.get("classrooms", [])
        ],
        groups=[
            Group(
                group_id=g["id"],
                name=g.get("name", ""),
                size=g.get("size", 0),
                section=g.get("section", ""),
            )
            for g in data.get("groups", [])
        ],
        requirements=[requirement_from_dict(r) for r in data.get("requirements", [])],
        sessions=[session_from_dict(s) for s in data.get("sessions", [])],
    )


def load_campus_json(path: str | Path) -> OccupancyLedger:
    """Load a campus fixture file into a fresh OccupancyLedger.

    Raises ValueError if validation fails.
    """
    path, data = _read(path)
    ledger = ledger_from_dict(data)
    logger.info(
        "Loaded %s: %d teacher(s), %d classroom(s), %d session(s)",
        path.name,
        len(ledger.list_teachers()),
        len(ledger.list_classrooms()),
        len(ledger.list_sessions()),
    )
    return ledger


def load_settings_json(
    path: str | Path, base: SchedulerSettings = DEFAULT_SETTINGS
) -> SchedulerSettings:
    """Load SchedulerSettings overrides from a JSON object of field -> value.

    Raises ValueError if validation fails.
    """
    path, data = _read(path)
    if not isinstance(data, dict):
        raise ValueError(f"{path.name}: expected a JSON object of settings")
    _raise_errors(validate_settings(data), path.name)
    logger.debug("Settings overrides from %s: %s", path.name, sorted(data))
    return base.merged(data)
