"""Input validation for availability rules, session payloads and settings."""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping

from exam_scheduling.resolution import is_valid_time, to_minutes
from exam_scheduling.types import ExamType, LifecycleStatus, parse_weekday

SESSION_REQUIRED_FIELDS = (
    "subject", "date", "startTime", "classroom", "groups", "supervisors",
)

STATUS_VALUES = frozenset(
    [s.value for s in LifecycleStatus] + [t.value for t in ExamType]
)


def _is_missing(value: Any) -> bool:
    return value is None or value == "" or value == []


def _check_window(label: str, start: Any, end: Any, errors: list[str]) -> None:
    """Append errors for a start/end pair of clock times."""
    for name, value in (("start", start), ("end", end)):
        if not is_valid_time(value):
            errors.append(f"{label}: invalid {name} time {value!r}")
            return
    if to_minutes(start) >= to_minutes(end):
        errors.append(f"{label}: start {start} must be before end {end}")


def validate_rules(rules: list[Mapping[str, Any]]) -> list[str]:
    """Validate weekly availability windows. Returns list of error messages (empty = valid).

    Checks:
    - Each window has a day (name or 0-6) and valid start/end times
    - start < end

    Overlapping windows on the same day are allowed.
    """
    errors: list[str] = []

    for i, rule in enumerate(rules):
        if not isinstance(rule, Mapping):
            errors.append(f"Window {i}: expected an object, got {rule!r}")
            continue
        day = rule.get("day", rule.get("dayOfWeek"))
        try:
            parse_weekday(day)
        except (ValueError, TypeError):
            errors.append(f"Window {i}: invalid day {day!r}")
            continue
        _check_window(f"Window {i}", rule.get("startTime"), rule.get("endTime"), errors)

    return errors


def validate_exceptions(exceptions: list[Mapping[str, Any]]) -> list[str]:
    """Validate date-specific exception entries. Returns list of error messages.

    Checks:
    - Date strings parse as valid dates
    - Each entry has an isAvailable boolean
    - Entries have valid start/end times
    """
    errors: list[str] = []

    for i, entry in enumerate(exceptions):
        if not isinstance(entry, Mapping):
            errors.append(f"Exception {i}: expected an object, got {entry!r}")
            continue
        try:
            date.fromisoformat(str(entry.get("date"))[:10])
        except ValueError:
            errors.append(f"Exception {i}: invalid date {entry.get('date')!r}")
            continue

        if "isAvailable" in entry and not isinstance(entry["isAvailable"], bool):
            errors.append(f"Exception {i}: 'isAvailable' must be boolean")

        _check_window(
            f"Exception {i}", entry.get("startTime"), entry.get("endTime"), errors
        )

    return errors


def missing_session_fields(payload: Mapping[str, Any]) -> list[str]:
    """Required session fields that are absent or empty.

    An end time may be replaced by an exam duration.
    """
    missing: list[str] = []
    for name in SESSION_REQUIRED_FIELDS:
        value = payload.get(name)
        # An empty supervisor list is accepted; only an absent one is missing.
        if name == "supervisors" and value == []:
            continue
        if _is_missing(value):
            missing.append(name)
        if name == "startTime" and _is_missing(payload.get("endTime")) and _is_missing(
            payload.get("examDuration")
        ):
            missing.append("endTime")
    return missing


def validate_session_fields(
    payload: Mapping[str, Any], min_exam_duration: int = 15
) -> list[str]:
    """Field-level checks on whatever session fields are present."""
    errors: list[str] = []

    if "date" in payload and payload["date"] is not None:
        try:
            date.fromisoformat(str(payload["date"])[:10])
        except ValueError:
            errors.append(f"date: invalid date {payload['date']!r}")

    for name in ("startTime", "endTime"):
        value = payload.get(name)
        if value is not None and not is_valid_time(value):
            errors.append(f"{name}: invalid time {value!r}, expected HH:MM")

    duration = payload.get("examDuration")
    if duration is not None:
        if isinstance(duration, bool) or not isinstance(duration, int):
            errors.append(f"examDuration: expected minutes as an integer, got {duration!r}")
        elif duration < min_exam_duration:
            errors.append(
                f"examDuration: must be at least {min_exam_duration} minutes"
            )

    status = payload.get("status")
    if status is not None and (not isinstance(status, str) or status not in STATUS_VALUES):
        errors.append(f"status: unknown value {status!r}")

    for name in ("groups", "supervisors", "sections"):
        value = payload.get(name)
        if value is None:
            continue
        if not isinstance(value, (list, tuple)) or not all(
            isinstance(item, str) and item for item in value
        ):
            errors.append(f"{name}: expected a list of ids")
        elif len(set(value)) != len(value):
            errors.append(f"{name}: duplicate ids")

    for name in ("subject", "classroom", "notes"):
        value = payload.get(name)
        if value is not None and not isinstance(value, str):
            errors.append(f"{name}: expected a string")

    return errors


def validate_slots(slots: Any) -> list[str]:
    """Validate a daily slot template: a non-empty list of {startTime, endTime}."""
    if not isinstance(slots, list) or not slots:
        return ["dailySlots: expected a non-empty list"]
    errors: list[str] = []
    for i, slot in enumerate(slots):
        if not isinstance(slot, Mapping):
            errors.append(f"Slot {i}: expected an object, got {slot!r}")
            continue
        start = slot.get("startTime", slot.get("start"))
        end = slot.get("endTime", slot.get("end"))
        _check_window(f"Slot {i}", start, end, errors)
    return errors


_SETTINGS_TYPES: dict[str, tuple[type, ...]] = {
    "max_workers": (int,),
    "lock_timeout": (int, float),
    "generation_deadline": (int, float, type(None)),
    "min_exam_duration": (int,),
    "supervisors_per_session": (int,),
    "skip_weekends": (bool,),
    "week_starts_on": (int,),
}


def validate_settings(raw: Mapping[str, Any]) -> list[str]:
    """Validate a settings mapping. Returns list of error messages."""
    errors: list[str] = []

    for key, value in raw.items():
        if key not in _SETTINGS_TYPES:
            errors.append(f"Unknown setting: {key}")
            continue
        expected = _SETTINGS_TYPES[key]
        if isinstance(value, bool) and bool not in expected:
            errors.append(f"{key}: expected a number, got {value!r}")
        elif not isinstance(value, expected):
            errors.append(f"{key}: invalid value {value!r}")
        elif key in ("max_workers", "min_exam_duration") and value < 1:
            errors.append(f"{key}: must be at least 1")
        elif key == "supervisors_per_session" and value < 0:
            errors.append(f"{key}: must not be negative")
        elif key == "week_starts_on" and not 0 <= value <= 6:
            errors.append(f"{key}: must be 0-6")
        elif key in ("lock_timeout", "generation_deadline") and value is not None and value <= 0:
            errors.append(f"{key}: must be positive")

    return errors
