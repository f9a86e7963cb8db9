"""exam-scheduling: Conflict-free scheduling core for university exam sessions."""

from exam_scheduling.availability import AvailabilityResolver
from exam_scheduling.calendar import AvailabilityCalendar
from exam_scheduling.config import DEFAULT_SETTINGS, SchedulerSettings, settings_from_env
from exam_scheduling.conflicts import ConflictValidator
from exam_scheduling.greedy import ScheduleGenerator
from exam_scheduling.lifecycle import SessionLifecycle
from exam_scheduling.locking import ResourceLocks
from exam_scheduling.occupancy import AvailabilityStore, OccupancyLedger
from exam_scheduling.service import Response, SchedulingService
from exam_scheduling.status import compute_display_status
from exam_scheduling.types import (
    ConflictError,
    NotFoundError,
    Session,
    SessionDraft,
    StorageFailure,
    ValidationError,
)

__all__ = [
    "AvailabilityCalendar",
    "AvailabilityResolver",
    "AvailabilityStore",
    "ConflictError",
    "ConflictValidator",
    "DEFAULT_SETTINGS",
    "NotFoundError",
    "OccupancyLedger",
    "ResourceLocks",
    "Response",
    "ScheduleGenerator",
    "SchedulerSettings",
    "SchedulingService",
    "Session",
    "SessionDraft",
    "SessionLifecycle",
    "StorageFailure",
    "ValidationError",
    "compute_display_status",
    "settings_from_env",
]
