"""SessionLifecycle: validated create, update and delete of committed sessions.

Every mutation holds the locks for the classroom, groups and supervisors it
touches (on the session's date) from validation through commit, so two
concurrent writers can never both see "no conflict" and then overlap.
"""

from __future__ import annotations

import logging
from dataclasses import fields, replace
from typing import Any, Iterable, Mapping

from exam_scheduling.availability import AvailabilityResolver
from exam_scheduling.config import DEFAULT_SETTINGS, SchedulerSettings
from exam_scheduling.conflicts import ConflictValidator
from exam_scheduling.locking import ResourceLocks, resource_keys
from exam_scheduling.occupancy import AvailabilityStore
from exam_scheduling.types import (
    ConflictResult,
    LifecycleResult,
    LifecycleStatus,
    NotFoundError,
    Session,
    SessionDraft,
    StorageFailure,
    UnavailableSupervisor,
    ValidationError,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(f.name for f in fields(SessionDraft))

# Attempts at locking a session that keeps changing underneath an update.
_MAX_ATTEMPTS = 3


def _promote(draft: SessionDraft, session_id: str) -> Session:
    values = {f.name: getattr(draft, f.name) for f in fields(SessionDraft)}
    return Session(session_id=session_id, **values)


class SessionLifecycle:
    def __init__(
        self,
        store: AvailabilityStore,
        settings: SchedulerSettings = DEFAULT_SETTINGS,
        locks: ResourceLocks | None = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.locks = locks if locks is not None else ResourceLocks(settings.lock_timeout)
        self.validator = ConflictValidator(store)
        self.resolver = AvailabilityResolver(store, settings)

    def _require(self, session_id: str) -> Session:
        session = self.store.get_session(session_id)
        if session is None:
            raise NotFoundError("session", session_id)
        return session

    def _unavailable(
        self,
        teacher_ids: Iterable[str],
        draft: SessionDraft,
        exclude_session_id: str | None,
    ) -> tuple[UnavailableSupervisor, ...]:
        verdicts = self.resolver.check_supervisors(
            teacher_ids, draft.date, draft.start, draft.end, exclude_session_id
        )
        unavailable = []
        for teacher_id, verdict in verdicts.items():
            if verdict.available:
                continue
            profile = self.store.get_teacher(teacher_id)
            unavailable.append(
                UnavailableSupervisor(
                    teacher_id=teacher_id,
                    name=profile.name if profile else "",
                    reason=verdict.reason,
                    message=verdict.message,
                )
            )
        return tuple(unavailable)

    def _check(
        self,
        draft: SessionDraft,
        supervisors: Iterable[str],
        exclude_session_id: str | None = None,
        check_conflicts: bool = True,
    ) -> LifecycleResult:
        # A cancelled session holds no classroom, group or supervisor.
        if draft.status is LifecycleStatus.CANCELLED:
            return LifecycleResult()
        conflict = ConflictResult()
        if check_conflicts:
            conflict = self.validator.validate(draft.candidate, exclude_session_id)
        return LifecycleResult(
            conflict=conflict,
            unavailable=self._unavailable(supervisors, draft, exclude_session_id),
        )

    def create(self, draft: SessionDraft) -> LifecycleResult:
        """Validate the whole draft, then commit it. Nothing is written on failure."""
        with self.locks.hold(resource_keys(draft)):
            verdict = self._check(draft, draft.supervisors)
            if not verdict.ok:
                logger.info(
                    "Rejected session for %s in %s on %s %s-%s: %s, %d unavailable supervisor(s)",
                    draft.subject, draft.classroom, draft.date, draft.start, draft.end,
                    verdict.conflict.conflict.value, len(verdict.unavailable),
                )
                return verdict
            session = _promote(draft, self.store.new_session_id())
            self.store.add_session(session)

        logger.info(
            "Created session %s: %s in %s on %s %s-%s",
            session.session_id, session.subject, session.classroom,
            session.date, session.start, session.end,
        )
        return LifecycleResult(session=session, affected_supervisors=session.supervisors)

    def _apply(self, existing: Session, changes: Mapping[str, Any]) -> Session:
        unknown = sorted(set(changes) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError("Unknown session fields", field_errors=unknown)
        try:
            updated = replace(existing, **changes)
        except (TypeError, ValueError) as e:
            raise ValidationError("Invalid session update", field_errors=[str(e)]) from e
        if existing.is_cancelled and not updated.is_cancelled:
            raise ValidationError(
                "Cancelled sessions cannot change status",
                field_errors=["status: cancelled is terminal"],
            )
        return updated

    def update(self, session_id: str, changes: Mapping[str, Any]) -> LifecycleResult:
        """Apply a partial update.

        Time or date changes re-validate the conflicts and every current
        supervisor. Otherwise only added supervisors are checked, and the
        conflict check runs only when the classroom or groups change.
        affected_supervisors is removed + added, in that order.

        Raises NotFoundError, ValidationError, or StorageFailure on lock timeout.
        """
        for _ in range(_MAX_ATTEMPTS):
            existing = self._require(session_id)
            updated = self._apply(existing, changes)
            keys = resource_keys(existing) | resource_keys(updated)
            with self.locks.hold(keys):
                if self.store.get_session(session_id) != existing:
                    # Changed or deleted between the read and the lock; start over.
                    continue

                time_changed = (existing.date, existing.start, existing.end) != (
                    updated.date, updated.start, updated.end
                )
                placement_changed = (
                    existing.classroom != updated.classroom
                    or existing.groups != updated.groups
                )
                added = [t for t in updated.supervisors if t not in existing.supervisors]
                removed = [t for t in existing.supervisors if t not in updated.supervisors]

                verdict = self._check(
                    updated,
                    updated.supervisors if time_changed else added,
                    exclude_session_id=session_id,
                    check_conflicts=time_changed or placement_changed,
                )
                if not verdict.ok:
                    logger.info(
                        "Rejected update of session %s: %s, %d unavailable supervisor(s)",
                        session_id, verdict.conflict.conflict.value, len(verdict.unavailable),
                    )
                    return verdict
                self.store.replace_session(updated)

            logger.info(
                "Updated session %s (%s); supervisors added %s, removed %s",
                session_id, ", ".join(sorted(changes)) or "no fields", added, removed,
            )
            return LifecycleResult(
                session=updated, affected_supervisors=tuple(removed + added)
            )

        raise StorageFailure(f"Session {session_id} kept changing during update")

    def delete(self, session_id: str) -> LifecycleResult:
        """Remove a session and free its interval. Every prior supervisor is affected."""
        existing = self._require(session_id)
        with self.locks.hold(resource_keys(existing)):
            removed = self.store.remove_session(session_id)
        if removed is None:
            raise NotFoundError("session", session_id)

        logger.info("Deleted session %s", session_id)
        return LifecycleResult(session=removed, affected_supervisors=removed.supervisors)
