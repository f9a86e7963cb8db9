"""ResourceLocks: serialise validate-then-commit per (resource, date)."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from datetime import date
from typing import Iterable, Iterator

from exam_scheduling.types import Candidate, SessionDraft, StorageFailure

logger = logging.getLogger(__name__)

LockKey = tuple[str, str, date]


def resource_keys(session: SessionDraft | Candidate) -> set[LockKey]:
    """Every (kind, id, date) a session touches: its classroom, groups and supervisors."""
    keys: set[LockKey] = {("classroom", session.classroom, session.date)}
    keys.update(("group", g, session.date) for g in session.groups)
    keys.update(("supervisor", t, session.date) for t in getattr(session, "supervisors", ()))
    return keys


class ResourceLocks:
    """Keyed locks, one per (kind, id, date) currently in use.

    Keys are always taken in sorted order, so two writers touching
    overlapping key sets cannot deadlock. Waiting is bounded by a timeout.
    A key's lock exists only while some caller holds or waits for it.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks: dict[LockKey, threading.Lock] = {}
        # key -> callers holding or waiting for its lock
        self._users: dict[LockKey, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: LockKey) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _checkin(self, key: LockKey) -> None:
        with self._guard:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[LockKey], timeout: float | None = None) -> Iterator[None]:
        """Hold every key for the duration of the block.

        Raises StorageFailure if the keys cannot all be taken in time.
        """
        budget = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + budget
        checked_out: list[LockKey] = []
        acquired: list[threading.Lock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._checkout(key)
                checked_out.append(key)
                if not lock.acquire(timeout=max(0.0, deadline - time.monotonic())):
                    logger.warning("Timed out after %.1fs waiting for %s", budget, key)
                    raise StorageFailure(
                        f"Timed out waiting for {key[0]} {key[1]} on {key[2].isoformat()}"
                    )
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in checked_out:
                self._checkin(key)
