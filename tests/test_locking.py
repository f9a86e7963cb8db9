"""Tests for ResourceLocks and concurrent validate-then-commit."""

from __future__ import annotations

import threading

import pytest

from conftest import DAYS, make_ledger

WED = DAYS["wed"]


def _draft(start: str, end: str, classroom: str = "B201", groups=("G1",), supervisors=()):
    from exam_scheduling.types import SessionDraft

    return SessionDraft(
        subject="Concurrency", date=WED, start=start, end=end,
        classroom=classroom, groups=groups, supervisors=supervisors,
    )


class TestResourceKeys:
    def test_keys_cover_every_resource(self):
        from exam_scheduling.locking import resource_keys

        keys = resource_keys(_draft("14:00", "16:00", groups=("G1", "G2"), supervisors=("T2",)))
        assert keys == {
            ("classroom", "B201", WED),
            ("group", "G1", WED),
            ("group", "G2", WED),
            ("supervisor", "T2", WED),
        }

    def test_candidate_has_no_supervisor_keys(self):
        from exam_scheduling.locking import resource_keys

        keys = resource_keys(_draft("14:00", "16:00").candidate)
        assert keys == {("classroom", "B201", WED), ("group", "G1", WED)}


class TestResourceLocks:
    def test_hold_releases_on_exit(self):
        from exam_scheduling.locking import ResourceLocks

        locks = ResourceLocks(timeout=0.1)
        keys = [("classroom", "B201", WED)]
        with locks.hold(keys):
            pass
        with locks.hold(keys):
            pass

    def test_hold_releases_on_error(self):
        from exam_scheduling.locking import ResourceLocks

        locks = ResourceLocks(timeout=0.1)
        keys = [("classroom", "B201", WED)]
        with pytest.raises(RuntimeError):
            with locks.hold(keys):
                raise RuntimeError("boom")
        with locks.hold(keys):
            pass

    def test_timeout_raises_storage_failure(self):
        from exam_scheduling.locking import ResourceLocks
        from exam_scheduling.types import StorageFailure

        locks = ResourceLocks(timeout=0.05)
        key = ("group", "G1", WED)
        held = threading.Event()
        release = threading.Event()

        def holder() -> None:
            with locks.hold([key]):
                held.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        try:
            assert held.wait(5)
            with pytest.raises(StorageFailure, match="Timed out waiting for group G1 on 2024-05-08"):
                with locks.hold([("classroom", "A101", WED), key]):
                    pass
        finally:
            release.set()
            thread.join()

        # The partially acquired classroom key was released.
        with locks.hold([("classroom", "A101", WED)], timeout=0.05):
            pass

    def test_table_empties_after_release(self):
        from exam_scheduling.locking import ResourceLocks
        from exam_scheduling.types import StorageFailure

        locks = ResourceLocks(timeout=0.05)
        keys = [("classroom", "B201", WED), ("group", "G1", WED)]
        with locks.hold(keys):
            assert len(locks) == 2
            with pytest.raises(StorageFailure):
                with locks.hold([("classroom", "A101", WED), keys[1]]):
                    pass
            assert len(locks) == 2
        assert len(locks) == 0

    def test_table_empties_after_create_and_delete(self):
        from dataclasses import replace
        from datetime import timedelta

        from exam_scheduling.lifecycle import SessionLifecycle

        ledger = make_ledger()
        lifecycle = SessionLifecycle(ledger)
        draft = _draft("14:00", "16:00", supervisors=("T2",))
        for week in range(4):
            result = lifecycle.create(replace(draft, date=WED + timedelta(weeks=week)))
            assert result.ok
            lifecycle.delete(result.session.session_id)

        assert ledger.list_sessions() == make_ledger().list_sessions()
        assert len(lifecycle.locks) == 0

    def test_disjoint_keys_do_not_block(self):
        from exam_scheduling.locking import ResourceLocks

        locks = ResourceLocks(timeout=0.05)
        with locks.hold([("classroom", "A101", WED)]):
            with locks.hold([("classroom", "A102", WED)]):
                pass


class TestConcurrentCreates:
    """Racing writers can never both commit overlapping sessions."""

    def test_same_classroom_race(self):
        from exam_scheduling.lifecycle import SessionLifecycle

        ledger = make_ledger()
        lifecycle = SessionLifecycle(ledger)
        results = []
        lock = threading.Lock()

        def worker(i: int) -> None:
            # Every draft overlaps 14:00-15:00 in B201; groups differ.
            result = lifecycle.create(_draft("14:00", "15:30", groups=(f"X{i}",)))
            with lock:
                results.append(result)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(1 for r in results if r.ok) == 1
        assert len(ledger.sessions_for_classroom("B201", WED)) == 1

    def test_same_supervisor_race(self):
        from exam_scheduling.lifecycle import SessionLifecycle

        ledger = make_ledger()
        lifecycle = SessionLifecycle(ledger)
        rooms = ["A101", "A102", "B201"]
        results = []
        lock = threading.Lock()

        def worker(i: int) -> None:
            draft = _draft(
                "15:00", "16:00", classroom=rooms[i % 3], groups=(f"X{i}",), supervisors=("T2",)
            )
            result = lifecycle.create(draft)
            with lock:
                results.append(result)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(1 for r in results if r.ok) == 1
        assert len(ledger.sessions_for_supervisor("T2", WED)) == 2
