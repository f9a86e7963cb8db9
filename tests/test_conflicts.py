"""Tests for ConflictValidator: classroom and group overlap detection."""

from __future__ import annotations

from datetime import date

import pytest

from conftest import DAYS, make_session

SCENARIO_A_DATE = date(2024, 5, 1)


def _candidate(classroom="A101", groups=("G1",), day=SCENARIO_A_DATE, start="10:00", end="12:00"):
    from exam_scheduling.types import Candidate

    return Candidate(classroom, groups, day, start, end)


@pytest.fixture
def validator(ledger):
    from exam_scheduling.conflicts import ConflictValidator

    return ConflictValidator(ledger)


class TestClassroomConflict:
    def test_scenario_a(self, validator):
        """A101 holds 09:00-11:00; a 10:00-12:00 candidate in A101 conflicts."""
        from exam_scheduling.types import ConflictKind

        result = validator.validate(_candidate(groups=("G3",)))
        assert result.conflict is ConflictKind.CLASSROOM
        assert result.classroom_sessions == ("S-A1",)
        assert result.group_conflicts == ()

    @pytest.mark.parametrize("start,end", [("11:00", "12:00"), ("07:00", "09:00")])
    def test_touching_intervals_do_not_conflict(self, validator, start, end):
        result = validator.validate(_candidate(groups=("G3",), start=start, end=end))
        assert result.ok

    def test_other_date_free(self, validator):
        assert validator.validate(_candidate(day=date(2024, 5, 2))).ok

    def test_cancelled_session_ignored(self, validator):
        # S-X1 (cancelled) occupies A101 and G3 on Wednesday 10:00-12:00.
        result = validator.validate(_candidate(groups=("G3",), day=DAYS["wed"]))
        assert result.ok

    def test_exclude_session(self, validator):
        result = validator.validate(_candidate(groups=("G3",)), exclude_session_id="S-A1")
        assert result.ok


class TestGroupConflict:
    def test_group_conflict_in_other_room(self, validator):
        from exam_scheduling.types import ConflictKind

        result = validator.validate(_candidate(classroom="B201", groups=("G1", "G2")))
        assert result.conflict is ConflictKind.GROUP
        assert result.group_conflicts == (("S-A1", "G1"),)

    def test_every_conflicting_group_reported(self, ledger, validator):
        ledger.add_session(make_session(
            "S-G2", date=SCENARIO_A_DATE, start="10:30", end="11:30",
            classroom="B201", groups=("G2",),
        ))
        result = validator.validate(_candidate(classroom="A102", groups=("G2", "G1")))
        assert result.group_conflicts == (("S-G2", "G2"), ("S-A1", "G1"))
        assert result.details["groupConflicts"] == [
            {"sessionId": "S-G2", "group": "G2"},
            {"sessionId": "S-A1", "group": "G1"},
        ]


class TestPrecedence:
    def test_classroom_reported_before_group(self, validator):
        """Both lists are filled; the kind is the classroom conflict."""
        from exam_scheduling.types import ConflictKind

        result = validator.validate(_candidate(groups=("G1",)))
        assert result.conflict is ConflictKind.CLASSROOM
        assert result.classroom_sessions == ("S-A1",)
        assert result.group_conflicts == (("S-A1", "G1"),)

    def test_validate_is_read_only(self, ledger, validator):
        before = ledger.list_sessions()
        validator.validate(_candidate())
        assert ledger.list_sessions() == before
