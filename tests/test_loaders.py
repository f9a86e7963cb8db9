"""Tests for loading campus fixtures into a ledger.

Test data loaded from: data/fixtures/campus.json
"""

from __future__ import annotations

import json

import pytest

from conftest import CAMPUS_PATH, DAYS, campus_data


class TestLoadCampus:
    def test_load_campus_json(self):
        from exam_scheduling.loaders import load_campus_json

        ledger = load_campus_json(CAMPUS_PATH)
        assert [t.teacher_id for t in ledger.list_teachers()] == ["T1", "T2", "T3", "T4"]
        assert [c.classroom_id for c in ledger.list_classrooms()] == ["A101", "A102", "B201"]
        assert [g.group_id for g in ledger.list_groups()] == ["G1", "G2", "G3"]
        assert [s.session_id for s in ledger.list_sessions()] == ["S-A1", "S-E1", "S-X1"]

    def test_teacher_rules_and_exceptions(self, ledger):
        t1 = ledger.get_teacher("T1")
        assert t1.name == "Amina Benali"
        assert [(w.day_of_week, w.start, w.end) for w in t1.recurring] == [
            (0, "09:00", "12:00"), (2, "08:00", "18:00"),
        ]
        (blocked,) = t1.exceptions
        assert blocked.date == DAYS["mon"]
        assert blocked.is_available is False
        assert blocked.reason == "Faculty meeting"

    def test_special_occasions_alias(self, ledger):
        (opening,) = ledger.get_teacher("T3").exceptions
        assert opening.is_available is True
        assert (opening.start, opening.end) == ("14:00", "16:00")

    def test_legacy_status_is_split(self, ledger):
        from exam_scheduling.types import ExamType, LifecycleStatus

        session = ledger.get_session("S-E1")
        assert session.status is LifecycleStatus.SCHEDULED
        assert session.exam_type is ExamType.EXAMEN_PRINCIPAL
        assert session.exam_duration == 120

    def test_cancelled_session(self, ledger):
        session = ledger.get_session("S-X1")
        assert session.is_cancelled
        assert session.notes == "Moved to the resit period"

    def test_classroom_details(self, ledger):
        room = ledger.get_classroom("B201")
        assert (room.capacity, room.building, room.room_number) == (120, "B", "201")


class TestValidation:
    def test_invalid_teacher_rules_raise(self, tmp_path):
        from exam_scheduling.loaders import load_campus_json

        data = campus_data()
        data["teachers"][0]["availability"].append(
            {"day": "Caturday", "startTime": "12:00", "endTime": "09:00"}
        )
        path = tmp_path / "campus.json"
        path.write_text(json.dumps(data))

        with pytest.raises(ValueError) as info:
            load_campus_json(path)
        assert "teacher T1" in str(info.value)
        assert "invalid day 'Caturday'" in str(info.value)

    def test_invalid_exception_raises(self):
        from exam_scheduling.loaders import teacher_from_dict

        with pytest.raises(ValueError, match="invalid date"):
            teacher_from_dict({
                "id": "TX",
                "exceptions": [{"date": "someday", "startTime": "09:00", "endTime": "10:00"}],
            })

    def test_sections_are_optional(self):
        from exam_scheduling.loaders import ledger_from_dict

        ledger = ledger_from_dict({})
        assert ledger.list_teachers() == []
        assert ledger.list_sessions() == []


class TestRequirements:
    def test_requirement_from_dict(self):
        from exam_scheduling.loaders import requirement_from_dict
        from exam_scheduling.types import ExamType

        requirement = requirement_from_dict({
            "id": "R-1",
            "subject": "Optics",
            "groups": ["G1", "G2"],
            "headcount": 58,
            "supervisorsNeeded": 2,
            "preferredSupervisors": ["T2"],
            "examType": "examen_rattrapage",
        })
        assert requirement.groups == ("G1", "G2")
        assert requirement.headcount == 58
        assert requirement.supervisors_needed == 2
        assert requirement.preferred_supervisors == ("T2",)
        assert requirement.exam_type is ExamType.EXAMEN_RATTRAPAGE
