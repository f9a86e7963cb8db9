"""Tests for time-derived session status and legacy status splitting."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import DAYS, make_session

START = datetime(2024, 5, 8, 9, 0)
END = datetime(2024, 5, 8, 11, 0)


class TestComputeDisplayStatus:
    """Scenario C: 09:00-11:00, half-open."""

    @pytest.mark.parametrize(
        "now,expected",
        [
            (datetime(2024, 5, 8, 8, 0), "scheduled"),
            (datetime(2024, 5, 8, 9, 0), "ongoing"),
            (datetime(2024, 5, 8, 10, 0), "ongoing"),
            (datetime(2024, 5, 8, 11, 0), "completed"),
            (datetime(2024, 5, 9, 8, 0), "completed"),
        ],
    )
    def test_phase_from_time(self, now, expected):
        from exam_scheduling.status import compute_display_status

        assert compute_display_status("scheduled", START, END, now).status.value == expected

    @pytest.mark.parametrize("hour", [8, 10, 12])
    def test_cancelled_never_overridden(self, hour):
        from exam_scheduling.status import compute_display_status
        from exam_scheduling.types import LifecycleStatus

        shown = compute_display_status("cancelled", START, END, datetime(2024, 5, 8, hour))
        assert shown.status is LifecycleStatus.CANCELLED

    def test_exam_type_kept_alongside_phase(self):
        from exam_scheduling.status import compute_display_status
        from exam_scheduling.types import ExamType, LifecycleStatus

        shown = compute_display_status("examen_tp", START, END, datetime(2024, 5, 8, 10))
        assert shown.status is LifecycleStatus.ONGOING
        assert shown.exam_type is ExamType.EXAMEN_TP

    def test_explicit_exam_type(self):
        from exam_scheduling.status import compute_display_status
        from exam_scheduling.types import ExamType

        shown = compute_display_status(
            "scheduled", START, END, datetime(2024, 5, 8, 12), ExamType.DEVOIR_SURVEILLE
        )
        assert shown.exam_type is ExamType.DEVOIR_SURVEILLE

    def test_stored_time_derived_status_is_recomputed(self):
        from exam_scheduling.status import compute_display_status
        from exam_scheduling.types import LifecycleStatus

        shown = compute_display_status("completed", START, END, datetime(2024, 5, 8, 8))
        assert shown.status is LifecycleStatus.SCHEDULED

    def test_aware_datetime_rejected(self):
        from exam_scheduling.status import compute_display_status

        with pytest.raises(TypeError, match="now must be a naive datetime"):
            compute_display_status("scheduled", START, END, datetime.now(timezone.utc))


class TestSplitStatus:
    @pytest.mark.parametrize(
        "raw,lifecycle,exam_type",
        [
            (None, "scheduled", None),
            ("scheduled", "scheduled", None),
            ("ongoing", "scheduled", None),
            ("cancelled", "cancelled", None),
            ("devoir_surveille", "scheduled", "devoir_surveille"),
            ("examen_rattrapage", "scheduled", "examen_rattrapage"),
        ],
    )
    def test_split(self, raw, lifecycle, exam_type):
        from exam_scheduling.status import split_status

        status, tag = split_status(raw)
        assert status.value == lifecycle
        assert (tag.value if tag else None) == exam_type

    def test_unknown_rejected(self):
        from exam_scheduling.status import split_status

        with pytest.raises(ValueError):
            split_status("postponed")


class TestDisplayStatus:
    def test_session_not_rewritten(self):
        from exam_scheduling.status import display_status
        from exam_scheduling.types import LifecycleStatus

        session = make_session(date=DAYS["wed"], start="14:00", end="16:00")
        shown = display_status(session, datetime(2024, 5, 8, 15, 0))
        assert shown.status is LifecycleStatus.ONGOING
        assert session.status is LifecycleStatus.SCHEDULED


_statuses = st.sampled_from([
    "scheduled", "ongoing", "completed", "cancelled",
    "devoir_surveille", "examen_tp", "examen_principal", "examen_rattrapage",
])
_offsets = st.integers(min_value=-3 * 24 * 60, max_value=3 * 24 * 60)


class TestIdempotence:
    """Calling twice with the same now gives the same answer."""

    @given(stored=_statuses, minutes=_offsets, length=st.integers(min_value=1, max_value=600))
    @settings(max_examples=200)
    def test_same_now_same_result(self, stored, minutes, length):
        from exam_scheduling.status import compute_display_status

        end = START + timedelta(minutes=length)
        now = START + timedelta(minutes=minutes)
        first = compute_display_status(stored, START, end, now)
        assert compute_display_status(stored, START, end, now) == first

    @given(stored=_statuses, minutes=_offsets)
    @settings(max_examples=200)
    def test_phase_matches_half_open_interval(self, stored, minutes):
        from exam_scheduling.status import compute_display_status

        now = START + timedelta(minutes=minutes)
        shown = compute_display_status(stored, START, END, now).status.value
        if stored == "cancelled":
            assert shown == "cancelled"
        elif now < START:
            assert shown == "scheduled"
        elif now < END:
            assert shown == "ongoing"
        else:
            assert shown == "completed"
