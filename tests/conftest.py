"""Shared test fixtures and data loading for exam-scheduling.

All test data lives in data/fixtures/ as JSON files.  This module loads
that data and exposes helper functions + pytest fixtures for the tests.

Reference week: Sun 2024-05-05 through Sat 2024-05-11.
Campus: teachers T1-T4, classrooms A101/A102/B201, groups G1-G3.
"""

from __future__ import annotations

import copy
import json
from datetime import date
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
FIXTURES_DIR = Path(__file__).resolve().parent.parent / "data" / "fixtures"
SCENARIOS_DIR = FIXTURES_DIR / "scenarios"
CAMPUS_PATH = FIXTURES_DIR / "campus.json"


# ---------------------------------------------------------------------------
# Data loaders
# ---------------------------------------------------------------------------
def _load_json(path: Path):
    with open(path) as f:
        return json.load(f)


_campus = _load_json(CAMPUS_PATH)

# Day lookup:  DAYS["mon"] → date(2024, 5, 6)
DAYS: dict[str, date] = {
    d["name"]: date.fromisoformat(d["date"]) for d in _campus["reference_week"]
}


# ---------------------------------------------------------------------------
# Convenience helpers (importable by test modules)
# ---------------------------------------------------------------------------
def campus_data() -> dict:
    """A private copy of campus.json, safe to modify."""
    return copy.deepcopy(_campus)


def make_ledger(data: dict | None = None):
    """Build an OccupancyLedger from campus.json (or the given mapping)."""
    from exam_scheduling.loaders import ledger_from_dict

    return ledger_from_dict(campus_data() if data is None else data)


def make_session(session_id: str = "S-NEW", **fields):
    """A committed Session with sensible defaults for anything not given."""
    from exam_scheduling.types import Session

    values = {
        "subject": "Compilers",
        "date": DAYS["wed"],
        "start": "14:00",
        "end": "16:00",
        "classroom": "B201",
        "groups": ("G1",),
        "supervisors": (),
    }
    values.update(fields)
    return Session(session_id=session_id, **values)


def session_payload(**fields) -> dict:
    """A valid createSession payload for a free slot in the campus fixture."""
    payload = {
        "subject": "Compilers",
        "date": DAYS["wed"].isoformat(),
        "startTime": "14:00",
        "endTime": "16:00",
        "classroom": "B201",
        "groups": ["G1"],
        "supervisors": ["T2"],
        "status": "scheduled",
        "sections": ["L2-INFO"],
    }
    payload.update(fields)
    return payload


# ---------------------------------------------------------------------------
# Scenario loader
# ---------------------------------------------------------------------------
def load_scenarios(name: str):
    """Load a scenario file from data/fixtures/scenarios/{name}.json."""
    return _load_json(SCENARIOS_DIR / f"{name}.json")


def generation_case(case_id: str) -> tuple[dict, dict]:
    """(case, campus mapping) for a case in scenarios/generation.json."""
    data = load_scenarios("generation")
    case = next(c for c in data["cases"] if c["id"] == case_id)
    teachers = {t["id"]: t for t in data["weekend_teachers"]}
    campus = {
        "teachers": [teachers[tid] for tid in case["teachers"]],
        "classrooms": case["classrooms"],
        "requirements": case["requirements"],
        "sessions": case.get("sessions", []),
    }
    return case, copy.deepcopy(campus)


def slots_of(case: dict):
    from exam_scheduling.types import Slot

    return [Slot(s["startTime"], s["endTime"]) for s in case["dailySlots"]]


# ---------------------------------------------------------------------------
# pytest fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def ledger():
    """Campus ledger with the three seeded sessions."""
    return make_ledger()


@pytest.fixture
def resolver(ledger):
    from exam_scheduling.availability import AvailabilityResolver

    return AvailabilityResolver(ledger)


@pytest.fixture
def lifecycle(ledger):
    from exam_scheduling.lifecycle import SessionLifecycle

    return SessionLifecycle(ledger)
