"""
Pytest configuration and shared fixtures.
"""

import pytest
from datetime import datetime, timezone
from typing import Any, Dict, List

from gradeviewer.database import get_session, init_database
from gradeviewer.logger import get_logger, reset_logger
from gradeviewer.models import ExternalCandidate, GradeRecord, LookupQuery
from gradeviewer.schema import parse_grading_system


@pytest.fixture(autouse=True)
def quiet_global_logger(tmp_path):
    """Route the process-wide logger to a temp dir, without console output."""
    reset_logger()
    get_logger(log_dir=tmp_path / "logs", enable_console=False)
    yield
    reset_logger()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)


@pytest.fixture
def grading_system_data() -> Dict[str, Any]:
    """Two categories: exams 60 (midterm 30, final 30) and class standing 40."""
    return {
        "categories": [
            {
                "id": "exams",
                "name": "Major Exams",
                "weight": 60,
                "components": [
                    {"id": "midterm", "name": "Midterm Exam", "weight": 30, "gradeKeys": ["mt"]},
                    {"id": "final", "name": "Final Exam", "weight": 30, "gradeKeys": ["fe"]},
                ],
            },
            {
                "id": "standing",
                "name": "Class Standing",
                "weight": 40,
                "components": [
                    {"id": "quizzes", "name": "Quizzes", "weight": 40, "gradeKeys": ["q1", "q2"]},
                ],
            },
        ],
        "passing_grade": 60,
    }


@pytest.fixture
def grading_system(grading_system_data):
    return parse_grading_system(grading_system_data)


@pytest.fixture
def single_component_data() -> Dict[str, Any]:
    """One category, one component, two quizzes."""
    return {
        "categories": [
            {
                "id": "all",
                "name": "Everything",
                "weight": 100,
                "components": [
                    {"id": "quizzes", "name": "Quizzes", "weight": 100, "gradeKeys": ["q1", "q2"]},
                ],
            }
        ]
    }


@pytest.fixture
def make_record():
    def _make(record_id="r1", name="Ana Reyes", number="2021-0001", email="", grades=None, max_scores=None, subject_id="s1"):
        return GradeRecord(
            id=record_id,
            subject_id=subject_id,
            student_name=name,
            student_number=number,
            email=email,
            code="ABC123",
            grades=grades or {},
            max_scores=max_scores or {},
        )
    return _make


@pytest.fixture
def db_session(tmp_path):
    """Create a temporary database and return a session."""
    db_path = tmp_path / "test.db"
    init_database(db_path)
    session = get_session(db_path)
    yield session
    session.close()


class FakeLookup:
    """Identity lookup returning canned candidates per search text."""

    source = "fake"

    def __init__(self, results: Dict[str, List[ExternalCandidate]] = None, failures: Dict[str, Exception] = None):
        self.results = results or {}
        self.failures = failures or {}
        self.queries: List[LookupQuery] = []

    def __call__(self, query: LookupQuery) -> List[ExternalCandidate]:
        self.queries.append(query)
        if query.search_text in self.failures:
            raise self.failures[query.search_text]
        return list(self.results.get(query.search_text, []))


class MemoryRecordStore:
    """Record store keeping GradeRecords in a dict."""

    def __init__(self, records: List[GradeRecord] = None, fail_on: set = None):
        self.records = {r.id: r for r in (records or [])}
        self.fail_on = fail_on or set()
        self.writes: List[tuple] = []

    def read_by_subject(self, subject_id):
        return [r for r in self.records.values() if r.subject_id == subject_id]

    def read_by_student_number(self, student_number):
        return [r for r in self.records.values() if r.student_number == student_number]

    def write(self, record_id, fields):
        if record_id in self.fail_on:
            raise RuntimeError(f"write failed for {record_id}")
        self.writes.append((record_id, dict(fields)))
        record = self.records[record_id]
        for name, value in fields.items():
            setattr(record, name, value)


@pytest.fixture
def fake_lookup_cls():
    return FakeLookup


@pytest.fixture
def memory_store_cls():
    return MemoryRecordStore


def candidate(external_id="101", full_name="Ana Reyes", email="ana@school.edu", id_number=None, username=None):
    return ExternalCandidate(
        external_id=external_id,
        full_name=full_name,
        email=email,
        id_number=id_number,
        username=username,
    )


@pytest.fixture
def make_candidate():
    return candidate
