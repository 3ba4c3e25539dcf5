"""
Tests for models.py - grading system tree and grade key ownership.
"""

import pytest
from datetime import datetime, timezone

from gradeviewer.errors import DuplicateCategoryId, DuplicateGradeKey
from gradeviewer.models import (
    GradingCategory,
    GradingComponent,
    GradingSystem,
    format_timestamp,
    parse_timestamp,
)


def _system():
    return GradingSystem(categories=[
        GradingCategory("exams", "Exams", 60, [
            GradingComponent("midterm", "Midterm", 30, ["mt"]),
            GradingComponent("final", "Final", 30, ["fe"]),
        ]),
        GradingCategory("standing", "Class Standing", 40, [
            GradingComponent("quizzes", "Quizzes", 40, ["q1", "q2"]),
        ]),
    ])


class TestCategoryIds:
    """Category ids are unique within a grading system."""

    def test_duplicate_category_rejected_on_construction(self):
        with pytest.raises(DuplicateCategoryId) as exc:
            GradingSystem(categories=[
                GradingCategory("exams", "Exams", 50, [GradingComponent("a", "A", 50, ["q1"])]),
                GradingCategory("exams", "Exams again", 50, [GradingComponent("b", "B", 50, ["q2"])]),
            ])
        assert exc.value.category_id == "exams"

    def test_distinct_categories_accepted(self):
        assert [c.id for c in _system().categories] == ["exams", "standing"]


class TestGradeKeyOwnership:
    """A grade key belongs to at most one component."""

    def test_duplicate_key_rejected_on_construction(self):
        with pytest.raises(DuplicateGradeKey) as exc:
            GradingSystem(categories=[
                GradingCategory("c", "C", 100, [
                    GradingComponent("a", "A", 50, ["q1"]),
                    GradingComponent("b", "B", 50, ["q1"]),
                ]),
            ])
        assert exc.value.grade_key == "q1"
        assert exc.value.component_ids == ["a", "b"]

    def test_assign_moves_key(self):
        system = _system()

        system.assign_grade_key("q1", "midterm")

        assert system.find_component("midterm").grade_keys == ["mt", "q1"]
        assert system.find_component("quizzes").grade_keys == ["q2"]
        assert system.grade_key_owner("q1").id == "midterm"

    def test_assign_new_key(self):
        system = _system()

        system.assign_grade_key("q3", "quizzes")

        assert system.find_component("quizzes").grade_keys == ["q1", "q2", "q3"]

    def test_assign_is_idempotent(self):
        system = _system()

        system.assign_grade_key("q1", "quizzes")
        system.assign_grade_key("q1", "quizzes")

        assert system.find_component("quizzes").grade_keys == ["q1", "q2"]

    def test_assign_to_unknown_component_changes_nothing(self):
        system = _system()

        with pytest.raises(KeyError):
            system.assign_grade_key("q1", "nope")

        assert system.grade_key_owner("q1").id == "quizzes"

    def test_unassign(self):
        system = _system()

        system.unassign_grade_key("fe")

        assert system.grade_key_owner("fe") is None
        assert system.find_component("final").grade_keys == []


class TestSerialization:
    """Test stored JSON shape."""

    def test_to_dict_uses_grade_keys_camel_case(self):
        data = _system().to_dict()

        assert data["passing_grade"] == 50
        component = data["categories"][0]["components"][0]
        assert component == {"id": "midterm", "name": "Midterm", "weight": 30, "gradeKeys": ["mt"]}

    def test_components_in_declared_order(self):
        assert [c.id for c in _system().components()] == ["midterm", "final", "quizzes"]


class TestTimestamps:
    """Test UTC timestamp formatting."""

    def test_format_utc(self):
        ts = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert format_timestamp(ts) == "2024-01-02T03:04:05Z"

    def test_naive_treated_as_utc(self):
        assert format_timestamp(datetime(2024, 1, 2)) == "2024-01-02T00:00:00Z"

    def test_parse(self):
        assert parse_timestamp("2024-01-02T03:04:05Z") == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
