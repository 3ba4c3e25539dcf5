"""
Domain types for grading systems, grade records and LMS candidates.

The grading system is a closed tree: GradingSystem -> GradingCategory ->
GradingComponent -> grade keys. A grade key belongs to at most one component
in the whole system; the constructor rejects duplicates and
assign_grade_key() moves a key atomically.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .errors import DuplicateCategoryId, DuplicateGradeKey

DEFAULT_PASSING_GRADE = 50


@dataclass
class GradingComponent:
    id: str
    name: str
    weight: float
    grade_keys: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "weight": self.weight,
            "gradeKeys": list(self.grade_keys),
        }


@dataclass
class GradingCategory:
    id: str
    name: str
    weight: float
    components: List[GradingComponent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "weight": self.weight,
            "components": [c.to_dict() for c in self.components],
        }


@dataclass
class GradingSystem:
    categories: List[GradingCategory] = field(default_factory=list)
    passing_grade: float = DEFAULT_PASSING_GRADE

    def __post_init__(self):
        seen = set()
        for category in self.categories:
            if category.id in seen:
                raise DuplicateCategoryId(category.id)
            seen.add(category.id)

        owners: Dict[str, List[str]] = {}
        for component in self.components():
            for key in component.grade_keys:
                owners.setdefault(key, []).append(component.id)
        for key, component_ids in owners.items():
            if len(component_ids) > 1:
                raise DuplicateGradeKey(key, component_ids)

    def components(self) -> List[GradingComponent]:
        """All components in declared category/component order."""
        return [c for category in self.categories for c in category.components]

    def find_component(self, component_id: str) -> GradingComponent:
        for component in self.components():
            if component.id == component_id:
                return component
        raise KeyError(f"Unknown component: {component_id}")

    def grade_key_owner(self, grade_key: str) -> Optional[GradingComponent]:
        for component in self.components():
            if grade_key in component.grade_keys:
                return component
        return None

    def assign_grade_key(self, grade_key: str, component_id: str) -> None:
        """Map a grade key to a component, removing it from every other one."""
        target = self.find_component(component_id)
        for component in self.components():
            if component is not target and grade_key in component.grade_keys:
                component.grade_keys.remove(grade_key)
        if grade_key not in target.grade_keys:
            target.grade_keys.append(grade_key)

    def unassign_grade_key(self, grade_key: str) -> None:
        for component in self.components():
            if grade_key in component.grade_keys:
                component.grade_keys.remove(grade_key)

    def to_dict(self) -> Dict[str, Any]:
        """Stored JSON shape (subjects.grading_system)."""
        return {
            "categories": [c.to_dict() for c in self.categories],
            "passing_grade": self.passing_grade,
        }


@dataclass
class GradeRecord:
    id: str
    subject_id: Optional[str]
    student_name: str
    student_number: Optional[str]
    email: Optional[str] = None
    code: Optional[str] = None
    grades: Dict[str, float] = field(default_factory=dict)
    max_scores: Dict[str, float] = field(default_factory=dict)
    computed_grade: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class GradeKeyScore:
    grade_key: str
    score: float
    max_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {"gradeKey": self.grade_key, "score": self.score, "maxScore": self.max_score}


@dataclass(frozen=True)
class ComponentBreakdown:
    component_id: str
    component_name: str
    component_weight: float
    component_score: float  # rounded percentage, not points
    grade_keys: List[GradeKeyScore] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "componentId": self.component_id,
            "componentName": self.component_name,
            "componentWeight": self.component_weight,
            "componentScore": self.component_score,
            "gradeKeys": [k.to_dict() for k in self.grade_keys],
        }


@dataclass(frozen=True)
class CategoryBreakdown:
    category_id: str
    category_name: str
    category_weight: float
    category_score: float
    components: List[ComponentBreakdown] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categoryId": self.category_id,
            "categoryName": self.category_name,
            "categoryWeight": self.category_weight,
            "categoryScore": self.category_score,
            "components": [c.to_dict() for c in self.components],
        }


@dataclass(frozen=True)
class CategoryScore:
    score: float
    max_score: float
    weight: float

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "maxScore": self.max_score, "weight": self.weight}


def format_timestamp(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class ComputedGrade:
    final_grade: float
    category_scores: Dict[str, CategoryScore]
    breakdown: List[CategoryBreakdown]
    computed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Persisted shape (records.computed_grade)."""
        return {
            "finalGrade": self.final_grade,
            "categoryScores": {k: v.to_dict() for k, v in self.category_scores.items()},
            "breakdown": [b.to_dict() for b in self.breakdown],
            "computedAt": format_timestamp(self.computed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComputedGrade":
        category_scores = {
            k: CategoryScore(v["score"], v["maxScore"], v["weight"])
            for k, v in data.get("categoryScores", {}).items()
        }
        breakdown = [
            CategoryBreakdown(
                category_id=b["categoryId"],
                category_name=b["categoryName"],
                category_weight=b["categoryWeight"],
                category_score=b["categoryScore"],
                components=[
                    ComponentBreakdown(
                        component_id=c["componentId"],
                        component_name=c["componentName"],
                        component_weight=c["componentWeight"],
                        component_score=c["componentScore"],
                        grade_keys=[
                            GradeKeyScore(k["gradeKey"], k["score"], k["maxScore"])
                            for k in c.get("gradeKeys", [])
                        ],
                    )
                    for c in b.get("components", [])
                ],
            )
            for b in data.get("breakdown", [])
        ]
        return cls(
            final_grade=data["finalGrade"],
            category_scores=category_scores,
            breakdown=breakdown,
            computed_at=parse_timestamp(data["computedAt"]),
        )


@dataclass(frozen=True)
class ExternalCandidate:
    """A user entry returned by the LMS search. Never persisted as is."""
    external_id: str
    full_name: str
    email: Optional[str] = None
    id_number: Optional[str] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class LookupQuery:
    search_text: str
    id_hint: Optional[str] = None


@dataclass
class StudentCacheEntry:
    student_number: str
    email: str
    fullname: Optional[str] = None
    moodle_user_id: Optional[int] = None
    last_synced_at: Optional[datetime] = None
