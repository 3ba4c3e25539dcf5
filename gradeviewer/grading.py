"""
Grade computation engine.

Turns a GradingSystem plus a record's raw scores into a ComputedGrade:

    component %  = 100 * sum(score) / sum(max_score)        (0 if no max)
    category %   = weighted mean of component % by component weight
    category pts = category % / 100 * category weight
    final grade  = sum(category pts), rounded to 2 decimals at the end

Pure: no I/O, inputs are never mutated, and sums always run in declared
category/component order so floating-point results are reproducible.
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Mapping, Optional

from .errors import (
    CategoryWeightMismatch,
    ComponentWeightMismatch,
    GradingSystemNotConfigured,
)
from .models import (
    CategoryBreakdown,
    CategoryScore,
    ComponentBreakdown,
    ComputedGrade,
    GradeKeyScore,
    GradeRecord,
    GradingCategory,
    GradingComponent,
    GradingSystem,
)


def round_half_away(value: float, places: int = 2) -> float:
    """Round half away from zero (Decimal's ROUND_HALF_UP) on the shortest repr."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def validate(system: GradingSystem) -> None:
    """
    Check weight sums with exact equality.

    Raises:
        GradingSystemNotConfigured: system has no categories
        CategoryWeightMismatch: category weights don't sum to 100
        ComponentWeightMismatch: a category's components don't sum to its weight
    """
    if not system.categories:
        raise GradingSystemNotConfigured()

    total = 0
    for category in system.categories:
        total += category.weight
    if total != 100:
        raise CategoryWeightMismatch(total)

    for category in system.categories:
        component_total = 0
        for component in category.components:
            component_total += component.weight
        if component_total != category.weight:
            raise ComponentWeightMismatch(category.id, component_total, category.weight)


def _key_scores(
    component: GradingComponent,
    grades: Mapping[str, float],
    max_scores: Mapping[str, float],
) -> List[GradeKeyScore]:
    return [
        GradeKeyScore(key, grades.get(key) or 0, max_scores.get(key) or 0)
        for key in component.grade_keys
    ]


def _component_percentage(key_scores: Iterable[GradeKeyScore]) -> float:
    total = 0
    total_max = 0
    for item in key_scores:
        total += item.score
        total_max += item.max_score
    if total_max > 0:
        return total / total_max * 100
    return 0


def _category_percentage(category: GradingCategory, percentages: List[float]) -> float:
    weighted_sum = 0
    total_weight = 0
    for component, pct in zip(category.components, percentages):
        weighted_sum += pct * component.weight
        total_weight += component.weight
    if total_weight > 0:
        return weighted_sum / total_weight
    return 0


def _compute(
    system: GradingSystem,
    record: GradeRecord,
    computed_at: Optional[datetime],
) -> ComputedGrade:
    grades = record.grades or {}
    max_scores = record.max_scores or {}

    category_scores: Dict[str, CategoryScore] = {}
    breakdown: List[CategoryBreakdown] = []
    final_grade = 0

    for category in system.categories:
        component_rows: List[ComponentBreakdown] = []
        percentages: List[float] = []
        for component in category.components:
            key_scores = _key_scores(component, grades, max_scores)
            pct = _component_percentage(key_scores)
            percentages.append(pct)
            component_rows.append(ComponentBreakdown(
                component_id=component.id,
                component_name=component.name,
                component_weight=component.weight,
                component_score=round_half_away(pct),
                grade_keys=key_scores,
            ))

        category_pct = _category_percentage(category, percentages)
        score = category_pct / 100 * category.weight
        final_grade += score

        category_scores[category.id] = CategoryScore(
            score=score,
            max_score=category.weight,
            weight=category.weight,
        )
        breakdown.append(CategoryBreakdown(
            category_id=category.id,
            category_name=category.name,
            category_weight=category.weight,
            category_score=round_half_away(score),
            components=component_rows,
        ))

    return ComputedGrade(
        final_grade=round_half_away(final_grade),
        category_scores=category_scores,
        breakdown=breakdown,
        computed_at=computed_at or datetime.now(timezone.utc),
    )


def compute_grade(
    system: GradingSystem,
    record: GradeRecord,
    computed_at: Optional[datetime] = None,
) -> ComputedGrade:
    """
    Compute one record's final grade and breakdown.

    Args:
        system: Grading system of the record's subject
        record: Record holding grades and max_scores
        computed_at: Timestamp stamped on the result (default: now, UTC)

    Raises:
        GradingSystemNotConfigured, CategoryWeightMismatch, ComponentWeightMismatch
    """
    validate(system)
    return _compute(system, record, computed_at)


def compute_grades_for_subject(
    system: GradingSystem,
    records: Iterable[GradeRecord],
    computed_at: Optional[datetime] = None,
) -> List[ComputedGrade]:
    """Validate once, then compute every record. Invalid systems compute nothing."""
    validate(system)
    stamp = computed_at or datetime.now(timezone.utc)
    return [_compute(system, record, stamp) for record in records]


def is_passing(system: GradingSystem, computed: ComputedGrade) -> bool:
    return computed.final_grade >= system.passing_grade
