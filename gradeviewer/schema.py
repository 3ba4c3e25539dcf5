from typing import Any, Dict, List, Optional

from .errors import InvalidGradingSystem
from .models import (
    DEFAULT_PASSING_GRADE,
    GradingCategory,
    GradingComponent,
    GradingSystem,
)


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _grade_keys_of(component: Dict[str, Any]) -> Any:
    if "gradeKeys" in component:
        return component["gradeKeys"]
    return component.get("grade_keys", [])


def _passing_grade_of(data: Dict[str, Any]) -> Any:
    if "passing_grade" in data:
        return data["passing_grade"]
    return data.get("passingGrade")


def _check_node(node: Any, where: str, errors: List[str]) -> bool:
    if not isinstance(node, dict):
        errors.append(f"{where} must be an object")
        return False
    if not _is_non_empty_str(node.get("id")):
        errors.append(f"{where}: 'id' must be a non-empty string")
    if not isinstance(node.get("name"), str):
        errors.append(f"{where}: 'name' must be a string")
    weight = node.get("weight")
    if not _is_number(weight):
        errors.append(f"{where}: 'weight' must be a number")
    elif weight < 0 or weight > 100:
        errors.append(f"{where}: 'weight' must be between 0 and 100")
    return True


def validate_grading_system_data(data: Optional[Dict[str, Any]]) -> List[str]:
    """
    Returns a list of shape errors for a stored grading system payload.
    Empty list means it parses. Weight sums are not checked here; that is
    grading.validate()'s job once the system is built.
    """
    errors: List[str] = []
    if data is None:
        return errors
    if not isinstance(data, dict):
        return ["Grading system must be an object"]

    passing = _passing_grade_of(data)
    if passing is not None:
        if not _is_number(passing):
            errors.append("'passing_grade' must be a number")
        elif passing < 0 or passing > 100:
            errors.append("'passing_grade' must be between 0 and 100")

    categories = data.get("categories", [])
    if not isinstance(categories, list):
        errors.append("'categories' must be a list")
        return errors

    category_ids: set = set()
    component_ids: set = set()
    key_owner: Dict[str, str] = {}

    for ci, category in enumerate(categories):
        where = f"categories[{ci}]"
        if not _check_node(category, where, errors):
            continue
        cat_id = category.get("id")
        if _is_non_empty_str(cat_id):
            if cat_id in category_ids:
                errors.append(f"{where}: duplicate id '{cat_id}'")
            category_ids.add(cat_id)

        components = category.get("components", [])
        if not isinstance(components, list):
            errors.append(f"{where}: 'components' must be a list")
            continue

        for pi, component in enumerate(components):
            cwhere = f"{where}.components[{pi}]"
            if not _check_node(component, cwhere, errors):
                continue
            comp_id = component.get("id")
            if _is_non_empty_str(comp_id):
                if comp_id in component_ids:
                    errors.append(f"{cwhere}: duplicate id '{comp_id}'")
                component_ids.add(comp_id)

            keys = _grade_keys_of(component)
            if not isinstance(keys, list):
                errors.append(f"{cwhere}: 'gradeKeys' must be a list")
                continue
            for key in keys:
                if not _is_non_empty_str(key):
                    errors.append(f"{cwhere}: grade keys must be non-empty strings")
                    continue
                if key in key_owner:
                    errors.append(
                        f"{cwhere}: grade key '{key}' already assigned to component '{key_owner[key]}'"
                    )
                else:
                    key_owner[key] = str(comp_id)

    return errors


def parse_grading_system(data: Optional[Dict[str, Any]]) -> GradingSystem:
    """
    Build a GradingSystem from its stored JSON.

    A missing or empty payload yields a system with no categories.

    Raises:
        InvalidGradingSystem: listing every shape problem found
    """
    errors = validate_grading_system_data(data)
    if errors:
        raise InvalidGradingSystem(errors)
    if not data:
        return GradingSystem()

    passing = _passing_grade_of(data)
    categories = [
        GradingCategory(
            id=category["id"],
            name=category["name"],
            weight=category["weight"],
            components=[
                GradingComponent(
                    id=component["id"],
                    name=component["name"],
                    weight=component["weight"],
                    grade_keys=list(_grade_keys_of(component)),
                )
                for component in category.get("components", [])
            ],
        )
        for category in data.get("categories", [])
    ]
    return GradingSystem(
        categories=categories,
        passing_grade=DEFAULT_PASSING_GRADE if passing is None else passing,
    )
