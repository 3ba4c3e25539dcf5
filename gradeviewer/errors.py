"""
Exception hierarchy for grade computation and identity reconciliation.

Computation errors are raised to the caller and refuse the whole call.
Lookup errors are caught per record by the reconciliation runner and only
propagate when they happen outside the per-record loop (login, sesskey).
"""

from typing import List, Optional


class GradeViewerError(Exception):
    """Base class for all domain errors."""
    pass


class ValidationError(GradeViewerError):
    """Grading system weights or shape are invalid."""
    pass


class CategoryWeightMismatch(ValidationError):
    """Category weights don't add up to 100."""

    def __init__(self, total: float):
        self.total = total
        super().__init__(f"Category weights must sum to 100 (got {total})")


class ComponentWeightMismatch(ValidationError):
    """Component weights don't add up to their category's weight."""

    def __init__(self, category_id: str, total: float, expected: float):
        self.category_id = category_id
        self.total = total
        self.expected = expected
        super().__init__(
            f"Component weights in category '{category_id}' must sum to {expected} (got {total})"
        )


class DuplicateGradeKey(ValidationError):
    """A grade key was assigned to more than one component."""

    def __init__(self, grade_key: str, component_ids: Optional[List[str]] = None):
        self.grade_key = grade_key
        self.component_ids = component_ids or []
        where = f" ({', '.join(self.component_ids)})" if self.component_ids else ""
        super().__init__(f"Grade key '{grade_key}' is assigned to more than one component{where}")


class DuplicateCategoryId(ValidationError):
    """Two categories share an id."""

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Category id '{category_id}' is used by more than one category")


class InvalidGradingSystem(ValidationError):
    """Stored grading system JSON does not fit the category/component shape."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid grading system: " + "; ".join(self.errors))


class NotConfiguredError(GradeViewerError):
    """No grading system exists for the subject."""
    pass


class GradingSystemNotConfigured(NotConfiguredError):
    def __init__(self, subject_id: Optional[str] = None):
        self.subject_id = subject_id
        suffix = f" for subject {subject_id}" if subject_id else ""
        super().__init__(f"Grading system not configured{suffix}")


class ExternalLookupError(GradeViewerError):
    """The LMS could not be reached or returned an error."""
    pass


class AuthenticationError(ExternalLookupError):
    """Login to the LMS failed or the session is not authenticated."""
    pass


class MalformedCandidate(ExternalLookupError):
    """The LMS returned a user entry that cannot be turned into a candidate."""
    pass


class RecordNotFound(GradeViewerError):
    """No grade record matches the given identifiers."""
    pass


class StudentNotFound(GradeViewerError):
    """The LMS has no matching student, or the match has no email."""
    pass
