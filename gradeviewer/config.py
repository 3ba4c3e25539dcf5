"""
Explicit configuration for reconciliation runs.

Course and enrolment ids are passed in by the caller (CLI flags or
environment). Remembering the last values used is the caller's business.
"""

import os
from dataclasses import dataclass
from typing import Optional

MIN_WORKERS = 1
MAX_WORKERS = 8


@dataclass(frozen=True)
class ReconciliationConfig:
    course_id: str
    enrol_id: str
    per_page: int = 10
    max_workers: int = 1
    match_threshold: float = 0.3

    def __post_init__(self):
        if not str(self.course_id).strip() or not str(self.enrol_id).strip():
            raise ValueError("course_id and enrol_id are required")
        if not MIN_WORKERS <= self.max_workers <= MAX_WORKERS:
            raise ValueError(f"max_workers must be between {MIN_WORKERS} and {MAX_WORKERS}")
        if self.per_page < 1:
            raise ValueError("per_page must be positive")
        if not 0 <= self.match_threshold <= 1:
            raise ValueError("match_threshold must be between 0 and 1")

    @classmethod
    def from_env(
        cls,
        course_id: Optional[str] = None,
        enrol_id: Optional[str] = None,
        max_workers: Optional[int] = None,
    ) -> "ReconciliationConfig":
        """Build from arguments, falling back to MOODLE_COURSE_ID / MOODLE_ENROL_ID etc."""
        course = course_id or os.getenv("MOODLE_COURSE_ID")
        enrol = enrol_id or os.getenv("MOODLE_ENROL_ID")
        if not course or not enrol:
            raise ValueError("MOODLE_COURSE_ID and MOODLE_ENROL_ID not set. Set env vars or pass --course-id/--enrol-id.")
        workers = max_workers if max_workers is not None else int(os.getenv("RECONCILE_MAX_WORKERS", "1"))
        return cls(
            course_id=str(course),
            enrol_id=str(enrol),
            per_page=int(os.getenv("MOODLE_PER_PAGE", "10")),
            max_workers=workers,
        )
