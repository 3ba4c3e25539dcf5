"""
Subject Grade Recompute.

Responsibilities:
- Recompute every record's grade in a subject from its current scores.
- Persist each ComputedGrade onto its record, replacing the old one.

Non-Responsibilities:
- No score import.
- No partial recompute: an invalid grading system writes nothing.

Invariant:
All grades are computed before the first write.
"""

from datetime import datetime
from typing import List, Optional, Tuple

from gradeviewer.grading import compute_grades_for_subject
from gradeviewer.logger import StructuredLogger, get_logger
from gradeviewer.models import ComputedGrade, GradeRecord


def recompute_subject_grades(
    subject_id: str,
    subjects,
    records,
    computed_at: Optional[datetime] = None,
    logger: Optional[StructuredLogger] = None,
) -> List[Tuple[GradeRecord, ComputedGrade]]:
    """
    Recompute and store grades for a subject.

    Args:
        subject_id: Subject to recompute
        subjects: Repository with get_grading_system(subject_id)
        records: Record store with read_by_subject() and write()

    Returns:
        (record, computed grade) pairs in record order

    Raises:
        GradingSystemNotConfigured / ValidationError: nothing is written
    """
    logger = logger or get_logger()
    system = subjects.get_grading_system(subject_id)
    subject_records = records.read_by_subject(subject_id)

    computed = compute_grades_for_subject(system, subject_records, computed_at)

    for record, grade in zip(subject_records, computed):
        records.write(record.id, {"computed_grade": grade.to_dict()})

    logger.record_grades_computed(len(computed))
    logger.info("Recomputed subject grades", subject_id=subject_id, records=len(computed))
    return list(zip(subject_records, computed))
