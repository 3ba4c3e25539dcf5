"""
Grade Records Repository.

Responsibilities:
- Read grade records as domain GradeRecord objects.
- Write partial field updates, one record per commit.

Non-Responsibilities:
- No grade computation.
- No matching or update decisions.

Invariant:
Repositories must not encode domain decisions.
"""

from typing import Any, Dict, List, Optional

from gradeviewer.database import Record
from gradeviewer.errors import RecordNotFound
from gradeviewer.models import GradeRecord

WRITABLE_FIELDS = {"student_name", "student_number", "email", "code", "grades", "max_scores", "computed_grade"}


def to_domain(row: Record) -> GradeRecord:
    return GradeRecord(
        id=row.id,
        subject_id=row.subject_id,
        student_name=row.student_name,
        student_number=row.student_number,
        email=row.email,
        code=row.code,
        grades=dict(row.grades or {}),
        max_scores=dict(row.max_scores or {}),
        computed_grade=row.computed_grade,
    )


class RecordRepository:
    """RecordStore over a SQLAlchemy session."""

    def __init__(self, session):
        self.session = session

    def add(self, record: GradeRecord) -> GradeRecord:
        row = Record(
            subject_id=record.subject_id,
            student_name=record.student_name,
            student_number=record.student_number or "",
            email=record.email or "",
            code=record.code or "",
            grades=dict(record.grades),
            max_scores=dict(record.max_scores),
            computed_grade=record.computed_grade,
        )
        if record.id:
            row.id = record.id
        self.session.add(row)
        self.session.commit()
        return to_domain(row)

    def get(self, record_id: str) -> GradeRecord:
        row = self.session.get(Record, record_id)
        if row is None:
            raise RecordNotFound(f"Record not found: {record_id}")
        return to_domain(row)

    def read_by_subject(self, subject_id: str) -> List[GradeRecord]:
        rows = (
            self.session.query(Record)
            .filter_by(subject_id=subject_id)
            .order_by(Record.student_name, Record.id)
            .all()
        )
        return [to_domain(r) for r in rows]

    def read_by_student_number(self, student_number: str) -> List[GradeRecord]:
        rows = self.session.query(Record).filter_by(student_number=student_number).all()
        return [to_domain(r) for r in rows]

    def find_by_credentials(self, subject_id: str, student_number: str, code: str) -> Optional[GradeRecord]:
        row = (
            self.session.query(Record)
            .filter_by(subject_id=subject_id, student_number=student_number, code=code)
            .first()
        )
        return to_domain(row) if row is not None else None

    def write(self, record_id: str, fields: Dict[str, Any]) -> None:
        """
        Apply a partial update and commit.

        Raises:
            ValueError: Unknown field name
            RecordNotFound: No record with this id
        """
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown record fields: {', '.join(sorted(unknown))}")
        row = self.session.get(Record, record_id)
        if row is None:
            raise RecordNotFound(f"Record not found: {record_id}")
        try:
            for name, value in fields.items():
                setattr(row, name, value)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
