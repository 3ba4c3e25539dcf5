"""
Subjects Repository.

Responsibilities:
- Load and store a subject's grading system JSON.

Non-Responsibilities:
- No weight validation beyond parsing the shape.
"""

from typing import List, Optional

from gradeviewer.database import Subject
from gradeviewer.errors import RecordNotFound
from gradeviewer.models import GradingSystem
from gradeviewer.schema import parse_grading_system


class SubjectRepository:
    def __init__(self, session):
        self.session = session

    def create(self, name: str, teacher_id: Optional[str] = None, subject_id: Optional[str] = None) -> str:
        subject = Subject(name=name, teacher_id=teacher_id, grading_system={})
        if subject_id:
            subject.id = subject_id
        self.session.add(subject)
        self.session.commit()
        return subject.id

    def _get(self, subject_id: str) -> Subject:
        subject = self.session.get(Subject, subject_id)
        if subject is None:
            raise RecordNotFound(f"Subject not found: {subject_id}")
        return subject

    def name_of(self, subject_id: str) -> str:
        return self._get(subject_id).name

    def list_ids(self) -> List[str]:
        return [s.id for s in self.session.query(Subject).order_by(Subject.name).all()]

    def get_grading_system(self, subject_id: str) -> GradingSystem:
        """Parsed grading system; an unset one has no categories."""
        return parse_grading_system(self._get(subject_id).grading_system or None)

    def save_grading_system(self, subject_id: str, system: GradingSystem) -> None:
        subject = self._get(subject_id)
        subject.grading_system = system.to_dict()
        self.session.commit()
