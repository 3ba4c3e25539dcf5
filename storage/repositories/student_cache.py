"""
Student Cache Repository.

Responsibilities:
- Find, create and update LMS identities keyed by student number.
- Search the cache for listing and by name.

Non-Responsibilities:
- No LMS access.
- No create-or-update decisions.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import or_

from gradeviewer.database import StudentEmailCache
from gradeviewer.errors import RecordNotFound
from gradeviewer.models import StudentCacheEntry

WRITABLE_FIELDS = {"email", "fullname", "moodle_user_id", "last_synced_at"}


def to_entry(row: StudentEmailCache) -> StudentCacheEntry:
    return StudentCacheEntry(
        student_number=row.student_number,
        email=row.email,
        fullname=row.fullname,
        moodle_user_id=row.moodle_user_id,
        last_synced_at=row.last_synced_at,
    )


class StudentCacheRepository:
    def __init__(self, session):
        self.session = session

    def _row(self, student_number: str) -> Optional[StudentEmailCache]:
        return self.session.query(StudentEmailCache).filter_by(student_number=student_number).first()

    def find(self, student_number: str) -> Optional[StudentCacheEntry]:
        row = self._row(student_number)
        return to_entry(row) if row is not None else None

    def create(self, entry: StudentCacheEntry) -> None:
        row = StudentEmailCache(
            student_number=entry.student_number,
            email=entry.email,
            fullname=entry.fullname,
            moodle_user_id=entry.moodle_user_id,
        )
        if entry.last_synced_at is not None:
            row.last_synced_at = entry.last_synced_at
        self.session.add(row)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def update(self, student_number: str, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown cache fields: {', '.join(sorted(unknown))}")
        row = self._row(student_number)
        if row is None:
            raise RecordNotFound(f"No cached student: {student_number}")
        for name, value in fields.items():
            setattr(row, name, value)
        self.session.commit()

    def search(self, text: str = "", limit: int = 50, offset: int = 0) -> List[StudentCacheEntry]:
        """Case-insensitive search over name, email and student number, ordered by name."""
        query = self.session.query(StudentEmailCache)
        if text.strip():
            pattern = f"%{text.strip()}%"
            query = query.filter(or_(
                StudentEmailCache.fullname.ilike(pattern),
                StudentEmailCache.email.ilike(pattern),
                StudentEmailCache.student_number.ilike(pattern),
            ))
        rows = query.order_by(StudentEmailCache.fullname, StudentEmailCache.student_number).offset(offset).limit(limit).all()
        return [to_entry(r) for r in rows]

    def search_by_name(self, name: str) -> List[StudentCacheEntry]:
        """Entries whose full name contains the given text, case-insensitively."""
        rows = (
            self.session.query(StudentEmailCache)
            .filter(StudentEmailCache.fullname.ilike(f"%{name.strip()}%"))
            .order_by(StudentEmailCache.student_number)
            .all()
        )
        return [to_entry(row) for row in rows]

    def count(self) -> int:
        return self.session.query(StudentEmailCache).count()
