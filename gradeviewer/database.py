"""
Database schema and connection management.

SQLite through SQLAlchemy. Grading systems, raw grades, max scores and
computed grades are JSON columns, mirroring the hosted schema.
"""

import uuid
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Subject(Base):
    """A teacher's subject and its grading system."""

    __tablename__ = "subjects"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    teacher_id = Column(String, nullable=True)
    grading_system = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=_now)


class Record(Base):
    """One student's grade record in one subject."""

    __tablename__ = "records"

    id = Column(String, primary_key=True, default=_new_id)
    subject_id = Column(String, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    student_name = Column(String, nullable=False)
    student_number = Column(String, nullable=False, index=True)
    email = Column(String, nullable=False, default="")
    code = Column(String, nullable=False, index=True)
    grades = Column(JSON, nullable=False, default=dict)
    max_scores = Column(JSON, nullable=False, default=dict)
    computed_grade = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_now)
    updated_at = Column(DateTime, nullable=False, default=_now, onupdate=_now)


class StudentEmailCache(Base):
    """LMS identities keyed by student number."""

    __tablename__ = "student_email_cache"

    id = Column(String, primary_key=True, default=_new_id)
    student_number = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=False, index=True)
    fullname = Column(String, nullable=True)
    moodle_user_id = Column(Integer, nullable=True)
    last_synced_at = Column(DateTime, nullable=True, default=_now)
    created_at = Column(DateTime, nullable=False, default=_now)
    updated_at = Column(DateTime, nullable=False, default=_now, onupdate=_now)


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    engine = create_engine(f"sqlite:///{db_path}")
    Session = sessionmaker(bind=engine)
    return Session()
