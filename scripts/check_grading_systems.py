#!/usr/bin/env python3
"""
Check every subject's stored grading system for shape and weight errors.

Usage:
    python scripts/check_grading_systems.py --db data/gradeviewer.db
"""

import argparse
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from gradeviewer.database import get_session
from gradeviewer.env import database_path, load_env
from gradeviewer.errors import GradeViewerError, InvalidGradingSystem
from gradeviewer.grading import validate
from storage.repositories import SubjectRepository


def check(db_path: Path) -> bool:
    """
    Validate each subject's grading system.

    Returns True if every subject is ready for grade computation.
    """
    session = get_session(db_path)
    try:
        subjects = SubjectRepository(session)
        subject_ids = subjects.list_ids()
        print(f"Checking {len(subject_ids)} subject(s) in {db_path}...\n")

        bad = 0
        for subject_id in subject_ids:
            name = subjects.name_of(subject_id)
            try:
                validate(subjects.get_grading_system(subject_id))
            except InvalidGradingSystem as e:
                bad += 1
                print(f"❌ {name} ({subject_id})")
                for problem in e.errors:
                    print(f"     - {problem}")
                continue
            except GradeViewerError as e:
                bad += 1
                print(f"❌ {name} ({subject_id}): {e}")
                continue
            print(f"✅ {name}")
    finally:
        session.close()

    print(f"\n{len(subject_ids) - bad}/{len(subject_ids)} grading systems valid")
    return bad == 0


def main():
    load_env()
    parser = argparse.ArgumentParser(description="Validate stored grading systems")
    parser.add_argument("--db", type=Path, default=database_path(), help="Path to SQLite database")
    args = parser.parse_args()

    if not args.db.exists():
        print(f"❌ Database not found: {args.db}")
        sys.exit(1)

    sys.exit(0 if check(args.db) else 1)


if __name__ == "__main__":
    main()
