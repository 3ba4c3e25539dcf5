import argparse
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import __version__
from .config import ReconciliationConfig
from .database import get_session, init_database
from .env import database_path, load_env
from .errors import (
    ExternalLookupError,
    GradeViewerError,
    InvalidGradingSystem,
    RecordNotFound,
    StudentNotFound,
)
from .grading import compute_grade, is_passing, validate
from .logger import get_logger
from .models import ComputedGrade, GradeRecord
from .moodle import MoodleClient, MoodleIdentityLookup
from .schema import parse_grading_system


@dataclass(frozen=True)
class StudentGradeResult:
    subject_id: str
    subject_name: str
    student_name: str
    student_number: str
    computed: ComputedGrade
    passing_grade: float
    passed: bool

    def to_dict(self) -> dict:
        return {
            "subjectId": self.subject_id,
            "subjectName": self.subject_name,
            "studentName": self.student_name,
            "studentNumber": self.student_number,
            "passingGrade": self.passing_grade,
            "passed": self.passed,
            **self.computed.to_dict(),
        }


def compute_student_grade(subject_id: str, student_number: str, code: str, subjects, records) -> StudentGradeResult:
    """Grade lookup for one student, authenticated by student number and access code.

    Raises RecordNotFound when nothing matches, and the grading errors of
    compute_grade() when the subject's system is missing or invalid.
    """
    if not student_number or not code:
        raise ValueError("Student number and access code are required")
    system = subjects.get_grading_system(subject_id)
    validate(system)
    record = records.find_by_credentials(subject_id, student_number, code)
    if record is None:
        raise RecordNotFound("No record found for this student in this subject")
    computed = compute_grade(system, record)
    return StudentGradeResult(
        subject_id=subject_id,
        subject_name=subjects.name_of(subject_id),
        student_name=record.student_name,
        student_number=record.student_number,
        computed=computed,
        passing_grade=system.passing_grade,
        passed=is_passing(system, computed),
    )


def _open_session(args: argparse.Namespace):
    db_path = Path(args.db)
    init_database(db_path)
    return get_session(db_path)


def _load_json(path_str: str):
    input_path = Path(path_str)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _connect_lookup(config: ReconciliationConfig) -> MoodleIdentityLookup:
    try:
        client = MoodleClient.from_env()
        return MoodleIdentityLookup.connect(client, config)
    except (ValueError, ExternalLookupError) as e:
        raise SystemExit(f"Moodle connection failed: {e}")


def _config_from_args(args: argparse.Namespace, per_page: Optional[int] = None) -> ReconciliationConfig:
    try:
        config = ReconciliationConfig.from_env(
            course_id=args.course_id,
            enrol_id=args.enrol_id,
            max_workers=getattr(args, "workers", None),
        )
    except ValueError as e:
        raise SystemExit(str(e))
    if per_page is not None:
        config = ReconciliationConfig(
            course_id=config.course_id,
            enrol_id=config.enrol_id,
            per_page=per_page,
            max_workers=config.max_workers,
            match_threshold=config.match_threshold,
        )
    return config


def _print_breakdown(computed: ComputedGrade) -> None:
    for category in computed.breakdown:
        print(f"  {category.category_name} ({category.category_weight}%): {category.category_score}")
        for component in category.components:
            print(f"    - {component.component_name} ({component.component_weight}%): {component.component_score}%")


def cmd_init_db(args: argparse.Namespace) -> None:
    init_database(Path(args.db))
    print(f"Database ready: {args.db}")


def cmd_validate_system(args: argparse.Namespace) -> None:
    data = _load_json(args.input)
    try:
        system = parse_grading_system(data)
        validate(system)
    except GradeViewerError as e:
        print("Invalid:")
        problems = e.errors if isinstance(e, InvalidGradingSystem) else [str(e)]
        for p in problems:
            print(f" - {p}")
        raise SystemExit(2)
    print("Valid")


def cmd_add_subject(args: argparse.Namespace) -> None:
    from storage.repositories import SubjectRepository

    session = _open_session(args)
    try:
        subject_id = SubjectRepository(session).create(args.name, teacher_id=args.teacher)
    finally:
        session.close()
    print(f"Subject: {subject_id}")


def cmd_set_system(args: argparse.Namespace) -> None:
    from storage.repositories import SubjectRepository

    data = _load_json(args.input)
    try:
        system = parse_grading_system(data)
        validate(system)
    except GradeViewerError as e:
        raise SystemExit(f"Grading system rejected: {e}")
    session = _open_session(args)
    try:
        SubjectRepository(session).save_grading_system(args.subject, system)
    except RecordNotFound as e:
        raise SystemExit(str(e))
    finally:
        session.close()
    print(f"Grading system saved for subject {args.subject}")


def cmd_import_records(args: argparse.Namespace) -> None:
    """Load already-parsed records (JSON list) into a subject."""
    from storage.repositories import RecordRepository

    rows = _load_json(args.input)
    if not isinstance(rows, list):
        raise SystemExit("Input must be a JSON list of records")
    session = _open_session(args)
    added = skipped = 0
    try:
        repo = RecordRepository(session)
        for row in rows:
            if not row.get("student_number") or not row.get("student_name"):
                print(f"[skip] missing student_number/student_name: {row}")
                skipped += 1
                continue
            repo.add(GradeRecord(
                id=row.get("id"),
                subject_id=args.subject,
                student_name=row["student_name"],
                student_number=str(row["student_number"]),
                email=row.get("email", ""),
                code=row.get("code", ""),
                grades=row.get("grades", {}),
                max_scores=row.get("max_scores", {}),
            ))
            added += 1
    finally:
        session.close()
    print(f"Done. added={added} skipped={skipped}")


def cmd_compute(args: argparse.Namespace) -> None:
    from pipelines.backfill.recompute_grades import recompute_subject_grades
    from storage.repositories import RecordRepository, SubjectRepository

    session = _open_session(args)
    try:
        results = recompute_subject_grades(args.subject, SubjectRepository(session), RecordRepository(session))
    except GradeViewerError as e:
        raise SystemExit(str(e))
    finally:
        session.close()
    if not results:
        print("No records found for this subject.")
        return
    for record, grade in results:
        print(f"{record.student_number:<15} {record.student_name:<40} {grade.final_grade:>6.2f}")
    print(f"Done. computed={len(results)}")


def cmd_grade(args: argparse.Namespace) -> None:
    from storage.repositories import RecordRepository, SubjectRepository

    session = _open_session(args)
    try:
        result = compute_student_grade(
            args.subject, args.student_number, args.code,
            SubjectRepository(session), RecordRepository(session),
        )
    except (GradeViewerError, ValueError) as e:
        raise SystemExit(str(e))
    finally:
        session.close()
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return
    status = "PASSED" if result.passed else "FAILED"
    print(f"{result.student_name} ({result.student_number}) - {result.subject_name}")
    print(f"Final grade: {result.computed.final_grade:.2f} [{status}, passing {result.passing_grade}]")
    _print_breakdown(result.computed)


def cmd_sync_emails(args: argparse.Namespace) -> None:
    from pipelines.reconciliation.runner import reconcile_subject_emails
    from storage.repositories import RecordRepository

    config = _config_from_args(args)
    session = _open_session(args)
    try:
        store = RecordRepository(session)
        records = store.read_by_subject(args.subject)
        if not records:
            print("No records found for this subject.")
            return
        lookup = _connect_lookup(config)
        report = reconcile_subject_emails(args.subject, records, lookup, store, config)
    finally:
        session.close()
    get_logger().log_metrics_summary()
    print(
        f"Done. total={report.total} updated={report.updated} not-found={report.not_found} "
        f"unchanged={report.unchanged} skipped={report.skipped} errors={len(report.errors)}"
    )
    for err in report.errors[:10]:
        print(f"[error] {err.key}: {err.message}")


def cmd_import_students(args: argparse.Namespace) -> None:
    from pipelines.reconciliation.global_students import reconcile_global_students
    from storage.repositories import StudentCacheRepository

    config = _config_from_args(args, per_page=args.per_page)
    lookup = _connect_lookup(config)
    try:
        candidates = lookup.search(args.search or "", per_page=args.per_page)
    except ExternalLookupError as e:
        raise SystemExit(str(e))
    session = _open_session(args)
    try:
        report = reconcile_global_students(candidates, StudentCacheRepository(session))
    finally:
        session.close()
    print(
        f"Done. total={report.total} created={report.created} updated={report.updated} "
        f"unchanged={report.unchanged} skipped={report.skipped} errors={len(report.errors)}"
    )


def cmd_fetch_email(args: argparse.Namespace) -> None:
    from pipelines.reconciliation.email_lookup import fetch_student_email
    from storage.repositories import RecordRepository, StudentCacheRepository

    if not args.student_number and not args.student_name:
        raise SystemExit("Provide --student-number or --student-name")
    config = _config_from_args(args)
    session = _open_session(args)
    try:
        result = fetch_student_email(
            args.student_number, args.student_name,
            lookup=_LazyLookup(config),
            cache=StudentCacheRepository(session),
            record_store=RecordRepository(session),
        )
    except (StudentNotFound, ExternalLookupError) as e:
        raise SystemExit(str(e))
    finally:
        session.close()
    source = "cache" if result.from_cache else "moodle"
    print(f"{result.fullname}: {result.email} (from {source})")


class _LazyLookup:
    """Connects to Moodle only when the cache can't answer."""

    def __init__(self, config: ReconciliationConfig):
        self.config = config
        self._lookup: Optional[MoodleIdentityLookup] = None

    def __call__(self, query):
        if self._lookup is None:
            self._lookup = _connect_lookup(self.config)
        return self._lookup(query)


def cmd_list_students(args: argparse.Namespace) -> None:
    from storage.repositories import StudentCacheRepository

    session = _open_session(args)
    try:
        repo = StudentCacheRepository(session)
        entries = repo.search(args.search or "", limit=args.limit, offset=args.offset)
        total = repo.count()
    finally:
        session.close()
    if not entries:
        print("No students in cache.")
        return
    print(f"Showing {len(entries)} of {total} cached students:\n")
    for e in entries:
        synced = e.last_synced_at.isoformat() if e.last_synced_at else "never"
        print(f"{e.student_number:<15} {e.fullname or '':<40} {e.email:<40} synced {synced}")


def main():
    load_env()
    default_db = str(database_path())
    parser = argparse.ArgumentParser(prog="gradeviewer", description="Grade computation and LMS reconciliation")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    def add_db(p):
        p.add_argument("--db", default=default_db, help=f"Path to SQLite database (default: {default_db})")

    def add_lms(p):
        p.add_argument("--course-id", help="Moodle course id (or set MOODLE_COURSE_ID)")
        p.add_argument("--enrol-id", help="Moodle enrolment instance id (or set MOODLE_ENROL_ID)")

    ini = subparsers.add_parser("init-db", help="Create the database tables")
    add_db(ini)
    ini.set_defaults(func=cmd_init_db)

    val = subparsers.add_parser("validate-system", help="Validate a grading system JSON file")
    val.add_argument("--input", required=True, help="Path to grading system JSON")
    val.set_defaults(func=cmd_validate_system)

    sub = subparsers.add_parser("add-subject", help="Create a subject")
    sub.add_argument("--name", required=True, help="Subject name")
    sub.add_argument("--teacher", help="Teacher id")
    add_db(sub)
    sub.set_defaults(func=cmd_add_subject)

    sst = subparsers.add_parser("set-system", help="Validate and store a subject's grading system")
    sst.add_argument("--subject", required=True, help="Subject id")
    sst.add_argument("--input", required=True, help="Path to grading system JSON")
    add_db(sst)
    sst.set_defaults(func=cmd_set_system)

    imp = subparsers.add_parser("import-records", help="Load grade records from a JSON list")
    imp.add_argument("--subject", required=True, help="Subject id")
    imp.add_argument("--input", required=True, help="Path to records JSON")
    add_db(imp)
    imp.set_defaults(func=cmd_import_records)

    cmp_ = subparsers.add_parser("compute", help="Recompute and store grades for every record in a subject")
    cmp_.add_argument("--subject", required=True, help="Subject id")
    add_db(cmp_)
    cmp_.set_defaults(func=cmd_compute)

    grd = subparsers.add_parser("grade", help="Show one student's grade (student number + access code)")
    grd.add_argument("--subject", required=True, help="Subject id")
    grd.add_argument("--student-number", required=True, help="Student number")
    grd.add_argument("--code", required=True, help="Access code")
    grd.add_argument("--json", action="store_true", help="Print the full result as JSON")
    add_db(grd)
    grd.set_defaults(func=cmd_grade)

    syn = subparsers.add_parser("sync-emails", help="Refresh emails/names of a subject's records from Moodle")
    syn.add_argument("--subject", required=True, help="Subject id")
    syn.add_argument("--workers", type=int, help="Concurrent lookups, 1-8 (default 1: sequential)")
    add_lms(syn)
    add_db(syn)
    syn.set_defaults(func=cmd_sync_emails)

    stu = subparsers.add_parser("import-students", help="Create or update the student cache from Moodle")
    stu.add_argument("--search", default="", help="Search text (default: everyone)")
    stu.add_argument("--per-page", type=int, default=200, help="Users to fetch (default 200)")
    add_lms(stu)
    add_db(stu)
    stu.set_defaults(func=cmd_import_students)

    fet = subparsers.add_parser("fetch-email", help="Look up one student's email (cache first, then Moodle)")
    fet.add_argument("--student-number", help="Student number")
    fet.add_argument("--student-name", help="Student name")
    add_lms(fet)
    add_db(fet)
    fet.set_defaults(func=cmd_fetch_email)

    lst = subparsers.add_parser("list-students", help="List cached students")
    lst.add_argument("--search", help="Filter by name, email or student number")
    lst.add_argument("--limit", type=int, default=50, help="Page size (default 50)")
    lst.add_argument("--offset", type=int, default=0, help="Page offset")
    add_db(lst)
    lst.set_defaults(func=cmd_list_students)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
