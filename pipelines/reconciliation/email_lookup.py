"""
Single Student Email Lookup.

Responsibilities:
- Serve a student's email from the cache while it is fresh.
- Otherwise search the LMS, refresh the cache and stale grade records.

Non-Responsibilities:
- No batch processing (see runner.py).

Invariant:
Cache and record writes only happen when the LMS match carries an email.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from gradeviewer.errors import StudentNotFound
from gradeviewer.logger import StructuredLogger, get_logger
from gradeviewer.models import ExternalCandidate, LookupQuery, StudentCacheEntry
from gradeviewer.normalize import normalize_name, trimmed

from .update_decider import lms_user_id, record_update

DEFAULT_MAX_AGE = timedelta(hours=24)


@dataclass(frozen=True)
class EmailLookupResult:
    email: str
    fullname: Optional[str]
    from_cache: bool


def _as_aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _cached_entry(cache, number: str, name: str) -> Optional[StudentCacheEntry]:
    """By student number, else a single name hit that doesn't contradict the number."""
    if number:
        entry = cache.find(number)
        if entry is not None:
            return entry
    if name:
        hits = cache.search_by_name(name)
        if len(hits) == 1 and (not number or hits[0].student_number == number):
            return hits[0]
    return None


def pick_student(
    candidates: Sequence[ExternalCandidate],
    student_number: Optional[str],
    student_name: Optional[str],
) -> Optional[ExternalCandidate]:
    """Id number match first, then exact name, then partial name."""
    number = trimmed(student_number)
    if number:
        for c in candidates:
            if trimmed(c.id_number) == number:
                return c
    name = normalize_name(student_name)
    if name:
        for c in candidates:
            if normalize_name(c.full_name) == name:
                return c
        for c in candidates:
            if name in normalize_name(c.full_name):
                return c
    return None


def fetch_student_email(
    student_number: Optional[str],
    student_name: Optional[str],
    lookup,
    cache,
    record_store=None,
    max_age: timedelta = DEFAULT_MAX_AGE,
    now: Optional[datetime] = None,
    logger: Optional[StructuredLogger] = None,
) -> EmailLookupResult:
    """
    Resolve one student's email, preferring a fresh cache entry.

    Raises:
        ValueError: neither student_number nor student_name given
        StudentNotFound: no LMS match, or the match has no email
    """
    logger = logger or get_logger()
    number = trimmed(student_number)
    if not number and not trimmed(student_name):
        raise ValueError("student_number or student_name is required")
    now = now or datetime.now(timezone.utc)

    cached = _cached_entry(cache, number, trimmed(student_name))
    if cached is not None and cached.last_synced_at is not None:
        if now - _as_aware(cached.last_synced_at) < max_age:
            return EmailLookupResult(cached.email, cached.fullname, from_cache=True)

    candidates = lookup(LookupQuery(search_text=number or trimmed(student_name), id_hint=number or None))
    student = pick_student(candidates, number, student_name)
    if student is None or not trimmed(student.email):
        logger.warning(
            "Student not found or missing email",
            student_number=number,
            found=student is not None,
            results=len(candidates),
        )
        raise StudentNotFound(f"Student {number or student_name} not found in LMS or email not available")

    key = trimmed(student.id_number) or number
    if key:
        fields = {
            "email": student.email,
            "moodle_user_id": lms_user_id(student),
            "last_synced_at": now,
        }
        # A blank LMS name keeps the cached one.
        if trimmed(student.full_name):
            fields["fullname"] = student.full_name
        if cache.find(key) is None:
            cache.create(StudentCacheEntry(student_number=key, **fields))
        else:
            cache.update(key, fields)

        if record_store is not None:
            # The email is resolved at this point; a failed record refresh is only logged.
            try:
                _update_records(record_store, key, student, logger)
            except Exception as e:
                logger.error("Failed to update grade records", student_number=key, error=str(e))

    return EmailLookupResult(student.email, student.full_name, from_cache=False)


def _update_records(record_store, student_number: str, student: ExternalCandidate, logger: StructuredLogger) -> None:
    updated = 0
    for record in record_store.read_by_student_number(student_number):
        fields = record_update(record, student)
        if fields is not None:
            record_store.write(record.id, fields)
            updated += 1
    if updated:
        logger.info(f"Updated {updated} record(s) with new email/name", student_number=student_number)
