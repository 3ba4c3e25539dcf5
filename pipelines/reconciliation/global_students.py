"""
Bulk Student Import.

Responsibilities:
- Create or update student cache entries from LMS search results.
- Key every candidate by its LMS id number (the student number).

Non-Responsibilities:
- No fuzzy matching; bulk results carry structured ids.
- No grade record updates.

Invariant:
Re-importing unchanged LMS data creates and updates nothing.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from gradeviewer.logger import StructuredLogger, get_logger
from gradeviewer.models import ExternalCandidate, StudentCacheEntry
from gradeviewer.normalize import trimmed

from .runner import RecordError
from .update_decider import cache_update, lms_user_id


@dataclass
class ImportReport:
    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    unchanged: int = 0
    errors: List[RecordError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "unchanged": self.unchanged,
            "errors": [e.to_dict() for e in self.errors],
        }


def reconcile_global_students(
    candidates: Iterable[ExternalCandidate],
    existing_cache,
    now: Optional[datetime] = None,
    logger: Optional[StructuredLogger] = None,
) -> ImportReport:
    """
    Upsert LMS users into the student cache.

    Args:
        candidates: LMS users from a bulk search
        existing_cache: Cache with find(student_number), create(entry), update(student_number, fields)
        now: Sync timestamp (default: now, UTC)

    Returns:
        ImportReport with created/updated/skipped/unchanged counts and per-candidate errors
    """
    logger = logger or get_logger()
    synced_at = now or datetime.now(timezone.utc)
    report = ImportReport()

    for candidate in candidates:
        report.total += 1
        key = trimmed(candidate.id_number)
        if not key or not trimmed(candidate.email):
            report.skipped += 1
            logger.debug("Skipping LMS user without id number or email", external_id=candidate.external_id)
            continue

        try:
            entry = existing_cache.find(key)
            if entry is None:
                existing_cache.create(StudentCacheEntry(
                    student_number=key,
                    email=candidate.email,
                    fullname=candidate.full_name,
                    moodle_user_id=lms_user_id(candidate),
                    last_synced_at=synced_at,
                ))
                report.created += 1
                continue

            fields = cache_update(entry, candidate)
            if fields is None:
                report.unchanged += 1
                continue
            fields["last_synced_at"] = synced_at
            existing_cache.update(key, fields)
            report.updated += 1
        except Exception as e:
            report.errors.append(RecordError(key, str(e)))
            logger.error("Student import failed", student_number=key, error=str(e))

    logger.info("Student import complete", **{k: v for k, v in report.to_dict().items() if k != "errors"}, errors=len(report.errors))
    return report
