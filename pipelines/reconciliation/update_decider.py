"""
Record Update Decision.

Responsibilities:
- Decide whether a matched LMS candidate changes a local record.
- Produce the partial field set to write.

Non-Responsibilities:
- No matching.
- No persistence.

Invariant:
Unchanged external data yields no write, so repeated runs are idempotent.
"""

from typing import Any, Dict, Optional

from gradeviewer.models import ExternalCandidate, GradeRecord, StudentCacheEntry
from gradeviewer.normalize import emails_differ, names_differ, normalize_email, trimmed


def diff_fields(old: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    changed = {}
    for k in sorted(set(old) | set(new)):
        if old.get(k) != new.get(k):
            changed[k] = {"old": old.get(k), "new": new.get(k)}
    return changed


def record_update(record: GradeRecord, candidate: ExternalCandidate) -> Optional[Dict[str, Any]]:
    """
    Fields to write onto a grade record, or None when it is already current.

    Email compares case-insensitively after trimming; name compares trimmed.
    Both fields are written together whenever either differs. A blank LMS
    name never overwrites the stored one.
    """
    has_name = bool(trimmed(candidate.full_name))
    name_changed = has_name and names_differ(record.student_name, candidate.full_name)
    if not (emails_differ(record.email, candidate.email) or name_changed):
        return None
    fields = {"email": candidate.email}
    if has_name:
        fields["student_name"] = candidate.full_name
    return fields


def cache_update(entry: StudentCacheEntry, candidate: ExternalCandidate) -> Optional[Dict[str, Any]]:
    """Fields to write onto a student cache entry, or None when unchanged."""
    current = {
        "email": normalize_email(entry.email),
        "moodle_user_id": entry.moodle_user_id,
    }
    incoming = {
        "email": normalize_email(candidate.email),
        "moodle_user_id": lms_user_id(candidate),
    }
    fields = {"email": candidate.email, "moodle_user_id": incoming["moodle_user_id"]}
    # A blank LMS name keeps the cached one.
    if trimmed(candidate.full_name):
        current["fullname"] = (entry.fullname or "").strip()
        incoming["fullname"] = candidate.full_name.strip()
        fields["fullname"] = candidate.full_name
    if not diff_fields(current, incoming):
        return None
    return fields


def lms_user_id(candidate: ExternalCandidate) -> Optional[int]:
    try:
        return int(candidate.external_id)
    except (TypeError, ValueError):
        return None
