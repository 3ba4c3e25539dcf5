"""
Candidate Selection Logic.

Responsibilities:
- Pick out the candidates eligible for name scoring.
- Spot a candidate whose LMS id number equals the record's student number.

Non-Responsibilities:
- No scoring.
- No resolution decisions.

Invariant:
Selection preserves the order candidates were returned in.
"""

from typing import List, Optional, Sequence

from gradeviewer.models import ExternalCandidate
from gradeviewer.normalize import trimmed


def is_contactable(candidate: ExternalCandidate) -> bool:
    return bool(trimmed(candidate.email)) and bool(trimmed(candidate.full_name))


def select_scoring_candidates(candidates: Sequence[ExternalCandidate]) -> List[ExternalCandidate]:
    """Candidates without an email or a full name can't update a record."""
    return [c for c in candidates if is_contactable(c)]


def find_by_id_number(
    candidates: Sequence[ExternalCandidate],
    id_hint: Optional[str],
) -> Optional[ExternalCandidate]:
    """Return the single candidate whose id number equals id_hint, else None."""
    hint = trimmed(id_hint)
    if not hint:
        return None
    hits = [c for c in candidates if trimmed(c.id_number) == hint]
    if len(hits) == 1:
        return hits[0]
    return None
