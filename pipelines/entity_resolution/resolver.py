"""
Identity Resolution Orchestrator.

Responsibilities:
- Coordinate candidate selection and scoring for one local record.
- Apply the acceptance threshold.
- Return an explainable resolution (state, candidate, similarity, scores).

Non-Responsibilities:
- No LMS access.
- No persistence.

Invariant:
Deterministic given the same record and candidates.

States:
    PENDING -> EXACT_ID_MATCH        one candidate, or exactly one whose id
                                     number equals the student number
    PENDING -> SCORING_CANDIDATES -> BEST_MATCH_ACCEPTED | NO_MATCH
    PENDING -> NO_MATCH              no candidates, or the only one has no email
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from gradeviewer.models import ExternalCandidate, GradeRecord
from gradeviewer.normalize import trimmed

from .candidate_selector import find_by_id_number, select_scoring_candidates
from .scoring import NameScorer, ScoredCandidate, best_match, score_candidates
from .features import name_similarity

DEFAULT_MATCH_THRESHOLD = 0.3


class MatchState(str, Enum):
    PENDING = "pending"
    SCORING_CANDIDATES = "scoring_candidates"
    EXACT_ID_MATCH = "exact_id_match"
    BEST_MATCH_ACCEPTED = "best_match_accepted"
    NO_MATCH = "no_match"


TERMINAL_STATES = {MatchState.EXACT_ID_MATCH, MatchState.BEST_MATCH_ACCEPTED, MatchState.NO_MATCH}


@dataclass
class Resolution:
    state: MatchState = MatchState.PENDING
    candidate: Optional[ExternalCandidate] = None
    similarity: Optional[float] = None
    scores: List[ScoredCandidate] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.state in (MatchState.EXACT_ID_MATCH, MatchState.BEST_MATCH_ACCEPTED)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


def _exact(candidate: ExternalCandidate) -> Resolution:
    if not trimmed(candidate.email):
        return Resolution(state=MatchState.NO_MATCH, candidate=candidate)
    return Resolution(state=MatchState.EXACT_ID_MATCH, candidate=candidate)


def resolve_identity(
    record: GradeRecord,
    candidates: Sequence[ExternalCandidate],
    scorer: NameScorer = name_similarity,
    threshold: float = DEFAULT_MATCH_THRESHOLD,
) -> Resolution:
    """
    Pick the LMS candidate that corresponds to a local record.

    Args:
        record: Local grade record (student_number, student_name)
        candidates: Search results, unsorted and possibly duplicated
        scorer: Name similarity function (default: name_similarity)
        threshold: Minimum similarity to accept a scored match

    Returns:
        Resolution in a terminal state
    """
    if not candidates:
        return Resolution(state=MatchState.NO_MATCH)

    if len(candidates) == 1:
        return _exact(candidates[0])

    by_id = find_by_id_number(candidates, record.student_number)
    if by_id is not None:
        return _exact(by_id)

    resolution = Resolution(state=MatchState.SCORING_CANDIDATES)
    resolution.scores = score_candidates(
        record.student_name, select_scoring_candidates(candidates), scorer
    )
    best = best_match(resolution.scores)
    if best is not None:
        resolution.similarity = best.similarity
        if best.similarity >= threshold:
            resolution.state = MatchState.BEST_MATCH_ACCEPTED
            resolution.candidate = best.candidate
            return resolution

    resolution.state = MatchState.NO_MATCH
    return resolution
