"""
Scoring Logic for Identity Resolution.

Responsibilities:
- Score each candidate's full name against the record's stored name.
- Pick the best-scoring candidate.

Non-Responsibilities:
- No candidate selection.
- No threshold decisions.

Invariant:
Given identical inputs, the same candidate wins with the same score.
Ties go to the candidate returned first.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from gradeviewer.models import ExternalCandidate

from .features import name_similarity

NameScorer = Callable[[str, str], float]


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: ExternalCandidate
    similarity: float


def score_candidates(
    record_name: str,
    candidates: Sequence[ExternalCandidate],
    scorer: NameScorer = name_similarity,
) -> List[ScoredCandidate]:
    return [ScoredCandidate(c, scorer(record_name or "", c.full_name or "")) for c in candidates]


def best_match(scored: Sequence[ScoredCandidate]) -> Optional[ScoredCandidate]:
    best: Optional[ScoredCandidate] = None
    for item in scored:
        if best is None or item.similarity > best.similarity:
            best = item
    return best
