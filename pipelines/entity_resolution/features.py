"""
Feature Extraction for Identity Resolution.

Responsibilities:
- Compute a 0.0-1.0 similarity between two free-text person names.

Non-Responsibilities:
- No thresholds.
- No candidate selection.

Invariant:
Symmetric and deterministic: name_similarity(a, b) == name_similarity(b, a).

The positional character check is a deliberate simplification, not edit
distance. Any callable with the same signature can replace name_similarity
in the resolver.
"""

from gradeviewer.normalize import normalize_name

EXACT_SCORE = 1.0
CONTAINMENT_SCORE = 0.8
WORD_WEIGHT = 0.7
CHAR_WEIGHT = 0.3


def word_overlap(n1: str, n2: str) -> float:
    words1 = set(n1.split())
    words2 = set(n2.split())
    total = max(len(words1), len(words2))
    if total == 0:
        return 0.0
    return len(words1 & words2) / total


def char_prefix_overlap(n1: str, n2: str) -> float:
    """Fraction of identical characters at identical positions over the shorter string."""
    min_len = min(len(n1), len(n2))
    if min_len == 0:
        return 0.0
    matches = sum(1 for i in range(min_len) if n1[i] == n2[i])
    return matches / min_len


def name_similarity(name1: str, name2: str) -> float:
    n1 = normalize_name(name1)
    n2 = normalize_name(name2)

    if not n1 and not n2:
        return 0.0
    if n1 == n2:
        return EXACT_SCORE
    # An empty name is never contained in another.
    if n1 and n2 and (n1 in n2 or n2 in n1):
        return CONTAINMENT_SCORE

    return WORD_WEIGHT * word_overlap(n1, n2) + CHAR_WEIGHT * char_prefix_overlap(n1, n2)
