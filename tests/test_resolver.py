"""
Tests for identity resolution against LMS candidates.
"""

from pipelines.entity_resolution.candidate_selector import find_by_id_number, select_scoring_candidates
from pipelines.entity_resolution.resolver import MatchState, resolve_identity
from pipelines.entity_resolution.scoring import best_match, score_candidates


class TestResolveIdentity:
    """Test the resolution state machine."""

    def test_no_candidates(self, make_record):
        resolution = resolve_identity(make_record(), [])

        assert resolution.state == MatchState.NO_MATCH
        assert not resolution.matched
        assert resolution.candidate is None

    def test_single_candidate_is_exact(self, make_record, make_candidate):
        """One search hit on the student number is taken regardless of name."""
        only = make_candidate(full_name="Completely Different")

        resolution = resolve_identity(make_record(), [only])

        assert resolution.state == MatchState.EXACT_ID_MATCH
        assert resolution.candidate is only
        assert resolution.similarity is None

    def test_single_candidate_without_email(self, make_record, make_candidate):
        resolution = resolve_identity(make_record(), [make_candidate(email=None)])

        assert resolution.state == MatchState.NO_MATCH
        assert not resolution.matched

    def test_best_name_match_accepted(self, make_record, make_candidate):
        ana = make_candidate(external_id="1", full_name="Ana Reyes")
        juan = make_candidate(external_id="2", full_name="Juan Cruz", email="juan@school.edu")

        resolution = resolve_identity(make_record(name="Ana Reyes"), [ana, juan])

        assert resolution.state == MatchState.BEST_MATCH_ACCEPTED
        assert resolution.candidate is ana
        assert resolution.similarity == 1.0
        assert len(resolution.scores) == 2

    def test_unique_id_number_wins_over_names(self, make_record, make_candidate):
        ana = make_candidate(external_id="1", full_name="Ana Reyes", id_number="2021-9999")
        other = make_candidate(external_id="2", full_name="A. Reyes", id_number="2021-0001")

        resolution = resolve_identity(make_record(number="2021-0001"), [ana, other])

        assert resolution.state == MatchState.EXACT_ID_MATCH
        assert resolution.candidate is other

    def test_duplicate_id_numbers_fall_back_to_scoring(self, make_record, make_candidate):
        a = make_candidate(external_id="1", full_name="Juan Cruz", id_number="2021-0001")
        b = make_candidate(external_id="2", full_name="Ana Reyes", id_number="2021-0001")

        resolution = resolve_identity(make_record(), [a, b])

        assert resolution.state == MatchState.BEST_MATCH_ACCEPTED
        assert resolution.candidate is b

    def test_below_threshold(self, make_record, make_candidate):
        candidates = [
            make_candidate(external_id="1", full_name="Pedro Santos"),
            make_candidate(external_id="2", full_name="Maria Lopez"),
        ]

        resolution = resolve_identity(make_record(name="Juan Cruz"), candidates)

        assert resolution.state == MatchState.NO_MATCH
        assert resolution.candidate is None
        assert resolution.similarity < 0.3

    def test_candidates_without_email_not_scored(self, make_record, make_candidate):
        exact_but_no_email = make_candidate(external_id="1", full_name="Ana Reyes", email="")
        close = make_candidate(external_id="2", full_name="Ana R. Reyes")

        resolution = resolve_identity(make_record(), [exact_but_no_email, close])

        assert resolution.candidate is close
        assert [s.candidate for s in resolution.scores] == [close]

    def test_tie_goes_to_first(self, make_record, make_candidate):
        first = make_candidate(external_id="1", email="a1@school.edu")
        second = make_candidate(external_id="2", email="a2@school.edu")

        resolution = resolve_identity(make_record(), [first, second])

        assert resolution.candidate is first

    def test_custom_scorer_and_threshold(self, make_record, make_candidate):
        candidates = [make_candidate(external_id="1"), make_candidate(external_id="2")]

        resolution = resolve_identity(make_record(), candidates, scorer=lambda a, b: 0.5, threshold=0.6)

        assert resolution.state == MatchState.NO_MATCH
        assert resolution.similarity == 0.5

    def test_deterministic(self, make_record, make_candidate):
        candidates = [
            make_candidate(external_id="1", full_name="Ana Santos"),
            make_candidate(external_id="2", full_name="Ana Reyes Cruz"),
        ]
        record = make_record()

        first = resolve_identity(record, candidates)
        second = resolve_identity(record, candidates)

        assert first.state == second.state
        assert first.candidate is second.candidate
        assert first.similarity == second.similarity


class TestSelectionAndScoring:
    """Test the helpers behind the resolver."""

    def test_select_requires_email_and_name(self, make_candidate):
        keep = make_candidate(external_id="1")
        candidates = [keep, make_candidate(external_id="2", email=None), make_candidate(external_id="3", full_name=" ")]

        assert select_scoring_candidates(candidates) == [keep]

    def test_find_by_id_number(self, make_candidate):
        hit = make_candidate(external_id="1", id_number=" 2021-0001 ")

        assert find_by_id_number([hit, make_candidate(external_id="2")], "2021-0001") is hit
        assert find_by_id_number([hit], "") is None
        assert find_by_id_number([hit], None) is None

    def test_best_match_empty(self):
        assert best_match([]) is None

    def test_score_candidates_keeps_order(self, make_candidate):
        candidates = [make_candidate(external_id="1", full_name="X"), make_candidate(external_id="2")]

        scored = score_candidates("Ana Reyes", candidates)

        assert [s.candidate.external_id for s in scored] == ["1", "2"]
        assert scored[1].similarity == 1.0
