"""
Unit tests for the candidate scorer

Tests each capped component, the combined score and ranking order.
"""

import pytest
from dataclasses import dataclass
from datetime import datetime

from app.services.candidate_scorer import (
    Candidate,
    ScoreRequest,
    experience_score,
    load_score,
    qualification_score,
    rank_candidates,
    score,
    score_breakdown,
    slot_fit_score,
)


@dataclass
class FakeWindow:
    id: int
    start_time: datetime
    end_time: datetime
    is_booked: bool = False


REQUEST = ScoreRequest(
    start=datetime(2031, 3, 4, 10, 0),
    end=datetime(2031, 3, 4, 11, 0),
    target_tag="Backend Engineer",
)


def window(window_id, start_hour, start_minute, end_hour, end_minute, booked=False):
    return FakeWindow(
        id=window_id,
        start_time=datetime(2031, 3, 4, start_hour, start_minute),
        end_time=datetime(2031, 3, 4, end_hour, end_minute),
        is_booked=booked,
    )


class TestQualificationScore:
    """Soft qualification match (max 40)"""

    def test_full_match_target_inside_tag(self):
        assert qualification_score("Backend", ["Senior Backend Engineer"]) == 40

    def test_full_match_tag_inside_target(self):
        assert qualification_score("Senior Backend Engineer", ["backend engineer"]) == 40

    def test_match_is_case_insensitive(self):
        assert qualification_score("BACKEND ENGINEER", ["backend engineer"]) == 40

    def test_partial_match_on_single_word(self):
        """'engineer' alone matches, the full phrase does not"""
        assert qualification_score("Frontend Engineer", ["Backend Engineer"]) == 20

    def test_no_match(self):
        assert qualification_score("Product Manager", ["Backend Engineer", "Data Scientist"]) == 0

    def test_empty_target_or_tags(self):
        assert qualification_score("", ["Backend Engineer"]) == 0
        assert qualification_score(None, ["Backend Engineer"]) == 0
        assert qualification_score("Backend Engineer", []) == 0


class TestCappedComponents:
    """Load (30), slot fit (20) and experience (10) never leave their range"""

    @pytest.mark.parametrize("upcoming,expected", [(0, 30), (1, 25), (3, 15), (6, 0), (12, 0)])
    def test_load_score(self, upcoming, expected):
        assert load_score(upcoming) == expected

    @pytest.mark.parametrize("waste,expected", [(0, 20), (29, 20), (30, 16), (45, 16), (60, 12), (150, 0), (600, 0)])
    def test_slot_fit_score(self, waste, expected):
        assert slot_fit_score(waste) == expected

    @pytest.mark.parametrize("years,expected", [(None, 0), (0, 0), (1, 0), (4, 2), (7, 3), (20, 10), (45, 10)])
    def test_experience_score(self, years, expected):
        assert experience_score(years) == expected


class TestCombinedScore:
    """Totals for whole candidates"""

    def test_perfect_candidate_scores_100(self):
        """Full match, idle, exact window, 20 years"""
        candidate = Candidate(
            provider_id=1,
            qualification_tags=["Backend Engineer"],
            years_of_experience=20,
            upcoming_sessions=0,
            windows=[window(1, 10, 0, 11, 0)],
        )
        assert score(candidate, REQUEST) == 100

    def test_partial_busy_candidate_scores_58(self):
        """Partial match, 2 upcoming, 45 minutes waste, 4 years -> 20+20+16+2"""
        candidate = Candidate(
            provider_id=2,
            qualification_tags=["Frontend Engineer"],
            years_of_experience=4,
            upcoming_sessions=2,
            windows=[window(2, 9, 15, 11, 0)],
        )
        breakdown = score_breakdown(candidate, REQUEST)

        assert breakdown.to_dict() == {
            "qualification": 20,
            "load": 20,
            "slot_fit": 16,
            "experience": 2,
            "total": 58,
        }

    def test_slot_fit_uses_best_fit_window(self):
        candidate = Candidate(
            provider_id=3,
            qualification_tags=[],
            windows=[window(10, 8, 0, 12, 0), window(11, 10, 0, 11, 30)],
        )
        breakdown = score_breakdown(candidate, REQUEST)

        assert breakdown.slot_fit == 16
        assert breakdown.total == breakdown.qualification + breakdown.load + breakdown.slot_fit + breakdown.experience

    def test_candidate_without_covering_window_scores_zero(self):
        candidate = Candidate(
            provider_id=4,
            qualification_tags=["Backend Engineer"],
            windows=[window(20, 10, 30, 12, 0), window(21, 10, 0, 11, 0, booked=True)],
        )
        assert score_breakdown(candidate, REQUEST) is None
        assert score(candidate, REQUEST) == 0

    def test_score_is_deterministic(self):
        candidate = Candidate(
            provider_id=5,
            qualification_tags=["Backend Engineer"],
            years_of_experience=7,
            upcoming_sessions=1,
            windows=[window(30, 9, 0, 12, 0)],
        )
        first = score(candidate, REQUEST)
        assert all(score(candidate, REQUEST) == first for _ in range(10))
        assert 0 <= first <= 100


class TestRanking:
    """Ordering and tie-breaks"""

    def test_higher_score_wins(self):
        a = Candidate(provider_id=7, qualification_tags=["Backend Engineer"], years_of_experience=20,
                      windows=[window(1, 10, 0, 11, 0)])
        b = Candidate(provider_id=3, qualification_tags=["Frontend Engineer"], years_of_experience=4,
                      upcoming_sessions=2, windows=[window(2, 9, 15, 11, 0)])

        ranked = rank_candidates([b, a], REQUEST)

        assert [r.candidate.provider_id for r in ranked] == [7, 3]
        assert [r.score for r in ranked] == [100, 58]
        assert ranked[0].best_window.id == 1

    def test_tie_goes_to_less_loaded_then_lower_id(self):
        """Equal totals: fewer upcoming sessions first, then provider id"""
        busy = Candidate(provider_id=1, qualification_tags=["Backend Engineer"], years_of_experience=10,
                         upcoming_sessions=1, windows=[window(1, 10, 0, 11, 0)])
        idle = Candidate(provider_id=2, qualification_tags=["Backend Engineer"], years_of_experience=0,
                         upcoming_sessions=0, windows=[window(2, 10, 0, 11, 0)])
        twin = Candidate(provider_id=9, qualification_tags=["Backend Engineer"], years_of_experience=0,
                         upcoming_sessions=0, windows=[window(3, 10, 0, 11, 0)])

        ranked = rank_candidates([twin, busy, idle], REQUEST)

        assert [r.score for r in ranked] == [90, 90, 90]
        assert [r.candidate.provider_id for r in ranked] == [2, 9, 1]

    def test_candidates_without_window_are_dropped(self):
        covered = Candidate(provider_id=1, windows=[window(1, 10, 0, 11, 0)])
        uncovered = Candidate(provider_id=2, windows=[window(2, 10, 30, 11, 0)])

        ranked = rank_candidates([covered, uncovered], REQUEST)

        assert [r.candidate.provider_id for r in ranked] == [1]

    def test_zero_qualification_remains_eligible(self):
        stranger = Candidate(provider_id=4, qualification_tags=["Product Manager"],
                             windows=[window(1, 10, 0, 11, 0)])

        ranked = rank_candidates([stranger], REQUEST)

        assert len(ranked) == 1
        assert ranked[0].breakdown.qualification == 0

    def test_ten_years_earns_half_the_experience_points(self):
        candidate = Candidate(provider_id=1, qualification_tags=["Backend Engineer"], years_of_experience=10,
                              windows=[window(1, 10, 0, 11, 0)])

        assert score(candidate, REQUEST) == 95
