"""
Unit tests for competition leaderboards.
"""

import itertools

import pytest

from vstation.core.errors import NotFoundError, ValidationError
from vstation.core.models import LeaderboardEntry
from vstation.ranking import (
    Competition,
    CompetitionStatus,
    LeaderboardRanker,
    generate_report,
    score_distribution,
    sort_leaderboard,
)


def entry(user_id, score, time, competition_id="c1"):
    return LeaderboardEntry(
        competition_id=competition_id,
        user_id=user_id,
        user_name=user_id,
        score=score,
        time_spent_seconds=time,
    )


@pytest.fixture
def ranker():
    ranker = LeaderboardRanker()
    ranker.register_competition(Competition(id="c1", name="Spring Cup"))
    return ranker


# ============================================================================
# Pure sort
# ============================================================================


class TestSortLeaderboard:
    """Tests for sort_leaderboard."""

    def test_score_then_time(self):
        """A(80, 120), B(90, 200), C(90, 150) ranks C, B, A."""
        ranked = sort_leaderboard([entry("A", 80, 120), entry("B", 90, 200), entry("C", 90, 150)])
        assert [(e.user_id, e.rank) for e in ranked] == [("C", 1), ("B", 2), ("A", 3)]

    def test_permutation_invariant(self):
        """Every ordering of the same set ranks identically."""
        entries = [
            entry("A", 80, 120),
            entry("B", 90, 200),
            entry("C", 90, 150),
            entry("D", 90, 150),
            entry("E", 55, 90),
        ]
        expected = [(e.user_id, e.rank) for e in sort_leaderboard(entries)]
        for permutation in itertools.permutations(entries):
            assert [(e.user_id, e.rank) for e in sort_leaderboard(list(permutation))] == expected

    def test_empty_and_none(self):
        assert sort_leaderboard([]) == []
        assert sort_leaderboard(None) == []

    def test_inputs_not_mutated(self):
        original = entry("A", 80, 120)
        sort_leaderboard([original])
        assert original.rank == 0


# ============================================================================
# Reports
# ============================================================================


class TestReports:
    """Tests for report generation."""

    def test_distribution_buckets(self):
        entries = [entry(str(i), s, 100) for i, s in enumerate([10, 59.5, 60, 75, 89, 90, 100])]
        assert score_distribution(entries) == {
            "0-59": 2,
            "60-69": 1,
            "70-79": 1,
            "80-89": 1,
            "90-100": 2,
        }

    def test_report_statistics(self):
        report = generate_report("c1", [entry("A", 80, 120), entry("B", 90, 200), entry("C", 90, 150)])
        assert report.participant_count == 3
        assert report.average_score == pytest.approx(260 / 3)
        assert report.max_score == 90
        assert report.min_score == 80
        assert report.average_time == pytest.approx(470 / 3)
        assert report.min_time == 120
        assert report.max_time == 200
        assert report.rankings[0].user_id == "C"
        assert report.to_dict()["score_distribution"]["90-100"] == 2

    def test_empty_report(self):
        report = generate_report("c1", [])
        assert report.participant_count == 0
        assert report.average_score == 0
        assert sum(report.score_distribution.values()) == 0


# ============================================================================
# Ranker
# ============================================================================


class TestLeaderboardRanker:
    """Tests for LeaderboardRanker."""

    def test_submit_and_rank(self, ranker):
        for user, score, time in [("A", 80, 120), ("B", 90, 200), ("C", 90, 150)]:
            assert ranker.submit_score(
                {"competition_id": "c1", "user_id": user, "score": score, "time_spent_seconds": time}
            ).accepted

        board = ranker.get_leaderboard("c1")
        assert [e.user_id for e in board] == ["C", "B", "A"]
        assert ranker.get_user_rank("c1", "B") == 2
        assert ranker.get_user_rank("c1", "nobody") is None
        assert [e.user_id for e in ranker.get_leaderboard("c1", limit=1)] == ["C"]

    def test_duplicate_rejected_not_merged(self, ranker):
        first = ranker.submit_score({"competition_id": "c1", "user_id": "A", "score": 60, "time_spent_seconds": 100})
        second = ranker.submit_score({"competition_id": "c1", "user_id": "A", "score": 99, "time_spent_seconds": 10})

        assert first.accepted
        assert not second.accepted
        assert second.entry.id == first.entry.id
        assert second.entry.score == 60
        assert len(ranker.get_leaderboard("c1")) == 1

    def test_unknown_competition(self, ranker):
        with pytest.raises(NotFoundError):
            ranker.submit_score({"competition_id": "nope", "user_id": "A", "score": 60, "time_spent_seconds": 1})
        with pytest.raises(NotFoundError):
            ranker.get_leaderboard("nope")

    def test_invalid_score(self, ranker):
        with pytest.raises(ValidationError) as exc_info:
            ranker.submit_score({"competition_id": "c1", "user_id": "A", "score": 120, "time_spent_seconds": 1})
        assert "score" in exc_info.value.errors

    def test_ended_competition_rejects_entries(self, ranker):
        ranker.submit_score({"competition_id": "c1", "user_id": "A", "score": 70, "time_spent_seconds": 60})
        report = ranker.end_competition("c1")

        assert report.participant_count == 1
        assert ranker.get_competition("c1").status == CompetitionStatus.ENDED
        with pytest.raises(ValidationError):
            ranker.submit_score({"competition_id": "c1", "user_id": "B", "score": 70, "time_spent_seconds": 60})
