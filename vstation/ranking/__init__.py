"""Competition ranking and reports."""

from .leaderboard import (
    Competition,
    CompetitionReport,
    CompetitionStatus,
    LeaderboardRanker,
    LeaderboardStore,
    SubmissionOutcome,
    generate_report,
    score_distribution,
    sort_leaderboard,
)

__all__ = [
    "Competition",
    "CompetitionReport",
    "CompetitionStatus",
    "LeaderboardRanker",
    "LeaderboardStore",
    "SubmissionOutcome",
    "generate_report",
    "score_distribution",
    "sort_leaderboard",
]
