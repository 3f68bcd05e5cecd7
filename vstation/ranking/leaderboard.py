"""
Competition leaderboards.

Ranks are never stored independently: every read re-sorts the full entry
set by (score desc, time asc) and assigns 1-based positions, so the
ranking is a pure function of the entries and not of submission order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import pydantic
from loguru import logger

from vstation.core.errors import DuplicateSubmission, NotFoundError, ValidationError
from vstation.core.models import LeaderboardEntry, new_id, now_ms

SCORE_BUCKETS: list[tuple[str, float, float]] = [
    ("0-59", 0, 59),
    ("60-69", 60, 69),
    ("70-79", 70, 79),
    ("80-89", 80, 89),
    ("90-100", 90, 100),
]


class CompetitionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    ENDED = "ended"


@dataclass
class Competition:
    id: str
    name: str
    workstation_id: str | None = None
    status: CompetitionStatus = CompetitionStatus.ACTIVE
    start_time: int = field(default_factory=now_ms)
    end_time: int | None = None


@dataclass
class SubmissionOutcome:
    """Result of a leaderboard submission; a duplicate is accepted=False with the original entry."""

    entry: LeaderboardEntry
    accepted: bool


@dataclass
class CompetitionReport:
    competition_id: str
    participant_count: int
    average_score: float
    max_score: float
    min_score: float
    average_time: float
    max_time: float
    min_time: float
    score_distribution: dict[str, int]
    rankings: list[LeaderboardEntry]

    def to_dict(self) -> dict[str, Any]:
        return {
            "competition_id": self.competition_id,
            "participant_count": self.participant_count,
            "average_score": self.average_score,
            "max_score": self.max_score,
            "min_score": self.min_score,
            "average_time": self.average_time,
            "max_time": self.max_time,
            "min_time": self.min_time,
            "score_distribution": dict(self.score_distribution),
            "rankings": [e.model_dump() for e in self.rankings],
        }


# =============================================================================
# Pure Ranking
# =============================================================================


def _sort_key(entry: LeaderboardEntry) -> tuple[float, float, str]:
    return (-entry.score, entry.time_spent_seconds, entry.user_id)


def sort_leaderboard(entries: Iterable[LeaderboardEntry] | None) -> list[LeaderboardEntry]:
    """
    Sort entries by score (desc) then time (asc) and assign ranks.

    Identical (score, time) pairs fall back to user id so every permutation
    of the same set yields the same output. Inputs are not mutated.
    """
    if not entries:
        return []
    ordered = sorted(entries, key=_sort_key)
    return [entry.model_copy(update={"rank": position}) for position, entry in enumerate(ordered, start=1)]


def score_distribution(entries: Iterable[LeaderboardEntry]) -> dict[str, int]:
    buckets = {label: 0 for label, _, _ in SCORE_BUCKETS}
    for entry in entries:
        score = entry.score
        for label, low, high in SCORE_BUCKETS:
            # Fractional scores between bands belong to the lower band
            if low <= score < high + 1:
                buckets[label] += 1
                break
    return buckets


def generate_report(competition_id: str, entries: Iterable[LeaderboardEntry]) -> CompetitionReport:
    ranked = sort_leaderboard(list(entries))
    if not ranked:
        return CompetitionReport(
            competition_id=competition_id,
            participant_count=0,
            average_score=0.0,
            max_score=0.0,
            min_score=0.0,
            average_time=0.0,
            max_time=0.0,
            min_time=0.0,
            score_distribution=score_distribution([]),
            rankings=[],
        )

    scores = [e.score for e in ranked]
    times = [e.time_spent_seconds for e in ranked]
    return CompetitionReport(
        competition_id=competition_id,
        participant_count=len(ranked),
        average_score=sum(scores) / len(scores),
        max_score=max(scores),
        min_score=min(scores),
        average_time=sum(times) / len(times),
        max_time=max(times),
        min_time=min(times),
        score_distribution=score_distribution(ranked),
        rankings=ranked,
    )


# =============================================================================
# Store
# =============================================================================


class LeaderboardStore:
    """In-memory entry store enforcing one entry per (competition, user)."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], LeaderboardEntry] = {}

    def insert(self, entry: LeaderboardEntry) -> LeaderboardEntry:
        key = (entry.competition_id, entry.user_id)
        existing = self._entries.get(key)
        if existing is not None:
            raise DuplicateSubmission(
                f"User {entry.user_id} already submitted to {entry.competition_id}",
                existing=existing,
            )
        self._entries[key] = entry
        return entry

    def entries_for(self, competition_id: str) -> list[LeaderboardEntry]:
        return [e for (cid, _), e in self._entries.items() if cid == competition_id]


# =============================================================================
# Ranker
# =============================================================================


class LeaderboardRanker:
    """
    Competition registry and leaderboard.

    Usage:
        ranker = LeaderboardRanker()
        ranker.register_competition(Competition(id="c1", name="Spring Cup"))
        outcome = ranker.submit_score({"competition_id": "c1", "user_id": "u1", ...})
        board = ranker.get_leaderboard("c1")
    """

    def __init__(self, store: LeaderboardStore | None = None):
        self.store = store or LeaderboardStore()
        self._competitions: dict[str, Competition] = {}

    # =========================================================================
    # Competitions
    # =========================================================================

    def register_competition(self, competition: Competition) -> Competition:
        self._competitions[competition.id] = competition
        logger.debug(f"Registered competition {competition.id} ({competition.status.value})")
        return competition

    def get_competition(self, competition_id: str) -> Competition:
        competition = self._competitions.get(competition_id)
        if competition is None:
            raise NotFoundError("competition", competition_id)
        return competition

    def ensure_accepting(self, competition_id: str) -> Competition:
        """
        Raises:
            NotFoundError: unknown competition
            ValidationError: the competition has ended
        """
        competition = self.get_competition(competition_id)
        if competition.status == CompetitionStatus.ENDED:
            raise ValidationError(
                "Competition has ended",
                {"competition_id": f"{competition.id} is no longer accepting entries"},
            )
        return competition

    def end_competition(self, competition_id: str) -> CompetitionReport:
        competition = self.get_competition(competition_id)
        competition.status = CompetitionStatus.ENDED
        competition.end_time = now_ms()
        return self.generate_report(competition_id)

    # =========================================================================
    # Submissions
    # =========================================================================

    def submit_score(self, data: LeaderboardEntry | dict[str, Any]) -> SubmissionOutcome:
        """
        Record a competition result.

        A second submission for the same (competition, user) is not merged:
        the stored entry is returned unchanged with accepted=False.
        """
        if isinstance(data, LeaderboardEntry):
            entry = data
        else:
            try:
                entry = LeaderboardEntry.model_validate({"id": new_id("entry"), **data})
            except pydantic.ValidationError as exc:
                raise ValidationError.from_pydantic(exc, "Invalid leaderboard submission") from exc

        self.ensure_accepting(entry.competition_id)

        try:
            stored = self.store.insert(entry.model_copy(update={"rank": 0}))
        except DuplicateSubmission as exc:
            logger.info(
                "Duplicate submission ignored: competition={} user={}",
                entry.competition_id,
                entry.user_id,
            )
            return SubmissionOutcome(entry=exc.existing, accepted=False)

        logger.debug(f"Accepted entry {stored.id}: user={stored.user_id} score={stored.score}")
        return SubmissionOutcome(entry=stored, accepted=True)

    # =========================================================================
    # Views
    # =========================================================================

    def get_leaderboard(self, competition_id: str, limit: int | None = None) -> list[LeaderboardEntry]:
        self.get_competition(competition_id)
        ranked = sort_leaderboard(self.store.entries_for(competition_id))
        return ranked[:limit] if limit is not None else ranked

    def get_user_rank(self, competition_id: str, user_id: str) -> int | None:
        for entry in self.get_leaderboard(competition_id):
            if entry.user_id == user_id:
                return entry.rank
        return None

    def generate_report(self, competition_id: str) -> CompetitionReport:
        self.get_competition(competition_id)
        return generate_report(competition_id, self.store.entries_for(competition_id))
