"""
Multi-criteria scoring for hazardous-waste identification cases.

Four independent sub-scores feed a fixed linear combination:

    total = round(clamp(0.4 * accuracy + 0.3 * budget + 0.2 * path + 0.1 * time, 0, 100))

All functions here are pure. ScoreEngine bundles them into a single
`score()` call that validates input and assembles a ScoreResult.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import pydantic
from loguru import logger

from vstation.core.errors import ValidationError
from vstation.core.models import (
    CorrectAnswer,
    Feedback,
    Grade,
    Judgment,
    JudgmentResult,
    PathComparison,
    PathItem,
    ScoreBreakdown,
    ScoreInput,
    ScoreResult,
)

from .catalog import DETECTION_ITEMS, DetectionItem

# =============================================================================
# Constants
# =============================================================================

WEIGHTS = {"accuracy": 0.4, "budget": 0.3, "path": 0.2, "time": 0.1}

GRADE_THRESHOLDS: list[tuple[int, Grade]] = [
    (90, Grade.GOLD),
    (70, Grade.SILVER),
    (60, Grade.BRONZE),
]

NO_EVIDENCE_BUDGET_SCORE = 50.0
MAX_UNNECESSARY_PENALTY = 30.0
UNNECESSARY_ITEM_PENALTY = 5.0

# In-case badges
BADGE_PRECISE = "precise_detective"
BADGE_SPEED = "speed_star"
BADGE_FRUGAL = "frugal_detective"

FRUGAL_TOLERANCE = 1.1


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative scores."""
    return int(math.floor(value + 0.5))


def _unique(path: Iterable[str]) -> list[str]:
    """Deduplicate while keeping first-seen order."""
    return list(dict.fromkeys(path))


# =============================================================================
# Sub-scores
# =============================================================================


def score_accuracy(judgment: Judgment, correct: CorrectAnswer) -> float:
    """
    Score the verdict and hazard characteristics.

    Returns:
        0 on a result mismatch, 100 on an exact match, otherwise
        50 + 50 * matched/|correct| - 10 * extra, clamped to [0, 100].
    """
    if judgment.result != correct.result:
        return 0.0

    if correct.result != JudgmentResult.HAZARDOUS:
        return 100.0

    judged = set(judgment.characteristics)
    expected = set(correct.characteristics)
    if judged == expected:
        return 100.0

    matched = len(judged & expected)
    extra = len(judged - expected)
    ratio = matched / len(expected) if expected else 0.0
    return clamp(50 + ratio * 50 - extra * 10)


def score_budget_efficiency(spent: float, total: float, optimal: float) -> float:
    """Score spending relative to the optimal cost; 50 when nothing was bought."""
    if spent <= 0:
        return NO_EVIDENCE_BUDGET_SCORE
    if spent <= optimal:
        return 100.0

    max_over = total - optimal
    if max_over <= 0:
        return 0.0
    return clamp(100 - (spent - optimal) / max_over * 100)


def score_path_rationality(user_path: Iterable[str], optimal_path: Iterable[str]) -> float:
    """Score coverage of the optimal path, minus a capped penalty for unnecessary items."""
    optimal = set(optimal_path)
    if not optimal:
        return 100.0

    user = _unique(user_path)
    if not user:
        return 0.0

    relevant = sum(1 for item in user if item in optimal)
    unnecessary = len(user) - relevant
    coverage = relevant / len(optimal)
    penalty = min(MAX_UNNECESSARY_PENALTY, unnecessary * UNNECESSARY_ITEM_PENALTY)
    return clamp(coverage * 100 - penalty)


def score_time(elapsed: float, limit: float | None) -> float:
    if limit is None or limit <= 0:
        return 100.0

    ratio = elapsed / limit
    if ratio <= 0.5:
        return 100.0
    if ratio <= 1.0:
        return float(round_half_up(100 - (ratio - 0.5) * 40))

    over = elapsed - limit
    return clamp(80 - over / limit * 80, 0, 80)


def calculate_total_score(accuracy: float, budget: float, path: float, time: float) -> int:
    """Weighted total, clamped to [0, 100] and rounded half-up."""
    weighted = (
        accuracy * WEIGHTS["accuracy"]
        + budget * WEIGHTS["budget"]
        + path * WEIGHTS["path"]
        + time * WEIGHTS["time"]
    )
    return round_half_up(clamp(weighted))


def get_grade(score: float) -> Grade:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return Grade.TRAINEE


# =============================================================================
# Judgment Validation
# =============================================================================


@dataclass
class JudgmentCheck:
    """Correctness details of a judgment."""

    is_correct: bool
    result_correct: bool
    characteristics_correct: bool = True
    characteristics_partial: bool = False
    missing_characteristics: list[str] = field(default_factory=list)
    extra_characteristics: list[str] = field(default_factory=list)
    matched_standards: list[str] = field(default_factory=list)
    standard_basis_reasonable: bool = True


def validate_judgment(judgment: Judgment, correct: CorrectAnswer) -> JudgmentCheck:
    """Compare a judgment against the reference answer."""
    result_correct = judgment.result == correct.result
    check = JudgmentCheck(is_correct=False, result_correct=result_correct)

    if correct.result == JudgmentResult.HAZARDOUS:
        judged = set(judgment.characteristics)
        expected = set(correct.characteristics)
        check.characteristics_correct = judged == expected
        check.characteristics_partial = bool(judged & expected) and not check.characteristics_correct
        check.missing_characteristics = sorted(expected - judged)
        check.extra_characteristics = sorted(judged - expected)

    if judgment.result == JudgmentResult.HAZARDOUS and judgment.standard_basis:
        basis = set(correct.standard_basis)
        check.matched_standards = [s for s in judgment.standard_basis if s in basis]
        check.standard_basis_reasonable = bool(check.matched_standards)

    check.is_correct = result_correct and check.characteristics_correct
    return check


# =============================================================================
# Path Comparison & Badges
# =============================================================================


def is_optimal_path(user_path: Iterable[str], optimal_path: Iterable[str]) -> bool:
    """Same number of distinct items as the optimal path, covering all of it."""
    optimal = _unique(optimal_path)
    if not optimal:
        return True
    user = _unique(user_path)
    return len(user) == len(optimal) and all(item in user for item in optimal)


def generate_path_comparison(
    user_path: Iterable[str],
    optimal_path: Iterable[str],
    spent: float,
    optimal_cost: float,
    items: Mapping[str, DetectionItem] | None = None,
) -> PathComparison:
    items = DETECTION_ITEMS if items is None else items
    user = _unique(user_path)
    optimal = _unique(optimal_path)

    def describe(item_id: str) -> PathItem:
        item = items.get(item_id)
        if item is None:
            return PathItem(id=item_id, name="unknown item", price=0)
        return item.as_path_item()

    unnecessary = [describe(i) for i in user if i not in optimal]
    missing = [describe(i) for i in optimal if i not in user]

    return PathComparison(
        user_path=user,
        optimal_path=optimal,
        extra_cost=max(0.0, spent - optimal_cost),
        unnecessary_items=unnecessary,
        unnecessary_cost=sum(item.price for item in unnecessary),
        missing_items=missing,
        is_optimal=is_optimal_path(user, optimal),
    )


def case_badges(
    is_correct: bool,
    user_path: Iterable[str],
    optimal_path: Iterable[str],
    spent: float,
    optimal_cost: float,
    elapsed: float,
    time_limit: float,
) -> list[str]:
    """Badges earned inside a single case; none unless the verdict is correct."""
    if not is_correct:
        return []

    badges = []
    if is_optimal_path(user_path, optimal_path):
        badges.append(BADGE_PRECISE)
    if time_limit > 0 and elapsed <= time_limit * 0.5:
        badges.append(BADGE_SPEED)
    if spent <= optimal_cost * FRUGAL_TOLERANCE:
        badges.append(BADGE_FRUGAL)
    return badges


def generate_feedback(score: int, is_correct: bool) -> Feedback:
    if not is_correct:
        return Feedback(
            level="error",
            title="Misjudged",
            message="Your conclusion does not match the reference answer. Re-examine the evidence.",
            suggestions=[
                "Review the GB 5085 identification criteria",
                "Consider where the waste came from and how it was produced",
                "Map each exceeded test to the hazard characteristic it proves",
                "Retry this case to consolidate the reasoning",
            ],
        )
    if score >= 90:
        return Feedback(
            level="excellent",
            title="Case closed, flawlessly",
            message="Precise and efficient identification.",
        )
    if score >= 70:
        return Feedback(
            level="good",
            title="Case closed",
            message="Identification succeeded, with room to improve.",
            suggestions=["Skip tests that cannot change the verdict", "Pick tests that target the suspected hazard"],
        )
    return Feedback(
        level="pass",
        title="Barely passed",
        message="The verdict is right but the investigation was inefficient.",
        suggestions=["Study more identification cases", "Compare your path with the optimal one", "Keep spending under control"],
    )


# =============================================================================
# Score Engine
# =============================================================================


class ScoreEngine:
    """
    Scores complete case submissions.

    Usage:
        engine = ScoreEngine()
        result = engine.score({"judgment": {...}, "correct_answer": {...}, ...})
    """

    def __init__(
        self,
        detection_items: Mapping[str, DetectionItem] | None = None,
        default_time_limit: float = 600.0,
    ):
        self.detection_items = DETECTION_ITEMS if detection_items is None else detection_items
        self.default_time_limit = default_time_limit

    @staticmethod
    def parse_input(data: ScoreInput | Mapping[str, Any]) -> ScoreInput:
        """Validate raw input, raising ValidationError with field-level detail."""
        if isinstance(data, ScoreInput):
            payload = data
        else:
            try:
                payload = ScoreInput.model_validate(data)
            except pydantic.ValidationError as exc:
                raise ValidationError.from_pydantic(exc, "Invalid score input") from exc

        if payload.spent_budget > payload.total_budget:
            raise ValidationError(
                "Invalid score input",
                {"spent_budget": "cannot exceed total_budget"},
            )
        return payload

    def score(self, data: ScoreInput | Mapping[str, Any]) -> ScoreResult:
        payload = self.parse_input(data)

        accuracy = score_accuracy(payload.judgment, payload.correct_answer)
        budget = score_budget_efficiency(payload.spent_budget, payload.total_budget, payload.optimal_cost)
        path = score_path_rationality(payload.user_path, payload.optimal_path)
        time_score = score_time(payload.elapsed_seconds, payload.time_limit_seconds)
        total = calculate_total_score(accuracy, budget, path, time_score)

        check = validate_judgment(payload.judgment, payload.correct_answer)
        time_limit = payload.time_limit_seconds or self.default_time_limit
        badges = case_badges(
            check.is_correct,
            payload.user_path,
            payload.optimal_path,
            payload.spent_budget,
            payload.optimal_cost,
            payload.elapsed_seconds,
            time_limit,
        )

        result = ScoreResult(
            total=total,
            grade=get_grade(total),
            breakdown=ScoreBreakdown(
                accuracy=round_half_up(accuracy),
                budget=round_half_up(budget),
                path=round_half_up(path),
                time=round_half_up(time_score),
            ),
            is_correct=check.is_correct,
            achievements=badges,
            path_comparison=generate_path_comparison(
                payload.user_path,
                payload.optimal_path,
                payload.spent_budget,
                payload.optimal_cost,
                self.detection_items,
            ),
            feedback=generate_feedback(total, check.is_correct),
        )
        logger.debug(
            "Scored submission: total={} grade={} (a={:.1f} b={:.1f} p={:.1f} t={:.1f})",
            total,
            result.grade.value,
            accuracy,
            budget,
            path,
            time_score,
        )
        return result


def score_submission(data: ScoreInput | Mapping[str, Any], default_time_limit: float = 600.0) -> ScoreResult:
    """Score one submission against the preset detection-item catalog."""
    return ScoreEngine(default_time_limit=default_time_limit).score(data)
