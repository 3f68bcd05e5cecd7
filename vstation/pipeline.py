"""
Assessment pipeline.

One case submission flows through the engines in a fixed order:
score -> XP and task statistics -> certificate -> achievements -> leaderboard.
Achievements are checked only after the score is final, so the XP and grade
they see are stable.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from vstation.career import (
    AchievementDefinition,
    AchievementEngine,
    Certificate,
    LevelUpResult,
    calculate_xp_reward,
)
from vstation.core.errors import NotFoundError
from vstation.core.models import Difficulty, Judgment, ScoreInput, ScoreResult
from vstation.ranking import LeaderboardRanker, SubmissionOutcome
from vstation.scoring import PRESET_CASES, ScoreEngine, get_case
from vstation.tasks import PRESET_TASKS

HAZWASTE_WORKSTATION = "hazwaste-lab"


def default_task_workstations() -> dict[str, str]:
    """Map every preset case and task to the workstation that owns it."""
    mapping = {case_id: HAZWASTE_WORKSTATION for case_id in PRESET_CASES}
    mapping.update({task.id: task.workstation_id for task in PRESET_TASKS})
    return mapping


@dataclass
class AssessmentOutcome:
    result: ScoreResult
    xp_awarded: int
    level_up: LevelUpResult
    new_achievements: list[AchievementDefinition] = field(default_factory=list)
    certificate: Certificate | None = None
    leaderboard: SubmissionOutcome | None = None


class AssessmentPipeline:
    """
    Runs a submission through scoring, career progression and ranking.

    Usage:
        pipeline = AssessmentPipeline()
        outcome = pipeline.assess_case("u1", "case_001", judgment, spent_budget=1100,
                                       user_path=[...], elapsed_seconds=240)
    """

    def __init__(
        self,
        score_engine: ScoreEngine | None = None,
        achievements: AchievementEngine | None = None,
        ranker: LeaderboardRanker | None = None,
        task_workstations: Mapping[str, str] | None = None,
    ):
        self.score_engine = score_engine or ScoreEngine()
        self.achievements = achievements or AchievementEngine()
        self.ranker = ranker or LeaderboardRanker()
        self.task_workstations = dict(task_workstations or default_task_workstations())

    def _completed_in(self, user_id: str, workstation_id: str) -> int:
        profile = self.achievements.get_profile(user_id)
        return sum(1 for t in profile.completed_task_ids if self.task_workstations.get(t) == workstation_id)

    def assess(
        self,
        user_id: str,
        task_id: str,
        data: ScoreInput | Mapping[str, Any],
        difficulty: Difficulty | str = Difficulty.INTERMEDIATE,
        base_xp: float = 100,
        first_try: bool = True,
        competition_id: str | None = None,
        user_name: str = "",
    ) -> AssessmentOutcome:
        """
        Score one submission and apply its consequences.

        Raises:
            ValidationError: the submission is malformed or the competition
                has ended; nothing is recorded
            NotFoundError: unknown competition; nothing is recorded
        """
        payload = self.score_engine.parse_input(data)
        if competition_id is not None:
            self.ranker.ensure_accepting(competition_id)
        result = self.score_engine.score(payload)

        xp = calculate_xp_reward(base_xp, difficulty, result.total)
        self.achievements.record_task_completion(
            user_id,
            task_id,
            score=result.total,
            first_try=first_try,
            study_minutes=payload.elapsed_seconds / 60,
        )
        level_up = self.achievements.add_experience(user_id, xp, source=f"task:{task_id}")

        certificate = None
        workstation_id = self.task_workstations.get(task_id)
        if workstation_id is not None:
            try:
                total_tasks = self.achievements.get_workstation(workstation_id).total_tasks
            except NotFoundError:
                total_tasks = 0
            certificate = self.achievements.check_certificate_eligibility(
                user_id, workstation_id, self._completed_in(user_id, workstation_id), total_tasks
            )

        newly = self.achievements.check_achievements(
            user_id,
            "task_complete",
            {"task_id": task_id, "score": result.total, "workstation_id": workstation_id, "first_try": first_try},
        )
        result = result.model_copy(update={"achievements": [*result.achievements, *(d.id for d in newly)]})

        leaderboard = None
        if competition_id is not None:
            leaderboard = self.ranker.submit_score(
                {
                    "competition_id": competition_id,
                    "user_id": user_id,
                    "user_name": user_name or user_id,
                    "score": result.total,
                    "time_spent_seconds": payload.elapsed_seconds,
                    "operation_path": list(payload.user_path),
                }
            )

        logger.info(
            "Assessed {} for {}: score={} grade={} +{} XP, {} new achievements",
            task_id,
            user_id,
            result.total,
            result.grade.value,
            xp,
            len(newly),
        )
        return AssessmentOutcome(
            result=result,
            xp_awarded=xp,
            level_up=level_up,
            new_achievements=newly,
            certificate=certificate,
            leaderboard=leaderboard,
        )

    def assess_case(
        self,
        user_id: str,
        case_id: str,
        judgment: Judgment | Mapping[str, Any],
        spent_budget: float,
        user_path: list[str],
        elapsed_seconds: float,
        **kwargs: Any,
    ) -> AssessmentOutcome:
        """Assess a submission against a preset case."""
        case = get_case(case_id)
        if case is None:
            raise NotFoundError("case", case_id)

        data = {
            "judgment": judgment,
            "correct_answer": case.correct_answer,
            "spent_budget": spent_budget,
            "total_budget": case.budget,
            "optimal_cost": case.optimal_cost,
            "user_path": user_path,
            "optimal_path": list(case.optimal_path),
            "elapsed_seconds": elapsed_seconds,
            "time_limit_seconds": case.time_limit_seconds,
        }
        kwargs.setdefault("difficulty", case.difficulty)
        return self.assess(user_id, case_id, data, **kwargs)
