"""
Achievement conditions.

Conditions form a closed set of eight variants discriminated by `kind`;
`evaluate_condition` is the single place that knows how each is checked.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, model_validator

from vstation.core.models import Rarity

from .levels import CareerProfile


class TaskCompleteCondition(BaseModel):
    """A specific task, or a number of tasks, completed."""

    kind: Literal["task_complete"] = "task_complete"
    task_id: str | None = None
    count: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _one_target(self) -> "TaskCompleteCondition":
        if (self.task_id is None) == (self.count is None):
            raise ValueError("task_complete needs exactly one of task_id or count")
        return self


class WorkstationCompleteCondition(BaseModel):
    kind: Literal["workstation_complete"] = "workstation_complete"
    workstation_id: str


class StreakCondition(BaseModel):
    kind: Literal["streak"] = "streak"
    days: int = Field(ge=1)


class ScoreCondition(BaseModel):
    kind: Literal["score"] = "score"
    threshold: float = Field(ge=0, le=100)


class TimeCondition(BaseModel):
    """Total study time in minutes."""

    kind: Literal["time"] = "time"
    minutes: float = Field(gt=0)


class LevelCondition(BaseModel):
    kind: Literal["level"] = "level"
    level: int = Field(ge=1)


class FirstTryPassCondition(BaseModel):
    """Consecutive tasks passed on the first attempt."""

    kind: Literal["first_try_pass"] = "first_try_pass"
    count: int = Field(ge=1)


SpecialName = Literal["first_login", "all_workstations", "all_perfect", "all_certificates"]


class SpecialCondition(BaseModel):
    kind: Literal["special"] = "special"
    name: SpecialName


Condition = Annotated[
    Union[
        TaskCompleteCondition,
        WorkstationCompleteCondition,
        StreakCondition,
        ScoreCondition,
        TimeCondition,
        LevelCondition,
        FirstTryPassCondition,
        SpecialCondition,
    ],
    Field(discriminator="kind"),
]


class AchievementDefinition(BaseModel):
    id: str
    name: str
    description: str = ""
    rarity: Rarity = Rarity.COMMON
    xp_reward: int = Field(default=0, ge=0)
    condition: Condition


# Event kinds whose payload score is a submission result
SCORED_EVENT_KINDS = frozenset({"task_complete", "score"})


@dataclass
class AchievementEvent:
    """A learner event that may satisfy conditions."""

    user_id: str
    kind: str
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def score(self) -> float | None:
        value = self.payload.get("score")
        return None if value is None else float(value)


@dataclass(frozen=True)
class ConditionContext:
    """Catalog facts some conditions need."""

    active_workstations: frozenset[str] = frozenset()

    @classmethod
    def from_workstations(cls, workstation_ids: Iterable[str]) -> "ConditionContext":
        return cls(active_workstations=frozenset(workstation_ids))


def _special(name: str, profile: CareerProfile, context: ConditionContext) -> bool:
    if name == "first_login":
        return profile.login_count >= 1
    if name == "all_workstations":
        required = context.active_workstations
        return bool(required) and required <= set(profile.completed_workstations)
    if name == "all_perfect":
        return bool(profile.best_scores) and all(score >= 100 for score in profile.best_scores.values())
    if name == "all_certificates":
        required = context.active_workstations
        return bool(required) and required <= set(profile.certificates)
    return False


def evaluate_condition(
    condition: Condition,
    profile: CareerProfile,
    event: AchievementEvent | None = None,
    context: ConditionContext | None = None,
) -> bool:
    """Check one condition against a profile and the triggering event."""
    context = context or ConditionContext()

    if isinstance(condition, TaskCompleteCondition):
        if condition.task_id is not None:
            return condition.task_id in profile.completed_task_ids
        return profile.completed_tasks >= (condition.count or 0)

    if isinstance(condition, WorkstationCompleteCondition):
        return condition.workstation_id in profile.completed_workstations

    if isinstance(condition, StreakCondition):
        return profile.streak_days >= condition.days

    if isinstance(condition, ScoreCondition):
        # A scored submission counts first, then the best score on record
        score = event.score if event is not None and event.kind in SCORED_EVENT_KINDS else None
        if score is None:
            score = max(profile.best_scores.values(), default=0.0)
        return score >= condition.threshold

    if isinstance(condition, TimeCondition):
        return profile.total_study_minutes >= condition.minutes

    if isinstance(condition, LevelCondition):
        return profile.level >= condition.level

    if isinstance(condition, FirstTryPassCondition):
        return profile.first_try_streak >= condition.count

    if isinstance(condition, SpecialCondition):
        return _special(condition.name, profile, context)

    raise TypeError(f"Unsupported condition: {condition!r}")
