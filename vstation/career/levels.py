"""
Career levels, XP rewards and cumulative unlocks.

Level thresholds are cumulative total XP. A single XP grant can cross
several thresholds; every crossed level is reported and the unlocks of all
of them are merged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from loguru import logger

from vstation.core.errors import ValidationError
from vstation.core.models import Difficulty


@dataclass(frozen=True)
class LevelInfo:
    level: int
    title: str
    xp_required: int


@dataclass(frozen=True)
class Unlocks:
    """Things a level makes available."""

    workstations: frozenset[str] = frozenset()
    features: frozenset[str] = frozenset()
    tasks: frozenset[str] = frozenset()

    def __or__(self, other: "Unlocks") -> "Unlocks":
        return Unlocks(
            workstations=self.workstations | other.workstations,
            features=self.features | other.features,
            tasks=self.tasks | other.tasks,
        )

    def is_empty(self) -> bool:
        return not (self.workstations or self.features or self.tasks)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "workstations": sorted(self.workstations),
            "features": sorted(self.features),
            "tasks": sorted(self.tasks),
        }


INTERN = "intern"
TRAINEE_ENGINEER = "trainee_engineer"
ASSISTANT_ENGINEER = "assistant_engineer"
ENGINEER = "engineer"
SENIOR_ENGINEER = "senior_engineer"
PROJECT_MANAGER = "project_manager"

LEVEL_CONFIG: list[LevelInfo] = [
    LevelInfo(1, INTERN, 0),
    LevelInfo(2, INTERN, 200),
    LevelInfo(3, TRAINEE_ENGINEER, 500),
    LevelInfo(4, TRAINEE_ENGINEER, 900),
    LevelInfo(5, TRAINEE_ENGINEER, 1400),
    LevelInfo(6, ASSISTANT_ENGINEER, 2000),
    LevelInfo(7, ASSISTANT_ENGINEER, 2700),
    LevelInfo(8, ASSISTANT_ENGINEER, 3500),
    LevelInfo(9, ENGINEER, 4500),
    LevelInfo(10, ENGINEER, 5600),
    LevelInfo(11, ENGINEER, 6800),
    LevelInfo(12, SENIOR_ENGINEER, 8200),
    LevelInfo(13, SENIOR_ENGINEER, 9800),
    LevelInfo(14, SENIOR_ENGINEER, 11600),
    LevelInfo(15, PROJECT_MANAGER, 15000),
]

MIN_LEVEL = LEVEL_CONFIG[0].level
MAX_LEVEL = LEVEL_CONFIG[-1].level

LEVEL_UNLOCKS: dict[int, Unlocks] = {
    1: Unlocks(workstations=frozenset({"env-monitoring"}), features=frozenset({"task_flow", "achievements"})),
    2: Unlocks(workstations=frozenset({"sampling-center"}), features=frozenset({"leaderboard"})),
    3: Unlocks(
        workstations=frozenset({"hazwaste-lab"}),
        features=frozenset({"competitions"}),
        tasks=frozenset({"case_001", "case_002"}),
    ),
    4: Unlocks(workstations=frozenset({"data-center"}), tasks=frozenset({"case_003", "case_004"})),
    5: Unlocks(workstations=frozenset({"instrument-room"}), features=frozenset({"share_cards"})),
    6: Unlocks(features=frozenset({"report_export"}), tasks=frozenset({"case_005"})),
    8: Unlocks(workstations=frozenset({"emergency-center"})),
    9: Unlocks(features=frozenset({"custom_cases"})),
    12: Unlocks(features=frozenset({"mentor_mode"})),
    15: Unlocks(features=frozenset({"team_management"})),
}

DIFFICULTY_MULTIPLIER: dict[str, float] = {
    Difficulty.BEGINNER.value: 1.0,
    Difficulty.INTERMEDIATE.value: 1.5,
    Difficulty.ADVANCED.value: 2.0,
}


def get_level_info(level: int) -> LevelInfo:
    level = max(MIN_LEVEL, min(MAX_LEVEL, level))
    return LEVEL_CONFIG[level - MIN_LEVEL]


def level_for_xp(total_xp: int) -> int:
    """Highest level whose threshold total_xp has reached."""
    level = MIN_LEVEL
    for info in LEVEL_CONFIG:
        if total_xp >= info.xp_required:
            level = info.level
    return level


def unlocks_for_level(level: int) -> Unlocks:
    """Everything unlocked at or below `level`."""
    merged = Unlocks()
    for at, unlocks in LEVEL_UNLOCKS.items():
        if at <= level:
            merged = merged | unlocks
    return merged


def xp_bonus(score: float) -> float:
    if score >= 100:
        return 1.1
    if score >= 90:
        return 1.05
    return 1.0


def calculate_xp_reward(base_xp: float, difficulty: Difficulty | str, score: float) -> int:
    """
    XP earned for a completed task.

    round(base * difficulty multiplier * score/100 * bonus); unknown
    difficulties use a multiplier of 1.
    """
    key = difficulty.value if isinstance(difficulty, Difficulty) else str(difficulty)
    multiplier = DIFFICULTY_MULTIPLIER.get(key, 1.0)
    raw = base_xp * multiplier * (score / 100) * xp_bonus(score)
    return max(0, int(raw + 0.5))


# =============================================================================
# Career Profile
# =============================================================================


@dataclass
class CareerProfile:
    """
    A learner's progression state.

    `level` and `total_xp` change only through XP grants; the remaining
    counters are learner statistics consumed by achievement conditions.
    """

    user_id: str
    level: int = MIN_LEVEL
    total_xp: int = 0
    completed_task_ids: list[str] = field(default_factory=list)
    best_scores: dict[str, float] = field(default_factory=dict)
    completed_workstations: list[str] = field(default_factory=list)
    certificates: list[str] = field(default_factory=list)
    achievement_count: int = 0
    streak_days: int = 0
    last_study_date: date | None = None
    total_study_minutes: float = 0.0
    first_try_streak: int = 0
    login_count: int = 0

    @property
    def title(self) -> str:
        return get_level_info(self.level).title

    @property
    def current_xp(self) -> int:
        """XP earned inside the current level."""
        return self.total_xp - get_level_info(self.level).xp_required

    @property
    def xp_to_next_level(self) -> int:
        if self.level >= MAX_LEVEL:
            return 0
        return get_level_info(self.level + 1).xp_required - self.total_xp

    @property
    def level_progress(self) -> float:
        """Fraction of the way to the next level (1.0 at max level)."""
        if self.level >= MAX_LEVEL:
            return 1.0
        span = get_level_info(self.level + 1).xp_required - get_level_info(self.level).xp_required
        return self.current_xp / span if span > 0 else 1.0

    @property
    def completed_tasks(self) -> int:
        return len(self.completed_task_ids)

    @property
    def unlocks(self) -> Unlocks:
        return unlocks_for_level(self.level)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "level": self.level,
            "total_xp": self.total_xp,
            "completed_task_ids": list(self.completed_task_ids),
            "best_scores": dict(self.best_scores),
            "completed_workstations": list(self.completed_workstations),
            "certificates": list(self.certificates),
            "achievement_count": self.achievement_count,
            "streak_days": self.streak_days,
            "last_study_date": self.last_study_date.isoformat() if self.last_study_date else None,
            "total_study_minutes": self.total_study_minutes,
            "first_try_streak": self.first_try_streak,
            "login_count": self.login_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CareerProfile":
        last = data.get("last_study_date")
        return cls(
            user_id=data["user_id"],
            level=data.get("level", MIN_LEVEL),
            total_xp=data.get("total_xp", 0),
            completed_task_ids=list(data.get("completed_task_ids", [])),
            best_scores=dict(data.get("best_scores", {})),
            completed_workstations=list(data.get("completed_workstations", [])),
            certificates=list(data.get("certificates", [])),
            achievement_count=data.get("achievement_count", 0),
            streak_days=data.get("streak_days", 0),
            last_study_date=date.fromisoformat(last) if last else None,
            total_study_minutes=data.get("total_study_minutes", 0.0),
            first_try_streak=data.get("first_try_streak", 0),
            login_count=data.get("login_count", 0),
        )


@dataclass
class LevelUpResult:
    """Outcome of one XP grant."""

    xp_added: int
    old_level: int
    new_level: int
    levels_gained: list[int] = field(default_factory=list)
    unlocks: Unlocks = field(default_factory=Unlocks)
    source: str | None = None

    @property
    def leveled_up(self) -> bool:
        return bool(self.levels_gained)


def add_experience(profile: CareerProfile, xp: int, source: str | None = None) -> LevelUpResult:
    """
    Add XP to a profile and advance through every threshold reached.

    Raises:
        ValidationError: if xp is negative (total XP never decreases)
    """
    if xp < 0:
        raise ValidationError("XP grants cannot be negative", {"xp": f"got {xp}"})

    old_level = profile.level
    profile.total_xp += xp

    gained: list[int] = []
    unlocks = Unlocks()
    while profile.level < MAX_LEVEL and profile.total_xp >= get_level_info(profile.level + 1).xp_required:
        profile.level += 1
        gained.append(profile.level)
        unlocks = unlocks | LEVEL_UNLOCKS.get(profile.level, Unlocks())

    if gained:
        logger.info(
            "User {} reached level {} ({}) from {} (+{} XP)",
            profile.user_id,
            profile.level,
            profile.title,
            source or "unknown",
            xp,
        )
    return LevelUpResult(
        xp_added=xp,
        old_level=old_level,
        new_level=profile.level,
        levels_gained=gained,
        unlocks=unlocks,
        source=source,
    )
