"""
Preset workstations and achievement definitions.
"""

from __future__ import annotations

from dataclasses import dataclass

from vstation.core.models import Difficulty, Rarity

from .conditions import (
    AchievementDefinition,
    FirstTryPassCondition,
    LevelCondition,
    ScoreCondition,
    SpecialCondition,
    StreakCondition,
    TaskCompleteCondition,
    TimeCondition,
    WorkstationCompleteCondition,
)


@dataclass(frozen=True)
class WorkstationDefinition:
    id: str
    name: str
    category: str
    difficulty: Difficulty
    required_level: int
    total_tasks: int
    xp_reward: int
    is_active: bool = True


PRESET_WORKSTATIONS: list[WorkstationDefinition] = [
    WorkstationDefinition("env-monitoring", "Environmental Monitoring Station", "env_monitoring", Difficulty.INTERMEDIATE, 1, 7, 500),
    WorkstationDefinition("hazwaste-lab", "Hazardous Waste Identification Lab", "hazwaste", Difficulty.ADVANCED, 3, 5, 600),
    WorkstationDefinition("sampling-center", "Sampling Planning Center", "sampling", Difficulty.INTERMEDIATE, 2, 4, 400),
    WorkstationDefinition("data-center", "Data Processing Center", "data_analysis", Difficulty.INTERMEDIATE, 4, 6, 450, is_active=False),
    WorkstationDefinition("instrument-room", "Instrument Operation Room", "instrument", Difficulty.ADVANCED, 5, 8, 700, is_active=False),
    WorkstationDefinition("emergency-center", "Emergency Response Center", "emergency", Difficulty.ADVANCED, 8, 10, 1000, is_active=False),
]


PRESET_ACHIEVEMENTS: list[AchievementDefinition] = [
    AchievementDefinition(
        id="first-task",
        name="First Steps",
        description="Complete your first training task",
        rarity=Rarity.COMMON,
        xp_reward=50,
        condition=TaskCompleteCondition(count=1),
    ),
    AchievementDefinition(
        id="water-sampler",
        name="Water Sampler",
        description="Complete every task at the environmental monitoring station",
        rarity=Rarity.RARE,
        xp_reward=200,
        condition=WorkstationCompleteCondition(workstation_id="env-monitoring"),
    ),
    AchievementDefinition(
        id="eco-newbie",
        name="Eco Newcomer",
        description="Study for 60 minutes in total",
        rarity=Rarity.COMMON,
        xp_reward=100,
        condition=TimeCondition(minutes=60),
    ),
    AchievementDefinition(
        id="streak-7",
        name="Seven-Day Streak",
        description="Study on seven consecutive days",
        rarity=Rarity.RARE,
        xp_reward=300,
        condition=StreakCondition(days=7),
    ),
    AchievementDefinition(
        id="perfect-score",
        name="Perfectionist",
        description="Score 100 on any task",
        rarity=Rarity.EPIC,
        xp_reward=250,
        condition=ScoreCondition(threshold=100),
    ),
    AchievementDefinition(
        id="hazwaste-expert",
        name="Hazardous Waste Expert",
        description="Solve every case in the hazardous waste lab",
        rarity=Rarity.EPIC,
        xp_reward=400,
        condition=WorkstationCompleteCondition(workstation_id="hazwaste-lab"),
    ),
    AchievementDefinition(
        id="sampling-master",
        name="Sampling Master",
        description="Complete every task at the sampling planning center",
        rarity=Rarity.RARE,
        xp_reward=250,
        condition=WorkstationCompleteCondition(workstation_id="sampling-center"),
    ),
    AchievementDefinition(
        id="all-stations",
        name="All-Round Engineer",
        description="Complete every active workstation",
        rarity=Rarity.LEGENDARY,
        xp_reward=1000,
        condition=SpecialCondition(name="all_workstations"),
    ),
    AchievementDefinition(
        id="welcome",
        name="Reporting for Duty",
        description="Log in for the first time",
        rarity=Rarity.COMMON,
        xp_reward=10,
        condition=SpecialCondition(name="first_login"),
    ),
    AchievementDefinition(
        id="first-try-5",
        name="Right First Time",
        description="Pass five tasks in a row on the first attempt",
        rarity=Rarity.RARE,
        xp_reward=200,
        condition=FirstTryPassCondition(count=5),
    ),
    AchievementDefinition(
        id="engineer",
        name="Certified Engineer",
        description="Reach level 9",
        rarity=Rarity.EPIC,
        xp_reward=300,
        condition=LevelCondition(level=9),
    ),
    AchievementDefinition(
        id="flawless",
        name="Flawless Record",
        description="Hold a perfect best score on every task you completed",
        rarity=Rarity.EPIC,
        xp_reward=500,
        condition=SpecialCondition(name="all_perfect"),
    ),
    AchievementDefinition(
        id="fully-certified",
        name="Fully Certified",
        description="Earn the certificate of every active workstation",
        rarity=Rarity.LEGENDARY,
        xp_reward=800,
        condition=SpecialCondition(name="all_certificates"),
    ),
]


def active_workstation_ids(workstations: list[WorkstationDefinition] | None = None) -> list[str]:
    return [w.id for w in (workstations or PRESET_WORKSTATIONS) if w.is_active]
