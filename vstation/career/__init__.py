"""
Career progression: levels, XP, achievements and certificates.
"""

from .achievements import (
    AchievementEngine,
    AchievementGrant,
    AchievementStatus,
    Certificate,
    GrantOutcome,
    InMemoryProgressionStore,
    ProgressionStore,
    certificate_number,
)
from .catalog import PRESET_ACHIEVEMENTS, PRESET_WORKSTATIONS, WorkstationDefinition, active_workstation_ids
from .conditions import (
    AchievementDefinition,
    AchievementEvent,
    Condition,
    ConditionContext,
    FirstTryPassCondition,
    LevelCondition,
    ScoreCondition,
    SpecialCondition,
    StreakCondition,
    TaskCompleteCondition,
    TimeCondition,
    WorkstationCompleteCondition,
    evaluate_condition,
)
from .levels import (
    LEVEL_CONFIG,
    LEVEL_UNLOCKS,
    CareerProfile,
    LevelInfo,
    LevelUpResult,
    Unlocks,
    add_experience,
    calculate_xp_reward,
    get_level_info,
    level_for_xp,
    unlocks_for_level,
)

__all__ = [
    # Engine
    "AchievementEngine",
    "AchievementGrant",
    "AchievementStatus",
    "Certificate",
    "GrantOutcome",
    "InMemoryProgressionStore",
    "ProgressionStore",
    "certificate_number",
    # Catalog
    "PRESET_ACHIEVEMENTS",
    "PRESET_WORKSTATIONS",
    "WorkstationDefinition",
    "active_workstation_ids",
    # Conditions
    "AchievementDefinition",
    "AchievementEvent",
    "Condition",
    "ConditionContext",
    "FirstTryPassCondition",
    "LevelCondition",
    "ScoreCondition",
    "SpecialCondition",
    "StreakCondition",
    "TaskCompleteCondition",
    "TimeCondition",
    "WorkstationCompleteCondition",
    "evaluate_condition",
    # Levels
    "LEVEL_CONFIG",
    "LEVEL_UNLOCKS",
    "CareerProfile",
    "LevelInfo",
    "LevelUpResult",
    "Unlocks",
    "add_experience",
    "calculate_xp_reward",
    "get_level_info",
    "level_for_xp",
    "unlocks_for_level",
]
