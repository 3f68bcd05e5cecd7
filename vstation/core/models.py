"""
Data contracts exchanged between engine components.

Pydantic models for everything that crosses a component or storage
boundary: judgments, score results, behavior events, leaderboard entries
and progress snapshots. Runtime-only state (profiles, executions, heatmap
rows) lives next to the component that owns it as plain dataclasses.
"""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    """Short random identifier with a readable prefix."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


# =============================================================================
# Enumerations
# =============================================================================


class JudgmentResult(str, Enum):
    """Top-level verdict a learner submits for a waste sample."""

    HAZARDOUS = "hazardous"
    NON_HAZARDOUS = "non_hazardous"
    NEED_FURTHER = "need_further"


class Grade(str, Enum):
    """Grade band of a total score."""

    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"
    TRAINEE = "trainee"


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class ErrorCategory(str, Enum):
    """Fixed error taxonomy used by the classifier."""

    CONCEPT = "concept"
    CALCULATION = "calculation"
    PROCESS = "process"
    FORMAT = "format"


class BehaviorKind(str, Enum):
    PAGE_VIEW = "page_view"
    FIELD_FOCUS = "field_focus"
    FIELD_BLUR = "field_blur"
    FIELD_MODIFY = "field_modify"
    HINT_VIEW = "hint_view"
    SUBMISSION = "submission"
    ERROR = "error_occur"
    SIMULATION_ACTION = "simulation_action"


class Rarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


# =============================================================================
# Scoring Contracts
# =============================================================================


class Judgment(BaseModel):
    """What the learner concluded about a case."""

    model_config = ConfigDict(frozen=True)

    result: JudgmentResult
    characteristics: tuple[str, ...] = ()
    standard_basis: tuple[str, ...] = ()
    rationale: str = ""


class CorrectAnswer(BaseModel):
    """Reference answer of a case."""

    model_config = ConfigDict(frozen=True)

    result: JudgmentResult
    characteristics: tuple[str, ...] = ()
    required_evidence: tuple[str, ...] = ()
    standard_basis: tuple[str, ...] = ()

    @field_validator("result")
    @classmethod
    def _definite_result(cls, value: JudgmentResult) -> JudgmentResult:
        if value == JudgmentResult.NEED_FURTHER:
            raise ValueError("correct answer must be hazardous or non_hazardous")
        return value


class SubmissionRecord(BaseModel):
    """A submitted judgment; immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("sub"))
    session_id: str
    case_id: str
    judgment: Judgment
    purchased_items: tuple[str, ...] = ()
    submitted_at: int = Field(default_factory=now_ms)


class ScoreInput(BaseModel):
    """Everything needed to score one case submission."""

    judgment: Judgment
    correct_answer: CorrectAnswer
    spent_budget: float = Field(ge=0)
    total_budget: float = Field(gt=0)
    optimal_cost: float = Field(ge=0)
    user_path: list[str] = Field(default_factory=list)
    optimal_path: list[str] = Field(default_factory=list)
    elapsed_seconds: float = Field(ge=0)
    time_limit_seconds: float | None = None


class PathItem(BaseModel):
    id: str
    name: str
    price: float = 0


class PathComparison(BaseModel):
    """Learner purchase path measured against the optimal one."""

    user_path: list[str]
    optimal_path: list[str]
    extra_cost: float
    unnecessary_items: list[PathItem] = Field(default_factory=list)
    unnecessary_cost: float = 0
    missing_items: list[PathItem] = Field(default_factory=list)
    is_optimal: bool = False


class Feedback(BaseModel):
    level: str
    title: str
    message: str
    suggestions: list[str] = Field(default_factory=list)


class ScoreBreakdown(BaseModel):
    """Sub-scores rounded for display."""

    accuracy: int
    budget: int
    path: int
    time: int


class ScoreResult(BaseModel):
    total: int = Field(ge=0, le=100)
    grade: Grade
    breakdown: ScoreBreakdown
    is_correct: bool
    achievements: list[str] = Field(default_factory=list)
    path_comparison: PathComparison | None = None
    feedback: Feedback | None = None


# =============================================================================
# Behavior Contracts
# =============================================================================


class BehaviorEvent(BaseModel):
    """A single learner action; append-only."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("evt"))
    session_id: str
    user_id: str | None = None
    workstation_id: str | None = None
    step_id: str | None = None
    kind: BehaviorKind
    timestamp: int = Field(default_factory=now_ms)
    duration_ms: int | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorDescription(BaseModel):
    """Input to the error classifier."""

    message: str = ""
    field: str | None = None
    field_type: str | None = None
    value: Any = None
    validation_rule: str | None = None


class ErrorClassification(BaseModel):
    description: ErrorDescription
    category: ErrorCategory
    scores: dict[ErrorCategory, float]
    signals: list[str] = Field(default_factory=list)


# =============================================================================
# Leaderboard Contracts
# =============================================================================


class LeaderboardEntry(BaseModel):
    id: str = Field(default_factory=lambda: new_id("entry"))
    competition_id: str
    user_id: str
    user_name: str = ""
    score: float = Field(ge=0, le=100)
    time_spent_seconds: float = Field(ge=0)
    rank: int = 0
    completed_at: int = Field(default_factory=now_ms)
    operation_path: list[str] | None = None


# =============================================================================
# Progress Contracts
# =============================================================================


class SavedData(BaseModel):
    execution: dict[str, Any] | None = None
    session: dict[str, Any] | None = None


class ProgressSnapshot(BaseModel):
    """Persisted progress record, identical in the local cache and the remote store."""

    user_id: str
    workstation_id: str
    progress_percent: float = Field(default=0, ge=0, le=100)
    completed_tasks: int = Field(default=0, ge=0)
    total_tasks: int = Field(default=0, ge=0)
    last_task_id: str | None = None
    last_stage_id: str | None = None
    saved_data: SavedData = Field(default_factory=SavedData)
    updated_at: int = 0

    @property
    def key(self) -> tuple[str, str]:
        return (self.user_id, self.workstation_id)
