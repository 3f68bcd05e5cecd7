"""
Core contracts and errors.

Exports:
- Error taxonomy: EngineError, ValidationError, NotFoundError, SyncFailure, DuplicateSubmission
- Shared pydantic contracts and enumerations
"""

from .errors import DuplicateSubmission, EngineError, NotFoundError, SyncFailure, ValidationError
from .models import (
    BehaviorEvent,
    BehaviorKind,
    CorrectAnswer,
    Difficulty,
    ErrorCategory,
    ErrorClassification,
    ErrorDescription,
    Feedback,
    Grade,
    Judgment,
    JudgmentResult,
    LeaderboardEntry,
    PathComparison,
    PathItem,
    ProgressSnapshot,
    Rarity,
    SavedData,
    ScoreBreakdown,
    ScoreInput,
    ScoreResult,
    SubmissionRecord,
    new_id,
    now_ms,
)

__all__ = [
    # Errors
    "EngineError",
    "ValidationError",
    "NotFoundError",
    "SyncFailure",
    "DuplicateSubmission",
    # Enums
    "BehaviorKind",
    "Difficulty",
    "ErrorCategory",
    "Grade",
    "JudgmentResult",
    "Rarity",
    # Contracts
    "BehaviorEvent",
    "CorrectAnswer",
    "ErrorClassification",
    "ErrorDescription",
    "Feedback",
    "Judgment",
    "LeaderboardEntry",
    "PathComparison",
    "PathItem",
    "ProgressSnapshot",
    "SavedData",
    "ScoreBreakdown",
    "ScoreInput",
    "ScoreResult",
    "SubmissionRecord",
    # Helpers
    "new_id",
    "now_ms",
]
