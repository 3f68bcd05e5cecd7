"""
Case scoring.

Exports:
- Sub-score functions and the weighted total
- ScoreEngine: validated, end-to-end scoring of a case submission
- Preset detection items and cases
"""

from .catalog import DETECTION_ITEMS, PRESET_CASES, CaseDefinition, DetectionItem, get_case
from .score_engine import (
    ScoreEngine,
    calculate_total_score,
    case_badges,
    generate_feedback,
    generate_path_comparison,
    get_grade,
    is_optimal_path,
    score_accuracy,
    score_budget_efficiency,
    score_path_rationality,
    score_submission,
    score_time,
    validate_judgment,
)

__all__ = [
    "ScoreEngine",
    "calculate_total_score",
    "case_badges",
    "generate_feedback",
    "generate_path_comparison",
    "get_grade",
    "is_optimal_path",
    "score_accuracy",
    "score_budget_efficiency",
    "score_path_rationality",
    "score_submission",
    "score_time",
    "validate_judgment",
    "CaseDefinition",
    "DetectionItem",
    "DETECTION_ITEMS",
    "PRESET_CASES",
    "get_case",
]
