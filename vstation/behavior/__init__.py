"""
Learner behavior analysis.

Exports:
- ErrorClassifier: weighted-vote error taxonomy
- Heatmap and common-error aggregation
- ResourceRecommender: tiered study-material suggestions
- BehaviorTracker: batched event logging with analytics
"""

from .analytics import (
    ClassAnalytics,
    DifficultStep,
    SessionAnalytics,
    class_analytics,
    identify_difficult_steps,
    is_difficult_point,
    session_analytics,
)
from .classifier import ErrorClassifier, classify_error
from .heatmap import (
    CommonError,
    ErrorRecord,
    HeatLevel,
    HeatmapEntry,
    build_heatmap,
    heat_level,
    heatmap_from_events,
    identify_common_errors,
)
from .recommender import Resource, ResourceRecommender
from .tracker import BehaviorTracker, ErrorReport, TrackerStatus

__all__ = [
    # Classification
    "ErrorClassifier",
    "classify_error",
    # Heatmap
    "HeatLevel",
    "HeatmapEntry",
    "build_heatmap",
    "heat_level",
    "heatmap_from_events",
    "CommonError",
    "ErrorRecord",
    "identify_common_errors",
    # Recommendations
    "Resource",
    "ResourceRecommender",
    # Tracking
    "BehaviorTracker",
    "ErrorReport",
    "TrackerStatus",
    # Analytics
    "ClassAnalytics",
    "DifficultStep",
    "SessionAnalytics",
    "class_analytics",
    "identify_difficult_steps",
    "is_difficult_point",
    "session_analytics",
]
