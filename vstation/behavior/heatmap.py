"""
Per-step difficulty aggregation.

Heat is an error count normalized against the worst step observed:

    heat = step_errors / max(step_errors)

A step is high-frequency when its heat reaches the heat threshold or when
the share of affected learners reaches the common-error threshold.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from vstation.core.models import BehaviorEvent, BehaviorKind, ErrorCategory

from .classifier import ErrorClassifier

DEFAULT_HEAT_THRESHOLD = 0.5
DEFAULT_COMMON_ERROR_THRESHOLD = 0.2

_CATEGORY_VALUES = {category.value for category in ErrorCategory}


class HeatLevel(str, Enum):
    """Bucketed heat value."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    MINIMAL = "minimal"


HEAT_LEVEL_THRESHOLDS: list[tuple[float, HeatLevel]] = [
    (0.8, HeatLevel.CRITICAL),
    (0.6, HeatLevel.HIGH),
    (0.4, HeatLevel.MEDIUM),
    (0.2, HeatLevel.LOW),
]


def heat_level(value: float) -> HeatLevel:
    for threshold, level in HEAT_LEVEL_THRESHOLDS:
        if value >= threshold:
            return level
    return HeatLevel.MINIMAL


@dataclass
class HeatmapEntry:
    """Error statistics for one task step."""

    step_id: str
    error_count: int
    heat_value: float
    heat_level: HeatLevel
    affected_students: int = 0
    affected_ratio: float = 0.0
    is_high_frequency: bool = False
    categories: dict[ErrorCategory, int] = field(default_factory=dict)

    @property
    def dominant_category(self) -> ErrorCategory | None:
        if not self.categories:
            return None
        # Ties resolve to the taxonomy order
        order = list(ErrorCategory)
        return max(self.categories, key=lambda c: (self.categories[c], -order.index(c)))

    def to_dict(self) -> dict[str, Any]:
        dominant = self.dominant_category
        return {
            "step_id": self.step_id,
            "error_count": self.error_count,
            "heat_value": self.heat_value,
            "heat_level": self.heat_level.value,
            "affected_students": self.affected_students,
            "affected_ratio": self.affected_ratio,
            "is_high_frequency": self.is_high_frequency,
            "dominant_category": dominant.value if dominant else None,
        }


def build_heatmap(
    step_errors: Mapping[str, int],
    affected_students: Mapping[str, int] | None = None,
    total_students: int = 0,
    heat_threshold: float = DEFAULT_HEAT_THRESHOLD,
    common_error_threshold: float = DEFAULT_COMMON_ERROR_THRESHOLD,
    categories: Mapping[str, Mapping[ErrorCategory, int]] | None = None,
) -> list[HeatmapEntry]:
    """
    Build heatmap rows from per-step error counts.

    Args:
        step_errors: error count per step id
        affected_students: distinct learners with at least one error, per step
        total_students: learners in the cohort (0 disables the ratio signal)
        heat_threshold: heat at or above which a step is high-frequency
        common_error_threshold: affected share at or above which a step is high-frequency
        categories: optional per-step category counts

    Returns:
        Rows sorted by heat descending, then step id
    """
    affected_students = affected_students or {}
    categories = categories or {}
    max_errors = max(step_errors.values(), default=0)

    entries = []
    for step_id, count in step_errors.items():
        heat = count / max_errors if max_errors > 0 else 0.0
        affected = affected_students.get(step_id, 0)
        ratio = affected / total_students if total_students > 0 else 0.0
        entries.append(
            HeatmapEntry(
                step_id=step_id,
                error_count=count,
                heat_value=heat,
                heat_level=heat_level(heat),
                affected_students=affected,
                affected_ratio=ratio,
                is_high_frequency=heat >= heat_threshold or ratio >= common_error_threshold,
                categories=dict(categories.get(step_id, {})),
            )
        )

    entries.sort(key=lambda e: (-e.heat_value, e.step_id))
    return entries


def heatmap_from_events(
    events: Iterable[BehaviorEvent],
    classifier: ErrorClassifier | None = None,
    total_students: int | None = None,
    heat_threshold: float = DEFAULT_HEAT_THRESHOLD,
    common_error_threshold: float = DEFAULT_COMMON_ERROR_THRESHOLD,
) -> list[HeatmapEntry]:
    """
    Aggregate error events by step.

    The cohort size defaults to the number of distinct users seen in the
    events. An error event whose details already carry a category keeps it;
    otherwise the details are classified.
    """
    classifier = classifier or ErrorClassifier()
    step_errors: Counter[str] = Counter()
    step_users: dict[str, set[str]] = defaultdict(set)
    step_categories: dict[str, Counter[ErrorCategory]] = defaultdict(Counter)
    all_users: set[str] = set()

    for event in events:
        if event.user_id:
            all_users.add(event.user_id)
        if event.kind != BehaviorKind.ERROR or not event.step_id:
            continue
        step_errors[event.step_id] += 1
        if event.user_id:
            step_users[event.step_id].add(event.user_id)
        step_categories[event.step_id][_event_category(event, classifier)] += 1

    cohort = len(all_users) if total_students is None else total_students
    return build_heatmap(
        step_errors,
        {step: len(users) for step, users in step_users.items()},
        cohort,
        heat_threshold,
        common_error_threshold,
        step_categories,
    )


def _event_category(event: BehaviorEvent, classifier: ErrorClassifier) -> ErrorCategory:
    raw = event.details.get("category") or event.details.get("error_type")
    if raw in _CATEGORY_VALUES:
        return ErrorCategory(raw)
    return classifier.categorize(
        {
            "message": str(event.details.get("message", "")),
            "field": event.details.get("field"),
            "field_type": event.details.get("field_type"),
            "validation_rule": event.details.get("validation_rule"),
        }
    )


# =============================================================================
# Common Errors
# =============================================================================


@dataclass(frozen=True)
class ErrorRecord:
    """One recorded learner error."""

    user_id: str
    step_id: str
    category: ErrorCategory
    field_id: str | None = None
    submitted_value: str | None = None
    correct_value: str | None = None


@dataclass
class CommonError:
    category: ErrorCategory
    field_id: str | None
    step_ids: list[str]
    occurrences: int
    affected_students: int
    affected_ratio: float


def identify_common_errors(
    records: Iterable[ErrorRecord],
    total_students: int,
    threshold: float = DEFAULT_COMMON_ERROR_THRESHOLD,
) -> list[CommonError]:
    """
    Find errors shared by a large enough share of the cohort.

    Errors are grouped by (category, field); a group is common when its
    distinct affected learners divided by the cohort size reaches the
    threshold. The steps where each group occurred are kept in first-seen
    order.
    """
    if total_students <= 0:
        return []

    occurrences: Counter[tuple[ErrorCategory, str | None]] = Counter()
    users: dict[tuple[ErrorCategory, str | None], set[str]] = defaultdict(set)
    steps: dict[tuple[ErrorCategory, str | None], dict[str, None]] = defaultdict(dict)
    for record in records:
        signature = (record.category, record.field_id)
        occurrences[signature] += 1
        users[signature].add(record.user_id)
        steps[signature].setdefault(record.step_id)

    common = []
    for signature, count in occurrences.items():
        ratio = len(users[signature]) / total_students
        if ratio >= threshold:
            category, field_id = signature
            common.append(
                CommonError(
                    category=category,
                    field_id=field_id,
                    step_ids=list(steps[signature]),
                    occurrences=count,
                    affected_students=len(users[signature]),
                    affected_ratio=ratio,
                )
            )

    common.sort(key=lambda c: (-c.affected_ratio, -c.occurrences, c.category.value, c.field_id or ""))
    return common
