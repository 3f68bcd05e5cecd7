"""
Session and class analytics over behavior events.

Pure aggregations; the tracker feeds them from its in-memory session log
and callers can feed them events fetched from any store.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

from vstation.core.models import BehaviorEvent, BehaviorKind

# Seconds of dwell time before a step counts as a difficult point
PAUSE_THRESHOLD_DEFAULT = 60
PAUSE_THRESHOLD_SIMPLE = 30
PAUSE_THRESHOLD_COMPLEX = 120


@dataclass
class SessionAnalytics:
    session_id: str
    total_actions: int = 0
    page_views: int = 0
    modifications: int = 0
    hints_viewed: int = 0
    errors: int = 0
    submissions: int = 0
    average_duration_ms: float = 0.0


@dataclass
class ClassAnalytics:
    total_students: int = 0
    average_pause_duration_ms: float = 0.0
    hint_view_rate: float = 0.0
    error_rate: float = 0.0


@dataclass
class DifficultStep:
    step_id: str
    average_duration_ms: float
    hint_view_count: int = 0
    error_count: int = 0


def is_difficult_point(duration_ms: float, threshold_seconds: float = PAUSE_THRESHOLD_DEFAULT) -> bool:
    """A dwell longer than the threshold marks a difficult point."""
    return duration_ms > threshold_seconds * 1000


def _average_duration(events: list[BehaviorEvent]) -> float:
    durations = [e.duration_ms for e in events if e.duration_ms is not None]
    if not durations:
        return 0.0
    return sum(durations) / len(durations)


def session_analytics(session_id: str, events: Iterable[BehaviorEvent]) -> SessionAnalytics:
    session_events = [e for e in events if e.session_id == session_id]
    stats = SessionAnalytics(session_id=session_id, total_actions=len(session_events))
    page_views = []
    for event in session_events:
        if event.kind == BehaviorKind.PAGE_VIEW:
            stats.page_views += 1
            page_views.append(event)
        elif event.kind == BehaviorKind.FIELD_MODIFY:
            stats.modifications += 1
        elif event.kind == BehaviorKind.HINT_VIEW:
            stats.hints_viewed += 1
        elif event.kind == BehaviorKind.ERROR:
            stats.errors += 1
        elif event.kind == BehaviorKind.SUBMISSION:
            stats.submissions += 1
    stats.average_duration_ms = _average_duration(page_views)
    return stats


def class_analytics(events: Iterable[BehaviorEvent]) -> ClassAnalytics:
    """Cohort-level rates: hints and errors per distinct learner."""
    events = list(events)
    students = {e.user_id for e in events if e.user_id}
    if not students:
        return ClassAnalytics()

    page_views = [e for e in events if e.kind == BehaviorKind.PAGE_VIEW]
    hints = sum(1 for e in events if e.kind == BehaviorKind.HINT_VIEW)
    errors = sum(1 for e in events if e.kind == BehaviorKind.ERROR)
    return ClassAnalytics(
        total_students=len(students),
        average_pause_duration_ms=_average_duration(page_views),
        hint_view_rate=hints / len(students),
        error_rate=errors / len(students),
    )


def identify_difficult_steps(
    events: Iterable[BehaviorEvent],
    threshold_seconds: float = PAUSE_THRESHOLD_DEFAULT,
    workstation_id: str | None = None,
) -> list[DifficultStep]:
    """
    Steps whose average page-view dwell exceeds the pause threshold.

    Returns:
        Difficult steps, longest average dwell first
    """
    durations: dict[str, list[int]] = defaultdict(list)
    hints: dict[str, int] = defaultdict(int)
    errors: dict[str, int] = defaultdict(int)

    for event in events:
        if not event.step_id:
            continue
        if workstation_id is not None and event.workstation_id != workstation_id:
            continue
        if event.kind == BehaviorKind.PAGE_VIEW:
            durations[event.step_id].append(event.duration_ms or 0)
        elif event.kind == BehaviorKind.HINT_VIEW:
            hints[event.step_id] += 1
        elif event.kind == BehaviorKind.ERROR:
            errors[event.step_id] += 1

    difficult = []
    for step_id, values in durations.items():
        average = sum(values) / len(values)
        if is_difficult_point(average, threshold_seconds):
            difficult.append(
                DifficultStep(
                    step_id=step_id,
                    average_duration_ms=average,
                    hint_view_count=hints[step_id],
                    error_count=errors[step_id],
                )
            )

    difficult.sort(key=lambda s: (-s.average_duration_ms, s.step_id))
    return difficult
