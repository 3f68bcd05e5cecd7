"""
Behavior tracking with batched remote upload.

Events are appended to a bounded in-memory log (for analytics) and to a pending
queue. Reaching the batch size triggers an eager flush to the remote
store. A failed flush puts the batch back at the front of the queue and
waits for the next flush; the queue is capped so a long outage drops the
oldest events instead of growing without bound.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger

from vstation.core.errors import SyncFailure
from vstation.core.models import (
    BehaviorEvent,
    BehaviorKind,
    ErrorCategory,
    ErrorClassification,
    ErrorDescription,
)
from vstation.sync.remote import RemoteStore

from .analytics import (
    PAUSE_THRESHOLD_DEFAULT,
    ClassAnalytics,
    DifficultStep,
    SessionAnalytics,
    class_analytics,
    identify_difficult_steps,
    session_analytics,
)
from .classifier import ErrorClassifier
from .heatmap import (
    DEFAULT_COMMON_ERROR_THRESHOLD,
    DEFAULT_HEAT_THRESHOLD,
    CommonError,
    ErrorRecord,
    HeatmapEntry,
    heatmap_from_events,
    identify_common_errors,
)
from .recommender import Resource, ResourceRecommender

DEFAULT_BATCH_SIZE = 10
DEFAULT_MAX_PENDING = 1000
DEFAULT_MAX_EVENTS = 10000


@dataclass
class TrackerStatus:
    """Upload counters."""

    flushed_events: int = 0
    failed_flushes: int = 0
    dropped_events: int = 0
    last_flush_at: datetime | None = None
    last_error: str | None = None


@dataclass
class ErrorReport:
    """What log_error hands back to the caller."""

    event: BehaviorEvent
    classification: ErrorClassification
    resources: list[Resource]

    @property
    def category(self) -> ErrorCategory:
        return self.classification.category


class BehaviorTracker:
    """
    Records learner actions for one execution context.

    Usage:
        tracker = BehaviorTracker(remote=remote_store)
        tracker.start_session("sess-1", user_id="u1", workstation_id="env-monitoring")
        await tracker.log_page_view("step-2", duration_ms=75_000)
        report = await tracker.log_error({"message": "pH out of range", "field_type": "number"})
        await tracker.flush()
    """

    def __init__(
        self,
        remote: RemoteStore | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_pending: int = DEFAULT_MAX_PENDING,
        classifier: ErrorClassifier | None = None,
        recommender: ResourceRecommender | None = None,
        common_error_threshold: float = DEFAULT_COMMON_ERROR_THRESHOLD,
        heat_threshold: float = DEFAULT_HEAT_THRESHOLD,
        pause_threshold: float = PAUSE_THRESHOLD_DEFAULT,
        max_events: int = DEFAULT_MAX_EVENTS,
    ):
        self.remote = remote
        self.batch_size = batch_size
        self.max_pending = max(max_pending, batch_size)
        self.classifier = classifier or ErrorClassifier()
        self.recommender = recommender or ResourceRecommender()
        self.common_error_threshold = common_error_threshold
        self.heat_threshold = heat_threshold
        self.pause_threshold = pause_threshold

        self.session_id: str | None = None
        self.user_id: str | None = None
        self.workstation_id: str | None = None
        self.stage: str | None = None

        # Analytics windows; oldest entries fall off once full
        self._events: deque[BehaviorEvent] = deque(maxlen=max_events)
        self._error_records: deque[ErrorRecord] = deque(maxlen=max_events)
        self._pending: deque[BehaviorEvent] = deque()
        self._flush_lock = asyncio.Lock()
        self._status = TrackerStatus()

    @classmethod
    def from_settings(cls, settings, remote: RemoteStore | None = None) -> "BehaviorTracker":
        return cls(
            remote=remote,
            batch_size=settings.behavior_batch_size,
            max_pending=settings.max_pending_events,
            common_error_threshold=settings.common_error_threshold,
            heat_threshold=settings.high_frequency_heat_threshold,
            pause_threshold=settings.pause_threshold_seconds,
            max_events=settings.max_analytics_events,
        )

    @property
    def status(self) -> TrackerStatus:
        return self._status

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def events(self) -> list[BehaviorEvent]:
        return list(self._events)

    # =========================================================================
    # Session Context
    # =========================================================================

    def start_session(
        self,
        session_id: str,
        user_id: str | None = None,
        workstation_id: str | None = None,
    ) -> None:
        """Switch the context new events are attributed to."""
        self.session_id = session_id
        self.user_id = user_id
        self.workstation_id = workstation_id
        self.stage = None
        logger.debug(f"Tracking session {session_id} (user={user_id}, workstation={workstation_id})")

    def set_stage(self, stage: str | None) -> None:
        self.stage = stage

    def _make_event(
        self,
        kind: BehaviorKind,
        step_id: str | None = None,
        duration_ms: int | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> BehaviorEvent:
        if self.session_id is None:
            raise RuntimeError("start_session() must be called before logging events")
        return BehaviorEvent(
            session_id=self.session_id,
            user_id=self.user_id,
            workstation_id=self.workstation_id,
            step_id=step_id,
            kind=kind,
            duration_ms=duration_ms,
            details=dict(details or {}),
        )

    # =========================================================================
    # Logging
    # =========================================================================

    async def log(self, event: BehaviorEvent) -> BehaviorEvent:
        """Append an event; flushes eagerly once a full batch is pending."""
        self._events.append(event)
        if self.remote is None:
            return event

        self._pending.append(event)
        if len(self._pending) >= self.batch_size:
            await self.flush()
        return event

    async def log_page_view(self, step_id: str, duration_ms: int, page: str | None = None) -> BehaviorEvent:
        details = {"page": page} if page else {}
        return await self.log(self._make_event(BehaviorKind.PAGE_VIEW, step_id, duration_ms, details))

    async def log_field_focus(self, field_id: str, step_id: str | None = None) -> BehaviorEvent:
        return await self.log(self._make_event(BehaviorKind.FIELD_FOCUS, step_id, details={"field": field_id}))

    async def log_field_blur(self, field_id: str, step_id: str | None = None, duration_ms: int | None = None) -> BehaviorEvent:
        return await self.log(
            self._make_event(BehaviorKind.FIELD_BLUR, step_id, duration_ms, details={"field": field_id})
        )

    async def log_modification(
        self,
        field_id: str,
        old_value: Any,
        new_value: Any,
        step_id: str | None = None,
    ) -> BehaviorEvent:
        details = {"field": field_id, "old_value": old_value, "new_value": new_value}
        return await self.log(self._make_event(BehaviorKind.FIELD_MODIFY, step_id, details=details))

    async def log_hint_view(self, hint_id: str, step_id: str | None = None) -> BehaviorEvent:
        return await self.log(self._make_event(BehaviorKind.HINT_VIEW, step_id, details={"hint_id": hint_id}))

    async def log_submission(self, step_id: str | None, data: Mapping[str, Any]) -> BehaviorEvent:
        return await self.log(self._make_event(BehaviorKind.SUBMISSION, step_id, details={"data": dict(data)}))

    async def log_simulation_action(self, action: str, step_id: str | None = None, **details: Any) -> BehaviorEvent:
        return await self.log(
            self._make_event(BehaviorKind.SIMULATION_ACTION, step_id, details={"action": action, **details})
        )

    async def log_error(
        self,
        description: ErrorDescription | Mapping[str, Any],
        step_id: str | None = None,
        correct_value: Any = None,
    ) -> ErrorReport:
        """Classify an error, record it and suggest resources."""
        classification = self.classifier.classify(description)
        parsed = classification.description
        details = {
            "message": parsed.message,
            "field": parsed.field,
            "field_type": parsed.field_type,
            "validation_rule": parsed.validation_rule,
            "category": classification.category.value,
        }
        event = await self.log(self._make_event(BehaviorKind.ERROR, step_id, details=details))

        if self.user_id and step_id:
            self._error_records.append(
                ErrorRecord(
                    user_id=self.user_id,
                    step_id=step_id,
                    category=classification.category,
                    field_id=parsed.field,
                    submitted_value=None if parsed.value is None else str(parsed.value),
                    correct_value=None if correct_value is None else str(correct_value),
                )
            )

        resources = self.recommender.recommend(
            classification.category,
            workstation_id=self.workstation_id,
            stage=self.stage,
        )
        return ErrorReport(event=event, classification=classification, resources=resources)

    # =========================================================================
    # Upload
    # =========================================================================

    async def flush(self) -> int:
        """
        Upload pending events in batches.

        Returns:
            Number of events the remote accepted
        """
        if self.remote is None or not self._pending:
            return 0

        sent = 0
        async with self._flush_lock:
            while self._pending:
                batch = [self._pending.popleft() for _ in range(min(self.batch_size, len(self._pending)))]
                try:
                    await self.remote.append_behavior_events(batch)
                except SyncFailure as exc:
                    self._pending.extendleft(reversed(batch))
                    self._status.failed_flushes += 1
                    self._status.last_error = str(exc)
                    logger.warning("Behavior log flush failed, {} events queued: {}", len(self._pending), exc)
                    self._enforce_cap()
                    break
                sent += len(batch)
                self._status.flushed_events += len(batch)
                self._status.last_flush_at = datetime.now()
                self._status.last_error = None

        if sent:
            logger.debug(f"Flushed {sent} behavior events")
        return sent

    def _enforce_cap(self) -> None:
        overflow = len(self._pending) - self.max_pending
        if overflow <= 0:
            return
        for _ in range(overflow):
            self._pending.popleft()
        self._status.dropped_events += overflow
        logger.warning(f"Dropped {overflow} oldest behavior events (queue cap {self.max_pending})")

    # =========================================================================
    # Analytics
    # =========================================================================

    def get_session_analytics(self, session_id: str | None = None) -> SessionAnalytics:
        return session_analytics(session_id or self.session_id or "", self._events)

    def get_class_analytics(self) -> ClassAnalytics:
        return class_analytics(self._events)

    def get_difficult_steps(
        self,
        workstation_id: str | None = None,
        threshold_seconds: float | None = None,
    ) -> list[DifficultStep]:
        if threshold_seconds is None:
            threshold_seconds = self.pause_threshold
        return identify_difficult_steps(self._events, threshold_seconds, workstation_id)

    def get_heatmap(self, total_students: int | None = None) -> list[HeatmapEntry]:
        return heatmap_from_events(
            self._events,
            self.classifier,
            total_students,
            self.heat_threshold,
            self.common_error_threshold,
        )

    def get_common_errors(self, total_students: int) -> list[CommonError]:
        return identify_common_errors(self._error_records, total_students, self.common_error_threshold)
