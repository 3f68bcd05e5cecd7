"""
Unit tests for behavior analytics and the batching tracker.

The tracker runs against the in-memory FakeRemoteStore from conftest,
switched offline to exercise the retry queue.
"""

import pytest

from vstation.behavior import (
    BehaviorTracker,
    class_analytics,
    identify_difficult_steps,
    is_difficult_point,
    session_analytics,
)
from vstation.core.models import BehaviorEvent, BehaviorKind, ErrorCategory


def event(kind, user_id="u1", session_id="s1", step_id="step-1", duration_ms=None, workstation_id="env-monitoring"):
    return BehaviorEvent(
        session_id=session_id,
        user_id=user_id,
        workstation_id=workstation_id,
        step_id=step_id,
        kind=kind,
        duration_ms=duration_ms,
    )


# ============================================================================
# Pure analytics
# ============================================================================


class TestDifficultPoints:
    """Tests for dwell thresholds."""

    def test_threshold_is_exclusive(self):
        assert not is_difficult_point(60_000)
        assert is_difficult_point(60_001)
        assert is_difficult_point(31_000, threshold_seconds=30)

    def test_difficult_steps_sorted_by_dwell(self):
        events = [
            event(BehaviorKind.PAGE_VIEW, step_id="a", duration_ms=70_000),
            event(BehaviorKind.PAGE_VIEW, step_id="a", duration_ms=90_000),
            event(BehaviorKind.PAGE_VIEW, step_id="b", duration_ms=120_000),
            event(BehaviorKind.PAGE_VIEW, step_id="c", duration_ms=10_000),
            event(BehaviorKind.HINT_VIEW, step_id="a"),
            event(BehaviorKind.ERROR, step_id="a"),
        ]
        steps = identify_difficult_steps(events)

        assert [s.step_id for s in steps] == ["b", "a"]
        assert steps[1].average_duration_ms == pytest.approx(80_000)
        assert steps[1].hint_view_count == 1
        assert steps[1].error_count == 1

    def test_difficult_steps_filtered_by_workstation(self):
        events = [event(BehaviorKind.PAGE_VIEW, duration_ms=100_000, workstation_id="sampling-center")]
        assert identify_difficult_steps(events, workstation_id="env-monitoring") == []


class TestSessionAndClassAnalytics:
    """Tests for per-session and cohort aggregates."""

    def test_session_counts(self):
        events = [
            event(BehaviorKind.PAGE_VIEW, duration_ms=1000),
            event(BehaviorKind.PAGE_VIEW, duration_ms=3000),
            event(BehaviorKind.PAGE_VIEW),
            event(BehaviorKind.FIELD_MODIFY),
            event(BehaviorKind.HINT_VIEW),
            event(BehaviorKind.ERROR),
            event(BehaviorKind.SUBMISSION),
            event(BehaviorKind.PAGE_VIEW, session_id="other", duration_ms=99_000),
        ]
        stats = session_analytics("s1", events)

        assert stats.total_actions == 7
        assert stats.page_views == 3
        assert stats.modifications == 1
        assert stats.hints_viewed == 1
        assert stats.errors == 1
        assert stats.submissions == 1
        assert stats.average_duration_ms == pytest.approx(2000)

    def test_class_rates_per_student(self):
        events = [
            event(BehaviorKind.HINT_VIEW, user_id="u1"),
            event(BehaviorKind.HINT_VIEW, user_id="u2"),
            event(BehaviorKind.HINT_VIEW, user_id="u2"),
            event(BehaviorKind.ERROR, user_id="u1"),
            event(BehaviorKind.PAGE_VIEW, user_id="u3", duration_ms=4000),
        ]
        stats = class_analytics(events)

        assert stats.total_students == 3
        assert stats.hint_view_rate == pytest.approx(1.0)
        assert stats.error_rate == pytest.approx(1 / 3)
        assert stats.average_pause_duration_ms == pytest.approx(4000)

    def test_empty_cohort(self):
        assert class_analytics([]).total_students == 0


# ============================================================================
# Tracker
# ============================================================================


@pytest.fixture
def tracker(fake_remote):
    tracker = BehaviorTracker(remote=fake_remote)
    tracker.start_session("sess-1", user_id="u1", workstation_id="env-monitoring")
    return tracker


class TestBehaviorTracker:
    """Tests for logging, batching and retry."""

    @pytest.mark.asyncio
    async def test_requires_session(self):
        with pytest.raises(RuntimeError):
            await BehaviorTracker().log_page_view("step-1", duration_ms=10)

    @pytest.mark.asyncio
    async def test_flushes_on_full_batch(self, tracker, fake_remote):
        for i in range(9):
            await tracker.log_page_view(f"step-{i}", duration_ms=1000)
        assert fake_remote.events == []
        assert tracker.pending_count == 9

        await tracker.log_hint_view("hint-1")

        assert len(fake_remote.events) == 10
        assert tracker.pending_count == 0
        assert tracker.status.flushed_events == 10

    @pytest.mark.asyncio
    async def test_failed_flush_requeues_in_order(self, tracker, fake_remote):
        fake_remote.online = False
        logged = [await tracker.log_page_view(f"step-{i}", duration_ms=1000) for i in range(3)]

        assert await tracker.flush() == 0
        assert tracker.pending_count == 3
        assert tracker.status.failed_flushes == 1
        assert tracker.status.last_error == "remote offline"

        fake_remote.online = True
        assert await tracker.flush() == 3
        assert [e.id for e in fake_remote.events] == [e.id for e in logged]
        assert tracker.status.last_error is None

    @pytest.mark.asyncio
    async def test_queue_cap_drops_oldest(self, fake_remote):
        tracker = BehaviorTracker(remote=fake_remote, batch_size=2, max_pending=3)
        tracker.start_session("sess-1", user_id="u1")
        fake_remote.online = False

        logged = [await tracker.log_submission(f"step-{i}", {"n": i}) for i in range(4)]

        assert tracker.pending_count == 3
        assert tracker.status.dropped_events == 1

        fake_remote.online = True
        await tracker.flush()
        assert [e.id for e in fake_remote.events] == [e.id for e in logged[1:]]

    @pytest.mark.asyncio
    async def test_without_remote_events_stay_local(self):
        tracker = BehaviorTracker()
        tracker.start_session("sess-1", user_id="u1")
        await tracker.log_field_focus("ph_value")

        assert len(tracker.events) == 1
        assert tracker.pending_count == 0
        assert await tracker.flush() == 0

    @pytest.mark.asyncio
    async def test_log_error_classifies_and_recommends(self, tracker):
        report = await tracker.log_error(
            {"message": "pH value out of range", "field": "ph_value", "field_type": "number", "value": "15"},
            step_id="record",
            correct_value="7.2",
        )

        assert report.category == ErrorCategory.CALCULATION
        assert report.event.kind == BehaviorKind.ERROR
        assert report.event.details["category"] == "calculation"
        assert report.resources[0].id == "res-ws-env-flow"

        common = tracker.get_common_errors(total_students=1)
        assert len(common) == 1
        assert common[0].step_ids == ["record"]

    @pytest.mark.asyncio
    async def test_analytics_views(self, tracker):
        await tracker.log_page_view("slow-step", duration_ms=90_000)
        await tracker.log_modification("ph_value", "6", "7")
        await tracker.log_error({"message": "Invalid date format"}, step_id="slow-step")

        stats = tracker.get_session_analytics()
        assert stats.page_views == 1
        assert stats.modifications == 1
        assert stats.errors == 1

        assert [s.step_id for s in tracker.get_difficult_steps()] == ["slow-step"]

        heatmap = tracker.get_heatmap()
        assert heatmap[0].step_id == "slow-step"
        assert heatmap[0].dominant_category == ErrorCategory.FORMAT

    def test_from_settings(self, fake_remote):
        from config import Settings

        settings = Settings(
            behavior_batch_size=3, max_pending_events=50, pause_threshold_seconds=30, max_analytics_events=200
        )
        tracker = BehaviorTracker.from_settings(settings, remote=fake_remote)

        assert tracker.batch_size == 3
        assert tracker.max_pending == 50
        assert tracker.pause_threshold == 30
        assert tracker._events.maxlen == 200
        assert tracker.remote is fake_remote

    @pytest.mark.asyncio
    async def test_analytics_window_is_bounded(self, fake_remote):
        tracker = BehaviorTracker(remote=fake_remote, max_events=100)
        tracker.start_session("sess-1", user_id="u1", workstation_id="env-monitoring")

        for i in range(500):
            await tracker.log_hint_view(f"hint-{i}")
        for _ in range(150):
            await tracker.log_error({"message": "Invalid date format"}, step_id="record")

        assert tracker.pending_count == 0
        assert len(tracker.events) == 100
        assert tracker.events[-1].kind == BehaviorKind.ERROR
        assert len(tracker._error_records) == 100
        assert len(fake_remote.events) == 650
