"""
Unit tests for step heatmaps and common-error detection.
"""

import pytest

from vstation.behavior import (
    ErrorRecord,
    HeatLevel,
    build_heatmap,
    heat_level,
    heatmap_from_events,
    identify_common_errors,
)
from vstation.core.models import BehaviorEvent, BehaviorKind, ErrorCategory


def error_event(user_id, step_id, **details):
    return BehaviorEvent(
        session_id=f"s-{user_id}",
        user_id=user_id,
        step_id=step_id,
        kind=BehaviorKind.ERROR,
        details=details,
    )


class TestHeatLevel:
    """Tests for heat buckets."""

    @pytest.mark.parametrize(
        "value,level",
        [(1.0, HeatLevel.CRITICAL), (0.8, HeatLevel.CRITICAL), (0.79, HeatLevel.HIGH), (0.6, HeatLevel.HIGH),
         (0.4, HeatLevel.MEDIUM), (0.2, HeatLevel.LOW), (0.19, HeatLevel.MINIMAL), (0.0, HeatLevel.MINIMAL)],
    )
    def test_buckets(self, value, level):
        assert heat_level(value) == level


class TestBuildHeatmap:
    """Tests for build_heatmap."""

    def test_normalized_against_worst_step(self):
        rows = build_heatmap({"stepA": 10, "stepB": 4})
        by_step = {r.step_id: r for r in rows}

        assert by_step["stepA"].heat_value == 1.0
        assert by_step["stepA"].heat_level == HeatLevel.CRITICAL
        assert by_step["stepB"].heat_value == pytest.approx(0.4)
        assert by_step["stepB"].heat_level == HeatLevel.MEDIUM
        assert [r.step_id for r in rows] == ["stepA", "stepB"]

    def test_high_frequency_by_heat_or_share(self):
        rows = build_heatmap(
            {"a": 10, "b": 4, "c": 1},
            affected_students={"a": 1, "b": 1, "c": 3},
            total_students=10,
        )
        by_step = {r.step_id: r for r in rows}

        assert by_step["a"].is_high_frequency  # heat 1.0
        assert not by_step["b"].is_high_frequency  # heat 0.4, share 0.1
        assert by_step["c"].is_high_frequency  # share 0.3
        assert by_step["c"].affected_ratio == pytest.approx(0.3)

    def test_all_zero(self):
        rows = build_heatmap({"a": 0})
        assert rows[0].heat_value == 0
        assert rows[0].heat_level == HeatLevel.MINIMAL

    def test_empty(self):
        assert build_heatmap({}) == []


class TestHeatmapFromEvents:
    """Tests for event aggregation."""

    def test_counts_only_error_events(self):
        events = [
            error_event("u1", "record", category="format"),
            error_event("u2", "record", category="format"),
            error_event("u1", "plan", message="calculation formula wrong"),
            BehaviorEvent(session_id="s-u3", user_id="u3", step_id="record", kind=BehaviorKind.PAGE_VIEW),
        ]
        rows = heatmap_from_events(events)
        by_step = {r.step_id: r for r in rows}

        assert by_step["record"].error_count == 2
        assert by_step["record"].affected_students == 2
        # cohort is every distinct user seen, including u3
        assert by_step["record"].affected_ratio == pytest.approx(2 / 3)
        assert by_step["record"].dominant_category == ErrorCategory.FORMAT
        assert by_step["plan"].dominant_category == ErrorCategory.CALCULATION
        assert by_step["plan"].to_dict()["dominant_category"] == "calculation"

    def test_explicit_cohort(self):
        rows = heatmap_from_events([error_event("u1", "x", category="process")], total_students=20)
        assert rows[0].affected_ratio == pytest.approx(0.05)
        assert rows[0].is_high_frequency  # heat 1.0


class TestCommonErrors:
    """Tests for identify_common_errors."""

    def test_threshold(self):
        records = [
            ErrorRecord("u1", "record", ErrorCategory.FORMAT, field_id="sample_id"),
            ErrorRecord("u2", "record", ErrorCategory.FORMAT, field_id="sample_id"),
            ErrorRecord("u2", "record", ErrorCategory.FORMAT, field_id="sample_id"),
            ErrorRecord("u3", "plan", ErrorCategory.PROCESS, field_id="order"),
        ]
        common = identify_common_errors(records, total_students=10)

        assert len(common) == 1
        assert common[0].step_ids == ["record"]
        assert common[0].occurrences == 3
        assert common[0].affected_students == 2
        assert common[0].affected_ratio == pytest.approx(0.2)

    def test_no_cohort(self):
        assert identify_common_errors([ErrorRecord("u1", "s", ErrorCategory.FORMAT)], total_students=0) == []

    def test_grouped_by_category_and_field_across_steps(self):
        records = [
            ErrorRecord("u1", "record", ErrorCategory.CALCULATION, field_id="ph_value"),
            ErrorRecord("u2", "review", ErrorCategory.CALCULATION, field_id="ph_value"),
            ErrorRecord("u3", "review", ErrorCategory.FORMAT, field_id="ph_value"),
        ]
        common = identify_common_errors(records, total_students=5, threshold=0.4)

        assert len(common) == 1
        assert common[0].category == ErrorCategory.CALCULATION
        assert common[0].field_id == "ph_value"
        assert common[0].step_ids == ["record", "review"]
        assert common[0].affected_students == 2
