"""
Unit tests for snapshot reconciliation.
"""

from vstation.sync import Winner, choose, has_unfinished_progress, idempotency_key, reconcile, snapshot_digest


class TestReconcile:
    """Tests for last-writer-wins merging."""

    def test_newer_wins(self, snapshot_factory):
        older = snapshot_factory(updated_at=100, progress_percent=10)
        newer = snapshot_factory(updated_at=200, progress_percent=20)

        assert reconcile(older, newer) == newer
        assert choose(older, newer).winner == Winner.REMOTE
        assert choose(newer, older).winner == Winner.LOCAL

    def test_commutative_on_equal_timestamps(self, snapshot_factory):
        a = snapshot_factory(updated_at=100, progress_percent=10)
        b = snapshot_factory(updated_at=100, progress_percent=30)

        assert reconcile(a, b) == reconcile(b, a)

    def test_missing_sides(self, snapshot_factory):
        only = snapshot_factory(updated_at=5)

        assert reconcile(only, None) == only
        assert reconcile(None, only) == only
        assert reconcile(None, None) is None
        assert choose(None, None).winner == Winner.NONE

    def test_identical_copies(self, snapshot_factory):
        a = snapshot_factory(updated_at=100)
        b = snapshot_factory(updated_at=100)

        result = choose(a, b)
        assert result.winner == Winner.NONE
        assert not result.local_stale
        assert not result.remote_stale

    def test_digest_ignores_object_identity(self, snapshot_factory):
        assert snapshot_digest(snapshot_factory(updated_at=1)) == snapshot_digest(snapshot_factory(updated_at=1))
        assert snapshot_digest(snapshot_factory(updated_at=1)) != snapshot_digest(snapshot_factory(updated_at=2))

    def test_idempotency_key(self, snapshot_factory):
        assert idempotency_key(snapshot_factory(updated_at=42)) == "u1:hazwaste-lab:42"


class TestUnfinishedProgress:
    """Tests for the resume-prompt rule."""

    def test_fresh_execution_does_not_prompt(self, snapshot_factory):
        snapshot = snapshot_factory(execution={"status": "in_progress", "current_stage": 0, "stage_data": {}})
        assert not has_unfinished_progress(snapshot)

    def test_advanced_execution_prompts(self, snapshot_factory):
        snapshot = snapshot_factory(execution={"status": "in_progress", "current_stage": 2})
        assert has_unfinished_progress(snapshot)

    def test_stage_data_prompts(self, snapshot_factory):
        snapshot = snapshot_factory(
            execution={"status": "in_progress", "current_stage": 0, "stage_data": {"receipt": {"confirmed": True}}}
        )
        assert has_unfinished_progress(snapshot)

    def test_completed_execution_does_not_prompt(self, snapshot_factory):
        snapshot = snapshot_factory(execution={"status": "completed", "current_stage": 5})
        assert not has_unfinished_progress(snapshot)

    def test_no_snapshot(self, snapshot_factory):
        assert not has_unfinished_progress(None)
        assert not has_unfinished_progress(snapshot_factory())
