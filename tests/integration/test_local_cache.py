"""
Integration tests for the SQLite local cache.

Every test runs against a real database file under tmp_path.
"""

import pytest

from vstation.career import AchievementEngine, AchievementGrant, CareerProfile, Certificate
from vstation.core.errors import DuplicateSubmission, NotFoundError
from vstation.sync import LocalCache


# ============================================================================
# Snapshots
# ============================================================================


class TestSnapshots:
    """Tests for the current-snapshot table."""

    def test_round_trip(self, local_cache, snapshot_factory):
        snapshot = snapshot_factory(updated_at=10, progress_percent=45.5, execution={"current_stage": 2})
        local_cache.save_snapshot(snapshot)

        assert local_cache.load_snapshot("u1", "hazwaste-lab") == snapshot
        assert local_cache.load_snapshot("u1", "env-monitoring") is None

    def test_one_row_per_key(self, local_cache, snapshot_factory):
        local_cache.save_snapshot(snapshot_factory(updated_at=1))
        local_cache.save_snapshot(snapshot_factory(updated_at=2, progress_percent=50))

        assert local_cache.load_snapshot("u1", "hazwaste-lab").updated_at == 2
        assert len(local_cache.pending_snapshots()) == 1

    def test_mark_pushed_requires_same_version(self, local_cache, snapshot_factory):
        local_cache.save_snapshot(snapshot_factory(updated_at=5))

        assert not local_cache.mark_pushed("u1", "hazwaste-lab", 4)
        assert local_cache.is_pending_push("u1", "hazwaste-lab")
        assert local_cache.mark_pushed("u1", "hazwaste-lab", 5)
        assert not local_cache.is_pending_push("u1", "hazwaste-lab")
        assert local_cache.pending_snapshots() == []

    def test_delete(self, local_cache, snapshot_factory):
        local_cache.save_snapshot(snapshot_factory(updated_at=1))
        assert local_cache.delete_snapshot("u1", "hazwaste-lab")
        assert not local_cache.delete_snapshot("u1", "hazwaste-lab")

    def test_survives_reopen(self, tmp_path, snapshot_factory):
        path = tmp_path / "nested" / "progress.db"
        cache = LocalCache(path)
        cache.save_snapshot(snapshot_factory(updated_at=7))
        cache.close()

        reopened = LocalCache(path)
        try:
            assert reopened.load_snapshot("u1", "hazwaste-lab").updated_at == 7
            assert reopened.is_pending_push("u1", "hazwaste-lab")
        finally:
            reopened.close()


# ============================================================================
# Backups
# ============================================================================


class TestBackups:
    """Tests for backup rotation."""

    def test_keeps_five_newest(self, local_cache, snapshot_factory):
        evicted = [local_cache.add_backup(snapshot_factory(updated_at=i), max_backups=5) for i in range(1, 8)]

        backups = local_cache.list_backups("u1", "hazwaste-lab")
        assert [b.snapshot.updated_at for b in backups] == [7, 6, 5, 4, 3]
        assert evicted == [0, 0, 0, 0, 0, 1, 1]

    def test_rotation_is_per_key(self, local_cache, snapshot_factory):
        for i in range(6):
            local_cache.add_backup(snapshot_factory(updated_at=i), max_backups=5)
        local_cache.add_backup(snapshot_factory(workstation_id="env-monitoring", updated_at=1), max_backups=5)

        assert len(local_cache.list_backups("u1", "hazwaste-lab")) == 5
        assert len(local_cache.list_backups("u1", "env-monitoring")) == 1

    def test_get_backup(self, local_cache, snapshot_factory):
        local_cache.add_backup(snapshot_factory(updated_at=3))
        backup = local_cache.list_backups("u1", "hazwaste-lab")[0]

        assert local_cache.get_backup(backup.id).snapshot.updated_at == 3
        with pytest.raises(NotFoundError):
            local_cache.get_backup(9999)


# ============================================================================
# Progression store
# ============================================================================


class TestProgressionStore:
    """Tests for grants, certificates and profiles."""

    def test_duplicate_grant(self, local_cache):
        first = local_cache.insert_grant(AchievementGrant(user_id="u1", achievement_id="welcome", unlocked_at=100))

        with pytest.raises(DuplicateSubmission) as exc_info:
            local_cache.insert_grant(AchievementGrant(user_id="u1", achievement_id="welcome", unlocked_at=200))

        assert exc_info.value.existing == first
        assert local_cache.get_grants("u1") == [first]

    def test_duplicate_certificate(self, local_cache):
        certificate = Certificate(
            id="cert-1",
            user_id="u1",
            workstation_id="hazwaste-lab",
            workstation_name="Hazardous Waste Identification Lab",
            certificate_number="VS-2026-HL-ABCDEF12",
            granted_at=100,
        )
        local_cache.insert_certificate(certificate)

        with pytest.raises(DuplicateSubmission) as exc_info:
            local_cache.insert_certificate(certificate.model_copy(update={"id": "cert-2", "granted_at": 200}))

        assert exc_info.value.existing == certificate
        assert local_cache.get_certificates("u1") == [certificate]

    def test_profile_round_trip(self, local_cache):
        profile = CareerProfile(user_id="u1", level=3, total_xp=600, completed_task_ids=["case_001"])
        local_cache.save_profile(profile)

        assert local_cache.load_profile("u1") == profile
        assert local_cache.load_profile("u2") is None

    def test_engine_on_local_cache(self, local_cache):
        engine = AchievementEngine(store=local_cache)
        engine.record_login("u1")
        engine.check_achievements("u1", "login")
        engine.grant_certificate("u1", "hazwaste-lab")

        restarted = AchievementEngine(store=local_cache)
        assert not restarted.grant_achievement("u1", "welcome").created
        assert restarted.get_profile("u1").login_count == 1
        assert [c.workstation_id for c in restarted.get_certificates("u1")] == ["hazwaste-lab"]
