"""
Unit tests for achievement conditions, grants and certificates.
"""

from datetime import date, timedelta

import pydantic
import pytest

from vstation.career import (
    AchievementDefinition,
    AchievementEngine,
    AchievementEvent,
    CareerProfile,
    ConditionContext,
    InMemoryProgressionStore,
    LevelCondition,
    ScoreCondition,
    SpecialCondition,
    TaskCompleteCondition,
    evaluate_condition,
)
from vstation.core.errors import NotFoundError, ValidationError


@pytest.fixture
def engine():
    return AchievementEngine()


def ids(definitions):
    return sorted(d.id for d in definitions)


# ============================================================================
# Conditions
# ============================================================================


class TestConditions:
    """Tests for evaluate_condition."""

    def test_task_condition_needs_one_target(self):
        with pytest.raises(pydantic.ValidationError):
            TaskCompleteCondition()
        with pytest.raises(pydantic.ValidationError):
            TaskCompleteCondition(task_id="case_001", count=1)

    def test_task_by_id_and_count(self):
        profile = CareerProfile(user_id="u1", completed_task_ids=["case_001", "case_002"])
        assert evaluate_condition(TaskCompleteCondition(task_id="case_002"), profile)
        assert evaluate_condition(TaskCompleteCondition(count=2), profile)
        assert not evaluate_condition(TaskCompleteCondition(count=3), profile)

    def test_score_prefers_event_score(self):
        profile = CareerProfile(user_id="u1", best_scores={"case_001": 100})
        condition = ScoreCondition(threshold=100)

        assert evaluate_condition(condition, profile)
        low = AchievementEvent(user_id="u1", kind="task_complete", payload={"score": 80})
        assert not evaluate_condition(condition, profile, low)

    def test_score_ignores_unscored_event_kinds(self):
        profile = CareerProfile(user_id="u1")
        condition = ScoreCondition(threshold=100)

        login = AchievementEvent(user_id="u1", kind="login", payload={"score": 100})
        assert not evaluate_condition(condition, profile, login)
        scored = AchievementEvent(user_id="u1", kind="score", payload={"score": 100})
        assert evaluate_condition(condition, profile, scored)

    def test_condition_parsed_from_dict(self):
        definition = AchievementDefinition.model_validate(
            {"id": "x", "name": "X", "condition": {"kind": "streak", "days": 3}}
        )
        assert definition.condition.days == 3

    def test_all_workstations_uses_context(self):
        profile = CareerProfile(user_id="u1", completed_workstations=["a", "b"])
        condition = SpecialCondition(name="all_workstations")

        assert evaluate_condition(condition, profile, context=ConditionContext.from_workstations(["a", "b"]))
        assert not evaluate_condition(condition, profile, context=ConditionContext.from_workstations(["a", "c"]))
        assert not evaluate_condition(condition, profile)


# ============================================================================
# Grants
# ============================================================================


class TestAchievementGrants:
    """Tests for idempotent grants and the evaluation fixpoint."""

    def test_first_task_granted_once(self, engine):
        engine.record_task_completion("u1", "case_001", score=80)
        payload = {"task_id": "case_001", "score": 80}

        first = engine.check_achievements("u1", "task_complete", payload)
        second = engine.check_achievements("u1", "task_complete", payload)

        assert ids(first) == ["first-task"]
        assert second == []
        assert engine.get_profile("u1").total_xp == 50
        assert engine.get_profile("u1").achievement_count == 1

    def test_perfect_score(self, engine):
        engine.record_task_completion("u1", "case_001", score=100)
        granted = engine.check_achievements("u1", "task_complete", {"task_id": "case_001", "score": 100})

        assert ids(granted) == ["first-task", "flawless", "perfect-score"]
        assert engine.get_profile("u1").total_xp == 800
        assert engine.get_profile("u1").level == 3

    def test_grant_is_idempotent(self, engine):
        first = engine.grant_achievement("u1", "welcome")
        second = engine.grant_achievement("u1", "welcome")

        assert first.created
        assert not second.created
        assert second.grant == first.grant
        assert second.level_up is None
        assert engine.get_profile("u1").total_xp == 10

    def test_unknown_achievement(self, engine):
        with pytest.raises(NotFoundError):
            engine.grant_achievement("u1", "nope")

    def test_level_conditions_reach_fixpoint(self):
        engine = AchievementEngine(
            definitions=[
                AchievementDefinition(id="big-start", name="Big start", xp_reward=500, condition=TaskCompleteCondition(count=1)),
                AchievementDefinition(id="level-3", name="Level 3", condition=LevelCondition(level=3)),
            ]
        )
        engine.record_task_completion("u1", "t1", score=50)

        granted = engine.check_achievements("u1", "task_complete")

        assert [d.id for d in granted] == ["big-start", "level-3"]
        assert engine.get_profile("u1").level == 3

    def test_login_and_first_try_streak(self, engine):
        engine.record_login("u1")
        assert "welcome" in ids(engine.check_achievements("u1", "login"))

        for i in range(5):
            engine.record_task_completion("u1", f"t{i}", score=70, first_try=True)
        assert "first-try-5" in ids(engine.check_achievements("u1", "task_complete"))

        engine.record_task_completion("u1", "t9", score=70, first_try=False)
        assert engine.get_profile("u1").first_try_streak == 0

    def test_status_views(self, engine):
        engine.grant_achievement("u1", "welcome")

        unlocked = engine.get_unlocked_achievements("u1")
        locked = engine.get_locked_achievements("u1")

        assert [s.definition.id for s in unlocked] == ["welcome"]
        assert unlocked[0].unlocked_at is not None
        assert len(unlocked) + len(locked) == len(engine.definitions)

    def test_share_card(self, engine):
        card = engine.generate_share_card("welcome", base_url="https://example.org/")
        assert card["share_url"] == "https://example.org/virtual-station?share=welcome"
        assert card["xp_reward"] == 10

    def test_state_survives_engine_restart(self):
        store = InMemoryProgressionStore()
        AchievementEngine(store=store).grant_achievement("u1", "welcome")

        engine = AchievementEngine(store=store)
        assert engine.get_profile("u1").total_xp == 10
        assert not engine.grant_achievement("u1", "welcome").created


# ============================================================================
# Learner statistics
# ============================================================================


class TestLearnerStatistics:
    """Tests for streaks, study time and task records."""

    def test_streak(self, engine):
        day = date(2026, 3, 1)
        assert engine.record_study_day("u1", day) == 1
        assert engine.record_study_day("u1", day + timedelta(days=1)) == 2
        assert engine.record_study_day("u1", day + timedelta(days=1)) == 2
        assert engine.record_study_day("u1", day + timedelta(days=2)) == 3
        # late event for an earlier day
        assert engine.record_study_day("u1", day) == 3
        assert engine.record_study_day("u1", day + timedelta(days=5)) == 1

    def test_study_time(self, engine):
        engine.record_study_time("u1", 45)
        assert engine.record_study_time("u1", 15) == 60
        assert "eco-newbie" in ids(engine.check_achievements("u1", "study_time"))
        with pytest.raises(ValidationError):
            engine.record_study_time("u1", -1)

    def test_best_score_kept(self, engine):
        engine.record_task_completion("u1", "case_001", score=90)
        engine.record_task_completion("u1", "case_001", score=60)

        profile = engine.get_profile("u1")
        assert profile.best_scores["case_001"] == 90
        assert profile.completed_task_ids == ["case_001"]

    def test_score_out_of_range(self, engine):
        with pytest.raises(ValidationError):
            engine.record_task_completion("u1", "case_001", score=101)


# ============================================================================
# Workstations & Certificates
# ============================================================================


class TestCertificates:
    """Tests for certificate eligibility and workstation access."""

    def test_eligibility(self, engine):
        assert engine.check_certificate_eligibility("u1", "hazwaste-lab", 4, 5) is None
        assert engine.check_certificate_eligibility("u1", "hazwaste-lab", 0, 0) is None

        certificate = engine.check_certificate_eligibility("u1", "hazwaste-lab", 5, 5)
        assert certificate is not None
        assert certificate.certificate_number.startswith("VS-")
        assert "-HL-" in certificate.certificate_number

    def test_certificate_issued_once(self, engine):
        first = engine.grant_certificate("u1", "hazwaste-lab")
        second = engine.grant_certificate("u1", "hazwaste-lab")

        assert second.id == first.id
        assert len(engine.get_certificates("u1")) == 1

    def test_eligibility_fires_once(self, engine):
        assert engine.check_certificate_eligibility("u1", "hazwaste-lab", 5, 5) is not None
        assert engine.check_certificate_eligibility("u1", "hazwaste-lab", 5, 5) is None
        assert engine.check_certificate_eligibility("u1", "hazwaste-lab", 6, 5) is None
        assert len(engine.get_certificates("u1")) == 1

    def test_certificate_completes_workstation(self, engine):
        engine.grant_certificate("u1", "hazwaste-lab")

        profile = engine.get_profile("u1")
        assert profile.completed_workstations == ["hazwaste-lab"]
        assert "hazwaste-expert" in ids(engine.check_achievements("u1", "certificate"))

    def test_workstation_unlocking(self, engine):
        assert engine.is_workstation_unlocked("u1", "env-monitoring")
        assert not engine.is_workstation_unlocked("u1", "hazwaste-lab")

        engine.add_experience("u1", 500)
        assert engine.is_workstation_unlocked("u1", "hazwaste-lab")

        engine.add_experience("u1", 100_000)
        assert not engine.is_workstation_unlocked("u1", "data-center")

    def test_unknown_workstation(self, engine):
        with pytest.raises(NotFoundError):
            engine.grant_certificate("u1", "moon-base")
