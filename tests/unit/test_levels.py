"""
Unit tests for career levels and XP.
"""

import pytest

from vstation.career import (
    LEVEL_CONFIG,
    CareerProfile,
    add_experience,
    calculate_xp_reward,
    get_level_info,
    level_for_xp,
    unlocks_for_level,
)
from vstation.core.errors import ValidationError
from vstation.core.models import Difficulty


class TestLevelTable:
    """Tests for level thresholds."""

    def test_thresholds_strictly_increasing(self):
        thresholds = [info.xp_required for info in LEVEL_CONFIG]
        assert thresholds == sorted(set(thresholds))
        assert LEVEL_CONFIG[0].xp_required == 0

    @pytest.mark.parametrize(
        "xp,level",
        [(0, 1), (199, 1), (200, 2), (2500, 6), (2700, 7), (15000, 15), (10**9, 15)],
    )
    def test_level_for_xp(self, xp, level):
        assert level_for_xp(xp) == level

    def test_level_info_clamped(self):
        assert get_level_info(0).level == 1
        assert get_level_info(99).level == 15


class TestAddExperience:
    """Tests for XP grants and multi-level jumps."""

    def test_multi_level_jump(self):
        profile = CareerProfile(user_id="u1")
        result = add_experience(profile, 2500, source="case_001")

        assert profile.level == 6
        assert profile.total_xp == 2500
        assert result.old_level == 1
        assert result.new_level == 6
        assert result.levels_gained == [2, 3, 4, 5, 6]
        assert result.leveled_up

    def test_unlocks_are_merged_across_levels(self):
        result = add_experience(CareerProfile(user_id="u1"), 2500)

        assert {"sampling-center", "hazwaste-lab", "data-center", "instrument-room"} <= result.unlocks.workstations
        assert {"case_001", "case_002", "case_003", "case_004", "case_005"} == result.unlocks.tasks
        assert "report_export" in result.unlocks.features
        # level 1 unlocks were already held
        assert "env-monitoring" not in result.unlocks.workstations

    def test_no_level_change(self):
        profile = CareerProfile(user_id="u1")
        result = add_experience(profile, 50)

        assert not result.leveled_up
        assert result.unlocks.is_empty()
        assert profile.current_xp == 50
        assert profile.xp_to_next_level == 150
        assert profile.level_progress == pytest.approx(0.25)

    def test_zero_xp_allowed(self):
        assert add_experience(CareerProfile(user_id="u1"), 0).xp_added == 0

    def test_negative_xp_rejected(self):
        profile = CareerProfile(user_id="u1", total_xp=300, level=2)
        with pytest.raises(ValidationError):
            add_experience(profile, -10)
        assert profile.total_xp == 300

    def test_max_level_caps(self):
        profile = CareerProfile(user_id="u1")
        add_experience(profile, 100_000)
        assert profile.level == 15
        assert profile.xp_to_next_level == 0
        assert profile.level_progress == 1.0


class TestXpReward:
    """Tests for calculate_xp_reward."""

    @pytest.mark.parametrize(
        "base,difficulty,score,expected",
        [
            (100, Difficulty.INTERMEDIATE, 100, 165),
            (100, Difficulty.BEGINNER, 95, 100),
            (100, Difficulty.ADVANCED, 50, 100),
            (100, "advanced", 0, 0),
            (100, "expert", 80, 80),
        ],
    )
    def test_reward(self, base, difficulty, score, expected):
        assert calculate_xp_reward(base, difficulty, score) == expected


class TestProfile:
    """Tests for CareerProfile helpers."""

    def test_dict_round_trip(self):
        profile = CareerProfile(user_id="u1", completed_task_ids=["case_001"], best_scores={"case_001": 88})
        add_experience(profile, 600)

        restored = CareerProfile.from_dict(profile.to_dict())
        assert restored == profile
        assert restored.title == "trainee_engineer"

    def test_unlocks_for_level_is_cumulative(self):
        assert unlocks_for_level(3).workstations == {"env-monitoring", "sampling-center", "hazwaste-lab"}
