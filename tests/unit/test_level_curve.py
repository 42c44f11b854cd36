"""Level curve tests — MUST match the frontend getLevelInfo() exactly."""

import pytest

from ailock.progression.level_curve import (
    MAX_LEVEL,
    level_info,
    level_table,
    total_xp_for_level,
    xp_required_for_level,
)


class TestXpRequiredForLevel:
    def test_first_levels(self):
        assert xp_required_for_level(1) == 100
        assert xp_required_for_level(2) == 120
        assert xp_required_for_level(3) == 144

    @pytest.mark.parametrize(
        "level,expected",
        [(4, 172), (5, 207), (6, 248), (7, 298), (8, 358), (9, 429), (10, 515)],
    )
    def test_geometric_growth(self, level, expected):
        assert xp_required_for_level(level) == expected

    def test_zero_at_cap(self):
        assert xp_required_for_level(MAX_LEVEL) == 0
        assert xp_required_for_level(MAX_LEVEL + 5) == 0

    def test_strictly_increasing_below_cap(self):
        requirements = [xp_required_for_level(level) for level in range(1, MAX_LEVEL)]
        assert requirements == sorted(requirements)
        assert len(set(requirements)) == len(requirements)


class TestTotalXpForLevel:
    def test_level_one_needs_nothing(self):
        assert total_xp_for_level(1) == 0
        assert total_xp_for_level(0) == 0

    @pytest.mark.parametrize(
        "level,expected",
        [(2, 100), (3, 220), (4, 364), (5, 536), (6, 743), (7, 991), (8, 1289)],
    )
    def test_cumulative(self, level, expected):
        assert total_xp_for_level(level) == expected

    def test_is_sum_of_requirements(self):
        for level in range(2, MAX_LEVEL + 1):
            assert total_xp_for_level(level) == total_xp_for_level(level - 1) + xp_required_for_level(level - 1)


class TestLevelInfo:
    def test_zero_xp(self):
        info = level_info(0)
        assert info["level"] == 1
        assert info["progress_xp"] == 0
        assert info["xp_needed_for_next_level"] == 100
        assert info["xp_to_next_level"] == 100
        assert info["progress_percentage"] == 0.0

    def test_boundary_99_is_still_level_1(self):
        assert level_info(99)["level"] == 1

    def test_boundary_100_is_level_2(self):
        info = level_info(100)
        assert info["level"] == 2
        assert info["progress_xp"] == 0
        assert info["total_xp_for_current_level"] == 100
        assert info["xp_needed_for_next_level"] == 120

    def test_mid_level_progress(self):
        info = level_info(160)  # 60 of 120 into level 2
        assert info["level"] == 2
        assert info["progress_xp"] == 60
        assert info["xp_to_next_level"] == 60
        assert info["progress_percentage"] == pytest.approx(50.0)

    def test_intent_reward_stays_level_1(self):
        assert level_info(25)["level"] == 1

    def test_800_xp_is_level_6(self):
        assert level_info(800)["level"] == 6

    def test_capped_at_max_level(self):
        info = level_info(10_000_000)
        assert info["level"] == MAX_LEVEL
        assert info["xp_needed_for_next_level"] == 0
        assert info["xp_to_next_level"] == 0
        assert info["progress_percentage"] == 100.0

    def test_exactly_max_level_threshold(self):
        info = level_info(total_xp_for_level(MAX_LEVEL))
        assert info["level"] == MAX_LEVEL
        assert info["progress_percentage"] == 100.0

    def test_round_trip_with_cumulative_thresholds(self):
        for level in range(1, MAX_LEVEL + 1):
            threshold = total_xp_for_level(level)
            assert level_info(threshold)["level"] == level
            if level > 1:
                assert level_info(threshold - 1)["level"] == level - 1

    @pytest.mark.parametrize("xp", [0, 1, 50, 99, 100, 219, 220, 535, 999, 5000, 50_000])
    def test_invariants(self, xp):
        info = level_info(xp)
        assert 1 <= info["level"] <= MAX_LEVEL
        assert 0.0 <= info["progress_percentage"] <= 100.0
        assert info["total_xp_for_current_level"] <= xp
        assert info["progress_xp"] == xp - info["total_xp_for_current_level"]

    def test_level_never_decreases_as_xp_grows(self):
        levels = [level_info(xp)["level"] for xp in range(0, 5000, 7)]
        assert levels == sorted(levels)


class TestLevelTable:
    def test_has_every_level(self):
        table = level_table()
        assert [row["level"] for row in table] == list(range(1, MAX_LEVEL + 1))

    def test_first_and_last_rows(self):
        table = level_table()
        assert table[0] == {"level": 1, "xp_required": 100, "cumulative": 0}
        assert table[-1]["xp_required"] == 0
        assert table[-1]["cumulative"] == total_xp_for_level(MAX_LEVEL)
