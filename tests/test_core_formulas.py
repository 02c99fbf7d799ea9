"""
Formula-focused unit tests for the points engine, baselines, and muscle XP.

Values are hand-computed from the formulas in core/config.py so the tests
double as a worked reference for the tuning constants.
"""

import math
from datetime import date, datetime

import pytest

from rep_rewards.core.baseline import new_baseline, record_goal_bucket_pr, update_baseline, update_rolling_average
from rep_rewards.core.config import DEFAULT_CONFIG
from rep_rewards.core.formulas import (
    calculate_one_rep_max,
    classify_goal_bucket,
    floor_points,
    get_week_start,
    is_in_goal_rep_range,
    rep_range_adherence,
    round_half_up,
)
from rep_rewards.core.models import BaselineSession, BonusKind, ExerciseBaseline, MuscleLevelState, MuscleTag, SetInput
from rep_rewards.core.muscle_xp import (
    apply_muscle_xp,
    calculate_muscle_decay,
    calculate_muscle_level_from_xp,
    calculate_set_muscle_xp,
    create_muscle_tags,
    days_since_training,
    estimate_exercise_xp_gains,
    get_diminishing_multiplier,
    get_xp_split_percentages,
    total_xp_for_muscle_level,
    xp_for_muscle_level,
)
from rep_rewards.core.points import (
    calculate_base_points,
    calculate_new_streak,
    calculate_set_points,
    calculate_workout_completion_bonus,
    check_for_pr,
    rep_range_multiplier,
    streak_multiplier,
    volume_scaling_multiplier,
)

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _mature_baseline(avg: float = 100.0, **kw) -> ExerciseBaseline:
    return ExerciseBaseline(
        exercise_id="bench",
        workout_count=3,
        is_baselined=True,
        rolling_avg_e1rm=avg,
        **kw,
    )


def _kinds(result) -> set[BonusKind]:
    return {b.kind for b in result.bonuses}


# ===========================================================================
# Formula library
# ===========================================================================

class TestFormulaLibrary:
    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(1.4999) == 1
        assert round_half_up(454.99999999) == 455

    def test_floor_points_ignores_float_noise(self):
        assert floor_points(20 * 1.15) == 23
        assert floor_points(128.75) == 128

    def test_one_rep_max_epley(self):
        assert calculate_one_rep_max(100, 1) == 100.0
        assert calculate_one_rep_max(100, 8) == pytest.approx(100 * (1 + 8 / 30))
        assert calculate_one_rep_max(0, 5) == 0.0
        assert calculate_one_rep_max(100, 0) == 0.0

    def test_goal_bucket_classification(self):
        assert classify_goal_bucket(6) == "Strength"
        assert classify_goal_bucket(7) == "Hypertrophy"
        assert classify_goal_bucket(12) == "Hypertrophy"
        assert classify_goal_bucket(13) == "Endurance"

    def test_goal_ranges_overlap_at_edges(self):
        assert is_in_goal_rep_range(6, "Strength")
        assert is_in_goal_rep_range(6, "Hypertrophy")
        assert is_in_goal_rep_range(12, "Endurance")
        assert not is_in_goal_rep_range(13, "Hypertrophy")
        assert is_in_goal_rep_range(50, "Endurance")

    def test_rep_range_adherence(self):
        assert rep_range_adherence([5, 8, 10, 15], "Hypertrophy") == 0.5
        assert rep_range_adherence([], "Strength") == 0.0

    def test_week_starts_on_monday(self):
        assert get_week_start(date(2026, 10, 21)) == date(2026, 10, 19)
        assert get_week_start(datetime(2026, 10, 25, 23, 0)) == date(2026, 10, 19)


# ===========================================================================
# Points engine
# ===========================================================================

class TestBasePoints:
    def test_weighted_set(self):
        assert calculate_base_points(SetInput("bench", reps=8, weight_kg=100)) == 800

    def test_bodyweight_uses_fraction_of_bodyweight(self):
        s = SetInput("pushup", reps=10, exercise_type="bodyweight", bodyweight_kg=70)
        assert calculate_base_points(s) == 455

    def test_bad_input_falls_to_floor(self):
        assert calculate_base_points(SetInput("bench", reps=0, weight_kg=100)) == 1
        assert calculate_base_points(SetInput("bench", reps=5, weight_kg=-20)) == 1
        assert calculate_base_points(SetInput("bench", reps=5)) == 1


class TestSetPoints:
    def test_hypertrophy_set_without_history(self):
        result = calculate_set_points(SetInput("bench", reps=8, weight_kg=100))
        assert result.base_points == 800
        assert result.final_points == 1000
        assert _kinds(result) == {BonusKind.REP_RANGE}
        assert result.is_pr

    def test_bodyweight_set_never_prs(self):
        s = SetInput("pushup", reps=10, exercise_type="bodyweight", bodyweight_kg=70)
        result = calculate_set_points(s)
        assert result.final_points == 455
        assert result.bonuses == []
        assert not result.is_pr

    def test_overload_and_rep_range_are_additive(self):
        # e1RM 116.7 vs avg 100 → +16.7% → ×2.0; 5 reps → ×1.25
        # additive = 1 + 1.0 + 0.25 = 2.25; 500 × 2.25 = 1125
        result = calculate_set_points(SetInput("bench", reps=5, weight_kg=100), _mature_baseline())
        assert result.additive_multiplier == pytest.approx(2.25)
        assert result.final_points == 1125
        assert _kinds(result) == {BonusKind.PROGRESSIVE_OVERLOAD, BonusKind.REP_RANGE}

    def test_small_overload_tier(self):
        # single at 103 vs avg 100 → +3% → ×1.25; floor(103 × 1.25) = 128
        result = calculate_set_points(SetInput("bench", reps=1, weight_kg=103), _mature_baseline())
        assert result.final_points == 128

    def test_immature_baseline_grants_no_overload(self):
        baseline = ExerciseBaseline(exercise_id="bench", workout_count=2, rolling_avg_e1rm=100.0)
        result = calculate_set_points(SetInput("bench", reps=5, weight_kg=100), baseline)
        assert BonusKind.PROGRESSIVE_OVERLOAD not in _kinds(result)
        assert result.final_points == 625

    def test_streak_and_volume_combination(self):
        # 100 × 10 = 1000; streak 7 → additive 1.2; 11th set → ×0.75
        s = SetInput("bench", reps=10, weight_kg=100, muscle_sets_before=10)
        result = calculate_set_points(s, current_streak=7)
        assert result.additive_multiplier == pytest.approx(1.2)
        assert result.volume_multiplier == 0.75
        assert result.final_points == 900

    def test_final_points_never_below_one(self):
        s = SetInput("bench", reps=25, weight_kg=0.1, muscle_sets_before=30)
        assert calculate_set_points(s).final_points >= 1


class TestMultiplierTables:
    @pytest.mark.parametrize("reps,expected", [
        (1, 1.0), (4, 1.0), (5, 1.25), (8, 1.25), (9, 1.0), (12, 1.0), (13, 0.9), (20, 0.9), (21, 0.75),
    ])
    def test_rep_range(self, reps, expected):
        assert rep_range_multiplier(reps) == expected

    @pytest.mark.parametrize("nth,expected", [(1, 1.0), (10, 1.0), (11, 0.75), (14, 0.75), (15, 0.5), (40, 0.5)])
    def test_volume_scaling(self, nth, expected):
        assert volume_scaling_multiplier(nth) == expected

    @pytest.mark.parametrize("streak,expected", [(0, 1.0), (2, 1.0), (3, 1.1), (7, 1.2), (14, 1.3), (21, 1.4), (30, 1.5)])
    def test_streak(self, streak, expected):
        assert streak_multiplier(streak) == expected


class TestPrDetection:
    def test_first_in_range_set_is_pr(self):
        assert check_for_pr(100, 8, None, "Hypertrophy")

    def test_reps_outside_goal_range(self):
        assert not check_for_pr(100, 8, None, "Strength")

    def test_must_beat_bucket_best(self):
        baseline = ExerciseBaseline(exercise_id="bench", best_e1rm_by_goal={"Hypertrophy": 120.0})
        assert check_for_pr(100, 8, baseline, "Hypertrophy")  # 126.7
        assert not check_for_pr(90, 8, baseline, "Hypertrophy")  # 114.0

    def test_bucket_inferred_without_goal(self):
        baseline = ExerciseBaseline(exercise_id="bench", best_e1rm_by_goal={"Strength": 200.0})
        assert not check_for_pr(150, 5, baseline)
        assert check_for_pr(150, 10, baseline)

    def test_no_weight_no_pr(self):
        assert not check_for_pr(None, 10, None, "Hypertrophy")


class TestWorkoutLevelPoints:
    @pytest.mark.parametrize("sets,minutes,expected", [
        (5, 20, 50), (5, 30, 75), (10, 30, 100), (20, 60, 150), (0, 0, 50),
    ])
    def test_completion_bonus(self, sets, minutes, expected):
        assert calculate_workout_completion_bonus(sets, minutes) == expected

    def test_streak_first_workout(self):
        assert calculate_new_streak(0, None, datetime(2026, 10, 19, 18)) == 1

    def test_streak_same_day_unchanged(self):
        assert calculate_new_streak(4, datetime(2026, 10, 19, 7), datetime(2026, 10, 19, 18)) == 4
        assert calculate_new_streak(0, datetime(2026, 10, 19, 7), datetime(2026, 10, 19, 18)) == 1

    def test_streak_next_calendar_day(self):
        assert calculate_new_streak(4, datetime(2026, 10, 18, 23, 30), datetime(2026, 10, 19, 0, 30)) == 5

    def test_streak_gap_resets(self):
        assert calculate_new_streak(9, datetime(2026, 10, 17, 18), datetime(2026, 10, 19, 18)) == 1


# ===========================================================================
# Baselines
# ===========================================================================

class TestBaseline:
    def test_rolling_window_keeps_last_n(self):
        history = [BaselineSession(e1rm=v, date="2026-10-01", weight_kg=v, reps=1) for v in (100, 110, 120, 130)]
        entry = BaselineSession(e1rm=140, date="2026-10-02", weight_kg=140, reps=1)
        new_history, avg = update_rolling_average(history, entry, 4)
        assert [s.e1rm for s in new_history] == [110, 120, 130, 140]
        assert avg == 125.0

    def test_matures_after_three_workouts(self):
        when = datetime(2026, 10, 19)
        b = new_baseline("bench")
        for weight, reps in ((100, 5), (100, 8), (110, 5)):
            assert not b.is_baselined
            b = update_baseline(b, weight, reps, when)
        assert b.is_baselined
        assert b.workout_count == 3
        expected = (100 * (1 + 5 / 30) + 100 * (1 + 8 / 30) + 110 * (1 + 5 / 30)) / 3
        assert b.rolling_avg_e1rm == pytest.approx(expected)
        assert b.best_e1rm == pytest.approx(110 * (1 + 5 / 30))

    def test_update_raises_goal_bucket_best(self):
        b = update_baseline(new_baseline("bench"), 100, 8, datetime(2026, 10, 19), goal="Hypertrophy")
        assert b.best_for("Hypertrophy") == pytest.approx(100 * (1 + 8 / 30))
        assert b.best_for("Strength") == 0.0

    def test_record_pr_outside_bucket_is_noop(self):
        b = new_baseline("bench")
        assert record_goal_bucket_pr(b, 100, 15, "Strength") is b


# ===========================================================================
# Muscle XP
# ===========================================================================

class TestXpAwards:
    def test_split_tables_sum_to_one(self):
        for n in (1, 2, 3):
            assert sum(get_xp_split_percentages(n)) == pytest.approx(1.0)

    @pytest.mark.parametrize("rolling,expected", [(1, 1.0), (15, 1.0), (16, 0.5), (25, 0.5), (26, 0.2)])
    def test_diminishing_returns(self, rolling, expected):
        assert get_diminishing_multiplier(rolling) == expected

    def test_pr_set_with_diminishing_returns(self):
        # split 8×0.75=6 / 8×0.25=2; ×0.5 (20 rolling sets) ×2 (PR)
        tags = [MuscleTag("chest", 1), MuscleTag("triceps", 2)]
        awards = calculate_set_muscle_xp(tags, {"chest": 20, "triceps": 20}, is_pr=True)
        assert [(a.muscle_group, a.final_xp) for a in awards] == [("chest", 6), ("triceps", 2)]

    def test_three_way_split_rounds_per_muscle(self):
        tags = [MuscleTag("back", 1), MuscleTag("biceps", 2), MuscleTag("forearms", 3)]
        awards = calculate_set_muscle_xp(tags, {}, is_pr=False)
        assert [a.final_xp for a in awards] == [5, 2, 1]

    def test_tags_fall_back_to_primary_and_lowercase(self):
        assert create_muscle_tags([], "Chest") == [MuscleTag("chest", 1)]
        mapped = [MuscleTag("Triceps", 2), MuscleTag("Chest", 1), MuscleTag("Abs", 4), MuscleTag("Delts", 3)]
        assert [t.muscle_group for t in create_muscle_tags(mapped, "chest")] == ["chest", "triceps", "delts"]


class TestLevelCurve:
    def test_per_level_requirements(self):
        assert xp_for_muscle_level(0) == 0
        assert xp_for_muscle_level(1) == 15
        assert xp_for_muscle_level(2) == 18
        assert xp_for_muscle_level(3) == 23
        assert xp_for_muscle_level(26) == 0
        assert total_xp_for_muscle_level(3) == 56

    def test_level_round_trip(self):
        for level in range(0, DEFAULT_CONFIG.muscle_xp.max_level + 1):
            progress = calculate_muscle_level_from_xp(total_xp_for_muscle_level(level))
            assert progress.level == level
            assert progress.current_xp == 0
            assert progress.progress == 0.0

    def test_partial_progress(self):
        p = calculate_muscle_level_from_xp(20)
        assert (p.level, p.current_xp, p.xp_for_next) == (1, 5, 18)
        assert p.progress == pytest.approx(5 / 18)

    def test_max_level_caps(self):
        p = calculate_muscle_level_from_xp(10 ** 9)
        assert p.level == 25
        assert p.xp_for_next == 0
        assert p.progress == 0.0

    def test_apply_xp_levels_up(self):
        state = MuscleLevelState("chest", level=0, current_xp=10, total_xp_earned=10)
        when = datetime(2026, 10, 19)
        new_state, change = apply_muscle_xp(state, 10, when)
        assert (new_state.level, new_state.current_xp, new_state.total_xp_earned) == (1, 5, 20)
        assert new_state.last_trained_at == when
        assert change.leveled_up
        assert state.total_xp_earned == 10


class TestDecay:
    LAST = datetime(2026, 10, 1, 18)

    def _decay(self, now: datetime, level: int = 5):
        return calculate_muscle_decay(level, 0.4, self.LAST, now)

    def test_within_grace_period(self):
        d = self._decay(datetime(2026, 10, 8, 9))
        assert d.decay_status == "active"
        assert (d.effective_level, d.effective_progress) == (5, 0.4)

    def test_resting_hides_progress(self):
        d = self._decay(datetime(2026, 10, 10))
        assert d.decay_status == "resting"
        assert (d.effective_level, d.effective_progress, d.levels_lost) == (5, 0.0, 0)

    def test_one_level_per_week_overdue(self):
        d = self._decay(datetime(2026, 10, 22))
        assert d.decay_status == "decaying"
        assert (d.effective_level, d.levels_lost, d.days_since_training) == (3, 2, 21)

    def test_floor_at_min_level(self):
        assert self._decay(datetime(2027, 6, 1)).effective_level == 1

    def test_never_raises_a_level(self):
        assert self._decay(datetime(2027, 6, 1), level=0).effective_level == 0

    def test_never_trained_is_active(self):
        d = calculate_muscle_decay(0, 0.0, None, datetime(2026, 10, 19))
        assert d.decay_status == "active"
        assert d.days_since_training is None

    def test_days_are_calendar_days(self):
        assert days_since_training(datetime(2026, 10, 1, 23), datetime(2026, 10, 2, 1)) == 1


class TestXpEstimate:
    def test_estimate_matches_per_set_awards(self):
        # chest: 2×6 + 1×12 = 24 → level 1 with 9/18; triceps: 2×2 + 1×4 = 8 → level 0
        gains = estimate_exercise_xp_gains(["Chest", "triceps"], set_count=3, pr_count=1, current_states={})
        chest, triceps = gains
        assert (chest.muscle_group, chest.xp_gained, chest.end_level) == ("chest", 24, 1)
        assert chest.end_progress == pytest.approx(0.5)
        assert chest.leveled_up
        assert (triceps.xp_gained, triceps.end_level) == (8, 0)

        tags = [MuscleTag("chest", 1), MuscleTag("triceps", 2)]
        persisted = {"chest": 0, "triceps": 0}
        for is_pr in (True, False, False):
            for award in calculate_set_muscle_xp(tags, {}, is_pr):
                persisted[award.muscle_group] += award.final_xp
        assert persisted == {"chest": 24, "triceps": 8}

    def test_estimate_starts_from_stored_total(self):
        states = {"chest": MuscleLevelState("chest", level=1, current_xp=10, total_xp_earned=25)}
        (gain,) = estimate_exercise_xp_gains(["chest"], set_count=1, pr_count=0, current_states=states)
        assert gain.start_level == 1
        assert gain.xp_gained == 8
        assert gain.end_level == 2  # 33 ≥ 15 + 18

    def test_nothing_to_estimate(self):
        assert estimate_exercise_xp_gains([], 3, 0, {}) == []
        assert math.isclose(sum(get_xp_split_percentages(3)), 1.0)
