"""
Item catalog loading and charm/rune effect stacking.
"""

import pytest

from rep_rewards.core.effects import calculate_charm_bonuses, calculate_rune_bonuses
from rep_rewards.core.items import (
    CHARM_REGISTRY,
    RUNE_REGISTRY,
    CharmEffectType,
    get_charm,
    get_charms_by_rarity,
    get_charms_for_level,
    get_rune,
    get_runes_for_level,
)
from rep_rewards.core.items.loader import charm_from_dict, load_charms_from_yaml, load_runes_from_yaml
from rep_rewards.core.models import ExerciseCharmContext, Rarity, ScoredSet, WorkoutRuneContext


def _sets(*specs: tuple[int, float]) -> list[ScoredSet]:
    """specs = (reps, weight) per set."""
    return [
        ScoredSet(
            exercise_id="bench",
            weight_kg=w,
            reps=r,
            set_number=i,
            muscle_sets_before=i - 1,
            is_pr=False,
            points_earned=100,
        )
        for i, (r, w) in enumerate(specs, start=1)
    ]


def _charm_ctx(n_sets: int = 3, reps: int = 8, **kw) -> ExerciseCharmContext:
    defaults = dict(
        sets=_sets(*[(reps, 100.0)] * n_sets),
        workout_goal="Hypertrophy",
        muscle_group_count=1,
        has_pr=False,
        base_points=n_sets * 100,
    )
    defaults.update(kw)
    return ExerciseCharmContext(**defaults)


def _rune_ctx(**kw) -> WorkoutRuneContext:
    defaults = dict(
        exercise_count=3,
        total_sets=5,
        pr_count=0,
        muscle_group_count=2,
        workouts_this_week=1,
        base_points=10000,
    )
    defaults.update(kw)
    return WorkoutRuneContext(**defaults)


# ===========================================================================
# Catalog
# ===========================================================================

class TestRegistry:
    def test_bundled_catalog_sizes(self):
        assert len(CHARM_REGISTRY) == 10
        assert len(RUNE_REGISTRY) == 5

    def test_lookup_unknown_is_none(self):
        assert get_charm("nope") is None
        assert get_rune("nope") is None
        assert get_charm("momentum").effect_type is CharmEffectType.SET_COUNT_BONUS

    def test_charm_and_rune_ids_live_in_separate_catalogs(self):
        assert get_charm("pr_hunter").rarity is Rarity.RARE
        assert get_rune("pr_hunter").param("flat") == 2500

    def test_filters(self):
        assert {c.id for c in get_charms_by_rarity(Rarity.EPIC)} == {"rage_mode", "perfect_form"}
        assert len(get_charms_for_level(0)) == 5
        assert len(get_charms_for_level(5)) == 8
        assert {c.id for c in get_charms_for_level(30)} == {"rage_mode", "perfect_form"}
        assert len(get_runes_for_level(0)) == 5
        assert get_runes_for_level(11) == []


class TestLoader:
    def test_charm_from_dict_requires_fields(self):
        with pytest.raises(ValueError):
            charm_from_dict({"id": "x", "name": "X"})

    def test_charm_from_dict_rejects_unknown_rarity(self):
        with pytest.raises(ValueError):
            charm_from_dict({
                "id": "x", "name": "X", "description": "", "rarity": "Legendary", "effect_type": "pr_bonus",
            })

    def test_user_entries_merge_by_id(self, tmp_path):
        bundled = tmp_path / "bundled"
        user = tmp_path / "user"
        bundled.mkdir()
        user.mkdir()
        (bundled / "charms.yaml").write_text(
            "charms:\n"
            "  - id: momentum\n"
            "    name: Momentum\n"
            "    description: more sets\n"
            "    rarity: Common\n"
            "    effect_type: set_count_bonus\n"
            "    params: {percent: 0.10, min_sets: 3}\n"
        )
        (user / "charms.yaml").write_text(
            "charms:\n"
            "  - id: momentum\n"
            "    params: {percent: 0.12}\n"
            "  - id: grinder\n"
            "    name: Grinder\n"
            "    description: flat on PR\n"
            "    rarity: Rare\n"
            "    effect_type: pr_bonus\n"
            "    params: {flat: 40}\n"
        )
        charms = load_charms_from_yaml(bundled, user)
        assert set(charms) == {"momentum", "grinder"}
        assert charms["momentum"].param("percent") == 0.12
        assert charms["momentum"].param("min_sets") == 3
        assert charms["grinder"].rarity is Rarity.RARE

    def test_bad_entries_are_skipped_with_warning(self, tmp_path):
        (tmp_path / "runes.yaml").write_text(
            "runes:\n"
            "  - id: broken\n"
            "    name: Broken\n"
            "    description: ''\n"
            "    rarity: Common\n"
            "    effect_type: no_such_effect\n"
        )
        empty_user = tmp_path / "user"
        empty_user.mkdir()
        with pytest.warns(UserWarning, match="broken"):
            assert load_runes_from_yaml(tmp_path, empty_user) is None


# ===========================================================================
# Charm effects
# ===========================================================================

class TestCharmEffects:
    def test_stack_percent_and_flat_skipping_unknown(self):
        # 300 × 0.10 = 30, plus 25 flat
        ctx = _charm_ctx(has_pr=True)
        summary = calculate_charm_bonuses(ctx, ["momentum", "iron_will", "unknown"], CHARM_REGISTRY)
        assert [b.item_id for b in summary.bonuses] == ["momentum", "iron_will"]
        assert summary.total_percent_bonus == pytest.approx(0.10)
        assert summary.total_flat_bonus == 25
        assert summary.final_bonus_points == 55

    def test_untriggered_charm_is_recorded(self):
        summary = calculate_charm_bonuses(_charm_ctx(n_sets=2), ["momentum"], CHARM_REGISTRY)
        (bonus,) = summary.bonuses
        assert not bonus.triggered
        assert "need 3+" in bonus.reason
        assert summary.final_bonus_points == 0

    def test_first_rep_spreads_over_sets(self):
        summary = calculate_charm_bonuses(_charm_ctx(n_sets=4), ["first_rep"], CHARM_REGISTRY)
        assert summary.total_percent_bonus == pytest.approx(0.025)
        assert summary.final_bonus_points == 10

    def test_compound_by_muscle_count_or_flag(self):
        assert calculate_charm_bonuses(_charm_ctx(muscle_group_count=2), ["compound_king"], CHARM_REGISTRY).total_percent_bonus == pytest.approx(0.20)
        assert calculate_charm_bonuses(_charm_ctx(is_compound=True), ["compound_king"], CHARM_REGISTRY).total_percent_bonus == pytest.approx(0.20)
        assert calculate_charm_bonuses(_charm_ctx(), ["compound_king"], CHARM_REGISTRY).total_percent_bonus == 0.0

    def test_rep_range_charms_stack(self):
        ctx = _charm_ctx(n_sets=10)  # base 1000
        summary = calculate_charm_bonuses(ctx, ["rep_range_master", "perfect_form"], CHARM_REGISTRY)
        assert summary.final_bonus_points == 500

    def test_rep_range_needs_every_set(self):
        ctx = _charm_ctx(sets=_sets((8, 100.0), (15, 60.0)))
        assert calculate_charm_bonuses(ctx, ["rep_range_master"], CHARM_REGISTRY).final_bonus_points == 0

    def test_volume_master_scales_with_late_sets(self):
        ctx = _charm_ctx(n_sets=5)  # sets 4 and 5 count: 0.20 × 2/5
        summary = calculate_charm_bonuses(ctx, ["volume_master"], CHARM_REGISTRY)
        assert summary.total_percent_bonus == pytest.approx(0.08)
        assert summary.final_bonus_points == 40

    def test_rage_mode_needs_heavy_sets(self):
        sets = _sets((5, 80.0), (8, 70.0), (4, 90.0))  # only the first is ≥5 reps at ≥75 kg
        ctx = _charm_ctx(sets=sets, rolling_avg_e1rm=100.0)
        summary = calculate_charm_bonuses(ctx, ["rage_mode"], CHARM_REGISTRY)
        assert summary.total_percent_bonus == pytest.approx(0.5 / 3)
        assert summary.final_bonus_points == 50

        no_baseline = calculate_charm_bonuses(_charm_ctx(sets=sets), ["rage_mode"], CHARM_REGISTRY)
        assert not no_baseline.bonuses[0].triggered

    def test_streak_keeper(self):
        assert calculate_charm_bonuses(_charm_ctx(current_streak=3), ["streak_keeper"], CHARM_REGISTRY).final_bonus_points == 45
        assert calculate_charm_bonuses(_charm_ctx(current_streak=2), ["streak_keeper"], CHARM_REGISTRY).final_bonus_points == 0


# ===========================================================================
# Rune effects
# ===========================================================================

ALL_RUNES = ["endurance", "consistency", "pr_hunter", "volume_king", "full_body"]


class TestRuneEffects:
    def test_all_runes_trigger(self):
        # 0.10 + 0.15 + 0.20 + 0.25 = 0.70 of 10000, plus 2 × 2500 flat
        ctx = _rune_ctx(exercise_count=5, total_sets=12, pr_count=2, muscle_group_count=4, workouts_this_week=3)
        summary = calculate_rune_bonuses(ctx, ALL_RUNES, RUNE_REGISTRY)
        assert all(b.triggered for b in summary.bonuses)
        assert summary.total_percent_bonus == pytest.approx(0.70)
        assert summary.total_flat_bonus == 5000
        assert summary.final_bonus_points == 12000

    def test_nothing_triggers(self):
        summary = calculate_rune_bonuses(_rune_ctx(), ALL_RUNES, RUNE_REGISTRY)
        assert len(summary.bonuses) == 5
        assert not any(b.triggered for b in summary.bonuses)
        assert summary.final_bonus_points == 0

    def test_endurance_reason(self):
        summary = calculate_rune_bonuses(_rune_ctx(exercise_count=6), ["endurance"], RUNE_REGISTRY)
        assert summary.bonuses[0].reason == "6 exercises (+3 beyond 3 = +15%)"
        assert summary.final_bonus_points == 1500

    def test_runes_apply_to_base_plus_charm_points(self):
        # caller passes set points + charm points as the rune base
        ctx = _rune_ctx(total_sets=10, base_points=3000 + 300)
        assert calculate_rune_bonuses(ctx, ["volume_king"], RUNE_REGISTRY).final_bonus_points == 660

    def test_empty_loadout(self):
        summary = calculate_rune_bonuses(_rune_ctx(), [], RUNE_REGISTRY)
        assert summary.bonuses == []
        assert summary.final_bonus_points == 0
