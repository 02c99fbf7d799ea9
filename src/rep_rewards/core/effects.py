"""
Charm and rune effect stacking.

Every effect type maps to a pure function of (definition, context) that
returns an Effect plus a human-readable reason.  Stacking is the same at
both scopes:

    total_percent = Σ percent_bonus   (triggered items only)
    total_flat    = Σ flat_bonus
    final         = floor(base_points × total_percent) + total_flat

Charms stack per exercise against that exercise's base points; runes stack
per workout against set points plus all charm points.
"""

import logging
from typing import Any, Callable, Mapping, Sequence

from .formulas import floor_points, is_in_goal_rep_range, round_half_up
from .items.base import CharmDefinition, CharmEffectType, RuneDefinition, RuneEffectType
from .models import BonusSummary, Effect, ExerciseCharmContext, ItemBonus, WorkoutRuneContext

logger = logging.getLogger(__name__)

EffectOutcome = tuple[Effect, str]
CharmEffectFn = Callable[[CharmDefinition, ExerciseCharmContext], EffectOutcome]
RuneEffectFn = Callable[[RuneDefinition, WorkoutRuneContext], EffectOutcome]

_NONE = Effect()


def _pct(value: float) -> int:
    return round_half_up(value * 100)


# =============================================================================
# CHARM EFFECTS
# =============================================================================

def _set_count_bonus(charm: CharmDefinition, ctx: ExerciseCharmContext) -> EffectOutcome:
    min_sets = int(charm.param("min_sets", 3))
    n = len(ctx.sets)
    if n >= min_sets:
        return Effect(percent_bonus=charm.param("percent")), f"Completed {n} sets ({min_sets}+ required)"
    return _NONE, f"Only {n} sets (need {min_sets}+)"


def _pr_bonus(charm: CharmDefinition, ctx: ExerciseCharmContext) -> EffectOutcome:
    if ctx.has_pr:
        return Effect(flat_bonus=int(charm.param("flat"))), "Hit a PR!"
    return _NONE, "No PR this exercise"


def _rep_range_bonus(charm: CharmDefinition, ctx: ExerciseCharmContext) -> EffectOutcome:
    goal = ctx.workout_goal
    if ctx.sets and all(is_in_goal_rep_range(s.reps, goal) for s in ctx.sets):
        return Effect(percent_bonus=charm.param("percent")), f"All {len(ctx.sets)} sets in {goal} rep range"
    return _NONE, f"Not all sets in {goal} rep range"


def _compound_bonus(charm: CharmDefinition, ctx: ExerciseCharmContext) -> EffectOutcome:
    min_muscles = int(charm.param("min_muscles", 2))
    if ctx.is_compound or ctx.muscle_group_count >= min_muscles:
        return Effect(percent_bonus=charm.param("percent")), f"Compound exercise ({ctx.muscle_group_count} muscles)"
    return _NONE, "Single muscle exercise"


def _first_set_bonus(charm: CharmDefinition, ctx: ExerciseCharmContext) -> EffectOutcome:
    # Applies to one set out of n, so it is spread over the exercise.
    if not ctx.sets:
        return _NONE, "No sets logged"
    return Effect(percent_bonus=charm.param("percent") / len(ctx.sets)), "First set bonus applied"


def _streak_bonus(charm: CharmDefinition, ctx: ExerciseCharmContext) -> EffectOutcome:
    min_streak = int(charm.param("min_streak", 3))
    if ctx.current_streak >= min_streak:
        return Effect(percent_bonus=charm.param("percent")), f"{ctx.current_streak} workout streak"
    return _NONE, f"Streak of {ctx.current_streak} (need {min_streak}+)"


def _volume_multiplier(charm: CharmDefinition, ctx: ExerciseCharmContext) -> EffectOutcome:
    from_set = int(charm.param("from_set", 4))
    late = sum(1 for s in ctx.sets if s.set_number >= from_set)
    if late == 0:
        return _NONE, f"No sets past #{from_set - 1}"
    share = late / len(ctx.sets)
    return Effect(percent_bonus=charm.param("percent") * share), f"{late} set(s) from set #{from_set} on"


def _heavy_set_bonus(charm: CharmDefinition, ctx: ExerciseCharmContext) -> EffectOutcome:
    min_reps = int(charm.param("min_reps", 5))
    if ctx.rolling_avg_e1rm <= 0:
        return _NONE, "No baseline to judge heavy sets"
    threshold = charm.param("load_fraction", 0.75) * ctx.rolling_avg_e1rm
    heavy = sum(
        1 for s in ctx.sets
        if s.reps >= min_reps and (s.weight_kg or 0.0) >= threshold
    )
    if heavy == 0:
        return _NONE, f"No sets of {min_reps}+ reps at {threshold:.1f} kg or more"
    share = heavy / len(ctx.sets)
    return Effect(percent_bonus=charm.param("percent") * share), f"{heavy} heavy set(s) at {threshold:.1f}+ kg"


CHARM_EFFECTS: dict[CharmEffectType, CharmEffectFn] = {
    CharmEffectType.SET_COUNT_BONUS: _set_count_bonus,
    CharmEffectType.PR_BONUS: _pr_bonus,
    CharmEffectType.REP_RANGE_BONUS: _rep_range_bonus,
    CharmEffectType.COMPOUND_BONUS: _compound_bonus,
    CharmEffectType.FIRST_SET_BONUS: _first_set_bonus,
    CharmEffectType.STREAK_BONUS: _streak_bonus,
    CharmEffectType.VOLUME_MULTIPLIER: _volume_multiplier,
    CharmEffectType.HEAVY_SET_BONUS: _heavy_set_bonus,
}


# =============================================================================
# RUNE EFFECTS
# =============================================================================

def _exercise_count_bonus(rune: RuneDefinition, ctx: WorkoutRuneContext) -> EffectOutcome:
    free = int(rune.param("free_exercises", 3))
    extra = max(0, ctx.exercise_count - free)
    if extra == 0:
        return _NONE, f"Only {ctx.exercise_count} exercises (need {free + 1}+ for bonus)"
    pct = extra * rune.param("percent")
    return Effect(percent_bonus=pct), f"{ctx.exercise_count} exercises (+{extra} beyond {free} = +{_pct(pct)}%)"


def _consistency_bonus(rune: RuneDefinition, ctx: WorkoutRuneContext) -> EffectOutcome:
    needed = int(rune.param("min_workouts", 3))
    if ctx.workouts_this_week >= needed:
        return Effect(percent_bonus=rune.param("percent")), f"{ctx.workouts_this_week} workouts this week ({needed}+ required)"
    return _NONE, f"Only {ctx.workouts_this_week} workouts this week (need {needed}+)"


def _pr_count_bonus(rune: RuneDefinition, ctx: WorkoutRuneContext) -> EffectOutcome:
    if ctx.pr_count <= 0:
        return _NONE, "No PRs this workout"
    flat = ctx.pr_count * int(rune.param("flat"))
    plural = "s" if ctx.pr_count != 1 else ""
    return Effect(flat_bonus=flat), f"Hit {ctx.pr_count} PR{plural} (+{flat} points)"


def _volume_bonus(rune: RuneDefinition, ctx: WorkoutRuneContext) -> EffectOutcome:
    needed = int(rune.param("min_sets", 10))
    if ctx.total_sets >= needed:
        return Effect(percent_bonus=rune.param("percent")), f"{ctx.total_sets} total sets ({needed}+ required)"
    return _NONE, f"Only {ctx.total_sets} sets (need {needed}+)"


def _muscle_group_bonus(rune: RuneDefinition, ctx: WorkoutRuneContext) -> EffectOutcome:
    needed = int(rune.param("min_muscles", 3))
    if ctx.muscle_group_count >= needed:
        return Effect(percent_bonus=rune.param("percent")), f"Trained {ctx.muscle_group_count} muscle groups ({needed}+ required)"
    return _NONE, f"Only {ctx.muscle_group_count} muscle groups (need {needed}+)"


RUNE_EFFECTS: dict[RuneEffectType, RuneEffectFn] = {
    RuneEffectType.EXERCISE_COUNT_BONUS: _exercise_count_bonus,
    RuneEffectType.CONSISTENCY_BONUS: _consistency_bonus,
    RuneEffectType.PR_COUNT_BONUS: _pr_count_bonus,
    RuneEffectType.VOLUME_BONUS: _volume_bonus,
    RuneEffectType.MUSCLE_GROUP_BONUS: _muscle_group_bonus,
}


# =============================================================================
# STACKING
# =============================================================================

def _stack(
    equipped_ids: Sequence[str],
    catalog: Mapping[str, Any],
    context: Any,
    effects: Mapping[Any, Callable[..., EffectOutcome]],
    base_points: int,
) -> BonusSummary:
    summary = BonusSummary()
    for item_id in equipped_ids:
        item = catalog.get(item_id)
        if item is None:
            logger.debug("Skipping unknown item id %r", item_id)
            continue
        fn = effects.get(item.effect_type)
        if fn is None:
            effect, reason = _NONE, f"No effect for {item.effect_type.value}"
        else:
            effect, reason = fn(item, context)

        summary.bonuses.append(
            ItemBonus(
                item_id=item.id,
                item_name=item.name,
                reason=reason,
                percent_bonus=effect.percent_bonus,
                flat_bonus=effect.flat_bonus,
                triggered=effect.triggered,
            )
        )
        if effect.triggered:
            summary.total_percent_bonus += effect.percent_bonus
            summary.total_flat_bonus += effect.flat_bonus

    summary.final_bonus_points = floor_points(base_points * summary.total_percent_bonus) + summary.total_flat_bonus
    return summary


def calculate_charm_bonuses(
    context: ExerciseCharmContext,
    equipped_charm_ids: Sequence[str],
    charms: Mapping[str, CharmDefinition],
) -> BonusSummary:
    """
    Stack the equipped charms for one exercise.

    Unknown ids are skipped.  Non-triggered charms are kept in the bonus
    list with their reason and contribute nothing.

    Args:
        context: Aggregates of the completed exercise
        equipped_charm_ids: Charm ids in equip order
        charms: Charm catalog (id → definition)

    Returns:
        BonusSummary against context.base_points
    """
    summary = _stack(equipped_charm_ids, charms, context, CHARM_EFFECTS, context.base_points)
    logger.debug(
        "Charms: %d equipped, +%.3f%% +%d flat -> %d points",
        len(equipped_charm_ids), summary.total_percent_bonus * 100,
        summary.total_flat_bonus, summary.final_bonus_points,
    )
    return summary


def calculate_rune_bonuses(
    context: WorkoutRuneContext,
    equipped_rune_ids: Sequence[str],
    runes: Mapping[str, RuneDefinition],
) -> BonusSummary:
    """
    Stack the equipped runes for a workout.

    context.base_points must already include the charm bonus points.
    """
    summary = _stack(equipped_rune_ids, runes, context, RUNE_EFFECTS, context.base_points)
    logger.debug(
        "Runes: %d equipped, +%.3f%% +%d flat -> %d points",
        len(equipped_rune_ids), summary.total_percent_bonus * 100,
        summary.total_flat_bonus, summary.final_bonus_points,
    )
    return summary
