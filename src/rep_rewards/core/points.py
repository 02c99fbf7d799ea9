"""
Points engine: per-set scoring with an itemized bonus list.

Combination rule:

    additive = 1 + Σ(multiplier - 1)   over overload, rep-range and streak
    final    = floor(base * additive * volume_scaling), floored at 1

Bad inputs (negative or zero reps/weight) are not rejected; they fall
through to the 1-point floor.
"""

from datetime import datetime

from .config import DEFAULT_CONFIG, PointsConfig
from .formulas import (
    calculate_one_rep_max,
    calendar_days_between,
    classify_goal_bucket,
    floor_points,
    is_in_goal_rep_range,
    round_half_up,
    tier_at_least,
    tier_at_most,
)
from .models import BonusKind, ExerciseBaseline, GoalBucket, PointBonus, PointsResult, SetInput

_DEFAULT = DEFAULT_CONFIG.points


def effective_weight(set_input: SetInput, config: PointsConfig = _DEFAULT) -> float:
    """
    Load used for base points.

    Weighted: the logged weight (None → 0).
    Bodyweight: bodyweight × BODYWEIGHT_FACTOR.
    """
    if set_input.exercise_type == "bodyweight":
        return set_input.bodyweight_kg * config.bodyweight_factor
    return set_input.weight_kg or 0.0


def calculate_base_points(set_input: SetInput, config: PointsConfig = _DEFAULT) -> int:
    """
    Base points for a set: round(effective_weight × reps), floored at 1.

    Args:
        set_input: The logged set
        config: Points tuning

    Returns:
        Base points (≥ 1)
    """
    weight = effective_weight(set_input, config)
    if weight <= 0 or set_input.reps <= 0:
        return config.min_set_points
    return max(round_half_up(weight * set_input.reps), config.min_set_points)


def check_for_pr(
    weight: float | None,
    reps: int,
    baseline: ExerciseBaseline | None,
    goal: GoalBucket | None = None,
) -> bool:
    """
    Detect a personal record within a goal bucket.

    A PR needs the reps inside the bucket's range, and an e1RM that is
    positive and strictly above the bucket's stored best.  When no goal is
    given, the bucket is inferred from the rep count.

    Args:
        weight: Logged weight (None for bodyweight work)
        reps: Reps performed
        baseline: Stored baseline (None = nothing recorded yet)
        goal: Workout goal bucket

    Returns:
        True if the set is a PR
    """
    bucket = goal if goal is not None else classify_goal_bucket(reps)
    if not is_in_goal_rep_range(reps, bucket):
        return False
    e1rm = calculate_one_rep_max(weight or 0.0, reps)
    if e1rm <= 0:
        return False
    best = baseline.best_for(bucket) if baseline is not None else 0.0
    return e1rm > best


def overload_improvement_pct(current_e1rm: float, baseline: ExerciseBaseline | None) -> float | None:
    """
    Improvement of the current e1RM over the rolling average, in percent.

    None when the baseline is missing or has no usable average.
    """
    if baseline is None or baseline.rolling_avg_e1rm <= 0:
        return None
    avg = baseline.rolling_avg_e1rm
    return (current_e1rm - avg) / avg * 100


def calculate_overload_bonus(
    current_e1rm: float,
    baseline: ExerciseBaseline | None,
    config: PointsConfig = _DEFAULT,
) -> PointBonus | None:
    """
    Progressive-overload bonus against the rolling-average e1RM.

    Only a matured baseline (≥ BASELINE_WORKOUTS_REQUIRED sessions) can
    grant it.  <1% → none; 1–5% → ×1.25; 5–15% → ×1.5; ≥15% → ×2.0.
    """
    if baseline is None:
        return None
    if not (baseline.is_baselined or baseline.workout_count >= config.baseline_workouts_required):
        return None
    improvement = overload_improvement_pct(current_e1rm, baseline)
    if improvement is None:
        return None

    multiplier = tier_at_least(improvement, config.overload_tiers)
    if multiplier == 1.0:
        return None
    return PointBonus(
        kind=BonusKind.PROGRESSIVE_OVERLOAD,
        multiplier=multiplier,
        description=f"+{improvement:.1f}% over your average: +{round_half_up((multiplier - 1) * 100)}%",
    )


def rep_range_multiplier(reps: int, config: PointsConfig = _DEFAULT) -> float:
    """
    Rep-range multiplier.

    1–4 → 1.00, 5–8 → 1.25, 9–12 → 1.00, 13–20 → 0.90, 21+ → 0.75.
    """
    return tier_at_most(reps, config.rep_range_tiers, config.rep_range_high_multiplier)


def calculate_rep_range_bonus(reps: int, config: PointsConfig = _DEFAULT) -> PointBonus | None:
    multiplier = rep_range_multiplier(reps, config)
    if multiplier == 1.0:
        return None
    pct = round_half_up((multiplier - 1) * 100)
    label = "Hypertrophy range" if multiplier > 1 else "High-rep set"
    return PointBonus(
        kind=BonusKind.REP_RANGE,
        multiplier=multiplier,
        description=f"{label} ({reps} reps): {pct:+d}%",
    )


def volume_scaling_multiplier(nth_set: int, config: PointsConfig = _DEFAULT) -> float:
    """
    Within-workout diminishing returns for the Nth set of one muscle.

    N ≤ 10 → 1.0; 11–14 → 0.75; ≥15 → 0.5.
    """
    return tier_at_most(nth_set, config.volume_tiers, config.volume_floor_multiplier)


def calculate_volume_bonus(muscle_sets_before: int, config: PointsConfig = _DEFAULT) -> PointBonus | None:
    nth = muscle_sets_before + 1
    multiplier = volume_scaling_multiplier(nth, config)
    if multiplier == 1.0:
        return None
    return PointBonus(
        kind=BonusKind.VOLUME_SCALING,
        multiplier=multiplier,
        description=f"Set #{nth} for this muscle today: x{multiplier:g}",
    )


def streak_multiplier(current_streak: int, config: PointsConfig = _DEFAULT) -> float:
    """Highest qualifying streak tier: ≥3 ×1.1 … ≥28 ×1.5."""
    return tier_at_least(current_streak, config.streak_tiers)


def calculate_streak_bonus(current_streak: int, config: PointsConfig = _DEFAULT) -> PointBonus | None:
    multiplier = streak_multiplier(current_streak, config)
    if multiplier == 1.0:
        return None
    return PointBonus(
        kind=BonusKind.WORKOUT_STREAK,
        multiplier=multiplier,
        description=f"{current_streak} workout streak! x{multiplier:g}",
    )


def combine_bonuses(
    base_points: int,
    bonuses: list[PointBonus],
    config: PointsConfig = _DEFAULT,
) -> tuple[float, float, int]:
    """
    Apply the fixed combination rule.

    Returns:
        (additive_multiplier, volume_multiplier, final_points)
    """
    additive_sum = sum(b.multiplier - 1 for b in bonuses if b.kind.is_additive)
    additive = round(1 + additive_sum, 10)
    volume = 1.0
    for b in bonuses:
        if not b.kind.is_additive:
            volume *= b.multiplier
    final = max(floor_points(base_points * additive * volume), config.min_set_points)
    return additive, volume, final


def calculate_set_points(
    set_input: SetInput,
    baseline: ExerciseBaseline | None = None,
    current_streak: int = 0,
    goal: GoalBucket | None = None,
    config: PointsConfig = _DEFAULT,
) -> PointsResult:
    """
    Score one set.

    Args:
        set_input: The logged set
        baseline: Lifter's baseline for this exercise (None = no bonus data)
        current_streak: Consecutive-workout streak
        goal: Workout goal bucket, scopes PR detection
        config: Points tuning

    Returns:
        PointsResult with the itemized bonus list and PR flag
    """
    base_points = calculate_base_points(set_input, config)
    e1rm = calculate_one_rep_max(set_input.weight_kg or 0.0, set_input.reps)
    is_pr = check_for_pr(set_input.weight_kg, set_input.reps, baseline, goal)

    candidates = (
        calculate_overload_bonus(e1rm, baseline, config),
        calculate_rep_range_bonus(set_input.reps, config),
        calculate_streak_bonus(current_streak, config),
        calculate_volume_bonus(set_input.muscle_sets_before, config),
    )
    bonuses = [b for b in candidates if b is not None]
    additive, volume, final_points = combine_bonuses(base_points, bonuses, config)

    return PointsResult(
        base_points=base_points,
        additive_multiplier=additive,
        volume_multiplier=volume,
        final_points=final_points,
        bonuses=bonuses,
        is_pr=is_pr,
        e1rm=e1rm,
    )


def calculate_workout_completion_bonus(
    total_sets: int,
    duration_minutes: int,
    config: PointsConfig = _DEFAULT,
) -> int:
    """
    Flat bonus for finishing a workout.

    50 base, +25 at 30 min and again at 60 min, +25 at 10 sets and again
    at 20 sets.
    """
    bonus = config.completion_base_bonus
    for minutes, amount in config.completion_duration_steps:
        if duration_minutes >= minutes:
            bonus += amount
    for sets, amount in config.completion_set_steps:
        if total_sets >= sets:
            bonus += amount
    return bonus


def calculate_new_streak(
    current_streak: int,
    last_workout_at: datetime | None,
    now: datetime,
) -> int:
    """
    Streak after a workout completed at `now`.

    Same calendar day → unchanged; the day after → +1; anything else → 1.
    """
    if last_workout_at is None:
        return 1
    days = calendar_days_between(last_workout_at, now)
    if days == 0:
        return max(current_streak, 1)
    if days == 1:
        return current_streak + 1
    return 1
