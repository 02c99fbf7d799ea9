"""
Muscle XP and leveling.

XP per set:
- Base 8 XP, split across up to three tagged muscles:
  100% (1 tag), 75/25 (2 tags), 60/25/15 (3 tags)
- Rolling 7-day diminishing returns per muscle:
  sets 1–15 ×1.0, 16–25 ×0.5, 26+ ×0.2
- PR sets earn ×2 after diminishing returns

Levels 0–25 follow xp_for_level(L) = floor(12 × 1.25^L).

Decay is a read-time view: nothing here mutates stored state except
apply_muscle_xp, which returns a new record.
"""

import math
from dataclasses import replace
from datetime import datetime
from typing import Sequence

from .config import DEFAULT_CONFIG, MuscleXpConfig
from .formulas import calendar_days_between, round_half_up
from .models import (
    DecayedMuscleLevel,
    EstimatedXpGain,
    LevelChange,
    LevelProgress,
    MuscleLevelState,
    MuscleTag,
    MuscleXpAward,
)

_DEFAULT = DEFAULT_CONFIG.muscle_xp
MAX_TAGS = 3


# =============================================================================
# LEVEL CURVE
# =============================================================================

def xp_for_muscle_level(level: int, config: MuscleXpConfig = _DEFAULT) -> int:
    """
    XP needed to advance from level-1 to `level`.

    floor(LEVEL_BASE_XP × LEVEL_GROWTH_RATE^level); 0 for level < 1 and for
    levels beyond the cap (there is no next level).
    """
    if level < 1 or level > config.max_level:
        return 0
    return math.floor(config.level_base_xp * config.level_growth_rate ** level)


def total_xp_for_muscle_level(level: int, config: MuscleXpConfig = _DEFAULT) -> int:
    """Cumulative XP needed to reach `level` from zero."""
    capped = min(level, config.max_level)
    return sum(xp_for_muscle_level(i, config) for i in range(1, capped + 1))


def calculate_muscle_level_from_xp(total_xp: int, config: MuscleXpConfig = _DEFAULT) -> LevelProgress:
    """
    Derive level and in-level progress from cumulative XP.

    Repeatedly subtracts the next level's requirement until the remainder
    no longer covers it.

    Args:
        total_xp: Cumulative XP earned (negative treated as 0)
        config: XP tuning

    Returns:
        LevelProgress; at max level xp_for_next and progress are 0
    """
    level = 0
    remaining = max(0, int(total_xp))

    while level < config.max_level:
        required = xp_for_muscle_level(level + 1, config)
        if remaining < required:
            return LevelProgress(
                level=level,
                current_xp=remaining,
                xp_for_next=required,
                progress=remaining / required if required > 0 else 0.0,
            )
        remaining -= required
        level += 1

    return LevelProgress(level=config.max_level, current_xp=remaining, xp_for_next=0, progress=0.0)


def stored_progress(state: MuscleLevelState, config: MuscleXpConfig = _DEFAULT) -> float:
    """Progress toward the next level as stored (before any decay)."""
    needed = xp_for_muscle_level(state.level + 1, config)
    return state.current_xp / needed if needed > 0 else 0.0


# =============================================================================
# XP AWARDS
# =============================================================================

def get_diminishing_multiplier(rolling_sets: int, config: MuscleXpConfig = _DEFAULT) -> float:
    """Multiplier for the Nth set of a muscle within a rolling 7-day window."""
    if rolling_sets <= config.full_value_sets:
        return config.full_multiplier
    if rolling_sets <= config.reduced_value_sets:
        return config.reduced_multiplier
    return config.minimal_multiplier


def get_xp_split_percentages(muscle_count: int, config: MuscleXpConfig = _DEFAULT) -> tuple[float, ...]:
    """Split table for 1, 2 or 3+ tagged muscles; empty for none."""
    if muscle_count <= 0:
        return ()
    return config.splits[min(muscle_count, len(config.splits)) - 1]


def create_muscle_tags(mapped: Sequence[MuscleTag], primary_muscle: str) -> list[MuscleTag]:
    """
    Ordered, lower-cased tags for an exercise.

    Falls back to the exercise's primary muscle when the lookup table has
    no mapping.  Tags beyond the third are dropped.
    """
    if not mapped:
        return [MuscleTag(primary_muscle.lower(), 1)]
    ordered = sorted(mapped, key=lambda t: t.order)[:MAX_TAGS]
    return [MuscleTag(t.muscle_group.lower(), t.order) for t in ordered]


def calculate_set_muscle_xp(
    tags: Sequence[MuscleTag],
    rolling_counts: dict[str, int],
    is_pr: bool,
    config: MuscleXpConfig = _DEFAULT,
) -> list[MuscleXpAward]:
    """
    XP awarded to each tagged muscle for one set.

    final = round(round(base × split) × diminishing × pr)

    Args:
        tags: Muscles worked, any order (sorted by tag order here)
        rolling_counts: muscle → set count in the rolling 7-day window;
                        missing muscles count as 0
        is_pr: Whether the set was a PR
        config: XP tuning

    Returns:
        One MuscleXpAward per used tag, primary first
    """
    base_xp = config.base_xp_per_set
    pr_multiplier = config.pr_multiplier if is_pr else 1.0
    used = sorted(tags, key=lambda t: t.order)[:MAX_TAGS]
    splits = get_xp_split_percentages(len(used), config)

    awards: list[MuscleXpAward] = []
    for tag, split in zip(used, splits):
        muscle = tag.muscle_group.lower()
        diminishing = get_diminishing_multiplier(rolling_counts.get(muscle, 0), config)
        split_xp = round_half_up(base_xp * split)
        awards.append(
            MuscleXpAward(
                muscle_group=muscle,
                base_xp=base_xp,
                split_xp=split_xp,
                diminishing_multiplier=diminishing,
                pr_multiplier=pr_multiplier,
                final_xp=round_half_up(split_xp * diminishing * pr_multiplier),
            )
        )
    return awards


def apply_muscle_xp(
    state: MuscleLevelState,
    xp: int,
    when: datetime,
    config: MuscleXpConfig = _DEFAULT,
) -> tuple[MuscleLevelState, LevelChange]:
    """
    Add XP to a muscle and re-derive its level from the new cumulative total.

    Args:
        state: Stored level record
        xp: XP to add
        when: Training time, stamped as last_trained_at
        config: XP tuning

    Returns:
        (new state, level change record)
    """
    total = state.total_xp_earned + xp
    progress = calculate_muscle_level_from_xp(total, config)
    new_level = min(progress.level, config.max_level)
    new_state = replace(
        state,
        level=new_level,
        current_xp=progress.current_xp,
        total_xp_earned=total,
        last_trained_at=when,
    )
    return new_state, LevelChange(
        muscle_group=state.muscle_group,
        xp_awarded=xp,
        old_level=state.level,
        new_level=new_level,
    )


# =============================================================================
# DECAY
# =============================================================================

def days_since_training(last_trained_at: datetime | None, now: datetime) -> int | None:
    """Calendar days since a muscle was last trained; None if never."""
    if last_trained_at is None:
        return None
    return calendar_days_between(last_trained_at, now)


def calculate_muscle_decay(
    stored_level: int,
    stored_progress_value: float,
    last_trained_at: datetime | None,
    now: datetime,
    config: MuscleXpConfig = _DEFAULT,
) -> DecayedMuscleLevel:
    """
    Read-time decay view.

    - Within the grace period (≤ 7 days): untouched, "active".
    - Past it: progress shows 0, "resting".
    - Every further full 7 days: one level lost, "decaying".  The effective
      level never drops below MIN_LEVEL and never rises above the stored one.

    Args:
        stored_level: Level as stored
        stored_progress_value: Stored progress fraction (0–1)
        last_trained_at: Last training time (None = never trained)
        now: Evaluation time
        config: XP tuning

    Returns:
        DecayedMuscleLevel
    """
    days = days_since_training(last_trained_at, now)

    if days is None or days <= config.grace_period_days:
        return DecayedMuscleLevel(
            original_level=stored_level,
            original_progress=stored_progress_value,
            effective_level=stored_level,
            effective_progress=stored_progress_value,
            decay_status="active",
            levels_lost=0,
            days_since_training=days,
        )

    days_overdue = days - config.grace_period_days
    levels_to_lose = days_overdue // config.days_per_level_loss
    floor_level = min(stored_level, config.min_level)
    effective_level = max(floor_level, stored_level - levels_to_lose)

    return DecayedMuscleLevel(
        original_level=stored_level,
        original_progress=stored_progress_value,
        effective_level=effective_level,
        effective_progress=0.0,
        decay_status="decaying" if levels_to_lose > 0 else "resting",
        levels_lost=stored_level - effective_level,
        days_since_training=days,
    )


def decayed_view(
    state: MuscleLevelState,
    now: datetime,
    config: MuscleXpConfig = _DEFAULT,
) -> DecayedMuscleLevel:
    """Decay view straight from a stored MuscleLevelState."""
    return calculate_muscle_decay(
        state.level,
        stored_progress(state, config),
        state.last_trained_at,
        now,
        config,
    )


# =============================================================================
# UI ESTIMATE
# =============================================================================

def estimate_exercise_xp_gains(
    muscles: Sequence[str],
    set_count: int,
    pr_count: int,
    current_states: dict[str, MuscleLevelState],
    config: MuscleXpConfig = _DEFAULT,
) -> list[EstimatedXpGain]:
    """
    Predict XP and level movement for an exercise, for animation.

    No diminishing returns are applied (rolling counts are not available
    on the client).  Per-set rounding and the level curve are the ones the
    persisted path uses, so predictions match whenever diminishing returns
    do not kick in.

    Args:
        muscles: Muscles worked, primary first (up to 3 used)
        set_count: Sets completed
        pr_count: How many of them were PRs
        current_states: muscle → stored level record (lower-case keys)
        config: XP tuning

    Returns:
        One EstimatedXpGain per used muscle
    """
    if not muscles or set_count <= 0:
        return []

    used = list(muscles)[:MAX_TAGS]
    splits = get_xp_split_percentages(len(used), config)
    pr_sets = max(0, min(pr_count, set_count))
    regular_sets = set_count - pr_sets

    gains: list[EstimatedXpGain] = []
    for muscle, split in zip(used, splits):
        split_xp = round_half_up(config.base_xp_per_set * split)
        pr_xp = round_half_up(split_xp * config.pr_multiplier)
        xp_gained = regular_sets * split_xp + pr_sets * pr_xp

        key = muscle.lower()
        state = current_states.get(key)
        start_total = state.total_xp_earned if state is not None else 0
        start = calculate_muscle_level_from_xp(start_total, config)
        end = calculate_muscle_level_from_xp(start_total + xp_gained, config)

        gains.append(
            EstimatedXpGain(
                muscle_group=key,
                start_level=start.level,
                start_progress=start.progress,
                xp_gained=xp_gained,
                end_level=end.level,
                end_progress=end.progress,
            )
        )
    return gains
