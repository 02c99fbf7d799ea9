"""
Charm drop evaluation.

Runs once per completed exercise:

1. Eligibility (MIN_SETS_FOR_DROP sets)
2. Quality tier 0-3 from rep-range adherence and PR
3. Drop chance: tier base + PR bonus + adherence bonus, capped at 1
4. Pity: +15% per set beyond the threshold, then clamp to [0, 1]
5. Drop roll (first random draw)
6. Rarity roll (second draw, only after a drop)
7. Level gating, applied to the rolled rarity

Randomness comes from an injected source so results can be replayed.
"""

import logging
import random
from typing import Mapping, Protocol, Sequence

from .config import DEFAULT_CONFIG, CharmDropConfig
from .formulas import rep_range_adherence, round_half_up
from .items.base import CharmDefinition
from .models import (
    CharmDropResult,
    DropDebug,
    GatingInfo,
    GoalBucket,
    PityInfo,
    QualityTier,
    Rarity,
    ScoredSet,
)

logger = logging.getLogger(__name__)

_DEFAULT = DEFAULT_CONFIG.charm_drop


class RandomSource(Protocol):
    """Anything with a random() -> float in [0, 1), e.g. random.Random."""

    def random(self) -> float: ...


def _clamp01(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def compute_quality_tier(adherence: float, pr_hit: bool, config: CharmDropConfig = _DEFAULT) -> QualityTier:
    """
    Quality tier from adherence and PR.

    3: PR and high adherence
    2: (PR and decent adherence) or high adherence
    1: PR or decent adherence
    0: otherwise
    """
    decent = adherence >= config.adherence_decent
    high = adherence >= config.adherence_high

    if pr_hit and high:
        return 3
    if (pr_hit and decent) or high:
        return 2
    if pr_hit or decent:
        return 1
    return 0


def calculate_drop_chance(
    tier: QualityTier,
    adherence: float,
    pr_hit: bool,
    config: CharmDropConfig = _DEFAULT,
) -> float:
    """
    Drop chance before pity.

    Args:
        tier: Quality tier
        adherence: Rep-range adherence (0-1)
        pr_hit: Whether any set was a PR
        config: Drop tuning

    Returns:
        Chance in [0, 1]
    """
    chance = config.drop_chance_by_tier[tier]
    if pr_hit:
        chance += config.pr_bonus
    chance += adherence * config.adherence_max_bonus
    return _clamp01(chance)


def apply_pity(
    chance: float,
    sets_since_last_charm: int,
    config: CharmDropConfig = _DEFAULT,
) -> tuple[float, PityInfo]:
    """
    Add the pity bonus for dry sets beyond the threshold.

    Args:
        chance: Drop chance before pity
        sets_since_last_charm: Persisted counter plus this exercise's sets
        config: Drop tuning

    Returns:
        (final chance clamped to [0, 1], PityInfo)
    """
    pity_bonus = 0.0
    guaranteed = False
    final = _clamp01(chance)

    if sets_since_last_charm > config.pity_sets_threshold:
        over = sets_since_last_charm - config.pity_sets_threshold
        pity_bonus = over * config.pity_bonus_per_set
        final = _clamp01(chance + pity_bonus)
        guaranteed = final >= 1.0

    return final, PityInfo(
        sets_since_last_charm=sets_since_last_charm,
        pity_bonus=round(pity_bonus, 2),
        was_guaranteed=guaranteed,
    )


def rarity_thresholds(
    tier: QualityTier,
    adherence: float,
    pr_hit: bool,
    config: CharmDropConfig = _DEFAULT,
) -> tuple[float, float]:
    """
    Cumulative (common, rare) thresholds after the quality shift.

    The common threshold moves down by the full shift, the rare threshold
    by half of it; both are kept inside [common_floor, rare_ceiling].
    """
    shift = tier * config.tier_shift
    if pr_hit:
        shift += config.pr_shift
    shift += adherence * config.adherence_max_shift

    common = max(config.common_floor, config.common_threshold - shift)
    rare = min(config.rare_ceiling, config.rare_threshold - shift * config.rare_shift_factor)
    return common, rare


def roll_rarity(
    tier: QualityTier,
    adherence: float,
    pr_hit: bool,
    rng: RandomSource,
    config: CharmDropConfig = _DEFAULT,
) -> tuple[Rarity, float]:
    """
    Roll a rarity.  Returns (rarity, roll).
    """
    common, rare = rarity_thresholds(tier, adherence, pr_hit, config)
    roll = rng.random()
    if roll < common:
        return Rarity.COMMON, roll
    if roll < rare:
        return Rarity.RARE, roll
    return Rarity.EPIC, roll


def compute_gating_level(muscles: Sequence[str], muscle_levels: Mapping[str, int]) -> int:
    """
    Highest current level among the exercise's muscles (0 if unknown).

    Args:
        muscles: Muscle groups involved (1-3)
        muscle_levels: muscle → current level; keys are compared lower-cased
    """
    levels = {k.lower(): v for k, v in muscle_levels.items()}
    return max((levels.get(m.lower(), 0) for m in muscles), default=0)


def get_max_allowed_rarity(gating_level: int, config: CharmDropConfig = _DEFAULT) -> Rarity:
    """Level 0-5 Common, 6-15 Rare, 16+ Epic."""
    if gating_level >= config.epic_min_level:
        return Rarity.EPIC
    if gating_level >= config.rare_min_level:
        return Rarity.RARE
    return Rarity.COMMON


def apply_rarity_gating(rolled: Rarity, max_allowed: Rarity) -> Rarity:
    """Downgrade a rolled rarity to the cap if it exceeds it."""
    return max_allowed if rolled.rank > max_allowed.rank else rolled


def evaluate_charm_drop(
    sets: Sequence[ScoredSet],
    workout_goal: GoalBucket,
    muscles: Sequence[str],
    muscle_levels: Mapping[str, int],
    sets_since_last_charm: int,
    rng: RandomSource | None = None,
    config: CharmDropConfig = _DEFAULT,
) -> CharmDropResult:
    """
    Decide whether a charm drops for one completed exercise.

    The drop roll is always drawn for eligible exercises; the rarity roll
    is drawn only after a drop.  Gating uses the levels as passed in, so
    callers should hand over levels from before this exercise's XP.

    Args:
        sets: The exercise's scored sets
        workout_goal: Goal bucket for adherence
        muscles: Muscles involved, primary first
        muscle_levels: muscle → current level
        sets_since_last_charm: Persisted pity counter
        rng: Random source (a fresh random.Random() if None)
        config: Drop tuning

    Returns:
        CharmDropResult, including pity_after for the caller to persist
    """
    rng = rng if rng is not None else random.Random()
    sets_logged = len(sets)
    total_since_charm = sets_since_last_charm + sets_logged

    if sets_logged < config.min_sets_for_drop:
        logger.debug("Drop skipped: %d set(s) below minimum %d", sets_logged, config.min_sets_for_drop)
        return CharmDropResult(
            eligible=False,
            quality_tier=0,
            did_drop=False,
            rarity=None,
            sets_to_add_to_pity=sets_logged,
            pity_after=total_since_charm,
            debug=DropDebug(
                sets_logged=sets_logged,
                adherence_percent=0,
                pr_hit=False,
                base_drop_chance=0.0,
                final_drop_chance=0.0,
                drop_roll=0.0,
                rarity_roll=None,
                pity=PityInfo(sets_since_last_charm=total_since_charm, pity_bonus=0.0, was_guaranteed=False),
            ),
        )

    adherence = rep_range_adherence([s.reps for s in sets], workout_goal)
    pr_hit = any(s.is_pr for s in sets)
    tier = compute_quality_tier(adherence, pr_hit, config)

    base_chance = config.drop_chance_by_tier[tier]
    chance = calculate_drop_chance(tier, adherence, pr_hit, config)
    final_chance, pity = apply_pity(chance, total_since_charm, config)

    drop_roll = rng.random()
    did_drop = drop_roll < final_chance or config.force_drop

    rarity: Rarity | None = None
    rarity_roll: float | None = None
    gating: GatingInfo | None = None
    if did_drop:
        rolled, rarity_roll = roll_rarity(tier, adherence, pr_hit, rng, config)
        gating_level = compute_gating_level(muscles, muscle_levels)
        max_allowed = get_max_allowed_rarity(gating_level, config)
        rarity = apply_rarity_gating(rolled, max_allowed)
        gating = GatingInfo(
            gating_level=gating_level,
            max_allowed_rarity=max_allowed,
            rolled_rarity=rolled,
            final_rarity=rarity,
        )

    logger.debug(
        "Drop eval: tier=%d adherence=%.2f pr=%s chance=%.3f->%.3f roll=%.4f drop=%s rarity=%s",
        tier, adherence, pr_hit, chance, final_chance, drop_roll, did_drop,
        rarity.value if rarity else None,
    )

    return CharmDropResult(
        eligible=True,
        quality_tier=tier,
        did_drop=did_drop,
        rarity=rarity,
        sets_to_add_to_pity=0 if did_drop else sets_logged,
        pity_after=0 if did_drop else total_since_charm,
        debug=DropDebug(
            sets_logged=sets_logged,
            adherence_percent=round_half_up(adherence * 100),
            pr_hit=pr_hit,
            base_drop_chance=base_chance,
            final_drop_chance=final_chance,
            drop_roll=drop_roll,
            rarity_roll=rarity_roll,
            pity=pity,
            gating=gating,
        ),
    )


def pick_dropped_charm(
    rarity: Rarity,
    gating_level: int,
    rng: RandomSource,
    charms: Mapping[str, CharmDefinition],
) -> CharmDefinition | None:
    """
    Choose which charm dropped (a third, independent draw).

    Candidates are charms of the final rarity whose drop window contains
    the gating level; when none do, every charm of that rarity is eligible.

    Returns:
        The chosen CharmDefinition, or None if the catalog has no charm of
        that rarity
    """
    of_rarity = sorted((c for c in charms.values() if c.rarity is rarity), key=lambda c: c.id)
    in_window = [c for c in of_rarity if c.min_level <= gating_level <= c.max_drop_level]
    pool = in_window or of_rarity
    if not pool:
        return None
    index = min(int(rng.random() * len(pool)), len(pool) - 1)
    return pool[index]
