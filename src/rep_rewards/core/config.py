"""
Configuration constants for the reward engine.

All adjustable parameters are centralized here for easy tuning.  The
constants are the shipped defaults; the engines never read them directly
at call time.  They are gathered into frozen, versioned config objects
(``RewardConfig`` and its sections) that are passed into every operation,
so a tuning experiment only needs a different config object.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Final

CONFIG_VERSION: Final[str] = "2.3"

# =============================================================================
# POINTS ENGINE: BASE POINTS
# =============================================================================

BODYWEIGHT_FACTOR: Final[float] = 0.65  # Share of BW used as effective load
MIN_SET_POINTS: Final[int] = 1  # Floor for any scored set

# =============================================================================
# POINTS ENGINE: PROGRESSIVE OVERLOAD
# =============================================================================

BASELINE_WORKOUTS_REQUIRED: Final[int] = 3  # Sessions before overload bonus unlocks
BASELINE_WINDOW_SIZE: Final[int] = 4  # Sessions kept in the rolling e1RM window

# (min improvement %, multiplier); checked from the top, first match wins
OVERLOAD_TIERS: Final[tuple[tuple[float, float], ...]] = (
    (15.0, 2.00),
    (5.0, 1.50),
    (1.0, 1.25),
)

# =============================================================================
# POINTS ENGINE: REP RANGE, VOLUME, STREAK
# =============================================================================

# (max reps inclusive, multiplier); last entry catches everything above
REP_RANGE_TIERS: Final[tuple[tuple[int, float], ...]] = (
    (4, 1.00),
    (8, 1.25),  # Hypertrophy sweet spot
    (12, 1.00),
    (20, 0.90),
)
REP_RANGE_HIGH_MULTIPLIER: Final[float] = 0.75  # 21+ reps

# (max Nth set of a muscle in this workout, multiplier)
VOLUME_TIERS: Final[tuple[tuple[int, float], ...]] = (
    (10, 1.00),
    (14, 0.75),
)
VOLUME_FLOOR_MULTIPLIER: Final[float] = 0.50  # 15th set onward

# (min streak, multiplier); highest qualifying tier only
STREAK_TIERS: Final[tuple[tuple[int, float], ...]] = (
    (28, 1.5),
    (21, 1.4),
    (14, 1.3),
    (7, 1.2),
    (3, 1.1),
)

# =============================================================================
# WORKOUT COMPLETION BONUS
# =============================================================================

COMPLETION_BASE_BONUS: Final[int] = 50
COMPLETION_DURATION_STEPS: Final[tuple[tuple[int, int], ...]] = ((30, 25), (60, 25))
COMPLETION_SET_STEPS: Final[tuple[tuple[int, int], ...]] = ((10, 25), (20, 25))

# =============================================================================
# MUSCLE XP
# =============================================================================

BASE_XP_PER_SET: Final[int] = 8
MAX_LEVEL: Final[int] = 25
MIN_LEVEL: Final[int] = 1  # Decay floor

XP_SPLITS: Final[tuple[tuple[float, ...], ...]] = (
    (1.00,),
    (0.75, 0.25),
    (0.60, 0.25, 0.15),
)

# Rolling 7-day set count per muscle
DR_FULL_VALUE_SETS: Final[int] = 15
DR_REDUCED_VALUE_SETS: Final[int] = 25
DR_FULL_MULTIPLIER: Final[float] = 1.0
DR_REDUCED_MULTIPLIER: Final[float] = 0.5
DR_MINIMAL_MULTIPLIER: Final[float] = 0.2

PR_XP_MULTIPLIER: Final[float] = 2.0

# xp_for_level(L) = floor(LEVEL_BASE_XP * LEVEL_GROWTH_RATE ** L)
LEVEL_BASE_XP: Final[float] = 12.0
LEVEL_GROWTH_RATE: Final[float] = 1.25

DECAY_GRACE_PERIOD_DAYS: Final[int] = 7
DECAY_DAYS_PER_LEVEL: Final[int] = 7

# =============================================================================
# CHARM DROPS
# =============================================================================

MIN_SETS_FOR_DROP: Final[int] = 2

PITY_SETS_THRESHOLD: Final[int] = 8
PITY_BONUS_PER_SET: Final[float] = 0.15

ADHERENCE_DECENT: Final[float] = 0.5
ADHERENCE_HIGH: Final[float] = 0.8

DROP_CHANCE_BY_TIER: Final[tuple[float, float, float, float]] = (
    0.12,  # was 5%
    0.20,  # was 12%
    0.32,  # was 22%
    0.45,  # was 35%
)
DROP_PR_BONUS: Final[float] = 0.08  # was 5%
DROP_ADHERENCE_MAX_BONUS: Final[float] = 0.08  # was 5%

RARITY_COMMON_THRESHOLD: Final[float] = 0.75
RARITY_RARE_THRESHOLD: Final[float] = 0.95
RARITY_TIER_SHIFT: Final[float] = 0.05
RARITY_RARE_SHIFT_FACTOR: Final[float] = 0.5  # Rare threshold moves half as far
RARITY_PR_SHIFT: Final[float] = 0.02
RARITY_ADHERENCE_MAX_SHIFT: Final[float] = 0.02
RARITY_COMMON_FLOOR: Final[float] = 0.10
RARITY_RARE_CEILING: Final[float] = 0.99

RARE_MIN_LEVEL: Final[int] = 6
EPIC_MIN_LEVEL: Final[int] = 16


# =============================================================================
# CONFIG OBJECTS
# =============================================================================

@dataclass(frozen=True)
class PointsConfig:
    """Tunables for per-set scoring and the workout completion bonus."""

    bodyweight_factor: float = BODYWEIGHT_FACTOR
    min_set_points: int = MIN_SET_POINTS
    baseline_workouts_required: int = BASELINE_WORKOUTS_REQUIRED
    baseline_window_size: int = BASELINE_WINDOW_SIZE
    overload_tiers: tuple[tuple[float, float], ...] = OVERLOAD_TIERS
    rep_range_tiers: tuple[tuple[int, float], ...] = REP_RANGE_TIERS
    rep_range_high_multiplier: float = REP_RANGE_HIGH_MULTIPLIER
    volume_tiers: tuple[tuple[int, float], ...] = VOLUME_TIERS
    volume_floor_multiplier: float = VOLUME_FLOOR_MULTIPLIER
    streak_tiers: tuple[tuple[int, float], ...] = STREAK_TIERS
    completion_base_bonus: int = COMPLETION_BASE_BONUS
    completion_duration_steps: tuple[tuple[int, int], ...] = COMPLETION_DURATION_STEPS
    completion_set_steps: tuple[tuple[int, int], ...] = COMPLETION_SET_STEPS


@dataclass(frozen=True)
class MuscleXpConfig:
    """Tunables for XP awards, the leveling curve, and decay."""

    base_xp_per_set: int = BASE_XP_PER_SET
    max_level: int = MAX_LEVEL
    min_level: int = MIN_LEVEL
    splits: tuple[tuple[float, ...], ...] = XP_SPLITS
    full_value_sets: int = DR_FULL_VALUE_SETS
    reduced_value_sets: int = DR_REDUCED_VALUE_SETS
    full_multiplier: float = DR_FULL_MULTIPLIER
    reduced_multiplier: float = DR_REDUCED_MULTIPLIER
    minimal_multiplier: float = DR_MINIMAL_MULTIPLIER
    pr_multiplier: float = PR_XP_MULTIPLIER
    level_base_xp: float = LEVEL_BASE_XP
    level_growth_rate: float = LEVEL_GROWTH_RATE
    grace_period_days: int = DECAY_GRACE_PERIOD_DAYS
    days_per_level_loss: int = DECAY_DAYS_PER_LEVEL


@dataclass(frozen=True)
class CharmDropConfig:
    """Tunables for the drop roll, the rarity roll, pity, and gating."""

    force_drop: bool = False
    min_sets_for_drop: int = MIN_SETS_FOR_DROP
    pity_sets_threshold: int = PITY_SETS_THRESHOLD
    pity_bonus_per_set: float = PITY_BONUS_PER_SET
    adherence_decent: float = ADHERENCE_DECENT
    adherence_high: float = ADHERENCE_HIGH
    drop_chance_by_tier: tuple[float, float, float, float] = DROP_CHANCE_BY_TIER
    pr_bonus: float = DROP_PR_BONUS
    adherence_max_bonus: float = DROP_ADHERENCE_MAX_BONUS
    common_threshold: float = RARITY_COMMON_THRESHOLD
    rare_threshold: float = RARITY_RARE_THRESHOLD
    tier_shift: float = RARITY_TIER_SHIFT
    rare_shift_factor: float = RARITY_RARE_SHIFT_FACTOR
    pr_shift: float = RARITY_PR_SHIFT
    adherence_max_shift: float = RARITY_ADHERENCE_MAX_SHIFT
    common_floor: float = RARITY_COMMON_FLOOR
    rare_ceiling: float = RARITY_RARE_CEILING
    rare_min_level: int = RARE_MIN_LEVEL
    epic_min_level: int = EPIC_MIN_LEVEL


def _freeze(value: Any) -> Any:
    """Turn YAML lists (and nested lists) into tuples for frozen configs."""
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _overlay(section: Any, overrides: dict[str, Any], name: str) -> Any:
    known = {f.name for f in fields(section)}
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"Unknown {name} config keys: {sorted(unknown)}")
    return replace(section, **{k: _freeze(v) for k, v in overrides.items()})


@dataclass(frozen=True)
class RewardConfig:
    """
    Versioned root configuration for the whole reward pipeline.

    Each engine receives only the section it needs.
    """

    version: str = CONFIG_VERSION
    points: PointsConfig = field(default_factory=PointsConfig)
    muscle_xp: MuscleXpConfig = field(default_factory=MuscleXpConfig)
    charm_drop: CharmDropConfig = field(default_factory=CharmDropConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RewardConfig":
        """
        Build a config by overlaying a (partial) nested mapping onto the defaults.

        Args:
            data: Mapping with optional keys ``version``, ``points``,
                  ``muscle_xp`` and ``charm_drop``

        Returns:
            RewardConfig

        Raises:
            ValueError: On unknown section or key names
        """
        sections = {"points", "muscle_xp", "charm_drop"}
        unknown = set(data) - sections - {"version"}
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")

        base = cls()
        return cls(
            version=str(data.get("version", base.version)),
            points=_overlay(base.points, data.get("points") or {}, "points"),
            muscle_xp=_overlay(base.muscle_xp, data.get("muscle_xp") or {}, "muscle_xp"),
            charm_drop=_overlay(base.charm_drop, data.get("charm_drop") or {}, "charm_drop"),
        )

    def with_force_drop(self, enabled: bool = True) -> "RewardConfig":
        """Return a copy with the drop test-mode override toggled."""
        return replace(self, charm_drop=replace(self.charm_drop, force_drop=enabled))


DEFAULT_CONFIG: Final[RewardConfig] = RewardConfig()
