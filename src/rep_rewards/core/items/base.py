"""
Base types for item definitions.

Charms apply per exercise, runes per workout.  A definition names an
effect type plus the numbers that tune it (``params``); the effect
functions in core.effects interpret them.
"""

from dataclasses import dataclass, field
from enum import Enum

from ..models import Rarity


class CharmEffectType(str, Enum):
    SET_COUNT_BONUS = "set_count_bonus"  # % once enough sets are done
    PR_BONUS = "pr_bonus"  # flat points on a PR
    REP_RANGE_BONUS = "rep_range_bonus"  # % when every set is in the goal range
    COMPOUND_BONUS = "compound_bonus"  # % on multi-muscle exercises
    FIRST_SET_BONUS = "first_set_bonus"  # % spread over the first set
    STREAK_BONUS = "streak_bonus"  # % while on a streak
    VOLUME_MULTIPLIER = "volume_multiplier"  # % on later sets of the exercise
    HEAVY_SET_BONUS = "heavy_set_bonus"  # % on heavy sets


class RuneEffectType(str, Enum):
    EXERCISE_COUNT_BONUS = "exercise_count_bonus"
    CONSISTENCY_BONUS = "consistency_bonus"
    PR_COUNT_BONUS = "pr_count_bonus"
    VOLUME_BONUS = "volume_bonus"
    MUSCLE_GROUP_BONUS = "muscle_group_bonus"


@dataclass(frozen=True)
class CharmDefinition:
    """One catalog charm.  Read-only reference data."""

    id: str
    name: str
    description: str
    rarity: Rarity
    effect_type: CharmEffectType
    min_level: int = 0  # Lowest level at which it can drop / be equipped
    max_drop_level: int = 10  # Highest gating level at which it still drops
    params: dict[str, float] = field(default_factory=dict)

    def param(self, key: str, default: float = 0.0) -> float:
        return float(self.params.get(key, default))


@dataclass(frozen=True)
class RuneDefinition:
    """One catalog rune.  Read-only reference data."""

    id: str
    name: str
    description: str
    rarity: Rarity
    effect_type: RuneEffectType
    min_level: int = 0
    max_drop_level: int = 10
    params: dict[str, float] = field(default_factory=dict)

    def param(self, key: str, default: float = 0.0) -> float:
        return float(self.params.get(key, default))
