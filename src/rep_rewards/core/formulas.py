"""
Formula library: stateless helpers shared by every calculator.

One-rep-max estimation, goal-bucket rep ranges, tier-table lookups and the
rounding rule used across the engine.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Sequence, TypeVar

from .models import GoalBucket

N = TypeVar("N", int, float)


@dataclass(frozen=True)
class RepRange:
    """Inclusive rep range; max_reps None means unbounded."""

    min_reps: int
    max_reps: int | None = None

    def contains(self, reps: int) -> bool:
        if reps < self.min_reps:
            return False
        return self.max_reps is None or reps <= self.max_reps

    def __str__(self) -> str:
        if self.max_reps is None:
            return f"{self.min_reps}+"
        return f"{self.min_reps}-{self.max_reps}"


GOAL_REP_RANGES: dict[GoalBucket, RepRange] = {
    "Strength": RepRange(1, 6),
    "Hypertrophy": RepRange(6, 12),
    "Endurance": RepRange(12, None),
}


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves away from zero for positives.

    The tuned point and XP values were produced with half-up rounding;
    Python's round() uses banker's rounding (round(2.5) == 2).

    Args:
        value: Number to round

    Returns:
        Rounded integer
    """
    return math.floor(value + 0.5)


def calculate_one_rep_max(weight: float, reps: int) -> float:
    """
    Epley one-rep-max estimate.

    e1RM = w * (1 + reps / 30); a single is its own max.

    Args:
        weight: Load lifted (kg)
        reps: Repetitions performed

    Returns:
        Estimated 1RM, 0 when either input is zero
    """
    if reps == 0 or weight == 0:
        return 0.0
    if reps == 1:
        return float(weight)
    return weight * (1 + reps / 30)


def is_in_goal_rep_range(reps: int, goal: GoalBucket) -> bool:
    """Check whether a rep count falls inside a goal bucket's range."""
    return GOAL_REP_RANGES[goal].contains(reps)


def classify_goal_bucket(reps: int) -> GoalBucket:
    """
    Classify a rep count into the goal bucket it most naturally belongs to.

    ≤6 → Strength, 7–12 → Hypertrophy, 13+ → Endurance.
    """
    if reps <= 6:
        return "Strength"
    if reps <= 12:
        return "Hypertrophy"
    return "Endurance"


def rep_range_adherence(reps_per_set: Sequence[int], goal: GoalBucket) -> float:
    """
    Fraction of sets whose reps fall inside the goal's range.

    Args:
        reps_per_set: Rep counts of the completed sets
        goal: Workout goal bucket

    Returns:
        Adherence in [0, 1]; 0 when there are no sets
    """
    if not reps_per_set:
        return 0.0
    rep_range = GOAL_REP_RANGES[goal]
    hits = sum(1 for r in reps_per_set if rep_range.contains(r))
    return hits / len(reps_per_set)


def tier_at_most(value: float, tiers: Sequence[tuple[N, float]], above: float) -> float:
    """
    Look up an ascending "up to" tier table.

    tiers = ((limit, multiplier), ...) sorted by limit; the first entry whose
    limit is ≥ value wins, otherwise `above` applies.
    """
    for limit, multiplier in tiers:
        if value <= limit:
            return multiplier
    return above


def tier_at_least(value: float, tiers: Sequence[tuple[N, float]], default: float = 1.0) -> float:
    """
    Look up a descending "at least" tier table.

    tiers = ((threshold, multiplier), ...) sorted by threshold, highest
    first; the first threshold ≤ value wins, otherwise `default`.
    """
    for threshold, multiplier in tiers:
        if value >= threshold:
            return multiplier
    return default


def get_week_start(when: date | datetime) -> date:
    """Monday of the calendar week containing `when`."""
    day = when.date() if isinstance(when, datetime) else when
    return day - timedelta(days=day.weekday())


def calendar_days_between(earlier: date | datetime, later: date | datetime) -> int:
    """Whole calendar days from `earlier` to `later` (time of day ignored)."""
    d0 = earlier.date() if isinstance(earlier, datetime) else earlier
    d1 = later.date() if isinstance(later, datetime) else later
    return (d1 - d0).days


def floor_points(value: float) -> int:
    """
    Floor a point total.

    Rounds to 6 dp first so float noise (20 * 1.15 = 22.999...) does not
    cost a point.
    """
    return math.floor(round(value, 6))
