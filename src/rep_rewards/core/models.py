"""
Data models for rep-rewards.

All core dataclasses: logged sets and their scores, per-user snapshots
(baselines, muscle levels, pity counter, equipped items), and the result
records produced by each stage of the reward pipeline.

Models do not validate numeric ranges.  The engines degrade bad numbers to
their floors; range checks belong to the input boundary (io.serializers).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal

GoalBucket = Literal["Strength", "Hypertrophy", "Endurance"]
ExerciseType = Literal["weighted", "bodyweight"]
DecayStatus = Literal["active", "resting", "decaying"]
QualityTier = Literal[0, 1, 2, 3]

GOAL_BUCKETS: tuple[GoalBucket, ...] = ("Strength", "Hypertrophy", "Endurance")
EXERCISE_TYPES: tuple[ExerciseType, ...] = ("weighted", "bodyweight")


class BonusKind(str, Enum):
    """Kinds of per-set point modifiers."""

    PROGRESSIVE_OVERLOAD = "progressive_overload"
    REP_RANGE = "rep_range"
    WORKOUT_STREAK = "workout_streak"
    VOLUME_SCALING = "volume_scaling"

    @property
    def is_additive(self) -> bool:
        """Additive kinds are summed as (multiplier - 1); the rest multiply."""
        return self is not BonusKind.VOLUME_SCALING


class Rarity(str, Enum):
    """Item rarity, ordered ascending."""

    COMMON = "Common"
    RARE = "Rare"
    EPIC = "Epic"

    @property
    def rank(self) -> int:
        return _RARITY_ORDER.index(self)


_RARITY_ORDER: list[Rarity] = [Rarity.COMMON, Rarity.RARE, Rarity.EPIC]


# =============================================================================
# POINTS ENGINE
# =============================================================================

@dataclass
class SetInput:
    """
    One logged set, as handed to the points engine.

    weight_kg is None for bodyweight work; bodyweight_kg is only read for
    bodyweight exercises.
    """

    exercise_id: str
    reps: int
    weight_kg: float | None = None
    exercise_type: ExerciseType = "weighted"
    bodyweight_kg: float = 0.0
    set_number: int = 1  # 1-based position within the exercise
    muscle_sets_before: int = 0  # sets already logged for this muscle in the workout


@dataclass
class BaselineSession:
    """One session entry in an exercise baseline's rolling window."""

    e1rm: float
    date: str  # ISO timestamp
    weight_kg: float
    reps: int


@dataclass
class ExerciseBaseline:
    """
    Per-user, per-exercise rolling performance record.

    best_e1rm_by_goal holds the best e1RM seen inside each goal bucket's
    rep range; missing buckets count as 0.
    """

    exercise_id: str
    workout_count: int = 0
    is_baselined: bool = False
    rolling_avg_e1rm: float = 0.0
    session_history: list[BaselineSession] = field(default_factory=list)
    best_e1rm: float = 0.0
    best_e1rm_by_goal: dict[str, float] = field(default_factory=dict)

    def best_for(self, goal: GoalBucket) -> float:
        """Best e1RM recorded for a goal bucket (0 if none)."""
        return self.best_e1rm_by_goal.get(goal, 0.0)


@dataclass(frozen=True)
class PointBonus:
    """A single itemized modifier applied to a set."""

    kind: BonusKind
    multiplier: float
    description: str


@dataclass
class PointsResult:
    """
    Scored set.

    additive_multiplier = 1 + sum(multiplier - 1) over additive bonuses;
    final_points = floor(base_points * additive_multiplier * volume_multiplier).
    """

    base_points: int
    additive_multiplier: float
    volume_multiplier: float
    final_points: int
    bonuses: list[PointBonus] = field(default_factory=list)
    is_pr: bool = False
    e1rm: float = 0.0

    @property
    def multiplier(self) -> float:
        """Combined effective multiplier."""
        return self.additive_multiplier * self.volume_multiplier


@dataclass
class ScoredSet:
    """
    A logged set after scoring.

    Immutable in practice once produced by the pipeline; owned by its
    exercise.
    """

    exercise_id: str
    weight_kg: float | None
    reps: int
    set_number: int
    muscle_sets_before: int
    is_pr: bool
    points_earned: int


# =============================================================================
# MUSCLE XP & LEVELING
# =============================================================================

@dataclass(frozen=True)
class MuscleTag:
    """A muscle worked by an exercise; order 1 = primary, 2 = secondary, 3 = tertiary."""

    muscle_group: str
    order: int = 1


@dataclass
class MuscleLevelState:
    """Per-user, per-muscle level record."""

    muscle_group: str
    level: int = 0
    current_xp: int = 0
    total_xp_earned: int = 0
    last_trained_at: datetime | None = None


@dataclass
class MuscleXpAward:
    """XP earned by one muscle from one set."""

    muscle_group: str
    base_xp: int
    split_xp: int
    diminishing_multiplier: float
    pr_multiplier: float
    final_xp: int


@dataclass
class LevelProgress:
    """Level derived from cumulative XP."""

    level: int
    current_xp: int
    xp_for_next: int  # 0 at max level
    progress: float  # 0-1, 0 at max level


@dataclass
class DecayedMuscleLevel:
    """Read-time view of a muscle level after inactivity decay."""

    original_level: int
    original_progress: float
    effective_level: int
    effective_progress: float
    decay_status: DecayStatus
    levels_lost: int
    days_since_training: int | None


@dataclass
class EstimatedXpGain:
    """Client-side XP prediction for one muscle."""

    muscle_group: str
    start_level: int
    start_progress: float
    xp_gained: int
    end_level: int
    end_progress: float

    @property
    def leveled_up(self) -> bool:
        return self.end_level > self.start_level


# =============================================================================
# CHARM DROPS
# =============================================================================

@dataclass
class PityInfo:
    sets_since_last_charm: int  # persisted counter + this exercise's sets
    pity_bonus: float
    was_guaranteed: bool


@dataclass
class GatingInfo:
    gating_level: int
    max_allowed_rarity: Rarity
    rolled_rarity: Rarity
    final_rarity: Rarity

    @property
    def was_downgraded(self) -> bool:
        return self.final_rarity is not self.rolled_rarity


@dataclass
class DropDebug:
    """Everything that went into a drop decision, for tuning."""

    sets_logged: int
    adherence_percent: int
    pr_hit: bool
    base_drop_chance: float
    final_drop_chance: float
    drop_roll: float
    rarity_roll: float | None
    pity: PityInfo
    gating: GatingInfo | None = None


@dataclass
class CharmDropResult:
    """Outcome of evaluating one completed exercise for a charm drop."""

    eligible: bool
    quality_tier: QualityTier
    did_drop: bool
    rarity: Rarity | None
    sets_to_add_to_pity: int
    pity_after: int
    debug: DropDebug
    charm_id: str | None = None


# =============================================================================
# CHARM / RUNE EFFECTS
# =============================================================================

@dataclass(frozen=True)
class Effect:
    """Raw output of one item effect function."""

    percent_bonus: float = 0.0
    flat_bonus: int = 0

    @property
    def triggered(self) -> bool:
        return self.percent_bonus > 0 or self.flat_bonus > 0


@dataclass
class ItemBonus:
    """One equipped item's contribution, recorded even when it did not trigger."""

    item_id: str
    item_name: str
    reason: str
    percent_bonus: float
    flat_bonus: int
    triggered: bool


@dataclass
class BonusSummary:
    """
    Stacked bonuses for one scope (an exercise for charms, a workout for runes).

    final_bonus_points = floor(base_points * total_percent_bonus) + total_flat_bonus
    """

    bonuses: list[ItemBonus] = field(default_factory=list)
    total_percent_bonus: float = 0.0
    total_flat_bonus: int = 0
    final_bonus_points: int = 0


@dataclass
class ExerciseCharmContext:
    """Aggregates of one completed exercise, as seen by charm effects."""

    sets: list[ScoredSet]
    workout_goal: GoalBucket
    muscle_group_count: int
    has_pr: bool
    base_points: int
    is_compound: bool = False
    current_streak: int = 0
    rolling_avg_e1rm: float = 0.0


@dataclass
class WorkoutRuneContext:
    """Workout-wide aggregates, as seen by rune effects."""

    exercise_count: int
    total_sets: int
    pr_count: int
    muscle_group_count: int
    workouts_this_week: int  # including the current one
    base_points: int  # set points + charm points


# =============================================================================
# WORKOUT PIPELINE I/O
# =============================================================================

@dataclass
class SetLog:
    """A raw set inside a workout log."""

    reps: int
    weight_kg: float | None = None


@dataclass
class ExerciseLog:
    """
    A raw exercise inside a workout log.

    muscles is the ordered mapping from the exercise→muscle lookup table;
    when empty, primary_muscle is used alone.
    """

    exercise_id: str
    primary_muscle: str
    sets: list[SetLog] = field(default_factory=list)
    exercise_type: ExerciseType = "weighted"
    muscles: list[MuscleTag] = field(default_factory=list)
    is_compound: bool | None = None


@dataclass
class WorkoutLog:
    """A completed workout, as the app hands it over."""

    completed_at: datetime
    exercises: list[ExerciseLog] = field(default_factory=list)
    goal: GoalBucket | None = None
    duration_minutes: int = 0
    rune_override: list[str] | None = None  # per-workout rune selection


@dataclass
class UserSnapshot:
    """
    Everything the pipeline needs to know about one user, already
    serialized by the caller.
    """

    user_id: str
    bodyweight_kg: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    last_workout_at: datetime | None = None
    workouts_this_week: int = 0  # completed in the week of last_workout_at
    pity_counter: int = 0
    baselines: dict[str, ExerciseBaseline] = field(default_factory=dict)
    muscle_levels: dict[str, MuscleLevelState] = field(default_factory=dict)
    rolling_set_counts: dict[str, int] = field(default_factory=dict)
    equipped_charm_ids: list[str] = field(default_factory=list)
    equipped_rune_ids: list[str] = field(default_factory=list)
    owned_charm_ids: list[str] = field(default_factory=list)


@dataclass
class LevelChange:
    muscle_group: str
    xp_awarded: int
    old_level: int
    new_level: int

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


@dataclass
class ExerciseReward:
    """Output of the exercise-completion stage."""

    exercise_id: str
    scored_sets: list[ScoredSet]
    set_results: list[PointsResult]
    muscle_tags: list[MuscleTag]
    xp_awards: list[MuscleXpAward]
    level_changes: list[LevelChange]
    drop: CharmDropResult
    workout_goal: GoalBucket = "Hypertrophy"  # bucket used for adherence and charms
    is_compound: bool = False
    rolling_avg_e1rm: float = 0.0  # baseline average before this workout

    @property
    def base_points(self) -> int:
        return sum(s.points_earned for s in self.scored_sets)

    @property
    def pr_count(self) -> int:
        return sum(1 for s in self.scored_sets if s.is_pr)


@dataclass
class WorkoutReward:
    """Output of the workout-completion stage."""

    base_points: int
    charm_bonuses: list[BonusSummary]  # parallel to the workout's exercises
    total_charm_points: int
    rune_bonus: BonusSummary
    completion_bonus: int
    total_points: int


@dataclass
class WorkoutOutcome:
    """Full pipeline result plus the snapshot the caller should persist."""

    exercises: list[ExerciseReward]
    reward: WorkoutReward
    snapshot: UserSnapshot
