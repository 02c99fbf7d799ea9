"""
Reward pipeline: the named stages that turn a logged workout into points,
XP, levels, and loot.

Stages, in causal order:

1. score_set          per set: base points, bonuses, PR flag
2. complete_exercise  per exercise: muscle XP, level changes, charm drop,
                      baseline update
3. complete_workout   per workout: charm bonuses per exercise, then runes
                      against (set points + charm points), then the
                      completion bonus

process_workout chains them on a private copy of the user snapshot and
returns the updated snapshot for the caller to persist.
"""

import copy
import logging
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Mapping, Sequence

from .baseline import new_baseline, record_goal_bucket_pr, update_baseline
from .charm_drop import RandomSource, evaluate_charm_drop, pick_dropped_charm
from .config import DEFAULT_CONFIG, RewardConfig
from .effects import calculate_charm_bonuses, calculate_rune_bonuses
from .formulas import calculate_one_rep_max, classify_goal_bucket, get_week_start
from .items.base import CharmDefinition, RuneDefinition
from .models import (
    ExerciseBaseline,
    ExerciseCharmContext,
    ExerciseLog,
    ExerciseReward,
    GoalBucket,
    LevelChange,
    MuscleLevelState,
    MuscleXpAward,
    PointsResult,
    ScoredSet,
    SetInput,
    UserSnapshot,
    WorkoutLog,
    WorkoutOutcome,
    WorkoutReward,
    WorkoutRuneContext,
)
from .muscle_xp import apply_muscle_xp, calculate_set_muscle_xp, create_muscle_tags
from .points import calculate_new_streak, calculate_set_points, calculate_workout_completion_bonus

logger = logging.getLogger(__name__)

# running baseline for the workout, best set so far (None = bodyweight only)
PendingBaseline = tuple[ExerciseBaseline, ScoredSet | None]


def dominant_goal_bucket(reps_per_set: Sequence[int]) -> GoalBucket:
    """
    Goal bucket most sets fall into; ties go to the earliest set.

    Used for adherence when a workout has no declared goal.
    """
    if not reps_per_set:
        return "Hypertrophy"
    buckets = [classify_goal_bucket(r) for r in reps_per_set]
    counts = Counter(buckets)
    top = max(counts.values())
    return next(b for b in buckets if counts[b] == top)


def _best_set(scored: Sequence[ScoredSet]) -> ScoredSet | None:
    """Set with the highest positive e1RM, or None (bodyweight-only work)."""
    best: ScoredSet | None = None
    best_e1rm = 0.0
    for s in scored:
        e1rm = calculate_one_rep_max(s.weight_kg or 0.0, s.reps)
        if e1rm > best_e1rm:
            best, best_e1rm = s, e1rm
    return best


def count_workouts_this_week(snapshot: UserSnapshot, now: datetime) -> int:
    """Workouts in the calendar week of `now`, including the current one."""
    if snapshot.last_workout_at is None:
        return 1
    if get_week_start(snapshot.last_workout_at) != get_week_start(now):
        return 1
    return snapshot.workouts_this_week + 1


class RewardPipeline:
    """
    Runs the reward stages with one config, one random source, and one
    item catalog.

    Args:
        config: Versioned tuning (DEFAULT_CONFIG if None)
        rng: Random source for drop, rarity, and charm picks
             (a new random.Random() if None)
        charms: Charm catalog (the bundled registry if None)
        runes: Rune catalog (the bundled registry if None)
    """

    def __init__(
        self,
        config: RewardConfig | None = None,
        rng: RandomSource | None = None,
        charms: Mapping[str, CharmDefinition] | None = None,
        runes: Mapping[str, RuneDefinition] | None = None,
    ) -> None:
        if charms is None or runes is None:
            from .items.registry import CHARM_REGISTRY, RUNE_REGISTRY

            charms = CHARM_REGISTRY if charms is None else charms
            runes = RUNE_REGISTRY if runes is None else runes
        if rng is None:
            import random

            rng = random.Random()

        self.config = config if config is not None else DEFAULT_CONFIG
        self.rng = rng
        self.charms = charms
        self.runes = runes

    # -------------------------------------------------------------------------
    # Stage 1
    # -------------------------------------------------------------------------

    def score_set(
        self,
        set_input: SetInput,
        baseline: ExerciseBaseline | None = None,
        current_streak: int = 0,
        goal: GoalBucket | None = None,
    ) -> PointsResult:
        """Score one set with this pipeline's points config."""
        return calculate_set_points(set_input, baseline, current_streak, goal, self.config.points)

    # -------------------------------------------------------------------------
    # Stage 2
    # -------------------------------------------------------------------------

    def complete_exercise(
        self,
        exercise: ExerciseLog,
        working: UserSnapshot,
        goal: GoalBucket | None,
        when: datetime,
        workout_muscle_counts: dict[str, int],
        pending_baselines: dict[str, PendingBaseline] | None = None,
    ) -> ExerciseReward:
        """
        Score an exercise's sets and settle its XP, drop, and baseline.

        `working` is updated in place (baselines, muscle levels, rolling
        counts, pity counter, owned charms); pass a copy if the original
        must survive.  `workout_muscle_counts` carries the per-muscle set
        count of the workout so far and is advanced here.

        With `pending_baselines`, the baseline update is deferred: the
        running baseline and best set are recorded per exercise id so an
        exercise logged twice in one workout counts as one session.  The
        caller folds them in with `fold_baselines`.

        Args:
            exercise: The completed exercise
            working: Working user snapshot
            goal: Workout goal (None = inferred per set)
            when: Completion time
            workout_muscle_counts: muscle → sets already logged this workout
            pending_baselines: exercise id → (running baseline, best set)

        Returns:
            ExerciseReward
        """
        tags = create_muscle_tags(exercise.muscles, exercise.primary_muscle)
        muscles = [t.muscle_group for t in tags]
        primary = muscles[0]

        stored = working.baselines.get(exercise.exercise_id)
        pending = pending_baselines.get(exercise.exercise_id) if pending_baselines is not None else None
        if pending is not None:
            running, carried_best = pending
        else:
            running = stored if stored is not None else new_baseline(exercise.exercise_id)
            carried_best = None
        levels_before = {m: s.level for m, s in working.muscle_levels.items()}

        scored: list[ScoredSet] = []
        results: list[PointsResult] = []
        awards: list[MuscleXpAward] = []
        xp_by_muscle: dict[str, int] = {m: 0 for m in muscles}

        for number, set_log in enumerate(exercise.sets, start=1):
            before = workout_muscle_counts.get(primary, 0)
            set_input = SetInput(
                exercise_id=exercise.exercise_id,
                reps=set_log.reps,
                weight_kg=set_log.weight_kg,
                exercise_type=exercise.exercise_type,
                bodyweight_kg=working.bodyweight_kg,
                set_number=number,
                muscle_sets_before=before,
            )
            result = self.score_set(set_input, running, working.current_streak, goal)
            results.append(result)
            scored.append(
                ScoredSet(
                    exercise_id=exercise.exercise_id,
                    weight_kg=set_log.weight_kg,
                    reps=set_log.reps,
                    set_number=number,
                    muscle_sets_before=before,
                    is_pr=result.is_pr,
                    points_earned=result.final_points,
                )
            )
            if result.is_pr:
                bucket = goal if goal is not None else classify_goal_bucket(set_log.reps)
                running = record_goal_bucket_pr(running, set_log.weight_kg, set_log.reps, bucket)

            for m in muscles:
                working.rolling_set_counts[m] = working.rolling_set_counts.get(m, 0) + 1
                workout_muscle_counts[m] = workout_muscle_counts.get(m, 0) + 1
            for award in calculate_set_muscle_xp(tags, working.rolling_set_counts, result.is_pr, self.config.muscle_xp):
                awards.append(award)
                xp_by_muscle[award.muscle_group] += award.final_xp

        level_changes = self._apply_xp(working, xp_by_muscle, when) if scored else []

        drop_goal = goal if goal is not None else dominant_goal_bucket([s.reps for s in scored])
        drop = evaluate_charm_drop(
            scored,
            drop_goal,
            muscles,
            levels_before,
            working.pity_counter,
            self.rng,
            self.config.charm_drop,
        )
        working.pity_counter = drop.pity_after
        if drop.did_drop and drop.rarity is not None:
            gating_level = drop.debug.gating.gating_level if drop.debug.gating else 0
            charm = pick_dropped_charm(drop.rarity, gating_level, self.rng, self.charms)
            if charm is not None:
                drop.charm_id = charm.id
                if charm.id not in working.owned_charm_ids:
                    working.owned_charm_ids.append(charm.id)

        best = _best_set(scored if carried_best is None else [carried_best, *scored])
        if pending_baselines is not None:
            pending_baselines[exercise.exercise_id] = (running, best)
        elif best is not None:
            working.baselines[exercise.exercise_id] = update_baseline(
                running, best.weight_kg, best.reps, when, None, self.config.points
            )

        logger.debug(
            "Exercise %s: %d sets, %d points, %d PR(s), drop=%s",
            exercise.exercise_id, len(scored), sum(s.points_earned for s in scored),
            sum(1 for s in scored if s.is_pr), drop.rarity.value if drop.rarity else None,
        )

        return ExerciseReward(
            exercise_id=exercise.exercise_id,
            scored_sets=scored,
            set_results=results,
            muscle_tags=tags,
            xp_awards=awards,
            level_changes=level_changes,
            drop=drop,
            workout_goal=drop_goal,
            is_compound=exercise.is_compound if exercise.is_compound is not None else len(tags) >= 2,
            rolling_avg_e1rm=stored.rolling_avg_e1rm if stored is not None else 0.0,
        )

    def _apply_xp(self, working: UserSnapshot, xp_by_muscle: dict[str, int], when: datetime) -> list[LevelChange]:
        changes: list[LevelChange] = []
        for muscle, xp in xp_by_muscle.items():
            state = working.muscle_levels.get(muscle, MuscleLevelState(muscle_group=muscle))
            new_state, change = apply_muscle_xp(state, xp, when, self.config.muscle_xp)
            working.muscle_levels[muscle] = new_state
            changes.append(change)
            if change.leveled_up:
                logger.debug("%s leveled up: %d -> %d", muscle, change.old_level, change.new_level)
        return changes

    def fold_baselines(
        self,
        working: UserSnapshot,
        pending_baselines: Mapping[str, PendingBaseline],
        when: datetime,
    ) -> None:
        """Apply each exercise's best set of the workout to its baseline, once."""
        for exercise_id, (running, best) in pending_baselines.items():
            if best is not None:
                working.baselines[exercise_id] = update_baseline(
                    running, best.weight_kg, best.reps, when, None, self.config.points
                )

    # -------------------------------------------------------------------------
    # Stage 3
    # -------------------------------------------------------------------------

    def complete_workout(
        self,
        exercises: Sequence[ExerciseReward],
        equipped_charm_ids: Sequence[str],
        rune_ids: Sequence[str],
        workouts_this_week: int,
        current_streak: int = 0,
        duration_minutes: int = 0,
    ) -> WorkoutReward:
        """
        Stack equipment bonuses and total the workout.

        total = set points + charm points + rune points + completion bonus,
        where rune percents apply to (set points + charm points).

        Args:
            exercises: Completed exercise rewards
            equipped_charm_ids: Charms equipped for every exercise
            rune_ids: Runes active for this workout
            workouts_this_week: Including this workout
            current_streak: Streak the sets were scored with
            duration_minutes: Workout length

        Returns:
            WorkoutReward
        """
        base_points = sum(ex.base_points for ex in exercises)

        charm_bonuses = []
        for ex in exercises:
            ctx = ExerciseCharmContext(
                sets=ex.scored_sets,
                workout_goal=ex.workout_goal,
                muscle_group_count=len(ex.muscle_tags),
                has_pr=ex.pr_count > 0,
                base_points=ex.base_points,
                is_compound=ex.is_compound,
                current_streak=current_streak,
                rolling_avg_e1rm=ex.rolling_avg_e1rm,
            )
            charm_bonuses.append(calculate_charm_bonuses(ctx, equipped_charm_ids, self.charms))
        total_charm_points = sum(s.final_bonus_points for s in charm_bonuses)

        muscles = {t.muscle_group for ex in exercises for t in ex.muscle_tags}
        total_sets = sum(len(ex.scored_sets) for ex in exercises)
        rune_ctx = WorkoutRuneContext(
            exercise_count=len(exercises),
            total_sets=total_sets,
            pr_count=sum(ex.pr_count for ex in exercises),
            muscle_group_count=len(muscles),
            workouts_this_week=workouts_this_week,
            base_points=base_points + total_charm_points,
        )
        rune_bonus = calculate_rune_bonuses(rune_ctx, rune_ids, self.runes)
        completion = calculate_workout_completion_bonus(total_sets, duration_minutes, self.config.points)

        total = base_points + total_charm_points + rune_bonus.final_bonus_points + completion
        logger.debug(
            "Workout: base=%d charms=%d runes=%d completion=%d total=%d",
            base_points, total_charm_points, rune_bonus.final_bonus_points, completion, total,
        )
        return WorkoutReward(
            base_points=base_points,
            charm_bonuses=charm_bonuses,
            total_charm_points=total_charm_points,
            rune_bonus=rune_bonus,
            completion_bonus=completion,
            total_points=total,
        )

    # -------------------------------------------------------------------------
    # Whole workout
    # -------------------------------------------------------------------------

    def process_workout(
        self,
        workout: WorkoutLog,
        snapshot: UserSnapshot,
        now: datetime | None = None,
    ) -> WorkoutOutcome:
        """
        Run every stage for one workout.

        The given snapshot is not modified.  Sets are scored with the streak
        as stored; the returned snapshot carries the streak after this
        workout.

        Args:
            workout: The completed workout
            snapshot: User state before the workout
            now: Completion time (workout.completed_at if None)

        Returns:
            WorkoutOutcome with the updated snapshot
        """
        now = now if now is not None else workout.completed_at
        working = copy.deepcopy(snapshot)
        muscle_counts: dict[str, int] = {}
        pending: dict[str, PendingBaseline] = {}

        exercises = [
            self.complete_exercise(ex, working, workout.goal, now, muscle_counts, pending)
            for ex in workout.exercises
        ]
        self.fold_baselines(working, pending, now)

        weekly = count_workouts_this_week(snapshot, now)
        rune_ids = workout.rune_override if workout.rune_override is not None else snapshot.equipped_rune_ids
        reward = self.complete_workout(
            exercises,
            snapshot.equipped_charm_ids,
            rune_ids,
            weekly,
            snapshot.current_streak,
            workout.duration_minutes,
        )

        streak = calculate_new_streak(snapshot.current_streak, snapshot.last_workout_at, now)
        working = replace(
            working,
            current_streak=streak,
            longest_streak=max(snapshot.longest_streak, streak),
            last_workout_at=now,
            workouts_this_week=weekly,
        )
        return WorkoutOutcome(exercises=exercises, reward=reward, snapshot=working)
