"""
Exercise baseline maintenance.

The points engine only reads baselines.  These helpers produce the updated
baseline the caller stores after a workout: a rolling window of recent
sessions' best e1RM, the overall best, and the best per goal bucket.
"""

from dataclasses import replace
from datetime import datetime

from .config import DEFAULT_CONFIG, PointsConfig
from .formulas import calculate_one_rep_max, is_in_goal_rep_range
from .models import BaselineSession, ExerciseBaseline, GoalBucket


def new_baseline(exercise_id: str) -> ExerciseBaseline:
    """An empty, immature baseline."""
    return ExerciseBaseline(exercise_id=exercise_id)


def update_rolling_average(
    history: list[BaselineSession],
    entry: BaselineSession,
    window_size: int,
) -> tuple[list[BaselineSession], float]:
    """
    Append a session and keep only the last `window_size` entries.

    Args:
        history: Existing window, oldest first
        entry: New session entry
        window_size: Number of sessions kept

    Returns:
        (new_history, mean e1RM over the new window)
    """
    new_history = (list(history) + [entry])[-window_size:]
    average = sum(s.e1rm for s in new_history) / len(new_history)
    return new_history, average


def record_goal_bucket_pr(
    baseline: ExerciseBaseline,
    weight: float | None,
    reps: int,
    goal: GoalBucket,
) -> ExerciseBaseline:
    """
    Raise the goal-bucket best if this set beats it inside the bucket's range.

    Returns the same object when nothing changes.
    """
    if not is_in_goal_rep_range(reps, goal):
        return baseline
    e1rm = calculate_one_rep_max(weight or 0.0, reps)
    if e1rm <= baseline.best_for(goal):
        return baseline
    by_goal = dict(baseline.best_e1rm_by_goal)
    by_goal[goal] = e1rm
    return replace(baseline, best_e1rm_by_goal=by_goal)


def update_baseline(
    baseline: ExerciseBaseline,
    weight: float | None,
    reps: int,
    when: datetime,
    goal: GoalBucket | None = None,
    config: PointsConfig = DEFAULT_CONFIG.points,
) -> ExerciseBaseline:
    """
    Fold one workout's best set into an exercise baseline.

    Args:
        baseline: Baseline before the workout
        weight: Best set's weight
        reps: Best set's reps
        when: Workout completion time
        goal: Workout goal; its bucket best is raised when applicable
        config: Points tuning (window size, maturity threshold)

    Returns:
        New ExerciseBaseline
    """
    e1rm = calculate_one_rep_max(weight or 0.0, reps)
    history, average = update_rolling_average(
        baseline.session_history,
        BaselineSession(e1rm=e1rm, date=when.isoformat(), weight_kg=weight or 0.0, reps=reps),
        config.baseline_window_size,
    )
    workout_count = baseline.workout_count + 1

    updated = replace(
        baseline,
        workout_count=workout_count,
        is_baselined=workout_count >= config.baseline_workouts_required,
        rolling_avg_e1rm=average,
        session_history=history,
        best_e1rm=max(baseline.best_e1rm, e1rm),
    )
    if goal is not None:
        updated = record_goal_bucket_pr(updated, weight, reps, goal)
    return updated
