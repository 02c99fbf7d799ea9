"""
JSON serialization for reward data models.

Handles conversion between dataclasses and JSON-compatible dicts.  This is
the input boundary: range and enum checks happen here, so the core engines
can stay permissive.
"""

import json
import re
from datetime import datetime
from typing import Any

from ..core.models import (
    EXERCISE_TYPES,
    GOAL_BUCKETS,
    BaselineSession,
    BonusSummary,
    ExerciseBaseline,
    ExerciseLog,
    ExerciseReward,
    ExerciseType,
    GoalBucket,
    MuscleLevelState,
    MuscleTag,
    PointsResult,
    SetLog,
    UserSnapshot,
    WorkoutLog,
    WorkoutOutcome,
)


class ValidationError(Exception):
    """Raised when data validation fails."""

    pass


def validate_datetime(value: str, name: str = "date") -> datetime:
    """
    Parse an ISO date or datetime string.

    Args:
        value: "YYYY-MM-DD" or a full ISO timestamp
        name: Field name for the error message

    Returns:
        datetime (midnight for a bare date)

    Raises:
        ValidationError: If the string is not ISO formatted
    """
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be an ISO date string, got {value!r}")
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {name}: {value}. Expected YYYY-MM-DD or ISO timestamp") from e


def validate_goal(goal: str) -> GoalBucket:
    """
    Validate goal bucket.

    Raises:
        ValidationError: If goal is not Strength, Hypertrophy or Endurance
    """
    if goal not in GOAL_BUCKETS:
        raise ValidationError(f"Invalid goal: {goal}. Must be one of {GOAL_BUCKETS}")
    return goal  # type: ignore


def validate_exercise_type(exercise_type: str) -> ExerciseType:
    if exercise_type not in EXERCISE_TYPES:
        raise ValidationError(
            f"Invalid exercise_type: {exercise_type}. Must be one of {EXERCISE_TYPES}"
        )
    return exercise_type  # type: ignore


def validate_non_negative(value: int | float, name: str) -> int | float:
    """
    Validate that a value is non-negative.

    Args:
        value: Value to validate
        name: Name for error message

    Returns:
        The value if valid

    Raises:
        ValidationError: If value is negative or not a number
    """
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
    return value


def _require(data: dict[str, Any], key: str, what: str) -> Any:
    if key not in data:
        raise ValidationError(f"{what} is missing required field '{key}'")
    return data[key]


def _opt_datetime(value: str | None, name: str) -> datetime | None:
    return validate_datetime(value, name) if value is not None else None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# =============================================================================
# WORKOUT INPUT
# =============================================================================

def dict_to_set_log(data: dict[str, Any]) -> SetLog:
    """
    Convert dict to SetLog.

    Raises:
        ValidationError: On missing reps or negative values
    """
    reps = validate_non_negative(_require(data, "reps", "Set"), "reps")
    weight = data.get("weight_kg")
    if weight is not None:
        validate_non_negative(weight, "weight_kg")
    return SetLog(reps=int(reps), weight_kg=float(weight) if weight is not None else None)


def dict_to_exercise_log(data: dict[str, Any]) -> ExerciseLog:
    """
    Convert dict to ExerciseLog.

    ``muscles`` may list plain names (primary first) or
    ``{"muscle_group": ..., "order": ...}`` records.
    """
    exercise_id = str(_require(data, "exercise_id", "Exercise"))
    primary = str(_require(data, "primary_muscle", f"Exercise '{exercise_id}'"))

    muscles: list[MuscleTag] = []
    for i, m in enumerate(data.get("muscles", []), start=1):
        if isinstance(m, str):
            muscles.append(MuscleTag(muscle_group=m, order=i))
        elif isinstance(m, dict):
            muscles.append(MuscleTag(
                muscle_group=str(_require(m, "muscle_group", "Muscle tag")),
                order=int(m.get("order", i)),
            ))
        else:
            raise ValidationError(f"Invalid muscle tag: {m!r}")

    is_compound = data.get("is_compound")
    return ExerciseLog(
        exercise_id=exercise_id,
        primary_muscle=primary,
        sets=[dict_to_set_log(s) for s in data.get("sets", [])],
        exercise_type=validate_exercise_type(data.get("exercise_type", "weighted")),
        muscles=muscles,
        is_compound=bool(is_compound) if is_compound is not None else None,
    )


def dict_to_workout_log(data: dict[str, Any]) -> WorkoutLog:
    """
    Convert dict to WorkoutLog.

    Raises:
        ValidationError: If data is invalid
    """
    goal = data.get("goal")
    rune_override = data.get("rune_override")
    duration = validate_non_negative(data.get("duration_minutes", 0), "duration_minutes")
    return WorkoutLog(
        completed_at=validate_datetime(_require(data, "completed_at", "Workout"), "completed_at"),
        exercises=[dict_to_exercise_log(e) for e in data.get("exercises", [])],
        goal=validate_goal(goal) if goal is not None else None,
        duration_minutes=int(duration),
        rune_override=[str(r) for r in rune_override] if rune_override is not None else None,
    )


def json_to_workout_log(text: str) -> WorkoutLog:
    """
    Parse a workout JSON document.

    Raises:
        ValidationError: If JSON is invalid or data validation fails
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError("Workout JSON must be an object")
    return dict_to_workout_log(data)


def parse_sets_string(sets_str: str) -> list[SetLog]:
    """
    Parse a compact sets string.

    Comma-separated groups, each one of:
        reps@kg      e.g. "8@100"
        NxM@kg       e.g. "3x8@100"  (N sets of M reps)
        reps         e.g. "12"       (no load, bodyweight work)
        NxM          e.g. "3x12"     (N sets of M reps, no load)

    Args:
        sets_str: Sets string to parse

    Returns:
        List of SetLog

    Raises:
        ValidationError: If format is invalid
    """
    if not sets_str or not sets_str.strip():
        raise ValidationError("Sets string cannot be empty")

    sets: list[SetLog] = []
    for part in (p.strip() for p in sets_str.split(",")):
        if not part:
            continue
        m = re.fullmatch(r"(\d+)(?:\s*[xX×]\s*(\d+))?(?:\s*@\s*(\d+(?:\.\d+)?)\s*(?:kg)?)?", part)
        if not m:
            raise ValidationError(
                f"Invalid set format: '{part}'.\n"
                f"Use: reps@kg (e.g. 8@100), NxM@kg (e.g. 3x8@100), or bare reps (e.g. 12)."
            )
        if m.group(2):
            count, reps = int(m.group(1)), int(m.group(2))
        else:
            count, reps = 1, int(m.group(1))
        weight = float(m.group(3)) if m.group(3) else None
        if count < 1:
            raise ValidationError(f"Set count must be at least 1: '{part}'")
        sets.extend(SetLog(reps=reps, weight_kg=weight) for _ in range(count))

    if not sets:
        raise ValidationError("No valid sets found in sets string")
    return sets


# =============================================================================
# USER SNAPSHOT
# =============================================================================

def baseline_to_dict(baseline: ExerciseBaseline) -> dict[str, Any]:
    return {
        "exercise_id": baseline.exercise_id,
        "workout_count": baseline.workout_count,
        "is_baselined": baseline.is_baselined,
        "rolling_avg_e1rm": baseline.rolling_avg_e1rm,
        "session_history": [
            {"e1rm": s.e1rm, "date": s.date, "weight_kg": s.weight_kg, "reps": s.reps}
            for s in baseline.session_history
        ],
        "best_e1rm": baseline.best_e1rm,
        "best_e1rm_by_goal": dict(baseline.best_e1rm_by_goal),
    }


def dict_to_baseline(data: dict[str, Any]) -> ExerciseBaseline:
    """
    Convert dict to ExerciseBaseline.

    Raises:
        ValidationError: If data is invalid
    """
    by_goal = {}
    for goal, value in (data.get("best_e1rm_by_goal") or {}).items():
        by_goal[validate_goal(goal)] = float(validate_non_negative(value, f"best_e1rm_by_goal.{goal}"))

    return ExerciseBaseline(
        exercise_id=str(_require(data, "exercise_id", "Baseline")),
        workout_count=int(validate_non_negative(data.get("workout_count", 0), "workout_count")),
        is_baselined=bool(data.get("is_baselined", False)),
        rolling_avg_e1rm=float(validate_non_negative(data.get("rolling_avg_e1rm", 0.0), "rolling_avg_e1rm")),
        session_history=[
            BaselineSession(
                e1rm=float(s["e1rm"]),
                date=str(s["date"]),
                weight_kg=float(s.get("weight_kg", 0.0)),
                reps=int(s.get("reps", 0)),
            )
            for s in data.get("session_history", [])
        ],
        best_e1rm=float(data.get("best_e1rm", 0.0)),
        best_e1rm_by_goal=by_goal,
    )


def muscle_level_to_dict(state: MuscleLevelState) -> dict[str, Any]:
    return {
        "muscle_group": state.muscle_group,
        "level": state.level,
        "current_xp": state.current_xp,
        "total_xp_earned": state.total_xp_earned,
        "last_trained_at": _iso(state.last_trained_at),
    }


def dict_to_muscle_level(data: dict[str, Any]) -> MuscleLevelState:
    """
    Convert dict to MuscleLevelState.

    Raises:
        ValidationError: If data is invalid
    """
    return MuscleLevelState(
        muscle_group=str(_require(data, "muscle_group", "Muscle level")).lower(),
        level=int(validate_non_negative(data.get("level", 0), "level")),
        current_xp=int(validate_non_negative(data.get("current_xp", 0), "current_xp")),
        total_xp_earned=int(validate_non_negative(data.get("total_xp_earned", 0), "total_xp_earned")),
        last_trained_at=_opt_datetime(data.get("last_trained_at"), "last_trained_at"),
    )


def snapshot_to_dict(snapshot: UserSnapshot) -> dict[str, Any]:
    """
    Convert UserSnapshot to JSON-compatible dict.

    Args:
        snapshot: UserSnapshot to convert

    Returns:
        Dict representation
    """
    return {
        "user_id": snapshot.user_id,
        "bodyweight_kg": snapshot.bodyweight_kg,
        "current_streak": snapshot.current_streak,
        "longest_streak": snapshot.longest_streak,
        "last_workout_at": _iso(snapshot.last_workout_at),
        "workouts_this_week": snapshot.workouts_this_week,
        "pity_counter": snapshot.pity_counter,
        "baselines": {k: baseline_to_dict(v) for k, v in snapshot.baselines.items()},
        "muscle_levels": {k: muscle_level_to_dict(v) for k, v in snapshot.muscle_levels.items()},
        "rolling_set_counts": dict(snapshot.rolling_set_counts),
        "equipped_charm_ids": list(snapshot.equipped_charm_ids),
        "equipped_rune_ids": list(snapshot.equipped_rune_ids),
        "owned_charm_ids": list(snapshot.owned_charm_ids),
    }


def dict_to_snapshot(data: dict[str, Any]) -> UserSnapshot:
    """
    Convert dict to UserSnapshot.

    Args:
        data: Dict representation

    Returns:
        UserSnapshot instance

    Raises:
        ValidationError: If data is invalid
    """
    muscle_levels = {}
    for raw in (data.get("muscle_levels") or {}).values():
        state = dict_to_muscle_level(raw)
        muscle_levels[state.muscle_group] = state

    rolling = {}
    for muscle, count in (data.get("rolling_set_counts") or {}).items():
        rolling[str(muscle).lower()] = int(validate_non_negative(count, f"rolling_set_counts.{muscle}"))

    return UserSnapshot(
        user_id=str(_require(data, "user_id", "Snapshot")),
        bodyweight_kg=float(validate_non_negative(data.get("bodyweight_kg", 0.0), "bodyweight_kg")),
        current_streak=int(validate_non_negative(data.get("current_streak", 0), "current_streak")),
        longest_streak=int(validate_non_negative(data.get("longest_streak", 0), "longest_streak")),
        last_workout_at=_opt_datetime(data.get("last_workout_at"), "last_workout_at"),
        workouts_this_week=int(validate_non_negative(data.get("workouts_this_week", 0), "workouts_this_week")),
        pity_counter=int(validate_non_negative(data.get("pity_counter", 0), "pity_counter")),
        baselines={k: dict_to_baseline(v) for k, v in (data.get("baselines") or {}).items()},
        muscle_levels=muscle_levels,
        rolling_set_counts=rolling,
        equipped_charm_ids=[str(c) for c in data.get("equipped_charm_ids", [])],
        equipped_rune_ids=[str(r) for r in data.get("equipped_rune_ids", [])],
        owned_charm_ids=[str(c) for c in data.get("owned_charm_ids", [])],
    )


# =============================================================================
# RESULTS (output only)
# =============================================================================

def points_result_to_dict(result: PointsResult) -> dict[str, Any]:
    return {
        "base_points": result.base_points,
        "additive_multiplier": result.additive_multiplier,
        "volume_multiplier": result.volume_multiplier,
        "final_points": result.final_points,
        "is_pr": result.is_pr,
        "e1rm": round(result.e1rm, 2),
        "bonuses": [
            {"kind": b.kind.value, "multiplier": b.multiplier, "description": b.description}
            for b in result.bonuses
        ],
    }


def bonus_summary_to_dict(summary: BonusSummary) -> dict[str, Any]:
    return {
        "bonuses": [
            {
                "item_id": b.item_id,
                "item_name": b.item_name,
                "reason": b.reason,
                "percent_bonus": b.percent_bonus,
                "flat_bonus": b.flat_bonus,
                "triggered": b.triggered,
            }
            for b in summary.bonuses
        ],
        "total_percent_bonus": summary.total_percent_bonus,
        "total_flat_bonus": summary.total_flat_bonus,
        "final_bonus_points": summary.final_bonus_points,
    }


def exercise_reward_to_dict(reward: ExerciseReward) -> dict[str, Any]:
    drop = reward.drop
    return {
        "exercise_id": reward.exercise_id,
        "base_points": reward.base_points,
        "pr_count": reward.pr_count,
        "sets": [points_result_to_dict(r) for r in reward.set_results],
        "muscles": [t.muscle_group for t in reward.muscle_tags],
        "level_changes": [
            {
                "muscle_group": c.muscle_group,
                "xp_awarded": c.xp_awarded,
                "old_level": c.old_level,
                "new_level": c.new_level,
            }
            for c in reward.level_changes
        ],
        "drop": {
            "eligible": drop.eligible,
            "quality_tier": drop.quality_tier,
            "did_drop": drop.did_drop,
            "rarity": drop.rarity.value if drop.rarity else None,
            "charm_id": drop.charm_id,
            "pity_after": drop.pity_after,
            "final_drop_chance": drop.debug.final_drop_chance,
            "adherence_percent": drop.debug.adherence_percent,
        },
    }


def outcome_to_dict(outcome: WorkoutOutcome) -> dict[str, Any]:
    """
    Convert a WorkoutOutcome to a JSON-compatible dict (machine output).
    """
    reward = outcome.reward
    return {
        "exercises": [exercise_reward_to_dict(e) for e in outcome.exercises],
        "reward": {
            "base_points": reward.base_points,
            "charm_bonuses": [bonus_summary_to_dict(s) for s in reward.charm_bonuses],
            "total_charm_points": reward.total_charm_points,
            "rune_bonus": bonus_summary_to_dict(reward.rune_bonus),
            "completion_bonus": reward.completion_bonus,
            "total_points": reward.total_points,
        },
        "snapshot": snapshot_to_dict(outcome.snapshot),
    }
