"""Scoring commands: score-set, log-workout."""

import json
import random
from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import typer

from ...core.models import ExerciseLog, MuscleTag, SetInput, WorkoutLog
from ...core.pipeline import RewardPipeline
from ...io.serializers import (
    ValidationError,
    json_to_workout_log,
    outcome_to_dict,
    parse_sets_string,
    points_result_to_dict,
    validate_datetime,
    validate_goal,
)
from .. import views
from ..app import ConfigOption, StateOption, app, get_config, get_store

GoalOption = Annotated[
    Optional[str],
    typer.Option("--goal", "-g", help="Workout goal: Strength, Hypertrophy or Endurance"),
]


@app.command("score-set")
def score_set(
    reps: Annotated[int, typer.Option("--reps", "-r", help="Reps performed")],
    weight_kg: Annotated[
        Optional[float],
        typer.Option("--weight", "-w", help="Load in kg (omit for bodyweight work)"),
    ] = None,
    bodyweight_kg: Annotated[
        Optional[float],
        typer.Option("--bodyweight", "-b", help="Score as a bodyweight set at this bodyweight"),
    ] = None,
    exercise_id: Annotated[
        str,
        typer.Option("--exercise", "-e", help="Exercise id (for baseline lookup)"),
    ] = "exercise",
    streak: Annotated[
        int,
        typer.Option("--streak", help="Current workout streak"),
    ] = 0,
    muscle_sets_before: Annotated[
        int,
        typer.Option("--muscle-sets-before", help="Sets already done for this muscle today"),
    ] = 0,
    goal: GoalOption = None,
    from_state: Annotated[
        bool,
        typer.Option("--from-state", help="Use baseline, streak and bodyweight from the state file"),
    ] = False,
    json_out: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for machine processing"),
    ] = False,
    state_path: StateOption = None,
    config_path: ConfigOption = None,
) -> None:
    """
    Score a single set without recording it.
    """
    cfg = get_config(config_path)
    try:
        goal_bucket = validate_goal(goal) if goal is not None else None
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    baseline = None
    if from_state:
        try:
            snapshot = get_store(state_path).load()
        except (FileNotFoundError, ValidationError, json.JSONDecodeError) as e:
            views.print_error(str(e))
            raise typer.Exit(1)
        baseline = snapshot.baselines.get(exercise_id)
        streak = snapshot.current_streak
        if bodyweight_kg is None and weight_kg is None:
            bodyweight_kg = snapshot.bodyweight_kg

    set_input = SetInput(
        exercise_id=exercise_id,
        reps=reps,
        weight_kg=weight_kg,
        exercise_type="bodyweight" if bodyweight_kg is not None else "weighted",
        bodyweight_kg=bodyweight_kg or 0.0,
        muscle_sets_before=muscle_sets_before,
    )
    result = RewardPipeline(config=cfg).score_set(set_input, baseline, streak, goal_bucket)

    if json_out:
        print(json.dumps(points_result_to_dict(result), indent=2))
        return
    views.console.print(views.format_set_table([result], title=f"{exercise_id}: {reps} reps"))


def _quick_workout(
    exercise_id: str | None,
    muscles: str | None,
    sets: str | None,
    bodyweight_exercise: bool,
    goal: str | None,
    date: str | None,
    duration: int,
) -> WorkoutLog:
    if not exercise_id or not muscles or not sets:
        raise ValidationError("Give a workout JSON file, or --exercise, --muscles and --sets")
    names = [m.strip() for m in muscles.split(",") if m.strip()]
    if not names:
        raise ValidationError("--muscles needs at least one muscle group")
    exercise = ExerciseLog(
        exercise_id=exercise_id,
        primary_muscle=names[0],
        sets=parse_sets_string(sets),
        exercise_type="bodyweight" if bodyweight_exercise else "weighted",
        muscles=[MuscleTag(m, i) for i, m in enumerate(names, start=1)],
    )
    return WorkoutLog(
        completed_at=validate_datetime(date, "date") if date else datetime.now(),
        exercises=[exercise],
        goal=validate_goal(goal) if goal else None,
        duration_minutes=duration,
    )


@app.command("log-workout")
def log_workout(
    workout_file: Annotated[
        Optional[Path],
        typer.Argument(help="Workout JSON file (see README for the format)"),
    ] = None,
    exercise_id: Annotated[
        Optional[str],
        typer.Option("--exercise", "-e", help="Quick log: exercise id"),
    ] = None,
    muscles: Annotated[
        Optional[str],
        typer.Option("--muscles", "-m", help="Quick log: comma-separated muscles, primary first"),
    ] = None,
    sets: Annotated[
        Optional[str],
        typer.Option("--sets", help="Quick log: sets, e.g. '3x8@100' or '8@100, 6@110'"),
    ] = None,
    bodyweight_exercise: Annotated[
        bool,
        typer.Option("--bodyweight-exercise", help="Quick log: score as bodyweight work"),
    ] = False,
    goal: GoalOption = None,
    date: Annotated[
        Optional[str],
        typer.Option("--date", "-d", help="Quick log: completion date (YYYY-MM-DD, default now)"),
    ] = None,
    duration: Annotated[
        int,
        typer.Option("--duration", help="Quick log: workout length in minutes"),
    ] = 0,
    seed: Annotated[
        Optional[int],
        typer.Option("--seed", help="Seed the drop rolls for a reproducible result"),
    ] = None,
    force_drop: Annotated[
        bool,
        typer.Option("--force-drop", help="Force a drop on every eligible exercise (testing)"),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Compute rewards without saving"),
    ] = False,
    json_out: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for machine processing"),
    ] = False,
    state_path: StateOption = None,
    config_path: ConfigOption = None,
) -> None:
    """
    Process a completed workout: points, muscle XP, charm drops, bonuses.
    """
    cfg = get_config(config_path, force_drop=force_drop)
    store = get_store(state_path)

    try:
        if workout_file is not None:
            workout = json_to_workout_log(workout_file.read_text(encoding="utf-8"))
        else:
            workout = _quick_workout(exercise_id, muscles, sets, bodyweight_exercise, goal, date, duration)
        snapshot = store.load(now=workout.completed_at)
    except (FileNotFoundError, ValidationError, json.JSONDecodeError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if not workout.exercises:
        views.print_error("Workout has no exercises")
        raise typer.Exit(1)

    rng = random.Random(seed)
    pipeline = RewardPipeline(config=cfg, rng=rng)
    outcome = pipeline.process_workout(workout, snapshot)

    lifetime = None
    if not dry_run:
        lifetime = store.record_workout(outcome, workout.completed_at)

    if json_out:
        data = outcome_to_dict(outcome)
        data["saved"] = not dry_run
        data["lifetime_points"] = lifetime
        print(json.dumps(data, indent=2))
        return

    views.print_workout_outcome(outcome)
    if dry_run:
        views.print_info("Dry run: nothing saved.")
    else:
        views.print_success(f"Saved. Lifetime points: {lifetime}")
