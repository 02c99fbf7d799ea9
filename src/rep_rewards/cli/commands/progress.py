"""Progress commands: levels, level-curve."""

import json
from datetime import datetime
from typing import Annotated, Optional

import typer

from ...core.muscle_xp import decayed_view
from ...io.serializers import ValidationError, validate_datetime
from .. import views
from ..app import ConfigOption, StateOption, app, get_config, get_store


@app.command()
def levels(
    as_of: Annotated[
        Optional[str],
        typer.Option("--as-of", help="Evaluate decay at this date (YYYY-MM-DD, default now)"),
    ] = None,
    json_out: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for machine processing"),
    ] = False,
    state_path: StateOption = None,
    config_path: ConfigOption = None,
) -> None:
    """
    Show muscle levels with inactivity decay applied.

    Decay is a view only: the stored levels are not changed.
    """
    cfg = get_config(config_path)
    store = get_store(state_path)
    try:
        now = validate_datetime(as_of, "as-of") if as_of else datetime.now()
        snapshot = store.load()
    except (FileNotFoundError, ValidationError, json.JSONDecodeError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_out:
        out = {}
        for muscle, state in sorted(snapshot.muscle_levels.items()):
            view = decayed_view(state, now, cfg.muscle_xp)
            out[muscle] = {
                "level": view.original_level,
                "effective_level": view.effective_level,
                "effective_progress": round(view.effective_progress, 4),
                "decay_status": view.decay_status,
                "levels_lost": view.levels_lost,
                "days_since_training": view.days_since_training,
                "total_xp_earned": state.total_xp_earned,
            }
        print(json.dumps(out, indent=2))
        return

    if not snapshot.muscle_levels:
        views.console.print("[yellow]No muscles trained yet.[/yellow]")
        return
    views.console.print(views.format_levels_table(snapshot.muscle_levels, now, cfg.muscle_xp))
    views.console.print(f"Streak: {snapshot.current_streak} (best {snapshot.longest_streak})")


@app.command("level-curve")
def level_curve(config_path: ConfigOption = None) -> None:
    """
    Show XP required per level and cumulative XP.
    """
    cfg = get_config(config_path)
    views.console.print(views.format_level_curve_table(cfg.muscle_xp))
