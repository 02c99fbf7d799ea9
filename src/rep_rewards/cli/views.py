"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of scores, levels, drops and items.
"""

from datetime import datetime
from typing import Mapping

from rich.console import Console
from rich.table import Table

from ..core.config import MuscleXpConfig
from ..core.items.base import CharmDefinition, RuneDefinition
from ..core.models import (
    BonusSummary,
    ExerciseReward,
    MuscleLevelState,
    PointsResult,
    Rarity,
    WorkoutOutcome,
)
from ..core.muscle_xp import decayed_view, total_xp_for_muscle_level, xp_for_muscle_level

console = Console()

RARITY_STYLE: dict[Rarity, str] = {
    Rarity.COMMON: "white",
    Rarity.RARE: "cyan",
    Rarity.EPIC: "magenta",
}

DECAY_STYLE = {"active": "green", "resting": "yellow", "decaying": "red"}


def _rarity_cell(rarity: Rarity | None) -> str:
    if rarity is None:
        return "-"
    style = RARITY_STYLE[rarity]
    return f"[{style}]{rarity.value}[/{style}]"


def format_set_table(results: list[PointsResult], title: str = "Set scores") -> Table:
    """
    Create a Rich table of scored sets with their itemized bonuses.

    Args:
        results: Scored sets, in order
        title: Table title

    Returns:
        Rich Table object
    """
    table = Table(title=title)

    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Base", justify="right")
    table.add_column("Bonuses")
    table.add_column("Mult", justify="right")
    table.add_column("Points", justify="right", style="bold")
    table.add_column("PR", justify="center")

    for i, r in enumerate(results, 1):
        bonuses = "\n".join(b.description for b in r.bonuses) or "-"
        table.add_row(
            str(i),
            str(r.base_points),
            bonuses,
            f"x{r.multiplier:.3g}",
            str(r.final_points),
            "[bold yellow]PR[/bold yellow]" if r.is_pr else "",
        )
    return table


def format_bonus_table(summary: BonusSummary, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Item", style="cyan")
    table.add_column("Reason")
    table.add_column("%", justify="right")
    table.add_column("Flat", justify="right")

    for b in summary.bonuses:
        style = "" if b.triggered else "dim"
        table.add_row(
            f"[{style}]{b.item_name}[/{style}]" if style else b.item_name,
            b.reason,
            f"+{b.percent_bonus * 100:.1f}%" if b.percent_bonus else "-",
            f"+{b.flat_bonus}" if b.flat_bonus else "-",
        )
    return table


def _print_exercise(reward: ExerciseReward) -> None:
    console.print(f"\n[bold]{reward.exercise_id}[/bold]  ({', '.join(t.muscle_group for t in reward.muscle_tags)})")
    console.print(format_set_table(reward.set_results, title=f"{reward.exercise_id}: {reward.base_points} points"))

    for change in reward.level_changes:
        line = f"  {change.muscle_group}: +{change.xp_awarded} XP"
        if change.leveled_up:
            line += f"  [bold green]Level up! {change.old_level} → {change.new_level}[/bold green]"
        console.print(line)

    drop = reward.drop
    if not drop.eligible:
        console.print(f"  [dim]No drop roll ({drop.debug.sets_logged} set(s))[/dim]")
    elif drop.did_drop:
        name = drop.charm_id or "charm"
        console.print(f"  [bold]Charm drop![/bold] {_rarity_cell(drop.rarity)} {name}")
        if drop.debug.gating is not None and drop.debug.gating.was_downgraded:
            console.print(
                f"  [dim]Rolled {drop.debug.gating.rolled_rarity.value}, capped at level "
                f"{drop.debug.gating.gating_level}[/dim]"
            )
    else:
        console.print(
            f"  [dim]No drop (tier {drop.quality_tier}, {drop.debug.final_drop_chance:.0%} chance, "
            f"pity {drop.pity_after})[/dim]"
        )


def print_workout_outcome(outcome: WorkoutOutcome) -> None:
    """
    Print a processed workout: per-exercise scores, XP, drops, bonuses, total.

    Args:
        outcome: Pipeline result
    """
    for reward in outcome.exercises:
        _print_exercise(reward)

    r = outcome.reward
    for exercise, summary in zip(outcome.exercises, r.charm_bonuses):
        if summary.bonuses:
            console.print(format_bonus_table(summary, f"Charms: {exercise.exercise_id} (+{summary.final_bonus_points})"))
    if r.rune_bonus.bonuses:
        console.print(format_bonus_table(r.rune_bonus, f"Runes (+{r.rune_bonus.final_bonus_points})"))

    console.print()
    console.print(f"Set points:       {r.base_points}")
    console.print(f"Charm bonus:      +{r.total_charm_points}")
    console.print(f"Rune bonus:       +{r.rune_bonus.final_bonus_points}")
    console.print(f"Completion bonus: +{r.completion_bonus}")
    console.print(f"[bold]Total:            {r.total_points}[/bold]")
    console.print(f"Streak: {outcome.snapshot.current_streak}  |  Workouts this week: {outcome.snapshot.workouts_this_week}")


def format_levels_table(
    states: Mapping[str, MuscleLevelState],
    now: datetime,
    config: MuscleXpConfig,
) -> Table:
    """
    Create a Rich table of muscle levels as seen at `now` (decay applied).

    Args:
        states: muscle → stored level record
        now: Evaluation time
        config: XP tuning

    Returns:
        Rich Table object
    """
    table = Table(title=f"Muscle levels ({now.date().isoformat()})")

    table.add_column("Muscle", style="cyan")
    table.add_column("Level", justify="right", style="bold")
    table.add_column("Progress", justify="right")
    table.add_column("Total XP", justify="right")
    table.add_column("Last trained")
    table.add_column("Status")

    for muscle in sorted(states):
        state = states[muscle]
        view = decayed_view(state, now, config)
        level = str(view.effective_level)
        if view.levels_lost:
            level += f" [dim](was {view.original_level})[/dim]"
        style = DECAY_STYLE[view.decay_status]
        table.add_row(
            muscle,
            level,
            f"{view.effective_progress:.0%}",
            str(state.total_xp_earned),
            state.last_trained_at.date().isoformat() if state.last_trained_at else "-",
            f"[{style}]{view.decay_status}[/{style}]",
        )
    return table


def format_level_curve_table(config: MuscleXpConfig) -> Table:
    table = Table(title="Level curve")
    table.add_column("Level", justify="right")
    table.add_column("XP to reach", justify="right")
    table.add_column("Cumulative", justify="right", style="bold")

    for level in range(1, config.max_level + 1):
        table.add_row(
            str(level),
            str(xp_for_muscle_level(level, config)),
            str(total_xp_for_muscle_level(level, config)),
        )
    return table


def format_catalog_table(
    charms: Mapping[str, CharmDefinition],
    runes: Mapping[str, RuneDefinition],
    owned: set[str] | None = None,
    equipped: set[str] | None = None,
) -> Table:
    """
    Create a Rich table listing the item catalog.

    Args:
        charms: Charm catalog
        runes: Rune catalog
        owned: Owned charm ids (marked in the table)
        equipped: Equipped charm and rune ids

    Returns:
        Rich Table object
    """
    owned = owned or set()
    equipped = equipped or set()
    table = Table(title="Item catalog")

    table.add_column("Kind", style="dim")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Rarity")
    table.add_column("Levels", justify="right")
    table.add_column("Effect")
    table.add_column("", justify="center")

    rows: list[tuple[str, CharmDefinition | RuneDefinition]] = [("charm", c) for c in charms.values()]
    rows += [("rune", r) for r in runes.values()]
    rows.sort(key=lambda kv: (kv[0], kv[1].rarity.rank, kv[1].id))

    for kind, item in rows:
        mark = ""
        if item.id in equipped:
            mark = "[green]E[/green]"
        elif kind == "charm" and item.id in owned:
            mark = "o"
        table.add_row(
            kind,
            item.id,
            item.name,
            _rarity_cell(item.rarity),
            f"{item.min_level}-{item.max_drop_level}",
            item.description,
            mark,
        )
    return table


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {message}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{message}[/blue]")


def confirm_action(message: str) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Confirmation message

    Returns:
        True if confirmed, False otherwise
    """
    response = console.input(f"{message} [y/N]: ")
    return response.lower() in ("y", "yes")
