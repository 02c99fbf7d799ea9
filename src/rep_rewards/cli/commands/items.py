"""Item commands: catalog, drop-odds."""

import json
from typing import Annotated

import typer
from rich.table import Table

from ...core.charm_drop import (
    apply_pity,
    calculate_drop_chance,
    compute_quality_tier,
    get_max_allowed_rarity,
    rarity_thresholds,
)
from ...core.items.registry import CHARM_REGISTRY, RUNE_REGISTRY
from ...core.models import Rarity
from ...io.serializers import ValidationError
from .. import views
from ..app import ConfigOption, StateOption, app, get_config, get_store


@app.command()
def catalog(
    show_owned: Annotated[
        bool,
        typer.Option("--owned", help="Mark owned and equipped items from the state file"),
    ] = False,
    state_path: StateOption = None,
) -> None:
    """
    List all charms and runes.
    """
    owned: set[str] = set()
    equipped: set[str] = set()
    if show_owned:
        try:
            snapshot = get_store(state_path).load()
        except (FileNotFoundError, ValidationError, json.JSONDecodeError) as e:
            views.print_error(str(e))
            raise typer.Exit(1)
        owned = set(snapshot.owned_charm_ids)
        equipped = set(snapshot.equipped_charm_ids) | set(snapshot.equipped_rune_ids)

    views.console.print(views.format_catalog_table(CHARM_REGISTRY, RUNE_REGISTRY, owned, equipped))


@app.command("drop-odds")
def drop_odds(
    adherence: Annotated[
        float,
        typer.Option("--adherence", "-a", min=0.0, max=1.0, help="Fraction of sets in the goal rep range"),
    ] = 1.0,
    pr_hit: Annotated[
        bool,
        typer.Option("--pr", help="At least one set was a PR"),
    ] = False,
    sets_since: Annotated[
        int,
        typer.Option("--pity", min=0, help="Sets since the last drop, including this exercise"),
    ] = 0,
    level: Annotated[
        int,
        typer.Option("--level", "-l", min=0, help="Gating level (highest involved muscle level)"),
    ] = 0,
    json_out: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for machine processing"),
    ] = False,
    config_path: ConfigOption = None,
) -> None:
    """
    Show drop chance and rarity odds for one exercise's quality.
    """
    cfg = get_config(config_path).charm_drop

    tier = compute_quality_tier(adherence, pr_hit, cfg)
    chance = calculate_drop_chance(tier, adherence, pr_hit, cfg)
    final, pity = apply_pity(chance, sets_since, cfg)
    common, rare = rarity_thresholds(tier, adherence, pr_hit, cfg)
    max_allowed = get_max_allowed_rarity(level, cfg)

    # Probability mass per rolled rarity, then folded down to the cap.
    rolled = {Rarity.COMMON: common, Rarity.RARE: rare - common, Rarity.EPIC: 1.0 - rare}
    final_odds = {r: 0.0 for r in Rarity}
    for rarity, p in rolled.items():
        final_odds[max_allowed if rarity.rank > max_allowed.rank else rarity] += p

    if json_out:
        print(json.dumps({
            "quality_tier": tier,
            "base_drop_chance": cfg.drop_chance_by_tier[tier],
            "drop_chance": chance,
            "final_drop_chance": final,
            "pity_bonus": pity.pity_bonus,
            "guaranteed": pity.was_guaranteed,
            "max_allowed_rarity": max_allowed.value,
            "rarity_odds": {r.value: round(p, 4) for r, p in final_odds.items()},
        }, indent=2))
        return

    views.console.print(f"Quality tier: [bold]{tier}[/bold]")
    views.console.print(
        f"Drop chance: {cfg.drop_chance_by_tier[tier]:.0%} base → {chance:.0%} with bonuses"
        f" → [bold]{final:.0%}[/bold] after pity"
        + (" [green](guaranteed)[/green]" if pity.was_guaranteed else "")
    )

    table = Table(title=f"Rarity odds (level {level}, max {max_allowed.value})")
    table.add_column("Rarity")
    table.add_column("Rolled", justify="right")
    table.add_column("After gating", justify="right", style="bold")
    for rarity in Rarity:
        table.add_row(rarity.value, f"{rolled[rarity]:.1%}", f"{final_odds[rarity]:.1%}")
    views.console.print(table)
