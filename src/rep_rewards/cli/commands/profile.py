"""Profile commands: init, equip."""

from typing import Annotated, Optional

import typer

from ...core.items.registry import CHARM_REGISTRY, RUNE_REGISTRY
from ...io.serializers import ValidationError
from .. import views
from ..app import StateOption, app, get_store


@app.command()
def init(
    user_id: Annotated[
        str,
        typer.Option("--user-id", "-u", help="User identifier stored in the snapshot"),
    ] = "me",
    bodyweight_kg: Annotated[
        float,
        typer.Option("--bodyweight-kg", "-w", help="Current bodyweight in kg (scores bodyweight sets)"),
    ] = 75.0,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing state file without prompting"),
    ] = False,
    state_path: StateOption = None,
) -> None:
    """
    Create a fresh reward state file.
    """
    if bodyweight_kg <= 0:
        views.print_error("Bodyweight must be positive")
        raise typer.Exit(1)

    store = get_store(state_path)
    if store.exists() and not force:
        if not views.confirm_action(f"State file {store.state_path} exists. Overwrite?"):
            views.print_info("Cancelled.")
            raise typer.Exit(0)
    elif store.exists():
        views.print_warning(f"Overwriting existing state file {store.state_path}")

    store.init(user_id, bodyweight_kg)
    views.print_success(f"Initialized {store.state_path} for '{user_id}' ({bodyweight_kg:.1f} kg)")


@app.command()
def equip(
    charms: Annotated[
        Optional[list[str]],
        typer.Option("--charm", "-C", help="Charm id to equip (repeatable)"),
    ] = None,
    runes: Annotated[
        Optional[list[str]],
        typer.Option("--rune", "-R", help="Rune id to equip (repeatable)"),
    ] = None,
    clear: Annotated[
        bool,
        typer.Option("--clear", help="Unequip everything before equipping"),
    ] = False,
    grant: Annotated[
        bool,
        typer.Option("--grant", help="Add unowned charms to the collection (testing)"),
    ] = False,
    state_path: StateOption = None,
) -> None:
    """
    Equip charms (per exercise) and runes (per workout).

    Charms must be owned; they are earned from drops.  Runes only need to
    exist in the catalog.
    """
    store = get_store(state_path)
    try:
        snapshot = store.load()
    except (FileNotFoundError, ValidationError) as e:
        views.print_error(str(e))
        views.print_info("Run 'init' first to create the state file.")
        raise typer.Exit(1)

    charm_ids = [] if clear else list(snapshot.equipped_charm_ids)
    rune_ids = [] if clear else list(snapshot.equipped_rune_ids)

    for charm_id in charms or []:
        if charm_id not in CHARM_REGISTRY:
            views.print_error(f"Unknown charm: {charm_id}")
            raise typer.Exit(1)
        if charm_id not in snapshot.owned_charm_ids:
            if not grant:
                views.print_error(f"Charm not owned: {charm_id} (use --grant to add it)")
                raise typer.Exit(1)
            snapshot.owned_charm_ids.append(charm_id)
        if charm_id not in charm_ids:
            charm_ids.append(charm_id)

    for rune_id in runes or []:
        if rune_id not in RUNE_REGISTRY:
            views.print_error(f"Unknown rune: {rune_id}")
            raise typer.Exit(1)
        if rune_id not in rune_ids:
            rune_ids.append(rune_id)

    snapshot.equipped_charm_ids = charm_ids
    snapshot.equipped_rune_ids = rune_ids
    store.save(snapshot)

    views.print_success(
        f"Equipped charms: {', '.join(charm_ids) or '-'} | runes: {', '.join(rune_ids) or '-'}"
    )
