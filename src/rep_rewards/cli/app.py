"""Shared Typer app object, shared option types, and store/config utilities."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from ..core.config import RewardConfig
from ..core.engine.config_loader import load_reward_config
from ..io.state_store import StateStore, default_state_path
from . import views

# Shared --state option type used by every stateful command
StateOption = Annotated[
    Optional[Path],
    typer.Option("--state", "-s", help="Path to the JSON state file (default ~/.rep-rewards/state.json)"),
]

# Shared --config option type for tuning overrides
ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Extra rewards.yaml applied over bundled and user tuning"),
]

app = typer.Typer(
    name="rep-rewards",
    help="Reward engine for strength workouts: points, muscle levels, charms and runes.",
    no_args_is_help=True,
)


def setup_logging(verbose: bool) -> None:
    """Route library logging through Rich on stderr; DEBUG with --verbose, else WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def get_store(state_path: Path | None) -> StateStore:
    """Get state store from path or default location."""
    return StateStore(state_path if state_path is not None else default_state_path())


def get_config(config_path: Path | None, force_drop: bool = False) -> RewardConfig:
    """
    Load tuning, exiting with status 1 on a bad config file.
    """
    try:
        cfg = load_reward_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    return cfg.with_force_drop() if force_drop else cfg
