"""
CLI entry point using Typer.

Provides commands for the reward engine:
- init: Create the state file
- equip: Equip charms and runes
- score-set: Score a single set (what-if)
- log-workout: Process and record a completed workout
- levels: Show muscle levels with decay
- level-curve: Show the XP curve
- catalog: List charms and runes
- drop-odds: Show drop and rarity odds
"""

from typing import Annotated

import typer

from .app import app, setup_logging
from .commands import items, profile, progress, scoring  # noqa: F401  (registers commands)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging from the engine"),
    ] = False,
) -> None:
    """
    Reward engine for strength workouts: points, muscle levels, charms and runes.
    """
    setup_logging(verbose)


if __name__ == "__main__":
    app()
