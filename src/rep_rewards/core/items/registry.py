"""
Item registry.

All catalog charms and runes are registered here, loaded from the bundled
YAML files at import time.  If nothing can be loaded a RuntimeError is
raised, since the engine cannot score equipment without a catalog.

Lookups by id return None for unknown ids so that a client carrying a
newer (or older) catalog never breaks scoring.
"""

from typing import Mapping

from ..models import Rarity
from .base import CharmDefinition, RuneDefinition


def _build_charm_registry() -> dict[str, CharmDefinition]:
    from .loader import load_charms_from_yaml

    loaded = load_charms_from_yaml()
    if not loaded:
        raise RuntimeError(
            "rep-rewards: no charm definitions could be loaded from YAML. "
            "Check that src/rep_rewards/items/charms.yaml is present and valid."
        )
    return loaded


def _build_rune_registry() -> dict[str, RuneDefinition]:
    from .loader import load_runes_from_yaml

    loaded = load_runes_from_yaml()
    if not loaded:
        raise RuntimeError(
            "rep-rewards: no rune definitions could be loaded from YAML. "
            "Check that src/rep_rewards/items/runes.yaml is present and valid."
        )
    return loaded


CHARM_REGISTRY: dict[str, CharmDefinition] = _build_charm_registry()
RUNE_REGISTRY: dict[str, RuneDefinition] = _build_rune_registry()


def get_charm(
    charm_id: str,
    registry: Mapping[str, CharmDefinition] = CHARM_REGISTRY,
) -> CharmDefinition | None:
    """Return the CharmDefinition for an id, or None if unknown."""
    return registry.get(charm_id)


def get_rune(
    rune_id: str,
    registry: Mapping[str, RuneDefinition] = RUNE_REGISTRY,
) -> RuneDefinition | None:
    """Return the RuneDefinition for an id, or None if unknown."""
    return registry.get(rune_id)


def get_charms_for_level(
    level: int,
    registry: Mapping[str, CharmDefinition] = CHARM_REGISTRY,
) -> list[CharmDefinition]:
    """Charms whose drop window (min_level..max_drop_level) contains `level`."""
    return [c for c in registry.values() if c.min_level <= level <= c.max_drop_level]


def get_charms_by_rarity(
    rarity: Rarity,
    registry: Mapping[str, CharmDefinition] = CHARM_REGISTRY,
) -> list[CharmDefinition]:
    return [c for c in registry.values() if c.rarity is rarity]


def get_runes_for_level(
    level: int,
    registry: Mapping[str, RuneDefinition] = RUNE_REGISTRY,
) -> list[RuneDefinition]:
    """Runes whose drop window contains `level`."""
    return [r for r in registry.values() if r.min_level <= level <= r.max_drop_level]
