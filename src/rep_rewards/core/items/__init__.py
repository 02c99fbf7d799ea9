"""
Charm and rune catalog for rep-rewards.

Definitions are reference data loaded from YAML; the effect functions that
interpret them live in core.effects.
"""

from .base import CharmDefinition, CharmEffectType, RuneDefinition, RuneEffectType
from .registry import (
    CHARM_REGISTRY,
    RUNE_REGISTRY,
    get_charm,
    get_charms_by_rarity,
    get_charms_for_level,
    get_rune,
    get_runes_for_level,
)

__all__ = [
    "CharmDefinition",
    "CharmEffectType",
    "RuneDefinition",
    "RuneEffectType",
    "CHARM_REGISTRY",
    "RUNE_REGISTRY",
    "get_charm",
    "get_charms_by_rarity",
    "get_charms_for_level",
    "get_rune",
    "get_runes_for_level",
]
