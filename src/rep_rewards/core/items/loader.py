"""
YAML → item definition loader.

Loads the charm and rune catalogs from the bundled ``src/rep_rewards/items/``
directory (``charms.yaml``, ``runes.yaml``).

User overrides: place a file of the same name in ``~/.rep-rewards/items/``.
Entries are matched by ``id``; a matching user entry is deep-merged over the
bundled one, so only changed keys need to be listed.  User entries with a
new id are added to the catalog.

Usage (internal, called by registry.py):
    from .loader import load_charms_from_yaml, load_runes_from_yaml
    charms = load_charms_from_yaml()   # dict or None on failure
"""

from __future__ import annotations

import logging
import os
import warnings
from pathlib import Path
from typing import Any, Callable, TypeVar

from ..engine.config_loader import deep_merge, load_yaml_file
from ..models import Rarity
from .base import CharmDefinition, CharmEffectType, RuneDefinition, RuneEffectType

logger = logging.getLogger(__name__)

T = TypeVar("T")

_REQUIRED_ITEM_FIELDS: frozenset[str] = frozenset(
    {"id", "name", "description", "rarity", "effect_type"}
)


def _check_fields(d: dict, kind: str) -> None:
    missing = _REQUIRED_ITEM_FIELDS - set(d)
    if missing:
        raise ValueError(f"{kind} missing fields: {sorted(missing)}")


def _params(raw: Any) -> dict[str, float]:
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"params must be a mapping, got {type(raw).__name__}")
    return {str(k): float(v) for k, v in raw.items()}


def charm_from_dict(d: dict) -> CharmDefinition:
    """Convert a raw dict (from YAML) to a CharmDefinition.

    Raises ValueError on missing fields or unknown rarity/effect names.
    """
    _check_fields(d, "CharmDefinition")
    return CharmDefinition(
        id=str(d["id"]),
        name=str(d["name"]),
        description=str(d["description"]),
        rarity=Rarity(d["rarity"]),
        effect_type=CharmEffectType(d["effect_type"]),
        min_level=int(d.get("min_level", 0)),
        max_drop_level=int(d.get("max_drop_level", 10)),
        params=_params(d.get("params")),
    )


def rune_from_dict(d: dict) -> RuneDefinition:
    """Convert a raw dict (from YAML) to a RuneDefinition."""
    _check_fields(d, "RuneDefinition")
    return RuneDefinition(
        id=str(d["id"]),
        name=str(d["name"]),
        description=str(d["description"]),
        rarity=Rarity(d["rarity"]),
        effect_type=RuneEffectType(d["effect_type"]),
        min_level=int(d.get("min_level", 0)),
        max_drop_level=int(d.get("max_drop_level", 10)),
        params=_params(d.get("params")),
    )


def get_bundled_items_dir() -> Path | None:
    """Return the bundled items/ data directory, or None if not found."""
    # loader.py lives at src/rep_rewards/core/items/loader.py
    candidate = Path(__file__).parent.parent.parent / "items"
    return candidate if candidate.is_dir() else None


def get_user_items_dir() -> Path | None:
    """Return ~/.rep-rewards/items/ if it exists, else None."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    p = home / ".rep-rewards" / "items"
    return p if p.is_dir() else None


def _merge_entries(bundled: list[dict], user: list[dict]) -> list[dict]:
    by_id: dict[str, dict] = {}
    for entry in bundled + user:
        if not isinstance(entry, dict) or "id" not in entry:
            warnings.warn(f"rep-rewards: skipping item entry without id: {entry!r}", stacklevel=3)
            continue
        key = str(entry["id"])
        by_id[key] = deep_merge(by_id[key], entry) if key in by_id else dict(entry)
    return list(by_id.values())


def _load_catalog(
    filename: str,
    section: str,
    convert: Callable[[dict], T],
    bundled_dir: Path | None,
    user_dir: Path | None,
) -> dict[str, T] | None:
    bundled_entries: list[dict] = []
    user_entries: list[dict] = []

    if bundled_dir is not None and (bundled_dir / filename).exists():
        bundled_entries = list(load_yaml_file(bundled_dir / filename).get(section) or [])
    if user_dir is not None and (user_dir / filename).exists():
        user_entries = list(load_yaml_file(user_dir / filename).get(section) or [])

    result: dict[str, T] = {}
    for raw in _merge_entries(bundled_entries, user_entries):
        try:
            item = convert(raw)
        except (ValueError, TypeError) as exc:
            warnings.warn(
                f"rep-rewards: skipping {section[:-1]} '{raw.get('id')}': {exc}",
                stacklevel=2,
            )
            continue
        result[item.id] = item  # type: ignore[attr-defined]

    logger.debug("Loaded %d %s from %s (user dir: %s)", len(result), section, bundled_dir, user_dir)
    return result or None


def load_charms_from_yaml(
    bundled_dir: Path | None = None,
    user_dir: Path | None = None,
) -> dict[str, CharmDefinition] | None:
    """Return {charm_id: CharmDefinition}, or None if nothing could be loaded.

    Directories default to the bundled data and ``~/.rep-rewards/items/``.
    """
    return _load_catalog(
        "charms.yaml",
        "charms",
        charm_from_dict,
        bundled_dir if bundled_dir is not None else get_bundled_items_dir(),
        user_dir if user_dir is not None else get_user_items_dir(),
    )


def load_runes_from_yaml(
    bundled_dir: Path | None = None,
    user_dir: Path | None = None,
) -> dict[str, RuneDefinition] | None:
    """Return {rune_id: RuneDefinition}, or None if nothing could be loaded."""
    return _load_catalog(
        "runes.yaml",
        "runes",
        rune_from_dict,
        bundled_dir if bundled_dir is not None else get_bundled_items_dir(),
        user_dir if user_dir is not None else get_user_items_dir(),
    )
