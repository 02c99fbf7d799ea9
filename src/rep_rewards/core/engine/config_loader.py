"""
YAML → typed config loader.

Loads reward tuning from rewards.yaml (bundled with the package) and
optionally merges user overrides from ~/.rep-rewards/rewards.yaml.

Usage:
    from rep_rewards.core.engine.config_loader import load_reward_config
    cfg = load_reward_config()
    cfg.charm_drop.drop_chance_by_tier

If a YAML file cannot be read or parsed, a warning is issued and the file
is ignored, so the Python defaults from config.py still apply.  Unknown
section or key names are an error (ValueError): a typo in a tuning file
should not silently fall back to defaults.
"""

from __future__ import annotations

import importlib.resources
import logging
import os
import warnings
from pathlib import Path
from typing import Any

import yaml

from ..config import RewardConfig

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML mapping; warn and return {} if unreadable."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        warnings.warn(f"rep-rewards: ignoring {path} ({exc})", stacklevel=2)
        return {}
    return data if isinstance(data, dict) else {}


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = deep_merge(result[k], v)
        else:
            result[k] = v
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_bundled_yaml() -> dict[str, Any]:
    """Load the rewards.yaml bundled with the package ({} if not found)."""
    try:
        ref = importlib.resources.files("rep_rewards").joinpath("rewards.yaml")
        # as_file may materialise a temporary copy; parse it while it exists
        with importlib.resources.as_file(ref) as p:
            if p.exists():
                return load_yaml_file(p)
    except (ModuleNotFoundError, TypeError, ValueError, AttributeError):
        # namespace-package lookups are unsupported on older interpreters
        pass
    # Fallback: config_loader.py lives at src/rep_rewards/core/engine/
    candidate = Path(__file__).parent.parent.parent / "rewards.yaml"
    return load_yaml_file(candidate) if candidate.exists() else {}


def get_user_yaml_path() -> Path | None:
    """Return ~/.rep-rewards/rewards.yaml if it exists, else None."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    p = home / ".rep-rewards" / "rewards.yaml"
    return p if p.exists() else None


def load_config_dict(path: Path | None = None) -> dict[str, Any]:
    """
    Load and merge the raw config mapping from YAML sources.

    Load order (later overrides earlier):
    1. Bundled src/rep_rewards/rewards.yaml
    2. User override at ~/.rep-rewards/rewards.yaml
    3. Explicit *path*, if given

    Returns:
        Merged dict of config sections.  Empty dict if no YAML available.

    Raises:
        FileNotFoundError: If an explicit *path* does not exist
    """
    config: dict[str, Any] = load_bundled_yaml()

    user = get_user_yaml_path()
    if user is not None:
        config = deep_merge(config, load_yaml_file(user))

    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        config = deep_merge(config, load_yaml_file(path))

    return config


def load_reward_config(path: Path | None = None) -> RewardConfig:
    """
    Build the typed RewardConfig from the merged YAML sources.

    Args:
        path: Optional extra override file (CLI --config)

    Returns:
        RewardConfig

    Raises:
        ValueError: On unknown section or key names
        FileNotFoundError: If an explicit *path* does not exist
    """
    raw = load_config_dict(path)
    cfg = RewardConfig.from_dict(raw)
    logger.debug("Loaded reward config version %s", cfg.version)
    return cfg
