"""
Configuration for the annotation editor.

Defaults live in a nested EasyDict so they can be overridden from the
environment (``BBOX_editing__min_size=2``) the same way at every entry point.
"""

import os
from typing import Any, Mapping, Optional

from easydict import EasyDict as edict

from .env import env_overrides, load_cfg_from_env

UNCLASSIFIED = "Unclassified"


def get_default_config() -> edict:
    """Build a fresh configuration tree with the default values."""
    cfg = edict()

    cfg.history = edict()
    cfg.history.max_depth = 50

    cfg.editing = edict()
    # Distance in image pixels within which a border counts as hit
    cfg.editing.border_tolerance = 2
    cfg.editing.min_size = 1
    # Idle gap in seconds that closes a burst of keyboard nudges
    cfg.editing.nudge_debounce = 0.1
    cfg.editing.avoid_overlap = False

    cfg.classes = edict()
    cfg.classes.unclassified = UNCLASSIFIED

    return cfg


def load_config(env: Optional[Mapping[str, Any]] = None) -> edict:
    """
    Load the configuration, applying environment overrides.

    Args:
        env: Mapping to read overrides from, ``os.environ`` by default

    Returns:
        Configuration tree
    """
    if env is None:
        env = os.environ
    return load_cfg_from_env(get_default_config(), env_overrides(env))
