"""Persistent user preferences stored in the per-user data directory.

SECURITY MODEL:
- The settings file holds ONLY polling and alert preferences.
- Headroom never writes it; users edit it by hand.
- Unknown keys are ignored, so nothing else is ever read from it.
"""

import json
import logging
from pathlib import Path

from .config import (
    BLINK_UTILIZATION,
    DATA_DIR,
    ELEVATED_THRESHOLD,
    IMMINENT_FRACTION,
    MIN_ELAPSED_FRACTION,
    POLL_INTERVAL_SECONDS,
)
from .errors import ConfigurationError
from .projection import DEFAULT_POLICY, ProjectionPolicy

log = logging.getLogger(__name__)

SETTINGS_FILE = DATA_DIR / "settings.json"

DEFAULTS = {
    "poll_interval": POLL_INTERVAL_SECONDS,        # seconds between API polls
    "elevated_threshold": ELEVATED_THRESHOLD,      # projected % that turns yellow
    "blink_utilization": BLINK_UTILIZATION,        # used % that blinks
    "imminent_fraction": IMMINENT_FRACTION,        # window share left that counts as imminent
    "min_elapsed_fraction": MIN_ELAPSED_FRACTION,  # window share needed before projecting
}


def load(path: Path | None = None) -> dict:
    """Load settings from disk, returning defaults for missing keys."""
    settings_file = path or SETTINGS_FILE
    settings = dict(DEFAULTS)
    try:
        if settings_file.exists():
            data = json.loads(settings_file.read_text(encoding="utf-8"))
            # Only accept known keys with numeric values
            for key in DEFAULTS:
                value = data.get(key)
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    settings[key] = value
    except (json.JSONDecodeError, OSError, AttributeError) as exc:
        log.warning("Failed to load settings: %s", exc)
    return settings


def policy_from(settings: dict) -> ProjectionPolicy:
    """Build the alert policy from settings, falling back to defaults if invalid."""
    try:
        return ProjectionPolicy(
            elevated_threshold=float(settings["elevated_threshold"]),
            blink_utilization=float(settings["blink_utilization"]),
            imminent_fraction=float(settings["imminent_fraction"]),
            min_elapsed_fraction=float(settings["min_elapsed_fraction"]),
        )
    except (KeyError, ConfigurationError) as exc:
        log.warning("Invalid alert thresholds in settings, using defaults: %s", exc)
        return DEFAULT_POLICY
