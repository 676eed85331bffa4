"""
Constants Module - Centralized configuration values
===================================================

PURPOSE: Single source of truth for the fixed laundry room inventory
PATTERN: Modular constants organized by category
SCOPE: Application-wide configuration values

Values that operators tune at deploy time (prices, timezone, file paths) live
in :mod:`infrastructure.settings`; this module holds what never changes at
runtime.
"""
from tracking import t

from typing import Dict, List

# Machine Inventory
WASHER = 'washer'
DRYER = 'dryer'
MACHINE_TYPES = [WASHER, DRYER]
MACHINES_PER_TYPE = 6
MACHINE_NUMBERS = list(range(1, MACHINES_PER_TYPE + 1))  # Human-readable numbers

# Waitlist keys used in the shared state document
WAITLIST_KEYS = {
    WASHER: 'washers',
    DRYER: 'dryers',
}

# Cycle presets offered to students (minutes)
CYCLE_MODES: List[Dict[str, object]] = [
    {"name": "Normal", "duration": 30},
    {"name": "Extra 5 min", "duration": 35},
    {"name": "Extra 10 min", "duration": 40},
    {"name": "Extra 15 min", "duration": 45},
]

MIN_CYCLE_MINUTES = 1
MAX_CYCLE_MINUTES = 180

# Coarse heuristic for estimated waits, not measured
AVERAGE_CYCLE_MINUTES = {
    WASHER: 40,
    DRYER: 45,
}

# Heads-up threshold surfaced to clients polling the state
ALMOST_DONE_SECONDS = 5 * 60

# Timer sweep
DEFAULT_SWEEP_INTERVAL_SECONDS = 1.0


def waitlist_key(machine_type: str) -> str:
    """Return the shared-state waitlist key for a machine type"""
    t('infrastructure.constants.waitlist_key')
    try:
        return WAITLIST_KEYS[machine_type]
    except KeyError:
        raise ValueError(f"Unknown machine type: {machine_type!r}") from None


def preset_duration(mode_name: str):
    """Return the preset duration for a mode name, or ``None`` when unknown"""
    t('infrastructure.constants.preset_duration')
    if not mode_name:
        return None
    wanted = mode_name.strip().lower()
    for mode in CYCLE_MODES:
        if str(mode["name"]).lower() == wanted:
            return int(mode["duration"])
    return None
