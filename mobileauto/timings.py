# mobileauto/timings.py
"""
@file timings.py
@brief Wait tier presets and defaults.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from typing import Dict, Optional, Union

DEFAULT_INTERVAL = 0.2

TIER_FIELDS: Dict[str, Dict[str, float]] = {
    "short": {"timeout": 2.0, "interval": 0.2},
    "medium": {"timeout": 5.0, "interval": 0.2},
    "long": {"timeout": 10.0, "interval": 0.2},
}

PRESET_OVERRIDES: Dict[str, Dict[str, Dict[str, float]]] = {
    "fast": {
        "short": {"timeout": 1.0, "interval": 0.1},
        "medium": {"timeout": 3.0, "interval": 0.1},
        "long": {"timeout": 6.0, "interval": 0.1},
    },
    "slow": {
        "short": {"timeout": 4.0, "interval": 0.3},
        "medium": {"timeout": 10.0, "interval": 0.3},
        "long": {"timeout": 20.0, "interval": 0.3},
    },
    "ci": {
        "short": {"timeout": 5.0, "interval": 0.3},
        "medium": {"timeout": 10.0, "interval": 0.3},
        "long": {"timeout": 30.0, "interval": 0.5},
    },
}

TimeoutSpec = Union[str, float, int, None]


@dataclass(frozen=True)
class WaitTier:
    """A named polling timeout."""
    name: str
    timeout: float
    interval: float = DEFAULT_INTERVAL


def build_tiers(preset: str = "default", overrides: Optional[Dict[str, float]] = None) -> Dict[str, WaitTier]:
    """
    Build the standing tiers for a preset.

    @param preset "default", "fast", "slow" or "ci"
    @param overrides Optional {tier_name: timeout_seconds}, applied last
    """
    preset_key = (preset or "default").lower()
    values = deepcopy(TIER_FIELDS)

    if preset_key != "default":
        preset_values = PRESET_OVERRIDES.get(preset_key)
        if preset_values is None:
            raise ValueError(f"Unknown timing preset: {preset}")
        for name, value in preset_values.items():
            values[name].update(value)

    for name, timeout in (overrides or {}).items():
        if name not in values:
            raise ValueError(f"Unknown wait tier: {name}")
        values[name]["timeout"] = float(timeout)

    return {
        name: WaitTier(name=name, timeout=float(v["timeout"]), interval=float(v["interval"]))
        for name, v in values.items()
    }


def resolve_tier(value: TimeoutSpec, tiers: Dict[str, WaitTier], default: WaitTier) -> WaitTier:
    """
    Turn a tier name, a number of seconds or None into a WaitTier.

    Ad hoc durations keep the default polling interval.
    """
    if value is None:
        return default
    if isinstance(value, str):
        tier = tiers.get(value.lower())
        if tier is None:
            raise ValueError(f"Unknown wait tier: {value}. Use one of {sorted(tiers)} or seconds")
        return tier
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Timeout must be a tier name or seconds, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"Timeout must not be negative: {value}")
    return WaitTier(name="custom", timeout=float(value), interval=default.interval)
