# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Reclaimer configuration parsing.

This module provides:
- ReclaimerConfig dataclass for capacity, idle threshold and cycle period
- load_config() to parse a YAML config file
- from_synced()/to_synced() to map the synced key-value scope
- clamp_int() to keep user values inside their hard limits

Values outside their bounds are clamped, wrongly typed values fall back
to defaults. Configuration never raises.
"""

import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

# Hard limits, enforced at every boundary
CAPACITY_BOUNDS: Tuple[int, int] = (1, 200)
IDLE_THRESHOLD_HOURS_BOUNDS: Tuple[int, int] = (1, 24)
CYCLE_PERIOD_MINUTES_BOUNDS: Tuple[int, int] = (1, 1440)

DEFAULT_CAPACITY = 50
DEFAULT_IDLE_THRESHOLD_HOURS = 1
DEFAULT_CYCLE_PERIOD_MINUTES = 1
DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0
DEFAULT_JOURNAL_MAX_ENTRIES = 1000

# Keys stored in the synced scope
SYNCED_KEYS = ("capacity", "idle_threshold_hours", "cycle_period_minutes")

MS_PER_HOUR = 3_600_000


@dataclass
class ReclaimerConfig:
    """Configuration for the reclamation engine.

    Attributes:
        capacity: Maximum number of open resources before eviction starts
        idle_threshold_hours: Hours without access before a normal resource
            becomes eligible for eviction
        cycle_period_minutes: Minutes between reclamation cycles
        probe_timeout_seconds: Upper bound on a single content probe
        journal_max_entries: Retention cap on the eviction journal
        extra_placeholder_urls: Additional addresses classified as ephemeral
        extra_placeholder_titles: Additional titles classified as ephemeral
    """

    capacity: int = DEFAULT_CAPACITY
    idle_threshold_hours: int = DEFAULT_IDLE_THRESHOLD_HOURS
    cycle_period_minutes: int = DEFAULT_CYCLE_PERIOD_MINUTES
    probe_timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS
    journal_max_entries: int = DEFAULT_JOURNAL_MAX_ENTRIES
    extra_placeholder_urls: List[str] = field(default_factory=list)
    extra_placeholder_titles: List[str] = field(default_factory=list)

    @property
    def idle_threshold_ms(self) -> int:
        """Idle threshold in milliseconds."""
        return self.idle_threshold_hours * MS_PER_HOUR

    def to_synced(self) -> Dict[str, int]:
        """Serialize the user-facing settings for the synced scope."""
        return {key: getattr(self, key) for key in SYNCED_KEYS}

    def with_synced(self, values: Dict[str, Any]) -> "ReclaimerConfig":
        """Return a copy with synced-scope values applied and clamped.

        Keys absent from ``values`` keep their current value.
        """
        return replace(
            self,
            capacity=clamp_int(values.get("capacity"), CAPACITY_BOUNDS, self.capacity),
            idle_threshold_hours=clamp_int(
                values.get("idle_threshold_hours"),
                IDLE_THRESHOLD_HOURS_BOUNDS,
                self.idle_threshold_hours,
            ),
            cycle_period_minutes=clamp_int(
                values.get("cycle_period_minutes"),
                CYCLE_PERIOD_MINUTES_BOUNDS,
                self.cycle_period_minutes,
            ),
        )


def clamp_int(value: Any, bounds: Tuple[int, int], default: int) -> int:
    """Coerce a user-supplied value into an integer within bounds.

    Args:
        value: Raw value (int, float, numeric string, or anything else)
        bounds: Inclusive (low, high) limits
        default: Returned when the value is missing or not numeric

    Returns:
        An integer in [low, high]
    """
    low, high = bounds
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            return default
    if not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    return max(low, min(int(value), high))


def from_synced(values: Dict[str, Any], base: Optional[ReclaimerConfig] = None) -> ReclaimerConfig:
    """Build a config from synced-scope values on top of ``base``."""
    return (base or ReclaimerConfig()).with_synced(values)


def load_config(config_path: Path) -> ReclaimerConfig:
    """Load reclaimer configuration from a YAML file.

    The file holds a ``reclaimer:`` section::

        reclaimer:
          capacity: 30
          idle_threshold_hours: 2
          cycle_period_minutes: 5

    Args:
        config_path: Path to the YAML file

    Returns:
        ReclaimerConfig with settings from the file or defaults
    """
    config_path = Path(config_path)

    if not config_path.exists():
        return ReclaimerConfig()

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, IOError):
        return ReclaimerConfig()

    if not isinstance(data, dict):
        return ReclaimerConfig()

    section = data.get("reclaimer", {})
    if not isinstance(section, dict):
        return ReclaimerConfig()

    config = from_synced(section)

    raw_timeout = section.get("probe_timeout_seconds", DEFAULT_PROBE_TIMEOUT_SECONDS)
    if (
        isinstance(raw_timeout, bool)
        or not isinstance(raw_timeout, (int, float))
        or not math.isfinite(raw_timeout)
        or raw_timeout <= 0
    ):
        raw_timeout = DEFAULT_PROBE_TIMEOUT_SECONDS

    raw_cap = section.get("journal_max_entries", DEFAULT_JOURNAL_MAX_ENTRIES)
    journal_max_entries = clamp_int(raw_cap, (1, 100_000), DEFAULT_JOURNAL_MAX_ENTRIES)

    return replace(
        config,
        probe_timeout_seconds=float(raw_timeout),
        journal_max_entries=journal_max_entries,
        extra_placeholder_urls=_string_list(section.get("extra_placeholder_urls")),
        extra_placeholder_titles=_string_list(section.get("extra_placeholder_titles")),
    )


def _string_list(value: Any) -> List[str]:
    """Keep only the string items of a list-valued setting."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]
