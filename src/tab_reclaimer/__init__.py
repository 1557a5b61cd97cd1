"""tab-reclaimer - Idle browser tab reclamation engine.

Keeps the number of open tabs under a configurable capacity by closing
the least recently used ones, while protecting tabs that look like they
are being edited. Every closed tab is journaled so it can be reviewed
and restored.

Usage:
    # Show the effective configuration
    tab-reclaimer config --file reclaimer.yaml

    # Inspect the eviction journal
    tab-reclaimer journal --state state.json
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
