# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Root pytest configuration with shared fixtures and markers.

This file is automatically loaded by pytest and provides:
- Custom markers for test categories
- A frozen clock and in-memory host collaborators
- A factory for fully wired ReclaimerService instances
"""

from typing import Dict, Optional

import pytest

from tab_reclaimer.clock import FrozenClock
from tab_reclaimer.config import ReclaimerConfig
from tab_reclaimer.hosts.local import LocalProbeService, LocalResourceDirectory, RecordingIndicator
from tab_reclaimer.protocols import Trigger
from tab_reclaimer.service import ReclaimerService
from tab_reclaimer.storage import InMemoryKeyValueStore

NOW_MS = 1_700_000_000_000


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: Mark test as integration test (several components wired together)",
    )
    config.addinivalue_line(
        "markers",
        "slow: Mark test as slow-running (may be skipped in quick runs)",
    )


class ManualTriggerService:
    """TriggerService whose triggers only fire when told to."""

    def __init__(self):
        self.triggers: Dict[str, Trigger] = {}
        self.callbacks = {}
        self.created = []
        self.cleared = []

    def create(self, name, period_minutes, callback):
        trigger = Trigger(name=name, period_minutes=period_minutes)
        self.triggers[name] = trigger
        self.callbacks[name] = callback
        self.created.append(trigger)
        return trigger

    def clear(self, name):
        self.cleared.append(name)
        self.callbacks.pop(name, None)
        return self.triggers.pop(name, None) is not None

    def get(self, name) -> Optional[Trigger]:
        return self.triggers.get(name)

    async def fire(self, name):
        return await self.callbacks[name](name)


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def clock():
    """Clock frozen at NOW_MS."""
    return FrozenClock(NOW_MS)


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def directory():
    return LocalResourceDirectory()


@pytest.fixture
def probes():
    return LocalProbeService()


@pytest.fixture
def triggers():
    return ManualTriggerService()


@pytest.fixture
def indicator():
    return RecordingIndicator()


@pytest.fixture
def make_service(directory, probes, store, triggers, indicator, clock):
    """Factory for a ReclaimerService wired to the shared collaborators."""

    def factory(**config_overrides) -> ReclaimerService:
        config = ReclaimerConfig(**config_overrides)
        return ReclaimerService(
            directory,
            probes,
            store,
            triggers,
            config=config,
            indicator=indicator,
            clock=clock,
        )

    return factory


# ============================================================================
# Test Collection Hooks
# ============================================================================


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add automatic markers based on names."""
    for item in items:
        if "end_to_end" in item.name or "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
