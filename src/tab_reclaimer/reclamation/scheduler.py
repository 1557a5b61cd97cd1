# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Cycle scheduling and live recency updates.

The CycleScheduler owns the periodic trigger that runs the policy
engine, keeps that trigger alive across restarts and period changes,
and routes host events into the recency tracker.

At most one cycle runs at a time. A tick arriving while a cycle is in
flight is dropped, not queued.
"""

import logging
from typing import Any, Dict, Optional

from tab_reclaimer.config import ReclaimerConfig, SYNCED_KEYS
from tab_reclaimer.protocols import SYNC_SCOPE, KeyValueStore, ResourceDirectory, TriggerService
from tab_reclaimer.reclamation.policy import CycleReport, EvictionPolicyEngine
from tab_reclaimer.schemas import ResourceRecord, Tier

logger = logging.getLogger(__name__)

TRIGGER_NAME = "reclaim-idle-resources"


class CycleScheduler:
    """Periodic trigger and event router for the reclamation engine.

    Attributes:
        engine: Policy engine run on each tick.
        directory: Host resource directory.
        store: Key-value store (synced scope holds config).
        triggers: Host trigger service.
        config: Active configuration.
        last_report: Report of the most recent completed cycle.

    Example:
        >>> scheduler = CycleScheduler(engine, directory, store, triggers)
        >>> await scheduler.start()
        >>> # host wiring
        >>> directory.on_activated(scheduler.on_activated)
    """

    def __init__(
        self,
        engine: EvictionPolicyEngine,
        directory: ResourceDirectory,
        store: KeyValueStore,
        triggers: TriggerService,
        trigger_name: str = TRIGGER_NAME,
    ):
        self.engine = engine
        self.directory = directory
        self.store = store
        self.triggers = triggers
        self.trigger_name = trigger_name
        self.config: ReclaimerConfig = engine.config
        self.last_report: Optional[CycleReport] = None
        self.dropped_ticks = 0
        self._in_flight = False
        self._listening = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def load_config(self) -> ReclaimerConfig:
        """Read the synced scope and apply it."""
        try:
            values = await self.store.get(SYNC_SCOPE, self.config.to_synced())
        except Exception as e:
            logger.warning(f"Failed to load settings, keeping current config: {e}")
            return self.config
        self.apply_config(self.config.with_synced(values))
        logger.info(
            f"Loaded settings: capacity={self.config.capacity}, "
            f"idle_threshold={self.config.idle_threshold_hours}h, "
            f"period={self.config.cycle_period_minutes}min"
        )
        return self.config

    def apply_config(self, config: ReclaimerConfig) -> None:
        """Push a config to every component."""
        self.config = config
        self.engine.config = config
        self.engine.recency.idle_threshold_ms = config.idle_threshold_ms
        self.engine.exclusion.probe_timeout_seconds = config.probe_timeout_seconds
        self.engine.journal.max_entries = config.journal_max_entries

    async def start(self) -> None:
        """Load settings, reconcile recency, ensure the trigger.

        Called on install, update and every process start.
        """
        await self.load_config()
        resources = await self.directory.list_open()
        focused = await self.directory.get_focused()
        await self.engine.recency.reconcile(resources, focused.id if focused else None)
        self.ensure_trigger()
        if not self._listening:
            self.store.add_change_listener(self.on_storage_changed)
            self._listening = True

    def stop(self) -> None:
        """Remove the trigger."""
        if self.triggers.clear(self.trigger_name):
            logger.info(f"Cleared trigger {self.trigger_name}")

    def ensure_trigger(self) -> bool:
        """Recreate the trigger if it is missing.

        Returns:
            True if the trigger had to be created.
        """
        if self.triggers.get(self.trigger_name) is not None:
            return False
        self._create_trigger()
        return True

    def _create_trigger(self) -> None:
        self.triggers.create(self.trigger_name, self.config.cycle_period_minutes, self.on_tick)
        logger.info(
            f"Scheduled {self.trigger_name} every {self.config.cycle_period_minutes} minutes"
        )

    async def on_tick(self, name: str) -> Optional[CycleReport]:
        """Run one cycle for our trigger.

        Args:
            name: Name of the trigger that fired.

        Returns:
            The cycle report, or None if the tick was ignored or dropped.
        """
        if name != self.trigger_name:
            return None
        if self._in_flight:
            self.dropped_ticks += 1
            logger.warning("Reclamation cycle still running, dropping tick")
            return None

        self._in_flight = True
        try:
            report = await self.engine.run_cycle()
        except Exception as e:
            logger.exception(f"Reclamation cycle failed: {e}")
            return None
        finally:
            self._in_flight = False

        self.last_report = report
        return report

    async def on_storage_changed(self, changes: Dict[str, Dict[str, Any]], scope: str) -> None:
        """Storage change listener; only synced settings matter."""
        if scope != SYNC_SCOPE:
            return
        values = {
            key: change.get("new_value")
            for key, change in changes.items()
            if key in SYNCED_KEYS
        }
        if values:
            self.on_config_changed(values)

    def on_config_changed(self, values: Dict[str, Any]) -> None:
        """Apply changed settings; recreate the trigger if the period moved."""
        old_period = self.config.cycle_period_minutes
        self.apply_config(self.config.with_synced(values))
        logger.info(f"Settings updated: {self.config.to_synced()}")

        if self.config.cycle_period_minutes != old_period:
            self.triggers.clear(self.trigger_name)
            self._create_trigger()

    async def on_activated(self, resource_id: int) -> None:
        """A resource gained focus."""
        await self.engine.recency.touch(resource_id, Tier.NORMAL)

    async def on_load_complete(self, resource_id: int, record: ResourceRecord) -> None:
        """A resource finished loading."""
        tier = self.engine.classifier.classify(record)
        await self.engine.recency.touch(resource_id, tier)

    async def on_removed(self, resource_id: int) -> None:
        """A resource was closed."""
        await self.engine.recency.forget(resource_id)
