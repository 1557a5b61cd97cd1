# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Recency tracking for open resources.

Maintains the durable map of resource id to last-accessed time that
decides idleness. All mutations go through one lock so interleaved
event handlers cannot lose each other's writes, and every mutation is
followed by an awaited write to the local scope.
"""

import asyncio
import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional

from tab_reclaimer.clock import Clock
from tab_reclaimer.protocols import LOCAL_SCOPE, KeyValueStore
from tab_reclaimer.reclamation.classifier import Classifier
from tab_reclaimer.schemas import ResourceRecord, Tier

logger = logging.getLogger(__name__)

RECENCY_KEY = "recency_map"


class RecencyTracker:
    """Serialized store of last-accessed timestamps.

    Ephemeral resources are pinned to epoch 0 so they always sort
    first. Newly discovered normal resources at startup are placed half
    way to the idle threshold: old enough not to look freshly used, too
    young to be evicted on the first cycle.

    Attributes:
        store: Key-value store holding the persisted map.
        idle_threshold_ms: Idle threshold used for the half-idle stamp.

    Example:
        >>> tracker = RecencyTracker(store, idle_threshold_ms=3_600_000)
        >>> await tracker.reconcile(await directory.list_open(), focused_id=7)
        >>> await tracker.touch(7, Tier.NORMAL)
        >>> tracker.snapshot()[7]
    """

    def __init__(
        self,
        store: KeyValueStore,
        idle_threshold_ms: int,
        clock: Optional[Clock] = None,
        classifier: Optional[Classifier] = None,
    ):
        """Initialize the tracker.

        Args:
            store: Key-value store for the local scope.
            idle_threshold_ms: Idle threshold in milliseconds.
            clock: Clock (creates a wall clock if not provided).
            classifier: Classifier used during reconciliation.
        """
        self.store = store
        self.idle_threshold_ms = idle_threshold_ms
        self.clock = clock or Clock()
        self.classifier = classifier or Classifier()
        self._lock = asyncio.Lock()
        self._times: Dict[int, int] = {}

    async def touch(self, resource_id: int, tier: Tier = Tier.NORMAL) -> int:
        """Stamp a resource as accessed now.

        Args:
            resource_id: Resource to stamp.
            tier: Ephemeral resources are stamped 0 instead of now.

        Returns:
            The timestamp recorded.
        """
        stamp = 0 if tier is Tier.EPHEMERAL else self.clock.now_ms()
        async with self._lock:
            self._times[resource_id] = stamp
            await self._persist()
        logger.debug(f"Touched resource {resource_id} ({tier.value}) at {stamp}")
        return stamp

    async def forget(self, resource_id: int) -> None:
        """Drop a resource's entry. No-op when absent."""
        async with self._lock:
            if self._times.pop(resource_id, None) is None:
                return
            await self._persist()
        logger.debug(f"Forgot resource {resource_id}")

    async def prune(self, open_ids: Iterable[int]) -> int:
        """Drop entries for resources that are no longer open.

        Returns:
            Number of entries removed.
        """
        keep = set(open_ids)
        async with self._lock:
            stale = [rid for rid in self._times if rid not in keep]
            if not stale:
                return 0
            for rid in stale:
                del self._times[rid]
            await self._persist()
        logger.debug(f"Pruned {len(stale)} stale recency entries")
        return len(stale)

    def snapshot(self) -> Mapping[int, int]:
        """Read-only copy of the current map."""
        return MappingProxyType(dict(self._times))

    def get(self, resource_id: int) -> Optional[int]:
        return self._times.get(resource_id)

    async def reconcile(
        self,
        open_resources: Iterable[ResourceRecord],
        focused_id: Optional[int] = None,
    ) -> Mapping[int, int]:
        """Merge persisted state with the live resource set.

        This is the only path from storage into live state. Persisted
        stamps survive for resources still open; new normal resources get
        ``now - idle_threshold/2``; new ephemeral resources get 0; the
        focused resource is always stamped now; everything else is dropped.

        Args:
            open_resources: Resources currently open.
            focused_id: Id of the focused resource, if any.

        Returns:
            Snapshot of the reconciled map.
        """
        now = self.clock.now_ms()
        half_idle = now - self.idle_threshold_ms // 2

        async with self._lock:
            persisted = await self._load()
            reconciled: Dict[int, int] = {}
            fresh = 0

            for resource in open_resources:
                if resource.id == focused_id:
                    reconciled[resource.id] = now
                elif resource.id in persisted:
                    reconciled[resource.id] = persisted[resource.id]
                elif self.classifier.is_ephemeral(resource):
                    reconciled[resource.id] = 0
                    fresh += 1
                else:
                    reconciled[resource.id] = half_idle
                    fresh += 1

            self._times = reconciled
            await self._persist()

        logger.info(
            f"Reconciled recency for {len(reconciled)} resources "
            f"({fresh} newly seen, {len(persisted)} persisted)"
        )
        return self.snapshot()

    async def _load(self) -> Dict[int, int]:
        """Read the persisted map, tolerating malformed entries."""
        try:
            data = await self.store.get(LOCAL_SCOPE, {RECENCY_KEY: {}})
        except Exception as e:
            logger.warning(f"Failed to load recency map, starting empty: {e}")
            return {}

        raw: Any = data.get(RECENCY_KEY) or {}
        if not isinstance(raw, dict):
            return {}

        loaded: Dict[int, int] = {}
        for key, value in raw.items():
            try:
                loaded[int(key)] = int(value)
            except (TypeError, ValueError):
                continue
        return loaded

    async def _persist(self) -> None:
        """Write the map. Failures are logged and otherwise unobserved."""
        try:
            await self.store.set(
                LOCAL_SCOPE,
                {RECENCY_KEY: {str(rid): stamp for rid, stamp in self._times.items()}},
            )
        except Exception as e:
            logger.warning(f"Failed to persist recency map: {e}")
