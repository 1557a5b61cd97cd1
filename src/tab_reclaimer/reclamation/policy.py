# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Eviction policy engine.

Runs one reclamation cycle: when more resources are open than the
configured capacity, closes ephemeral resources first and then idle
normal resources, oldest first, skipping any the exclusion heuristics
protect. A cycle that cannot reach its target reports a partial result
and never raises.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from tab_reclaimer.clock import Clock
from tab_reclaimer.config import ReclaimerConfig
from tab_reclaimer.errors import ResourceNotFoundError
from tab_reclaimer.protocols import Indicator, ResourceDirectory
from tab_reclaimer.reclamation.classifier import Classifier
from tab_reclaimer.reclamation.exclusion import ExclusionHeuristicRunner
from tab_reclaimer.reclamation.journal import EvictionJournal
from tab_reclaimer.reclamation.recency import RecencyTracker
from tab_reclaimer.schemas import JournalEntry, ResourceRecord

logger = logging.getLogger(__name__)

STATUS_NOOP = "noop"
STATUS_COMPLETE = "complete"
STATUS_PARTIAL = "partial"


@dataclass
class CycleReport:
    """
    Outcome of one reclamation cycle.

    Attributes:
        status: "noop" (under capacity), "complete" or "partial"
        open_count: Resources open when the cycle started
        capacity: Capacity in effect
        target: Evictions needed to reach capacity
        closed_count: Evictions performed
        ephemeral_closed: Evictions taken from the ephemeral tier
        checked_count: Normal resources examined
        skipped_not_idle: Normal resources below the idle threshold
        skipped_protected: (resource id, reason) for protected resources
        evicted_ids: Ids closed, in eviction order
        duration_ms: Wall time of the cycle
    """

    status: str
    open_count: int
    capacity: int
    target: int = 0
    closed_count: int = 0
    ephemeral_closed: int = 0
    checked_count: int = 0
    skipped_not_idle: int = 0
    skipped_protected: List[Tuple[int, Optional[str]]] = field(default_factory=list)
    evicted_ids: List[int] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def shortfall(self) -> int:
        return max(0, self.target - self.closed_count)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "status": self.status,
            "open_count": self.open_count,
            "capacity": self.capacity,
            "target": self.target,
            "closed_count": self.closed_count,
            "ephemeral_closed": self.ephemeral_closed,
            "checked_count": self.checked_count,
            "skipped_not_idle": self.skipped_not_idle,
            "skipped_protected": [
                {"id": rid, "reason": reason} for rid, reason in self.skipped_protected
            ],
            "evicted_ids": list(self.evicted_ids),
            "shortfall": self.shortfall,
            "duration_ms": self.duration_ms,
        }


class EvictionPolicyEngine:
    """Orchestrates a reclamation cycle.

    Attributes:
        directory: Host resource directory.
        recency: Recency tracker.
        classifier: Tier classifier.
        exclusion: Exclusion heuristic runner.
        journal: Eviction journal.
        config: Active configuration.
        indicator: Optional advisory badge.

    Example:
        >>> engine = EvictionPolicyEngine(directory, recency, classifier, exclusion, journal, config)
        >>> report = await engine.run_cycle()
        >>> print(f"Closed {report.closed_count}/{report.target}")
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        recency: RecencyTracker,
        classifier: Classifier,
        exclusion: ExclusionHeuristicRunner,
        journal: EvictionJournal,
        config: ReclaimerConfig,
        clock: Optional[Clock] = None,
        indicator: Optional[Indicator] = None,
    ):
        self.directory = directory
        self.recency = recency
        self.classifier = classifier
        self.exclusion = exclusion
        self.journal = journal
        self.config = config
        self.clock = clock or recency.clock
        self.indicator = indicator

    def order_candidates(
        self,
        resources: List[ResourceRecord],
        now: int,
    ) -> Tuple[List[ResourceRecord], List[Tuple[ResourceRecord, int]]]:
        """Split resources into eviction order.

        Args:
            resources: Open resources in enumeration order.
            now: Current time in epoch ms.

        Returns:
            (ephemeral resources in enumeration order,
             (normal resource, last accessed) pairs oldest first)
        """
        snapshot = self.recency.snapshot()
        ephemeral: List[ResourceRecord] = []
        normal: List[Tuple[ResourceRecord, int]] = []

        for resource in resources:
            if self.classifier.is_ephemeral(resource):
                ephemeral.append(resource)
            else:
                normal.append((resource, snapshot.get(resource.id, now)))

        # sorted() is stable, so ties keep enumeration order
        normal = sorted(normal, key=lambda pair: pair[1])
        return ephemeral, normal

    async def _evict(self, resource: ResourceRecord, now: int) -> None:
        """Journal, then remove, then forget one resource."""
        await self.journal.record(
            JournalEntry(title=resource.title, url=resource.url, closed_at=now)
        )
        try:
            await self.directory.remove(resource.id)
        except ResourceNotFoundError:
            logger.debug(f"Resource {resource.id} already gone before removal")
        await self.recency.forget(resource.id)

    async def _prune_recency(self, closed_ids: Set[int]) -> None:
        """Drop recency keys of resources that are no longer open.

        Re-enumerates instead of reusing the snapshot from the start of the
        cycle; resources opened and touched while the cycle was suspended
        keep their keys.
        """
        try:
            resources = await self.directory.list_open()
        except Exception as e:
            logger.warning(f"Skipping recency prune, cannot list resources: {e}")
            return
        await self.recency.prune(r.id for r in resources if r.id not in closed_ids)

    async def run_cycle(self) -> CycleReport:
        """Run one reclamation cycle.

        Returns:
            CycleReport describing what was evicted and what was skipped.
        """
        start_time = time.perf_counter()
        resources = await self.directory.list_open()
        now = self.clock.now_ms()
        capacity = self.config.capacity
        report = CycleReport(status=STATUS_NOOP, open_count=len(resources), capacity=capacity)

        if len(resources) <= capacity:
            await self._prune_recency(set())
            logger.debug(f"{len(resources)} open resources within capacity {capacity}")
            report.duration_ms = (time.perf_counter() - start_time) * 1000
            return report

        report.target = len(resources) - capacity
        logger.info(
            f"{len(resources)} open resources exceed capacity {capacity}, "
            f"closing up to {report.target}"
        )

        ephemeral, normal = self.order_candidates(resources, now)
        closed_ids = set()

        for resource in ephemeral:
            if report.closed_count >= report.target:
                break
            await self._evict(resource, now)
            report.closed_count += 1
            report.ephemeral_closed += 1
            report.evicted_ids.append(resource.id)
            closed_ids.add(resource.id)
            logger.debug(f"Closed ephemeral resource {resource.id}")

        idle_threshold_ms = self.config.idle_threshold_ms
        for resource, last_accessed in normal:
            if report.closed_count >= report.target:
                break

            idle_ms = now - last_accessed
            if idle_ms <= idle_threshold_ms:
                report.skipped_not_idle += 1
                logger.debug(
                    f"Keeping resource {resource.id}: idle {idle_ms // 60_000} min "
                    f"below threshold"
                )
                continue

            report.checked_count += 1
            verdict = await self.exclusion.evaluate(resource)
            if verdict.protected:
                report.skipped_protected.append((resource.id, verdict.reason))
                logger.debug(f"Keeping resource {resource.id}: in use ({verdict.reason})")
                continue

            await self._evict(resource, now)
            report.closed_count += 1
            report.evicted_ids.append(resource.id)
            closed_ids.add(resource.id)
            logger.debug(f"Closed resource {resource.id} idle {idle_ms // 60_000} min")

        await self._prune_recency(closed_ids)

        report.status = STATUS_COMPLETE if report.closed_count >= report.target else STATUS_PARTIAL
        report.duration_ms = (time.perf_counter() - start_time) * 1000

        if report.status == STATUS_PARTIAL:
            logger.info(
                f"Closed {report.closed_count} of {report.target} resources; "
                f"{len(report.skipped_protected)} protected, "
                f"{report.skipped_not_idle} not yet idle"
            )
        else:
            logger.info(f"Closed {report.closed_count} resources, capacity reached")

        await self._update_indicator()
        return report

    async def _update_indicator(self) -> None:
        if self.indicator is None:
            return
        try:
            unread = await self.journal.unread_count()
            if unread:
                self.indicator.set_count(unread)
            else:
                self.indicator.clear()
        except Exception as e:
            logger.warning(f"Failed to update indicator: {e}")
