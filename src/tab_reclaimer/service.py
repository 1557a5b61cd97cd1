# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Reclaimer service: component wiring and the control surface.

Builds the reclamation components from host collaborators and exposes
the operations the report surface calls:

- restore_recently_closed(): reopen every unread journal entry
- open_report(): mark the journal read and clear the indicator
- open_entry(url): reopen one journaled address and mark it read
- close_all(): journal and close every regular resource at once
- handle_message(): request/response entry point for the above
"""

import logging
from typing import Any, Dict, List, Optional

from tab_reclaimer.clock import Clock
from tab_reclaimer.config import ReclaimerConfig
from tab_reclaimer.errors import ResourceNotFoundError
from tab_reclaimer.protocols import (
    ContentProbeService,
    Indicator,
    KeyValueStore,
    ResourceDirectory,
    TriggerService,
)
from tab_reclaimer.reclamation.classifier import Classifier
from tab_reclaimer.reclamation.exclusion import ExclusionHeuristicRunner
from tab_reclaimer.reclamation.journal import EvictionJournal
from tab_reclaimer.reclamation.policy import EvictionPolicyEngine
from tab_reclaimer.reclamation.recency import RecencyTracker
from tab_reclaimer.reclamation.scheduler import CycleScheduler
from tab_reclaimer.schemas import AggregatedJournalEntry, JournalEntry

logger = logging.getLogger(__name__)

# Pages belonging to the host extension itself are never closed by close_all
EXTENSION_URL_PREFIXES = ("chrome-extension://", "moz-extension://", "extension://")
NEW_RESOURCE_URL = "chrome://newtab"

ACTION_RESTORE = "restoreRecentTabs"
ACTION_OPEN_REPORT = "openReport"
ACTION_CLOSE_ALL = "closeAllTabs"


class ReclaimerService:
    """
    Wires the reclamation engine to host collaborators.

    Example:
        service = ReclaimerService(directory, probes, store, triggers, indicator=badge)
        await service.start()
        response = await service.handle_message({"action": "restoreRecentTabs"})
        # {"success": True, "restored_count": 3}
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        probe_service: ContentProbeService,
        store: KeyValueStore,
        triggers: TriggerService,
        config: Optional[ReclaimerConfig] = None,
        indicator: Optional[Indicator] = None,
        clock: Optional[Clock] = None,
    ):
        config = config or ReclaimerConfig()
        self.clock = clock or Clock()
        self.directory = directory
        self.indicator = indicator

        self.classifier = Classifier(
            extra_urls=config.extra_placeholder_urls,
            extra_titles=config.extra_placeholder_titles,
        )
        self.recency = RecencyTracker(
            store, config.idle_threshold_ms, clock=self.clock, classifier=self.classifier
        )
        self.exclusion = ExclusionHeuristicRunner(
            probe_service, probe_timeout_seconds=config.probe_timeout_seconds
        )
        self.journal = EvictionJournal(store, max_entries=config.journal_max_entries)
        self.engine = EvictionPolicyEngine(
            directory,
            self.recency,
            self.classifier,
            self.exclusion,
            self.journal,
            config,
            clock=self.clock,
            indicator=indicator,
        )
        self.scheduler = CycleScheduler(self.engine, directory, store, triggers)

    async def start(self) -> None:
        await self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()

    async def restore_recently_closed(self) -> Dict[str, int]:
        """Reopen every unread journal entry in the background.

        Returns:
            {"restored_count": n}; n is 0 when nothing is unread.
        """
        entries = await self.journal.restore_unread()
        restored = 0
        for entry in entries:
            try:
                await self.directory.create(entry.url, active=False)
                restored += 1
            except Exception as e:
                logger.warning(f"Failed to reopen {entry.url}: {e}")
        self._clear_indicator()
        return {"restored_count": restored}

    async def open_report(self) -> List[AggregatedJournalEntry]:
        """Return the aggregated journal as it was, then mark it read.

        Rows keep their unread state in the returned view so the
        report can highlight what is new.
        """
        rows = await self.journal.aggregate()
        await self.journal.mark_all_read()
        self._clear_indicator()
        return rows

    async def open_entry(self, url: str) -> None:
        """Reopen a journaled address and mark its entries read."""
        await self.journal.mark_read(url)
        await self.directory.create(url, active=True)

    async def close_all(self) -> Dict[str, int]:
        """Journal every regular resource and close all but one.

        The last regular resource is navigated to the new-resource page
        instead of being closed, so the window stays open.

        Returns:
            {"closed_count": n} where n counts every journaled resource.
        """
        resources = [
            r for r in await self.directory.list_open()
            if not r.url.startswith(EXTENSION_URL_PREFIXES)
        ]
        if not resources:
            return {"closed_count": 0}

        now = self.clock.now_ms()
        for resource in resources:
            await self.journal.record(
                JournalEntry(title=resource.title, url=resource.url, closed_at=now)
            )

        *to_close, last = resources
        for resource in to_close:
            try:
                await self.directory.remove(resource.id)
            except ResourceNotFoundError:
                logger.debug(f"Resource {resource.id} already gone")
            await self.recency.forget(resource.id)
        await self.directory.update(last.id, NEW_RESOURCE_URL)

        if self.indicator is not None:
            self.indicator.set_count(len(resources))
        logger.info(f"Closed all {len(resources)} resources")
        return {"closed_count": len(resources)}

    async def handle_message(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """
        Request/response entry point for the control surface.

        Args:
            message: {"action": <name>}

        Returns:
            {"success": True, ...} or {"success": False, "error": str}
        """
        action = message.get("action") if isinstance(message, dict) else None
        try:
            if action == ACTION_RESTORE:
                return {"success": True, **await self.restore_recently_closed()}
            if action == ACTION_OPEN_REPORT:
                rows = await self.open_report()
                return {"success": True, "entries": [r.model_dump() for r in rows]}
            if action == ACTION_CLOSE_ALL:
                return {"success": True, **await self.close_all()}
        except Exception as e:
            logger.error(f"Control action {action} failed: {e}")
            return {"success": False, "error": str(e)}
        return {"success": False, "error": f"Unknown action: {action}"}

    def _clear_indicator(self) -> None:
        if self.indicator is not None:
            self.indicator.clear()
