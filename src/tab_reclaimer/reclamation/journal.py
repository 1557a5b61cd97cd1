# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Eviction journal.

Append-only record of evicted resources, persisted in the local scope.
Entries are folded by url on read, tracked as read/unread, and unread
entries can be handed back for reopening.
"""

import asyncio
import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from tab_reclaimer.config import DEFAULT_JOURNAL_MAX_ENTRIES
from tab_reclaimer.protocols import LOCAL_SCOPE, KeyValueStore
from tab_reclaimer.schemas import AggregatedJournalEntry, JournalEntry

logger = logging.getLogger(__name__)

JOURNAL_KEY = "journal_entries"
DEFAULT_SEARCH_LIMIT = 100


def aggregate_entries(entries: List[JournalEntry]) -> List[AggregatedJournalEntry]:
    """Fold journal entries by url.

    Title and read state come from the most recent entry for each url.
    The result is sorted by last close time, newest first.

    Args:
        entries: Journal entries in any order.

    Returns:
        One aggregated row per url.

    Example:
        >>> rows = aggregate_entries([
        ...     JournalEntry(url="A", closed_at=10),
        ...     JournalEntry(url="A", closed_at=20),
        ...     JournalEntry(url="B", closed_at=15),
        ... ])
        >>> [(r.url, r.count, r.last_closed_at) for r in rows]
        [('A', 2, 20), ('B', 1, 15)]
    """
    rows: Dict[str, Dict[str, Any]] = {}
    for entry in entries:
        row = rows.get(entry.url)
        if row is None:
            rows[entry.url] = {
                "url": entry.url,
                "title": entry.title,
                "count": 1,
                "last_closed_at": entry.closed_at,
                "closed_times": [entry.closed_at],
                "is_read": entry.is_read,
            }
            continue
        row["count"] += 1
        row["closed_times"].append(entry.closed_at)
        if entry.closed_at > row["last_closed_at"]:
            row["last_closed_at"] = entry.closed_at
            row["title"] = entry.title
            row["is_read"] = entry.is_read

    aggregated = [AggregatedJournalEntry(**row) for row in rows.values()]
    aggregated.sort(key=lambda r: r.last_closed_at, reverse=True)
    return aggregated


class EvictionJournal:
    """Durable log of evicted resources.

    Every read-modify-write runs under one lock. The journal keeps at most
    ``max_entries`` entries; the oldest are dropped first.

    Attributes:
        store: Key-value store holding the entries.
        max_entries: Retention cap.

    Example:
        >>> journal = EvictionJournal(store)
        >>> await journal.record(JournalEntry(title="Docs", url="https://a", closed_at=now))
        >>> restored = await journal.restore_unread()
    """

    def __init__(self, store: KeyValueStore, max_entries: int = DEFAULT_JOURNAL_MAX_ENTRIES):
        self.store = store
        self.max_entries = max_entries
        self._lock = asyncio.Lock()

    async def _load(self) -> List[JournalEntry]:
        data = await self.store.get(LOCAL_SCOPE, {JOURNAL_KEY: []})
        raw = data.get(JOURNAL_KEY) or []
        if not isinstance(raw, list):
            return []

        entries = []
        for item in raw:
            try:
                entries.append(JournalEntry.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Dropping malformed journal entry: {e.error_count()} errors")
        return entries

    async def _save(self, entries: List[JournalEntry]) -> None:
        try:
            await self.store.set(LOCAL_SCOPE, {JOURNAL_KEY: [e.to_storage() for e in entries]})
        except Exception as e:
            logger.warning(f"Failed to persist journal ({len(entries)} entries): {e}")

    def _apply_retention(self, entries: List[JournalEntry]) -> List[JournalEntry]:
        if len(entries) <= self.max_entries:
            return entries
        # Stable sort keeps insertion order among equal close times
        ordered = sorted(entries, key=lambda e: e.closed_at)
        dropped = len(ordered) - self.max_entries
        logger.debug(f"Journal retention dropped {dropped} oldest entries")
        return ordered[dropped:]

    async def record(self, entry: JournalEntry) -> None:
        """Append an entry and enforce the retention cap."""
        async with self._lock:
            entries = await self._load()
            entries.append(entry)
            await self._save(self._apply_retention(entries))
        logger.debug(f"Journaled eviction of {entry.url}")

    async def entries(self) -> List[JournalEntry]:
        """All entries in insertion order."""
        return await self._load()

    async def aggregate(self) -> List[AggregatedJournalEntry]:
        """Entries folded by url, newest first. Recomputed on every call."""
        return aggregate_entries(await self._load())

    async def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> List[AggregatedJournalEntry]:
        """Filter the aggregated view.

        Every whitespace-separated term must appear in the title or url.
        An empty query returns the newest rows.

        Args:
            query: Search text.
            limit: Maximum rows returned.

        Returns:
            Matching aggregated rows, newest first.
        """
        rows = await self.aggregate()
        terms = [t for t in query.casefold().split() if t]
        if terms:
            rows = [
                r
                for r in rows
                if all(t in r.title.casefold() or t in r.url.casefold() for t in terms)
            ]
        return rows[:limit]

    async def unread_count(self) -> int:
        return sum(1 for e in await self._load() if not e.is_read)

    async def mark_all_read(self) -> int:
        """Mark every entry read.

        Returns:
            Number of entries that changed.
        """
        async with self._lock:
            entries = await self._load()
            changed = sum(1 for e in entries if not e.is_read)
            if changed:
                for entry in entries:
                    entry.is_read = True
                await self._save(entries)
        return changed

    async def mark_read(self, url: str) -> int:
        """Mark every unread entry for one url read."""
        async with self._lock:
            entries = await self._load()
            changed = 0
            for entry in entries:
                if entry.url == url and not entry.is_read:
                    entry.is_read = True
                    changed += 1
            if changed:
                await self._save(entries)
        return changed

    async def restore_unread(self) -> List[JournalEntry]:
        """Return unread entries for reopening, then mark everything read.

        Returns:
            Copies of the entries that were unread, in insertion order.
        """
        async with self._lock:
            entries = await self._load()
            unread = [e.model_copy() for e in entries if not e.is_read]
            if unread:
                for entry in entries:
                    entry.is_read = True
                await self._save(entries)
        logger.info(f"Restoring {len(unread)} unread journal entries")
        return unread
