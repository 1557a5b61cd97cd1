# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Tests for the eviction policy engine."""

import pytest

from tab_reclaimer.errors import ResourceNotFoundError
from tab_reclaimer.hosts.html import HtmlDocumentView
from tab_reclaimer.schemas import Tier


class TestUnderCapacity:
    """Tests for cycles that have nothing to do."""

    @pytest.mark.asyncio
    async def test_noop_within_capacity(self, make_service, directory):
        """Nothing is closed while the open count is within capacity."""
        service = make_service(capacity=3)
        for i in range(3):
            directory.open(f"https://example.com/{i}", title=f"Page {i}")

        report = await service.engine.run_cycle()

        assert report.status == "noop"
        assert report.target == 0
        assert directory.removed == []

    @pytest.mark.asyncio
    async def test_noop_prunes_stale_recency(self, make_service, directory):
        """Entries for closed resources are dropped even without evictions."""
        service = make_service(capacity=5)
        tab = directory.open("https://example.com", title="Example")
        await service.recency.touch(tab.id)
        await service.recency.touch(999)

        await service.engine.run_cycle()

        assert set(service.recency.snapshot()) == {tab.id}


class TestEvictionOrder:
    """Tests for tier priority and idle ordering."""

    @pytest.mark.asyncio
    async def test_ephemeral_first(self, make_service, directory, clock):
        """When the target fits in the ephemeral tier only ephemeral resources close."""
        service = make_service(capacity=3)
        old = directory.open("https://old.example.com", title="Old")
        await service.recency.touch(old.id)
        clock.advance(hours=10)
        blank = directory.open("about:blank")
        new_tab = directory.open("chrome://newtab/", title="New Tab")
        directory.open("https://example.com/a", title="A")
        directory.open("https://example.com/b", title="B")

        report = await service.engine.run_cycle()

        assert report.status == "complete"
        assert report.target == 2
        assert report.ephemeral_closed == 2
        assert sorted(directory.removed) == sorted([blank.id, new_tab.id])

    @pytest.mark.asyncio
    async def test_oldest_idle_first(self, make_service, directory, probes, clock):
        """Eligible normal resources close in order of last access."""
        service = make_service(capacity=1, idle_threshold_hours=1)
        tabs = [directory.open(f"https://example.com/{i}", title=f"Page {i}") for i in range(4)]
        # Touch out of id order: 2, 0, 3, 1
        for index in (2, 0, 3, 1):
            await service.recency.touch(tabs[index].id)
            clock.advance(minutes=1)
        clock.advance(hours=2)
        for tab in tabs:
            probes.set_frames(tab.id, [HtmlDocumentView("<p>read only</p>")])

        report = await service.engine.run_cycle()

        assert report.evicted_ids == [tabs[2].id, tabs[0].id, tabs[3].id]
        assert directory.get(tabs[1].id) is not None

    @pytest.mark.asyncio
    async def test_not_idle_is_kept(self, make_service, directory, clock):
        """Resources below the idle threshold survive and the cycle is partial."""
        service = make_service(capacity=1, idle_threshold_hours=2)
        for i in range(3):
            tab = directory.open(f"https://example.com/{i}", title=f"Page {i}")
            await service.recency.touch(tab.id)
        clock.advance(hours=1)

        report = await service.engine.run_cycle()

        assert report.status == "partial"
        assert report.skipped_not_idle == 3
        assert report.shortfall == 2
        assert directory.removed == []


class TestProtection:
    """Tests for the exclusion heuristics inside a cycle."""

    @pytest.mark.asyncio
    async def test_protected_resource_never_evicted(self, make_service, directory, probes, clock):
        """A resource with an editor open is skipped however long it was idle."""
        service = make_service(capacity=1, idle_threshold_hours=1)
        editing = directory.open("https://docs.example.com/d/1", title="Quarterly plan")
        reading = directory.open("https://news.example.com", title="News")
        await service.recency.touch(editing.id)
        clock.advance(minutes=5)
        await service.recency.touch(reading.id)
        clock.advance(hours=24)
        probes.set_frames(editing.id, [HtmlDocumentView('<div class="kix-appview-editor"></div>')])
        probes.set_frames(reading.id, [HtmlDocumentView("<article>story</article>")])

        report = await service.engine.run_cycle()

        assert report.skipped_protected == [(editing.id, "office_suite:.kix-appview-editor")]
        assert report.evicted_ids == [reading.id]
        assert directory.get(editing.id) is not None

    @pytest.mark.asyncio
    async def test_title_keyword_protects(self, make_service, directory, clock):
        """A compose title protects without a probe."""
        service = make_service(capacity=1)
        for tab in (
            directory.open("https://mail.example.com", title="Compose - Mail"),
            directory.open("https://example.com", title="Example"),
        ):
            await service.recency.touch(tab.id)
        clock.advance(hours=24)

        report = await service.engine.run_cycle()

        assert report.closed_count == 1
        assert report.skipped_protected[0][1] == "title:compose"

    @pytest.mark.asyncio
    async def test_all_protected_is_partial(self, make_service, directory, clock):
        """A cycle that cannot reach its target reports partial and does not raise."""
        service = make_service(capacity=1)
        for tab in (
            directory.open("https://a.example.com", title="Edit post"),
            directory.open("https://b.example.com", title="Reply to thread"),
        ):
            await service.recency.touch(tab.id)
        clock.advance(hours=5)

        report = await service.engine.run_cycle()

        assert report.status == "partial"
        assert report.closed_count == 0
        assert len(report.skipped_protected) == 2


class TestEvictionSideEffects:
    """Tests for journaling, recency cleanup and the indicator."""

    @pytest.mark.asyncio
    async def test_resource_opened_during_cycle_keeps_recency(
        self, make_service, directory, probes, clock
    ):
        """A resource opened while the cycle awaits a probe keeps its recency key."""
        service = make_service(capacity=1, idle_threshold_hours=1)
        editing = directory.open("https://a.example.com", title="Edit draft")
        stale = directory.open("https://b.example.com", title="Stale")
        await service.recency.touch(editing.id)
        await service.recency.touch(stale.id)
        clock.advance(hours=5)

        run_probe = probes.run_probe
        late = []

        async def open_late_then_probe(resource_id, predicate):
            if not late:
                record = directory.open("https://late.example.com", title="Late")
                late.append(record)
                await service.scheduler.on_load_complete(record.id, record)
            return await run_probe(resource_id, predicate)

        probes.run_probe = open_late_then_probe
        report = await service.engine.run_cycle()

        assert report.evicted_ids == [stale.id]
        assert service.recency.get(late[0].id) == clock.now_ms()

        clock.advance(hours=10)
        report = await service.engine.run_cycle()

        assert report.evicted_ids == [late[0].id]

    @pytest.mark.asyncio
    async def test_vanished_resource_still_counts(self, make_service, directory):
        """A resource that disappears before removal is journaled and forgotten."""
        service = make_service(capacity=1)
        blank = directory.open("about:blank")
        directory.open("https://example.com", title="Example")
        await service.recency.touch(blank.id, Tier.EPHEMERAL)

        async def remove_gone(resource_id):
            directory.discard(resource_id)
            raise ResourceNotFoundError(resource_id)

        directory.remove = remove_gone
        report = await service.engine.run_cycle()

        assert report.closed_count == 1
        assert [e.url for e in await service.journal.entries()] == ["about:blank"]
        assert service.recency.get(blank.id) is None

    @pytest.mark.asyncio
    async def test_indicator_shows_unread(self, make_service, directory, indicator):
        """After evictions the indicator shows the unread journal count."""
        service = make_service(capacity=1)
        directory.open("about:blank")
        directory.open("about:blank")
        directory.open("https://example.com", title="Example")

        await service.engine.run_cycle()

        assert indicator.count == 2

    @pytest.mark.asyncio
    async def test_report_to_dict(self, make_service, directory):
        service = make_service(capacity=1)
        directory.open("about:blank")
        directory.open("https://example.com", title="Example")

        data = (await service.engine.run_cycle()).to_dict()

        assert data["status"] == "complete"
        assert data["shortfall"] == 0
        assert data["evicted_ids"] == [1]


@pytest.mark.integration
class TestEndToEnd:
    """Full cycle over a mixed set of resources."""

    @pytest.mark.asyncio
    async def test_end_to_end_cycle(self, make_service, directory, probes, clock):
        """Ephemeral and idle resources close; a recently used one stays."""
        service = make_service(capacity=1, idle_threshold_hours=4)
        blank = directory.open("about:blank")
        stale = directory.open("https://example.com/stale", title="Stale")
        recent = directory.open("https://example.com/recent", title="Recent")

        await service.recency.touch(blank.id, Tier.EPHEMERAL)
        await service.recency.touch(stale.id)
        clock.advance(hours=4)
        await service.recency.touch(recent.id)
        clock.advance(hours=1)
        probes.set_frames(stale.id, [HtmlDocumentView("<p>old</p>")])

        report = await service.engine.run_cycle()

        assert report.evicted_ids == [blank.id, stale.id]
        assert report.status == "complete"
        assert [r.id for r in await directory.list_open()] == [recent.id]
        assert len(await service.journal.entries()) == 2

    @pytest.mark.asyncio
    async def test_end_to_end_capacity_two_closes_only_ephemeral(
        self, make_service, directory, clock
    ):
        """With capacity two the same mix only needs the ephemeral resource closed."""
        service = make_service(capacity=2, idle_threshold_hours=4)
        blank = directory.open("about:blank")
        stale = directory.open("https://example.com/stale", title="Stale")
        directory.open("https://example.com/recent", title="Recent")
        await service.recency.touch(stale.id)
        clock.advance(hours=5)

        report = await service.engine.run_cycle()

        assert report.evicted_ids == [blank.id]
        assert report.status == "complete"
