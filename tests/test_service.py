# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Tests for the reclaimer service control surface."""

import pytest

from tab_reclaimer.schemas import JournalEntry


async def record(service, url, closed_at, is_read=False, title=""):
    await service.journal.record(
        JournalEntry(title=title, url=url, closed_at=closed_at, is_read=is_read)
    )


class TestRestore:
    """Tests for restoring recently closed resources."""

    @pytest.mark.asyncio
    async def test_restore_reopens_unread_in_background(self, make_service, directory, indicator):
        """Unread entries reopen inactive and the indicator clears."""
        service = make_service()
        await record(service, "https://a.example.com", 1)
        await record(service, "https://b.example.com", 2)
        await record(service, "https://old.example.com", 0, is_read=True)
        indicator.set_count(2)

        result = await service.restore_recently_closed()

        assert result == {"restored_count": 2}
        assert [r.url for r in directory.created] == ["https://a.example.com", "https://b.example.com"]
        assert not any(r.is_active for r in directory.created)
        assert indicator.count is None

    @pytest.mark.asyncio
    async def test_restore_with_nothing_unread(self, make_service):
        service = make_service()
        assert await service.restore_recently_closed() == {"restored_count": 0}

    @pytest.mark.asyncio
    async def test_restore_message(self, make_service):
        """The control surface answers with success and the count."""
        service = make_service()
        await record(service, "https://a.example.com", 1)

        response = await service.handle_message({"action": "restoreRecentTabs"})

        assert response == {"success": True, "restored_count": 1}


class TestReport:
    """Tests for opening the report surface."""

    @pytest.mark.asyncio
    async def test_open_report_marks_read(self, make_service, indicator):
        """Rows come back with their unread state, then everything is read."""
        service = make_service()
        await record(service, "https://a.example.com", 10, title="A")
        await record(service, "https://a.example.com", 20, title="A again")
        indicator.set_count(2)

        rows = await service.open_report()

        assert [(r.title, r.count, r.is_read) for r in rows] == [("A again", 2, False)]
        assert await service.journal.unread_count() == 0
        assert indicator.count is None

    @pytest.mark.asyncio
    async def test_open_entry(self, make_service, directory):
        """Opening one row reopens it in front and marks only it read."""
        service = make_service()
        await record(service, "https://a.example.com", 1)
        await record(service, "https://b.example.com", 2)

        await service.open_entry("https://a.example.com")

        assert directory.created[-1].url == "https://a.example.com"
        assert directory.created[-1].is_active
        assert await service.journal.unread_count() == 1

    @pytest.mark.asyncio
    async def test_open_report_message(self, make_service):
        service = make_service()
        await record(service, "https://a.example.com", 1, title="A")

        response = await service.handle_message({"action": "openReport"})

        assert response["success"] is True
        assert response["entries"][0]["url"] == "https://a.example.com"


class TestCloseAll:
    """Tests for closing every resource at once."""

    @pytest.mark.asyncio
    async def test_close_all_keeps_one_window(self, make_service, directory, indicator):
        """All regular resources are journaled; the last becomes a new-tab page."""
        service = make_service()
        first = directory.open("https://a.example.com", title="A")
        directory.open("chrome-extension://abc/popup.html", title="Popup")
        second = directory.open("https://b.example.com", title="B")
        last = directory.open("https://c.example.com", title="C")

        result = await service.close_all()

        assert result == {"closed_count": 3}
        assert directory.removed == [first.id, second.id]
        assert directory.get(last.id).url == "chrome://newtab"
        assert [e.url for e in await service.journal.entries()] == [
            "https://a.example.com",
            "https://b.example.com",
            "https://c.example.com",
        ]
        assert indicator.count == 3

    @pytest.mark.asyncio
    async def test_close_all_with_nothing_open(self, make_service):
        service = make_service()
        assert await service.handle_message({"action": "closeAllTabs"}) == {
            "success": True,
            "closed_count": 0,
        }


class TestHandleMessage:
    @pytest.mark.asyncio
    async def test_unknown_action(self, make_service):
        service = make_service()
        response = await service.handle_message({"action": "selfDestruct"})
        assert response == {"success": False, "error": "Unknown action: selfDestruct"}

    @pytest.mark.asyncio
    async def test_not_a_dict(self, make_service):
        service = make_service()
        response = await service.handle_message("restoreRecentTabs")
        assert response["success"] is False

    @pytest.mark.asyncio
    async def test_failure_is_reported(self, make_service, directory):
        """Host errors come back as an unsuccessful response."""
        service = make_service()
        directory.open("https://a.example.com", title="A")

        async def broken(resource_id, url):
            raise RuntimeError("window closed")

        directory.update = broken
        response = await service.handle_message({"action": "closeAllTabs"})

        assert response == {"success": False, "error": "window closed"}
