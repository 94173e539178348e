"""
FolioScan Backend — Search Aggregator Tests
============================================

What:  SearchService fan-out, merge order and degradation.

Test Strategy:
    ✅ Empty query short-circuits (no session opened)
    ✅ Folders first, then notes; owner-scoped
    ✅ One lookup failing (any exception type) or timing out → the other's results only
    ✅ Both failing → [] (never an error)
    ✅ The two lookups really run concurrently
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import OWNER_A, OWNER_B
from folioscan.exceptions import StorageUnavailableError
from folioscan.services.search_service import SearchResult, SearchService


def _row(row_id, name, **extra):
    row = MagicMock()
    row.id = row_id
    row.name = name
    row.created_at = None
    row.parent_id = extra.get("parent_id", "")
    row.folder_id = extra.get("folder_id", "")
    row.blob_ref = extra.get("blob_ref", "")
    return row


class TestSearchAgainstStore:
    """SearchService wired to the real repositories."""

    @pytest.mark.asyncio
    async def test_empty_query_touches_nothing(self, services, session_factory):
        assert await services.search_service.search(OWNER_A, "") == []
        assert session_factory.opened == 0

    @pytest.mark.asyncio
    async def test_folders_then_notes(self, services):
        folder = await services.folders.create(OWNER_A, "Invoices")
        note = await services.notes.create(OWNER_A, "invoice-march.jpg", folder.id, blob_ref="x.jpg")
        await services.folders.create(OWNER_B, "Invoices of B")

        results = await services.search_service.search(OWNER_A, "invoice")

        assert [(r.kind, r.id) for r in results] == [("folder", folder.id), ("note", note.id)]
        assert results[0].parent_id == ""
        assert results[1].folder_id == folder.id
        assert results[1].blob_ref == "x.jpg"

    @pytest.mark.asyncio
    async def test_no_match(self, services):
        await services.folders.create(OWNER_A, "Recipes")
        assert await services.search_service.search(OWNER_A, "tax") == []


class TestSearchDegradation:
    """SearchService with fake repositories."""

    def setup_method(self):
        self.folders = MagicMock()
        self.notes = MagicMock()
        self.folders.search = AsyncMock(return_value=[_row("f1", "Tax 2023")])
        self.notes.search = AsyncMock(return_value=[_row("n1", "tax.png", folder_id="f1", blob_ref="r")])
        self.service = SearchService(self.folders, self.notes, timeout=0.5)

    @pytest.mark.asyncio
    async def test_both_succeed(self):
        results = await self.service.search(OWNER_A, "tax")

        assert [r.id for r in results] == ["f1", "n1"]
        assert isinstance(results[0], SearchResult)
        self.folders.search.assert_awaited_once_with(OWNER_A, "tax")
        self.notes.search.assert_awaited_once_with(OWNER_A, "tax")

    @pytest.mark.asyncio
    async def test_empty_query_calls_no_repository(self):
        assert await self.service.search(OWNER_A, "") == []
        self.folders.search.assert_not_awaited()
        self.notes.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_note_lookup_failure_keeps_folders(self):
        self.notes.search.side_effect = StorageUnavailableError(context={"operation": "note.search"})

        results = await self.service.search(OWNER_A, "tax")

        assert [(r.kind, r.id) for r in results] == [("folder", "f1")]

    @pytest.mark.asyncio
    async def test_folder_lookup_failure_keeps_notes(self):
        self.folders.search.side_effect = StorageUnavailableError()

        results = await self.service.search(OWNER_A, "tax")

        assert [(r.kind, r.id) for r in results] == [("note", "n1")]

    @pytest.mark.asyncio
    async def test_both_failing_is_empty_not_error(self):
        self.folders.search.side_effect = StorageUnavailableError()
        self.notes.search.side_effect = StorageUnavailableError()

        assert await self.service.search(OWNER_A, "tax") == []

    @pytest.mark.asyncio
    async def test_unexpected_exception_keeps_other_lookup(self):
        self.folders.search.side_effect = RuntimeError("driver blew up")

        results = await self.service.search(OWNER_A, "tax")

        assert [r.id for r in results] == ["n1"]

    @pytest.mark.asyncio
    async def test_unexpected_exceptions_on_both_sides(self):
        self.folders.search.side_effect = RuntimeError("driver blew up")
        self.notes.search.side_effect = KeyError("folderId")

        assert await self.service.search(OWNER_A, "tax") == []

    @pytest.mark.asyncio
    async def test_slow_lookup_times_out(self):
        async def stalled(owner_id, query):
            await asyncio.sleep(5)
            return [_row("late", "late")]

        self.folders.search = AsyncMock(side_effect=stalled)

        results = await self.service.search(OWNER_A, "tax", timeout=0.05)

        assert [r.id for r in results] == ["n1"]

    @pytest.mark.asyncio
    async def test_lookups_run_concurrently(self):
        """Each lookup waits for the other to start; sequential execution would time out."""
        folders_started = asyncio.Event()
        notes_started = asyncio.Event()

        async def folder_search(owner_id, query):
            folders_started.set()
            await notes_started.wait()
            return [_row("f1", "Tax")]

        async def note_search(owner_id, query):
            notes_started.set()
            await folders_started.wait()
            return [_row("n1", "tax.jpg")]

        self.folders.search = AsyncMock(side_effect=folder_search)
        self.notes.search = AsyncMock(side_effect=note_search)

        results = await self.service.search(OWNER_A, "tax", timeout=1.0)

        assert [r.id for r in results] == ["f1", "n1"]
