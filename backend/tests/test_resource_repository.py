"""
FolioScan Backend — Resource Repository Tests
==============================================

What:  Owner-scoped CRUD over folders and notes against in-memory SQLite.

Test Strategy:
    ✅ Create assigns id, timestamps and the root parent
    ✅ Blank names rejected before any session is opened
    ✅ Ownership: another owner's row behaves exactly like a missing row
    ✅ Listing is per-parent and per-owner
    ✅ Search is case-insensitive, literal and short-circuits on ""
    ✅ Store errors surface as StorageUnavailableError
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from conftest import OWNER_A, OWNER_B
from folioscan.exceptions import NotFoundError, StorageUnavailableError, ValidationError
from folioscan.models.folder import ROOT_PARENT


class TestCreateAndGet:
    """create() / get() round trips."""

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_timestamps(self, folder_repo):
        folder = await folder_repo.create(OWNER_A, "Receipts")

        assert len(folder.id) == 32
        assert folder.parent_id == ROOT_PARENT
        assert folder.owner_id == OWNER_A
        assert folder.created_at is not None
        assert folder.updated_at is not None

    @pytest.mark.asyncio
    async def test_create_strips_name(self, folder_repo):
        folder = await folder_repo.create(OWNER_A, "  Taxes 2024  ")
        assert folder.name == "Taxes 2024"

    @pytest.mark.asyncio
    async def test_blank_name_rejected_without_store_access(self, folder_repo, session_factory):
        with pytest.raises(ValidationError, match="empty"):
            await folder_repo.create(OWNER_A, "   ")
        assert session_factory.opened == 0

    @pytest.mark.asyncio
    async def test_get_returns_owned_row(self, folder_repo):
        created = await folder_repo.create(OWNER_A, "Letters")
        fetched = await folder_repo.get(OWNER_A, created.id)
        assert fetched.id == created.id
        assert fetched.name == "Letters"

    @pytest.mark.asyncio
    async def test_get_other_owner_is_not_found(self, folder_repo):
        created = await folder_repo.create(OWNER_A, "Private")
        with pytest.raises(NotFoundError):
            await folder_repo.get(OWNER_B, created.id)

    @pytest.mark.asyncio
    async def test_note_keeps_blob_ref(self, note_repo):
        note = await note_repo.create(OWNER_A, "scan.png", ROOT_PARENT, blob_ref="2024/01/01/abc.png")
        fetched = await note_repo.get(OWNER_A, note.id)
        assert fetched.blob_ref == "2024/01/01/abc.png"
        assert fetched.public_url == ""


class TestListChildren:

    @pytest.mark.asyncio
    async def test_lists_only_direct_children_of_owner(self, folder_repo):
        parent = await folder_repo.create(OWNER_A, "Parent")
        child_1 = await folder_repo.create(OWNER_A, "Child 1", parent.id)
        child_2 = await folder_repo.create(OWNER_A, "Child 2", parent.id)
        await folder_repo.create(OWNER_A, "Grandchild", child_1.id)
        await folder_repo.create(OWNER_B, "Intruder", parent.id)

        children = await folder_repo.list_children(OWNER_A, parent.id)

        assert [c.id for c in children] == [child_1.id, child_2.id]

    @pytest.mark.asyncio
    async def test_empty_parent_lists_roots(self, folder_repo):
        root = await folder_repo.create(OWNER_A, "Root")
        await folder_repo.create(OWNER_A, "Nested", root.id)

        roots = await folder_repo.list_children(OWNER_A, "")

        assert [f.id for f in roots] == [root.id]

    @pytest.mark.asyncio
    async def test_no_children_is_empty_list(self, folder_repo):
        assert await folder_repo.list_children(OWNER_A, "0" * 32) == []


class TestRenameAndDelete:

    @pytest.mark.asyncio
    async def test_rename_changes_name_only(self, folder_repo):
        parent = await folder_repo.create(OWNER_A, "Parent")
        folder = await folder_repo.create(OWNER_A, "Old", parent.id)

        await folder_repo.rename(OWNER_A, folder.id, "New")

        renamed = await folder_repo.get(OWNER_A, folder.id)
        assert renamed.name == "New"
        assert renamed.parent_id == parent.id
        assert renamed.owner_id == OWNER_A

    @pytest.mark.asyncio
    async def test_rename_other_owner_is_not_found(self, folder_repo):
        folder = await folder_repo.create(OWNER_A, "Mine")
        with pytest.raises(NotFoundError):
            await folder_repo.rename(OWNER_B, folder.id, "Stolen")
        assert (await folder_repo.get(OWNER_A, folder.id)).name == "Mine"

    @pytest.mark.asyncio
    async def test_rename_blank_rejected(self, folder_repo):
        folder = await folder_repo.create(OWNER_A, "Keep")
        with pytest.raises(ValidationError):
            await folder_repo.rename(OWNER_A, folder.id, "")

    @pytest.mark.asyncio
    async def test_delete_removes_exactly_one_row(self, folder_repo):
        parent = await folder_repo.create(OWNER_A, "Parent")
        child = await folder_repo.create(OWNER_A, "Child", parent.id)

        assert await folder_repo.delete(OWNER_A, parent.id) is True

        with pytest.raises(NotFoundError):
            await folder_repo.get(OWNER_A, parent.id)
        # Descendants are the cascade engine's job, not delete()'s
        assert (await folder_repo.get(OWNER_A, child.id)).id == child.id

    @pytest.mark.asyncio
    async def test_delete_missing(self, folder_repo):
        with pytest.raises(NotFoundError):
            await folder_repo.delete(OWNER_A, "f" * 32)
        assert await folder_repo.delete(OWNER_A, "f" * 32, missing_ok=True) is False

    @pytest.mark.asyncio
    async def test_delete_other_owner_leaves_row(self, folder_repo):
        folder = await folder_repo.create(OWNER_A, "Mine")
        with pytest.raises(NotFoundError):
            await folder_repo.delete(OWNER_B, folder.id)
        assert (await folder_repo.get(OWNER_A, folder.id)).id == folder.id

    @pytest.mark.asyncio
    async def test_delete_in_folder_is_owner_scoped(self, folder_repo, note_repo):
        folder = await folder_repo.create(OWNER_A, "Inbox")
        await note_repo.create(OWNER_A, "a.jpg", folder.id)
        await note_repo.create(OWNER_A, "b.jpg", folder.id)
        foreign = await note_repo.create(OWNER_B, "c.jpg", folder.id)

        removed = await note_repo.delete_in_folder(OWNER_A, folder.id)

        assert removed == 2
        assert await note_repo.list_children(OWNER_A, folder.id) == []
        assert (await note_repo.get(OWNER_B, foreign.id)).id == foreign.id
        assert await note_repo.delete_in_folder(OWNER_A, folder.id) == 0


class TestSearch:

    @pytest.mark.asyncio
    async def test_case_insensitive_substring(self, folder_repo):
        await folder_repo.create(OWNER_A, "Tax Returns")
        await folder_repo.create(OWNER_A, "Syntax notes")
        await folder_repo.create(OWNER_A, "Recipes")

        results = await folder_repo.search(OWNER_A, "TAX")

        assert sorted(f.name for f in results) == ["Syntax notes", "Tax Returns"]

    @pytest.mark.asyncio
    async def test_wildcards_are_literal(self, folder_repo):
        await folder_repo.create(OWNER_A, "100% done")
        await folder_repo.create(OWNER_A, "1000 things")

        results = await folder_repo.search(OWNER_A, "0%")

        assert [f.name for f in results] == ["100% done"]

    @pytest.mark.asyncio
    async def test_scoped_to_owner(self, folder_repo):
        await folder_repo.create(OWNER_B, "Shared name")
        assert await folder_repo.search(OWNER_A, "shared") == []

    @pytest.mark.asyncio
    async def test_empty_substring_opens_no_session(self, folder_repo, session_factory):
        assert await folder_repo.search(OWNER_A, "") == []
        assert session_factory.opened == 0


class TestStoreErrors:

    @pytest.mark.asyncio
    async def test_driver_error_becomes_storage_unavailable(self, folder_repo):
        with patch(
            "sqlalchemy.ext.asyncio.AsyncSession.execute",
            side_effect=OperationalError("SELECT", {}, Exception("connection lost")),
        ):
            with pytest.raises(StorageUnavailableError) as exc_info:
                await folder_repo.list_children(OWNER_A, "")

        assert "connection lost" not in exc_info.value.message
        assert exc_info.value.context["operation"] == "folder.list_children"
