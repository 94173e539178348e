"""
FolioScan Backend — Note Service Unit Tests
============================================

What:  Tests for the NoteService workflows: create with upload, list,
       rename, delete and the image proxy.
How:   Real repositories on in-memory SQLite and a LocalBlobStore in a temp
       directory; failures are injected with unittest.mock.

Test Strategy:
    ✅ Image validation (extension, empty, oversized, content signature) before any upload
    ✅ Folder ownership checked before upload
    ✅ Insert failure removes the freshly uploaded blob
    ✅ Delete: blob removed; blob delete failure logged and swallowed
    ✅ Image proxy: stream back, no-image ValidationError, stale blob NotFound
"""

import io
from unittest.mock import AsyncMock, patch

import pytest

from conftest import JPEG_BYTES, OWNER_A, OWNER_B, PNG_BYTES
from folioscan.exceptions import (
    BlobDeleteFailedError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)


class TestCreateNote:

    @pytest.mark.asyncio
    async def test_create_in_owned_folder(self, services, blob_store, sample_image):
        folder = await services.folder_service.create_folder(OWNER_A, "Scans")

        note = await services.note_service.create_note(
            OWNER_A, "Page 1", folder.id, "page1.jpg", sample_image
        )

        assert note.folder_id == folder.id
        assert note.owner_id == OWNER_A
        assert note.blob_ref
        stored = await blob_store.download(note.blob_ref)
        assert await stored.read() == JPEG_BYTES

    @pytest.mark.asyncio
    async def test_create_at_top_level(self, services):
        note = await services.note_service.create_note(
            OWNER_A, "Loose page", "", "loose.png", io.BytesIO(PNG_BYTES)
        )
        assert note.folder_id == ""

    @pytest.mark.asyncio
    async def test_unsupported_extension(self, services, blob_store):
        with patch.object(blob_store, "upload", new_callable=AsyncMock) as upload:
            with pytest.raises(ValidationError, match="Unsupported image type"):
                await services.note_service.create_note(
                    OWNER_A, "Doc", "", "document.pdf", io.BytesIO(b"%PDF")
                )
        upload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_extension_case_insensitive(self, services):
        note = await services.note_service.create_note(
            OWNER_A, "Upper", "", "PHOTO.JPEG", io.BytesIO(JPEG_BYTES)
        )
        assert note.blob_ref.endswith(".jpeg")

    @pytest.mark.asyncio
    async def test_empty_image(self, services):
        with pytest.raises(ValidationError, match="empty"):
            await services.note_service.create_note(OWNER_A, "Blank", "", "blank.jpg", io.BytesIO(b""))

    @pytest.mark.asyncio
    async def test_oversized_image(self, services):
        services.note_service._max_file_size = 1024
        with pytest.raises(ValidationError, match="limit"):
            await services.note_service.create_note(
                OWNER_A, "Huge", "", "huge.jpg", io.BytesIO(b"x" * 1025)
            )

    @pytest.mark.asyncio
    async def test_renamed_script_is_rejected(self, services, blob_store):
        """A shell script named .jpg carries no image signature."""
        with patch.object(blob_store, "upload", new_callable=AsyncMock) as upload:
            with pytest.raises(ValidationError, match="content type") as exc_info:
                await services.note_service.create_note(
                    OWNER_A, "Evil", "", "evil.jpg", io.BytesIO(b"#!/bin/sh\nrm -rf /\n")
                )

        upload.assert_not_awaited()
        assert exc_info.value.context["detected_mime"] != "image/jpeg"

    @pytest.mark.asyncio
    async def test_png_content_under_jpg_name_is_accepted(self, services):
        note = await services.note_service.create_note(
            OWNER_A, "Mislabelled", "", "scan.jpg", io.BytesIO(PNG_BYTES)
        )
        assert note.blob_ref

    @pytest.mark.asyncio
    async def test_stream_is_rewound_after_sniffing(self, services, blob_store):
        note = await services.note_service.create_note(
            OWNER_A, "Whole", "", "whole.png", io.BytesIO(PNG_BYTES)
        )

        stored = await blob_store.download(note.blob_ref)

        assert await stored.read() == PNG_BYTES

    @pytest.mark.asyncio
    async def test_blank_name(self, services):
        with pytest.raises(ValidationError):
            await services.note_service.create_note(OWNER_A, "  ", "", "a.jpg", io.BytesIO(JPEG_BYTES))

    @pytest.mark.asyncio
    async def test_malformed_folder_id(self, services):
        with pytest.raises(ValidationError):
            await services.note_service.create_note(
                OWNER_A, "Page", "../etc", "a.jpg", io.BytesIO(JPEG_BYTES)
            )

    @pytest.mark.asyncio
    async def test_folder_of_other_owner_is_not_found(self, services, blob_store):
        folder = await services.folder_service.create_folder(OWNER_B, "B's folder")

        with patch.object(blob_store, "upload", new_callable=AsyncMock) as upload:
            with pytest.raises(NotFoundError):
                await services.note_service.create_note(
                    OWNER_A, "Sneaky", folder.id, "a.jpg", io.BytesIO(JPEG_BYTES)
                )
        upload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_insert_failure_deletes_fresh_blob(self, services, blob_store):
        with patch.object(
            services.notes,
            "create",
            new_callable=AsyncMock,
            side_effect=StorageUnavailableError(context={"operation": "note.create"}),
        ), patch.object(blob_store, "delete", wraps=blob_store.delete) as delete:
            with pytest.raises(StorageUnavailableError):
                await services.note_service.create_note(
                    OWNER_A, "Page", "", "a.jpg", io.BytesIO(JPEG_BYTES)
                )

        delete.assert_awaited_once()
        ref = delete.await_args.args[0]
        with pytest.raises(NotFoundError):
            await blob_store.download(ref)


class TestListAndRename:

    @pytest.mark.asyncio
    async def test_list_is_owner_scoped(self, services):
        folder = await services.folder_service.create_folder(OWNER_A, "Scans")
        await services.note_service.create_note(OWNER_A, "A1", folder.id, "a1.jpg", io.BytesIO(JPEG_BYTES))
        await services.notes.create(OWNER_B, "B1", folder.id)

        notes = await services.note_service.list_notes(OWNER_A, folder.id)

        assert [n.name for n in notes] == ["A1"]

    @pytest.mark.asyncio
    async def test_rename(self, services):
        note = await services.note_service.create_note(OWNER_A, "Old", "", "a.jpg", io.BytesIO(JPEG_BYTES))

        await services.note_service.rename_note(OWNER_A, note.id, "New")

        assert (await services.notes.get(OWNER_A, note.id)).name == "New"

    @pytest.mark.asyncio
    async def test_rename_other_owner(self, services):
        note = await services.note_service.create_note(OWNER_A, "Mine", "", "a.jpg", io.BytesIO(JPEG_BYTES))
        with pytest.raises(NotFoundError):
            await services.note_service.rename_note(OWNER_B, note.id, "Theirs")


class TestDeleteNote:

    @pytest.mark.asyncio
    async def test_delete_removes_row_and_blob(self, services, blob_store):
        note = await services.note_service.create_note(OWNER_A, "Page", "", "a.jpg", io.BytesIO(JPEG_BYTES))

        await services.note_service.delete_note(OWNER_A, note.id)

        with pytest.raises(NotFoundError):
            await services.notes.get(OWNER_A, note.id)
        with pytest.raises(NotFoundError):
            await blob_store.download(note.blob_ref)

    @pytest.mark.asyncio
    async def test_blob_delete_failure_is_swallowed(self, services, blob_store):
        note = await services.note_service.create_note(OWNER_A, "Page", "", "a.jpg", io.BytesIO(JPEG_BYTES))

        with patch.object(
            blob_store,
            "delete",
            new_callable=AsyncMock,
            side_effect=BlobDeleteFailedError(blob_ref=note.blob_ref),
        ):
            await services.note_service.delete_note(OWNER_A, note.id)

        with pytest.raises(NotFoundError):
            await services.notes.get(OWNER_A, note.id)

    @pytest.mark.asyncio
    async def test_delete_other_owner(self, services):
        note = await services.note_service.create_note(OWNER_A, "Page", "", "a.jpg", io.BytesIO(JPEG_BYTES))

        with pytest.raises(NotFoundError):
            await services.note_service.delete_note(OWNER_B, note.id)

        assert (await services.notes.get(OWNER_A, note.id)).id == note.id

    @pytest.mark.asyncio
    async def test_malformed_id(self, services):
        with pytest.raises(ValidationError):
            await services.note_service.delete_note(OWNER_A, "not-an-id")


class TestNoteImage:

    @pytest.mark.asyncio
    async def test_streams_image(self, services):
        created = await services.note_service.create_note(
            OWNER_A, "Page", "", "a.png", io.BytesIO(PNG_BYTES)
        )

        note, download = await services.note_service.get_note_image(OWNER_A, created.id)

        assert note.id == created.id
        assert download.content_type == "image/png"
        assert await download.read() == PNG_BYTES

    @pytest.mark.asyncio
    async def test_note_without_image(self, services):
        note = await services.notes.create(OWNER_A, "Text only", "")
        with pytest.raises(ValidationError, match="no image"):
            await services.note_service.get_note_image(OWNER_A, note.id)

    @pytest.mark.asyncio
    async def test_stale_blob_is_not_found(self, services, blob_store):
        note = await services.note_service.create_note(OWNER_A, "Page", "", "a.jpg", io.BytesIO(JPEG_BYTES))
        await blob_store.delete(note.blob_ref)

        with pytest.raises(NotFoundError):
            await services.note_service.get_note_image(OWNER_A, note.id)

    @pytest.mark.asyncio
    async def test_other_owner_cannot_read(self, services):
        note = await services.note_service.create_note(OWNER_A, "Page", "", "a.jpg", io.BytesIO(JPEG_BYTES))
        with pytest.raises(NotFoundError):
            await services.note_service.get_note_image(OWNER_B, note.id)
