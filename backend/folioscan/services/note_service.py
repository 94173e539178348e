"""
FolioScan Backend — Note Service (Business Logic Orchestrator)
================================================================

What:  Note operations: create with image upload, list, rename, delete and
       the image proxy.
How:   Composes the note/folder repositories with the deployment's BlobStore.
       Store calls run under the metadata deadline, blob calls under the
       (longer) blob deadline.
Who:   Routes in routes/notes.py, through the ServiceContainer.

Create Flow (POST /api/v1/notes):
    ┌──────────┐    ┌─────────────┐    ┌──────────────┐    ┌──────────┐
    │ Validate │───▶│  Folder     │───▶│  Blob upload │───▶│  Insert  │
    │ name+img │    │  ownership  │    │  (BlobStore) │    │  row     │
    └──────────┘    └─────────────┘    └──────────────┘    └──────────┘

    Insert fails → the freshly uploaded blob is deleted best-effort, then the
    original error propagates.

Delete Flow:
    Load note → delete blob (failure logged, not raised) → delete row.
    A blob left behind by a failed delete stays orphaned.
"""

import logging
import os
from pathlib import PurePosixPath
from typing import BinaryIO, List, Optional, Tuple

import magic

from folioscan.exceptions import (
    BlobDeleteFailedError,
    FolioScanError,
    StorageUnavailableError,
    ValidationError,
)
from folioscan.models.folder import ROOT_PARENT
from folioscan.models.note import Note
from folioscan.services.blob_store import CONTENT_TYPES_BY_EXTENSION, BlobDownload, BlobStore
from folioscan.services.deadlines import run_with_deadline
from folioscan.services.identifiers import require_parent_ref, require_resource_id
from folioscan.services.resource_repository import FolderRepository, NoteRepository, require_name

logger = logging.getLogger(__name__)

# Bytes handed to libmagic; enough for every supported image signature
SNIFF_BYTES = 2048

ALLOWED_IMAGE_TYPES = frozenset(CONTENT_TYPES_BY_EXTENSION.values())


def _stream_size(content: BinaryIO) -> int:
    """Size of a seekable stream; the position is reset to the start."""
    content.seek(0, os.SEEK_END)
    size = content.tell()
    content.seek(0)
    return size


def _sniff_content_type(content: BinaryIO) -> str:
    """
    MIME type from the stream's leading bytes (libmagic); the position is reset.

    Raises:
        StorageUnavailableError: libmagic could not inspect the content.
    """
    head = content.read(SNIFF_BYTES)
    content.seek(0)
    try:
        return magic.from_buffer(head, mime=True)
    except magic.MagicException as e:
        logger.error("MIME type detection failed: %s", str(e))
        raise StorageUnavailableError(
            message="Could not verify file type. Please try again.",
            context={"error": str(e)},
        ) from e


class NoteService:
    """
    Business logic layer for note operations.

    Error Handling Strategy:
        Input problems raise ValidationError before anything is stored.
        Repository and backend errors propagate with their own type
        (NotFoundError, StorageUnavailableError). BlobDeleteFailedError never
        leaves this class.
    """

    def __init__(
        self,
        notes: NoteRepository,
        folders: FolderRepository,
        blob_store: BlobStore,
        max_file_size: int = 20_971_520,
        metadata_timeout: float = 5.0,
        blob_timeout: float = 30.0,
    ):
        self._notes = notes
        self._folders = folders
        self._blobs = blob_store
        self._max_file_size = max_file_size
        self._metadata_timeout = metadata_timeout
        self._blob_timeout = blob_timeout

    def _deadline(self, timeout: Optional[float]) -> float:
        return timeout if timeout is not None else self._metadata_timeout

    def _validate_image(self, image_name: str, image: BinaryIO, size: Optional[int]) -> int:
        """
        Checks the attached image before any upload happens.

        Checks (in order):
            1. Extension: one of .jpg, .jpeg, .png, .webp, .gif
            2. Size: non-empty and at most max_file_size
            3. Content: the leading bytes must carry an image signature, so a
               renamed script or document is refused whatever its extension
        """
        extension = PurePosixPath(image_name or "").suffix.lower()
        if extension not in CONTENT_TYPES_BY_EXTENSION:
            allowed = ", ".join(sorted(CONTENT_TYPES_BY_EXTENSION))
            raise ValidationError(
                message=f"Unsupported image type '{extension or image_name}'. Allowed: {allowed}",
                field="image",
            )

        if size is None:
            size = _stream_size(image)
        if size == 0:
            raise ValidationError(message="Uploaded image is empty", field="image")
        if size > self._max_file_size:
            max_mb = self._max_file_size / (1024 * 1024)
            raise ValidationError(
                message=f"Image exceeds the {max_mb:.0f}MB limit",
                field="image",
                context={"size": size, "limit": self._max_file_size},
            )

        detected = _sniff_content_type(image)
        if detected not in ALLOWED_IMAGE_TYPES:
            raise ValidationError(
                message=f"File content type '{detected}' is not supported. The file must be a valid image.",
                field="image",
                context={"detected_mime": detected, "allowed": sorted(ALLOWED_IMAGE_TYPES)},
            )
        return size

    async def create_note(
        self,
        owner_id: str,
        name: str,
        folder_id: str,
        image_name: str,
        image: BinaryIO,
        size: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Note:
        """
        Store the image, then record the note.

        Args:
            owner_id:   Authenticated owner.
            name:       Display name of the note.
            folder_id:  Containing folder ("" for the top level).
            image_name: Client-side file name of the image (extension matters).
            image:      Seekable binary stream with the image content.
            size:       Size in bytes if already known (else measured).

        Raises:
            ValidationError:         bad name, folder id or image.
            NotFoundError:           the folder is missing or not owned.
            StorageUnavailableError: the upload or insert failed.
        """
        name = require_name(name)
        folder_id = require_parent_ref(folder_id, field="folderId")
        size = self._validate_image(image_name, image, size)
        deadline = self._deadline(timeout)

        if folder_id:
            await run_with_deadline(
                self._folders.get(owner_id, folder_id),
                deadline,
                "note.get_folder",
            )

        blob_ref = await run_with_deadline(
            self._blobs.upload(image_name, image),
            self._blob_timeout,
            "blob.upload",
        )

        try:
            note = await run_with_deadline(
                self._notes.create(owner_id, name, folder_id, blob_ref=blob_ref),
                deadline,
                "note.create",
            )
        except FolioScanError:
            logger.error("Note insert failed after upload; removing blob (%d bytes)", size)
            await self._delete_blob_quietly(blob_ref)
            raise

        logger.info("Note %s created in folder %r (%d bytes)", note.id, folder_id, size)
        return note

    async def list_notes(
        self,
        owner_id: str,
        folder_id: str = ROOT_PARENT,
        timeout: Optional[float] = None,
    ) -> List[Note]:
        folder_id = require_parent_ref(folder_id, field="folderId")
        return await run_with_deadline(
            self._notes.list_children(owner_id, folder_id),
            self._deadline(timeout),
            "note.list",
        )

    async def rename_note(
        self,
        owner_id: str,
        note_id: str,
        name: str,
        timeout: Optional[float] = None,
    ) -> None:
        require_resource_id(note_id, field="noteId")
        await run_with_deadline(
            self._notes.rename(owner_id, note_id, name),
            self._deadline(timeout),
            "note.rename",
        )

    async def delete_note(
        self,
        owner_id: str,
        note_id: str,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Delete one note and, best-effort, its image.

        Raises:
            NotFoundError: the note is missing or not owned.
        """
        require_resource_id(note_id, field="noteId")
        deadline = self._deadline(timeout)
        note = await run_with_deadline(
            self._notes.get(owner_id, note_id),
            deadline,
            "note.get",
        )

        if note.blob_ref:
            await self._delete_blob_quietly(note.blob_ref)

        await run_with_deadline(
            self._notes.delete(owner_id, note_id, missing_ok=True),
            deadline,
            "note.delete",
        )
        logger.info("Note %s deleted", note_id)

    async def get_note_image(
        self,
        owner_id: str,
        note_id: str,
        timeout: Optional[float] = None,
    ) -> Tuple[Note, BlobDownload]:
        """
        Open the note's image for streaming back to its owner.

        Returns the note (for its display name) and the open download.

        Raises:
            NotFoundError:   the note is missing or not owned, or the backend
                             no longer has the blob.
            ValidationError: the note has no image attached.
        """
        require_resource_id(note_id, field="noteId")
        note = await run_with_deadline(
            self._notes.get(owner_id, note_id),
            self._deadline(timeout),
            "note.get",
        )
        if not note.blob_ref:
            raise ValidationError(message="Note has no image attached", field="image")

        download = await run_with_deadline(
            self._blobs.download(note.blob_ref),
            self._blob_timeout,
            "blob.download",
        )
        return note, download

    async def _delete_blob_quietly(self, blob_ref: str) -> None:
        """Blob removal whose failure is logged and otherwise ignored."""
        try:
            await run_with_deadline(self._blobs.delete(blob_ref), self._blob_timeout, "blob.delete")
        except (BlobDeleteFailedError, StorageUnavailableError) as e:
            logger.warning(
                "Blob delete failed; blob left orphaned in %s backend: %s | Context: %s",
                self._blobs.backend_name,
                e.message,
                e.context,
            )
