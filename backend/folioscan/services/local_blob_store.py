"""
FolioScan Backend — Local Filesystem Blob Store
================================================

What:  Blob backend that keeps images on a local (or mounted) volume.
How:   Each upload gets a date-organised path with a UUID file name; the
       relative path is the blob reference. Reads and writes use aiofiles so
       large images do not block the event loop.
Who:   Selected with BLOB_BACKEND=local (the default); used in development,
       single-host deployments and the test suite.

Directory Structure:
    storage/
    └── 2024/
        └── 01/
            └── 15/
                ├── 0f6c2d3e9a0b4c1d8e7f6a5b4c3d2e1f.jpg
                └── 7a8b9c0d1e2f3a4b5c6d7e8f9a0b1c2d.png

Reference safety:
    References never contain user input (UUID names, the client's name only
    contributes its extension). A reference that resolves outside the storage
    root is treated as unknown.
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, BinaryIO, Optional, Tuple

import aiofiles

from folioscan.exceptions import BlobDeleteFailedError, NotFoundError, StorageUnavailableError
from folioscan.services.blob_store import (
    CHUNK_SIZE,
    CONTENT_TYPES_BY_EXTENSION,
    BlobDownload,
    BlobStore,
    guess_content_type,
)

logger = logging.getLogger(__name__)


class LocalBlobStore(BlobStore):
    """Stores blobs as files under `storage_root`."""

    backend_name = "local"

    def __init__(self, storage_root: str):
        self.storage_root = Path(storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("LocalBlobStore initialized with storage_root=%s", self.storage_root)

    def _generate_storage_path(self, name: str) -> Tuple[Path, str]:
        """
        Create a YYYY/MM/DD/<uuid><ext> path for a new blob.

        Only known image extensions are kept so the stored name stays usable
        for content-type inference on download.

        Returns: Tuple of (absolute_path, relative_path_from_storage_root).
        """
        extension = PurePosixPath(name or "").suffix.lower()
        if extension not in CONTENT_TYPES_BY_EXTENSION:
            extension = ""
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        relative_path = f"{date_dir}/{uuid.uuid4().hex}{extension}"
        return self.storage_root / relative_path, relative_path

    def _resolve(self, blob_ref: str) -> Optional[Path]:
        """Absolute path for a reference, or None if it escapes the root."""
        if not blob_ref:
            return None
        candidate = (self.storage_root / blob_ref).resolve()
        if not candidate.is_relative_to(self.storage_root):
            logger.warning("Rejected blob reference outside storage root: %r", blob_ref)
            return None
        return candidate

    async def upload(self, name: str, content: BinaryIO) -> str:
        absolute_path, relative_path = self._generate_storage_path(name)
        written = 0

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                while True:
                    chunk = content.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    await f.write(chunk)
                    written += len(chunk)
        except OSError as e:
            logger.error("Failed to store blob at %s: %s", absolute_path, str(e))
            await self._remove_quietly(absolute_path)
            raise StorageUnavailableError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            ) from e

        logger.info("Blob stored: %s (%d bytes)", relative_path, written)
        return relative_path

    async def download(self, blob_ref: str) -> BlobDownload:
        path = self._resolve(blob_ref)
        if path is None or not path.is_file():
            raise NotFoundError(resource="blob", resource_id=blob_ref)

        try:
            size = path.stat().st_size
        except FileNotFoundError as e:
            raise NotFoundError(resource="blob", resource_id=blob_ref) from e

        return BlobDownload(
            chunks=self._read_chunks(path),
            content_length=size,
            content_type=guess_content_type(path.name),
        )

    async def _read_chunks(self, path: Path) -> AsyncIterator[bytes]:
        async with aiofiles.open(path, "rb") as f:
            while True:
                chunk = await f.read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk

    async def delete(self, blob_ref: str) -> None:
        path = self._resolve(blob_ref)
        if path is None:
            return
        try:
            os.remove(path)
            logger.info("Deleted blob: %s", blob_ref)
        except FileNotFoundError:
            logger.debug("Blob already gone: %s", blob_ref)
        except OSError as e:
            logger.warning("Failed to delete blob %s: %s", blob_ref, str(e))
            raise BlobDeleteFailedError(blob_ref=blob_ref, context={"os_error": str(e)}) from e

    async def _remove_quietly(self, path: Path) -> None:
        """Drop a partially written file; failure here only gets logged."""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to clean up partial blob %s: %s", path.name, str(e))
