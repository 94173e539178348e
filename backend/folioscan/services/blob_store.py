"""
FolioScan Backend — Blob Store Contract
========================================

What:  The interface every binary-object backend implements, plus the factory
       that builds the single backend selected for this deployment.
How:   Concrete backends subclass BlobStore:
           - LocalBlobStore  (services/local_blob_store.py)
           - DriveBlobStore  (services/drive_blob_store.py)
           - LinkBlobStore   (services/link_blob_store.py)
       Callers only ever hold the opaque `blob_ref` string a backend returned
       from upload(); parsing or rewriting it is the backend's job.
Who:   NoteService (upload on create, delete on note delete, download for the
       image proxy).

Contract:
    upload(name, content)  → blob_ref
    download(blob_ref)     → BlobDownload (stream + length + content type)
                             NotFoundError for stale/unknown references
    delete(blob_ref)       → None; already-deleted is a no-op;
                             BlobDeleteFailedError on backend failure
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import AsyncIterator, BinaryIO, Optional

from folioscan.config import Settings

# Content type reported when the name has no recognised extension
DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES_BY_EXTENSION = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}

# Chunk size used when streaming blobs to and from backends
CHUNK_SIZE = 64 * 1024


def guess_content_type(name: str) -> str:
    """Content type from a file name's extension, case-insensitive."""
    return CONTENT_TYPES_BY_EXTENSION.get(
        PurePosixPath(name or "").suffix.lower(),
        DEFAULT_CONTENT_TYPE,
    )


@dataclass
class BlobDownload:
    """
    A blob being read back from a backend.

    Attributes:
        chunks:         async iterator over the content; consume it once
        content_length: size in bytes, or None when the backend does not say
        content_type:   MIME type hint (DEFAULT_CONTENT_TYPE when unknown)
    """

    chunks: AsyncIterator[bytes]
    content_length: Optional[int]
    content_type: str = DEFAULT_CONTENT_TYPE

    async def read(self) -> bytes:
        """Collect the whole stream into memory."""
        return b"".join([chunk async for chunk in self.chunks])


async def iter_bytes(data: bytes, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Async iterator over an in-memory buffer."""
    for start in range(0, len(data), chunk_size):
        yield data[start:start + chunk_size]


class BlobStore(ABC):
    """
    Abstract interface for binary-object storage.

    Implementations translate their own transport errors: stale references
    become NotFoundError, transient failures StorageUnavailableError, and
    failed deletes BlobDeleteFailedError.
    """

    #: Short backend label reported by /health and in logs
    backend_name: str = "abstract"

    @abstractmethod
    async def upload(self, name: str, content: BinaryIO) -> str:
        """
        Store `content` and return an opaque reference to it.

        Args:
            name:    Client-side file name; used for the content type and, where
                     the backend keeps names, as the display name.
            content: Readable binary stream positioned at the start.

        Raises:
            StorageUnavailableError: the backend rejected or failed the upload.
        """
        ...

    @abstractmethod
    async def download(self, blob_ref: str) -> BlobDownload:
        """
        Open a stored object for reading.

        Raises:
            NotFoundError:           the reference is unknown to the backend.
            StorageUnavailableError: the backend could not be reached.
        """
        ...

    @abstractmethod
    async def delete(self, blob_ref: str) -> None:
        """
        Remove a stored object. Deleting an absent object is not an error.

        Raises:
            BlobDeleteFailedError: the backend failed to delete it.
        """
        ...

    async def aclose(self) -> None:
        """Release backend resources (HTTP clients, ...). Default: nothing to do."""
        return None


def create_blob_store(config: Settings) -> BlobStore:
    """
    Build the one backend selected by `config.blob_backend`.

    Imports are local so a deployment only needs the client libraries of the
    backend it actually runs.
    """
    if config.blob_backend == "drive":
        from folioscan.services.drive_blob_store import DriveBlobStore

        return DriveBlobStore.from_settings(config)
    if config.blob_backend == "link":
        from folioscan.services.link_blob_store import LinkBlobStore

        return LinkBlobStore.from_settings(config)

    from folioscan.services.local_blob_store import LocalBlobStore

    return LocalBlobStore(storage_root=config.storage_root)
