"""
FolioScan Backend — Google Drive Blob Store
============================================

What:  Blob backend on Google Drive (API v3) using a service account.
How:   Files are created private inside one Drive folder; the Drive file id
       is the blob reference. Downloads go through the same service account,
       so nothing is ever shared publicly.
Who:   Selected with BLOB_BACKEND=drive.

Credentials:
    DRIVE_CREDENTIALS holds the service-account JSON as one string. Platforms
    that store it in an environment variable often escape the newlines of
    `private_key`; they are restored before the credential is built.

Threading:
    google-api-python-client is synchronous. Calls run in a worker thread via
    asyncio.to_thread and are serialised by a lock because the underlying
    httplib2 connection is not thread-safe.
"""

import asyncio
import io
import json
import logging
from typing import Any, BinaryIO, Dict

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload
from httplib2 import HttpLib2Error

from folioscan.config import Settings
from folioscan.exceptions import BlobDeleteFailedError, NotFoundError, StorageUnavailableError
from folioscan.services.blob_store import BlobDownload, BlobStore, guess_content_type, iter_bytes

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/drive.file"]

# Errors raised by the Drive client stack for transport or auth failures
DRIVE_ERRORS = (HttpError, GoogleAuthError, HttpLib2Error, OSError)


def load_service_account_info(raw_credentials: str) -> Dict[str, Any]:
    """
    Parse the service-account JSON string.

    Raises:
        ValueError: the string is empty or not a JSON object.
    """
    if not raw_credentials:
        raise ValueError("Drive service-account credentials are empty")
    info = json.loads(raw_credentials)
    if not isinstance(info, dict):
        raise ValueError("Drive service-account credentials must be a JSON object")
    if isinstance(info.get("private_key"), str):
        info["private_key"] = info["private_key"].replace("\\n", "\n")
    return info


def _status_of(error: Exception) -> int:
    if isinstance(error, HttpError):
        return int(getattr(error.resp, "status", 0) or 0)
    return 0


class DriveBlobStore(BlobStore):
    """Stores blobs as private files in a Google Drive folder."""

    backend_name = "drive"

    def __init__(self, service: Any, folder_id: str):
        """
        Args:
            service:   A built Drive v3 resource (googleapiclient.discovery.build).
            folder_id: Drive folder that receives every upload.
        """
        self._service = service
        self._folder_id = folder_id
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, config: Settings) -> "DriveBlobStore":
        """Build the Drive client from DRIVE_CREDENTIALS / DRIVE_FOLDER_ID."""
        info = load_service_account_info(config.drive_credentials)
        credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        service = build("drive", "v3", credentials=credentials, cache_discovery=False)
        logger.info(
            "DriveBlobStore initialized for folder %s (client %s)",
            config.drive_folder_id,
            info.get("client_email", "unknown"),
        )
        return cls(service=service, folder_id=config.drive_folder_id)

    async def _call(self, func, *args):
        """
        Run `func` in a worker thread, one Drive call at a time.

        A cancelled caller (deadline, disconnect) returns at once, but the
        thread cannot be stopped; the lock stays held until it finishes.
        """
        await self._lock.acquire()
        worker = asyncio.ensure_future(asyncio.to_thread(func, *args))
        worker.add_done_callback(self._release_after)
        return await asyncio.shield(worker)

    def _release_after(self, worker: "asyncio.Future[Any]") -> None:
        self._lock.release()
        if not worker.cancelled() and worker.exception() is not None:
            logger.debug("Drive call finished with %s", type(worker.exception()).__name__)

    # ── Upload ────────────────────────────────────────────────────────────

    def _upload_sync(self, name: str, content: BinaryIO) -> str:
        media = MediaIoBaseUpload(content, mimetype=guess_content_type(name), resumable=True)
        body = {"name": name}
        if self._folder_id:
            body["parents"] = [self._folder_id]
        created = self._service.files().create(body=body, media_body=media, fields="id").execute()
        return created["id"]

    async def upload(self, name: str, content: BinaryIO) -> str:
        try:
            file_id = await self._call(self._upload_sync, name, content)
        except DRIVE_ERRORS as e:
            logger.error("Drive upload of %r failed: %s", name, str(e))
            raise StorageUnavailableError(
                message="Failed to save uploaded image. Please try again.",
                context={"backend": self.backend_name, "status": _status_of(e)},
            ) from e
        logger.info("Private Drive file uploaded: %s", file_id)
        return file_id

    # ── Download ──────────────────────────────────────────────────────────

    def _download_media(self, request: Any) -> bytes:
        buffer = io.BytesIO()
        downloader = MediaIoBaseDownload(buffer, request)
        done = False
        while not done:
            _, done = downloader.next_chunk()
        return buffer.getvalue()

    def _download_sync(self, file_id: str) -> BlobDownload:
        files = self._service.files()
        metadata = files.get(fileId=file_id, fields="id, name, mimeType, size").execute()
        data = self._download_media(files.get_media(fileId=file_id))
        content_type = metadata.get("mimeType") or guess_content_type(metadata.get("name", ""))
        return BlobDownload(
            chunks=iter_bytes(data),
            content_length=len(data),
            content_type=content_type,
        )

    async def download(self, blob_ref: str) -> BlobDownload:
        if not blob_ref:
            raise NotFoundError(resource="blob")
        try:
            return await self._call(self._download_sync, blob_ref)
        except DRIVE_ERRORS as e:
            if _status_of(e) == 404:
                raise NotFoundError(resource="blob", resource_id=blob_ref) from e
            logger.error("Drive download of %s failed: %s", blob_ref, str(e))
            raise StorageUnavailableError(
                context={"backend": self.backend_name, "status": _status_of(e)},
            ) from e

    # ── Delete ────────────────────────────────────────────────────────────

    def _delete_sync(self, file_id: str) -> None:
        self._service.files().delete(fileId=file_id).execute()

    async def delete(self, blob_ref: str) -> None:
        if not blob_ref:
            return
        try:
            await self._call(self._delete_sync, blob_ref)
        except DRIVE_ERRORS as e:
            if _status_of(e) == 404:
                logger.debug("Drive file already gone: %s", blob_ref)
                return
            logger.warning("Failed to delete Drive file %s: %s", blob_ref, str(e))
            raise BlobDeleteFailedError(
                blob_ref=blob_ref,
                context={"backend": self.backend_name, "status": _status_of(e)},
            ) from e
        logger.info("Deleted Drive file %s", blob_ref)
