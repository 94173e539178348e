"""
FolioScan Backend — Share-Link Blob Store
==========================================

What:  Blob backend for consumer file hosts that hand back a public share link.
How:   Upload is an authenticated multipart POST to LINK_UPLOAD_URL; the host
       answers with JSON `{"link": "..."}` and that link is the blob reference.
       Download is a plain unauthenticated GET on the link. Delete is an
       authenticated DELETE on the link.
Who:   Selected with BLOB_BACKEND=link.

Host aliases:
    Some hosts moved domains (mega.co.nz → mega.nz) and old links only resolve
    on the new hostname. LINK_HOST_ALIASES maps old → new and is applied to the
    link before every download or delete; the stored reference is unchanged.
"""

import logging
from typing import AsyncIterator, BinaryIO, Dict, Optional

import httpx

from folioscan.config import Settings
from folioscan.exceptions import BlobDeleteFailedError, NotFoundError, StorageUnavailableError
from folioscan.services.blob_store import CHUNK_SIZE, DEFAULT_CONTENT_TYPE, BlobDownload, BlobStore, guess_content_type

logger = logging.getLogger(__name__)

# Statuses meaning "the link no longer points at anything"
GONE_STATUSES = {404, 410}


def normalize_link(link: str, aliases: Dict[str, str]) -> str:
    """Rewrite the hostname of `link` through `aliases` (exact host match)."""
    url = httpx.URL(link)
    replacement = aliases.get(url.host)
    if replacement:
        url = url.copy_with(host=replacement)
    return str(url)


class LinkBlobStore(BlobStore):
    """Stores blobs on a share-link file host."""

    backend_name = "link"

    def __init__(
        self,
        upload_url: str,
        api_token: str,
        host_aliases: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            upload_url:   Endpoint accepting the multipart upload.
            api_token:    Bearer token for upload and delete.
            host_aliases: Legacy → current hostname map.
            timeout:      Per-request HTTP timeout in seconds.
            transport:    Optional httpx transport (tests pass a MockTransport).
        """
        self._upload_url = upload_url
        self._api_token = api_token
        self._host_aliases = dict(host_aliases or {})
        self._client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, config: Settings) -> "LinkBlobStore":
        logger.info("LinkBlobStore initialized for %s", config.link_upload_url)
        return cls(
            upload_url=config.link_upload_url,
            api_token=config.link_api_token,
            host_aliases=config.link_host_aliases,
            timeout=config.blob_timeout_seconds,
        )

    @property
    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._api_token}"}

    async def upload(self, name: str, content: BinaryIO) -> str:
        files = {"file": (name, content, guess_content_type(name))}
        try:
            response = await self._client.post(self._upload_url, files=files, headers=self._auth_headers)
            response.raise_for_status()
            link = response.json().get("link", "")
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Link upload of %r failed: %s", name, str(e))
            raise StorageUnavailableError(
                message="Failed to save uploaded image. Please try again.",
                context={"backend": self.backend_name, "error": str(e)},
            ) from e

        if not link:
            logger.error("Link host accepted %r but returned no link", name)
            raise StorageUnavailableError(
                message="Failed to save uploaded image. Please try again.",
                context={"backend": self.backend_name, "error": "missing link in response"},
            )
        logger.info("Blob uploaded to link host: %s", name)
        return link

    async def download(self, blob_ref: str) -> BlobDownload:
        if not blob_ref:
            raise NotFoundError(resource="blob")
        url = normalize_link(blob_ref, self._host_aliases)

        try:
            response = await self._client.send(self._client.build_request("GET", url), stream=True)
        except httpx.HTTPError as e:
            logger.error("Link download of %s failed: %s", url, str(e))
            raise StorageUnavailableError(context={"backend": self.backend_name, "error": str(e)}) from e

        if response.status_code in GONE_STATUSES:
            await response.aclose()
            raise NotFoundError(resource="blob", resource_id=blob_ref)
        if response.is_error:
            await response.aclose()
            logger.error("Link download of %s returned HTTP %d", url, response.status_code)
            raise StorageUnavailableError(
                context={"backend": self.backend_name, "status": response.status_code},
            )

        length = response.headers.get("content-length")
        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not content_type or content_type == DEFAULT_CONTENT_TYPE:
            content_type = guess_content_type(response.url.path)

        return BlobDownload(
            chunks=self._stream(response),
            content_length=int(length) if length and length.isdigit() else None,
            content_type=content_type,
        )

    async def _stream(self, response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes(CHUNK_SIZE):
                yield chunk
        finally:
            await response.aclose()

    async def delete(self, blob_ref: str) -> None:
        if not blob_ref:
            return
        url = normalize_link(blob_ref, self._host_aliases)
        try:
            response = await self._client.delete(url, headers=self._auth_headers)
        except httpx.HTTPError as e:
            logger.warning("Failed to delete linked blob %s: %s", url, str(e))
            raise BlobDeleteFailedError(blob_ref=blob_ref, context={"error": str(e)}) from e

        if response.status_code in GONE_STATUSES:
            logger.debug("Linked blob already gone: %s", url)
            return
        if response.is_error:
            logger.warning("Failed to delete linked blob %s: HTTP %d", url, response.status_code)
            raise BlobDeleteFailedError(blob_ref=blob_ref, context={"status": response.status_code})
        logger.info("Deleted linked blob %s", url)

    async def aclose(self) -> None:
        await self._client.aclose()
