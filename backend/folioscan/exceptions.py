"""
FolioScan Backend — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for every failure the core can report.
How:   Each exception carries a user-safe message and an optional context dict.
       Global exception handlers (registered in main.py) map them to HTTP
       status codes and structured JSON bodies.
Who:   Raised by the repository, blob backends and services; caught by the
       global handlers or, for BlobDeleteFailedError, by the note service.

Exception Hierarchy:
    FolioScanError (base)
    ├── ValidationError          → 400 Bad Request (caller error, not retried)
    ├── AuthenticationError      → 401 Unauthorized
    ├── NotFoundError            → 404 Not Found (missing OR owned by someone else)
    ├── StorageUnavailableError  → 503 Service Unavailable (caller may retry)
    ├── CascadeFailedError       → 500 Internal Server Error (retry is safe)
    └── BlobDeleteFailedError    → never reaches a client; logged and swallowed

`context` is for server-side logs only. Store and backend error text goes into
`context`, never into `message`.
"""

from typing import Any, Dict, Optional


class FolioScanError(Exception):
    """
    Base exception for all FolioScan application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(FolioScanError):
    """
    Raised when client input fails validation.

    When:    Empty names, malformed identifiers, unsupported or oversized images,
             a note without an attached image asked for its image.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(FolioScanError):
    """
    Raised when the bearer credential is missing or rejected by the identity provider.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(FolioScanError):
    """
    Raised when no owned resource matches the request.

    The same error (and message) is used whether the id is unknown or belongs
    to another owner, so a non-owner never learns that the resource exists.
    Blob backends also raise it for stale references.

    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class StorageUnavailableError(FolioScanError):
    """
    Raised when the document store or the blob backend fails transiently.

    When:    Connection lost, query failed, deadline exceeded, backend 5xx.
    HTTP:    503 Service Unavailable

    There is no internal retry loop; the caller may retry the whole operation.
    """

    def __init__(
        self,
        message: str = "Storage is temporarily unavailable. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CascadeFailedError(FolioScanError):
    """
    Raised when a recursive folder delete aborts part-way.

    Documents deleted before the failure stay deleted (no rollback). Re-issuing
    the same delete is safe: already-absent rows are skipped.

    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        folder_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if folder_id:
            ctx["folder_id"] = folder_id
        super().__init__(
            message="Failed to delete the folder and its contents. Retrying the delete is safe.",
            context=ctx,
        )
        self.folder_id = folder_id


class BlobDeleteFailedError(FolioScanError):
    """
    Raised by a blob backend when removing a stored object fails.

    Non-fatal: the note service logs it and still removes the note row. The
    object is left orphaned in the backend.
    """

    def __init__(
        self,
        blob_ref: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if blob_ref:
            ctx["blob_ref"] = blob_ref
        super().__init__(message="Failed to delete stored image", context=ctx)
        self.blob_ref = blob_ref
