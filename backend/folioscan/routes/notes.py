"""
FolioScan Backend — Notes Route Handlers
==========================================

What:  Note upload, listing, rename, delete and the image proxy.
How:   Extracts form fields / path parameters, delegates to NoteService,
       returns JSON (or the image stream).
Who:   Called by the web client's folder view and image viewer.

Image proxy:
    GET /notes/{id}/image streams the bytes through this server. Clients never
    see the backend reference, and link-host downloads are never redirected.

Caching Strategy:
    - Mutations: never cached
    - GET /notes/{id}/image: private, 1 hour (images never change after upload)
"""

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import StreamingResponse

from folioscan.auth import Principal, get_current_principal
from folioscan.routes.folders import parent_from_path
from folioscan.schemas.common import ErrorResponse, MessageResponse, RenameRequest
from folioscan.schemas.note import NoteListResponse, NoteResponse
from folioscan.services.container import ServiceContainer, get_services

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api/v1", tags=["Notes"])

_ERRORS = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
    404: {"description": "Note or folder not found", "model": ErrorResponse},
    503: {"description": "Storage unavailable, retry later", "model": ErrorResponse},
}


def _inline_disposition(name: str) -> str:
    quoted = quote(name)
    if quoted != name:
        return f"inline; filename*=utf-8''{quoted}"
    return f'inline; filename="{name}"'


@router.post(
    "/notes",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
    summary="Upload a scanned note",
    description=(
        "Multipart form with `name`, `folderId` (empty for top level) and the "
        "`image` file (jpg, jpeg, png, webp or gif)."
    ),
)
async def create_note(
    name: str = Form(default=""),
    folder_id: str = Form(default="", alias="folderId"),
    image: UploadFile = File(...),
    principal: Principal = Depends(get_current_principal),
    services: ServiceContainer = Depends(get_services),
) -> NoteResponse:
    note = await services.note_service.create_note(
        principal.owner_id,
        name,
        folder_id,
        image_name=image.filename or "",
        image=image.file,
        size=image.size,
    )
    return NoteResponse.from_note(note)


@router.get(
    "/folders/{folder_id}/notes",
    response_model=NoteListResponse,
    responses=_ERRORS,
    summary="List notes in a folder",
    description="Lists the notes directly inside `folder_id`; use `root` for the top level.",
)
async def list_notes(
    folder_id: str,
    principal: Principal = Depends(get_current_principal),
    services: ServiceContainer = Depends(get_services),
) -> NoteListResponse:
    notes = await services.note_service.list_notes(principal.owner_id, parent_from_path(folder_id))
    return NoteListResponse(notes=[NoteResponse.from_note(n) for n in notes])


@router.put(
    "/notes/{note_id}",
    response_model=MessageResponse,
    responses=_ERRORS,
    summary="Rename a note",
)
async def rename_note(
    note_id: str,
    body: RenameRequest,
    principal: Principal = Depends(get_current_principal),
    services: ServiceContainer = Depends(get_services),
) -> MessageResponse:
    await services.note_service.rename_note(principal.owner_id, note_id, body.name)
    return MessageResponse(message="Note updated successfully")


@router.delete(
    "/notes/{note_id}",
    response_model=MessageResponse,
    responses=_ERRORS,
    summary="Delete a note and its image",
)
async def delete_note(
    note_id: str,
    principal: Principal = Depends(get_current_principal),
    services: ServiceContainer = Depends(get_services),
) -> MessageResponse:
    await services.note_service.delete_note(principal.owner_id, note_id)
    return MessageResponse(message="Note deleted successfully")


@router.get(
    "/notes/{note_id}/image",
    responses={
        200: {"description": "Image bytes", "content": {"image/*": {}}},
        **_ERRORS,
    },
    summary="Stream a note's image",
)
async def get_note_image(
    note_id: str,
    principal: Principal = Depends(get_current_principal),
    services: ServiceContainer = Depends(get_services),
) -> StreamingResponse:
    """
    Proxy the stored image to its owner.

    Content-Length is set when the backend reports a size.
    """
    note, download = await services.note_service.get_note_image(principal.owner_id, note_id)

    headers = {
        "Content-Disposition": _inline_disposition(note.name),
        "Cache-Control": "private, max-age=3600",
    }
    if download.content_length is not None:
        headers["Content-Length"] = str(download.content_length)

    return StreamingResponse(
        download.chunks,
        media_type=download.content_type,
        headers=headers,
    )
