"""
FolioScan Backend — Folder Route Handlers
==========================================

What:  CRUD over the caller's folders under /api/v1/folders.
How:   Thin handlers: decode the request, call FolderService, shape the
       response. Ownership, validation and the recursive delete all live in
       the service layer.
Who:   Called by the web client's folder browser.

Path convention:
    GET /folders/root lists the top-level folders; any other value is a
    folder id.
"""

import logging

from fastapi import APIRouter, Depends, status

from folioscan.auth import Principal, get_current_principal
from folioscan.models.folder import ROOT_PARENT
from folioscan.schemas.common import ErrorResponse, MessageResponse, RenameRequest
from folioscan.schemas.folder import FolderCreateRequest, FolderListResponse, FolderResponse
from folioscan.services.container import ServiceContainer, get_services

logger = logging.getLogger(__name__)

# Path value standing for the top level of the hierarchy
ROOT_ALIAS = "root"

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api/v1", tags=["Folders"])

_ERRORS = {
    400: {"description": "Invalid input", "model": ErrorResponse},
    401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
    404: {"description": "Folder not found", "model": ErrorResponse},
    503: {"description": "Storage unavailable, retry later", "model": ErrorResponse},
}


def parent_from_path(value: str) -> str:
    """Map the `root` path alias to the top-level parent reference."""
    return ROOT_PARENT if value == ROOT_ALIAS else value


@router.post(
    "/folders",
    response_model=FolderResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
    summary="Create a folder",
)
async def create_folder(
    body: FolderCreateRequest,
    principal: Principal = Depends(get_current_principal),
    services: ServiceContainer = Depends(get_services),
) -> FolderResponse:
    """Create a folder at the top level or inside one of the caller's folders."""
    folder = await services.folder_service.create_folder(
        principal.owner_id,
        body.name,
        body.parent_id,
    )
    return FolderResponse.model_validate(folder)


@router.get(
    "/folders/{folder_id}",
    response_model=FolderListResponse,
    responses=_ERRORS,
    summary="List child folders",
    description="Lists the folders directly inside `folder_id`; use `root` for the top level.",
)
async def list_folders(
    folder_id: str,
    principal: Principal = Depends(get_current_principal),
    services: ServiceContainer = Depends(get_services),
) -> FolderListResponse:
    folders = await services.folder_service.list_folders(
        principal.owner_id,
        parent_from_path(folder_id),
    )
    return FolderListResponse(folders=[FolderResponse.model_validate(f) for f in folders])


@router.put(
    "/folders/{folder_id}",
    response_model=MessageResponse,
    responses=_ERRORS,
    summary="Rename a folder",
)
async def rename_folder(
    folder_id: str,
    body: RenameRequest,
    principal: Principal = Depends(get_current_principal),
    services: ServiceContainer = Depends(get_services),
) -> MessageResponse:
    await services.folder_service.rename_folder(principal.owner_id, folder_id, body.name)
    return MessageResponse(message="Folder updated successfully")


@router.delete(
    "/folders/{folder_id}",
    response_model=MessageResponse,
    responses={
        **_ERRORS,
        500: {"description": "Cascade aborted part-way; retry is safe", "model": ErrorResponse},
    },
    summary="Delete a folder and everything in it",
)
async def delete_folder(
    folder_id: str,
    principal: Principal = Depends(get_current_principal),
    services: ServiceContainer = Depends(get_services),
) -> MessageResponse:
    """
    Delete the folder, its notes and all nested folders.

    Images of notes removed by the cascade are not deleted from the blob
    backend.
    """
    report = await services.folder_service.delete_folder(principal.owner_id, folder_id)
    logger.info(
        "Folder %s removed by %s (%d folder(s), %d note(s))",
        folder_id,
        principal.owner_id,
        report.folders_deleted,
        report.notes_deleted,
    )
    return MessageResponse(message="Folder and all its contents deleted successfully")
