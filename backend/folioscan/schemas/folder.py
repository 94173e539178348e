"""
FolioScan Backend — Folder Schemas
===================================

What:  Request and response bodies of the /api/v1/folders endpoints.
"""

from datetime import datetime
from typing import List

from pydantic import Field

from folioscan.schemas.common import ApiModel


class FolderCreateRequest(ApiModel):
    """Body of POST /folders. `parentId` empty or omitted means top level."""

    name: str = Field(default="", description="Folder name (non-empty)")
    parent_id: str = Field(default="", description="Id of the parent folder, or empty")


class FolderResponse(ApiModel):
    """
    What:  A folder as returned to its owner.
    Who:   POST /folders (201) and the items of GET /folders/{folderId}.
    """
    id: str = Field(description="Folder identifier (32 hex characters)")
    name: str = Field(description="Display name")
    parent_id: str = Field(description="Parent folder id; empty for top-level folders")
    created_at: datetime = Field(description="Creation time (UTC ISO 8601)")
    updated_at: datetime = Field(description="Last rename (UTC ISO 8601)")


class FolderListResponse(ApiModel):
    folders: List[FolderResponse] = Field(description="Direct child folders, oldest first")
