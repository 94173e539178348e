"""
FolioScan Backend — Search Schemas
===================================

What:  Response body of GET /api/v1/search.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from folioscan.schemas.common import ApiModel
from folioscan.schemas.note import image_url_for
from folioscan.services.search_service import SearchResult


class SearchHit(ApiModel):
    """
    One match. Folders carry `parentId`; notes carry `folderId` and, when an
    image is attached, `imageUrl`.
    """
    kind: str = Field(description="'folder' or 'note'")
    id: str
    name: str
    created_at: datetime
    parent_id: Optional[str] = None
    folder_id: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchHit":
        return cls(
            kind=result.kind,
            id=result.id,
            name=result.name,
            created_at=result.created_at,
            parent_id=result.parent_id,
            folder_id=result.folder_id,
            image_url=image_url_for(result.id) if result.blob_ref else None,
        )


class SearchResponse(ApiModel):
    query: str = Field(description="The query as received")
    results: List[SearchHit] = Field(description="Folders first, then notes")
