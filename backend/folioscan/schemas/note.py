"""
FolioScan Backend — Note Schemas
=================================

What:  Response bodies of the /api/v1/notes endpoints.
How:   A note's blob reference stays on the server. Clients get `imageUrl`,
       the authenticated proxy route that streams the image back.

Note creation is a multipart form (name, folderId, image) declared directly
on the route, so there is no request model for it here.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from folioscan.models.note import Note
from folioscan.schemas.common import ApiModel

API_PREFIX = "/api/v1"


def image_url_for(note_id: str) -> str:
    return f"{API_PREFIX}/notes/{note_id}/image"


class NoteResponse(ApiModel):
    """
    What:  A note as returned to its owner.
    Who:   POST /notes (201) and the items of GET /folders/{folderId}/notes.

    `image_url` is null when the note has no image attached.
    """
    id: str = Field(description="Note identifier (32 hex characters)")
    name: str = Field(description="Display name")
    folder_id: str = Field(description="Containing folder id; empty for top level")
    image_url: Optional[str] = Field(default=None, description="Authenticated image proxy URL")
    created_at: datetime = Field(description="Creation time (UTC ISO 8601)")
    updated_at: datetime = Field(description="Last rename (UTC ISO 8601)")

    @classmethod
    def from_note(cls, note: Note) -> "NoteResponse":
        return cls(
            id=note.id,
            name=note.name,
            folder_id=note.folder_id,
            image_url=image_url_for(note.id) if note.blob_ref else None,
            created_at=note.created_at,
            updated_at=note.updated_at,
        )


class NoteListResponse(ApiModel):
    notes: List[NoteResponse] = Field(description="Notes directly in the folder, oldest first")
