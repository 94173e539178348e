"""
FolioScan Backend — Search Aggregator
======================================

What:  Name search across a user's folders and notes in one call.
How:   Two lookups (folders, notes) run concurrently as separate tasks. Each
       task builds and returns its own result list; the lists are merged only
       after both tasks have finished, folders first.
Who:   GET /api/v1/search.

Degradation:
    A lookup that fails or exceeds its deadline is logged and contributes no
    results. The other lookup's results are still returned. If both fail the
    answer is an empty list; search never reports an error.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from folioscan.exceptions import FolioScanError
from folioscan.models.folder import Folder
from folioscan.models.note import Note
from folioscan.services.resource_repository import FolderRepository, NoteRepository

logger = logging.getLogger(__name__)


@dataclass
class SearchResult:
    """One match. `parent_id` is set for folders; `folder_id`/`blob_ref` for notes."""

    kind: str
    id: str
    name: str
    created_at: datetime
    parent_id: Optional[str] = None
    folder_id: Optional[str] = None
    blob_ref: Optional[str] = None

    @classmethod
    def from_folder(cls, folder: Folder) -> "SearchResult":
        return cls(
            kind="folder",
            id=folder.id,
            name=folder.name,
            created_at=folder.created_at,
            parent_id=folder.parent_id,
        )

    @classmethod
    def from_note(cls, note: Note) -> "SearchResult":
        return cls(
            kind="note",
            id=note.id,
            name=note.name,
            created_at=note.created_at,
            folder_id=note.folder_id,
            blob_ref=note.blob_ref,
        )


class SearchService:
    """Fans a query out to both collections and merges what comes back."""

    def __init__(self, folders: FolderRepository, notes: NoteRepository, timeout: float = 10.0):
        self._folders = folders
        self._notes = notes
        self._timeout = timeout

    async def search(
        self,
        owner_id: str,
        query: str,
        timeout: Optional[float] = None,
    ) -> List[SearchResult]:
        """
        Case-insensitive substring search over folder and note names.

        An empty query returns [] without touching the store.
        """
        if not query:
            return []

        deadline = timeout if timeout is not None else self._timeout
        folder_results, note_results = await asyncio.gather(
            self._lookup(
                "folders",
                lambda: self._folders.search(owner_id, query),
                SearchResult.from_folder,
                deadline,
            ),
            self._lookup(
                "notes",
                lambda: self._notes.search(owner_id, query),
                SearchResult.from_note,
                deadline,
            ),
        )

        logger.info(
            "Search for %r: %d folder(s), %d note(s)",
            query,
            len(folder_results),
            len(note_results),
        )
        return folder_results + note_results

    async def _lookup(
        self,
        label: str,
        fetch: Callable[[], Awaitable[list]],
        convert: Callable[..., SearchResult],
        deadline: float,
    ) -> List[SearchResult]:
        """Run one lookup in isolation; failures yield an empty list."""
        try:
            rows = await asyncio.wait_for(fetch(), timeout=deadline)
        except asyncio.TimeoutError:
            logger.warning("Search lookup over %s timed out after %ss; returning partial results", label, deadline)
            return []
        except FolioScanError as e:
            logger.warning(
                "Search lookup over %s failed: %s | Context: %s; returning partial results",
                label,
                e.message,
                e.context,
            )
            return []
        except Exception:
            logger.exception("Search lookup over %s raised unexpectedly; returning partial results", label)
            return []
        return [convert(row) for row in rows]
