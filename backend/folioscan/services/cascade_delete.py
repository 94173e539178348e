"""
FolioScan Backend — Cascade Delete Engine
==========================================

What:  Removes everything beneath a folder: the notes at every depth and all
       descendant folder rows. The folder's own row is left for the caller.
How:   Depth-first walk over repository queries. For each folder visited:

           1. bulk-delete its notes (one delete-by-filter)
           2. list its direct child folders
           3. walk every child subtree, then delete that child's row

       An explicit stack replaces recursion, so nesting depth is not bounded
       by the interpreter's recursion limit.
Who:   FolderService.delete_folder, which deletes the root row only after
       delete_subtree() returns.

State machine:
    START ──▶ RUNNING ──▶ DONE
                    └───▶ FAILED  (CascadeFailedError raised)

Failure semantics:
    Any repository error aborts the walk. Rows already deleted stay deleted
    (the store offers no multi-row transaction). Re-running the cascade on the
    same folder is safe: empty bulk deletes remove nothing and already-absent
    folder rows are skipped (missing_ok).

Blob orphaning:
    Notes removed here keep their blobs in the backend. Only an individual
    note delete calls the blob store. Orphaned blobs are not reclaimed.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from folioscan.exceptions import CascadeFailedError, FolioScanError
from folioscan.services.resource_repository import FolderRepository, NoteRepository

logger = logging.getLogger(__name__)


class CascadeState(str, Enum):
    START = "start"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CascadeReport:
    """Outcome of one delete_subtree() call."""

    root_id: str
    state: CascadeState = CascadeState.START
    folders_deleted: int = 0
    notes_deleted: int = 0
    failed_folder_id: Optional[str] = None


class CascadeDeleteEngine:
    """Walks and clears a folder subtree through the resource repository."""

    def __init__(self, folders: FolderRepository, notes: NoteRepository):
        self._folders = folders
        self._notes = notes

    async def delete_subtree(self, owner_id: str, folder_id: str) -> CascadeReport:
        """
        Delete all notes and descendant folders under `folder_id`.

        The folder row `folder_id` itself is NOT deleted. Sibling order is
        whatever the repository returns.

        Returns:
            CascadeReport in state DONE with removal counts.

        Raises:
            CascadeFailedError: a repository call failed; the report attached to
                the error context records how far the walk got.
        """
        report = CascadeReport(root_id=folder_id)

        # (folder id, children already pushed?). A folder row is deleted when
        # it is popped the second time, i.e. after its whole subtree.
        stack: List[Tuple[str, bool]] = [(folder_id, False)]
        current = folder_id

        report.state = CascadeState.RUNNING
        logger.debug("Cascade delete of folder %s for owner %s started", folder_id, owner_id)
        try:
            while stack:
                current, expanded = stack.pop()

                if expanded:
                    if await self._folders.delete(owner_id, current, missing_ok=True):
                        report.folders_deleted += 1
                    continue

                removed = await self._notes.delete_in_folder(owner_id, current)
                if removed:
                    logger.info(
                        "Deleted %d note(s) in folder %s; their blobs are left orphaned",
                        removed,
                        current,
                    )
                report.notes_deleted += removed

                children = await self._folders.list_children(owner_id, current)
                if current != folder_id:
                    stack.append((current, True))
                stack.extend((child.id, False) for child in reversed(children))

        except FolioScanError as e:
            report.state = CascadeState.FAILED
            report.failed_folder_id = current
            logger.error(
                "Cascade delete of folder %s failed at folder %s after removing "
                "%d folder(s) and %d note(s): %s",
                folder_id,
                current,
                report.folders_deleted,
                report.notes_deleted,
                e.message,
            )
            raise CascadeFailedError(
                folder_id=folder_id,
                context={
                    "failed_folder_id": current,
                    "folders_deleted": report.folders_deleted,
                    "notes_deleted": report.notes_deleted,
                    **e.context,
                },
            ) from e

        report.state = CascadeState.DONE
        logger.info(
            "Cascade delete of folder %s done: %d folder(s), %d note(s) removed",
            folder_id,
            report.folders_deleted,
            report.notes_deleted,
        )
        return report
