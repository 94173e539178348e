"""
FolioScan Backend — Folder Service
===================================

What:  Folder operations exposed to the HTTP layer: create, list, rename and
       recursive delete.
How:   Validates input, checks parent ownership, then calls the resource
       repository. Every store call is bounded by a deadline; a recursive
       delete runs the cascade engine under its own, longer deadline and then
       removes the folder row itself.
Who:   Routes in routes/folders.py, through the ServiceContainer.

Delete ordering:
    1. Load the folder (NotFoundError if absent or not owned)
    2. Cascade: notes and descendant folders at every depth
    3. Delete the folder row

    A failure in step 2 or 3 leaves the folder row in place, so the same
    delete can be issued again. After a successful delete the folder no
    longer exists and a repeated call reports NotFoundError.
"""

import asyncio
import logging
from typing import List, Optional

from folioscan.exceptions import CascadeFailedError
from folioscan.models.folder import ROOT_PARENT, Folder
from folioscan.services.cascade_delete import CascadeDeleteEngine, CascadeReport
from folioscan.services.deadlines import run_with_deadline
from folioscan.services.identifiers import require_parent_ref, require_resource_id
from folioscan.services.resource_repository import FolderRepository

logger = logging.getLogger(__name__)


class FolderService:
    """Business logic for folders."""

    def __init__(
        self,
        folders: FolderRepository,
        cascade: CascadeDeleteEngine,
        metadata_timeout: float = 5.0,
        cascade_timeout: float = 60.0,
    ):
        self._folders = folders
        self._cascade = cascade
        self._metadata_timeout = metadata_timeout
        self._cascade_timeout = cascade_timeout

    def _deadline(self, timeout: Optional[float]) -> float:
        return timeout if timeout is not None else self._metadata_timeout

    async def create_folder(
        self,
        owner_id: str,
        name: str,
        parent_id: str = ROOT_PARENT,
        timeout: Optional[float] = None,
    ) -> Folder:
        """
        Create a folder at the top level or under one of the owner's folders.

        Raises:
            ValidationError: empty name or malformed parent id.
            NotFoundError:   the parent is missing or owned by someone else.
        """
        parent_id = require_parent_ref(parent_id, field="parentId")
        deadline = self._deadline(timeout)

        if parent_id:
            await run_with_deadline(
                self._folders.get(owner_id, parent_id),
                deadline,
                "folder.get_parent",
            )

        return await run_with_deadline(
            self._folders.create(owner_id, name, parent_id),
            deadline,
            "folder.create",
        )

    async def list_folders(
        self,
        owner_id: str,
        parent_id: str = ROOT_PARENT,
        timeout: Optional[float] = None,
    ) -> List[Folder]:
        """Direct children of `parent_id` ("" for the top level)."""
        parent_id = require_parent_ref(parent_id, field="parentId")
        return await run_with_deadline(
            self._folders.list_children(owner_id, parent_id),
            self._deadline(timeout),
            "folder.list",
        )

    async def rename_folder(
        self,
        owner_id: str,
        folder_id: str,
        name: str,
        timeout: Optional[float] = None,
    ) -> None:
        require_resource_id(folder_id, field="folderId")
        await run_with_deadline(
            self._folders.rename(owner_id, folder_id, name),
            self._deadline(timeout),
            "folder.rename",
        )

    async def delete_folder(
        self,
        owner_id: str,
        folder_id: str,
        timeout: Optional[float] = None,
    ) -> CascadeReport:
        """
        Delete a folder together with everything beneath it.

        Args:
            timeout: Deadline for the whole cascade; defaults to the
                     configured cascade timeout.

        Raises:
            ValidationError:         malformed id.
            NotFoundError:           the folder is missing or not owned.
            CascadeFailedError:      the cascade aborted or ran out of time.
            StorageUnavailableError: loading or deleting the root row failed.
        """
        require_resource_id(folder_id, field="folderId")
        await run_with_deadline(
            self._folders.get(owner_id, folder_id),
            self._metadata_timeout,
            "folder.get",
        )

        cascade_deadline = timeout if timeout is not None else self._cascade_timeout
        try:
            report = await asyncio.wait_for(
                self._cascade.delete_subtree(owner_id, folder_id),
                timeout=cascade_deadline,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Cascade delete of folder %s exceeded %ss; partial deletion may remain",
                folder_id,
                cascade_deadline,
            )
            raise CascadeFailedError(
                folder_id=folder_id,
                context={"timeout_seconds": cascade_deadline},
            )

        deleted = await run_with_deadline(
            self._folders.delete(owner_id, folder_id, missing_ok=True),
            self._metadata_timeout,
            "folder.delete",
        )
        if deleted:
            report.folders_deleted += 1
        else:
            # Removed concurrently between the ownership check and now
            logger.info("Folder %s was already gone after its cascade", folder_id)

        logger.info(
            "Folder %s deleted with %d folder(s) and %d note(s) in total",
            folder_id,
            report.folders_deleted,
            report.notes_deleted,
        )
        return report
