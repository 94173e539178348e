"""
FolioScan Backend — Resource Repository
========================================

What:  Owner-scoped CRUD primitives over the `folders` and `notes` tables.
How:   Each public method opens its own short-lived session from the injected
       session factory, runs one statement (or one insert) and commits. There
       are no transactions spanning calls, so callers such as the cascade
       engine must tolerate rows vanishing between two calls.
Who:   Constructed once in services/container.py and shared by the folder,
       note, cascade and search services.

Ownership:
    Every read, update and delete filters on `ownerId`. A row that exists but
    belongs to someone else is reported exactly like a missing row
    (NotFoundError), so existence never leaks across owners.

Error translation:
    SQLAlchemy / driver errors → StorageUnavailableError (logged with the
    operation and id; the store's error text stays in the log).
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Generic, List, Type, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from folioscan.exceptions import FolioScanError, NotFoundError, StorageUnavailableError, ValidationError
from folioscan.models.folder import ROOT_PARENT, Folder, utcnow
from folioscan.models.note import Note

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", Folder, Note)

SessionFactory = Callable[[], AsyncSession]


def require_name(name: str) -> str:
    """Names are required and stored without surrounding whitespace."""
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(message="Name cannot be empty", field="name")
    return cleaned


class ResourceRepository(Generic[ModelT]):
    """
    Shared implementation for both collections.

    Subclasses set:
        model:         ORM class (Folder or Note)
        parent_attr:   attribute holding the parent reference
        resource_name: label used in NotFoundError and log lines
    """

    model: Type[ModelT]
    parent_attr: str
    resource_name: str

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    @property
    def _parent_column(self):
        return getattr(self.model, self.parent_attr)

    @asynccontextmanager
    async def _unit_of_work(self, operation: str, **context: Any) -> AsyncIterator[AsyncSession]:
        """
        One session, one commit.

        Application errors raised inside the block (NotFoundError, ...) roll
        back and propagate untouched; store errors are wrapped.
        """
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except FolioScanError:
                await session.rollback()
                raise
            except (SQLAlchemyError, OSError) as e:
                await session.rollback()
                logger.error(
                    "%s %s failed: %s | Context: %s",
                    self.resource_name,
                    operation,
                    type(e).__name__,
                    context,
                )
                raise StorageUnavailableError(
                    context={"operation": f"{self.resource_name}.{operation}", **context},
                ) from e

    async def create(
        self,
        owner_id: str,
        name: str,
        parent_ref: str = ROOT_PARENT,
        **fields: Any,
    ) -> ModelT:
        """
        Insert a new row owned by `owner_id` under `parent_ref`.

        The identifier and both timestamps are assigned here.

        Raises:
            ValidationError: `name` is empty or blank.
        """
        row = self.model(
            name=require_name(name),
            owner_id=owner_id,
            **{self.parent_attr: parent_ref or ROOT_PARENT},
            **fields,
        )
        async with self._unit_of_work("create", owner_id=owner_id, parent_ref=parent_ref) as session:
            session.add(row)
            await session.flush()
        logger.info(
            "%s created: %s (parent=%r)",
            self.resource_name,
            row.id,
            getattr(row, self.parent_attr),
        )
        return row

    async def get(self, owner_id: str, resource_id: str) -> ModelT:
        """Fetch one owned row or raise NotFoundError."""
        async with self._unit_of_work("get", resource_id=resource_id) as session:
            result = await session.execute(
                select(self.model).where(
                    self.model.id == resource_id,
                    self.model.owner_id == owner_id,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFoundError(resource=self.resource_name, resource_id=resource_id)
        return row

    async def list_children(self, owner_id: str, parent_ref: str = ROOT_PARENT) -> List[ModelT]:
        """
        Rows of `owner_id` directly under `parent_ref` ("" for the top level).

        Always returns a list; no matches gives [].
        """
        async with self._unit_of_work("list_children", parent_ref=parent_ref) as session:
            result = await session.execute(
                select(self.model)
                .where(
                    self.model.owner_id == owner_id,
                    self._parent_column == (parent_ref or ROOT_PARENT),
                )
                .order_by(self.model.created_at, self.model.id)
            )
            rows = list(result.scalars().all())
        return rows

    async def rename(self, owner_id: str, resource_id: str, new_name: str) -> None:
        """
        Change the name of one owned row.

        Raises:
            ValidationError: `new_name` is empty or blank.
            NotFoundError:   no row matches both id and owner.
        """
        cleaned = require_name(new_name)
        async with self._unit_of_work("rename", resource_id=resource_id) as session:
            result = await session.execute(
                update(self.model)
                .where(
                    self.model.id == resource_id,
                    self.model.owner_id == owner_id,
                )
                .values(name=cleaned, updated_at=utcnow())
            )
            if result.rowcount == 0:
                raise NotFoundError(resource=self.resource_name, resource_id=resource_id)
        logger.info("%s renamed: %s", self.resource_name, resource_id)

    async def delete(self, owner_id: str, resource_id: str, missing_ok: bool = False) -> bool:
        """
        Delete exactly one owned row (never its descendants).

        Returns True when a row was removed. With `missing_ok`, an absent row
        returns False instead of raising; the cascade engine relies on this
        when a delete is retried.

        Raises:
            NotFoundError: no row matched and `missing_ok` is False.
        """
        async with self._unit_of_work("delete", resource_id=resource_id) as session:
            result = await session.execute(
                delete(self.model).where(
                    self.model.id == resource_id,
                    self.model.owner_id == owner_id,
                )
            )
            deleted = result.rowcount > 0
            if not deleted and not missing_ok:
                raise NotFoundError(resource=self.resource_name, resource_id=resource_id)
        return deleted

    async def search(self, owner_id: str, substring: str) -> List[ModelT]:
        """
        Case-insensitive substring match on `name`, scoped to `owner_id`.

        The substring is matched literally (LIKE wildcards are escaped).
        An empty substring returns [] without opening a session.
        """
        if not substring:
            return []
        async with self._unit_of_work("search") as session:
            result = await session.execute(
                select(self.model)
                .where(
                    self.model.owner_id == owner_id,
                    func.lower(self.model.name).contains(substring.lower(), autoescape=True),
                )
                .order_by(self.model.created_at, self.model.id)
            )
            rows = list(result.scalars().all())
        return rows


class FolderRepository(ResourceRepository[Folder]):
    """Folders, keyed by their parent folder (`parentId`)."""

    model = Folder
    parent_attr = "parent_id"
    resource_name = "folder"


class NoteRepository(ResourceRepository[Note]):
    """Notes, keyed by their containing folder (`folderId`)."""

    model = Note
    parent_attr = "folder_id"
    resource_name = "note"

    async def delete_in_folder(self, owner_id: str, folder_id: str) -> int:
        """
        Bulk delete every note of `owner_id` directly inside `folder_id`.

        A single delete-by-filter statement. Attached blobs are not touched.
        Returns the number of rows removed (0 when already empty).
        """
        async with self._unit_of_work("delete_in_folder", folder_id=folder_id) as session:
            result = await session.execute(
                delete(Note).where(
                    Note.owner_id == owner_id,
                    Note.folder_id == folder_id,
                )
            )
            removed = result.rowcount or 0
        return removed
