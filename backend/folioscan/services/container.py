"""
FolioScan Backend — Service Container
======================================

What:  Builds the service graph once per process.
How:   The app lifespan calls build_services() and stores the result on
       `app.state.services`; routes read it through get_services(). Tests build
       their own container around an in-memory database and a temporary
       blob directory.

Dependency graph:
    session factory ──▶ FolderRepository ─┬─▶ CascadeDeleteEngine ──▶ FolderService
                    └─▶ NoteRepository ───┤
    BlobStore ────────────────────────────┴─▶ NoteService
    FolderRepository + NoteRepository ──────▶ SearchService
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from folioscan.config import Settings
from folioscan.services.blob_store import BlobStore, create_blob_store
from folioscan.services.cascade_delete import CascadeDeleteEngine
from folioscan.services.folder_service import FolderService
from folioscan.services.note_service import NoteService
from folioscan.services.resource_repository import FolderRepository, NoteRepository, SessionFactory
from folioscan.services.search_service import SearchService


@dataclass
class ServiceContainer:
    folders: FolderRepository
    notes: NoteRepository
    blob_store: BlobStore
    cascade: CascadeDeleteEngine
    folder_service: FolderService
    note_service: NoteService
    search_service: SearchService

    async def aclose(self) -> None:
        await self.blob_store.aclose()


def build_services(
    config: Settings,
    session_factory: SessionFactory,
    blob_store: Optional[BlobStore] = None,
) -> ServiceContainer:
    """
    Wire every service from `config`.

    Args:
        config:          Application settings (timeouts, upload cap, backend).
        session_factory: Callable returning a new AsyncSession.
        blob_store:      Pre-built backend; when None the one selected by
                         `config.blob_backend` is created.
    """
    folders = FolderRepository(session_factory)
    notes = NoteRepository(session_factory)
    blobs = blob_store if blob_store is not None else create_blob_store(config)
    cascade = CascadeDeleteEngine(folders, notes)

    return ServiceContainer(
        folders=folders,
        notes=notes,
        blob_store=blobs,
        cascade=cascade,
        folder_service=FolderService(
            folders,
            cascade,
            metadata_timeout=config.metadata_timeout_seconds,
            cascade_timeout=config.cascade_timeout_seconds,
        ),
        note_service=NoteService(
            notes,
            folders,
            blobs,
            max_file_size=config.max_file_size,
            metadata_timeout=config.metadata_timeout_seconds,
            blob_timeout=config.blob_timeout_seconds,
        ),
        search_service=SearchService(folders, notes, timeout=config.search_timeout_seconds),
    )


def get_services(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the container built at startup."""
    return request.app.state.services
