"""
FolioScan Backend — Note SQLAlchemy Model
==========================================

What:  ORM model for the `notes` table.
How:   A note lives in one folder (`folderId`, "" for top level) and points at
       its scanned image through `blobRef`, an opaque reference understood only
       by the active blob backend ("" means no image).

Table Design:
    - blobRef: backend-specific (relative path, Drive file id or share link);
      never parsed outside services/*_blob_store.py
    - publicUrl: legacy column kept for schema compatibility; always "" for new rows
    - idx_notes_owner_folder: serves both folder listings and the bulk
      delete-by-folder issued by the cascade
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from folioscan.database import Base
from folioscan.models.folder import ROOT_PARENT, new_resource_id, utcnow


class Note(Base):
    """
    A scanned note.

    Lifecycle:
        1. Created with an uploaded image (blob stored first, then the row)
        2. Renamed (name only)
        3. Deleted individually (blob deleted best-effort) or by a folder
           cascade (blob left orphaned)
    """

    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(
        "_id",
        String(32),
        primary_key=True,
        default=new_resource_id,
    )

    # May carry a filename extension ("receipt.png")
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    folder_id: Mapped[str] = mapped_column(
        "folderId",
        String(32),
        nullable=False,
        default=ROOT_PARENT,
        server_default=text("''"),
    )

    owner_id: Mapped[str] = mapped_column("ownerId", String(128), nullable=False)

    blob_ref: Mapped[str] = mapped_column(
        "blobRef",
        Text,
        nullable=False,
        default="",
        server_default=text("''"),
    )

    public_url: Mapped[str] = mapped_column(
        "publicUrl",
        Text,
        nullable=False,
        default="",
        server_default=text("''"),
    )

    created_at: Mapped[datetime] = mapped_column(
        "createdAt",
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt",
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_notes_owner_folder", "ownerId", "folderId"),
    )

    def __repr__(self) -> str:
        return (
            f"<Note(id={self.id}, name='{self.name}', "
            f"folder_id='{self.folder_id}', owner_id='{self.owner_id}')>"
        )
