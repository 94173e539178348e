"""
FolioScan Backend — Folder SQLAlchemy Model
============================================

What:  ORM model for the `folders` table.
How:   Flat rows; the tree is expressed by `parentId`, a plain string that is
       either another folder's id or "" for a top-level folder. There is no
       foreign key: the hierarchy is walked with repeated queries (see
       services/cascade_delete.py).

Column names at the storage boundary are camelCase (`parentId`, `ownerId`,
`createdAt`, `updatedAt`); Python attributes are snake_case.

Query Patterns:
    - Children of a folder: WHERE ownerId = :owner AND parentId = :parent
      → idx_folders_owner_parent
    - Name search: WHERE ownerId = :owner AND lower(name) LIKE :pattern
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from folioscan.database import Base

# Sentinel parent reference for top-level folders and notes
ROOT_PARENT = ""


def new_resource_id() -> str:
    """32-character hex identifier, the same shape for folders and notes."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Folder(Base):
    """
    A user's folder.

    Lifecycle:
        1. Created by its owner, optionally under another folder of the same owner
        2. Renamed (name only; parent and owner never change)
        3. Deleted together with its whole subtree
    """

    __tablename__ = "folders"

    id: Mapped[str] = mapped_column(
        "_id",
        String(32),
        primary_key=True,
        default=new_resource_id,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    parent_id: Mapped[str] = mapped_column(
        "parentId",
        String(32),
        nullable=False,
        default=ROOT_PARENT,
        server_default=text("''"),
    )

    # Subject id from the identity provider; immutable after creation
    owner_id: Mapped[str] = mapped_column("ownerId", String(128), nullable=False)

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
        Index("idx_folders_owner_parent", "ownerId", "parentId"),
    )

    def __repr__(self) -> str:
        return (
            f"<Folder(id={self.id}, name='{self.name}', "
            f"parent_id='{self.parent_id}', owner_id='{self.owner_id}')>"
        )
