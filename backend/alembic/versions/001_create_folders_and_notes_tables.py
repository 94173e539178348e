"""Create folders and notes tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the two metadata tables: `folders` (the hierarchy, by
       parentId) and `notes` (scanned images, by folderId).
How:   Column names are camelCase at the storage boundary. Identifiers are
       32-character hex strings generated by the application. There are no
       foreign keys; parent links are plain strings ("" = top level).

Rollback: downgrade() drops both tables (destructive — all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column(
            "createdAt",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updatedAt",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "folders",
        sa.Column("_id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "parentId",
            sa.String(32),
            nullable=False,
            server_default=sa.text("''"),
            comment="Parent folder id; empty string for top-level folders",
        ),
        sa.Column(
            "ownerId",
            sa.String(128),
            nullable=False,
            comment="Subject id from the identity provider",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("_id"),
    )

    # Children listing and the cascade walk: WHERE ownerId = ? AND parentId = ?
    op.create_index("idx_folders_owner_parent", "folders", ["ownerId", "parentId"])

    op.create_table(
        "notes",
        sa.Column("_id", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "folderId",
            sa.String(32),
            nullable=False,
            server_default=sa.text("''"),
        ),
        sa.Column("ownerId", sa.String(128), nullable=False),
        sa.Column(
            "blobRef",
            sa.Text(),
            nullable=False,
            server_default=sa.text("''"),
            comment="Opaque reference understood by the active blob backend",
        ),
        sa.Column(
            "publicUrl",
            sa.Text(),
            nullable=False,
            server_default=sa.text("''"),
            comment="Legacy; not populated for new notes",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("_id"),
    )

    # Folder listings and the cascade's bulk delete: WHERE ownerId = ? AND folderId = ?
    op.create_index("idx_notes_owner_folder", "notes", ["ownerId", "folderId"])


def downgrade() -> None:
    """Drop both tables. Destructive: all folder and note metadata is lost."""
    op.drop_index("idx_notes_owner_folder", table_name="notes")
    op.drop_table("notes")
    op.drop_index("idx_folders_owner_parent", table_name="folders")
    op.drop_table("folders")
