"""File (catalog entry) model and its group association table."""

from datetime import date
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import SerialIDMixin, TimestampMixin


class File(SerialIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "files"
    __table_args__ = (
        sa.CheckConstraint("kind IN ('image', 'video')", name="ck_files_kind"),
        sa.Index("idx_files_org_listing", "org_id", "deleted", "created_at", "id"),
        {"sqlite_autoincrement": True},
    )

    org_id: int = Field(foreign_key="organizations.id", ondelete="CASCADE", nullable=False, index=True)
    uploader_id: int = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    original_name: str = Field(nullable=False)
    display_name: str = Field(nullable=False)
    mime_type: str = Field(nullable=False)
    kind: str = Field(nullable=False, default="image")  # image | video
    original_locator: str = Field(nullable=False)
    preview_locator: str = Field(nullable=False)
    preview_status: str = Field(nullable=False, default="pending")  # pending | ready | failed
    size_bytes: int = Field(nullable=False, default=0)
    shoot_date: Optional[date] = None
    location_text: str = Field(default="", nullable=False)
    deleted: bool = Field(default=False, nullable=False)


class FileGroup(SQLModel, table=True):
    __tablename__ = "file_groups"

    file_id: int = Field(foreign_key="files.id", ondelete="CASCADE", primary_key=True)
    group_id: int = Field(foreign_key="groups.id", ondelete="CASCADE", primary_key=True, index=True)
