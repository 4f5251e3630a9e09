"""File and group schemas for shared use across the server and API clients."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .common import FileKind, PreviewStatus


# ---------------------------------------------------------------------------
# Groups (tags)
# ---------------------------------------------------------------------------

class GroupCreate(BaseModel):
    name: str = Field(max_length=200)
    color: str = Field(max_length=64)


class GroupRead(BaseModel):
    id: int
    name: str
    color: str


class GroupListResponse(BaseModel):
    data: List[GroupRead]


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

class FileRead(BaseModel):
    """Read projection of a catalog entry. Locators are public references."""
    id: int
    org_id: int
    display_name: str
    original_name: str
    kind: FileKind
    mime_type: str
    preview_url: str
    original_url: str
    preview_status: PreviewStatus
    size_bytes: int
    shoot_date: Optional[date] = None
    location_text: str = ""
    created_at: datetime
    groups: List[GroupRead] = Field(default_factory=list)


class FileDetail(FileRead):
    group_ids: List[int] = Field(default_factory=list)


class RecentUpload(FileRead):
    org_name: str


class FileMetadataUpdate(BaseModel):
    """PATCH body. Fields left out are unchanged; see ``model_dump(exclude_unset=True)``."""
    display_name: Optional[str] = Field(default=None, max_length=500)
    shoot_date: Optional[date] = None
    location_text: Optional[str] = Field(default=None, max_length=500)
    group_ids: Optional[List[int]] = None

    @field_validator("display_name", "location_text")
    @classmethod
    def _strip(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if isinstance(value, str) else value


class UploadFailure(BaseModel):
    original_name: str
    error: str


class UploadResponse(BaseModel):
    ok: bool = True
    files: List[FileRead] = Field(default_factory=list)
    failed: List[UploadFailure] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

class FileSearchResponse(BaseModel):
    ok: bool = True
    can_edit: bool = False
    page: int = 1
    per_page: int
    total_pages: int = 1
    total: int = 0
    files: List[FileRead] = Field(default_factory=list)
    matching_groups: List[GroupRead] = Field(default_factory=list)
