from enum import Enum
from typing import Optional
from pydantic import BaseModel

class Role(str, Enum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"

# Roles allowed to mutate org content
EDITOR_ROLES: frozenset["Role"] = frozenset({Role.OWNER, Role.EDITOR})

class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"

class FileKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"

class PreviewStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"

class AccessDenial(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"

class Pagination(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int


def kind_for_mime_type(mime_type: str) -> FileKind:
    """Classify an upload by its MIME type prefix."""
    if (mime_type or "").lower().startswith("video/"):
        return FileKind.VIDEO
    return FileKind.IMAGE
