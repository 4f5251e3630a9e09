"""
Organization-related Pydantic schemas shared between server and clients.

Covers: org create request/response, the caller's org list, the public org
directory, and membership management.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import Role, Visibility


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Organization display name")
    description: str = Field(default="", max_length=2000)
    visibility: Visibility = Visibility.PUBLIC


class MemberAddRequest(BaseModel):
    """Add an existing user to the org by username."""
    username: str = Field(min_length=1, max_length=200)
    role: Role = Role.EDITOR


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgResponse(BaseModel):
    id: int
    name: str
    description: str = ""
    visibility: Visibility
    owner_id: int
    created_at: datetime
    role: Optional[Role] = None  # the requesting user's role, if any
    can_edit: bool = False

    model_config = {"from_attributes": True}


class OrgListItem(BaseModel):
    id: int
    name: str
    description: str = ""
    visibility: Visibility
    role: Role
    created_at: datetime


class OrgListResponse(BaseModel):
    data: list[OrgListItem]


class OrgDirectoryEntry(BaseModel):
    """One row of the public organization directory."""
    id: int
    name: str
    description: str = ""
    owner_name: str
    created_at: datetime


class OrgDirectoryResponse(BaseModel):
    orgs: list[OrgDirectoryEntry]


class MemberResponse(BaseModel):
    org_id: int
    user_id: int
    username: str
    role: Role
