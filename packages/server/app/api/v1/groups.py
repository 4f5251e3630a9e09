"""
Group (tag) endpoints.

GET    /api/v1/orgs/{org_id}/groups   — List the org's groups
POST   /api/v1/orgs/{org_id}/groups   — Create a group (owner/editor)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_caller_id
from app.core.database import get_session
from app.services.groups import create_group, group_read, list_groups
from rockimages_shared.schemas.files import GroupCreate, GroupListResponse, GroupRead

router = APIRouter()


@router.get("", response_model=GroupListResponse)
async def list_groups_endpoint(
    org_id: int,
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
):
    groups = await list_groups(session, org_id, caller_id)
    return GroupListResponse(data=[group_read(g) for g in groups])


@router.post("", response_model=GroupRead, status_code=201)
async def create_group_endpoint(
    org_id: int,
    body: GroupCreate,
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
):
    group = await create_group(session, org_id, caller_id, body.name, body.color)
    return group_read(group)
