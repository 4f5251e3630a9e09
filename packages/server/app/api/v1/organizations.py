"""
Organization API endpoints.

GET    /api/v1/orgs?q=                 — Public org directory
POST   /api/v1/orgs                    — Create an org (caller becomes owner)
GET    /api/v1/me/orgs                 — Orgs the caller belongs to
GET    /api/v1/orgs/{org_id}           — Org details + caller role
POST   /api/v1/orgs/{org_id}/members   — Add an existing user by username
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.access import AccessContext
from app.core.auth import get_caller_id
from app.core.database import get_session
from app.services import org_directory
from app.services import organizations as org_service
from rockimages_shared.schemas.common import Role
from rockimages_shared.schemas.organizations import (
    MemberAddRequest,
    MemberResponse,
    OrgCreateRequest,
    OrgDirectoryResponse,
    OrgListResponse,
    OrgResponse,
)

router = APIRouter()


@router.get("/orgs", response_model=OrgDirectoryResponse)
async def search_orgs(
    q: Optional[str] = Query(None, max_length=200),
    session: AsyncSession = Depends(get_session),
):
    """Newest public organizations, optionally filtered by name/description."""
    return OrgDirectoryResponse(orgs=await org_directory.search_orgs(session, q))


@router.post("/orgs", response_model=OrgResponse, status_code=201)
async def create_org(
    body: OrgCreateRequest,
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
):
    org = await org_service.create_org(session, body, caller_id)
    return org_service.org_response(AccessContext(org=org, caller_id=caller_id, role=Role.OWNER))


@router.get("/me/orgs", response_model=OrgListResponse)
async def list_my_orgs(
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
):
    return OrgListResponse(data=await org_service.list_caller_orgs(session, caller_id))


@router.get("/orgs/{org_id}", response_model=OrgResponse)
async def get_org(
    org_id: int,
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
):
    return await org_service.get_org(session, org_id, caller_id)


@router.post("/orgs/{org_id}/members", response_model=MemberResponse, status_code=201)
async def add_member(
    org_id: int,
    body: MemberAddRequest,
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
):
    """Add an existing user to the org (owner or editor only)."""
    return await org_service.add_member(session, org_id, caller_id, body.username, body.role)
