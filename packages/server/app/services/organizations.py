"""
Organization service: org creation, the membership registry and the caller's org list.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.access import AccessContext, require_caller, resolve_access
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.membership import Membership
from app.models.organization import Organization
from app.models.user import User
from rockimages_shared.schemas.common import Role, Visibility
from rockimages_shared.schemas.organizations import (
    MemberResponse,
    OrgCreateRequest,
    OrgListItem,
    OrgResponse,
)

log = structlog.get_logger()


def org_response(ctx: AccessContext) -> OrgResponse:
    org = ctx.org
    return OrgResponse(
        id=org.id,
        name=org.name,
        description=org.description or "",
        visibility=Visibility(org.visibility),
        owner_id=org.owner_id,
        created_at=org.created_at,
        role=ctx.role,
        can_edit=ctx.can_edit,
    )


async def list_caller_orgs(
    session: AsyncSession, caller_id: Optional[int]
) -> list[OrgListItem]:
    """List all orgs the caller belongs to, with their role, newest first."""
    caller_id = require_caller(caller_id)
    result = await session.execute(
        select(Organization, Membership.role)
        .join(Membership, Membership.org_id == Organization.id)
        .where(Membership.user_id == caller_id)
        .order_by(Organization.created_at.desc(), Organization.id.desc())
    )
    return [
        OrgListItem(
            id=org.id,
            name=org.name,
            description=org.description or "",
            visibility=Visibility(org.visibility),
            role=Role(role),
            created_at=org.created_at,
        )
        for org, role in result.all()
    ]


async def create_org(
    session: AsyncSession,
    req: OrgCreateRequest,
    creator_id: Optional[int],
) -> Organization:
    """Create an org and make the creator its owner."""
    creator_id = require_caller(creator_id)
    name = req.name.strip()
    if not name:
        raise ValidationError("Name is required.")

    if await session.get(User, creator_id) is None:
        raise NotFoundError("User not found")

    org = Organization(
        name=name,
        description=(req.description or "").strip(),
        visibility=req.visibility.value,
        owner_id=creator_id,
    )
    session.add(org)
    await session.flush()

    # Creator becomes owner
    session.add(Membership(org_id=org.id, user_id=creator_id, role=Role.OWNER.value))
    await session.flush()

    log.info("org.created", org_id=org.id, visibility=org.visibility, creator=creator_id)
    return org


async def get_org(
    session: AsyncSession, org_id: int, caller_id: Optional[int]
) -> OrgResponse:
    """Org details plus the caller's role; hidden from non-members of private orgs."""
    ctx = await resolve_access(session, org_id, caller_id)
    ctx.require_view()
    return org_response(ctx)


async def add_member(
    session: AsyncSession,
    org_id: int,
    caller_id: Optional[int],
    username: str,
    role: Role,
) -> MemberResponse:
    """Add an existing user to the org. Owners and editors may invite."""
    require_caller(caller_id)
    ctx = await resolve_access(session, org_id, caller_id)
    ctx.require_edit()

    result = await session.execute(select(User).where(User.username == username.strip()))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found.")

    existing = await session.execute(
        select(Membership).where(Membership.org_id == org_id, Membership.user_id == user.id)
    )
    if existing.scalar_one_or_none():
        raise ConflictError("User is already a member of this org")

    session.add(Membership(org_id=org_id, user_id=user.id, role=role.value))
    try:
        await session.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent invite of the same user
        raise ConflictError("User is already a member of this org") from exc

    log.info("org.member_added", org_id=org_id, user_id=user.id, role=role.value, by=caller_id)
    return MemberResponse(org_id=org_id, user_id=user.id, username=user.username, role=role)
