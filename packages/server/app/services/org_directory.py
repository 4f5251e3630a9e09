"""Public organization directory."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.models.organization import Organization
from app.models.user import User
from rockimages_shared.schemas.common import Visibility
from rockimages_shared.schemas.organizations import OrgDirectoryEntry


async def search_orgs(
    session: AsyncSession, query: Optional[str] = None, limit: Optional[int] = None
) -> list[OrgDirectoryEntry]:
    """Newest public orgs, optionally filtered by name or description substring."""
    limit = limit or get_settings().org_directory_limit
    stmt = (
        select(Organization, User.username)
        .join(User, User.id == Organization.owner_id)
        .where(Organization.visibility == Visibility.PUBLIC.value)
    )

    query = (query or "").strip()
    if query:
        stmt = stmt.where(
            or_(
                Organization.name.icontains(query, autoescape=True),
                Organization.description.icontains(query, autoescape=True),
            )
        )

    result = await session.execute(
        stmt.order_by(Organization.created_at.desc(), Organization.id.desc()).limit(limit)
    )
    return [
        OrgDirectoryEntry(
            id=org.id,
            name=org.name,
            description=org.description or "",
            owner_name=owner_name,
            created_at=org.created_at,
        )
        for org, owner_name in result.all()
    ]
