"""
Group (tag) registry: organization-scoped tag definitions.

Listing order is case-insensitive by name, then exact name, then id, so two
groups never swap places between requests.
"""

from __future__ import annotations

from typing import Iterable, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.access import require_caller, resolve_access
from app.core.errors import ValidationError
from app.models.group import Group
from rockimages_shared.schemas.files import GroupRead

log = structlog.get_logger()

GROUP_ORDER = (func.lower(Group.name), Group.name, Group.id)


def group_read(group: Group) -> GroupRead:
    return GroupRead(id=group.id, name=group.name, color=group.color)


async def create_group(
    session: AsyncSession,
    org_id: int,
    caller_id: Optional[int],
    name: str,
    color: str,
) -> Group:
    require_caller(caller_id)
    ctx = await resolve_access(session, org_id, caller_id)
    ctx.require_edit()

    name = (name or "").strip()
    color = (color or "").strip()
    if not name or not color:
        raise ValidationError("Name and color required.")

    group = Group(org_id=org_id, name=name, color=color)
    session.add(group)
    await session.flush()

    log.info("group.created", org_id=org_id, group_id=group.id, by=caller_id)
    return group


async def list_groups(
    session: AsyncSession, org_id: int, caller_id: Optional[int]
) -> list[Group]:
    ctx = await resolve_access(session, org_id, caller_id)
    ctx.require_view()
    result = await session.execute(
        select(Group).where(Group.org_id == org_id).order_by(*GROUP_ORDER)
    )
    return list(result.scalars().all())


async def groups_in_org(
    session: AsyncSession, org_id: int, group_ids: Iterable[int]
) -> set[int]:
    """Return the subset of ``group_ids`` that belong to ``org_id``."""
    wanted = {gid for gid in group_ids if gid}
    if not wanted:
        return set()
    result = await session.execute(
        select(Group.id).where(Group.org_id == org_id, Group.id.in_(wanted))
    )
    return {row[0] for row in result.all()}
