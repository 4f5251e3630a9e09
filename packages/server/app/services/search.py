"""
Faceted, paginated file search within one organization.

Denied searches do not raise: they return an empty result tagged with the
reason, and the API layer turns both reasons into the same 404.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import structlog
from sqlalchemy import and_, exists, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.access import AccessContext, resolve_role
from app.core.config import get_settings
from app.models.file import File, FileGroup
from app.models.group import Group
from app.models.organization import Organization
from app.services.catalog import file_reads
from app.services.groups import GROUP_ORDER, group_read
from app.services.pagination import normalize_per_page, page_offset, paginate
from rockimages_shared.schemas.common import AccessDenial, Pagination
from rockimages_shared.schemas.files import FileRead, FileSearchResponse, GroupRead

log = structlog.get_logger()


@dataclass
class FileSearchResult:
    pagination: Pagination
    items: list[FileRead] = field(default_factory=list)
    can_edit: bool = False
    matching_groups: list[GroupRead] = field(default_factory=list)
    denial: Optional[AccessDenial] = None

    def to_response(self) -> FileSearchResponse:
        return FileSearchResponse(
            ok=self.denial is None,
            can_edit=self.can_edit,
            page=self.pagination.page,
            per_page=self.pagination.per_page,
            total_pages=self.pagination.total_pages,
            total=self.pagination.total,
            files=self.items,
            matching_groups=self.matching_groups,
        )


def _normalize_query(query: Optional[str]) -> Optional[str]:
    query = (query or "").strip()
    return query or None


def file_filter(org_id: int, query: Optional[str] = None, group_id: Optional[int] = None):
    """WHERE clause for live files of an org, optionally tagged and/or matching text."""
    clauses = [File.org_id == org_id, File.deleted.is_(False)]

    if group_id:
        clauses.append(
            exists().where(FileGroup.file_id == File.id, FileGroup.group_id == group_id)
        )

    if query:
        tag_match = exists().where(
            FileGroup.file_id == File.id,
            Group.id == FileGroup.group_id,
            Group.name.icontains(query, autoescape=True),
        )
        clauses.append(
            or_(
                File.display_name.icontains(query, autoescape=True),
                File.original_name.icontains(query, autoescape=True),
                tag_match,
            )
        )

    return and_(*clauses)


async def matching_groups(
    session: AsyncSession, org_id: int, query: str, limit: int
) -> list[GroupRead]:
    result = await session.execute(
        select(Group)
        .where(Group.org_id == org_id, Group.name.icontains(query, autoescape=True))
        .order_by(*GROUP_ORDER)
        .limit(limit)
    )
    return [group_read(g) for g in result.scalars().all()]


async def search_files(
    session: AsyncSession,
    org_id: int,
    caller_id: Optional[int],
    query: Optional[str] = None,
    group_id: Optional[int] = None,
    page: Optional[int] = 1,
    per_page: Optional[int] = None,
) -> FileSearchResult:
    settings = get_settings()
    per_page = normalize_per_page(per_page, settings.default_per_page, settings.max_per_page)
    query = _normalize_query(query)

    org = await session.get(Organization, org_id)
    if org is None:
        log.info("search.denied", reason=AccessDenial.NOT_FOUND.value, org_id=org_id, caller_id=caller_id)
        return FileSearchResult(paginate(0, 1, per_page), denial=AccessDenial.NOT_FOUND)

    ctx = AccessContext(org=org, caller_id=caller_id, role=await resolve_role(session, org_id, caller_id))
    if not ctx.can_view:
        log.info("search.denied", reason=ctx.denial.value, org_id=org_id, caller_id=caller_id)
        return FileSearchResult(paginate(0, 1, per_page), denial=ctx.denial)

    where = file_filter(org_id, query, group_id)
    total = (await session.execute(select(func.count()).select_from(File).where(where))).scalar_one()
    pagination = paginate(total, page, per_page)

    result = await session.execute(
        select(File)
        .where(where)
        .order_by(File.created_at.desc(), File.id.desc())
        .offset(page_offset(pagination))
        .limit(pagination.per_page)
    )
    items = await file_reads(session, list(result.scalars().all()))

    facet: list[GroupRead] = []
    if query:
        facet = await matching_groups(session, org_id, query, settings.matching_groups_limit)

    log.debug(
        "search.files",
        org_id=org_id,
        query=query,
        group_id=group_id,
        total=total,
        page=pagination.page,
    )
    return FileSearchResult(
        pagination=pagination,
        items=items,
        can_edit=ctx.can_edit,
        matching_groups=facet,
    )
