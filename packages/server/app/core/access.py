"""
Membership lookup and access decisions.

Permissions derive from exactly two inputs: the caller's membership role in
the organization (or none) and the organization's visibility.

- can_view: any member, or anyone at all when the org is public
- can_edit: owner or editor

Denials for callers who cannot view are reported as NotFound so private
organizations do not leak their existence; the real reason is logged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ForbiddenError, NotFoundError, UnauthenticatedError
from app.models.membership import Membership
from app.models.organization import Organization
from rockimages_shared.schemas.common import EDITOR_ROLES, AccessDenial, Role, Visibility

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def can_view(role: Optional[Role], visibility: Visibility) -> bool:
    return role is not None or visibility == Visibility.PUBLIC


def can_edit(role: Optional[Role]) -> bool:
    return role in EDITOR_ROLES


def require_caller(caller_id: Optional[int]) -> int:
    """Mutations need an identity; checked before any lookup so nothing leaks."""
    if caller_id is None:
        raise UnauthenticatedError("Authentication required")
    return caller_id


# ---------------------------------------------------------------------------
# Membership registry
# ---------------------------------------------------------------------------

async def resolve_role(
    session: AsyncSession, org_id: int, caller_id: Optional[int]
) -> Optional[Role]:
    """Return the caller's role in the org, or None (anonymous or not a member)."""
    if caller_id is None:
        return None
    result = await session.execute(
        select(Membership.role).where(
            Membership.org_id == org_id, Membership.user_id == caller_id
        )
    )
    role = result.scalar_one_or_none()
    return Role(role) if role is not None else None


# ---------------------------------------------------------------------------
# Access context
# ---------------------------------------------------------------------------

@dataclass
class AccessContext:
    """An organization together with what one caller may do in it."""

    org: Organization
    caller_id: Optional[int]
    role: Optional[Role]

    @property
    def org_id(self) -> int:
        return self.org.id

    @property
    def visibility(self) -> Visibility:
        return Visibility(self.org.visibility)

    @property
    def can_view(self) -> bool:
        return can_view(self.role, self.visibility)

    @property
    def can_edit(self) -> bool:
        return can_edit(self.role)

    @property
    def denial(self) -> Optional[AccessDenial]:
        return None if self.can_view else AccessDenial.FORBIDDEN

    def require_view(self) -> None:
        if not self.can_view:
            log.info(
                "access.denied",
                reason=AccessDenial.FORBIDDEN.value,
                org_id=self.org_id,
                caller_id=self.caller_id,
            )
            raise NotFoundError("Organization not found")

    def require_edit(self) -> None:
        require_caller(self.caller_id)
        self.require_view()
        if not self.can_edit:
            log.info(
                "access.edit_denied",
                org_id=self.org_id,
                caller_id=self.caller_id,
                role=self.role.value if self.role else None,
            )
            raise ForbiddenError("Editor or owner role required")


async def resolve_access(
    session: AsyncSession, org_id: int, caller_id: Optional[int]
) -> AccessContext:
    """Load the org and the caller's role; NotFound if the org does not exist."""
    org = await session.get(Organization, org_id)
    if org is None:
        log.info(
            "access.denied",
            reason=AccessDenial.NOT_FOUND.value,
            org_id=org_id,
            caller_id=caller_id,
        )
        raise NotFoundError("Organization not found")
    role = await resolve_role(session, org_id, caller_id)
    return AccessContext(org=org, caller_id=caller_id, role=role)
