"""
User registry: the minimal local record the identity provider's ids point at.
"""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import ConflictError, ValidationError
from app.models.user import User

log = structlog.get_logger()


async def create_user(session: AsyncSession, username: str) -> User:
    """Register a username. Credentials are managed by the identity provider."""
    username = username.strip()
    if not username:
        raise ValidationError("Username is required.")

    existing = await session.execute(select(User).where(User.username == username))
    if existing.scalar_one_or_none():
        raise ConflictError("Username already taken.")

    user = User(username=username)
    session.add(user)
    await session.flush()

    log.info("user.created", user_id=user.id)
    return user
