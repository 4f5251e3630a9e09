"""Organization model."""

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import SerialIDMixin, TimestampMixin


class Organization(SerialIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"
    __table_args__ = (
        sa.CheckConstraint("visibility IN ('public', 'private')", name="ck_organizations_visibility"),
    )

    name: str = Field(nullable=False, index=True)
    description: str = Field(default="", nullable=False)
    visibility: str = Field(default="public", nullable=False)  # public | private
    owner_id: int = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False)
