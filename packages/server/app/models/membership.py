"""User-Organization membership (one row per org and user)."""

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


class Membership(SQLModel, table=True):
    __tablename__ = "org_members"
    __table_args__ = (
        sa.CheckConstraint("role IN ('owner', 'editor', 'viewer')", name="ck_org_members_role"),
    )

    org_id: int = Field(foreign_key="organizations.id", ondelete="CASCADE", primary_key=True)
    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", primary_key=True, index=True)
    role: str = Field(nullable=False, default="viewer")  # owner | editor | viewer
