"""Group (tag) model."""

from sqlmodel import Field, SQLModel

from .base import SerialIDMixin


class Group(SerialIDMixin, SQLModel, table=True):
    __tablename__ = "groups"

    org_id: int = Field(foreign_key="organizations.id", ondelete="CASCADE", nullable=False, index=True)
    name: str = Field(nullable=False)
    color: str = Field(nullable=False)
