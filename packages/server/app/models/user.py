"""User model. Credentials live with the identity provider, not here."""

from sqlmodel import Field, SQLModel

from .base import SerialIDMixin, TimestampMixin


class User(SerialIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    username: str = Field(unique=True, index=True, nullable=False)
