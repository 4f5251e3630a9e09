# SQLModel tables, imported so Alembic sees the full metadata.
from .base import SerialIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization  # noqa: F401
from .membership import Membership  # noqa: F401
from .group import Group  # noqa: F401
from .file import File, FileGroup  # noqa: F401
