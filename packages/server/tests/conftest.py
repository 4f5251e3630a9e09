"""
Shared fixtures: a throwaway SQLite database, a temporary media root, and
small factories for users, orgs, groups and catalog rows.
"""

from __future__ import annotations

import io
import os
import tempfile
from datetime import datetime, timezone
from typing import Optional

_TMP = tempfile.mkdtemp(prefix="rockimages-tests-")
os.environ["RI_DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP, 'catalog.db')}"
os.environ["RI_MEDIA_ROOT"] = os.path.join(_TMP, "media")
os.environ["RI_LOG_FORMAT"] = "text"
os.environ["RI_PREVIEW_QUEUE"] = "inline"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from PIL import Image  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from app.core.auth import create_jwt  # noqa: E402
from app.core.database import async_session_factory, engine  # noqa: E402
from app.core.storage import LocalArtifactStorage, Locator, get_storage  # noqa: E402
from app.core.transcoding import PillowTranscoder, get_transcoder  # noqa: E402
from app.main import app  # noqa: E402
from app.models.file import File, FileGroup  # noqa: E402
from app.models.group import Group  # noqa: E402
from app.models.membership import Membership  # noqa: E402
from app.models.organization import Organization  # noqa: E402
from app.models.user import User  # noqa: E402
from app.tasks.previews import InlinePreviewQueue, get_preview_queue  # noqa: E402
from rockimages_shared.schemas.common import Role, Visibility  # noqa: E402


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
async def session(db):
    async with async_session_factory() as s:
        yield s


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

class RecordingPreviews:
    """Preview dispatcher that only remembers what it was asked to do."""

    def __init__(self):
        self.calls: list[tuple[int, Locator, object]] = []

    async def dispatch(self, file_id, original, kind) -> None:
        self.calls.append((file_id, original, kind))


@pytest.fixture
def storage(tmp_path) -> LocalArtifactStorage:
    return LocalArtifactStorage(tmp_path / "media")


@pytest.fixture
def transcoder(storage) -> PillowTranscoder:
    return PillowTranscoder(
        storage,
        video_placeholder="static/video-placeholder.png",
        pending_placeholder="static/preview-pending.png",
        width=64,
        quality=70,
    )


@pytest.fixture
def previews() -> RecordingPreviews:
    return RecordingPreviews()


@pytest.fixture
def inline_queue(storage, transcoder) -> InlinePreviewQueue:
    return InlinePreviewQueue(transcoder, storage)


def make_png(width: int = 120, height: int = 80, color=(200, 40, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def make_oversized_png() -> bytes:
    """A tiny PNG whose pixel count trips Pillow's decompression bomb guard."""
    buf = io.BytesIO()
    Image.new("1", (15000, 12000)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

async def make_user(session, username: str) -> User:
    user = User(username=username)
    session.add(user)
    await session.flush()
    return user


async def make_org(
    session,
    owner: User,
    name: str = "Acme",
    visibility: Visibility = Visibility.PUBLIC,
    description: str = "",
) -> Organization:
    org = Organization(name=name, description=description, visibility=visibility.value, owner_id=owner.id)
    session.add(org)
    await session.flush()
    session.add(Membership(org_id=org.id, user_id=owner.id, role=Role.OWNER.value))
    await session.flush()
    return org


async def add_role(session, org: Organization, user: User, role: Role) -> None:
    session.add(Membership(org_id=org.id, user_id=user.id, role=role.value))
    await session.flush()


async def make_group(session, org: Organization, name: str, color: str = "#336699") -> Group:
    group = Group(org_id=org.id, name=name, color=color)
    session.add(group)
    await session.flush()
    return group


async def make_file(
    session,
    org: Organization,
    uploader: User,
    name: str = "photo.jpg",
    *,
    created_at: Optional[datetime] = None,
    groups: tuple = (),
    deleted: bool = False,
    mime_type: str = "image/jpeg",
) -> File:
    """Insert a catalog row directly, without touching storage."""
    file = File(
        org_id=org.id,
        uploader_id=uploader.id,
        original_name=name,
        display_name=name,
        mime_type=mime_type,
        kind="video" if mime_type.startswith("video/") else "image",
        original_locator=f"original/{name}",
        preview_locator="static/preview-pending.png",
        preview_status="pending",
        size_bytes=10,
        location_text="",
        deleted=deleted,
        created_at=created_at or datetime.now(timezone.utc),
    )
    session.add(file)
    await session.flush()
    for group in groups:
        session.add(FileGroup(file_id=file.id, group_id=group.id))
    await session.flush()
    return file


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_jwt(user.id)}"}


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest.fixture
async def client(storage, transcoder, inline_queue):
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_transcoder] = lambda: transcoder
    app.dependency_overrides[get_preview_queue] = lambda: inline_queue
    await transcoder.ensure_placeholders()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await inline_queue.drain()
    app.dependency_overrides.clear()
