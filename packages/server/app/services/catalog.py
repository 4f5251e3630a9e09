"""
File catalog: ingest, metadata edits, reupload, deletion and preview updates.

Bytes live with the storage collaborator; rows only hold locators. Every
write path orders its side effects so a failure never leaves a row pointing
at a missing artifact:

- ingest/reupload write the artifact first, then the row; if the row write
  fails the new artifact is removed again
- delete removes artifacts best-effort first, then the row
- preview results are applied with a single UPDATE guarded by the original
  locator they were rendered from, so a stale result is dropped
"""

from __future__ import annotations

import mimetypes
import os
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import AsyncIterator, Iterable, Optional, Protocol

import structlog
from sqlalchemy import delete, insert, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.access import AccessContext, require_caller, resolve_access
from app.core.config import get_settings
from app.core.errors import DependencyError, NotFoundError, ValidationError
from app.core.storage import ArtifactStorage, Locator, RemovalOutcome
from app.core.transcoding import Transcoder
from app.models.file import File, FileGroup
from app.models.group import Group
from app.models.membership import Membership
from app.models.organization import Organization
from app.services.groups import GROUP_ORDER, group_read, groups_in_org
from rockimages_shared.schemas.common import FileKind, PreviewStatus, kind_for_mime_type
from rockimages_shared.schemas.files import (
    FileDetail,
    FileMetadataUpdate,
    FileRead,
    GroupRead,
    RecentUpload,
    UploadFailure,
    UploadResponse,
)

log = structlog.get_logger()


class PreviewDispatcher(Protocol):
    """Hands preview generation to something that runs outside the request."""

    async def dispatch(self, file_id: int, original: Locator, kind: FileKind) -> None: ...


@dataclass
class IncomingUpload:
    original_name: str
    mime_type: str
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def suffix(self) -> str:
        ext = os.path.splitext(self.original_name)[1]
        if ext:
            return ext.lower()
        return mimetypes.guess_extension(self.mime_type or "") or ""


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

async def groups_by_file(
    session: AsyncSession, file_ids: Iterable[int]
) -> dict[int, list[GroupRead]]:
    """Load the groups of many files in one query."""
    ids = list(file_ids)
    grouped: dict[int, list[GroupRead]] = defaultdict(list)
    if not ids:
        return grouped
    result = await session.execute(
        select(FileGroup.file_id, Group)
        .join(Group, Group.id == FileGroup.group_id)
        .where(FileGroup.file_id.in_(ids))
        .order_by(FileGroup.file_id, *GROUP_ORDER)
    )
    for file_id, group in result.all():
        grouped[file_id].append(group_read(group))
    return grouped


def _file_url(file_id: int, action: str) -> str:
    return f"{get_settings().api_prefix}/files/{file_id}/{action}"


def preview_url(file: File) -> str:
    """Shared placeholders are static; a file's own preview needs the org check."""
    preview = Locator(file.preview_locator)
    if preview.is_public:
        return preview.to_public_reference()
    return _file_url(file.id, "preview")


def _projection_fields(file: File, groups: list[GroupRead]) -> dict:
    return dict(
        id=file.id,
        org_id=file.org_id,
        display_name=file.display_name,
        original_name=file.original_name,
        kind=FileKind(file.kind),
        mime_type=file.mime_type,
        preview_url=preview_url(file),
        original_url=_file_url(file.id, "download"),
        preview_status=PreviewStatus(file.preview_status),
        size_bytes=file.size_bytes,
        shoot_date=file.shoot_date,
        location_text=file.location_text or "",
        created_at=file.created_at,
        groups=groups,
    )


def file_read(file: File, groups: Optional[list[GroupRead]] = None) -> FileRead:
    return FileRead(**_projection_fields(file, groups or []))


async def file_reads(session: AsyncSession, files: list[File]) -> list[FileRead]:
    grouped = await groups_by_file(session, [f.id for f in files])
    return [file_read(f, grouped.get(f.id, [])) for f in files]


async def file_detail(session: AsyncSession, file: File) -> FileDetail:
    groups = (await groups_by_file(session, [file.id])).get(file.id, [])
    return FileDetail(**_projection_fields(file, groups), group_ids=[g.id for g in groups])


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

async def load_file_access(
    session: AsyncSession, file_id: int, caller_id: Optional[int]
) -> tuple[File, AccessContext]:
    """Fetch a live file and the caller's access to its org."""
    file = await session.get(File, file_id)
    if file is None or file.deleted:
        raise NotFoundError("File not found")
    ctx = await resolve_access(session, file.org_id, caller_id)
    return file, ctx


async def _discard(storage: ArtifactStorage, locator: Locator, reason: str) -> None:
    outcome = await storage.remove_artifact(locator)
    if outcome == RemovalOutcome.ERROR:
        log.warning("file.artifact_orphaned", locator=locator.value, reason=reason)
    elif outcome == RemovalOutcome.NOT_FOUND:
        log.debug("file.artifact_missing", locator=locator.value, reason=reason)


# ---------------------------------------------------------------------------
# Ingest
# ---------------------------------------------------------------------------

async def ingest(
    session: AsyncSession,
    org_id: int,
    caller_id: Optional[int],
    upload: IncomingUpload,
    storage: ArtifactStorage,
    transcoder: Transcoder,
    previews: PreviewDispatcher,
) -> FileRead:
    """Store an uploaded file and add it to the org's catalog."""
    caller_id = require_caller(caller_id)
    ctx = await resolve_access(session, org_id, caller_id)
    ctx.require_edit()

    original_name = (upload.original_name or "").strip()
    if not original_name:
        raise ValidationError("File name is required.")

    kind = kind_for_mime_type(upload.mime_type)
    locator = await storage.write_artifact(upload.data, upload.mime_type, suffix=upload.suffix)

    file = File(
        org_id=org_id,
        uploader_id=caller_id,
        original_name=original_name,
        display_name=original_name,
        mime_type=upload.mime_type,
        kind=kind.value,
        original_locator=locator.value,
        preview_locator=transcoder.pending_placeholder.value,
        preview_status=PreviewStatus.PENDING.value,
        size_bytes=upload.size_bytes,
        shoot_date=date.today(),
        location_text="",
        deleted=False,
    )
    try:
        session.add(file)
        await session.flush()
        await session.commit()
    except SQLAlchemyError:
        await _discard(storage, locator, "ingest_rollback")
        raise

    log.info(
        "file.ingested",
        file_id=file.id,
        org_id=org_id,
        kind=kind.value,
        size_bytes=file.size_bytes,
        by=caller_id,
    )
    await previews.dispatch(file.id, locator, kind)
    return file_read(file)


async def ingest_many(
    session: AsyncSession,
    org_id: int,
    caller_id: Optional[int],
    uploads: list[IncomingUpload],
    storage: ArtifactStorage,
    transcoder: Transcoder,
    previews: PreviewDispatcher,
) -> UploadResponse:
    """Ingest a batch; a file that fails is reported and the rest continue."""
    require_caller(caller_id)
    ctx = await resolve_access(session, org_id, caller_id)
    ctx.require_edit()
    if not uploads:
        raise ValidationError("No files uploaded.")

    response = UploadResponse()
    for upload in uploads:
        try:
            response.files.append(
                await ingest(session, org_id, caller_id, upload, storage, transcoder, previews)
            )
        except (DependencyError, ValidationError) as exc:
            log.warning("file.ingest_failed", org_id=org_id, name=upload.original_name, error=exc.message)
            response.failed.append(UploadFailure(original_name=upload.original_name, error=exc.message))
    response.ok = not response.failed
    return response


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------

async def get_file(
    session: AsyncSession, file_id: int, caller_id: Optional[int]
) -> FileDetail:
    file, ctx = await load_file_access(session, file_id, caller_id)
    ctx.require_view()
    return await file_detail(session, file)


async def open_original(
    session: AsyncSession,
    file_id: int,
    caller_id: Optional[int],
    storage: ArtifactStorage,
) -> tuple[FileRead, AsyncIterator[bytes]]:
    """Projection of the file plus a chunk stream of its original bytes."""
    file, ctx = await load_file_access(session, file_id, caller_id)
    ctx.require_view()
    stream = await storage.read_artifact(Locator(file.original_locator))
    return file_read(file), stream


async def open_preview(
    session: AsyncSession,
    file_id: int,
    caller_id: Optional[int],
    storage: ArtifactStorage,
) -> tuple[str, AsyncIterator[bytes]]:
    """Media type and chunk stream of the file's current preview."""
    file, ctx = await load_file_access(session, file_id, caller_id)
    ctx.require_view()
    preview = Locator(file.preview_locator)
    media_type = mimetypes.guess_type(preview.value)[0] or "application/octet-stream"
    return media_type, await storage.read_artifact(preview)


async def list_recent_uploads(
    session: AsyncSession, caller_id: Optional[int], limit: Optional[int] = None
) -> list[RecentUpload]:
    """The caller's own uploads across orgs they still belong to, newest first."""
    caller_id = require_caller(caller_id)
    limit = limit or get_settings().recent_uploads_limit
    result = await session.execute(
        select(File, Organization.name)
        .join(Organization, Organization.id == File.org_id)
        .join(
            Membership,
            (Membership.org_id == File.org_id) & (Membership.user_id == caller_id),
        )
        .where(File.uploader_id == caller_id, File.deleted.is_(False))
        .order_by(File.created_at.desc(), File.id.desc())
        .limit(limit)
    )
    rows = result.all()
    grouped = await groups_by_file(session, [f.id for f, _ in rows])
    return [
        RecentUpload(**_projection_fields(f, grouped.get(f.id, [])), org_name=org_name)
        for f, org_name in rows
    ]


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------

async def _replace_groups(session: AsyncSession, file: File, group_ids: list[int]) -> list[int]:
    allowed = await groups_in_org(session, file.org_id, group_ids)
    dropped = sorted(set(group_ids) - allowed)
    if dropped:
        log.warning("file.groups_dropped", file_id=file.id, org_id=file.org_id, group_ids=dropped)

    await session.execute(delete(FileGroup).where(FileGroup.file_id == file.id))
    if allowed:
        await session.execute(
            insert(FileGroup),
            [{"file_id": file.id, "group_id": gid} for gid in sorted(allowed)],
        )
    return sorted(allowed)


async def update_metadata(
    session: AsyncSession,
    file_id: int,
    caller_id: Optional[int],
    changes: FileMetadataUpdate,
) -> FileDetail:
    """Apply a partial metadata update; unset fields are left alone."""
    require_caller(caller_id)
    file, ctx = await load_file_access(session, file_id, caller_id)
    ctx.require_edit()

    update_data = changes.model_dump(exclude_unset=True)
    group_ids = update_data.pop("group_ids", None)

    if "display_name" in update_data and not update_data["display_name"]:
        raise ValidationError("Display name cannot be blank.")
    if "location_text" in update_data and update_data["location_text"] is None:
        update_data["location_text"] = ""

    for key, value in update_data.items():
        setattr(file, key, value)
    session.add(file)
    await session.flush()

    if group_ids is not None:
        await _replace_groups(session, file, group_ids)

    log.info(
        "file.updated",
        file_id=file.id,
        fields=sorted(update_data),
        groups_replaced=group_ids is not None,
        by=caller_id,
    )
    return await file_detail(session, file)


# ---------------------------------------------------------------------------
# Reupload
# ---------------------------------------------------------------------------

async def reupload(
    session: AsyncSession,
    file_id: int,
    caller_id: Optional[int],
    upload: IncomingUpload,
    storage: ArtifactStorage,
    transcoder: Transcoder,
    previews: PreviewDispatcher,
) -> FileDetail:
    """Replace the bytes behind a file. Identity, groups and metadata stay."""
    require_caller(caller_id)
    file, ctx = await load_file_access(session, file_id, caller_id)
    ctx.require_edit()

    original_name = (upload.original_name or "").strip()
    if not original_name:
        raise ValidationError("File name is required.")

    kind = kind_for_mime_type(upload.mime_type)
    new_original = await storage.write_artifact(upload.data, upload.mime_type, suffix=upload.suffix)
    old_original = Locator(file.original_locator)
    old_preview = Locator(file.preview_locator)

    file.original_name = original_name
    file.mime_type = upload.mime_type
    file.kind = kind.value
    file.original_locator = new_original.value
    file.size_bytes = upload.size_bytes
    file.preview_locator = transcoder.pending_placeholder.value
    file.preview_status = PreviewStatus.PENDING.value
    try:
        session.add(file)
        await session.flush()
        detail = await file_detail(session, file)
        await session.commit()
    except SQLAlchemyError:
        await _discard(storage, new_original, "reupload_rollback")
        raise

    await _discard(storage, old_original, "reupload_replaced")
    if not transcoder.is_shared_placeholder(old_preview):
        await _discard(storage, old_preview, "reupload_replaced")

    log.info("file.reuploaded", file_id=file_id, kind=kind.value, by=caller_id)
    await previews.dispatch(file_id, new_original, kind)
    return detail


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

async def delete_file(
    session: AsyncSession,
    file_id: int,
    caller_id: Optional[int],
    storage: ArtifactStorage,
    transcoder: Transcoder,
) -> None:
    """Remove a file's artifacts, then its row and group associations."""
    require_caller(caller_id)
    file, ctx = await load_file_access(session, file_id, caller_id)
    ctx.require_edit()

    await _discard(storage, Locator(file.original_locator), "file_deleted")
    preview = Locator(file.preview_locator)
    if not transcoder.is_shared_placeholder(preview):
        await _discard(storage, preview, "file_deleted")

    await session.execute(delete(FileGroup).where(FileGroup.file_id == file_id))
    await session.delete(file)
    await session.flush()

    log.info("file.deleted", file_id=file_id, org_id=ctx.org_id, by=caller_id)


# ---------------------------------------------------------------------------
# Preview results
# ---------------------------------------------------------------------------

async def apply_preview(
    session: AsyncSession,
    file_id: int,
    expected_original: Locator,
    preview_locator: Locator,
    status: PreviewStatus,
) -> bool:
    """Store a preview result if the file still has the original it came from.

    Returns False when the file was deleted or reuploaded in the meantime;
    the caller owns cleanup of the now unused preview artifact.
    """
    result = await session.execute(
        update(File)
        .where(
            File.id == file_id,
            File.original_locator == expected_original.value,
            File.deleted.is_(False),
        )
        .values(preview_locator=preview_locator.value, preview_status=status.value)
    )
    applied = result.rowcount == 1
    log.debug("file.preview_applied" if applied else "file.preview_stale", file_id=file_id, status=status.value)
    return applied
