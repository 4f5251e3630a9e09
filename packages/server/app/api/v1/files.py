"""
File endpoints: search, upload, metadata, reupload, delete, download.

GET    /api/v1/orgs/{org_id}/files       — Search (q, group, page, per_page)
POST   /api/v1/orgs/{org_id}/files       — Multi-file upload
GET    /api/v1/files/{file_id}           — File detail
PATCH  /api/v1/files/{file_id}           — Partial metadata update
DELETE /api/v1/files/{file_id}           — Delete file and its artifacts
POST   /api/v1/files/{file_id}/reupload  — Replace the original bytes
GET    /api/v1/files/{file_id}/download  — Stream the original
GET    /api/v1/files/{file_id}/preview   — Stream the current preview
GET    /api/v1/me/uploads                — Caller's recent uploads
"""

from __future__ import annotations

from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_caller_id
from app.core.database import get_session
from app.core.errors import NotFoundError
from app.core.storage import ArtifactStorage, get_storage
from app.core.transcoding import Transcoder, get_transcoder
from app.services import catalog
from app.services.catalog import IncomingUpload, PreviewDispatcher
from app.services.search import search_files
from app.tasks.previews import get_preview_queue
from rockimages_shared.schemas.files import (
    FileDetail,
    FileMetadataUpdate,
    FileSearchResponse,
    RecentUpload,
    UploadResponse,
)

router = APIRouter()

DEFAULT_MIME_TYPE = "application/octet-stream"
PRIVATE_CACHE = "private, max-age=300"


async def _incoming(upload: UploadFile) -> IncomingUpload:
    data = await upload.read()
    return IncomingUpload(
        original_name=upload.filename or "",
        mime_type=upload.content_type or DEFAULT_MIME_TYPE,
        data=data,
    )


# ---------------------------------------------------------------------------
# Org-scoped
# ---------------------------------------------------------------------------

@router.get("/orgs/{org_id}/files", response_model=FileSearchResponse)
async def search_files_endpoint(
    org_id: int,
    q: Optional[str] = Query(None, max_length=200),
    group: Optional[int] = Query(None),
    page: int = Query(1),
    per_page: Optional[int] = Query(None),
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
):
    result = await search_files(
        session, org_id, caller_id, query=q, group_id=group, page=page, per_page=per_page
    )
    if result.denial is not None:
        # Missing and private orgs look the same from outside
        raise NotFoundError("Organization not found")
    return result.to_response()


@router.post("/orgs/{org_id}/files", response_model=UploadResponse, status_code=201)
async def upload_files(
    org_id: int,
    files: List[UploadFile] = File(...),
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
    storage: ArtifactStorage = Depends(get_storage),
    transcoder: Transcoder = Depends(get_transcoder),
    previews: PreviewDispatcher = Depends(get_preview_queue),
):
    uploads = [await _incoming(f) for f in files]
    return await catalog.ingest_many(
        session, org_id, caller_id, uploads, storage, transcoder, previews
    )


# ---------------------------------------------------------------------------
# File-scoped
# ---------------------------------------------------------------------------

@router.get("/files/{file_id}", response_model=FileDetail)
async def get_file(
    file_id: int,
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
):
    return await catalog.get_file(session, file_id, caller_id)


@router.patch("/files/{file_id}", response_model=FileDetail)
async def update_file(
    file_id: int,
    body: FileMetadataUpdate,
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
):
    return await catalog.update_metadata(session, file_id, caller_id, body)


@router.delete("/files/{file_id}", status_code=204)
async def delete_file(
    file_id: int,
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
    storage: ArtifactStorage = Depends(get_storage),
    transcoder: Transcoder = Depends(get_transcoder),
):
    await catalog.delete_file(session, file_id, caller_id, storage, transcoder)
    return Response(status_code=204)


@router.post("/files/{file_id}/reupload", response_model=FileDetail)
async def reupload_file(
    file_id: int,
    file: UploadFile = File(...),
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
    storage: ArtifactStorage = Depends(get_storage),
    transcoder: Transcoder = Depends(get_transcoder),
    previews: PreviewDispatcher = Depends(get_preview_queue),
):
    upload = await _incoming(file)
    return await catalog.reupload(
        session, file_id, caller_id, upload, storage, transcoder, previews
    )


@router.get("/files/{file_id}/download")
async def download_file(
    file_id: int,
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
    storage: ArtifactStorage = Depends(get_storage),
):
    info, stream = await catalog.open_original(session, file_id, caller_id, storage)
    return StreamingResponse(
        stream,
        media_type=info.mime_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(info.original_name)}",
            "Cache-Control": PRIVATE_CACHE,
        },
    )


@router.get("/files/{file_id}/preview")
async def preview_file(
    file_id: int,
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
    storage: ArtifactStorage = Depends(get_storage),
):
    media_type, stream = await catalog.open_preview(session, file_id, caller_id, storage)
    return StreamingResponse(
        stream, media_type=media_type, headers={"Cache-Control": PRIVATE_CACHE}
    )


@router.get("/me/uploads", response_model=List[RecentUpload])
async def recent_uploads(
    caller_id: Optional[int] = Depends(get_caller_id),
    session: AsyncSession = Depends(get_session),
):
    return await catalog.list_recent_uploads(session, caller_id)
