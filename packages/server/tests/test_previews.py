"""
Background preview generation tests.

Tests cover:
- A finished preview is attached to its file and marked ready
- Results for a replaced or deleted original are discarded
- Undecodable or oversized uploads end up marked failed
- The inline queue runs dispatched work and can be drained
- The ARQ queue swallows Redis outages so uploads still succeed
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.storage import Locator
from app.models.file import File
from app.tasks.previews import ArqPreviewQueue, process_preview
from rockimages_shared.schemas.common import FileKind, PreviewStatus

from conftest import make_file, make_org, make_oversized_png, make_png, make_user


async def _file_with_original(session, storage, data: bytes, mime_type: str = "image/png") -> File:
    owner = await make_user(session, "owner")
    org = await make_org(session, owner)
    file = await make_file(session, org, owner, "pic.png", mime_type=mime_type)
    original = await storage.write_artifact(data, mime_type, ".png")
    file.original_locator = original.value
    await session.commit()
    return file


class TestProcessPreview:
    @pytest.mark.asyncio
    async def test_ready_preview_applied(self, session, storage, transcoder):
        file = await _file_with_original(session, storage, make_png())

        applied = await process_preview(
            file.id, Locator(file.original_locator), FileKind.IMAGE,
            transcoder=transcoder, storage=storage,
        )

        assert applied is True
        await session.refresh(file)
        assert file.preview_status == PreviewStatus.READY.value
        assert file.preview_locator.startswith("previews/")
        assert storage.path_for(Locator(file.preview_locator)).exists()

    @pytest.mark.asyncio
    async def test_stale_preview_discarded(self, session, storage, transcoder):
        file = await _file_with_original(session, storage, make_png())
        stale = Locator(file.original_locator)
        replacement = await storage.write_artifact(make_png(color=(0, 0, 255)), "image/png", ".png")
        file.original_locator = replacement.value
        await session.commit()

        applied = await process_preview(
            file.id, stale, FileKind.IMAGE, transcoder=transcoder, storage=storage,
        )

        assert applied is False
        await session.refresh(file)
        assert file.preview_status == PreviewStatus.PENDING.value
        previews_dir = storage.root / "previews"
        assert not previews_dir.exists() or list(previews_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_video_gets_placeholder(self, session, storage, transcoder):
        file = await _file_with_original(session, storage, b"\x00video", mime_type="video/mp4")

        await process_preview(
            file.id, Locator(file.original_locator), FileKind.VIDEO,
            transcoder=transcoder, storage=storage,
        )
        await session.refresh(file)
        assert file.preview_locator == transcoder.video_placeholder.value
        assert file.preview_status == PreviewStatus.READY.value

    @pytest.mark.asyncio
    async def test_broken_image_marked_failed(self, session, storage, transcoder):
        file = await _file_with_original(session, storage, b"definitely not a png")

        applied = await process_preview(
            file.id, Locator(file.original_locator), FileKind.IMAGE,
            transcoder=transcoder, storage=storage,
        )
        assert applied is True
        await session.refresh(file)
        assert file.preview_status == PreviewStatus.FAILED.value
        assert file.preview_locator == transcoder.pending_placeholder.value

    @pytest.mark.asyncio
    async def test_oversized_image_marked_failed(self, session, storage, transcoder):
        file = await _file_with_original(session, storage, make_oversized_png())

        applied = await process_preview(
            file.id, Locator(file.original_locator), FileKind.IMAGE,
            transcoder=transcoder, storage=storage,
        )
        assert applied is True
        await session.refresh(file)
        assert file.preview_status == PreviewStatus.FAILED.value


class TestQueues:
    @pytest.mark.asyncio
    async def test_inline_queue_drains(self, session, storage, inline_queue):
        file = await _file_with_original(session, storage, make_png())

        await inline_queue.dispatch(file.id, Locator(file.original_locator), FileKind.IMAGE)
        await inline_queue.drain()

        assert inline_queue.pending == 0
        await session.refresh(file)
        assert file.preview_status == PreviewStatus.READY.value

    @pytest.mark.asyncio
    async def test_arq_enqueues_job(self):
        queue = ArqPreviewQueue(redis_settings=None)
        pool = AsyncMock()
        queue._pool = pool

        await queue.dispatch(7, Locator("original/x.png"), FileKind.IMAGE)
        pool.enqueue_job.assert_awaited_once_with("generate_preview", 7, "original/x.png", "image")

    @pytest.mark.asyncio
    async def test_arq_outage_does_not_raise(self):
        queue = ArqPreviewQueue(redis_settings=None)
        pool = AsyncMock()
        pool.enqueue_job.side_effect = RedisConnectionError("redis down")
        queue._pool = pool

        await queue.dispatch(7, Locator("original/x.png"), FileKind.IMAGE)
