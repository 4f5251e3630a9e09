"""
Preview generation outside the request path.

Two queue backends hand work to ``process_preview``:

- ``InlinePreviewQueue`` runs it as an asyncio task in the API process
- ``ArqPreviewQueue`` enqueues ``generate_preview`` on an ARQ worker

Run the worker with:  arq app.tasks.previews.WorkerSettings
"""

from __future__ import annotations

import asyncio
from functools import lru_cache
from typing import Optional

import structlog
from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from redis.exceptions import RedisError

from app.core.config import get_settings
from app.core.database import get_session_context
from app.core.errors import CatalogError
from app.core.logging import configure_logging
from app.core.storage import ArtifactStorage, Locator, get_storage
from app.core.transcoding import Transcoder, get_transcoder
from app.services.catalog import PreviewDispatcher, apply_preview
from rockimages_shared.schemas.common import FileKind, PreviewStatus

log = structlog.get_logger()


async def process_preview(
    file_id: int,
    original: Locator,
    kind: FileKind,
    *,
    transcoder: Transcoder,
    storage: ArtifactStorage,
    session_factory=get_session_context,
) -> bool:
    """Render a preview and attach it to the file if it is still current.

    Returns whether the result was applied.
    """
    try:
        preview = await transcoder.request_preview(original, kind)
        status = PreviewStatus.READY
    except CatalogError as exc:
        log.warning("preview.failed", file_id=file_id, error=exc.message)
        preview, status = transcoder.pending_placeholder, PreviewStatus.FAILED

    async with session_factory() as session:
        applied = await apply_preview(session, file_id, original, preview, status)

    if not applied and not transcoder.is_shared_placeholder(preview):
        # File was deleted or reuploaded while we rendered
        await storage.remove_artifact(preview)

    log.info("preview.processed", file_id=file_id, status=status.value, applied=applied)
    return applied


# ---------------------------------------------------------------------------
# Queue backends
# ---------------------------------------------------------------------------

class InlinePreviewQueue:
    """Runs preview generation as background tasks on the running event loop."""

    def __init__(
        self,
        transcoder: Transcoder,
        storage: ArtifactStorage,
        session_factory=get_session_context,
    ):
        self.transcoder = transcoder
        self.storage = storage
        self.session_factory = session_factory
        self._tasks: set[asyncio.Task] = set()

    async def dispatch(self, file_id: int, original: Locator, kind: FileKind) -> None:
        task = asyncio.create_task(
            process_preview(
                file_id,
                original,
                kind,
                transcoder=self.transcoder,
                storage=self.storage,
                session_factory=self.session_factory,
            ),
            name=f"preview:{file_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("preview.task_failed", task=task.get_name(), error=str(exc), exc_info=exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every dispatched preview to finish (shutdown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class ArqPreviewQueue:
    """Enqueues preview jobs for an ARQ worker backed by Redis."""

    def __init__(self, redis_settings: RedisSettings):
        self.redis_settings = redis_settings
        self._pool: Optional[ArqRedis] = None

    async def _get_pool(self) -> ArqRedis:
        if self._pool is None:
            self._pool = await create_pool(self.redis_settings)
        return self._pool

    async def dispatch(self, file_id: int, original: Locator, kind: FileKind) -> None:
        # The file stays "pending" if Redis is down; uploads must not fail for it
        try:
            pool = await self._get_pool()
            await pool.enqueue_job("generate_preview", file_id, original.value, kind.value)
        except (OSError, RedisError) as exc:
            log.error("preview.enqueue_failed", file_id=file_id, error=str(exc))

    async def drain(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None


@lru_cache
def get_preview_queue() -> PreviewDispatcher:
    settings = get_settings()
    if settings.preview_queue == "arq":
        return ArqPreviewQueue(RedisSettings.from_dsn(settings.redis_url))
    return InlinePreviewQueue(get_transcoder(), get_storage())


# ---------------------------------------------------------------------------
# ARQ worker
# ---------------------------------------------------------------------------

async def generate_preview(ctx: dict, file_id: int, original_locator: str, kind: str) -> bool:
    return await process_preview(
        file_id,
        Locator(original_locator),
        FileKind(kind),
        transcoder=get_transcoder(),
        storage=get_storage(),
    )


async def startup(ctx: dict) -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    await get_transcoder().ensure_placeholders()


class WorkerSettings:
    """ARQ worker configuration."""

    functions = [generate_preview]
    on_startup = startup
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_tries = 3
