"""
Preview generation (the transcoding collaborator).

Images get a downscaled JPEG rendition; videos resolve to a shared
placeholder. Placeholders are shared by many files and are never removed
when a single file goes away.
"""

from __future__ import annotations

import asyncio
import io
from functools import lru_cache
from typing import Protocol

import structlog
from PIL import Image, ImageDraw, UnidentifiedImageError

from app.core.config import get_settings
from app.core.errors import DependencyError
from app.core.storage import LocalArtifactStorage, Locator, get_storage
from rockimages_shared.schemas.common import FileKind

log = structlog.get_logger()


class Transcoder(Protocol):
    @property
    def pending_placeholder(self) -> Locator: ...

    async def request_preview(self, locator: Locator, kind: FileKind) -> Locator: ...

    def is_shared_placeholder(self, locator: Locator) -> bool: ...


def render_preview(data: bytes, width: int, quality: int) -> bytes:
    """Scale an image to ``width`` pixels wide (aspect preserved) and encode as JPEG."""
    with Image.open(io.BytesIO(data)) as img:
        img = img.convert("RGB")
        height = max(1, round(img.height * width / img.width))
        resized = img.resize((width, height), Image.Resampling.LANCZOS)
    out = io.BytesIO()
    resized.save(out, format="JPEG", quality=quality)
    return out.getvalue()


class PillowTranscoder:
    """Generates image previews with Pillow into the same artifact storage."""

    def __init__(
        self,
        storage: LocalArtifactStorage,
        *,
        video_placeholder: str,
        pending_placeholder: str,
        width: int = 400,
        quality: int = 70,
    ):
        self.storage = storage
        self.video_placeholder = Locator(video_placeholder)
        self._pending_placeholder = Locator(pending_placeholder)
        self.width = width
        self.quality = quality

    @property
    def pending_placeholder(self) -> Locator:
        return self._pending_placeholder

    def is_shared_placeholder(self, locator: Locator) -> bool:
        return locator in (self.video_placeholder, self._pending_placeholder)

    async def request_preview(self, locator: Locator, kind: FileKind) -> Locator:
        if kind == FileKind.VIDEO:
            return self.video_placeholder

        data = await self.storage.read_bytes(locator)
        try:
            preview = await asyncio.to_thread(render_preview, data, self.width, self.quality)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            log.warning("preview.render_failed", locator=locator.value, error=str(exc))
            raise DependencyError("Could not render preview") from exc
        return await self.storage.write_artifact(
            preview, "image/jpeg", suffix=".jpg", namespace="previews"
        )

    async def ensure_placeholders(self) -> None:
        """Write the shared placeholder images if the media root lacks them."""
        for locator, label in (
            (self.video_placeholder, "VIDEO"),
            (self._pending_placeholder, "..."),
        ):
            path = self.storage.path_for(locator)
            if path.exists():
                continue

            def _draw(path=path, label=label) -> None:
                path.parent.mkdir(parents=True, exist_ok=True)
                img = Image.new("RGB", (self.width, self.width * 3 // 4), (32, 32, 32))
                ImageDraw.Draw(img).text((12, 12), label, fill=(220, 220, 220))
                img.save(path, format="PNG")

            await asyncio.to_thread(_draw)
            log.info("preview.placeholder_created", locator=locator.value)


@lru_cache
def get_transcoder() -> PillowTranscoder:
    settings = get_settings()
    return PillowTranscoder(
        get_storage(),
        video_placeholder=settings.video_placeholder_locator,
        pending_placeholder=settings.pending_preview_locator,
        width=settings.preview_width,
        quality=settings.preview_jpeg_quality,
    )
