"""
Artifact storage: the collaborator that owns physical media bytes.

The catalog only ever holds opaque ``Locator`` values; this module is the
one place that knows they map to paths under a media root.
"""

from __future__ import annotations

import asyncio
import os
import secrets
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional, Protocol

import structlog

from app.core.config import get_settings
from app.core.errors import DependencyError, NotFoundError

log = structlog.get_logger()

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class Locator:
    """Opaque reference to a stored artifact."""

    value: str

    def __str__(self) -> str:
        return self.value

    @property
    def is_public(self) -> bool:
        """Whether the artifact lives in the namespace served without access checks."""
        return self.value.split("/", 1)[0] == get_settings().media_public_namespace

    def to_public_reference(self, url_prefix: Optional[str] = None) -> str:
        """URL a client can use to fetch the artifact."""
        prefix = get_settings().media_url_prefix if url_prefix is None else url_prefix
        return f"{prefix.rstrip('/')}/{self.value.lstrip('/')}"


class RemovalOutcome(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    ERROR = "error"


class ArtifactStorage(Protocol):
    async def write_artifact(
        self, data: bytes, content_type: str, suffix: str = "", namespace: str = "original"
    ) -> Locator: ...

    async def remove_artifact(self, locator: Locator) -> RemovalOutcome: ...

    async def read_artifact(self, locator: Locator) -> AsyncIterator[bytes]: ...

    async def read_bytes(self, locator: Locator) -> bytes: ...


class LocalArtifactStorage:
    """Stores artifacts as files below ``root``; locators are root-relative paths."""

    def __init__(self, root: str | os.PathLike[str]):
        self.root = Path(root).resolve()

    def path_for(self, locator: Locator) -> Path:
        path = (self.root / locator.value).resolve()
        if self.root not in path.parents:
            raise DependencyError("Locator escapes the media root", {"locator": locator.value})
        return path

    @staticmethod
    def _new_name(suffix: str) -> str:
        return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{suffix.lower()}"

    async def write_artifact(
        self, data: bytes, content_type: str, suffix: str = "", namespace: str = "original"
    ) -> Locator:
        locator = Locator(f"{namespace}/{self._new_name(suffix)}")
        path = self.path_for(locator)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            log.error("storage.write_failed", locator=locator.value, error=str(exc))
            raise DependencyError("Could not store artifact") from exc

        log.debug(
            "storage.written",
            locator=locator.value,
            content_type=content_type,
            size_bytes=len(data),
        )
        return locator

    async def remove_artifact(self, locator: Locator) -> RemovalOutcome:
        try:
            path = self.path_for(locator)
            await asyncio.to_thread(os.remove, path)
        except FileNotFoundError:
            return RemovalOutcome.NOT_FOUND
        except (OSError, DependencyError) as exc:
            log.error("storage.remove_failed", locator=locator.value, error=str(exc))
            return RemovalOutcome.ERROR
        return RemovalOutcome.OK

    async def read_artifact(self, locator: Locator) -> AsyncIterator[bytes]:
        """Open the artifact now and return an iterator over its chunks."""
        path = self.path_for(locator)
        try:
            fh = await asyncio.to_thread(path.open, "rb")
        except FileNotFoundError as exc:
            raise NotFoundError("Artifact not found") from exc
        except OSError as exc:
            raise DependencyError("Could not read artifact") from exc

        async def _chunks() -> AsyncIterator[bytes]:
            try:
                while True:
                    chunk = await asyncio.to_thread(fh.read, CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk
            finally:
                fh.close()

        return _chunks()

    async def read_bytes(self, locator: Locator) -> bytes:
        path = self.path_for(locator)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise NotFoundError("Artifact not found") from exc
        except OSError as exc:
            raise DependencyError("Could not read artifact") from exc


@lru_cache
def get_storage() -> LocalArtifactStorage:
    return LocalArtifactStorage(get_settings().media_root)
