"""Blob storage for badge images.

Images are content-addressed: the file name is the sha256 of the bytes,
so storing the same image twice is harmless and a half-finished upload
never overwrites a good file.  Writes go to a temp file that is renamed
into place, so a path handed back by ``store`` always names a complete
image.
"""

from __future__ import annotations

import hashlib
import logging
import uuid
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiofiles
import aiofiles.os

from backpack.core.config import SETTINGS

logger = logging.getLogger(__name__)


@runtime_checkable
class ImageStore(Protocol):
    async def store(self, image_bytes: bytes) -> str: ...


def _image_name(image_bytes: bytes) -> str:
    return f"{hashlib.sha256(image_bytes).hexdigest()}.png"


class InMemoryImageStore:
    """Keeps images in a dict, for tests and DB-less dev runs."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    async def store(self, image_bytes: bytes) -> str:
        path = f"memory://{_image_name(image_bytes)}"
        self._blobs[path] = image_bytes
        return path


class LocalImageStore:
    """Writes images under a directory on local disk."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    async def store(self, image_bytes: bytes) -> str:
        await aiofiles.os.makedirs(self._root, exist_ok=True)
        final = self._root / _image_name(image_bytes)
        if await aiofiles.os.path.exists(final):
            return str(final)

        tmp = self._root / f".{uuid.uuid4().hex}.tmp"
        try:
            async with aiofiles.open(tmp, "wb") as f:
                await f.write(image_bytes)
            await aiofiles.os.replace(tmp, final)
        except OSError:
            if await aiofiles.os.path.exists(tmp):
                await aiofiles.os.remove(tmp)
            raise

        logger.debug("Stored %d-byte image at %s", len(image_bytes), final)
        return str(final)


def image_store_from_settings() -> ImageStore:
    if SETTINGS.is_test:
        return InMemoryImageStore()
    return LocalImageStore(SETTINGS.image_dir)
