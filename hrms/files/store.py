"""Attachment storage — the engine records and clears references, never bytes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from hrms.config import settings

logger = logging.getLogger(__name__)


class FileStore:
    async def release(self, ref: str) -> None:
        """Delete the stored object behind ``ref``."""
        raise NotImplementedError


class LocalFileStore(FileStore):
    """Attachments kept under ``UPLOAD_DIR`` by the upload service."""

    def __init__(self, root: Optional[str] = None) -> None:
        self.root = Path(root or settings.UPLOAD_DIR).resolve()

    def _path_for(self, ref: str) -> Path:
        path = (self.root / Path(ref).name).resolve()
        if path.parent != self.root:
            raise ValueError(f"Attachment reference {ref!r} escapes the upload directory")
        return path

    async def release(self, ref: str) -> None:
        path = self._path_for(ref)
        path.unlink(missing_ok=True)
        logger.info("Released attachment %s", path.name)


async def release_attachment(store: FileStore, ref: Optional[str]) -> None:
    """Release ``ref`` if set; storage failures are logged, not raised."""
    if not ref:
        return
    try:
        await store.release(ref)
    except Exception:
        logger.warning("Could not release attachment %s", ref, exc_info=True)


default_file_store: FileStore = LocalFileStore()
