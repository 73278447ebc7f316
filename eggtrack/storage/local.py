"""
EggTrack Backend — Local File Backend
======================================

What:  Keeps the entries document in one JSON file on disk.
Who:   Selected with STORAGE_BACKEND=local (the development default).
How:   aiofiles for non-blocking reads; writes go to a sibling temp file that
       is then os.replace()'d over the target, so a reader never observes a
       half-written document.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import aiofiles

from eggtrack.exceptions import StorageReadError, StorageWriteError
from eggtrack.storage.base import DocumentBackend

logger = logging.getLogger(__name__)


class LocalBackend(DocumentBackend):
    """Single-file document backend."""

    name = "local"

    def __init__(self, path: str):
        self.path = Path(path).resolve()

    def describe(self) -> str:
        return f"local file {self.path}"

    async def read_text(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                return await f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise StorageReadError(
                message="Could not read the local entries file",
                context={"path": str(self.path), "error": str(e)},
            ) from e

    async def write_text(self, content: str) -> None:
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(content)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("Failed to write entries file %s: %s", self.path, str(e))
            tmp_path.unlink(missing_ok=True)
            raise StorageWriteError(
                message="Failed to write entries to storage",
                context={"path": str(self.path), "os_error": str(e)},
            ) from e

        logger.debug("Wrote %d bytes to %s", len(content), self.path)
