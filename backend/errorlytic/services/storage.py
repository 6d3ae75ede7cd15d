# errorlytic/services/storage.py
import logging
import os
import re
from pathlib import Path
from typing import Optional, Protocol

from ..config import settings
from ..errors import NotFoundError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]+')


class ObjectStorage(Protocol):
    """Blob store holding raw uploaded reports, addressed by locator"""

    def put(self, locator: str, content: bytes) -> str:
        """Store content and return the locator."""

    def get(self, locator: str) -> bytes:
        """Return stored content. Raises NotFoundError when absent."""

    def delete(self, locator: str) -> None:
        """Remove stored content; missing objects are ignored."""


def build_locator(upload_id: str, filename: str) -> str:
    """
    Storage locator for an upload

    uploads/
      {upload_id}/
        {filename}
    """
    safe_name = _UNSAFE_CHARS.sub("_", Path(filename or "report").name) or "report"
    return f"{upload_id}/{safe_name}"


class LocalFileStorage:
    """ObjectStorage on the local filesystem under STORAGE_DIR"""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.STORAGE_DIR)

    def _path(self, locator: str) -> Path:
        path = (self.root / locator).resolve()
        if self.root.resolve() not in path.parents:
            raise NotFoundError(f"Invalid storage locator: {locator}")
        return path

    def put(self, locator: str, content: bytes) -> str:
        path = self._path(locator)
        os.makedirs(path.parent, exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)
        logger.info(f"[Storage] Stored {len(content)} bytes at {locator}")
        return locator

    def get(self, locator: str) -> bytes:
        path = self._path(locator)
        if not path.exists():
            raise NotFoundError(f"Stored report not found: {locator}")
        with open(path, "rb") as f:
            return f.read()

    def delete(self, locator: str) -> None:
        path = self._path(locator)
        try:
            if path.exists():
                os.remove(path)
            # Remove the per-upload directory once empty
            if path.parent != self.root.resolve() and path.parent.exists() and not any(path.parent.iterdir()):
                path.parent.rmdir()
        except OSError as e:
            # Log error but continue with database deletion
            logger.warning(f"[Storage] Could not delete {locator}: {e}")
