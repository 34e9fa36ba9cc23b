"""
Storage backends for the FocusFlow documents.

The dataset layer depends only on the ``StorageBackend`` capability
(``read(key)`` / ``write(key, text)``). Two implementations ship:

- FileStorageBackend: one JSON file per key in a per-user directory,
  written atomically (temp file + os.replace)
- MemoryStorageBackend: in-process dictionary, the local-storage
  equivalent used for development and tests
"""

import asyncio
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DATA_KEY = "data"
SETTINGS_KEY = "settings"


class StorageBackend(ABC):
    """Durable key/value persistence of text documents."""

    @abstractmethod
    async def read(self, key: str) -> Optional[str]:
        """
        Read the document stored under ``key``.

        Returns:
            Document text, or None if nothing has been stored yet

        Raises:
            OSError: If the backend is unreachable or unreadable
        """

    @abstractmethod
    async def write(self, key: str, text: str) -> bool:
        """
        Store ``text`` under ``key``.

        Returns:
            True if the document was written, False on failure
        """


class FileStorageBackend(StorageBackend):
    """
    JSON files in a per-user data directory.

    Each key maps to ``focusflow-<key>.json``. The directory is created on
    first use. Writes land in a temporary file next to the target and are
    moved into place, so a failed write leaves the previous file intact.
    """

    def __init__(self, base_dir):
        self.base_dir = Path(base_dir).expanduser()

    def path_for(self, key: str) -> Path:
        return self.base_dir / f"focusflow-{key}.json"

    def _ensure_dir(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _read_sync(self, key: str) -> Optional[str]:
        self._ensure_dir()
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def _write_sync(self, key: str, text: str) -> None:
        self._ensure_dir()
        path = self.path_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.base_dir), prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def read(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._read_sync, key)

    async def write(self, key: str, text: str) -> bool:
        try:
            await asyncio.to_thread(self._write_sync, key, text)
            return True
        except OSError as e:
            logger.error(f"Failed to write {self.path_for(key)}: {e}")
            return False


class MemoryStorageBackend(StorageBackend):
    """Dictionary-backed storage; contents live as long as the instance."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.documents: Dict[str, str] = dict(initial or {})

    async def read(self, key: str) -> Optional[str]:
        return self.documents.get(key)

    async def write(self, key: str, text: str) -> bool:
        self.documents[key] = text
        return True
