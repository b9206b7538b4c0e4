"""
Directory-backed key-value storage.

Each key is stored as one UTF-8 file inside the storage directory; the file
name is the URL-quoted key. Values are plain strings, callers serialize.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import quote

logger = logging.getLogger(__name__)

# Default root for stores created without an explicit path
DEFAULT_STORAGE_PATH = Path.home() / ".replkit" / "storage"


class KeyValueStore(Protocol):
    """What History needs from a persistence backend."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class FileStore:
    """Key-value store keeping one file per key in a directory."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _ensure_dir(self) -> None:
        self.path.mkdir(parents=True, exist_ok=True)

    def _file(self, key: str) -> Path:
        if not isinstance(key, str) or not key:
            raise TypeError(f"Storage key must be a non-empty string, got {key!r}")
        return self.path / quote(key, safe="")

    def get_item(self, key: str) -> Optional[str]:
        """Get the value for key, or None if it was never set."""
        file = self._file(key)
        if not file.exists():
            return None
        return file.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self._ensure_dir()
        self._file(key).write_text(str(value), encoding="utf-8")

    def remove_item(self, key: str) -> None:
        file = self._file(key)
        if file.exists():
            file.unlink()
            logger.debug(f"Removed storage key {key!r} from {self.path}")


class LocalStorage(FileStore):
    """Application-scoped store, one directory per application id.

    Args:
        id: Application id; required.
        root: Parent directory. Defaults to DEFAULT_STORAGE_PATH.

    Raises:
        TypeError: If id is empty.
    """

    def __init__(self, id: str, root: Path | str | None = None):
        if not id:
            raise TypeError("An id must be provided for local storage")
        self.id = id
        super().__init__(Path(root or DEFAULT_STORAGE_PATH) / f"local_storage_{id}")
