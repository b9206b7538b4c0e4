"""Command history and its key-value persistence."""

from replkit.history.history import HISTORY_SIZE, History
from replkit.history.storage import (
    DEFAULT_STORAGE_PATH,
    FileStore,
    KeyValueStore,
    LocalStorage,
)

__all__ = [
    "DEFAULT_STORAGE_PATH",
    "HISTORY_SIZE",
    "FileStore",
    "History",
    "KeyValueStore",
    "LocalStorage",
]
