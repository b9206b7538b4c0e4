"""
Command history with cursor traversal and mode scoping.

The traversal counter counts how far "up" the user has gone: 0 means the
prompt is showing fresh input, N means the Nth most recent entry.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from replkit.history.storage import DEFAULT_STORAGE_PATH, FileStore, KeyValueStore

logger = logging.getLogger(__name__)

# Number of entries kept in persistent storage
HISTORY_SIZE = 500


class History:
    """Bounded, mode-aware command history."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        max_size: int = HISTORY_SIZE,
    ):
        self._store = store
        self.max_size = max_size
        self._storage_key: Optional[str] = None
        self._hist: list[str] = []
        self._counter = 0
        # Outer history while a mode is active
        self._hist_cache: list[str] = []
        self._counter_cache = 0
        self._in_mode = False

    @property
    def entries(self) -> list[str]:
        return list(self._hist)

    @property
    def in_mode(self) -> bool:
        return self._in_mode

    @property
    def storage_key(self) -> Optional[str]:
        return self._storage_key

    def __len__(self) -> int:
        return len(self._hist)

    def set_storage_path(self, path: Path | str) -> None:
        """Persist to a directory store at path from now on."""
        self._store = FileStore(path)

    def set_id(self, id: str) -> None:
        """Bind the history to a persistence key and load saved entries."""
        if self._store is None:
            self._store = FileStore(DEFAULT_STORAGE_PATH)
        self._storage_key = f"cmd_history_{id}"
        self._load()

    def _load(self) -> None:
        raw = self._store.get_item(self._storage_key)
        if not raw:
            return
        try:
            persisted = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable history {self._storage_key}: {e}")
            return
        if isinstance(persisted, list):
            self._hist = [str(entry) for entry in persisted] + self._hist

    def _persist(self) -> None:
        self._store.set_item(self._storage_key, json.dumps(self._hist[-self.max_size:]))

    def get_previous_history(self) -> Optional[str]:
        """Step one entry back ("up"). Stops at the oldest entry."""
        self._counter = min(self._counter + 1, len(self._hist))
        if self._counter == 0:
            return None
        return self._hist[len(self._hist) - self._counter]

    def get_next_history(self) -> str:
        """Step one entry forward ("down"). Past the newest, returns ''."""
        self._counter -= 1
        if self._counter < 1:
            self._counter = 0
            return ""
        return self._hist[len(self._hist) - self._counter]

    def peek(self, depth: int = 0) -> Optional[str]:
        """Entry depth steps back from the newest, without moving the cursor."""
        index = len(self._hist) - 1 - depth
        if 0 <= index < len(self._hist):
            return self._hist[index]
        return None

    def new_command(self, cmd: str) -> None:
        """Record a submitted line.

        Resets traversal, ignores a repeat of the newest entry and persists
        the newest max_size entries when bound to a key and not in a mode.
        """
        self._counter = 0
        if self._hist and self._hist[-1] == cmd:
            return
        self._hist.append(cmd)
        if self._storage_key and not self._in_mode:
            self._persist()

    def enter_mode(self) -> None:
        """Swap in an empty history for a mode, caching the current one."""
        self._hist_cache = list(self._hist)
        self._counter_cache = self._counter
        self._hist = []
        self._counter = 0
        self._in_mode = True

    def exit_mode(self) -> None:
        """Restore the history and cursor cached by enter_mode()."""
        self._hist = self._hist_cache
        self._counter = self._counter_cache
        self._hist_cache = []
        self._counter_cache = 0
        self._in_mode = False

    def clear(self) -> None:
        """Remove the persisted entries. In-memory entries are kept."""
        if self._storage_key:
            self._store.remove_item(self._storage_key)
