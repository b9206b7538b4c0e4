"""
Configuration management for replkit.

Provides a configuration file at ~/.replkit/config.json for default settings.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# Default values - single source of truth
DEFAULTS = {
    "delimiter": "replkit$",
    "history_size": 500,
    "history_id": None,
    "storage_path": str(Path.home() / ".replkit" / "storage"),
    "mode_exit_command": "exit",
    "normalize_key_pairs": False,
    "builtins": True,
    "log_level": "WARNING",
}


class Config(BaseModel):
    """Configuration settings for replkit.

    All settings are optional. Use DEFAULTS for default values.
    """

    model_config = {"extra": "ignore"}  # Ignore unknown fields like _comment

    # Prompt settings
    delimiter: Optional[str] = Field(
        default=None,
        description="Prompt delimiter shown before the cursor"
    )
    mode_exit_command: Optional[str] = Field(
        default=None,
        description="Line that leaves the current mode"
    )

    # History settings
    history_size: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum number of history entries persisted"
    )
    history_id: Optional[str] = Field(
        default=None,
        description="Persist history under this id (unset keeps it in memory)"
    )
    storage_path: Optional[str] = Field(
        default=None,
        description="Directory for persisted history and local storage"
    )

    # Parsing settings
    normalize_key_pairs: Optional[bool] = Field(
        default=None,
        description="Treat key=value words as a single quoted argument"
    )
    builtins: Optional[bool] = Field(
        default=None,
        description="Register the built-in help and exit commands"
    )

    # Logging
    log_level: Optional[str] = Field(
        default=None,
        description="Level for the session log file (DEBUG, INFO, ...)"
    )

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value with fallback to DEFAULTS, then to provided default."""
        value = getattr(self, key, None)
        if value is not None:
            return value
        # Fall back to DEFAULTS, then to provided default
        fallback = DEFAULTS.get(key)
        return fallback if fallback is not None else default


class ConfigManager:
    """Reads and writes the user config file.

    The file is a flat JSON object. Keys that are missing or null fall back
    to DEFAULTS, and unknown keys such as ``_comment`` are ignored.
    """

    CONFIG_DIR = Path.home() / ".replkit"
    CONFIG_FILE = CONFIG_DIR / "config.json"

    def __init__(self):
        self._config: Optional[Config] = None

    @property
    def config(self) -> Config:
        """Get the current config, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    @staticmethod
    def _check_key(key: str) -> None:
        if key not in Config.model_fields:
            raise ValueError(f"Unknown config key: {key}")

    def _read(self) -> dict[str, Any]:
        try:
            data = json.loads(self.CONFIG_FILE.read_text())
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid config file ({e}), using defaults")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> Path:
        self.CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        self.CONFIG_FILE.write_text(json.dumps(data, indent=2) + "\n")
        return self.CONFIG_FILE

    def load(self, create_if_missing: bool = True) -> Config:
        """Load configuration from file.

        Args:
            create_if_missing: Write a file listing the defaults when there
                is none yet.
        """
        if not self.CONFIG_FILE.exists():
            if create_if_missing:
                self._write({"_comment": "replkit configuration file", **DEFAULTS})
            return Config()
        try:
            return Config.model_validate(self._read())
        except ValueError as e:
            logger.warning(f"Invalid config file ({e}), using defaults")
            return Config()

    def save(self, config: Optional[Config] = None) -> Path:
        """Write the set values of config over the file's current contents."""
        if config is not None:
            self._config = config
        current = self._config if self._config is not None else Config()
        data = self._read()
        data.update(current.model_dump(exclude_none=True))
        return self._write(data)

    def set(self, key: str, value: Any) -> None:
        """Set a config value and save.

        Raises:
            ValueError: If key is not a known setting or value fails validation.
        """
        self._check_key(key)
        self._config = Config.model_validate({**self.load().model_dump(), key: value})
        self.save()

    def unset(self, key: str) -> None:
        """Clear a config value so its default applies again."""
        self._check_key(key)
        self._config = self.load().model_copy(update={key: None})
        data = self._read()
        data[key] = None
        self._write(data)

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def list_settings(self) -> dict[str, Any]:
        """Settings whose values differ from DEFAULTS."""
        return {
            key: value
            for key, value in self.config.model_dump(exclude_none=True).items()
            if value != DEFAULTS.get(key)
        }

    def reset(self) -> None:
        """Forget every setting and delete the file."""
        self._config = Config()
        self.CONFIG_FILE.unlink(missing_ok=True)


# Singleton instance
_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the singleton ConfigManager instance."""
    global _manager
    if _manager is None:
        _manager = ConfigManager()
    return _manager


def get_config() -> Config:
    """Get the current configuration."""
    return get_config_manager().config
