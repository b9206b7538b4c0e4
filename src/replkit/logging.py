"""Session log files.

Library modules only create loggers; nothing is written anywhere until a
host calls configure_session_logging(). Logs go to
~/.replkit/logs/<session-id>.log
"""
from __future__ import annotations

import logging
import traceback
from pathlib import Path
from typing import Optional

# Directory for log files
LOGS_DIR = Path.home() / ".replkit" / "logs"

ROOT_LOGGER = "replkit"

# Module-level state
_session_handler: Optional[logging.FileHandler] = None
_session_log_path: Optional[Path] = None


def get_log_path(session_id: str) -> Path:
    """Get the log file path for a session, creating the directory."""
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    return LOGS_DIR / f"{session_id}.log"


def configure_session_logging(
    session_id: str,
    level: int | str = logging.DEBUG,
) -> Path:
    """Attach a file handler for a session to the replkit loggers.

    Args:
        session_id: The session ID (uses first 8 chars)
        level: Logging level for file output (default DEBUG)

    Returns:
        Path to the log file
    """
    global _session_handler, _session_log_path

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.DEBUG

    short_id = session_id[:8] if len(session_id) > 8 else session_id
    log_path = get_log_path(short_id)

    # Remove existing session handler if any
    close_session_logging()

    _session_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    _session_handler.setLevel(level)
    _session_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    root = logging.getLogger(ROOT_LOGGER)
    root.addHandler(_session_handler)
    root.setLevel(min(root.level or logging.DEBUG, level))

    _session_log_path = log_path
    root.info(f"=== Session started: {session_id} ===")
    return log_path


def close_session_logging() -> None:
    """Flush and detach the current session's file handler."""
    global _session_handler, _session_log_path

    if _session_handler is not None:
        root = logging.getLogger(ROOT_LOGGER)
        root.info("=== Session ended ===")
        root.removeHandler(_session_handler)
        _session_handler.close()
        _session_handler = None
        _session_log_path = None


def get_current_log_path() -> Optional[Path]:
    """Path of the active session log, or None."""
    return _session_log_path


def log_command_exception(error: BaseException, context: str = "") -> str:
    """Log a command failure with its traceback.

    Args:
        error: The exception raised by a validator or handler
        context: What was running, e.g. the command name

    Returns:
        Short message for display (no traceback)
    """
    logger = logging.getLogger(f"{ROOT_LOGGER}.session")
    error_type = type(error).__name__
    user_msg = f"{context}: {error}" if context else f"{error_type}: {error}"

    tb_str = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    logger.error(f"{context}\n{error_type}: {error}\n\nTraceback:\n{tb_str}")
    return user_msg
