"""
Text helpers for terminal output.
"""

from __future__ import annotations

import re

# CSI and OSC escape sequences (colors, cursor movement, hyperlinks)
ANSI_PATTERN = re.compile(
    r"[\u001B\u009B][\[\]()#;?]*"
    r"(?:(?:(?:[a-zA-Z\d]*(?:;[-a-zA-Z\d/#&.:=?%@~_]*)*)?\u0007)"
    r"|(?:(?:\d{1,4}(?:;\d{0,4})*)?[\dA-PR-TZcf-ntqry=><~]))"
)


def strip_ansi(text: str) -> str:
    """Remove ANSI escape codes so only the visible characters remain."""
    return ANSI_PATTERN.sub("", str(text))


def pad(text: str | list[str], width: int, fill: str = " ") -> str:
    """Right-pad text with fill until its visible width reaches width.

    Args:
        text: String (or list of strings, joined with commas) to pad.
        width: Target visible width.
        fill: Padding character.

    Returns:
        Padded string. Text already wider than width is returned unchanged.
    """
    if isinstance(text, list):
        text = ",".join(text)
    missing = max(0, int(width) - len(strip_ansi(text)))
    return text + fill * missing
