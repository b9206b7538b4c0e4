"""
Helpers for inspecting user-supplied callables.
"""

from __future__ import annotations

import inspect
from typing import Callable

_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


def positional_arity(fn: Callable) -> int:
    """Count the explicitly declared positional parameters of fn.

    ``*args`` is not counted. Callables without an inspectable signature
    (some builtins) report 1.
    """
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return 1
    return sum(1 for p in params if p.kind in _POSITIONAL)
