"""
Completion sources.

A command (or one of its options) can offer completion candidates in several
shapes. They are normalized once, at registration, into one of three tagged
variants and resolved later by ``resolve_source``:

    StaticSource(["start", "stop"])         # fixed list
    SyncSource(lambda text: [...])          # called in-line
    AsyncSource(fetch_names)                # coroutine function
    AsyncSource(fn, callback_style=True)    # fn(text, done); done(err, items)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Union

from replkit.utils import positional_arity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StaticSource:
    """Fixed list of candidates."""

    items: tuple[str, ...]


@dataclass(frozen=True)
class SyncSource:
    """Callable invoked with the partial word; may return an awaitable."""

    fn: Callable[[str], Any]


@dataclass(frozen=True)
class AsyncSource:
    """Coroutine function, or a callback-style function when callback_style."""

    fn: Callable[..., Any]
    callback_style: bool = False


CompletionSource = Union[StaticSource, SyncSource, AsyncSource]


def as_source(value: Any) -> CompletionSource | None:
    """Coerce a user-supplied completion source into the tagged variant.

    Args:
        value: A list/tuple of strings, a mapping with a ``data`` key, a
            plain function ``fn(text)``, a coroutine function, a
            callback-style function ``fn(text, done)``, or an already
            tagged source.

    Returns:
        The tagged source, or None when value is None.

    Raises:
        TypeError: If value has none of the accepted shapes.
    """
    if value is None:
        return None
    if isinstance(value, (StaticSource, SyncSource, AsyncSource)):
        return value
    if isinstance(value, Mapping) and "data" in value:
        return as_source(value["data"])
    if isinstance(value, (list, tuple)):
        return StaticSource(tuple(str(item) for item in value))
    if callable(value):
        if inspect.iscoroutinefunction(value):
            return AsyncSource(value)
        if positional_arity(value) >= 2:
            return AsyncSource(value, callback_style=True)
        return SyncSource(value)
    raise TypeError(f"Unsupported completion source: {value!r}")


async def _call_with_continuation(fn: Callable[..., Any], text: str) -> Any:
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def settle(items: Any) -> None:
        if not future.done():
            future.set_result(items)

    def done(err: Any = None, items: Any = None) -> None:
        if err:
            logger.debug(f"Completion callback reported an error: {err}")
        # May be called from a worker thread
        loop.call_soon_threadsafe(settle, items)

    result = fn(text, done)
    if inspect.isawaitable(result):
        return await result
    return await future


async def resolve_source(source: CompletionSource | None, text: str) -> list[str]:
    """Resolve any completion source to a plain list of candidates.

    A source that raises yields an empty list; the failure is logged.
    """
    if source is None:
        return []
    try:
        if isinstance(source, StaticSource):
            items: Any = source.items
        elif isinstance(source, SyncSource):
            items = source.fn(text)
            if inspect.isawaitable(items):
                items = await items
        elif source.callback_style:
            items = await _call_with_continuation(source.fn, text)
        else:
            items = await source.fn(text)
    except Exception as e:
        logger.warning(f"Completion source failed for {text!r}: {e}")
        return []
    if isinstance(items, str):
        return [items]
    return [str(item) for item in (items or [])]
