"""
Per-execution command instances and cooperative cancellation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from replkit.core.command import Command
    from replkit.session.session import Session

logger = logging.getLogger(__name__)


def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


class CancellationToken:
    """Advisory cancellation flag handed to a running handler.

    Handlers check ``token.cancelled`` at their own suspension points or
    register a callback with ``on_cancel``. Nothing is ever interrupted.
    """

    def __init__(self):
        self._cancelled = False
        self._callbacks: list[Callable[[], Any]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Mark as cancelled. Returns False if it already was."""
        if self._cancelled:
            return False
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        return True

    def on_cancel(self, callback: Callable[[], Any]) -> None:
        """Run callback on cancellation (immediately if already cancelled)."""
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)


class CommandInstance:
    """One bound occurrence of a command within a pipeline.

    Handlers receive their instance as the second argument and use it to
    write output (``log``), check cancellation (``token``) or reach the
    session.
    """

    def __init__(
        self,
        session: Session,
        command: Command,
        args: Any,
        downstream: Optional[CommandInstance] = None,
    ):
        self.session = session
        self.command = command
        self.args = args
        self.downstream = downstream
        self.token = CancellationToken()
        # Futures of this pipeline still running, shared by its stages
        self.pending: set[asyncio.Future] = set()
        # Loop the handler was started on
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def name(self) -> str:
        return self.command.name

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def log(self, *payload: Any) -> None:
        """Write payload to the next stage, or to the session when last.

        The payload list becomes the downstream's ``args["stdin"]`` and the
        downstream handler runs once per call.
        """
        if self.loop is not None and not _on_loop(self.loop):
            # Called from a worker thread
            self.loop.call_soon_threadsafe(self.log, *payload)
            return
        if self.downstream is None:
            self.session.log(*payload)
            return
        if isinstance(self.downstream.args, dict):
            self.downstream.args["stdin"] = list(payload)
        self.session.start_downstream(self.downstream)

    def cancel(self) -> None:
        """Ask the session to cancel the running pipeline."""
        self.session.cancel_commands()

    def help(self, command: str | None = None) -> str:
        return self.session.help_text(command)

    def delimiter(self, text: str) -> None:
        self.session.delimiter = text

    def __repr__(self) -> str:
        return f"CommandInstance({self.command.name!r}, args={self.args!r})"
