"""
Interactive prompt for a Session, built on prompt_toolkit.

Tab runs the session's autocomplete engine, up/down walk the session's
mode-scoped history and Ctrl+C cancels the running pipeline.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import uuid
from typing import Iterable, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style

from replkit.config import get_config
from replkit.core import CommandError
from replkit.logging import close_session_logging, configure_session_logging
from replkit.session import Session

logger = logging.getLogger(__name__)


class SessionCompleter(Completer):
    """Completer that defers to Session.complete().

    Only explicit completion requests (Tab) are answered so the session's
    tab counting sees one call per key press.
    """

    def __init__(self, session: Session):
        self.session = session
        self._last_text: Optional[str] = None

    def _completions(self, text: str, result) -> Iterable[Completion]:
        if isinstance(result, str):
            if result != text:
                yield Completion(result, start_position=-len(text))
            return
        if isinstance(result, list):
            word = text.split(" ")[-1]
            for candidate in result:
                yield Completion(candidate, start_position=-len(word))

    def _track(self, text: str) -> None:
        if text != self._last_text:
            self.session.autocomplete.reset_tabs()
        self._last_text = text

    def _expect(self, result) -> None:
        # The line a completion produced is not new typing
        if isinstance(result, str):
            self._last_text = result

    async def get_completions_async(self, document, complete_event):
        if not complete_event.completion_requested:
            return
        text = document.text_before_cursor
        self._track(text)
        result = await self.session.complete(text)
        self._expect(result)
        for completion in self._completions(text, result):
            yield completion

    def get_completions(self, document, complete_event):
        if not complete_event.completion_requested:
            return
        text = document.text_before_cursor
        self._track(text)
        result = asyncio.run(self.session.complete(text))
        self._expect(result)
        yield from self._completions(text, result)


def get_style() -> Style:
    """Get prompt_toolkit style for the REPL."""
    return Style.from_dict({
        "prompt": "ansicyan bold",
        "completion-menu.completion": "bg:ansiblack ansigreen",
    })


def create_key_bindings(session: Session) -> KeyBindings:
    """Key bindings wiring history and Ctrl+C to the session."""
    bindings = KeyBindings()

    @bindings.add("up")
    def _(event):
        entry = session.get_history("up")
        if entry is not None:
            event.app.current_buffer.text = entry
            event.app.current_buffer.cursor_position = len(entry)

    @bindings.add("down")
    def _(event):
        entry = session.get_history("down") or ""
        event.app.current_buffer.text = entry
        event.app.current_buffer.cursor_position = len(entry)

    @bindings.add("c-c")
    def _(event):
        """Clear the current line."""
        event.app.current_buffer.reset()

    return bindings


async def run_line(session: Session, line: str) -> None:
    """Execute one line, letting SIGINT cancel it cooperatively."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, session.cancel_commands)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False
    try:
        await session.exec(line)
    except CommandError as e:
        session.log(str(e))
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


async def repl_async(session: Session) -> None:
    """Read lines until EOF or until a command closes the session."""
    prompt: PromptSession = PromptSession(
        completer=SessionCompleter(session),
        style=get_style(),
        key_bindings=create_key_bindings(session),
        complete_while_typing=False,
    )

    while not session.closed:
        try:
            line = await prompt.prompt_async([("class:prompt", session.delimiter + " ")])
        except KeyboardInterrupt:
            continue
        except EOFError:
            session.close()
            break
        session.autocomplete.reset_tabs()
        if line.strip():
            await run_line(session, line)


def repl(session: Optional[Session] = None) -> None:
    """Run the interactive prompt, creating a configured session if needed."""
    config = get_config()
    if session is None:
        session = Session(config=config)

    session_id = str(uuid.uuid4())
    log_path = configure_session_logging(session_id, config.get("log_level"))
    logger.info(f"Prompt started, logging to {log_path}")
    try:
        asyncio.run(repl_async(session))
    finally:
        close_session_logging()
