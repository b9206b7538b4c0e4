"""
Session: runs lines against a command registry.

    session = Session()
    session.registry.command("say <words...>").action(
        lambda args, cmd: cmd.log(" ".join(args["words"]))
    )
    session.registry.command("reverse").action(
        lambda args, cmd: cmd.log(str(args["stdin"][0])[::-1])
    )
    asyncio.run(session.exec("say hello | reverse"))   # prints "olleh"

Handlers may be written three ways, all normalized into one completion:

    def handler(args, cmd): return value
    async def handler(args, cmd): return value
    def handler(args, cmd, done): done(None, value)     # done(err, result)
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional

from replkit.completion import Autocomplete
from replkit.config import Config
from replkit.core import (
    BindingError,
    Command,
    CommandError,
    CommandRegistry,
    HandlerError,
    ValidationError,
    build_command_args,
    match_command,
    parse_command,
)
from replkit.history import History, LocalStorage
from replkit.logging import log_command_exception
from replkit.session.builtins import INVALID_COMMAND, register_builtins, render_command_list
from replkit.session.instance import CommandInstance
from replkit.utils import positional_arity

logger = logging.getLogger(__name__)

# Set while a pipeline runs so nested exec() calls skip the queue
_inside_exec: contextvars.ContextVar[bool] = contextvars.ContextVar("_inside_exec", default=False)


class SessionState(str, Enum):
    IDLE = "idle"
    EXECUTING = "executing"
    IN_MODE = "in_mode"
    CANCELLING = "cancelling"


class Session:
    """Execution state for one interactive prompt.

    Args:
        registry: Commands to dispatch to. A new registry is created if None.
        config: Settings; defaults apply when None.
        history: History store. Built from config when None.
        output: Callable receiving each line of output. Defaults to print.
    """

    def __init__(
        self,
        registry: Optional[CommandRegistry] = None,
        config: Optional[Config] = None,
        history: Optional[History] = None,
        output: Optional[Callable[[str], Any]] = None,
    ):
        self.config = config or Config()
        self.registry = registry if registry is not None else CommandRegistry()
        if history is None:
            history = History(max_size=self.config.get("history_size"))
            history.set_storage_path(self.config.get("storage_path"))
        self.history = history
        if self.config.get("history_id"):
            self.history.set_id(self.config.get("history_id"))
        self.autocomplete = Autocomplete(self.registry)
        self.state = SessionState.IDLE
        self.closed = False

        self._output = output or print
        self._listeners: dict[str, list[Callable[[Any], Any]]] = {}
        self._delimiters: list[str] = [self.config.get("delimiter")]
        self._mode: Optional[CommandInstance] = None
        self._active: list[CommandInstance] = []
        self._tasks: set[asyncio.Future] = set()
        self._exec_lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        self._local_storage: Optional[LocalStorage] = None

        self.registry.on_register(
            lambda command: self.emit("command_registered", {"command": command.name})
        )
        if self.config.get("builtins", True):
            register_builtins(self.registry)

    # ========================================================================
    # Events
    # ========================================================================

    def on(self, event: str, listener: Callable[[Any], Any]) -> Session:
        self._listeners.setdefault(event, []).append(listener)
        return self

    def off(self, event: str, listener: Callable[[Any], Any]) -> Session:
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)
        return self

    def emit(self, event: str, data: Any = None) -> None:
        for listener in list(self._listeners.get(event, [])):
            listener(data)

    # ========================================================================
    # Output, prompt and storage
    # ========================================================================

    def log(self, *payload: Any) -> None:
        """Write payload, space separated, to the session output."""
        self._output(" ".join(str(item) for item in payload))

    @property
    def delimiter(self) -> str:
        return self._delimiters[-1]

    @delimiter.setter
    def delimiter(self, text: str) -> None:
        self._delimiters[-1] = text

    @property
    def mode(self) -> Optional[Command]:
        return self._mode.command if self._mode is not None else None

    def use_history(self, id: str, storage_path: str | None = None) -> None:
        """Persist history under id, optionally in storage_path."""
        if storage_path is not None:
            self.history.set_storage_path(storage_path)
        self.history.set_id(id)

    def get_history(self, direction: str) -> Optional[str]:
        """Walk history: ``"up"`` for older entries, ``"down"`` for newer."""
        if direction == "up":
            return self.history.get_previous_history()
        if direction == "down":
            return self.history.get_next_history()
        raise ValueError(f"Unknown history direction: {direction}")

    def init_local_storage(self, id: str) -> LocalStorage:
        """Create the application key-value store under the storage path."""
        self._local_storage = LocalStorage(id, root=self.config.get("storage_path"))
        return self._local_storage

    @property
    def local_storage(self) -> LocalStorage:
        if self._local_storage is None:
            raise CommandError("Local storage is not initialized, call init_local_storage(id)")
        return self._local_storage

    def close(self) -> None:
        """Mark the session finished; the prompt loop stops after this line."""
        self.closed = True
        self.emit("session_exit", None)

    # ========================================================================
    # Help
    # ========================================================================

    def command_help(self, command: Command) -> str:
        if command.help_fn is not None:
            return str(command.help_fn(command.name))
        return command.help_information()

    def help_text(self, command: str | None = None) -> str:
        """List visible commands, narrowed to a command group when given."""
        commands = self.registry.visible()
        if command:
            group = [c for c in commands if c.name.startswith(command.strip())]
            commands = group or commands
        return render_command_list(commands)

    # ========================================================================
    # Completion
    # ========================================================================

    async def complete(self, line: str, cursor: int | None = None):
        return await self.autocomplete.exec(line, cursor)

    # ========================================================================
    # Execution
    # ========================================================================

    @asynccontextmanager
    async def _queue(self) -> AsyncIterator[None]:
        """Serialize exec() calls in arrival order."""
        if _inside_exec.get():
            yield
            return
        loop = asyncio.get_running_loop()
        if self._exec_lock is None or self._lock_loop is not loop:
            self._exec_lock = asyncio.Lock()
            self._lock_loop = loop
        async with self._exec_lock:
            token = _inside_exec.set(True)
            try:
                yield
            finally:
                _inside_exec.reset(token)

    async def exec(self, line: str, args: Optional[dict[str, Any]] = None) -> Any:
        """Run a line and return the first stage's result.

        Args:
            line: Input line, possibly with ``|`` separated stages.
            args: Structured args merged over the first stage's bound args.

        Returns:
            The first command's result, or None when the line only produced
            help output.

        Raises:
            ValidationError: The first stage's validator rejected its args.
            HandlerError: The first stage's handler failed.
        """
        async with self._queue():
            return await self._exec_line(str(line), args)

    async def _exec_line(self, line: str, args: Optional[dict[str, Any]]) -> Any:
        if not line.strip():
            return None
        self.history.new_command(line)

        if self._mode is not None:
            if line.strip() == self.config.get("mode_exit_command"):
                self.exit_mode()
                return None
            instance = CommandInstance(self, self._mode.command, line)
            return await self._run_pipeline([instance], validate=False)

        parsed = parse_command(line, self.registry)
        if parsed.match is None:
            self.log(INVALID_COMMAND + self.help_text(parsed.command))
            return None

        stages = [(parsed.match, parsed.remainder)]
        for pipe in parsed.pipes:
            found = match_command(pipe, self.registry)
            if found.command is None:
                self.log(INVALID_COMMAND + self.help_text(pipe))
                return None
            stages.append((found.command, found.remainder))

        instances = []
        normalize = self.config.get("normalize_key_pairs", False)
        for index, (command, remainder) in enumerate(stages):
            bound = build_command_args(remainder, command, args if index == 0 else None, normalize)
            if isinstance(bound, str):
                self.log(bound)
                self.log(self.command_help(command))
                return None
            if bound["options"].get("help"):
                self.log(self.command_help(command))
                return None
            instances.append(CommandInstance(self, command, bound))

        for upstream, downstream in zip(instances, instances[1:]):
            upstream.downstream = downstream

        if instances[0].command.mode:
            return await self._enter_mode(instances[0])
        return await self._run_pipeline(instances)

    def exec_sync(self, line: str, args: Optional[dict[str, Any]] = None, fatal: bool = False) -> Any:
        """Run a single-stage line with a plain, non-awaitable handler.

        Errors are returned instead of raised unless fatal is set.
        """
        try:
            parsed = parse_command(str(line), self.registry)
            if parsed.match is None:
                raise CommandError(f"Invalid command: {parsed.command}")
            if parsed.pipes:
                raise CommandError("Piped commands need exec()")
            command = parsed.match
            bound = build_command_args(
                parsed.remainder, command, args, self.config.get("normalize_key_pairs", False)
            )
            if isinstance(bound, str):
                raise BindingError(bound.strip())
            instance = CommandInstance(self, command, bound)
            self._validate(instance)
            if command.handler is None:
                return None
            if positional_arity(command.handler) >= 3:
                raise CommandError(f'Command "{command.name}" takes a callback, use exec()')
            outcome = command.handler(instance.args, instance)
            if inspect.isawaitable(outcome):
                if inspect.iscoroutine(outcome):
                    outcome.close()
                raise CommandError(f'Command "{command.name}" is asynchronous, use exec()')
            return outcome
        except Exception as e:
            if fatal:
                raise
            logger.debug(f"exec_sync({line!r}) failed: {e}")
            return e

    # ========================================================================
    # Pipeline internals
    # ========================================================================

    def _validate(self, instance: CommandInstance) -> None:
        validator = instance.command.validator
        if validator is None:
            return
        if positional_arity(validator) >= 2:
            validator(instance.args, instance)
        else:
            validator(instance.args)

    def _invoke(self, instance: CommandInstance, fn: Optional[Callable[..., Any]] = None) -> asyncio.Future:
        """Start a handler and return a future for its single completion."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        pending = instance.pending
        pending.add(future)
        future.add_done_callback(pending.discard)
        handler = fn or instance.command.handler
        name = instance.command.name
        instance.loop = loop

        def settle(err: Any = None, result: Any = None) -> None:
            if future.done():
                return
            if err is None:
                future.set_result(result)
            elif isinstance(err, BaseException):
                future.set_exception(err)
            else:
                future.set_exception(HandlerError(str(err), command=name))

        def done(err: Any = None, result: Any = None) -> None:
            # May be called from a worker thread
            loop.call_soon_threadsafe(settle, err, result)

        def settle_from(task: asyncio.Future) -> None:
            if task.cancelled():
                future.cancel()
            elif task.exception() is not None:
                settle(task.exception())
            else:
                settle(None, task.result())

        if handler is None:
            settle(None, None)
            return future

        takes_callback = positional_arity(handler) >= 3
        try:
            if takes_callback:
                outcome = handler(instance.args, instance, done)
            else:
                outcome = handler(instance.args, instance)
        except Exception as e:
            settle(e)
            return future

        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            task.add_done_callback(settle_from)
        elif not takes_callback:
            settle(None, outcome)
        return future

    def start_downstream(self, instance: CommandInstance) -> None:
        """Validate and start a downstream stage with its new stdin."""
        try:
            self._validate(instance)
        except Exception as e:
            # Halts this branch of the pipeline only
            self.log(str(e))
            self.emit("client_command_error", {"command": instance.name, "error": e})
            return
        future = self._invoke(instance)
        future.add_done_callback(lambda f: self._downstream_settled(instance, f))

    def _downstream_settled(self, instance: CommandInstance, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self.log(log_command_exception(error, instance.name))
            self.emit("client_command_error", {"command": instance.name, "error": error})
            return
        if instance.command.done_hook is not None:
            instance.command.done_hook(instance)

    async def _drain(self, pending: set[asyncio.Future]) -> None:
        """Wait for every stage started by one pipeline."""
        while pending:
            await asyncio.gather(*list(pending), return_exceptions=True)

    async def _run_pipeline(self, instances: list[CommandInstance], validate: bool = True) -> Any:
        head = instances[0]
        # Stages of one pipeline share a pending set; a nested exec() has its own
        pending: set[asyncio.Future] = set()
        for instance in instances:
            instance.pending = pending
        outer = self._active
        self._active = instances
        if self.state != SessionState.IN_MODE:
            self.state = SessionState.EXECUTING
        try:
            if validate:
                try:
                    self._validate(head)
                except Exception as e:
                    self.emit("client_command_error", {"command": head.name, "error": e})
                    raise ValidationError(str(e)) from e

            try:
                result = await self._invoke(head)
            except Exception as e:
                self.emit("client_command_error", {"command": head.name, "error": e})
                message = log_command_exception(e, head.name)
                if isinstance(e, HandlerError):
                    raise
                raise HandlerError(message, command=head.name) from e
            finally:
                await self._drain(pending)

            if head.command.done_hook is not None and self._mode is None:
                head.command.done_hook(head)
            self.emit("client_command_executed", {"command": head.name})
            return result
        finally:
            self._active = outer
            if not outer:
                self.state = SessionState.IN_MODE if self._mode is not None else SessionState.IDLE

    def cancel_commands(self) -> int:
        """Cancel the running pipeline cooperatively.

        Marks every active instance's token, then calls its command's cancel
        hook. Returns the number of instances newly cancelled.
        """
        if not self._active:
            return 0
        self.state = SessionState.CANCELLING
        cancelled = []
        for instance in self._active:
            if instance.token.cancel():
                cancelled.append(instance.name)
                if instance.command.cancel_hook is not None:
                    instance.command.cancel_hook(instance)
        logger.info(f"Cancelled: {', '.join(cancelled) or 'nothing'}")
        self.emit("client_command_cancelled", {"commands": cancelled})
        return len(cancelled)

    # ========================================================================
    # Modes
    # ========================================================================

    async def _enter_mode(self, instance: CommandInstance) -> Any:
        command = instance.command
        try:
            self._validate(instance)
        except Exception as e:
            self.emit("client_command_error", {"command": command.name, "error": e})
            raise ValidationError(str(e)) from e
        self.history.enter_mode()
        self._mode = instance
        self._delimiters.append(command.delimiter or self.delimiter)
        self.state = SessionState.IN_MODE
        self.emit("mode_entered", {"command": command.name})

        if command.init_hook is None:
            return None
        try:
            return await self._invoke(instance, command.init_hook)
        except Exception as e:
            self.exit_mode()
            message = log_command_exception(e, command.name)
            raise HandlerError(message, command=command.name) from e

    def exit_mode(self) -> None:
        """Leave the current mode, restoring history and delimiter."""
        if self._mode is None:
            return
        instance = self._mode
        self.history.exit_mode()
        self._delimiters.pop()
        self._mode = None
        self.state = SessionState.IDLE
        self.emit("mode_exited", {"command": instance.name})
        if instance.command.after_hook is not None:
            instance.command.after_hook(instance)
