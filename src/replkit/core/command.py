"""
Command descriptors and the fluent builder used to configure them.

Commands are created through a registry and configured with a single-use
builder:

    registry.command("say <words...>", "Repeat the given words") \\
        .option("-r, --reverse", "Reverse the output") \\
        .alias("echo") \\
        .action(say)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

from replkit.completion.sources import CompletionSource, as_source
from replkit.core.exceptions import BuilderSealedError, CommandError
from replkit.utils import pad

if TYPE_CHECKING:
    from replkit.core.registry import CommandRegistry


FLAG_SEPARATOR = re.compile(r"[ ,|]+")
ARG_PATTERN = re.compile(r"(\[[^\]]*\]|<[^>]*>)")
NAME_PATTERN = re.compile(r"^([^\[<]*)")

SUPPORTED_TYPES = ("string", "boolean")


class Option:
    """A command option parsed from a flags string such as ``-p, --port <n>``."""

    def __init__(self, flags: str, description: str = "", autocomplete: Any = None):
        self.flags = flags
        self.description = description or ""
        self.autocomplete: CompletionSource | None = as_source(autocomplete)
        # Position of the value marker, 0 when absent
        self.required = flags.index("<") if "<" in flags else 0
        self.optional = flags.index("[") if "[" in flags else 0
        self.short: Optional[str] = None
        self.long: Optional[str] = None

        parts = FLAG_SEPARATOR.split(flags.strip())
        if len(parts) > 1 and not parts[1].startswith(("[", "<")):
            self._assign_flag(parts.pop(0))
        self._assign_flag(parts.pop(0))
        # False for negatable --no- flags
        self.bool = not (self.long or "").startswith("--no-")

    def _assign_flag(self, flag: str) -> None:
        if flag.startswith("--"):
            self.long = flag
        else:
            self.short = flag

    def name(self) -> str:
        """Option name: the long flag without ``--``/``no-``, else the short flag."""
        if self.long is not None:
            name = self.long[2:]
            return name if self.bool else name[3:]
        return (self.short or "").replace("-", "", 1)

    def is_flag(self, arg: str) -> bool:
        return arg == self.short or arg == self.long

    @property
    def takes_value(self) -> bool:
        return bool(self.required or self.optional)

    def __repr__(self) -> str:
        return f"Option({self.flags!r})"


@dataclass
class Argument:
    """Positional argument spec."""

    name: str
    required: bool = False
    variadic: bool = False

    @classmethod
    def parse(cls, token: str) -> Argument | None:
        """Parse ``<name>``, ``[name]`` or either with a ``...`` suffix."""
        if token.startswith("<"):
            arg = cls(name=token[1:-1], required=True)
        elif token.startswith("["):
            arg = cls(name=token[1:-1])
        else:
            return None
        if len(arg.name) > 3 and arg.name.endswith("..."):
            arg.variadic = True
            arg.name = arg.name[:-3]
        return arg if arg.name else None

    def human_readable(self) -> str:
        name = self.name + ("..." if self.variadic else "")
        return f"<{name}>" if self.required else f"[{name}]"


def _argument_order(arg: Argument) -> tuple[int, int]:
    return (0 if arg.required else 1, 1 if arg.variadic else 0)


def parse_arguments(tokens: list[str]) -> list[Argument]:
    """Parse argument tokens, ordered required first and variadic last."""
    args = [a for a in (Argument.parse(t) for t in tokens) if a is not None]
    # sorted() is stable, declaration order survives within each group
    return sorted(args, key=_argument_order)


def split_command_spec(spec: str) -> tuple[str, list[Argument]]:
    """Split ``"do things <a> [b...]"`` into ``("do things", [a, b])``."""
    spec = str(spec)
    name = NAME_PATTERN.match(spec).group(0).strip()
    return name, parse_arguments(ARG_PATTERN.findall(spec))


@dataclass
class Command:
    """A registered command and its configuration."""

    name: str
    description: Optional[str] = None
    arguments: list[Argument] = field(default_factory=list)
    options: list[Option] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)
    handler: Optional[Callable[..., Any]] = None
    validator: Optional[Callable[..., Any]] = None
    cancel_hook: Optional[Callable[..., Any]] = None
    done_hook: Optional[Callable[..., Any]] = None
    after_hook: Optional[Callable[..., Any]] = None
    init_hook: Optional[Callable[..., Any]] = None
    help_fn: Optional[Callable[..., Any]] = None
    parse_fn: Optional[Callable[[str, str], str]] = None
    autocomplete: Optional[CompletionSource] = None
    types: dict[str, list[str]] = field(default_factory=dict)
    delimiter: Optional[str] = None
    custom_usage: Optional[str] = None
    catch_all: bool = False
    mode: bool = False
    hidden: bool = False
    allow_unknown_options: bool = False

    def find_option(self, flag: str) -> Option | None:
        for option in self.options:
            if option.is_flag(flag):
                return option
        return None

    def usage(self) -> str:
        """Usage string such as ``[options] <name> [rest...]``."""
        if self.custom_usage is not None:
            return self.custom_usage
        usage = "[options]"
        if self.arguments:
            usage += " " + " ".join(arg.human_readable() for arg in self.arguments)
        return usage

    def option_help(self) -> str:
        width = max((len(o.flags) for o in self.options), default=0)
        lines = [pad("--help", width) + "  output usage information"]
        lines.extend(f"{pad(o.flags, width)}  {o.description}" for o in self.options)
        return "\n".join(lines)

    def help_information(self) -> str:
        """Render the help block shown for ``--help`` and binding errors."""
        parts = ["", f"  Usage:  {self.name} {self.usage()}", ""]
        if self.aliases:
            parts.append(f"  Alias: {' | '.join(self.aliases)}\n")
        if self.description:
            parts.extend([f"  {self.description}", ""])
        option_help = re.sub(r"^", "    ", self.option_help(), flags=re.MULTILINE)
        parts.extend(["  Options:", "", option_help, ""])
        return "\n".join(parts).replace("\n\n\n", "\n\n")


class CommandBuilder:
    """Single-use fluent builder for a registered command.

    The command is visible to the registry as soon as the builder is created.
    Every configuration call returns the builder; ``build()`` seals it and
    returns the finished Command, after which further configuration raises
    BuilderSealedError.
    """

    def __init__(self, registry: CommandRegistry, command: Command):
        self._registry = registry
        self._command = command
        self._sealed = False

    @property
    def command(self) -> Command:
        return self._command

    def _check(self) -> Command:
        if self._sealed:
            raise BuilderSealedError(
                f'Command "{self._command.name}" was already built'
            )
        return self._command

    def build(self) -> Command:
        self._check()
        self._sealed = True
        return self._command

    def option(self, flags: str, description: str = "", autocomplete: Any = None) -> CommandBuilder:
        self._check().options.append(Option(flags, description, autocomplete))
        return self

    def action(self, fn: Callable[..., Any]) -> CommandBuilder:
        """Set the handler: ``fn(args, instance)`` or ``fn(args, instance, done)``."""
        self._check().handler = fn
        return self

    def validate(self, fn: Callable[..., Any]) -> CommandBuilder:
        self._check().validator = fn
        return self

    def cancel(self, fn: Callable[..., Any]) -> CommandBuilder:
        self._check().cancel_hook = fn
        return self

    def done(self, fn: Callable[..., Any]) -> CommandBuilder:
        self._check().done_hook = fn
        return self

    def after(self, fn: Callable[..., Any]) -> CommandBuilder:
        self._check().after_hook = fn
        return self

    def init(self, fn: Callable[..., Any]) -> CommandBuilder:
        command = self._check()
        if not command.mode:
            raise CommandError("Cannot call init from a non-mode action.")
        command.init_hook = fn
        return self

    def help(self, fn: Callable[..., Any]) -> CommandBuilder:
        """Replace the help text: ``fn(command_name) -> str``."""
        self._check().help_fn = fn
        return self

    def parse(self, fn: Callable[[str, str], str]) -> CommandBuilder:
        """Rewrite the raw line before dispatch: ``fn(line, remainder) -> line``."""
        self._check().parse_fn = fn
        return self

    def autocomplete(self, source: Any) -> CommandBuilder:
        self._check().autocomplete = as_source(source)
        return self

    def delimiter(self, delimiter: str) -> CommandBuilder:
        self._check().delimiter = delimiter
        return self

    def description(self, text: str) -> CommandBuilder:
        self._check().description = text
        return self

    def usage(self, text: str) -> CommandBuilder:
        self._check().custom_usage = text
        return self

    def hidden(self) -> CommandBuilder:
        self._check().hidden = True
        return self

    def allow_unknown_options(self, allow: bool = True) -> CommandBuilder:
        self._check().allow_unknown_options = bool(allow)
        return self

    def types(self, types: dict[str, Any]) -> CommandBuilder:
        """Force keys to be parsed as strings or booleans.

        Raises:
            ValueError: For a type other than ``string`` or ``boolean``.
        """
        command = self._check()
        normalized: dict[str, list[str]] = {}
        for kind, keys in types.items():
            if kind not in SUPPORTED_TYPES:
                raise ValueError(f"An invalid type was passed into types(): {kind}")
            normalized[kind] = list(keys) if isinstance(keys, (list, tuple)) else [keys]
        command.types = normalized
        return self

    def alias(self, *aliases: str | list[str]) -> CommandBuilder:
        """Add aliases; nested lists are flattened.

        Raises:
            DuplicateAliasError: If any alias is already reserved. No alias from
                the call is added in that case.
        """
        command = self._check()
        flat: list[str] = []
        for alias in aliases:
            if isinstance(alias, (list, tuple)):
                flat.extend(alias)
            else:
                flat.append(alias)
        self._registry.reserve_aliases(command, flat)
        command.aliases.extend(flat)
        return self

    def remove(self) -> CommandBuilder:
        self._registry.remove(self._command.name)
        return self
