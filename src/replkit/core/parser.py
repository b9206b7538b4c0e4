"""
Line parsing: pipe splitting, command matching and argument binding.

A raw line goes through three steps:

    split_pipes("say 'a|b' | reverse")    -> ["say 'a|b'", "reverse"]
    match_command("say 'a|b'", registry)  -> CommandMatch(<say>, "'a|b'")
    build_command_args("'a|b'", say)      -> {"options": {}, "words": ["a|b"]}

Binding problems are returned as a message string instead of being raised,
so callers can print the message followed by the command's help.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from replkit.core.command import Command
    from replkit.core.registry import CommandRegistry

logger = logging.getLogger(__name__)


QUOTE_CHARS = ('"', "'", "`")

TOKEN_PATTERN = re.compile(r'"(.*?)"|\'(.*?)\'|`(.*?)`|([^\s"]+)')
KEY_PAIR_PATTERN = re.compile(r"""(['"]?)(\w+)=(?:(['"])((?:(?!\3).)*)\3|(\S+))\1""")
NUMBER_PATTERN = re.compile(r"^[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:e[-+]?\d+)?$", re.IGNORECASE)
HEX_PATTERN = re.compile(r"^0x[0-9a-f]+$", re.IGNORECASE)
FLAG_LIKE = re.compile(r"^(-|--)[^-]")

MISSING_ARGUMENT = "\n  Missing required argument. Showing Help:"


@dataclass
class CommandMatch:
    """Result of matching one stage against the registry."""

    command: Optional[Command] = None
    remainder: str = ""


@dataclass
class ParsedCommand:
    """First stage of a line plus the stages piped after it."""

    command: str
    match: Optional[Command] = None
    remainder: str = ""
    pipes: list[str] = field(default_factory=list)


# ============================================================================
# Pipe splitting
# ============================================================================

def split_pipes(line: str) -> list[str]:
    """Split a line on ``|`` characters that are not inside quotes.

    Each quote style is tracked separately and a stage ends only when all of
    them are balanced. An unbalanced quote on the final piece still yields a
    stage.
    """
    pieces = str(line).strip().split("|")
    stages: list[str] = []
    open_quotes = {quote: False for quote in QUOTE_CHARS}
    current = ""

    for index, piece in enumerate(pieces):
        current += piece
        for char in piece:
            if char in open_quotes:
                open_quotes[char] = not open_quotes[char]

        in_quote = any(open_quotes.values())
        if not in_quote or index == len(pieces) - 1:
            stages.append(current.strip())
            current = ""
        else:
            # split() dropped this pipe, it belongs to the quoted text
            current += "|"

    return stages


# ============================================================================
# Matching
# ============================================================================

def _is_group_prefix(words: list[str], registry: CommandRegistry) -> bool:
    """True if words are the leading words of a longer multi-word command."""
    for command in registry:
        parts = command.name.split(" ")
        if len(parts) > len(words) and parts[: len(words)] == words:
            return True
    return False


def match_command(stage: str, registry: CommandRegistry) -> CommandMatch:
    """Resolve a stage to the command with the longest whole-word name.

    Names are tried before aliases at every prefix length. When nothing
    matches, the catch-all command (if any) takes the whole stage, unless the
    stage is an unfinished prefix of a multi-word command such as typing
    ``do things`` when ``do things well`` exists.
    """
    parts = str(stage).strip().split(" ")

    for cut in range(len(parts), 0, -1):
        candidate = " ".join(parts[:cut]).strip()
        match = registry.get(candidate)
        if match is None:
            match = registry.find_alias(candidate)
        if match is not None:
            return CommandMatch(match, " ".join(parts[cut:]))

    catch_all = registry.catch_all
    if catch_all is None or _is_group_prefix(parts, registry):
        return CommandMatch()
    return CommandMatch(catch_all, str(stage))


def parse_command(line: str, registry: CommandRegistry) -> ParsedCommand:
    """Split a line into stages and match the first one.

    A matched command with a parse function may rewrite the first stage
    once; the rewritten text is split and matched again and may add or
    remove pipes.
    """
    stages = split_pipes(line)
    first, pipes = stages[0], stages[1:]
    found = match_command(first, registry)

    if found.command is not None and found.command.parse_fn is not None:
        rewritten = found.command.parse_fn(first, found.remainder)
        logger.debug(f"Line rewritten by {found.command.name!r}: {rewritten!r}")
        stages = split_pipes(rewritten)
        first, pipes = stages[0], stages[1:]
        found = match_command(first, registry)

    return ParsedCommand(
        command=first,
        match=found.command,
        remainder=found.remainder,
        pipes=pipes,
    )


# ============================================================================
# Argument parsing
# ============================================================================

def tokenize(text: str) -> list[str]:
    """Split text into words, keeping quoted spans (quotes removed) whole."""
    tokens = []
    for match in TOKEN_PATTERN.finditer(str(text)):
        tokens.append(next((g for g in match.groups() if g), ""))
    return tokens


def _is_number(value: Any) -> bool:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return True
    return bool(NUMBER_PATTERN.match(str(value)) or HEX_PATTERN.match(str(value)))


def _to_number(value: str) -> int | float:
    if HEX_PATTERN.match(value):
        return int(value, 16)
    try:
        return int(value)
    except ValueError:
        return float(value)


def parse_args(tokens: list[str] | str, types: dict[str, list[str]] | None = None) -> dict[str, Any]:
    """Parse tokens into options and positionals, getopt style.

    Args:
        tokens: Words from tokenize(), or a string to tokenize.
        types: ``{"boolean": [...], "string": [...]}``. Boolean keys never
            consume the following word; string keys are never converted to
            numbers.

    Returns:
        Dict of option values keyed by name, positionals under ``"_"``.
    """
    if isinstance(tokens, str):
        tokens = tokenize(tokens)
    types = types or {}
    booleans = set(types.get("boolean", []))
    strings = set(types.get("string", []))
    parsed: dict[str, Any] = {"_": []}

    def set_arg(key: str, value: Any) -> None:
        if key not in strings and isinstance(value, str) and _is_number(value):
            value = _to_number(value)
        current = parsed.get(key)
        if current is None or key in booleans or isinstance(current, bool):
            parsed[key] = value
        elif isinstance(current, list):
            current.append(value)
        else:
            parsed[key] = [current, value]

    i = 0
    while i < len(tokens):
        arg = tokens[i]
        following = tokens[i + 1] if i + 1 < len(tokens) else None

        if arg == "--":
            parsed["_"].extend(tokens[i + 1:])
            break

        if arg.startswith("--") and "=" in arg and len(arg.split("=", 1)[0]) > 2:
            key, value = arg[2:].split("=", 1)
            set_arg(key, value != "false" if key in booleans else value)
        elif arg.startswith("--no-") and len(arg) > 5:
            set_arg(arg[5:], False)
        elif arg.startswith("--") and len(arg) > 2:
            key = arg[2:]
            if following is not None and not FLAG_LIKE.match(following) and key not in booleans:
                set_arg(key, following)
                i += 1
            elif following in ("true", "false"):
                set_arg(key, following == "true")
                i += 1
            else:
                set_arg(key, "" if key in strings else True)
        elif arg.startswith("-") and len(arg) > 1 and arg[1] != "-":
            i += _parse_short_group(arg, following, booleans, strings, set_arg)
        else:
            if "_" not in strings and _is_number(arg):
                parsed["_"].append(_to_number(arg))
            else:
                parsed["_"].append(arg)
        i += 1

    return parsed


def _parse_short_group(arg, following, booleans, strings, set_arg) -> int:
    """Parse ``-abc`` style groups. Returns how many extra tokens were used."""
    letters = arg[1:-1]
    for j, letter in enumerate(letters):
        rest = arg[j + 2:]
        if rest == "-":
            set_arg(letter, rest)
            continue
        if letter.isalpha() and rest.startswith("="):
            set_arg(letter, rest[1:])
            return 0
        if letter.isalpha() and re.search(r"-?\d+(\.\d*)?(e-?\d+)?$", rest):
            set_arg(letter, rest)
            return 0
        if j + 1 < len(letters) and re.match(r"\W", letters[j + 1]):
            set_arg(letter, rest)
            return 0
        set_arg(letter, "" if letter in strings else True)

    key = arg[-1]
    if key == "-":
        return 0
    if following and not FLAG_LIKE.match(following) and key not in booleans:
        set_arg(key, following)
        return 1
    if following in ("true", "false"):
        set_arg(key, following == "true")
        return 1
    set_arg(key, "" if key in strings else True)
    return 0


# ============================================================================
# Binding
# ============================================================================

def normalize_key_pairs(text: str) -> str:
    """Rewrite ``key=value`` and ``key="a b"`` into a single quoted token."""
    return KEY_PAIR_PATTERN.sub(
        lambda m: f"\"{m.group(2)}='{m.group(4) or ''}{m.group(5) or ''}'\"",
        text,
    )


def _passed_booleans(command: Command, text: str) -> list[str]:
    """Value-less declared flags that actually appear in text."""
    words = set(text.split(" "))
    found = []
    for option in command.options:
        if option.takes_value:
            continue
        key = option.name()
        if {f"--{key}", f"--no-{key}"} & words:
            found.append(key)
        if option.short and option.short in words:
            found.append(option.short.lstrip("-"))
    return found


def build_command_args(
    remainder: str,
    command: Command,
    exec_args: dict[str, Any] | None = None,
    normalize_pairs: bool = False,
) -> dict[str, Any] | str:
    """Bind a remainder string to a command's arguments and options.

    Args:
        remainder: Text left after the command name.
        command: Matched command whose schema is applied.
        exec_args: Structured args supplied by the caller; shallow-merged over
            the parsed result.
        normalize_pairs: Rewrite ``key=value`` tokens first.

    Returns:
        Dict with one key per bound positional argument plus ``"options"``,
        or a message string describing why binding failed.
    """
    text = str(remainder or "")
    if normalize_pairs:
        text = normalize_key_pairs(text)

    types = {kind: list(keys) for kind, keys in command.types.items()}
    types["boolean"] = types.get("boolean", []) + _passed_booleans(command, text)
    parsed = parse_args(tokenize(text), types)

    args: dict[str, Any] = {"options": {}}

    remaining = list(parsed["_"])
    for index, spec in enumerate(command.arguments):
        passed = parsed["_"][index] if index < len(parsed["_"]) else None
        if passed is None and spec.required:
            return MISSING_ARGUMENT
        if passed is None:
            continue
        if spec.variadic:
            args[spec.name] = remaining
        else:
            args[spec.name] = passed
            remaining.pop(0)

    for option in command.options:
        short = (option.short or "").lstrip("-")
        key = option.name()
        value = parsed.get(short) if short else None
        if value is None:
            value = parsed.get(key)
        if isinstance(value, bool) and option.required:
            return (
                f"\n  Missing required value for option {option.long or option.short}. "
                "Showing Help:"
            )
        if value is not None:
            args["options"][key] = value

    for key in parsed:
        if key in ("_", "help"):
            continue
        known = any(key == o.name() or f"-{key}" == o.short for o in command.options)
        if not known:
            if not command.allow_unknown_options:
                return f"\n  Invalid option: '{key}'. Showing Help:"
            args["options"][key] = parsed[key]

    if exec_args:
        args.update(exec_args)
    args["options"] = dict(args.get("options") or {})

    if parsed.get("help") or "/?" in parsed["_"]:
        args["options"]["help"] = True

    return args
