"""Command registry, line parsing and argument binding."""

from replkit.core.command import Argument, Command, CommandBuilder, Option
from replkit.core.exceptions import (
    BindingError,
    BuilderSealedError,
    CommandError,
    DuplicateAliasError,
    HandlerError,
    ValidationError,
)
from replkit.core.parser import (
    CommandMatch,
    ParsedCommand,
    build_command_args,
    match_command,
    parse_args,
    parse_command,
    split_pipes,
    tokenize,
)
from replkit.core.registry import CommandRegistry

__all__ = [
    # Commands
    "Argument",
    "Command",
    "CommandBuilder",
    "CommandRegistry",
    "Option",
    # Parsing
    "CommandMatch",
    "ParsedCommand",
    "build_command_args",
    "match_command",
    "parse_args",
    "parse_command",
    "split_pipes",
    "tokenize",
    # Exceptions
    "BindingError",
    "BuilderSealedError",
    "CommandError",
    "DuplicateAliasError",
    "HandlerError",
    "ValidationError",
]
