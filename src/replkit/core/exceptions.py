"""
Exception classes for command registration and execution.
"""

from __future__ import annotations


class CommandError(Exception):
    """Base exception for command-related errors."""


class DuplicateAliasError(CommandError):
    """Alias already reserved by another command."""


class BuilderSealedError(CommandError):
    """Command builder was used after build()."""


class BindingError(CommandError):
    """Arguments or options could not be bound to a command."""


class ValidationError(CommandError):
    """Command validator rejected the bound arguments."""


class HandlerError(CommandError):
    """Command handler raised or reported an error."""

    def __init__(self, message: str, command: str | None = None):
        super().__init__(message)
        self.command = command
