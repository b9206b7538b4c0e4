"""
Command registry.

Commands are kept in registration order. Names are not unique keys in the
usual sense: registering a name again replaces the earlier command. Aliases
are unique across the whole registry.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator

from replkit.core.command import Command, CommandBuilder, split_command_spec
from replkit.core.exceptions import DuplicateAliasError

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Ordered collection of commands owned by a session."""

    def __init__(self):
        self._commands: list[Command] = []
        self._listeners: list[Callable[[Command], None]] = []

    def command(self, spec: str, description: str | None = None) -> CommandBuilder:
        """Register a command and return its builder.

        Args:
            spec: Name followed by argument markers, e.g. ``"do things <what>"``.
            description: Short description for help output.

        Returns:
            CommandBuilder for further configuration.

        Example:
            registry.command("order pizza <type> [extras...]", "Order a pizza") \\
                .option("-d, --delivery", "Deliver it") \\
                .action(order)
        """
        name, arguments = split_command_spec(spec)
        command = Command(name=name, description=description, arguments=arguments)
        self.add(command)
        return CommandBuilder(self, command)

    def mode(self, spec: str, description: str | None = None) -> CommandBuilder:
        """Register a mode command: running it enters a nested prompt."""
        builder = self.command(spec, description)
        builder.command.mode = True
        return builder

    def catch(self, spec: str = "[words...]", description: str | None = None) -> CommandBuilder:
        """Register the catch-all command, replacing any previous one."""
        for existing in [c for c in self._commands if c.catch_all]:
            self._commands.remove(existing)
        builder = self.command(spec, description)
        builder.command.catch_all = True
        return builder

    def add(self, command: Command) -> None:
        """Add a command; an existing command with the same name is replaced."""
        for index, existing in enumerate(self._commands):
            if existing.name == command.name and not existing.catch_all:
                logger.debug(f"Replacing command {command.name!r}")
                del self._commands[index]
                break
        self._commands.append(command)
        for listener in self._listeners:
            listener(command)

    def remove(self, name: str) -> bool:
        """Remove the command with the given name. Returns True if found."""
        before = len(self._commands)
        self._commands = [c for c in self._commands if c.name != name]
        return len(self._commands) != before

    def reserve_aliases(self, owner: Command, aliases: list[str]) -> None:
        """Check aliases are free before they are attached to owner.

        Raises:
            DuplicateAliasError: On the first alias already taken, including
                aliases repeated within the same call.
        """
        seen: set[str] = set()
        for alias in aliases:
            holder = self.find_alias(alias)
            if holder is None and alias in seen:
                holder = owner
            if holder is not None:
                raise DuplicateAliasError(
                    f'Duplicate alias "{alias}" for command "{owner.name}" detected. '
                    f'Was first reserved by command "{holder.name}".'
                )
            seen.add(alias)

    def on_register(self, listener: Callable[[Command], None]) -> None:
        """Call listener with every command added from now on."""
        self._listeners.append(listener)

    def get(self, name: str) -> Command | None:
        """Get a command by exact name."""
        for command in self._commands:
            if command.name == name and name:
                return command
        return None

    def find_alias(self, alias: str) -> Command | None:
        """Get the command reserving alias (the last one, if several)."""
        found = None
        for command in self._commands:
            if alias in command.aliases:
                found = command
        return found

    @property
    def catch_all(self) -> Command | None:
        for command in self._commands:
            if command.catch_all:
                return command
        return None

    def names(self) -> list[str]:
        """All command names and aliases, sorted, for completion."""
        names = [c.name for c in self._commands if c.name]
        for command in self._commands:
            names.extend(command.aliases)
        return sorted(names)

    def visible(self) -> list[Command]:
        """Commands shown in help listings, sorted by name."""
        return sorted(
            (c for c in self._commands if not c.hidden and c.name),
            key=lambda c: c.name,
        )

    def __iter__(self) -> Iterator[Command]:
        return iter(list(self._commands))

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None
