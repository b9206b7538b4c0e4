"""Built-in help and exit commands."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from replkit.utils import pad

if TYPE_CHECKING:
    from replkit.core import Command, CommandRegistry
    from replkit.session.instance import CommandInstance


INVALID_COMMAND = "\n  Invalid Command. Showing Help:\n"


def render_command_list(commands: list[Command]) -> str:
    """Two-column listing of command usage and description."""
    rows = []
    for command in commands:
        args = " ".join(arg.human_readable() for arg in command.arguments)
        rows.append((f"{command.name} {args}".strip(), command.description or ""))
    width = max((len(usage) for usage, _ in rows), default=0)

    lines = ["", "  Commands:", ""]
    lines.extend(f"    {pad(usage, width)}  {description}".rstrip() for usage, description in rows)
    lines.append("")
    return "\n".join(lines)


def cmd_help(args: dict[str, Any], cmd: CommandInstance) -> None:
    """Show the command list, or one command's help."""
    words = args.get("command")
    if not words:
        cmd.log(cmd.session.help_text())
        return
    name = " ".join(str(w) for w in words)
    command = cmd.session.registry.get(name)
    if command is not None and not command.hidden:
        cmd.log(cmd.session.command_help(command))
    else:
        cmd.log(cmd.session.help_text(name))


def cmd_exit(args: dict[str, Any], cmd: CommandInstance) -> None:
    """Close the session."""
    cmd.session.close()


def register_builtins(registry: CommandRegistry) -> None:
    registry.command("help [command...]", "Provides help for a given command.").action(cmd_help)
    registry.command("exit", "Exits application.").alias("quit").action(cmd_exit)
