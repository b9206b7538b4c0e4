"""
replkit - embeddable interactive command prompts

Register commands with a small usage grammar, then run lines against them
with piping, modes, tab completion and persistent history.

Example usage:
    import asyncio
    from replkit import Session

    session = Session()
    session.registry.command("greet <name>", "Says hello.") \\
        .option("-l, --loud", "Shout it.") \\
        .action(lambda args, cmd: cmd.log(
            f"hello {args['name']}".upper() if args["options"].get("loud")
            else f"hello {args['name']}"
        ))

    asyncio.run(session.exec("greet world --loud"))     # HELLO WORLD

    # Interactive prompt (prompt_toolkit)
    from replkit.cli import repl
    repl(session)
"""

__version__ = "0.1.0"

# Core exports
from replkit.core import (
    BindingError,
    BuilderSealedError,
    Command,
    CommandBuilder,
    CommandError,
    CommandRegistry,
    DuplicateAliasError,
    HandlerError,
    Option,
    ValidationError,
)
from replkit.completion import AsyncSource, StaticSource, SyncSource
from replkit.config import Config, get_config
from replkit.history import History, LocalStorage
from replkit.session import CancellationToken, CommandInstance, Session, SessionState

__all__ = [
    # Version
    "__version__",
    # Core
    "Command",
    "CommandBuilder",
    "CommandRegistry",
    "Option",
    # Errors
    "BindingError",
    "BuilderSealedError",
    "CommandError",
    "DuplicateAliasError",
    "HandlerError",
    "ValidationError",
    # Completion
    "AsyncSource",
    "StaticSource",
    "SyncSource",
    # Session
    "CancellationToken",
    "CommandInstance",
    "Session",
    "SessionState",
    # History and config
    "Config",
    "History",
    "LocalStorage",
    "get_config",
]
