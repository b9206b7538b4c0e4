"""
CLI module for the replkit package.

Provides the prompt_toolkit front end for a Session.
"""

from replkit.cli._repl import SessionCompleter, create_key_bindings, get_style, repl, repl_async
from replkit.cli.main import main

__all__ = [
    "SessionCompleter",
    "create_key_bindings",
    "get_style",
    "main",
    "repl",
    "repl_async",
]
