"""Execution sessions, command instances and cancellation."""

from replkit.session.builtins import register_builtins
from replkit.session.instance import CancellationToken, CommandInstance
from replkit.session.session import Session, SessionState

__all__ = [
    "CancellationToken",
    "CommandInstance",
    "Session",
    "SessionState",
    "register_builtins",
]
