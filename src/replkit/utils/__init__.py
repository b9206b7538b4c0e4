"""Small helpers shared across replkit."""

from replkit.utils.callables import positional_arity
from replkit.utils.text import pad, strip_ansi

__all__ = ["pad", "positional_arity", "strip_ansi"]
