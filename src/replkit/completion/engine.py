"""
Tab completion for partially typed lines.

``Autocomplete.exec(line, cursor)`` returns one of:

* a string: the new line content (a unique or extended completion),
* a list of strings: candidates to display,
* None: nothing to offer (or the first tab on an ambiguous prefix).

The first ambiguous tab only extends the shared prefix; the candidate list
is surfaced from the second tab on, matching common shell behaviour.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

from replkit.completion.sources import resolve_source
from replkit.utils import strip_ansi

if TYPE_CHECKING:
    from replkit.core.command import Command
    from replkit.core.registry import CommandRegistry

logger = logging.getLogger(__name__)

CompletionResult = Union[str, list[str], None]


@dataclass
class CompletionInput:
    """A line split around the cursor for completion."""

    raw: str
    prefix: str
    context: Union[str, list[str]]
    suffix: str
    option: Optional[str] = None
    match: Optional[Command] = None


# ============================================================================
# Matching helpers
# ============================================================================

def match_candidates(
    query: str,
    candidates: list[str],
    ignore_slashes: bool = False,
) -> CompletionResult:
    """Reduce candidates against query by longest common prefix.

    Args:
        query: Text typed so far.
        candidates: Possible completions; ANSI colors are ignored when
            comparing.
        ignore_slashes: Treat ``/`` as an ordinary character instead of a
            path separator.

    Returns:
        ``match + " "`` for a single hit (no space after a trailing ``/``),
        None for no hit, every hit when query is empty or no progress can be
        made, otherwise the longest shared prefix.
    """
    text = str(query)
    prefix = ""
    if not ignore_slashes:
        parts = text.split("/")
        text = parts.pop()
        prefix = "/".join(parts) + "/" if parts else ""

    matches = [c for c in sorted(candidates) if strip_ansi(c).startswith(text)]

    if len(matches) == 1:
        space = "" if strip_ansi(matches[0]).endswith("/") else " "
        return prefix + matches[0] + space
    if not matches:
        return None
    if not text:
        return matches

    shared = os.path.commonprefix(matches)
    if len(shared) <= len(text):
        return matches
    return prefix + shared


def get_match(context: str, data: list[str], ignore_slashes: bool = False) -> CompletionResult:
    """match_candidates() on the left-trimmed context, leading spaces restored."""
    trimmed = context.lstrip()
    found = match_candidates(trimmed, list(data), ignore_slashes=ignore_slashes)
    if isinstance(found, list):
        return found
    if not found:
        return None
    return " " * (len(context) - len(trimmed)) + found


def get_suffix(suffix: str) -> str:
    """Text after the cursor, minus the rest of the current word and one separator."""
    if not suffix.startswith(" "):
        suffix = re.sub(r"^\S+", "", suffix, count=1)
    return suffix[1:]


def parse_input(line: str, cursor: int | None = None) -> CompletionInput:
    """Split line at the cursor into prefix, context and suffix.

    The context is the text typed since the last ``|`` before the cursor;
    everything before it (pipe included) is the prefix.
    """
    raw = str(line)
    if cursor is None:
        cursor = len(raw)
    sections = raw[:cursor].split("|")
    return CompletionInput(
        raw=raw,
        prefix="|".join(sections[:-1] + [""]),
        context=sections[-1],
        suffix=get_suffix(raw[cursor:]),
    )


def assemble_input(input: CompletionInput) -> CompletionResult:
    if isinstance(input.context, list):
        return input.context
    return strip_ansi((input.prefix or "") + (input.context or "") + (input.suffix or ""))


def filter_data(text: str, data: list[str]) -> list[str]:
    """Candidates starting with the last path segment of text.

    Multi-word candidates lose the words already typed.
    """
    context = str(text or "").strip().split("/")[-1]
    typed_words = context.strip().split(" ")
    results = []
    for item in data:
        if not strip_ansi(item).startswith(context):
            continue
        parts = str(item).strip().split(" ")
        if len(parts) > 1:
            results.append(" ".join(parts[len(typed_words):]))
        else:
            results.append(item)
    return results


def parse_match_section(input: CompletionInput) -> CompletionInput:
    """Make the last word the context and note an option right before it."""
    parts = (input.context or "").split(" ")
    last = parts.pop()
    before_last = strip_ansi(parts[-1] if parts else "").strip()
    if before_last.startswith("-"):
        input.option = before_last
    input.context = last
    input.prefix = input.prefix or ""
    if parts:
        input.prefix += " ".join(parts) + " "
    return input


# ============================================================================
# Engine
# ============================================================================

class Autocomplete:
    """Per-session completion state over a command registry."""

    def __init__(self, registry: CommandRegistry):
        self.registry = registry
        self.tab_count = 0

    def reset_tabs(self) -> None:
        self.tab_count = 0

    def handle_tab_counts(self, result: CompletionResult, freeze: bool = False) -> CompletionResult:
        """Apply tab-press bookkeeping to a completion result.

        Lists are only surfaced from the second consecutive tab. A string
        result resets the count unless freeze is set, which keeps counting so
        repeated tabs can walk nested ``/`` segments.
        """
        if isinstance(result, list):
            self.tab_count += 1
            if self.tab_count > 1:
                return result or None
            return None
        self.tab_count = self.tab_count + 1 if freeze else 0
        return result

    def get_match_object(self, input: CompletionInput, names: list[str]) -> CompletionInput:
        """Find a command typed in full (followed by a space) in the context."""
        context = str(input.context)
        trimmed = context.lstrip()
        leading = context[: len(context) - len(trimmed)]

        matched_name = None
        for name in names:
            if name.strip() and trimmed.startswith(name) and trimmed[len(name):len(name) + 1] == " ":
                matched_name = name

        command = None
        prefix = ""
        suffix = ""
        if matched_name is not None:
            command = self.registry.get(matched_name.strip()) or self.registry.find_alias(
                matched_name.strip()
            )
            prefix = leading + trimmed[: len(matched_name)]
            suffix = trimmed[len(matched_name):]
        if command is None:
            command = self.registry.catch_all
            prefix = ""
            suffix = context

        if command is not None:
            input.match = command
            input.prefix += prefix
            input.context = suffix
        return input

    async def get_match_data(self, input: CompletionInput) -> list[str]:
        """Candidates for the word being typed after a matched command."""
        text = str(input.context)
        command = input.match

        if text.strip().startswith("-") and not command.allow_unknown_options:
            return [o.long or o.short for o in command.options if o.long or o.short]

        if input.option is not None:
            option = command.find_option(strip_ansi(input.option).strip())
            if option is not None and option.takes_value:
                return await resolve_source(option.autocomplete, text)

        return await resolve_source(command.autocomplete, text)

    async def exec(self, line: str, cursor: int | None = None) -> CompletionResult:
        """Complete line at cursor (defaults to the end of the line)."""
        input = parse_input(line, cursor)
        names = self.registry.names()

        direct = get_match(str(input.context), names, ignore_slashes=True)
        if direct is not None:
            input.context = direct
            return self._finish(input)

        input = self.get_match_object(input, names)
        if input.match is None:
            return self.handle_tab_counts(filter_data(str(input.context), names))

        parse_match_section(input)
        data = await self.get_match_data(input)
        logger.debug(f"Completion data for {input.match.name!r}: {len(data)} item(s)")

        found = get_match(str(input.context), data)
        if found is not None:
            input.context = found
            return self._finish(input)
        return self.handle_tab_counts(filter_data(str(input.context), data))

    def _finish(self, input: CompletionInput) -> CompletionResult:
        freeze = isinstance(input.context, str) and input.context.endswith("/")
        return self.handle_tab_counts(assemble_input(input), freeze)
