#!/usr/bin/env python3
"""
Tests for tab completion: candidate matching, the engine and sources.
"""

import asyncio

import pytest

from replkit.completion import (
    AsyncSource,
    Autocomplete,
    StaticSource,
    SyncSource,
    as_source,
    filter_data,
    match_candidates,
    parse_input,
    resolve_source,
)
from replkit.completion.engine import get_suffix
from replkit.core import CommandRegistry


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def registry():
    """Registry with commands sharing prefixes and completion data."""
    reg = CommandRegistry()
    reg.command("status")
    reg.command("stop")
    reg.command("reverse")
    (
        reg.command("order <type>")
        .option("-s, --size <size>", "Pizza size", ["small", "large"])
        .option("-d, --delivery", "Deliver it", ["never"])
        .autocomplete(["pepperoni", "pineapple", "cheese"])
    )
    return reg


@pytest.fixture
def autocomplete(registry):
    return Autocomplete(registry)


def complete(engine, line):
    return asyncio.run(engine.exec(line))


# ============================================================================
# Candidate Matching Tests
# ============================================================================

class TestMatchCandidates:
    """Tests for match_candidates."""

    def test_single_match_gets_space(self):
        """Test a unique match is completed with a trailing space."""
        assert match_candidates("stat", ["status"]) == "status "

    def test_ambiguous_without_progress(self):
        """Test ambiguous matches with no longer shared prefix return the list."""
        assert match_candidates("st", ["status", "stop"]) == ["status", "stop"]

    def test_extends_shared_prefix(self):
        """Test ambiguous matches extend to the common prefix."""
        assert match_candidates("s", ["stash", "status"]) == "sta"

    def test_no_match(self):
        """Test nothing matching returns None."""
        assert match_candidates("x", ["status"]) is None

    def test_empty_query_lists_all(self):
        """Test an empty query returns every candidate."""
        assert match_candidates("", ["b", "a"]) == ["a", "b"]

    def test_path_segments(self):
        """Test only the last path segment is matched."""
        assert match_candidates("src/mai", ["main.py", "map/"]) == "src/main.py "

    def test_directory_gets_no_space(self):
        """Test a trailing slash suppresses the space."""
        assert match_candidates("src/ma", ["map/"]) == "src/map/"

    def test_ignore_slashes(self):
        """Test slashes may be treated as ordinary characters."""
        assert match_candidates("a/b", ["a/bc"], ignore_slashes=True) == "a/bc "

    def test_ansi_ignored(self):
        """Test colored candidates match on their plain text."""
        assert match_candidates("re", ["\x1b[31mred\x1b[0m"]) == "\x1b[31mred\x1b[0m "


class TestInputHelpers:
    """Tests for parse_input, get_suffix and filter_data."""

    def test_parse_input_pipes(self):
        """Test the context is the text after the last pipe."""
        parsed = parse_input("say hi | rev")
        assert parsed.prefix == "say hi |"
        assert parsed.context == " rev"
        assert parsed.suffix == ""

    def test_parse_input_cursor(self):
        """Test text after the cursor becomes the suffix."""
        parsed = parse_input("sta more", cursor=3)
        assert parsed.context == "sta"
        assert parsed.suffix == "more"

    def test_get_suffix_drops_current_word(self):
        """Test the rest of the word under the cursor is dropped."""
        assert get_suffix("tus now") == "now"
        assert get_suffix(" now") == "now"
        assert get_suffix("") == ""

    def test_filter_data(self):
        """Test candidates are filtered by prefix."""
        assert filter_data("st", ["start", "stop", "go"]) == ["start", "stop"]


# ============================================================================
# Engine Tests
# ============================================================================

class TestAutocomplete:
    """Tests for the Autocomplete engine."""

    def test_command_name_unique(self, autocomplete):
        """Test a unique command prefix completes."""
        assert complete(autocomplete, "sta") == "status "

    def test_first_tab_hides_list(self, autocomplete):
        """Test the candidate list only shows from the second tab."""
        assert complete(autocomplete, "st") is None
        assert complete(autocomplete, "st") == ["status", "stop"]

    def test_reset_tabs(self, autocomplete):
        """Test reset_tabs restarts the count."""
        complete(autocomplete, "st")
        autocomplete.reset_tabs()
        assert complete(autocomplete, "st") is None

    def test_argument_completion(self, autocomplete):
        """Test the command's source completes its arguments."""
        assert complete(autocomplete, "order ch") == "order cheese "

    def test_argument_candidates_on_second_tab(self, autocomplete):
        """Test ambiguous argument completion."""
        assert complete(autocomplete, "order p") is None
        assert complete(autocomplete, "order p") == ["pepperoni", "pineapple"]

    def test_option_names(self, autocomplete):
        """Test a dash completes option names."""
        assert complete(autocomplete, "order --si") == "order --size "

    def test_option_value(self, autocomplete):
        """Test an option taking a value uses its own source."""
        assert complete(autocomplete, "order --size sm") == "order --size small "

    def test_flag_without_value_uses_command_source(self, autocomplete):
        """Test a value-less flag does not use its own source."""
        assert complete(autocomplete, "order --delivery che") == "order --delivery cheese "

    def test_after_pipe(self, autocomplete):
        """Test completion after a pipe keeps the earlier stages."""
        assert complete(autocomplete, "status | rev") == "status | reverse "

    def test_catch_all(self):
        """Test the catch-all's source completes unmatched input."""
        reg = CommandRegistry()
        reg.catch("[words...]").autocomplete(["alpha", "beta"])
        assert complete(Autocomplete(reg), "al") == "alpha "

    def test_folder_completion_keeps_tab_count(self):
        """Test completing to a trailing slash does not restart the count."""
        reg = CommandRegistry()
        reg.command("cd <dir>").autocomplete(["src/", "srv/"])
        engine = Autocomplete(reg)
        assert complete(engine, "cd src") == "cd src/"
        assert engine.tab_count == 1

    def test_nested_folder_lists_on_next_tab(self):
        """Test the tab after a folder completion shows its entries at once."""
        def folders(text):
            if text.startswith("src/"):
                return ["src/a/", "src/b/"]
            return ["src/", "srv/"]

        reg = CommandRegistry()
        reg.command("cd <dir>").autocomplete(folders)
        engine = Autocomplete(reg)
        assert complete(engine, "cd src") == "cd src/"
        assert complete(engine, "cd src/") == ["src/a/", "src/b/"]

    def test_plain_completion_resets_tab_count(self, autocomplete):
        """Test a completion ending in a space restarts the count."""
        complete(autocomplete, "st")
        assert complete(autocomplete, "sta") == "status "
        assert autocomplete.tab_count == 0

    def test_nothing_to_offer(self, autocomplete):
        """Test unknown input completes to nothing."""
        assert complete(autocomplete, "xyz") is None
        assert complete(autocomplete, "xyz") is None


# ============================================================================
# Source Tests
# ============================================================================

class TestSources:
    """Tests for completion source normalization and resolution."""

    def test_as_source_shapes(self):
        """Test each accepted shape maps to its variant."""
        async def fetch(text):
            return []

        assert as_source(None) is None
        assert as_source(["a"]) == StaticSource(("a",))
        assert as_source({"data": ["a"]}) == StaticSource(("a",))
        assert isinstance(as_source(lambda text: []), SyncSource)
        assert as_source(fetch) == AsyncSource(fetch)
        assert as_source(lambda text, done: None).callback_style

    def test_as_source_rejects_other_values(self):
        """Test unsupported values raise TypeError."""
        with pytest.raises(TypeError):
            as_source(42)

    def test_resolve_static(self):
        """Test a static list resolves as is."""
        assert asyncio.run(resolve_source(StaticSource(("a", "b")), "")) == ["a", "b"]

    def test_resolve_sync(self):
        """Test a sync source receives the partial word."""
        source = as_source(lambda text: [text + "1", text + "2"])
        assert asyncio.run(resolve_source(source, "x")) == ["x1", "x2"]

    def test_resolve_async(self):
        """Test a coroutine function is awaited."""
        async def fetch(text):
            await asyncio.sleep(0)
            return ["remote"]

        assert asyncio.run(resolve_source(as_source(fetch), "")) == ["remote"]

    def test_resolve_callback(self):
        """Test a callback-style source settles through done."""
        def fetch(text, done):
            done(None, ["called", "back"])

        assert asyncio.run(resolve_source(as_source(fetch), "")) == ["called", "back"]

    def test_failing_source_yields_nothing(self):
        """Test a raising source resolves to an empty list."""
        def broken(text):
            raise RuntimeError("offline")

        assert asyncio.run(resolve_source(as_source(broken), "")) == []

    def test_async_command_source(self):
        """Test the engine awaits asynchronous command sources."""
        async def names(text):
            return ["deploy-prod", "deploy-staging"]

        reg = CommandRegistry()
        reg.command("ship <target>").autocomplete(names)
        assert complete(Autocomplete(reg), "ship deploy-p") == "ship deploy-prod "


# ============================================================================
# Test Runner
# ============================================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
