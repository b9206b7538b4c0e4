#!/usr/bin/env python3
"""
Tests for the command registry and the command builder.
"""

import pytest

from replkit.core import (
    BuilderSealedError,
    CommandError,
    CommandRegistry,
    DuplicateAliasError,
    Option,
)
from replkit.core.command import Argument, split_command_spec
from replkit.completion import StaticSource, SyncSource


# ============================================================================
# Spec Parsing Tests
# ============================================================================

class TestCommandSpec:
    """Tests for splitting a command spec into name and arguments."""

    def test_name_and_arguments(self):
        """Test multi-word name with arguments."""
        name, args = split_command_spec("order pizza <type> [extras...]")
        assert name == "order pizza"
        assert [a.name for a in args] == ["type", "extras"]
        assert args[0].required and not args[0].variadic
        assert not args[1].required and args[1].variadic

    def test_required_sorted_first(self):
        """Test required arguments come before optional ones."""
        _, args = split_command_spec("cmd [b] <a>")
        assert [a.name for a in args] == ["a", "b"]

    def test_human_readable(self):
        """Test arguments render back to their markers."""
        assert Argument.parse("<files...>").human_readable() == "<files...>"
        assert Argument.parse("[name]").human_readable() == "[name]"


# ============================================================================
# Option Tests
# ============================================================================

class TestOption:
    """Tests for Option flag parsing."""

    def test_short_and_long(self):
        """Test short and long flags with a value marker."""
        opt = Option("-p, --port <number>", "Port to use")
        assert opt.short == "-p"
        assert opt.long == "--port"
        assert opt.takes_value
        assert opt.name() == "port"

    def test_long_only_flag(self):
        """Test a long flag without value."""
        opt = Option("--verbose")
        assert opt.short is None
        assert not opt.takes_value
        assert opt.bool

    def test_negated(self):
        """Test --no- options are not plain booleans."""
        opt = Option("--no-color")
        assert opt.name() == "color"
        assert not opt.bool

    def test_name_keeps_inner_no(self):
        """Test a long flag containing no- elsewhere keeps its name."""
        opt = Option("--piano-keys")
        assert opt.bool
        assert opt.name() == "piano-keys"

    def test_autocomplete_source(self):
        """Test a list becomes a static completion source."""
        opt = Option("-t, --type [type]", "", ["thin", "thick"])
        assert opt.autocomplete == StaticSource(("thin", "thick"))


# ============================================================================
# Registry Tests
# ============================================================================

class TestCommandRegistry:
    """Tests for CommandRegistry."""

    def test_register_and_get(self):
        """Test a registered command is found by name."""
        reg = CommandRegistry()
        reg.command("foo <bar>", "Foo.")
        assert reg.get("foo").description == "Foo."
        assert "foo" in reg
        assert len(reg) == 1

    def test_same_name_replaces(self):
        """Test registering a name again replaces the command."""
        reg = CommandRegistry()
        reg.command("foo", "First.")
        reg.command("foo", "Second.")
        assert len(reg) == 1
        assert reg.get("foo").description == "Second."

    def test_remove(self):
        """Test removing a command."""
        reg = CommandRegistry()
        reg.command("foo").remove()
        assert reg.get("foo") is None
        assert not reg.remove("foo")

    def test_duplicate_alias_raises(self):
        """Test an alias can only be reserved once."""
        reg = CommandRegistry()
        reg.command("first").alias("f")
        with pytest.raises(DuplicateAliasError, match='Duplicate alias "f" for command "fetch"'):
            reg.command("fetch").alias("x", "f")
        # Nothing from the failed call was added
        assert reg.get("fetch").aliases == []

    def test_alias_lists_flattened(self):
        """Test aliases given as lists."""
        reg = CommandRegistry()
        cmd = reg.command("list").alias(["ls", "l"], "dir").command
        assert cmd.aliases == ["ls", "l", "dir"]
        assert reg.find_alias("dir") is cmd

    def test_repeated_alias_in_one_call(self):
        """Test an alias repeated in the same call is rejected."""
        reg = CommandRegistry()
        with pytest.raises(DuplicateAliasError):
            reg.command("list").alias("ls", "ls")

    def test_catch_replaces_previous(self):
        """Test only one catch-all exists."""
        reg = CommandRegistry()
        reg.catch("[words...]", "First.")
        reg.catch("[words...]", "Second.")
        assert reg.catch_all.description == "Second."
        assert sum(1 for c in reg if c.catch_all) == 1

    def test_names_sorted_with_aliases(self):
        """Test names() lists names and aliases for completion."""
        reg = CommandRegistry()
        reg.command("stop")
        reg.command("start").alias("go")
        assert reg.names() == ["go", "start", "stop"]

    def test_visible_skips_hidden(self):
        """Test hidden commands are left out of listings."""
        reg = CommandRegistry()
        reg.command("shown")
        reg.command("secret").hidden()
        assert [c.name for c in reg.visible()] == ["shown"]

    def test_on_register_listener(self):
        """Test listeners see every added command."""
        reg = CommandRegistry()
        seen = []
        reg.on_register(lambda cmd: seen.append(cmd.name))
        reg.command("a")
        reg.command("b")
        assert seen == ["a", "b"]


# ============================================================================
# Builder Tests
# ============================================================================

class TestCommandBuilder:
    """Tests for CommandBuilder."""

    def test_fluent_configuration(self):
        """Test builder methods configure the command."""
        reg = CommandRegistry()
        handler = lambda args, cmd: None
        cmd = (
            reg.command("serve [dir]")
            .description("Serve files.")
            .option("-p, --port <n>", "Port")
            .action(handler)
            .autocomplete(lambda text: ["public", "dist"])
            .delimiter("serve$")
            .build()
        )
        assert cmd.description == "Serve files."
        assert cmd.handler is handler
        assert isinstance(cmd.autocomplete, SyncSource)
        assert cmd.delimiter == "serve$"
        assert cmd.find_option("--port") is cmd.options[0]

    def test_build_seals(self):
        """Test configuring after build() raises."""
        reg = CommandRegistry()
        builder = reg.command("foo")
        builder.build()
        with pytest.raises(BuilderSealedError):
            builder.action(lambda args, cmd: None)
        with pytest.raises(BuilderSealedError):
            builder.build()

    def test_init_requires_mode(self):
        """Test init() is only allowed for mode commands."""
        reg = CommandRegistry()
        with pytest.raises(CommandError, match="Cannot call init from a non-mode action."):
            reg.command("foo").init(lambda args, cmd: None)
        reg.mode("repl").init(lambda args, cmd: None)
        assert reg.get("repl").mode

    def test_invalid_type_raises(self):
        """Test types() rejects unsupported types."""
        reg = CommandRegistry()
        with pytest.raises(ValueError):
            reg.command("foo").types({"number": ["n"]})

    def test_types_accept_single_key(self):
        """Test types() accepts a bare key."""
        reg = CommandRegistry()
        cmd = reg.command("foo").types({"string": "id"}).command
        assert cmd.types == {"string": ["id"]}


# ============================================================================
# Help Tests
# ============================================================================

class TestHelp:
    """Tests for usage and help rendering."""

    def test_usage(self):
        """Test the generated usage line."""
        reg = CommandRegistry()
        cmd = reg.command("copy <src> [dest]").command
        assert cmd.usage() == "[options] <src> [dest]"

    def test_custom_usage(self):
        """Test usage() overrides the generated line."""
        reg = CommandRegistry()
        cmd = reg.command("copy <src>").usage("SRC").command
        assert cmd.usage() == "SRC"

    def test_help_information(self):
        """Test the help block lists usage, aliases and options."""
        reg = CommandRegistry()
        cmd = (
            reg.command("serve [dir]", "Serve files.")
            .alias("s")
            .option("-p, --port <n>", "Port to bind")
            .command
        )
        text = cmd.help_information()
        assert "  Usage:  serve [options] [dir]" in text
        assert "  Alias: s" in text
        assert "  Serve files." in text
        assert "--help" in text
        assert "-p, --port <n>  Port to bind" in text


# ============================================================================
# Test Runner
# ============================================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
