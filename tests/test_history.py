#!/usr/bin/env python3
"""
Tests for command history and key-value storage.
"""

import json

import pytest

from replkit.history import HISTORY_SIZE, FileStore, History, LocalStorage


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def store(tmp_path):
    """File store in a temporary directory."""
    return FileStore(tmp_path / "storage")


@pytest.fixture
def history(store):
    """History with three commands."""
    hist = History(store)
    for cmd in ("first", "second", "third"):
        hist.new_command(cmd)
    return hist


# ============================================================================
# Traversal Tests
# ============================================================================

class TestTraversal:
    """Tests for walking history up and down."""

    def test_up_then_down(self, history):
        """Test stepping back and forward again."""
        assert history.get_previous_history() == "third"
        assert history.get_previous_history() == "second"
        assert history.get_next_history() == "third"
        assert history.get_next_history() == ""

    def test_up_stops_at_oldest(self, history):
        """Test going up past the oldest entry stays on it."""
        for _ in range(5):
            entry = history.get_previous_history()
        assert entry == "first"

    def test_down_at_bottom(self, history):
        """Test going down without going up returns empty input."""
        assert history.get_next_history() == ""
        assert history.get_previous_history() == "third"

    def test_empty_history(self):
        """Test an empty history has nothing to recall."""
        hist = History()
        assert hist.get_previous_history() is None
        assert hist.get_next_history() == ""

    def test_new_command_resets_cursor(self, history):
        """Test submitting a line resets traversal."""
        history.get_previous_history()
        history.get_previous_history()
        history.new_command("fourth")
        assert history.get_previous_history() == "fourth"

    def test_consecutive_duplicates_ignored(self, history):
        """Test repeating the newest entry does not add it again."""
        history.new_command("third")
        assert history.entries == ["first", "second", "third"]
        history.new_command("second")
        assert len(history) == 4

    def test_peek(self, history):
        """Test peek reads without moving the cursor."""
        assert history.peek() == "third"
        assert history.peek(2) == "first"
        assert history.peek(3) is None
        assert history.get_previous_history() == "third"


# ============================================================================
# Mode Tests
# ============================================================================

class TestModes:
    """Tests for mode-scoped history."""

    def test_mode_has_own_history(self, history):
        """Test a mode starts with an empty history."""
        history.enter_mode()
        assert history.in_mode
        assert history.get_previous_history() is None
        history.new_command("inside")
        assert history.get_previous_history() == "inside"

    def test_exit_mode_restores(self, history):
        """Test leaving a mode restores outer history and cursor."""
        history.get_previous_history()
        history.enter_mode()
        history.new_command("inside")
        history.exit_mode()
        assert not history.in_mode
        assert history.entries == ["first", "second", "third"]
        assert history.get_previous_history() == "second"

    def test_mode_commands_not_persisted(self, store):
        """Test commands entered in a mode are not saved."""
        hist = History(store)
        hist.set_id("app")
        hist.new_command("outer")
        hist.enter_mode()
        hist.new_command("inner")
        assert json.loads(store.get_item("cmd_history_app")) == ["outer"]


# ============================================================================
# Persistence Tests
# ============================================================================

class TestPersistence:
    """Tests for persisting history between sessions."""

    def test_persists_across_instances(self, tmp_path):
        """Test a new History with the same id sees earlier commands."""
        first = History()
        first.set_storage_path(tmp_path)
        first.set_id("demo")
        first.new_command("one")
        first.new_command("two")

        second = History()
        second.set_storage_path(tmp_path)
        second.set_id("demo")
        assert second.entries == ["one", "two"]
        assert second.get_previous_history() == "two"

    def test_ids_are_separate(self, store):
        """Test histories with different ids do not mix."""
        a = History(store)
        a.set_id("a")
        a.new_command("from a")
        b = History(store)
        b.set_id("b")
        assert b.entries == []

    def test_storage_key(self, store):
        """Test the persistence key is derived from the id."""
        hist = History(store)
        hist.set_id("demo")
        assert hist.storage_key == "cmd_history_demo"

    def test_cap_keeps_newest(self, store):
        """Test only the newest entries are persisted."""
        hist = History(store, max_size=HISTORY_SIZE)
        hist.set_id("big")
        for i in range(HISTORY_SIZE + 20):
            hist.new_command(f"cmd {i}")
        saved = json.loads(store.get_item("cmd_history_big"))
        assert len(saved) == HISTORY_SIZE
        assert saved[0] == "cmd 20"
        assert saved[-1] == f"cmd {HISTORY_SIZE + 19}"

    def test_small_cap(self, store):
        """Test a custom max size."""
        hist = History(store, max_size=2)
        hist.set_id("small")
        for cmd in ("a", "b", "c"):
            hist.new_command(cmd)
        assert json.loads(store.get_item("cmd_history_small")) == ["b", "c"]

    def test_clear_removes_persisted(self, store):
        """Test clear() deletes saved entries but keeps memory."""
        hist = History(store)
        hist.set_id("gone")
        hist.new_command("x")
        hist.clear()
        assert store.get_item("cmd_history_gone") is None
        assert hist.entries == ["x"]

    def test_unreadable_history_ignored(self, store):
        """Test corrupt saved history is skipped."""
        store.set_item("cmd_history_bad", "{not json")
        hist = History(store)
        hist.set_id("bad")
        assert hist.entries == []


# ============================================================================
# Storage Tests
# ============================================================================

class TestStorage:
    """Tests for FileStore and LocalStorage."""

    def test_set_get_remove(self, store):
        """Test basic key-value operations."""
        assert store.get_item("key") is None
        store.set_item("key", "value")
        assert store.get_item("key") == "value"
        store.remove_item("key")
        assert store.get_item("key") is None

    def test_keys_are_quoted(self, store):
        """Test keys with path characters stay inside the directory."""
        store.set_item("a/b", "1")
        assert [f.name for f in store.path.iterdir()] == ["a%2Fb"]
        assert store.get_item("a/b") == "1"

    def test_empty_key_rejected(self, store):
        """Test empty keys raise TypeError."""
        with pytest.raises(TypeError):
            store.get_item("")

    def test_local_storage_requires_id(self, tmp_path):
        """Test LocalStorage needs an id."""
        with pytest.raises(TypeError):
            LocalStorage("", root=tmp_path)

    def test_local_storage_directory(self, tmp_path):
        """Test each application id gets its own directory."""
        storage = LocalStorage("myapp", root=tmp_path)
        storage.set_item("theme", "dark")
        assert (tmp_path / "local_storage_myapp").is_dir()
        assert LocalStorage("myapp", root=tmp_path).get_item("theme") == "dark"
        assert LocalStorage("other", root=tmp_path).get_item("theme") is None


# ============================================================================
# Test Runner
# ============================================================================

if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
