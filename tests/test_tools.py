"""Tests for tool_use / tool_result correlation."""

from __future__ import annotations

from tether.protocol.messages import TextBlock, ToolResultBlock, ToolUseBlock
from tether.session.models import ToolCompleted, ToolStarted
from tether.session.tools import ToolTracker


def _use(tool_id: str, name: str, **tool_input: str) -> ToolUseBlock:
    return ToolUseBlock(id=tool_id, name=name, input=tool_input)


def _result(tool_id: str, content: str) -> ToolResultBlock:
    return ToolResultBlock(tool_use_id=tool_id, content=content)


class TestRegister:
    def test_on_assistant_only_registers_tool_use(self) -> None:
        tracker = ToolTracker()
        events = tracker.on_assistant(
            [TextBlock(text="hi"), _use("t1", "Read", file_path="README.md")]
        )
        assert events == [ToolStarted(text="📖 Reading README.md...")]
        assert "t1" in tracker
        assert len(tracker) == 1

    def test_order_is_preserved(self) -> None:
        tracker = ToolTracker()
        events = tracker.on_assistant(
            [_use("a", "Bash", command="ls"), _use("b", "Glob", pattern="*.md")]
        )
        assert [e.text for e in events] == ["⚡ Running ls...", '📁 Finding files "*.md"...']

    def test_duplicate_id_is_ignored(self) -> None:
        tracker = ToolTracker()
        assert tracker.register(_use("t1", "Read", file_path="a")) is not None
        assert tracker.register(_use("t1", "Write", file_path="b")) is None
        assert tracker.active["t1"].name == "Read"

    def test_active_is_a_copy(self) -> None:
        tracker = ToolTracker()
        tracker.register(_use("t1", "Read"))
        tracker.active.clear()
        assert "t1" in tracker


class TestCorrelation:
    def test_result_resolves_once(self) -> None:
        tracker = ToolTracker()
        tracker.register(_use("t1", "Read", file_path="README.md"))

        content = "The file README.md has been updated."
        first = tracker.on_tool_result(_result("t1", content))
        assert first == ToolCompleted(text="✅ Updated README.md")
        assert "t1" not in tracker

        assert tracker.on_tool_result(_result("t1", content)) is None

    def test_unknown_id_is_inert(self) -> None:
        tracker = ToolTracker()
        tracker.register(_use("t1", "Edit", file_path="a.py"))
        assert tracker.on_tool_result(_result("zzz", "whatever")) is None
        assert "t1" in tracker

    def test_write_result(self) -> None:
        tracker = ToolTracker()
        tracker.register(_use("w1", "Write", file_path="out.txt"))
        completed = tracker.on_tool_result(_result("w1", "Created the file out.txt"))
        assert completed == ToolCompleted(text="✅ File written successfully")

    def test_write_result_for_new_file(self) -> None:
        tracker = ToolTracker()
        tracker.register(_use("w2", "Write", file_path="new.txt"))
        completed = tracker.on_tool_result(
            _result("w2", "File created successfully at: /repo/new.txt")
        )
        assert completed == ToolCompleted(text="✅ File written successfully")

    def test_non_file_tool_is_removed_without_event(self) -> None:
        tracker = ToolTracker()
        tracker.register(_use("b1", "Bash", command="ls"))
        assert tracker.on_tool_result(_result("b1", "a\nb")) is None
        assert len(tracker) == 0

    def test_icons_disabled(self) -> None:
        tracker = ToolTracker(icons=False)
        started = tracker.register(_use("e1", "Edit", file_path="x.py"))
        assert started == ToolStarted(text="Editing x.py...")
        completed = tracker.on_tool_result(_result("e1", "ok"))
        assert completed == ToolCompleted(text="File operation completed")


class TestClear:
    def test_clear_drops_everything(self) -> None:
        tracker = ToolTracker()
        tracker.on_assistant([_use("a", "Read"), _use("b", "Edit")])
        tracker.clear()
        assert len(tracker) == 0
        assert tracker.on_tool_result(_result("a", "x")) is None
