"""Event formatting — pure functions producing display-ready event text.

Every function here is deterministic given its arguments and the
``icons`` flag; none of them touch session state.
"""

from __future__ import annotations

import re
from pathlib import PurePath
from typing import Any

from tether.protocol.messages import ResultMessage

#: Icon shown before a tool's progress line, keyed by tool name.
TOOL_ICONS: dict[str, str] = {
    "Read": "📖",
    "Write": "✍️",
    "Edit": "✏️",
    "MultiEdit": "✏️",
    "NotebookEdit": "✏️",
    "Bash": "⚡",
    "Grep": "🔍",
    "WebSearch": "🔍",
    "Glob": "📁",
    "Task": "🤖",
    "WebFetch": "🌐",
    "TodoWrite": "📝",
}

#: Icon for tools missing from :data:`TOOL_ICONS`.
FALLBACK_ICON = "🔧"

#: Progress verb, keyed by tool name.
TOOL_VERBS: dict[str, str] = {
    "Read": "Reading",
    "Write": "Writing",
    "Edit": "Editing",
    "MultiEdit": "Editing",
    "NotebookEdit": "Editing",
    "Bash": "Running",
    "Grep": "Searching",
    "WebSearch": "Searching",
    "Glob": "Finding files",
    "Task": "Starting task",
    "WebFetch": "Fetching",
    "TodoWrite": "Updating todos",
}

FALLBACK_VERB = "Using"

COMPLETED_ICON = "✅"
PERFORMANCE_ICON = "⏱️"
ERROR_ICON = "❌"

#: Tools whose results produce a completion event.
FILE_CHANGE_TOOLS = frozenset({"Edit", "MultiEdit", "Write"})

#: Commands longer than this are truncated in progress lines.
MAX_COMMAND_CHARS = 50

_UPDATED_RE = re.compile(r"file (.+?) has been updated", re.IGNORECASE)


def _with_icon(icon: str, text: str, icons: bool) -> str:
    if icons and icon:
        return f"{icon} {text}"
    return text


def tool_icon(name: str) -> str:
    """Return the icon for tool *name*, falling back to a generic one."""
    return TOOL_ICONS.get(name, FALLBACK_ICON)


def tool_verb(name: str) -> str:
    """Return the progress verb for tool *name*."""
    return TOOL_VERBS.get(name, FALLBACK_VERB)


def tool_target(name: str, tool_input: dict[str, Any]) -> str:
    """Pick the human-readable target of a tool invocation.

    Falls back to the tool name when the expected input field is absent.
    """
    target: Any = None
    match name:
        case "Read" | "Write" | "Edit" | "MultiEdit":
            target = tool_input.get("file_path")
        case "NotebookEdit":
            target = tool_input.get("notebook_path")
        case "Bash":
            command = tool_input.get("command")
            if isinstance(command, str) and len(command) > MAX_COMMAND_CHARS:
                command = command[:MAX_COMMAND_CHARS] + "..."
            target = command
        case "Grep" | "Glob":
            pattern = tool_input.get("pattern")
            if isinstance(pattern, str) and pattern:
                target = f'"{pattern}"'
        case "WebSearch":
            query = tool_input.get("query")
            if isinstance(query, str) and query:
                target = f'"{query}"'
        case "WebFetch":
            target = tool_input.get("url")
        case "Task":
            target = tool_input.get("description")
        case "TodoWrite":
            target = "todo list"

    if not isinstance(target, str) or not target:
        return name
    return target


def format_tool_started(
    name: str, tool_input: dict[str, Any], *, icons: bool = True
) -> str:
    """Progress line for a tool invocation, e.g. ``📖 Reading README.md...``."""
    text = f"{tool_verb(name)} {tool_target(name, tool_input)}..."
    return _with_icon(tool_icon(name), text, icons)


def format_tool_completed(name: str, content: str, *, icons: bool = True) -> str | None:
    """Change summary for a finished tool, or ``None`` if nothing to report.

    A "file X has been updated" result is summarised for any tool; the
    generic write/edit summaries only apply to :data:`FILE_CHANGE_TOOLS`.
    """
    updated = _UPDATED_RE.search(content)
    if updated:
        text = f"Updated {PurePath(updated.group(1).strip()).name}"
    elif name not in FILE_CHANGE_TOOLS:
        return None
    elif name == "Write" and "file" in content.lower():
        text = "File written successfully"
    else:
        text = "File operation completed"
    return _with_icon(COMPLETED_ICON, text, icons)


def format_performance(result: ResultMessage, *, icons: bool = True) -> str | None:
    """Summary such as ``⏱️ Completed in 12.3s, $0.0450, 342 tokens``.

    Absent figures are omitted; returns ``None`` when all are absent.
    """
    parts: list[str] = []
    if result.duration_ms is not None:
        parts.append(f"{result.duration_ms / 1000:.1f}s")
    if result.total_cost_usd is not None:
        parts.append(f"${result.total_cost_usd:.4f}")
    if result.output_tokens is not None:
        parts.append(f"{result.output_tokens} tokens")
    if not parts:
        return None
    return _with_icon(PERFORMANCE_ICON, "Completed in " + ", ".join(parts), icons)


def format_error(message: str, *, icons: bool = True) -> str:
    """Text of a user-visible session error."""
    return _with_icon(ERROR_ICON, f"Error: {message}", icons)
