"""Tool tracker — correlates tool_use blocks with their tool_result."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from tether.protocol.messages import ContentBlock, ToolResultBlock, ToolUseBlock
from tether.session.formatting import format_tool_completed, format_tool_started
from tether.session.models import ActiveTool, ToolCompleted, ToolStarted

logger = logging.getLogger(__name__)


class ToolTracker:
    """Holds the in-flight tool invocations of one session, keyed by id.

    An entry is added when a ``tool_use`` block is seen and removed exactly
    once, either by the matching ``tool_result`` or by :meth:`clear`.
    """

    def __init__(self, *, icons: bool = True) -> None:
        self._icons = icons
        self._active: dict[str, ActiveTool] = {}

    @property
    def active(self) -> dict[str, ActiveTool]:
        """Snapshot of the in-flight tools, keyed by invocation id."""
        return dict(self._active)

    def __contains__(self, tool_id: object) -> bool:
        return tool_id in self._active

    def __len__(self) -> int:
        return len(self._active)

    def on_assistant(self, content: Iterable[ContentBlock]) -> list[ToolStarted]:
        """Register every ``tool_use`` block in *content*.

        Returns one :class:`ToolStarted` per newly registered tool, in
        content order.  A block whose id is already active is ignored.
        """
        events: list[ToolStarted] = []
        for block in content:
            if not isinstance(block, ToolUseBlock):
                continue
            started = self.register(block)
            if started is not None:
                events.append(started)
        return events

    def register(self, block: ToolUseBlock) -> ToolStarted | None:
        """Register a single ``tool_use`` block."""
        if block.id in self._active:
            logger.warning("duplicate tool_use id %s (%s), ignoring", block.id, block.name)
            return None

        self._active[block.id] = ActiveTool(id=block.id, name=block.name, input=block.input)
        logger.debug("tool started: %s %s", block.name, block.id)
        return ToolStarted(
            text=format_tool_started(block.name, block.input, icons=self._icons)
        )

    def on_tool_result(self, block: ToolResultBlock) -> ToolCompleted | None:
        """Resolve a ``tool_result`` against the active tools.

        Unknown ids (already resolved, or never seen) leave the tracker
        untouched and produce no event.
        """
        tool = self._active.pop(block.tool_use_id, None)
        if tool is None:
            logger.debug("tool_result for inactive id %s", block.tool_use_id)
            return None

        logger.debug("tool finished: %s %s", tool.name, tool.id)
        text = format_tool_completed(tool.name, block.content, icons=self._icons)
        if text is None:
            return None
        return ToolCompleted(text=text)

    def clear(self) -> None:
        """Drop every in-flight tool without producing events."""
        if self._active:
            logger.debug("discarding %d unresolved tool(s)", len(self._active))
        self._active.clear()
