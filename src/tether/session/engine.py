"""Session engine — the sequential handler behind every stdout chunk.

``feed`` runs the whole pipeline for one chunk::

    bytes -> LineAssembler -> lines -> decode_line -> Message
          -> {ToolTracker, Session} update -> events -> OutputSink

It never blocks and never raises for bad input: undecodable lines are
logged and dropped, unknown records are ignored, and sink failures are
contained by :func:`tether.sink.deliver` / :func:`tether.sink.finish`.
"""

from __future__ import annotations

import logging

from tether.protocol.decoder import DecodeError, decode_line
from tether.protocol.messages import (
    AssistantMessage,
    ErrorMessage,
    Message,
    ResultMessage,
    SystemMessage,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    UnknownMessage,
    UserMessage,
)
from tether.session.formatting import format_error, format_performance
from tether.session.models import (
    AssistantText,
    Event,
    LifecycleState,
    PerformanceSummary,
    SessionError,
)
from tether.session.state import Session
from tether.sink import OutputSink, deliver, finish

logger = logging.getLogger(__name__)

#: Max characters of an undecodable line to include in the log.
_PREVIEW_LEN = 200


class SessionEngine:
    """Applies decoded messages to a :class:`Session` and emits events."""

    def __init__(
        self,
        session: Session,
        sink: OutputSink,
        *,
        icons: bool = True,
        name: str = "session",
    ) -> None:
        self.session = session
        self.name = name
        self._sink = sink
        self._icons = icons

    # ------------------------------------------------------------------ #
    # Inbound stream
    # ------------------------------------------------------------------ #

    def feed(self, chunk: bytes) -> list[Event]:
        """Process one chunk of subprocess stdout.

        Returns the events emitted for every line the chunk completed.
        """
        events: list[Event] = []
        for line in self.session.lines.feed(chunk):
            if not line.strip():
                continue
            try:
                message = decode_line(line)
            except DecodeError as exc:
                logger.warning("%s: %s: %s", self.name, exc, line[:_PREVIEW_LEN])
                continue
            events.extend(self.handle_message(message))
        return events

    def handle_message(self, message: Message) -> list[Event]:
        """Apply *message* to the session and deliver the resulting events."""
        try:
            events, turn_result = self._dispatch(message)
        except Exception:
            logger.exception("%s: failed to handle %s record", self.name, message.type)
            return []

        for event in events:
            deliver(self._sink, event)
        if turn_result is not None:
            finish(self._sink, turn_result)
        return events

    def _dispatch(self, message: Message) -> tuple[list[Event], bool | None]:
        """Return the events for *message* and the turn outcome, if it ended one."""
        events: list[Event] = []
        turn_result: bool | None = None

        match message:
            case SystemMessage(subtype="init", session_id=str() as session_id):
                if self.session.capture_conversation_id(session_id):
                    logger.info("%s: conversation %s", self.name, session_id)

            case SystemMessage():
                logger.debug("%s: system record %s", self.name, message.subtype)

            case AssistantMessage(content=content):
                for block in content:
                    if isinstance(block, TextBlock):
                        if block.text.strip():
                            events.append(AssistantText(text=block.text))
                    elif isinstance(block, ToolUseBlock):
                        started = self.session.tools.register(block)
                        if started is not None:
                            events.append(started)

            case UserMessage(content=content):
                for block in content:
                    if isinstance(block, ToolResultBlock):
                        completed = self.session.tools.on_tool_result(block)
                        if completed is not None:
                            events.append(completed)

            case ResultMessage():
                summary = format_performance(message, icons=self._icons)
                if summary is not None:
                    events.append(PerformanceSummary(text=summary))
                if message.is_error:
                    reason = message.result or "turn failed"
                    events.append(SessionError(text=format_error(reason, icons=self._icons)))
                turn_result = self._end_turn(not message.is_error)

            case ErrorMessage(message=text):
                events.append(SessionError(text=format_error(text, icons=self._icons)))
                turn_result = self._end_turn(False)

            case UnknownMessage(raw_type=raw_type):
                logger.debug("%s: ignoring unknown record type %r", self.name, raw_type)

            case _:
                logger.warning("%s: unhandled message %r", self.name, message)

        return events, turn_result

    def _end_turn(self, success: bool) -> bool | None:
        if not self.session.waiting:
            logger.debug("%s: turn end received while %s", self.name, self.session.state)
            return None
        self.session.end_request()
        return success

    # ------------------------------------------------------------------ #
    # Process failures
    # ------------------------------------------------------------------ #

    def fail(self, reason: str) -> list[Event]:
        """Surface a process failure and force the session back to IDLE.

        The current turn, if one is open, is finished unsuccessfully.
        """
        turn_open = self.session.state in (LifecycleState.STARTING, LifecycleState.WAITING)
        event = SessionError(text=format_error(reason, icons=self._icons))
        logger.error("%s: %s", self.name, reason)
        deliver(self._sink, event)
        if turn_open:
            finish(self._sink, False)
        self.session.reset()
        return [event]

    def handle_exit(self, returncode: int | None, stderr_preview: str = "") -> list[Event]:
        """React to the subprocess terminating on its own.

        Exiting while a response is awaited is an error; otherwise it is
        only logged.  Either way the session ends up IDLE.
        """
        if self.session.waiting:
            reason = f"process exited unexpectedly with code {returncode}"
            if stderr_preview:
                reason += f". Stderr:\n  {stderr_preview}"
            return self.fail(reason)

        logger.warning(
            "%s: process exited with code %s while %s",
            self.name,
            returncode,
            self.session.state,
        )
        self.session.reset()
        return []

    def reset(self) -> None:
        """Discard all conversation state."""
        self.session.reset()
