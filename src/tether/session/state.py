"""Session state — conversation identity, buffers and the lifecycle machine."""

from __future__ import annotations

import logging
from typing import Any

from tether.protocol.lines import DEFAULT_MAX_LINE_BYTES, LineAssembler
from tether.session.models import ActiveTool, LifecycleState
from tether.session.tools import ToolTracker

logger = logging.getLogger(__name__)


class InvalidStateTransition(Exception):
    """Raised when an invalid lifecycle transition is attempted."""

    def __init__(self, from_state: LifecycleState, to_state: LifecycleState) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid state transition: {from_state.name} -> {to_state.name}"
        )


class OutstandingRequestError(InvalidStateTransition):
    """Raised when a message is sent while a previous one is unanswered."""

    def __init__(self) -> None:
        super().__init__(LifecycleState.WAITING, LifecycleState.WAITING)
        self.args = ("outstanding request: wait for the current response or reset",)


class Session:
    """The full mutable state of one conversation with the subprocess.

    Owned by a single :class:`~tether.supervisor.ProcessSupervisor` and
    mutated only from its event-processing path.  Several sessions are
    simply several independent instances.
    """

    #: Valid lifecycle transitions.  ``reset()`` reaches IDLE from anywhere.
    VALID_TRANSITIONS: dict[LifecycleState, frozenset[LifecycleState]] = {
        LifecycleState.IDLE: frozenset({LifecycleState.STARTING}),
        LifecycleState.STARTING: frozenset({LifecycleState.RUNNING, LifecycleState.IDLE}),
        LifecycleState.RUNNING: frozenset({LifecycleState.WAITING, LifecycleState.IDLE}),
        LifecycleState.WAITING: frozenset({LifecycleState.RUNNING, LifecycleState.IDLE}),
    }

    def __init__(
        self,
        *,
        icons: bool = True,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
    ) -> None:
        self.lines = LineAssembler(max_line_bytes)
        self.tools = ToolTracker(icons=icons)
        self.conversation_id: str | None = None
        self.message_count = 0
        self._state = LifecycleState.IDLE

    # ------------------------------------------------------------------ #
    # Public properties
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        return self._state

    @property
    def waiting(self) -> bool:
        """True while a sent message awaits its result."""
        return self._state is LifecycleState.WAITING

    @property
    def pending_buffer(self) -> bytes:
        """The incomplete output line carried over between chunks."""
        return self.lines.pending

    @property
    def active_tools(self) -> dict[str, ActiveTool]:
        """In-flight tool invocations keyed by id."""
        return self.tools.active

    def snapshot(self) -> dict[str, Any]:
        """Plain-data view of the session, for logging and tests."""
        return {
            "state": self._state.value,
            "conversation_id": self.conversation_id,
            "waiting": self.waiting,
            "pending_buffer": self.pending_buffer,
            "active_tools": sorted(self.tools.active),
            "message_count": self.message_count,
        }

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def can_transition_to(self, new_state: LifecycleState) -> bool:
        """Check if a transition to *new_state* is valid."""
        return new_state in self.VALID_TRANSITIONS[self._state]

    def transition(self, new_state: LifecycleState) -> None:
        """Move to *new_state*.

        Raises:
            InvalidStateTransition: If the transition is not valid.
        """
        if not self.can_transition_to(new_state):
            raise InvalidStateTransition(self._state, new_state)
        logger.debug("session state %s -> %s", self._state, new_state)
        self._state = new_state

    def begin_start(self) -> None:
        """IDLE -> STARTING, when a spawn is requested."""
        self.transition(LifecycleState.STARTING)

    def mark_running(self) -> None:
        """STARTING -> RUNNING, once the subprocess is alive."""
        self.transition(LifecycleState.RUNNING)

    def begin_request(self) -> None:
        """RUNNING -> WAITING, when a user message is sent.

        Raises:
            OutstandingRequestError: If a previous message is unanswered.
        """
        if self.waiting:
            raise OutstandingRequestError
        self.transition(LifecycleState.WAITING)
        self.message_count += 1

    def end_request(self) -> None:
        """WAITING -> RUNNING, on a result or error record."""
        self.transition(LifecycleState.RUNNING)

    def capture_conversation_id(self, session_id: str) -> bool:
        """Record the conversation id unless one is already held.

        Returns ``True`` if *session_id* was captured.
        """
        if self.conversation_id is not None:
            if session_id != self.conversation_id:
                logger.debug(
                    "ignoring session id %s, already bound to %s",
                    session_id,
                    self.conversation_id,
                )
            return False
        self.conversation_id = session_id
        return True

    def reset(self) -> None:
        """Return to IDLE and clear every piece of conversation state.

        Idempotent — resetting an idle, empty session changes nothing.
        """
        if self._state is not LifecycleState.IDLE:
            logger.debug("session state %s -> %s (reset)", self._state, LifecycleState.IDLE)
        self._state = LifecycleState.IDLE
        self.lines.reset()
        self.tools.clear()
        self.conversation_id = None
        self.message_count = 0
