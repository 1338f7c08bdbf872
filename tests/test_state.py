"""Tests for the session lifecycle state machine."""

from __future__ import annotations

import pytest

from tether.protocol.messages import ToolUseBlock
from tether.session.models import LifecycleState
from tether.session.state import (
    InvalidStateTransition,
    OutstandingRequestError,
    Session,
)

# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _waiting_session() -> Session:
    session = Session()
    session.begin_start()
    session.mark_running()
    session.begin_request()
    return session


# ------------------------------------------------------------------ #
# Transitions
# ------------------------------------------------------------------ #


class TestTransitions:
    def test_initial_state(self) -> None:
        session = Session()
        assert session.state is LifecycleState.IDLE
        assert session.conversation_id is None
        assert session.waiting is False
        assert session.pending_buffer == b""
        assert session.active_tools == {}
        assert session.message_count == 0

    def test_happy_path(self) -> None:
        session = Session()
        session.begin_start()
        assert session.state is LifecycleState.STARTING
        session.mark_running()
        assert session.state is LifecycleState.RUNNING
        session.begin_request()
        assert session.state is LifecycleState.WAITING
        assert session.waiting is True
        session.end_request()
        assert session.state is LifecycleState.RUNNING
        assert session.message_count == 1

    @pytest.mark.parametrize(
        ("start", "target"),
        [
            (LifecycleState.IDLE, LifecycleState.RUNNING),
            (LifecycleState.IDLE, LifecycleState.WAITING),
            (LifecycleState.STARTING, LifecycleState.WAITING),
            (LifecycleState.RUNNING, LifecycleState.STARTING),
        ],
    )
    def test_invalid_transitions(self, start: LifecycleState, target: LifecycleState) -> None:
        session = Session()
        session._state = start
        assert session.can_transition_to(target) is False
        with pytest.raises(InvalidStateTransition, match=f"{start.name} -> {target.name}"):
            session.transition(target)
        assert session.state is start

    def test_send_before_start_is_rejected(self) -> None:
        session = Session()
        with pytest.raises(InvalidStateTransition):
            session.begin_request()

    def test_end_request_when_running_is_rejected(self) -> None:
        session = Session()
        session.begin_start()
        session.mark_running()
        with pytest.raises(InvalidStateTransition):
            session.end_request()


class TestOutstandingRequest:
    def test_second_request_is_rejected(self) -> None:
        session = _waiting_session()
        with pytest.raises(OutstandingRequestError, match="outstanding request"):
            session.begin_request()
        assert session.state is LifecycleState.WAITING
        assert session.message_count == 1

    def test_is_an_invalid_transition(self) -> None:
        assert issubclass(OutstandingRequestError, InvalidStateTransition)


# ------------------------------------------------------------------ #
# Conversation id
# ------------------------------------------------------------------ #


class TestConversationId:
    def test_captured_once(self) -> None:
        session = Session()
        assert session.capture_conversation_id("abc") is True
        assert session.capture_conversation_id("def") is False
        assert session.conversation_id == "abc"

    def test_reset_allows_new_id(self) -> None:
        session = Session()
        session.capture_conversation_id("abc")
        session.reset()
        assert session.capture_conversation_id("def") is True
        assert session.conversation_id == "def"


# ------------------------------------------------------------------ #
# Reset
# ------------------------------------------------------------------ #


class TestReset:
    def test_reset_clears_everything(self) -> None:
        session = _waiting_session()
        session.capture_conversation_id("abc")
        session.lines.feed(b'{"type":')
        session.tools.register(ToolUseBlock(id="t1", name="Read", input={}))

        session.reset()

        assert session.snapshot() == Session().snapshot()
        assert session.state is LifecycleState.IDLE

    def test_reset_is_idempotent(self) -> None:
        session = _waiting_session()
        session.capture_conversation_id("abc")
        session.reset()
        first = session.snapshot()
        session.reset()
        assert session.snapshot() == first

    def test_reset_from_every_state(self) -> None:
        for state in LifecycleState:
            session = Session()
            session._state = state
            session.reset()
            assert session.state is LifecycleState.IDLE

    def test_snapshot_shape(self) -> None:
        session = _waiting_session()
        session.tools.register(ToolUseBlock(id="t2", name="Bash", input={}))
        session.tools.register(ToolUseBlock(id="t1", name="Read", input={}))
        assert session.snapshot() == {
            "state": "waiting",
            "conversation_id": None,
            "waiting": True,
            "pending_buffer": b"",
            "active_tools": ["t1", "t2"],
            "message_count": 1,
        }
