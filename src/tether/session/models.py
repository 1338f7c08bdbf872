"""Pydantic v2 models for session state and display events."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag


class LifecycleState(Enum):
    """Process lifecycle states.

    State transitions::

        IDLE -> STARTING -> RUNNING <-> WAITING
          ^________________________________|   (reset / process exit)
    """

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    WAITING = "waiting"

    def __str__(self) -> str:
        return self.name


class ActiveTool(BaseModel):
    """A tool invocation awaiting its correlated result."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Tool invocation identifier")
    name: str = Field(description="Tool name")
    input: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")


# ------------------------------------------------------------------ #
# Events
# ------------------------------------------------------------------ #


class _EventBase(BaseModel):
    """Common fields shared by every display event."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str = Field(description="Display-ready text")


class ToolStarted(_EventBase):
    """A tool invocation began."""

    type: Literal["tool_started"] = "tool_started"


class ToolCompleted(_EventBase):
    """A file-changing tool invocation finished."""

    type: Literal["tool_completed"] = "tool_completed"


class AssistantText(_EventBase):
    """Text produced by the assistant."""

    type: Literal["assistant_text"] = "assistant_text"


class PerformanceSummary(_EventBase):
    """Duration, cost and token figures of a finished turn."""

    type: Literal["performance_summary"] = "performance_summary"


class SessionError(_EventBase):
    """A user-visible failure of the session."""

    type: Literal["session_error"] = "session_error"


def _event_discriminator(v: Any) -> str:
    """Extract the discriminator value from raw data or a model instance."""
    if isinstance(v, dict):
        return str(v.get("type", ""))
    return str(getattr(v, "type", ""))


Event = Annotated[
    Annotated[ToolStarted, Tag("tool_started")]
    | Annotated[ToolCompleted, Tag("tool_completed")]
    | Annotated[AssistantText, Tag("assistant_text")]
    | Annotated[PerformanceSummary, Tag("performance_summary")]
    | Annotated[SessionError, Tag("session_error")],
    Discriminator(_event_discriminator),
]
"""Discriminated union of all display event types."""
