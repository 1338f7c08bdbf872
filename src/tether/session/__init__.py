"""Session engine — state, tool tracking, formatting and event models."""

from tether.session.engine import SessionEngine
from tether.session.models import (
    ActiveTool,
    AssistantText,
    Event,
    LifecycleState,
    PerformanceSummary,
    SessionError,
    ToolCompleted,
    ToolStarted,
)
from tether.session.state import InvalidStateTransition, OutstandingRequestError, Session
from tether.session.tools import ToolTracker

__all__ = [
    "ActiveTool",
    "AssistantText",
    "Event",
    "InvalidStateTransition",
    "LifecycleState",
    "OutstandingRequestError",
    "PerformanceSummary",
    "Session",
    "SessionEngine",
    "SessionError",
    "ToolCompleted",
    "ToolStarted",
    "ToolTracker",
]
