"""Pydantic v2 models for the stream-json wire protocol."""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator


class _WireModel(BaseModel):
    """Common config for inbound records — unknown fields are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ------------------------------------------------------------------ #
# Content blocks
# ------------------------------------------------------------------ #


class TextBlock(_WireModel):
    """Plain text emitted by the assistant (or sent by the user)."""

    type: Literal["text"] = "text"
    text: str = Field(description="Text content")


class ToolUseBlock(_WireModel):
    """A tool invocation requested by the assistant."""

    type: Literal["tool_use"] = "tool_use"
    id: str = Field(description="Tool invocation identifier")
    name: str = Field(description="Tool name, e.g. 'Read' or 'Bash'")
    input: dict[str, Any] = Field(
        default_factory=dict, description="Tool arguments"
    )


class ToolResultBlock(_WireModel):
    """The result of a tool invocation, fed back to the model."""

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str = Field(description="Identifier of the originating tool_use")
    content: str = Field(default="", description="Result text")

    @field_validator("content", mode="before")
    @classmethod
    def _flatten_content(cls, value: Any) -> Any:
        # The CLI sends either a plain string or a list of text parts.
        if value is None:
            return ""
        if isinstance(value, list):
            parts = [
                str(part.get("text", ""))
                for part in value
                if isinstance(part, dict) and part.get("type") == "text"
            ]
            return "\n".join(parts)
        if isinstance(value, dict):
            text = value.get("text")
            return text if isinstance(text, str) else ""
        return value


#: Wire ``type`` values of the content blocks we understand.
CONTENT_BLOCK_TYPES = frozenset({"text", "tool_use", "tool_result"})


def _type_discriminator(v: Any) -> str:
    """Extract the discriminator value from raw data or a model instance."""
    if isinstance(v, dict):
        return str(v.get("type", ""))
    return str(getattr(v, "type", ""))


ContentBlock = Annotated[
    Annotated[TextBlock, Tag("text")]
    | Annotated[ToolUseBlock, Tag("tool_use")]
    | Annotated[ToolResultBlock, Tag("tool_result")],
    Discriminator(_type_discriminator),
]
"""Discriminated union of all content block types."""


# ------------------------------------------------------------------ #
# Messages
# ------------------------------------------------------------------ #


class SystemMessage(_WireModel):
    """System record; ``subtype="init"`` carries the conversation id."""

    type: Literal["system"] = "system"
    subtype: str | None = Field(default=None, description="System record subtype")
    session_id: str | None = Field(default=None, description="Conversation id")


class AssistantMessage(_WireModel):
    """One assistant turn fragment: text and tool invocations."""

    type: Literal["assistant"] = "assistant"
    content: list[ContentBlock] = Field(default_factory=list)


class UserMessage(_WireModel):
    """User-role record; inbound these carry tool results."""

    type: Literal["user"] = "user"
    content: list[ContentBlock] = Field(default_factory=list)


class ResultMessage(_WireModel):
    """Final record of a turn with performance figures."""

    type: Literal["result"] = "result"
    duration_ms: float | None = Field(default=None, description="Turn duration")
    total_cost_usd: float | None = Field(default=None, description="Turn cost")
    output_tokens: int | None = Field(default=None, description="Tokens generated")
    is_error: bool = Field(default=False, description="Whether the turn failed")
    result: str | None = Field(default=None, description="Aggregated result text")


class ErrorMessage(_WireModel):
    """Error reported by the subprocess."""

    type: Literal["error"] = "error"
    message: str = Field(description="Error description")


class UnknownMessage(_WireModel):
    """A record whose ``type`` is not part of the known grammar."""

    type: Literal["unknown"] = "unknown"
    raw_type: str = Field(description="The unrecognized wire type")


Message = Annotated[
    Annotated[SystemMessage, Tag("system")]
    | Annotated[AssistantMessage, Tag("assistant")]
    | Annotated[UserMessage, Tag("user")]
    | Annotated[ResultMessage, Tag("result")]
    | Annotated[ErrorMessage, Tag("error")]
    | Annotated[UnknownMessage, Tag("unknown")],
    Discriminator(_type_discriminator),
]
"""Discriminated union of all decoded message types."""


# ------------------------------------------------------------------ #
# Outbound encoding
# ------------------------------------------------------------------ #


def encode_user_message(text: str) -> bytes:
    """Encode one user turn as a newline-terminated stream-json record."""
    record = {
        "type": "user",
        "message": {
            "role": "user",
            "content": [{"type": "text", "text": text}],
        },
    }
    return (json.dumps(record) + "\n").encode()
