"""Stream-json wire protocol — line assembly, message models and decoding."""

from tether.protocol.decoder import DecodeError, decode_line
from tether.protocol.lines import LineAssembler
from tether.protocol.messages import (
    AssistantMessage,
    ContentBlock,
    ErrorMessage,
    Message,
    ResultMessage,
    SystemMessage,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    UnknownMessage,
    UserMessage,
    encode_user_message,
)

__all__ = [
    "AssistantMessage",
    "ContentBlock",
    "DecodeError",
    "ErrorMessage",
    "LineAssembler",
    "Message",
    "ResultMessage",
    "SystemMessage",
    "TextBlock",
    "ToolResultBlock",
    "ToolUseBlock",
    "UnknownMessage",
    "UserMessage",
    "decode_line",
    "encode_user_message",
]
