"""Decode one stream-json line into a typed :data:`Message`.

The Claude CLI ``--output-format stream-json --verbose`` emits these
top-level record types:

* ``system``    — init record with ``session_id``.
* ``assistant`` — wraps an API message; content blocks are nested
  inside ``message.content[]`` as ``text`` or ``tool_use`` blocks.
* ``user``      — tool results fed back to the model.
* ``result``    — final record of a turn with duration, cost and usage.
* ``error``     — a failure reported by the CLI.

Anything else decodes to :class:`UnknownMessage`.  Lines that are not a
JSON object, or known records whose fields fail validation, raise
:class:`DecodeError`.  Content blocks are validated one at a time; a
malformed block is logged and skipped without losing its siblings.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import TypeAdapter, ValidationError

from tether.protocol.messages import (
    CONTENT_BLOCK_TYPES,
    ContentBlock,
    Message,
    UnknownMessage,
)

logger = logging.getLogger(__name__)

_MESSAGE_ADAPTER: TypeAdapter[Message] = TypeAdapter(Message)
_BLOCK_ADAPTER: TypeAdapter[ContentBlock] = TypeAdapter(ContentBlock)


class DecodeError(Exception):
    """A line could not be decoded into a protocol message."""


def decode_line(line: str) -> Message:
    """Parse *line* into a :data:`Message`.

    Raises:
        DecodeError: If the line is not a JSON object or a known record
            type is malformed.  Unknown record types never raise.
    """
    try:
        raw = json.loads(line)
    except json.JSONDecodeError as exc:
        msg = f"malformed JSON: {exc.msg}"
        raise DecodeError(msg) from exc

    if not isinstance(raw, dict):
        msg = f"expected a JSON object, got {type(raw).__name__}"
        raise DecodeError(msg)

    msg_type = raw.get("type")
    match msg_type:
        case "system":
            data: dict[str, Any] = {
                "type": "system",
                "subtype": _optional_str(raw.get("subtype")),
                "session_id": _optional_str(raw.get("session_id")),
            }
        case "assistant" | "user":
            data = {"type": msg_type, "content": _content_blocks(raw, msg_type)}
        case "result":
            usage = raw.get("usage")
            output_tokens = usage.get("output_tokens") if isinstance(usage, dict) else None
            data = {
                "type": "result",
                "duration_ms": _optional_number(raw.get("duration_ms")),
                "total_cost_usd": _optional_number(raw.get("total_cost_usd")),
                "output_tokens": _optional_int(output_tokens),
                "is_error": raw.get("is_error") is True,
                "result": _optional_str(raw.get("result")),
            }
        case "error":
            data = {"type": "error", "message": _error_text(raw.get("message"))}
        case _:
            raw_type = "" if msg_type is None else str(msg_type)
            return UnknownMessage(raw_type=raw_type)

    try:
        return _MESSAGE_ADAPTER.validate_python(data)
    except ValidationError as exc:
        msg = f"invalid {msg_type} record: {exc.error_count()} validation error(s)"
        raise DecodeError(msg) from exc


def _content_blocks(raw: dict[str, Any], msg_type: str) -> list[Any]:
    message = raw.get("message")
    if not isinstance(message, dict):
        msg = f"{msg_type} record has no 'message' object"
        raise DecodeError(msg)

    content = message.get("content")
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    if not isinstance(content, list):
        return []

    blocks: list[Any] = []
    for block in content:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type not in CONTENT_BLOCK_TYPES:
            # thinking, image, ... carry nothing we display
            logger.debug("skipping %s content block", block_type)
            continue
        if block_type == "tool_use" and not isinstance(block.get("input"), dict):
            block = {**block, "input": {}}
        try:
            blocks.append(_BLOCK_ADAPTER.validate_python(block))
        except ValidationError as exc:
            logger.warning(
                "skipping malformed %s block in %s record: %d validation error(s)",
                block_type,
                msg_type,
                exc.error_count(),
            )
    return blocks


def _error_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        inner = value.get("message")
        if isinstance(inner, str):
            return inner
    if value is None:
        return "unknown error"
    return str(value)


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _optional_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return float(value)


def _optional_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value
