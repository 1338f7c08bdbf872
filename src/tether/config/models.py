"""Pydantic v2 models for tether.yaml configuration."""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tether.protocol.lines import DEFAULT_MAX_LINE_BYTES

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class TetherConfig(BaseModel):
    """Top-level tether.yaml configuration."""

    model_config = ConfigDict(extra="forbid")

    executable: str = Field(
        default="claude",
        description="CLI executable to spawn",
    )
    permission_mode: Literal["default", "acceptEdits", "bypassPermissions", "plan"] = (
        Field(default="acceptEdits", description="Permission mode passed to the CLI")
    )
    model: str | None = Field(
        default=None,
        description="Model identifier, e.g. 'claude-sonnet-4-5'",
    )
    temperature: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Sampling temperature",
    )
    max_tokens: int | None = Field(
        default=None,
        ge=1,
        description="Maximum output tokens per response",
    )
    allowed_tools: list[str] = Field(
        default_factory=list,
        description="Tools the CLI may use without asking",
    )
    credential_env: str | None = Field(
        default="ANTHROPIC_API_KEY",
        description="Env var holding the API credential (null for subscription auth)",
    )
    icons: bool = Field(default=True, description="Prefix event lines with icons")
    verbose: bool = Field(default=True, description="Pass --verbose to the CLI")
    log_level: str = Field(default="WARNING", description="Logging level")
    max_line_bytes: int = Field(
        default=DEFAULT_MAX_LINE_BYTES,
        ge=1024,
        description="Longest accepted stdout line in bytes",
    )

    @field_validator("executable")
    @classmethod
    def _non_empty_executable(cls, value: str) -> str:
        if not value.strip():
            msg = "Executable must not be empty"
            raise ValueError(msg)
        return value

    @field_validator("credential_env")
    @classmethod
    def _valid_env_name(cls, value: str | None) -> str | None:
        if value is not None and not _ENV_NAME_RE.match(value):
            msg = f"Invalid environment variable name '{value}'"
            raise ValueError(msg)
        return value

    @field_validator("allowed_tools")
    @classmethod
    def _no_blank_tools(cls, value: list[str]) -> list[str]:
        if any(not tool.strip() for tool in value):
            msg = "Tool names in 'allowed_tools' must not be empty"
            raise ValueError(msg)
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            joined = ", ".join(_LOG_LEVELS)
            msg = f"Unknown log level '{value}' — expected one of {joined}"
            raise ValueError(msg)
        return level
