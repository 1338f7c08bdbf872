"""Load, validate, and resolve tether.yaml configuration."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from tether.config.models import TetherConfig

DEFAULT_CONFIG_NAME = "tether.yaml"


class ConfigError(Exception):
    """User-facing configuration error."""


class SetupError(Exception):
    """The environment cannot run a session (missing executable or credential)."""


def load_config(path: Path | None = None) -> TetherConfig:
    """Load and validate a tether.yaml file.

    Args:
        path: Explicit config file path. If None, looks for
              tether.yaml in the current directory and falls back
              to defaults when there is none.

    Returns:
        A validated TetherConfig instance.

    Raises:
        ConfigError: On missing explicit file, bad YAML, or validation failure.
    """
    config_path = _resolve_path(path)
    if config_path is None:
        _load_env(Path.cwd())
        return TetherConfig()

    raw = _read_yaml(config_path)
    _load_env(config_path.parent)
    return _validate(raw)


def resolve_credential(config: TetherConfig) -> str | None:
    """Return the credential named by ``credential_env``.

    Returns ``None`` when no credential is configured.

    Raises:
        SetupError: If the variable is configured but unset or empty.
    """
    if config.credential_env is None:
        return None
    value = os.environ.get(config.credential_env, "").strip()
    if not value:
        msg = (
            f"{config.credential_env} not found. Set it in your environment or "
            "a .env file, or set 'credential_env: null' in "
            f"{DEFAULT_CONFIG_NAME} to use subscription auth."
        )
        raise SetupError(msg)
    return value


def check_executable(config: TetherConfig) -> str:
    """Return the full path of the configured executable.

    Raises:
        SetupError: If it is not on PATH.
    """
    found = shutil.which(config.executable)
    if found is None:
        msg = (
            f"'{config.executable}' not found.\n"
            f"Make sure '{config.executable}' is installed and on your PATH."
        )
        raise SetupError(msg)
    return found


def _resolve_path(path: Path | None) -> Path | None:
    if path is not None:
        resolved = Path(path)
        if not resolved.is_file():
            msg = f"Config file not found: {resolved}"
            raise ConfigError(msg)
        return resolved

    default = Path.cwd() / DEFAULT_CONFIG_NAME
    if not default.is_file():
        return None
    return default


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read config file: {exc}"
        raise ConfigError(msg) from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        detail = ""
        if hasattr(exc, "problem_mark") and exc.problem_mark is not None:
            mark = exc.problem_mark
            detail = f" (line {mark.line + 1}, column {mark.column + 1})"
        msg = f"Invalid YAML in {path.name}{detail}"
        raise ConfigError(msg) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {path.name}, got {type(data).__name__}"
        raise ConfigError(msg)

    return data


def _load_env(config_dir: Path) -> None:
    env_path = config_dir / ".env"
    if env_path.is_file():
        load_dotenv(env_path)


def _validate(raw: dict[str, Any]) -> TetherConfig:
    try:
        return TetherConfig.model_validate(raw)
    except ValidationError as exc:
        parts: list[str] = []
        for err in exc.errors():
            loc = " → ".join(str(s) for s in err["loc"]) or "(root)"
            msg = err["msg"]
            if "field required" in msg.lower():
                msg = "This field is required"
            elif "extra inputs are not permitted" in msg.lower():
                msg = "Unknown setting"
            elif "input should be" in msg.lower():
                msg = f"Invalid value: {msg}"
            parts.append(f"  {loc}: {msg}")
        joined = "\n".join(parts)
        msg = f"Config validation failed:\n{joined}"
        raise ConfigError(msg) from exc
