"""Configuration model and parser for tether.yaml."""

from tether.config.models import TetherConfig
from tether.config.parser import (
    ConfigError,
    SetupError,
    check_executable,
    load_config,
    resolve_credential,
)

__all__ = [
    "ConfigError",
    "SetupError",
    "TetherConfig",
    "check_executable",
    "load_config",
    "resolve_credential",
]
