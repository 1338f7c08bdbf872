"""Tests for tether config models and parser."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from tether.config.models import TetherConfig
from tether.config.parser import (
    ConfigError,
    SetupError,
    check_executable,
    load_config,
    resolve_credential,
)
from tether.protocol.lines import DEFAULT_MAX_LINE_BYTES

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict[str, Any]) -> Path:
    """Write *data* as YAML and return the file path."""
    path.write_text(yaml.dump(data), encoding="utf-8")
    return path


# ===================================================================
# Model validation tests
# ===================================================================


class TestTetherConfig:
    def test_defaults(self) -> None:
        config = TetherConfig()
        assert config.executable == "claude"
        assert config.permission_mode == "acceptEdits"
        assert config.model is None
        assert config.temperature is None
        assert config.max_tokens is None
        assert config.allowed_tools == []
        assert config.credential_env == "ANTHROPIC_API_KEY"
        assert config.icons is True
        assert config.verbose is True
        assert config.log_level == "WARNING"
        assert config.max_line_bytes == DEFAULT_MAX_LINE_BYTES

    def test_log_level_is_uppercased(self) -> None:
        assert TetherConfig(log_level="debug").log_level == "DEBUG"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"log_level": "chatty"},
            {"temperature": 1.5},
            {"max_tokens": 0},
            {"executable": "  "},
            {"credential_env": "NOT-VALID"},
            {"allowed_tools": ["Read", ""]},
            {"permission_mode": "yolo"},
            {"max_line_bytes": 10},
            {"colour": True},
        ],
    )
    def test_rejects_bad_values(self, overrides: dict[str, Any]) -> None:
        with pytest.raises(ValidationError):
            TetherConfig(**overrides)


# ===================================================================
# Parser tests
# ===================================================================


class TestLoadConfig:
    def test_explicit_file(self, tmp_path: Path) -> None:
        path = _write_yaml(
            tmp_path / "tether.yaml",
            {"model": "claude-sonnet-4-5", "icons": False, "allowed_tools": ["Read"]},
        )
        config = load_config(path)
        assert config.model == "claude-sonnet-4-5"
        assert config.icons is False
        assert config.allowed_tools == ["Read"]

    def test_default_file_in_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_yaml(tmp_path / "tether.yaml", {"permission_mode": "plan"})
        monkeypatch.chdir(tmp_path)
        assert load_config().permission_mode == "plan"

    def test_no_file_gives_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        assert load_config() == TetherConfig()

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "tether.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == TetherConfig()

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Config file not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "tether.yaml"
        path.write_text("model: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid YAML in tether.yaml"):
            load_config(path)

    def test_non_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "tether.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Expected a YAML mapping"):
            load_config(path)

    def test_unknown_setting(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path / "tether.yaml", {"colour": "blue"})
        with pytest.raises(ConfigError, match="colour: Unknown setting"):
            load_config(path)

    def test_validation_error_names_field(self, tmp_path: Path) -> None:
        path = _write_yaml(tmp_path / "tether.yaml", {"temperature": 3})
        with pytest.raises(ConfigError, match="temperature"):
            load_config(path)

    def test_env_file_is_loaded(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        # setenv first so the variable is removed again on teardown.
        monkeypatch.setenv("TETHER_TEST_KEY", "placeholder")
        monkeypatch.delenv("TETHER_TEST_KEY")
        (tmp_path / ".env").write_text("TETHER_TEST_KEY=from-dotenv\n", encoding="utf-8")
        path = _write_yaml(tmp_path / "tether.yaml", {"credential_env": "TETHER_TEST_KEY"})

        config = load_config(path)

        assert resolve_credential(config) == "from-dotenv"


# ===================================================================
# Environment checks
# ===================================================================


class TestResolveCredential:
    def test_disabled(self) -> None:
        assert resolve_credential(TetherConfig(credential_env=None)) is None

    def test_present(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TETHER_TEST_KEY", "  value  ")
        config = TetherConfig(credential_env="TETHER_TEST_KEY")
        assert resolve_credential(config) == "value"

    def test_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TETHER_TEST_KEY", raising=False)
        config = TetherConfig(credential_env="TETHER_TEST_KEY")
        with pytest.raises(SetupError, match="TETHER_TEST_KEY not found"):
            resolve_credential(config)

    def test_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TETHER_TEST_KEY", "")
        config = TetherConfig(credential_env="TETHER_TEST_KEY")
        with pytest.raises(SetupError):
            resolve_credential(config)


class TestCheckExecutable:
    def test_found(self) -> None:
        with patch("shutil.which", return_value="/usr/local/bin/claude"):
            assert check_executable(TetherConfig()) == "/usr/local/bin/claude"

    def test_missing(self) -> None:
        with (
            patch("shutil.which", return_value=None),
            pytest.raises(SetupError, match="'claude' not found"),
        ):
            check_executable(TetherConfig())
