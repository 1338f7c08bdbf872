"""Tests for output sink delivery and the terminal sink."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from tether.session.models import ToolStarted
from tether.sink import EchoSink, OutputSink, deliver, finish
from tests.fakes import RecordingSink


class TestProtocol:
    def test_recording_sink_satisfies_protocol(self) -> None:
        assert isinstance(RecordingSink(), OutputSink)

    def test_echo_sink_satisfies_protocol(self) -> None:
        assert isinstance(EchoSink(), OutputSink)

    def test_object_without_methods_does_not(self) -> None:
        assert not isinstance(object(), OutputSink)


class TestDeliver:
    def test_appends_newline(self, sink: RecordingSink) -> None:
        assert deliver(sink, ToolStarted(text="📖 Reading a...")) is True
        assert sink.calls == [("write", "📖 Reading a...\n")]

    def test_write_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        broken = MagicMock()
        broken.write_output.side_effect = OSError("closed")
        with caplog.at_level(logging.ERROR, logger="tether.sink"):
            assert deliver(broken, ToolStarted(text="x")) is False
        assert "failed to write tool_started event" in caplog.text

    def test_finish_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        broken = MagicMock()
        broken.finish_output.side_effect = RuntimeError("gone")
        with caplog.at_level(logging.ERROR, logger="tether.sink"):
            assert finish(broken, True) is False
        assert "failed to finish turn" in caplog.text

    def test_finish_passes_outcome(self, sink: RecordingSink) -> None:
        assert finish(sink, False) is True
        assert sink.calls == [("finish", False)]


class TestEchoSink:
    def test_writes_to_stdout(self, capsys: pytest.CaptureFixture[str]) -> None:
        echo = EchoSink()
        echo.write_output("hello\n")
        echo.finish_output(True)
        assert capsys.readouterr().out == "hello\n\n"
        assert echo.failed_turns == 0

    def test_counts_failed_turns(self) -> None:
        echo = EchoSink()
        echo.finish_output(False)
        echo.finish_output(True)
        assert echo.failed_turns == 1

    def test_before_write_hook(self) -> None:
        hook = MagicMock()
        echo = EchoSink(before_write=hook)
        echo.write_output("a\n")
        echo.finish_output(True)
        assert hook.call_count == 2
