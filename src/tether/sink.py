"""Output sink — the display-layer interface the session engine writes to."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import click

if TYPE_CHECKING:
    from tether.session.models import Event

logger = logging.getLogger(__name__)


@runtime_checkable
class OutputSink(Protocol):
    """Minimal protocol a display layer must satisfy."""

    def write_output(self, text: str) -> None:
        """Append *text* to the current turn's output."""
        ...

    def finish_output(self, success: bool) -> None:
        """Close the current turn's output region."""
        ...


def deliver(sink: OutputSink, event: Event) -> bool:
    """Write *event* to *sink*, logging instead of raising on failure.

    Returns ``True`` if the sink accepted the text.
    """
    try:
        sink.write_output(event.text + "\n")
    except Exception:
        logger.exception("output sink failed to write %s event", event.type)
        return False
    return True


def finish(sink: OutputSink, success: bool) -> bool:
    """Signal end of turn to *sink*, logging instead of raising on failure."""
    try:
        sink.finish_output(success)
    except Exception:
        logger.exception("output sink failed to finish turn (success=%s)", success)
        return False
    return True


class EchoSink:
    """Terminal sink built on ``click.echo``.

    An optional *before_write* hook runs ahead of each write (the spinner
    uses it to clear its line).
    """

    def __init__(self, before_write: Callable[[], None] | None = None) -> None:
        self._before_write = before_write
        self.failed_turns = 0

    def write_output(self, text: str) -> None:
        if self._before_write is not None:
            self._before_write()
        click.echo(text, nl=False)

    def finish_output(self, success: bool) -> None:
        if self._before_write is not None:
            self._before_write()
        if not success:
            self.failed_turns += 1
        click.echo()
