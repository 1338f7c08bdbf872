"""Terminal spinner shown while a response is awaited."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable

import click

from tether.background_loop import BackgroundLoop

#: Braille spinner frames.
FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"

#: Erase the current terminal line.
_CLEAR_LINE = "\r\033[K"


class Spinner(BackgroundLoop):
    """Animates a status line on stderr while *is_waiting* returns True.

    The session engine knows nothing about it; the spinner polls the
    waiting flag each tick and :meth:`clear` is called before output is
    written so the two never share a line.
    """

    def __init__(
        self,
        is_waiting: Callable[[], bool],
        shutdown_event: asyncio.Event,
        interval: float = 0.1,
        label: str = "Working",
        force: bool = False,
    ) -> None:
        super().__init__(shutdown_event, interval)
        self._is_waiting = is_waiting
        self._label = label
        self._force = force
        self._frame = 0
        self._visible = False

    @property
    def visible(self) -> bool:
        """True while a spinner frame is on screen."""
        return self._visible

    def clear(self) -> None:
        """Erase the spinner line if it is showing."""
        if self._visible:
            click.echo(_CLEAR_LINE, nl=False, err=True)
            self._visible = False

    async def stop(self) -> None:
        await super().stop()
        self.clear()

    def _should_start(self) -> bool:
        return self._force or sys.stderr.isatty()

    async def _tick(self) -> None:
        if not self._is_waiting():
            self.clear()
            return
        frame = FRAMES[self._frame % len(FRAMES)]
        self._frame += 1
        click.echo(f"\r{frame} {self._label}...", nl=False, err=True)
        self._visible = True
