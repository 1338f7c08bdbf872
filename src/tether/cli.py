"""Root CLI group and version flag."""

import signal

import click

# A closed stdout pipe should raise BrokenPipeError rather than kill us
# while the CLI subprocess is still running.
if hasattr(signal, "SIGPIPE"):
    signal.signal(signal.SIGPIPE, signal.SIG_IGN)

from tether import __version__
from tether.commands.chat import chat
from tether.commands.init import init


@click.group()
@click.version_option(version=__version__, prog_name="tether")
def cli() -> None:
    """Tether — streaming session client for the Claude CLI."""


cli.add_command(init)
cli.add_command(chat)
