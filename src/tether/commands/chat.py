"""tether chat — converse with the CLI through the streaming session engine."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click

from tether.commands.spinner import Spinner
from tether.config.models import TetherConfig
from tether.config.parser import (
    ConfigError,
    SetupError,
    check_executable,
    load_config,
    resolve_credential,
)
from tether.session.state import OutstandingRequestError
from tether.sink import EchoSink
from tether.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_HELP_TEXT = """\
Commands:
  /reset   Kill the CLI process and start a fresh conversation
  /status  Show session state
  /quit    Exit (also /exit, Ctrl+D)
  /help    Show this help"""


@click.command()
@click.option(
    "-f", "--file", "config_file", type=click.Path(), help="Config file path."
)
@click.option(
    "-p",
    "--prompt",
    "initial_prompt",
    type=str,
    default=None,
    help="Send a single prompt, print the response and exit.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def chat(config_file: str | None, initial_prompt: str | None, verbose: bool) -> None:
    """Start a streaming conversation with the CLI."""
    try:
        config = load_config(Path(config_file) if config_file else None)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    configure_logging(config.log_level, verbose)

    try:
        check_executable(config)
        credential = resolve_credential(config)
    except SetupError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    ok = asyncio.run(_run_chat(config, credential, initial_prompt))
    if not ok:
        raise SystemExit(1)


def configure_logging(level: str, verbose: bool) -> None:
    """Send log records to stderr; ``verbose`` forces DEBUG."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level),
        format=_LOG_FORMAT,
        stream=sys.stderr,
    )


# ------------------------------------------------------------------ #
# Session runner
# ------------------------------------------------------------------ #


async def _run_chat(
    config: TetherConfig,
    credential: str | None,
    initial_prompt: str | None,
) -> bool:
    """Run one-shot or interactive mode.  Returns ``False`` if a turn failed."""
    shutdown_event = asyncio.Event()
    supervisor: ProcessSupervisor | None = None
    spinner = Spinner(lambda: supervisor is not None and supervisor.waiting, shutdown_event)
    sink = EchoSink(before_write=spinner.clear)
    supervisor = ProcessSupervisor(config, sink, credential=credential)

    await spinner.start()
    try:
        if initial_prompt is not None:
            await _send_and_wait(supervisor, initial_prompt)
            return sink.failed_turns == 0
        await _repl_loop(supervisor)
        return True
    finally:
        shutdown_event.set()
        await spinner.stop()
        await supervisor.quit()


async def _send_and_wait(supervisor: ProcessSupervisor, text: str) -> None:
    try:
        await supervisor.send(text)
    except OutstandingRequestError as exc:
        click.echo(f"Error: {exc}", err=True)
        return
    await supervisor.wait_for_turn()


async def _repl_loop(supervisor: ProcessSupervisor) -> None:
    """Read user input in a loop until /quit or EOF."""
    click.echo(f"  tether — {supervisor.name} (type /help for commands)")
    click.echo()

    loop = asyncio.get_running_loop()
    while True:
        try:
            line = await loop.run_in_executor(None, _read_input)
        except EOFError:
            click.echo()
            break

        line = line.strip()
        if not line:
            continue

        if line.startswith("/"):
            if await _handle_command(line, supervisor):
                break
            continue

        await _send_and_wait(supervisor, line)


def _read_input() -> str:
    r"""Blocking stdin reader for use with ``run_in_executor``.

    Lines ending with ``\`` continue on the next line.
    """
    lines: list[str] = []
    prompt = "> "

    while True:
        sys.stdout.write(prompt)
        sys.stdout.flush()
        line = sys.stdin.readline()
        if not line:
            raise EOFError
        line = line.rstrip("\n")

        if line.endswith("\\"):
            lines.append(line[:-1])
            prompt = "... "
        else:
            lines.append(line)
            return "\n".join(lines)


async def _handle_command(line: str, supervisor: ProcessSupervisor) -> bool:
    """Process a slash command. Returns ``True`` if the REPL should exit."""
    command = line.split(None, 1)[0].lower()

    if command in ("/quit", "/exit"):
        return True

    if command == "/reset":
        await supervisor.reset()
        click.echo("Session reset.")
    elif command == "/status":
        click.echo(f"  State:        {supervisor.state.value}")
        click.echo(f"  Conversation: {supervisor.conversation_id or '-'}")
        click.echo(f"  Messages:     {supervisor.session.message_count}")
        click.echo(f"  Active tools: {len(supervisor.session.tools)}")
        click.echo(f"  PID:          {supervisor.pid or '-'}")
    elif command == "/help":
        click.echo(_HELP_TEXT)
    else:
        click.echo(f"Unknown command: {command} (try /help)")
    return False
