"""Process supervisor — owns the CLI subprocess and feeds its output to the engine."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from collections import deque

from tether.config.models import TetherConfig
from tether.protocol.lines import LineAssembler
from tether.protocol.messages import encode_user_message
from tether.session.engine import SessionEngine
from tether.session.models import LifecycleState
from tether.session.state import OutstandingRequestError, Session
from tether.sink import OutputSink

logger = logging.getLogger(__name__)

#: Bytes requested per stdout read; the engine handles whatever arrives.
_READ_CHUNK_BYTES = 65_536

#: Seconds to wait after SIGTERM before escalating to SIGKILL.
_SIGTERM_WAIT = 2.0

#: Seconds to wait for a killed process to be reaped.
_KILL_WAIT = 3.0

#: Seconds to let the stderr drain finish after stdout hits EOF.
_STDERR_GRACE = 1.0

#: Number of stderr lines kept for error reports.
_STDERR_TAIL_LINES = 50

#: Env vars stripped from the subprocess when no credential is configured,
#: so the CLI falls back to subscription auth.
_STRIPPED_ENV_KEYS = {"ANTHROPIC_API_KEY"}


def build_command(config: TetherConfig) -> list[str]:
    """Return the argv used to launch the CLI in streaming mode."""
    args = [
        config.executable,
        "-p",
        "--permission-mode",
        config.permission_mode,
        "--input-format",
        "stream-json",
        "--output-format",
        "stream-json",
    ]
    if config.verbose:
        args.append("--verbose")
    if config.model:
        args.extend(["--model", config.model])
    if config.temperature is not None:
        args.extend(["--temperature", str(config.temperature)])
    if config.max_tokens is not None:
        args.extend(["--max-tokens", str(config.max_tokens)])
    if config.allowed_tools:
        args.extend(["--allowedTools", ",".join(config.allowed_tools)])
    return args


def build_env(config: TetherConfig, credential: str | None) -> dict[str, str]:
    """Return the subprocess environment carrying the credential."""
    if config.credential_env is None:
        return {k: v for k, v in os.environ.items() if k not in _STRIPPED_ENV_KEYS}
    env = dict(os.environ)
    if credential is not None:
        env[config.credential_env] = credential
    return env


def format_stderr_preview(stderr_text: str, max_lines: int = 5) -> str:
    """Extract and format the last N non-empty lines from stderr output."""
    lines = [line for line in stderr_text.split("\n") if line.strip()]
    last = lines[-max_lines:] if len(lines) > max_lines else lines
    return "\n  ".join(last)


class ProcessSupervisor:
    """Runs one long-lived CLI subprocess for one :class:`Session`.

    The subprocess is spawned lazily by the first :meth:`send`.  A
    background task reads stdout in chunks and hands each chunk to the
    :class:`SessionEngine`; a second task keeps a tail of stderr for
    error reports.  Only one request may be outstanding at a time.
    """

    def __init__(
        self,
        config: TetherConfig,
        sink: OutputSink,
        *,
        credential: str | None = None,
        name: str = "claude",
    ) -> None:
        self.name = name
        self._config = config
        self._credential = credential
        self.session = Session(icons=config.icons, max_line_bytes=config.max_line_bytes)
        self.engine = SessionEngine(self.session, sink, icons=config.icons, name=name)

        self._process: asyncio.subprocess.Process | None = None
        self._read_task: asyncio.Task[None] | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._stderr_tail: deque[str] = deque(maxlen=_STDERR_TAIL_LINES)

        self._turn_done = asyncio.Event()
        self._turn_done.set()

    # ------------------------------------------------------------------ #
    # Public properties
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state of the session."""
        return self.session.state

    @property
    def waiting(self) -> bool:
        """True while a sent message awaits its result."""
        return self.session.waiting

    @property
    def conversation_id(self) -> str | None:
        """Conversation id reported by the CLI, once known."""
        return self.session.conversation_id

    @property
    def is_alive(self) -> bool:
        """True if a subprocess is attached and has not exited."""
        return self._process is not None and self._process.returncode is None

    @property
    def pid(self) -> int | None:
        """PID of the running subprocess, if any."""
        return self._process.pid if self.is_alive and self._process else None

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    async def send(self, text: str) -> None:
        """Send one user message, spawning the subprocess if needed.

        Spawn and write failures are reported through the output sink and
        leave the session IDLE.

        Raises:
            OutstandingRequestError: If a previous message is unanswered.
        """
        if self.session.state in (LifecycleState.STARTING, LifecycleState.WAITING):
            raise OutstandingRequestError

        if not self.is_alive:
            if self._process is not None:
                await self._discard_process()
            if self.session.state is not LifecycleState.IDLE:
                self.session.reset()
            self.session.begin_start()
            self._turn_done.clear()
            if not await self._spawn():
                self._turn_done.set()
                return
            self.session.mark_running()

        proc = self._process
        if proc is None or proc.stdin is None:
            self.engine.fail(f"{self.name} is not accepting input")
            self._update_turn()
            return

        self.session.begin_request()
        self._turn_done.clear()
        try:
            proc.stdin.write(encode_user_message(text))
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError, OSError) as exc:
            if self.session.state is LifecycleState.IDLE:
                # An exit or reset already ended this turn.
                logger.debug("%s: write failed after turn ended: %s", self.name, exc)
                self._update_turn()
                return
            await self._discard_process()
            self.engine.fail(f"failed to write to {self.name}: {exc}")
            self._update_turn()
            return
        logger.debug("%s: sent message %d", self.name, self.session.message_count)

    async def wait_for_turn(self) -> None:
        """Block until the current request is answered or abandoned."""
        await self._turn_done.wait()

    async def reset(self) -> None:
        """Kill the subprocess and discard all conversation state.

        Partial output and unresolved tools are dropped without events.
        """
        await self._discard_process()
        self.engine.reset()
        self._turn_done.set()

    async def quit(self) -> None:
        """Shut the session down."""
        await self.reset()

    # ------------------------------------------------------------------ #
    # Subprocess management
    # ------------------------------------------------------------------ #

    async def _spawn(self) -> bool:
        args = build_command(self._config)
        env = build_env(self._config, self._credential)
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                start_new_session=True,
            )
        except FileNotFoundError:
            self.engine.fail(
                f"'{args[0]}' not found. Make sure it is installed and on your PATH."
            )
            return False
        except OSError as exc:
            self.engine.fail(f"failed to spawn {args[0]}: {exc}")
            return False

        logger.info("%s: started pid %s", self.name, proc.pid)
        self._process = proc
        self._stderr_tail.clear()
        self._read_task = asyncio.create_task(self._read_loop(proc))
        self._stderr_task = asyncio.create_task(self._drain_stderr(proc))
        return True

    async def _discard_process(self) -> None:
        """Detach, stop the reader tasks and stop the current subprocess."""
        proc, self._process = self._process, None

        current = asyncio.current_task()
        tasks = [
            task
            for task in (self._read_task, self._stderr_task)
            if task is not None and not task.done() and task is not current
        ]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._read_task = None
        self._stderr_task = None

        if proc is None or proc.returncode is not None:
            return

        # SIGTERM -> wait -> SIGKILL.
        with contextlib.suppress(ProcessLookupError):
            proc.terminate()
        try:
            await asyncio.wait_for(proc.wait(), timeout=_SIGTERM_WAIT)
            return
        except TimeoutError:
            logger.debug("%s: pid %s ignored SIGTERM, killing", self.name, proc.pid)

        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        try:
            await asyncio.wait_for(proc.wait(), timeout=_KILL_WAIT)
        except TimeoutError:
            logger.warning("%s: pid %s did not exit after kill", self.name, proc.pid)

    async def _read_loop(self, proc: asyncio.subprocess.Process) -> None:
        """Read stdout chunks into the engine until EOF."""
        if proc.stdout is None:
            return

        try:
            while True:
                chunk = await proc.stdout.read(_READ_CHUNK_BYTES)
                if not chunk:
                    # EOF -- subprocess has exited.
                    break
                self.engine.feed(chunk)
                self._update_turn()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("%s: read loop error: %s", self.name, exc)

        returncode = await proc.wait()
        if self._stderr_task is not None:
            await asyncio.wait({self._stderr_task}, timeout=_STDERR_GRACE)

        # A reset may have replaced the process while we were waiting.
        if self._process is not proc:
            return
        self._process = None
        preview = format_stderr_preview("\n".join(self._stderr_tail))
        self.engine.handle_exit(returncode, preview)
        self._update_turn()

    async def _drain_stderr(self, proc: asyncio.subprocess.Process) -> None:
        """Keep the last lines of stderr so the pipe never fills up."""
        if proc.stderr is None:
            return

        lines = LineAssembler()
        try:
            while True:
                chunk = await proc.stderr.read(_READ_CHUNK_BYTES)
                if not chunk:
                    break
                for line in lines.feed(chunk):
                    self._keep_stderr_line(line)
            if lines.pending:
                self._keep_stderr_line(lines.pending.decode(errors="replace"))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.debug("%s: stderr drain stopped: %s", self.name, exc)

    def _keep_stderr_line(self, line: str) -> None:
        if line.strip():
            logger.debug("%s stderr: %s", self.name, line)
            self._stderr_tail.append(line)

    def _update_turn(self) -> None:
        if self.session.state not in (LifecycleState.STARTING, LifecycleState.WAITING):
            self._turn_done.set()
