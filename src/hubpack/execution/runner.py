"""Command execution with bounded timeouts and concurrent output capture."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shlex
import signal
import time
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from hubpack.errors import PackagerError
from hubpack.execution.results import CommandOutcome

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024

# Upper bound on waiting for a killed process to be reaped
KILL_WAIT_SECONDS = 10

OutputHandler = Callable[[str, bool], None]
"""Callback receiving (line, is_stderr) for every captured line."""


def minutes(value: float) -> float:
    """Convert a timeout in minutes to seconds."""
    return value * 60


async def _read_stream(
    stream: asyncio.StreamReader,
    callback: Callable[[str], None] | None,
    buffer: list[bytes],
) -> None:
    """Read from stream in chunks, passing complete lines to the callback.

    Reading in chunks keeps lines longer than the reader limit intact.
    """
    pending = b""
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        buffer.append(chunk)
        if callback:
            pending += chunk
            *lines, pending = pending.split(b"\n")
            for line in lines:
                callback(_decode(line).rstrip("\r"))
    if callback and pending:
        callback(_decode(pending).rstrip("\r"))


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _kill_process_tree(process: asyncio.subprocess.Process) -> None:
    """Kill a process and everything it started in its session."""
    with contextlib.suppress(ProcessLookupError):
        if os.name == "posix":
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()


class ProcessRunner:
    """Run external commands one at a time.

    Standard output and standard error are drained by two concurrent readers so
    a full pipe on one stream can never stall the child process.
    Each command starts its own session, so a timeout kills everything it
    started along with it.

    Attributes:
        env: Extra environment variables merged over the current environment.
        on_output: Optional callback for streaming captured lines.
    """

    def __init__(
        self,
        *,
        env: Mapping[str, str] | None = None,
        on_output: OutputHandler | None = None,
    ) -> None:
        self.env = dict(env or {})
        self.on_output = on_output

    def _callbacks(
        self,
    ) -> tuple[Callable[[str], None] | None, Callable[[str], None] | None]:
        handler = self.on_output
        if handler is None:
            return None, None

        def on_stdout(line: str) -> None:
            handler(line, False)

        def on_stderr(line: str) -> None:
            handler(line, True)

        return on_stdout, on_stderr

    async def run(
        self,
        working_directory: Path,
        command: str,
        arguments: Sequence[str] = (),
        timeout: float | None = None,
        *,
        check: bool = True,
    ) -> CommandOutcome:
        """Run a command and wait for it to exit or time out.

        Args:
            working_directory: Directory to run the command in.
            command: Executable to start.
            arguments: Arguments passed to the executable.
            timeout: Timeout in seconds. None waits forever.
            check: Raise if the command exits with a nonzero code.

        Returns:
            Outcome of the command.

        Raises:
            PackagerError: If the command timed out, exited nonzero while
                ``check`` is set, or could not be started.
        """
        args = tuple(str(arg) for arg in arguments)
        logger.info("%s> %s", working_directory, shlex.join((command, *args)))

        run_env = os.environ.copy()
        run_env.update(self.env)

        start_time = time.monotonic()

        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                cwd=str(working_directory),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=run_env,
                start_new_session=True,
            )
        except OSError as e:
            raise PackagerError.expectation_failed(
                f"Could not start `{command}` in {working_directory}: {e.strerror or e}"
            ) from e

        if process.stdout is None or process.stderr is None:
            raise RuntimeError("Process stdout/stderr is None")

        stdout_buffer: list[bytes] = []
        stderr_buffer: list[bytes] = []
        on_stdout, on_stderr = self._callbacks()

        exit_code: int | None
        try:
            await asyncio.wait_for(
                asyncio.gather(
                    _read_stream(process.stdout, on_stdout, stdout_buffer),
                    _read_stream(process.stderr, on_stderr, stderr_buffer),
                    process.wait(),
                ),
                timeout=timeout,
            )
            exit_code = process.returncode
        except (asyncio.TimeoutError, TimeoutError):
            # Tools such as msbuild leave worker processes holding the pipes open
            _kill_process_tree(process)
            with contextlib.suppress(asyncio.TimeoutError, TimeoutError):
                await asyncio.wait_for(process.wait(), KILL_WAIT_SECONDS)
            exit_code = None

        outcome = CommandOutcome(
            working_directory=working_directory,
            command=command,
            arguments=args,
            exit_code=exit_code,
            stdout=_decode(b"".join(stdout_buffer)),
            stderr=_decode(b"".join(stderr_buffer)),
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )

        if outcome.timed_out:
            logger.error("`%s` timed out after %ss", outcome.command_line, timeout)
            raise PackagerError.from_outcome(outcome)

        logger.debug("`%s` exited with code %s", outcome.command_line, exit_code)
        if check and exit_code != 0:
            raise PackagerError.from_outcome(outcome)

        return outcome
