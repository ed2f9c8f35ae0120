"""Outcome of a single external command invocation."""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class CommandOutcome:
    """Result of running one external command.

    Attributes:
        working_directory: Directory the command ran in.
        command: Executable that was started.
        arguments: Arguments passed to the executable.
        exit_code: Process exit code, or None if the process timed out and was killed.
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration_ms: Wall clock duration in milliseconds.
    """

    working_directory: Path
    command: str
    arguments: tuple[str, ...]
    exit_code: int | None
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def timed_out(self) -> bool:
        """Check if the process was killed after its timeout."""
        return self.exit_code is None

    @property
    def success(self) -> bool:
        """Check if the process exited with code 0."""
        return self.exit_code == 0

    @property
    def argument_string(self) -> str:
        """Arguments joined the way a shell would need them."""
        return shlex.join(self.arguments)

    @property
    def command_line(self) -> str:
        """Command and arguments as one string, for messages and logs."""
        if not self.arguments:
            return self.command
        return f"{self.command} {self.argument_string}"
