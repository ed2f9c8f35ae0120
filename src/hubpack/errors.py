"""Error type for hubpack runs.

Every failure is a single :class:`PackagerError` tagged with an
:class:`ErrorKind`, the pipeline :class:`Stage` it happened in and, for
external tool failures, the full :class:`CommandOutcome`.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from hubpack import exit_codes

if TYPE_CHECKING:
    from hubpack.execution.results import CommandOutcome


class ErrorKind(str, Enum):
    """Category of a failed run."""

    COMMAND_FAILED = "command_failed"
    TIMED_OUT = "timed_out"
    EXPECTATION_FAILED = "expectation_failed"
    CONFIGURATION = "configuration"
    UNEXPECTED = "unexpected"


class Stage(str, Enum):
    """Pipeline stages, in execution order."""

    RESOLVE = "resolve"
    PRECONDITION = "precondition"
    CLEAN = "clean"
    RESTORE = "restore"
    BUILD = "build"
    PUBLISH = "publish"
    TERMINAL = "terminal"


class PackagerError(Exception):
    """A fatal failure of a hubpack run.

    Attributes:
        kind: Failure category.
        message: Human readable description.
        stage: Pipeline stage that failed, when known.
        outcome: Outcome of the failing external command, if any.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        stage: Stage | None = None,
        outcome: CommandOutcome | None = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.stage = stage
        self.outcome = outcome
        super().__init__(message)

    @classmethod
    def from_outcome(cls, outcome: CommandOutcome) -> PackagerError:
        """Create the error for a failed or timed-out command."""
        if outcome.timed_out:
            return cls(
                ErrorKind.TIMED_OUT,
                f"The command `{outcome.command_line}` timed out",
                outcome=outcome,
            )
        return cls(
            ErrorKind.COMMAND_FAILED,
            f"The command `{outcome.command_line}` exited with code {outcome.exit_code}",
            outcome=outcome,
        )

    @classmethod
    def expectation_failed(cls, message: str) -> PackagerError:
        """Create the error for a precondition that did not hold."""
        return cls(ErrorKind.EXPECTATION_FAILED, message)

    @classmethod
    def configuration(cls, message: str) -> PackagerError:
        """Create the error for invalid configuration."""
        return cls(ErrorKind.CONFIGURATION, message)

    def at_stage(self, stage: Stage) -> PackagerError:
        """Record the stage unless an earlier one was already recorded."""
        if self.stage is None:
            self.stage = stage
        return self

    @property
    def exit_code(self) -> int:
        """Process exit code for this failure."""
        return exit_codes.exit_code_for(self.kind)

    def describe(self) -> str:
        """Render the message shown to the user."""
        if self.kind in (ErrorKind.COMMAND_FAILED, ErrorKind.TIMED_OUT):
            return f"Error: {self.message}"
        if self.kind == ErrorKind.EXPECTATION_FAILED:
            return f"Expectation failed: {self.message}"
        if self.kind == ErrorKind.CONFIGURATION:
            return f"Configuration error: {self.message}"
        return f"Error: {self.message}"
