"""
Process exit codes for hubpack.

Follows the POSIX convention: 0 for success, small numbers for generic and
usage errors, and the 64-113 range for application-specific failures.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hubpack.errors import ErrorKind

SUCCESS = 0  # Successful termination
GENERAL_ERROR = 1  # Unexpected errors
USAGE_ERROR = 2  # Wrong arguments

COMMAND_FAILED = 64  # An external tool exited with a nonzero code
COMMAND_TIMED_OUT = 65  # An external tool was killed after its timeout
EXPECTATION_FAILED = 66  # A repository or project precondition did not hold
CONFIG_ERROR = 67  # Invalid configuration file or option combination
INTERRUPTED = 130  # Terminated by Ctrl+C (SIGINT)


def exit_code_for(kind: ErrorKind) -> int:
    """Get the exit code for an error kind.

    Args:
        kind: Error kind of a failed run.

    Returns:
        Exit code to report to the invoking environment.
    """
    from hubpack.errors import ErrorKind

    return {
        ErrorKind.COMMAND_FAILED: COMMAND_FAILED,
        ErrorKind.TIMED_OUT: COMMAND_TIMED_OUT,
        ErrorKind.EXPECTATION_FAILED: EXPECTATION_FAILED,
        ErrorKind.CONFIGURATION: CONFIG_ERROR,
    }.get(kind, GENERAL_ERROR)
