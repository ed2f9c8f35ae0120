"""External command execution."""

from hubpack.execution.results import CommandOutcome
from hubpack.execution.runner import OutputHandler, ProcessRunner, minutes

__all__ = [
    "CommandOutcome",
    "OutputHandler",
    "ProcessRunner",
    "minutes",
]
