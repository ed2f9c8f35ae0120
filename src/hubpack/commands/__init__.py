"""hubpack commands."""

from hubpack.commands.base import Command, CommandContext, SyncCommand
from hubpack.commands.package import (
    PackageCommand,
    PackageOptions,
    PackageResult,
    distinct_repositories,
    handle_package_command,
    package,
    print_failure,
)
from hubpack.commands.plan import PlanCommand, PlanResult, handle_plan_command, plan

__all__ = [
    # Base
    "Command",
    "SyncCommand",
    "CommandContext",
    # Package
    "PackageCommand",
    "PackageOptions",
    "PackageResult",
    "distinct_repositories",
    "handle_package_command",
    "package",
    "print_failure",
    # Plan
    "PlanCommand",
    "PlanResult",
    "handle_plan_command",
    "plan",
]
