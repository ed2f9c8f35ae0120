"""Git working tree queries and mutations."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum
from pathlib import Path

from hubpack.execution import CommandOutcome, ProcessRunner

logger = logging.getLogger(__name__)


class RepositoryStatus(str, Enum):
    """State of a working tree relative to its index and upstream."""

    CLEAN_AND_UP_TO_DATE = "clean and up to date"
    DIRTY = "has uncommitted changes"
    AHEAD = "ahead of its upstream"
    BEHIND = "behind its upstream"
    DIVERGED = "diverged from its upstream"
    NOT_A_REPO = "not a git repository"


def parse_status(porcelain: str) -> RepositoryStatus:
    """Interpret the output of ``git status --porcelain=v2 --branch``.

    Args:
        porcelain: Command output.

    Returns:
        Repository status. A branch without an upstream counts as up to date.
    """
    ahead = behind = 0
    dirty = False

    for line in porcelain.splitlines():
        if not line:
            continue
        if line.startswith("# branch.ab "):
            # "# branch.ab +1 -2"
            counts = line.split()[2:4]
            ahead = abs(int(counts[0]))
            behind = abs(int(counts[1]))
        elif not line.startswith("#"):
            dirty = True

    if dirty:
        return RepositoryStatus.DIRTY
    if ahead and behind:
        return RepositoryStatus.DIVERGED
    if ahead:
        return RepositoryStatus.AHEAD
    if behind:
        return RepositoryStatus.BEHIND
    return RepositoryStatus.CLEAN_AND_UP_TO_DATE


class RepositoryGateway:
    """Run git commands against working trees.

    Every command goes through the :class:`ProcessRunner`, so failures surface
    as ``PackagerError`` with the full command outcome attached.

    Attributes:
        runner: Runner used for git commands.
        git: Git executable and any leading arguments.
        timeout: Timeout in seconds for each git command.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        *,
        git: Sequence[str] = ("git",),
        timeout: float | None = 60,
    ) -> None:
        self.runner = runner
        self.git = list(git)
        self.timeout = timeout

    async def _run(self, path: Path, args: list[str]) -> CommandOutcome:
        command, *prefix = self.git
        return await self.runner.run(path, command, [*prefix, *args], self.timeout)

    def is_repository(self, path: Path) -> bool:
        """Check if a directory holds git metadata.

        Args:
            path: Directory to check.

        Returns:
            True if ``path/.git`` exists.
        """
        return (path / ".git").exists()

    async def current_branch(self, path: Path) -> str:
        """Get the checked out branch name."""
        outcome = await self._run(path, ["rev-parse", "--abbrev-ref", "HEAD"])
        return outcome.stdout.strip()

    async def status(self, path: Path) -> RepositoryStatus:
        """Get the status of a working tree.

        Args:
            path: Working tree root.

        Returns:
            Repository status, NOT_A_REPO without running git when there is no
            git metadata.
        """
        if not self.is_repository(path):
            return RepositoryStatus.NOT_A_REPO
        outcome = await self._run(path, ["status", "--porcelain=v2", "--branch"])
        return parse_status(outcome.stdout)

    async def has_uncommitted_changes(self, path: Path) -> bool:
        """Check for modified, staged or untracked files."""
        outcome = await self._run(path, ["status", "--porcelain"])
        return bool(outcome.stdout.strip())

    async def fetch(self, path: Path) -> None:
        """Update remote tracking refs so the upstream comparison is current."""
        await self._run(path, ["fetch", "--quiet"])

    async def revert_all_changes(self, path: Path) -> None:
        """Discard all working tree modifications of tracked files."""
        logger.info("Reverting changes in %s.", path)
        await self._run(path, ["checkout", "."])

    async def unstage_all(self, path: Path) -> None:
        """Reset the index to HEAD, keeping working tree changes."""
        await self._run(path, ["reset", "--quiet"])

    async def stage(self, path: Path, file: Path) -> None:
        """Stage a file.

        Args:
            path: Working tree root.
            file: File to stage, absolute or relative to ``path``.
        """
        relative = file.relative_to(path) if file.is_absolute() else file
        await self._run(path, ["add", relative.as_posix()])

    async def commit(self, path: Path, message: str) -> None:
        """Commit everything that is staged."""
        await self._run(path, ["commit", "-m", message])

    async def tag(self, path: Path, tag_name: str, message: str) -> None:
        """Create an annotated tag on HEAD."""
        await self._run(path, ["tag", "-a", tag_name, "-m", message])

    async def push_with_tags(self, path: Path) -> None:
        """Push commits along with annotated tags that point at them."""
        await self._run(path, ["push", "--follow-tags"])
