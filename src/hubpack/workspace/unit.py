"""Project units and the repositories that own them."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, slots=True)
class RepositoryLocation:
    """A directory expected to be the root of a git working tree.

    Several units may share one location when they live in the same repository.

    Attributes:
        path: Absolute path to the working tree root.
    """

    path: Path

    def __str__(self) -> str:
        return str(self.path)


@dataclass(eq=False)
class ProjectUnit:
    """One independently packaged project.

    Attributes:
        name: Project name, also the name of its package.
        manifest_path: Absolute path to the project file.
        repository: Repository the project lives in.
        solution_path: Per-repository solution file named after the project.
        dependencies: Direct in-graph dependencies, in declaration order.
        has_local_references: True if the project references other local projects.
    """

    name: str
    manifest_path: Path
    repository: RepositoryLocation
    solution_path: Path
    dependencies: list[ProjectUnit] = field(default_factory=list)
    has_local_references: bool = False

    @property
    def directory(self) -> Path:
        """Directory holding the project file."""
        return self.manifest_path.parent

    @property
    def dependency_names(self) -> list[str]:
        """Names of direct dependencies."""
        return [dep.name for dep in self.dependencies]

    def package_file_name(self, version: str, extension: str) -> str:
        """Name of the package produced for a version, e.g. ``Core.1.2.0.nupkg``."""
        return f"{self.name}.{version}{extension}"

    def __repr__(self) -> str:
        return f"ProjectUnit({self.name!r}, {str(self.manifest_path)!r})"
