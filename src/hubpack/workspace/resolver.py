"""Resolve a hub solution into an ordered list of project units."""

from __future__ import annotations

import logging
from pathlib import Path

from hubpack.errors import PackagerError
from hubpack.workspace.graph import DependencyGraph
from hubpack.workspace.manifest import ManifestLoader, ProjectEntry, Solution, SolutionLoader
from hubpack.workspace.unit import ProjectUnit, RepositoryLocation

logger = logging.getLogger(__name__)


class DependencyGraphResolver:
    """Turn a hub solution into buildable units.

    By convention every project lives in its own repository laid out as::

        <repo>/<Name>.sln
        <repo>/<Name>/<Name>.csproj

    Attributes:
        loader: Loader used for the hub and per-repository solutions.
        solution_suffix: Suffix of the per-repository solution files.
    """

    def __init__(
        self,
        loader: ManifestLoader | None = None,
        *,
        solution_suffix: str = ".sln",
    ) -> None:
        self.loader = loader or SolutionLoader()
        self.solution_suffix = solution_suffix

    def resolve(self, manifest_path: Path) -> list[ProjectUnit]:
        """Resolve the units of a hub solution.

        Args:
            manifest_path: Path to the hub solution.

        Returns:
            Units in dependency-first order, each appearing once.

        Raises:
            PackagerError: If the graph is cyclic, a project's repository does not
                follow the layout convention, or its solution does not contain it.
        """
        hub = self.loader.load(manifest_path)

        graph: DependencyGraph[ProjectEntry] = DependencyGraph()
        names: dict[str, Path] = {}
        for entry in hub.projects:
            if not graph.add(str(entry.path), entry, (str(ref) for ref in entry.references)):
                continue
            if entry.name in names:
                raise PackagerError.expectation_failed(
                    f"Project name {entry.name} is used by both {names[entry.name]} "
                    f"and {entry.path}."
                )
            names[entry.name] = entry.path

        units: dict[str, ProjectUnit] = {}
        repositories: dict[Path, RepositoryLocation] = {}
        for entry in graph.topological_order():
            key = str(entry.path)
            unit = self._make_unit(entry, repositories)
            unit.dependencies = [units[dep] for dep in graph.dependencies(key)]
            unit.has_local_references = bool(entry.references)
            units[key] = unit

        self._check_solutions(list(units.values()), hub)

        logger.info("Build order: %s", ", ".join(units[k].name for k in units))
        return list(units.values())

    def _make_unit(
        self,
        entry: ProjectEntry,
        repositories: dict[Path, RepositoryLocation],
    ) -> ProjectUnit:
        repo_root = entry.path.parent.parent
        solution_path = repo_root / f"{entry.name}{self.solution_suffix}"

        if not solution_path.is_file():
            raise PackagerError.expectation_failed(
                f"Solution for project {entry.name} does not exist at {solution_path}."
            )

        repository = repositories.setdefault(repo_root, RepositoryLocation(repo_root))
        return ProjectUnit(
            name=entry.name,
            manifest_path=entry.path,
            repository=repository,
            solution_path=solution_path,
        )

    def _check_solutions(self, units: list[ProjectUnit], hub: Solution) -> None:
        """Ensure each unit's own solution declares a project named after it."""
        loaded: dict[Path, Solution] = {hub.path: hub}
        for unit in units:
            solution_path = unit.solution_path.resolve()
            if solution_path not in loaded:
                loaded[solution_path] = self.loader.load(solution_path)
            if loaded[solution_path].get(unit.name) is None:
                solution_name = unit.solution_path.stem
                raise PackagerError.expectation_failed(
                    f"Solution {solution_name} does not contain a project named {unit.name}."
                )
