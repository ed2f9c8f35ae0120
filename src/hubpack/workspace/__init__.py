"""Project graph discovery."""

from hubpack.workspace.graph import DependencyGraph
from hubpack.workspace.manifest import ManifestLoader, ProjectEntry, Solution, SolutionLoader
from hubpack.workspace.resolver import DependencyGraphResolver
from hubpack.workspace.unit import ProjectUnit, RepositoryLocation

__all__ = [
    "DependencyGraph",
    "DependencyGraphResolver",
    "ManifestLoader",
    "ProjectEntry",
    "ProjectUnit",
    "RepositoryLocation",
    "Solution",
    "SolutionLoader",
]
